"""Wikipedia (MediaWiki API) client for ski resort articles."""

import io
import logging
import re
from datetime import UTC, datetime
from typing import Any
from urllib.parse import quote

import requests
from bs4 import BeautifulSoup
from PIL import Image
from pydantic import ValidationError

from models.wikipedia import Coordinates, WikipediaArticle, WikipediaMedia
from utils.http import RateLimiter, SourceFetchError, is_not_found, request_with_retry

logger = logging.getLogger(__name__)

API_URL = "https://en.wikipedia.org/w/api.php"
REST_URL = "https://en.wikipedia.org/api/rest_v1"

# Any of these in a search hit's title or snippet marks it as a skiing article
SKI_KEYWORDS = ("ski", "resort", "skiing", "mountain", "slopes")

# Maintenance categories that say nothing about the resort
IGNORED_CATEGORY_MARKERS = ("Articles", "Webarchive")

INFOBOX_PATTERN = re.compile(r"\{\{\s*[Ii]nfobox[^\n]*\n(.*?)\n\}\}", re.DOTALL)
INFOBOX_LINE_PATTERN = re.compile(r"^\s*\|\s*(\w+)\s*=\s*(.*)$")

JPEG_QUALITY = 85


def clean_wiki_markup(value: str) -> str:
    """Reduce an infobox value to plain text."""
    value = re.sub(r"\[\[([^\]|]+)\|([^\]]+)\]\]", r"\2", value)
    value = re.sub(r"\[\[([^\]]+)\]\]", r"\1", value)
    value = re.sub(r"\{\{[^}]+\}\}", "", value)
    value = BeautifulSoup(value, "html.parser").get_text()
    return value.replace("\xa0", " ").strip()


def parse_infobox(wikitext: str) -> dict[str, str]:
    """Key/value pairs of the first infobox template in ``wikitext``."""
    match = INFOBOX_PATTERN.search(wikitext)
    if not match:
        return {}

    infobox = {}
    for line in match.group(1).split("\n"):
        line_match = INFOBOX_LINE_PATTERN.match(line)
        if not line_match:
            continue
        key = line_match.group(1).strip().lower()
        value = clean_wiki_markup(line_match.group(2))
        if value:
            infobox[key] = value
    return infobox


def strip_html(snippet: str) -> str:
    """Plain text of a search snippet (which highlights matches in <span>s)."""
    return BeautifulSoup(snippet, "html.parser").get_text()


def is_ski_related(title: str, snippet: str) -> bool:
    combined = f"{title} {strip_html(snippet)}".lower()
    return any(keyword in combined for keyword in SKI_KEYWORDS)


def search_queries(resort_name: str, state_name: str) -> list[str]:
    """Search queries in order of specificity."""
    return [
        f"{resort_name} ski resort {state_name}",
        f"{resort_name} ski area {state_name}",
        f"{resort_name} {state_name} skiing",
        f"{resort_name} ski resort",
        resort_name,
    ]


def filter_categories(categories: list[dict[str, Any]]) -> list[str]:
    names = [c.get("title", "").replace("Category:", "") for c in categories]
    return [
        name
        for name in names
        if name and not any(marker in name for marker in IGNORED_CATEGORY_MARKERS)
    ]


def to_jpeg(data: bytes) -> bytes:
    """Re-encode an image as RGB JPEG."""
    with Image.open(io.BytesIO(data)) as image:
        if image.mode != "RGB":
            image = image.convert("RGB")
        output = io.BytesIO()
        image.save(output, format="JPEG", quality=JPEG_QUALITY)
        return output.getvalue()


class WikipediaService:
    """Fetches and parses resort articles, one rate-limited request at a time."""

    def __init__(
        self,
        user_agent: str,
        rate_limit_ms: int = 500,
        session: requests.Session | None = None,
        rate_limiter: RateLimiter | None = None,
    ):
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": user_agent})
        self.rate_limiter = rate_limiter or RateLimiter(rate_limit_ms)

    def _get(self, url: str, params: dict[str, Any] | None = None) -> requests.Response:
        self.rate_limiter.wait()
        return request_with_retry("GET", url, session=self.session, params=params)

    def _api(self, **params: Any) -> dict[str, Any]:
        params = {"format": "json", "formatversion": "2", **params}
        try:
            return self._get(API_URL, params).json()
        except requests.exceptions.RequestException as e:
            raise SourceFetchError(f"Wikipedia API error: {e}") from e

    def search(self, resort_name: str, state_name: str) -> dict[str, Any] | None:
        """Best skiing-related search hit for a resort, or None."""
        queries = search_queries(resort_name, state_name)
        for query in queries:
            data = self._api(action="query", list="search", srsearch=query, srlimit=5)
            results = data.get("query", {}).get("search", [])

            for item in results:
                if is_ski_related(item.get("title", ""), item.get("snippet", "")):
                    return item

            # Nothing skiing-related: trust the most specific query's top hit
            if results and query == queries[0]:
                return results[0]
        return None

    def get_page(self, pageid: int) -> dict[str, Any] | None:
        data = self._api(
            action="query",
            pageids=pageid,
            prop="extracts|info|categories|coordinates",
            explaintext=1,
            exsectionformat="plain",
            inprop="url",
            cllimit=50,
        )
        pages = data.get("query", {}).get("pages", [])
        return pages[0] if pages and not pages[0].get("missing") else None

    def get_intro(self, pageid: int) -> str:
        data = self._api(
            action="query", pageids=pageid, prop="extracts", exintro=1, explaintext=1
        )
        pages = data.get("query", {}).get("pages", [])
        return pages[0].get("extract", "") if pages else ""

    def get_infobox(self, title: str) -> dict[str, str]:
        data = self._api(
            action="query",
            titles=title,
            prop="revisions",
            rvprop="content",
            rvslots="main",
            rvsection=0,
        )
        pages = data.get("query", {}).get("pages", [])
        if not pages or not pages[0].get("revisions"):
            return {}
        revision = pages[0]["revisions"][0]
        wikitext = revision.get("slots", {}).get("main", {}).get("content", "")
        return parse_infobox(wikitext)

    def get_media(self, title: str) -> list[WikipediaMedia]:
        url = f"{REST_URL}/page/media-list/{quote(title.replace(' ', '_'), safe='')}"
        try:
            data = self._get(url).json()
        except requests.exceptions.RequestException as e:
            if is_not_found(e):
                return []
            raise SourceFetchError(f"Wikipedia media list failed: {e}") from e

        media = []
        for item in data.get("items", []):
            if item.get("type") != "image":
                continue
            try:
                media.append(WikipediaMedia.model_validate(item))
            except ValidationError:
                logger.debug(f"Skipping malformed media item in {title}")
        return media

    def get_wikidata_id(self, title: str) -> str | None:
        """Wikidata entity id (e.g. 'Q1234') linked to an article."""
        data = self._api(action="query", titles=title, prop="pageprops", ppprop="wikibase_item")
        pages = data.get("query", {}).get("pages", [])
        if not pages:
            return None
        return pages[0].get("pageprops", {}).get("wikibase_item")

    def fetch_article(self, resort_name: str, state_name: str) -> WikipediaArticle | None:
        """Everything needed to describe a resort, or None if it has no article."""
        hit = self.search(resort_name, state_name)
        if not hit:
            logger.info(f'No Wikipedia article found for "{resort_name}"')
            return None

        page = self.get_page(hit["pageid"])
        if not page:
            logger.info(f'Could not fetch page content for "{hit["title"]}"')
            return None

        title = page["title"]
        coords = (page.get("coordinates") or [None])[0]

        return WikipediaArticle(
            title=title,
            pageid=page["pageid"],
            url=page.get("fullurl")
            or f"https://en.wikipedia.org/wiki/{quote(title.replace(' ', '_'))}",
            extract=self.get_intro(page["pageid"]),
            full_extract=page.get("extract", ""),
            categories=filter_categories(page.get("categories", [])),
            coordinates=Coordinates(lat=coords["lat"], lng=coords["lon"]) if coords else None,
            infobox=self.get_infobox(title),
            media=self.get_media(title),
            last_updated=datetime.now(UTC).isoformat(),
        )

    def download_image(self, url: str) -> bytes | None:
        """Image bytes re-encoded as JPEG, or None if it cannot be fetched."""
        try:
            response = self._get(url)
        except requests.exceptions.RequestException as e:
            logger.warning(f"Failed to download image {url}: {e}")
            return None
        try:
            return to_jpeg(response.content)
        except OSError as e:
            logger.warning(f"Could not convert image {url}: {e}")
            return None
