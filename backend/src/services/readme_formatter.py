"""Markdown README generated for each resort from its Wikipedia article."""

import re

from models.resort import Resort
from models.wikipedia import WikipediaArticle

SITE_URL = "https://skidirectory.com"

# (infobox key, label); the first key found wins for each label
INFOBOX_FIELDS = [
    ("status", "Status"),
    ("location", "Location"),
    ("nearest_city", "Nearest City"),
    ("summit_elevation", "Summit Elevation"),
    ("top_elevation", "Summit Elevation"),
    ("base_elevation", "Base Elevation"),
    ("vertical_drop", "Vertical Drop"),
    ("vertical", "Vertical Drop"),
    ("skiable_area", "Skiable Area"),
    ("trails", "Trails"),
    ("number_trails", "Trails"),
    ("runs", "Runs"),
    ("lifts", "Lifts"),
    ("liftsystem", "Lifts"),
    ("longest_run", "Longest Run"),
    ("terrain_parks", "Terrain Parks"),
    ("terrainparks", "Terrain Parks"),
    ("snowfall", "Annual Snowfall"),
    ("snowmaking", "Snowmaking"),
    ("night_skiing", "Night Skiing"),
    ("nightskiing", "Night Skiing"),
    ("season", "Season"),
    ("opened", "Opened"),
    ("closed", "Closed"),
    ("owner", "Owner"),
    ("operator", "Operator"),
    ("website", "Website"),
]

SECTION_HEADINGS = [
    "History",
    "Terrain",
    "Lifts",
    "Facilities",
    "Snow conditions",
    "Snowmaking",
    "Events",
    "Access",
    "Transportation",
    "Lodging",
    "Notable events",
    "Gallery",
    "See also",
    "References",
    "External links",
]

HEADING_PATTERN = re.compile(
    r"(?:^|\n\n)(" + "|".join(SECTION_HEADINGS) + r")\s*(?:\n|$)", re.IGNORECASE
)


def split_into_sections(text: str) -> list[tuple[str | None, str]]:
    """Split a plain-text article into (heading, content) pairs."""
    sections: list[tuple[str | None, str]] = []
    last_index = 0
    last_heading = None

    for match in HEADING_PATTERN.finditer(text):
        content = text[last_index : match.start()].strip()
        if content:
            sections.append((last_heading, content))
        last_heading = match.group(1)
        last_index = match.end()

    remaining = text[last_index:].strip()
    if remaining:
        sections.append((last_heading, remaining))

    if not sections:
        sections.append((None, text.strip()))
    return sections


def _quick_facts(infobox: dict[str, str]) -> list[str]:
    rows = []
    seen = set()
    for key, label in INFOBOX_FIELDS:
        value = infobox.get(key)
        if value and label not in seen:
            clean = value.replace("|", "\\|").replace("\n", " ")
            rows.append(f"| {label} | {clean} |")
            seen.add(label)
    return rows


def format_readme(resort: Resort, article: WikipediaArticle | None) -> str:
    lines = [f"# {resort.name}", ""]

    city = f"{resort.nearest_city}, " if resort.nearest_city else ""
    lines += [f"**Location:** {city}{resort.display_state}, {resort.display_country}", ""]

    if resort.is_lost:
        lines += ["> **Status:** This ski area is no longer operational (Lost Ski Area)", ""]
    elif not resort.is_active:
        lines += ["> **Status:** This ski area is currently inactive", ""]

    if article:
        lines += ["## Overview", "", article.extract or "No summary available.", ""]

        facts = _quick_facts(article.infobox)
        if facts:
            lines += ["## Quick Facts", "", "| Attribute | Value |", "|-----------|-------|"]
            lines += facts + [""]

        if article.full_extract and article.full_extract != article.extract:
            lines += ["## Detailed Information", ""]
            for heading, content in split_into_sections(article.full_extract):
                if heading:
                    lines += [f"### {heading}", ""]
                lines += [content, ""]

        if article.categories:
            lines += ["## Categories", ""]
            lines += [f"- {category}" for category in article.categories] + [""]

        if article.coordinates:
            lines += [
                "## Coordinates",
                "",
                f"- **Latitude:** {article.coordinates.lat}",
                f"- **Longitude:** {article.coordinates.lng}",
                "",
            ]

        lines += [
            "---",
            "",
            "## Source",
            "",
            f"This information was sourced from Wikipedia: [{article.title}]({article.url})",
            "",
            f"*Last updated: {article.last_updated}*",
        ]
    else:
        lines += ["## Overview", ""]
        if resort.description:
            lines.append(resort.description)
        else:
            kind = "area that was formerly located" if resort.is_lost else "resort located"
            lines.append(
                f"{resort.name} is a ski {kind} in {resort.display_state}, {resort.display_country}."
            )
        lines += ["", "*No Wikipedia article found for this ski area.*"]

    lines += ["", "## Links", ""]
    if resort.website_url:
        lines.append(f"- [Official Website]({resort.website_url})")
    if article:
        lines.append(f"- [Wikipedia Article]({article.url})")
    lines.append(
        f"- [View on Ski Directory]({SITE_URL}/{resort.country_code}/{resort.state_slug}/{resort.slug})"
    )
    lines.append("")
    return "\n".join(lines)
