"""Tests for the OpenAI-backed extractor and its prompts."""

import json
from unittest.mock import MagicMock

import pytest

from conftest import make_resort
from models.enrichment import AggregatedData, DataQuality, EnrichmentResult, ExtractedData
from services.llm_service import (
    LLMExtractor,
    TransformError,
    build_dining_prompt,
    build_enrichment_prompt,
    build_extraction_prompt,
    build_ski_shop_prompt,
    render_shape,
)


def _completion(content, prompt_tokens=1200, completion_tokens=300):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    response.usage.prompt_tokens = prompt_tokens
    response.usage.completion_tokens = completion_tokens
    return response


def _extractor(content, **kwargs):
    client = MagicMock()
    client.chat.completions.create.return_value = _completion(content, **kwargs)
    return LLMExtractor(client, "gpt-4o"), client


WIKI = {
    "title": "Vail Ski Resort",
    "extract": "Vail is a ski resort in Colorado.",
    "fullExtract": "Vail is a ski resort in Colorado. It opened in 1962.",
    "infobox": {"vertical": "3,450 ft"},
    "categories": ["Ski areas and resorts in Colorado"],
    "coordinates": {"lat": 39.6, "lng": -106.35},
}


class TestCompleteJson:
    def test_json_mode_request(self):
        extractor, client = _extractor('{"content": {}}')
        data, usage = extractor.complete_json("prompt")

        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["temperature"] == 0.3
        assert kwargs["messages"][1] == {"role": "user", "content": "prompt"}
        assert data == {"content": {}}
        assert usage.total_tokens == 1500

    def test_invalid_json_raises(self):
        extractor, _ = _extractor("Sure! Here is the data: {")
        with pytest.raises(TransformError, match="Failed to parse"):
            extractor.complete_json("prompt")

    def test_empty_content_raises(self):
        extractor, _ = _extractor(None)
        with pytest.raises(TransformError, match="No content"):
            extractor.complete_json("prompt")

    def test_non_object_raises(self):
        extractor, _ = _extractor("[1, 2, 3]")
        with pytest.raises(TransformError, match="not a JSON object"):
            extractor.complete_json("prompt")

    def test_custom_system_prompt_and_token_limit(self):
        extractor, client = _extractor('{"venues": []}')
        extractor.complete_json("prompt", system="Be brief.", max_tokens=4000)

        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["messages"][0] == {"role": "system", "content": "Be brief."}
        assert kwargs["max_tokens"] == 4000

    def test_no_token_limit_by_default(self):
        extractor, client = _extractor('{}')
        extractor.complete_json("prompt")
        assert "max_tokens" not in client.chat.completions.create.call_args.kwargs


class TestExtract:
    def test_enrich_parses_scored_fields(self):
        payload = {
            "content": {"tagline": {"value": "Legendary back bowls", "confidence": 0.9}},
            "stats": {"skiableAcres": {"value": 5317, "confidence": 0.95}},
        }
        extractor, _ = _extractor(json.dumps(payload))
        data = AggregatedData(
            slug="vail", name="Vail", asset_path="us/colorado/vail", wikipedia=WIKI
        )

        result, usage = extractor.enrich(data)

        assert isinstance(result, EnrichmentResult)
        assert result.content.tagline.value == "Legendary back bowls"
        assert result.stats.skiable_acres.value == 5317
        assert usage.prompt_tokens == 1200

    def test_schema_mismatch_raises(self):
        payload = {"stats": {"skiableAcres": {"value": "lots", "confidence": 2}}}
        extractor, _ = _extractor(json.dumps(payload))
        with pytest.raises(TransformError, match="does not match ExtractedData"):
            extractor.extract_resort_data(make_resort(), WIKI)


class TestPrompts:
    def test_extraction_prompt_includes_sources(self):
        prompt = build_extraction_prompt(
            make_resort(name="Vail", state_name="Colorado"),
            WIKI,
            {"wikidataId": "Q1234", "officialWebsite": "https://www.vail.com"},
        )
        assert '"Vail" in Colorado, United States' in prompt
        assert "It opened in 1962." in prompt
        assert "COORDINATES: 39.6, -106.35" in prompt
        assert "WIKIDATA CLAIMS" in prompt
        assert '"hasNightSkiing"' in prompt

    def test_enrichment_prompt_skips_missing_sources(self):
        data = AggregatedData(
            slug="vail",
            name="Vail",
            asset_path="us/colorado/vail",
            state="Colorado",
            country="United States",
            wikipedia=WIKI,
            data_quality=DataQuality(has_wikipedia=True, source_count=1, overall_score=0.5),
        )
        prompt = build_enrichment_prompt(data)
        assert "=== WIKIPEDIA DATA ===" in prompt
        assert "LIFTIE" not in prompt
        assert "ONTHESNOW" not in prompt
        assert '"features"' not in prompt

    def test_render_shape_is_valid_layout(self):
        shape = render_shape({"general": {"websiteUrl": "string or null"}})
        assert shape.splitlines() == [
            "{",
            '  "general": {',
            '    "websiteUrl": { "value": string or null, "confidence": 0.0-1.0 }',
            "  }",
            "}",
        ]
        assert isinstance(ExtractedData(), EnrichmentResult)


class TestPlacePrompts:
    def test_dining_prompt(self):
        resort = make_resort("vail", name="Vail", nearest_city="Vail", state_name="Colorado")

        prompt = build_dining_prompt(resort, 20, 15)

        assert 'For the ski resort "Vail" located near Vail, Colorado' in prompt
        assert "(coordinates: 39.6403, -106.3742)" in prompt
        assert "within 20 miles" in prompt
        assert "Return 15 venues" in prompt
        assert '"lodge_dining"' in prompt
        assert '"apres_ski"' in prompt
        assert prompt.endswith('JSON object with a "venues" array.')

    def test_ski_shop_prompt(self):
        resort = make_resort("alta", name="Alta", state_name="Utah", lat=40.58, lon=-111.63)

        prompt = build_ski_shop_prompt(resort, 12.5, 10)

        assert "located near Alta, Utah" in prompt
        assert "within 12.5 miles" in prompt
        assert "Return up to 10 shops" in prompt
        assert '"boot_fitting"' in prompt
        assert prompt.endswith('JSON object with a "shops" array.')
