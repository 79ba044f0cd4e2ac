"""
Tests for interaction normalization.
"""

import json

import pytest

from pipeline.interaction_normalizer import InteractionNormalizer, TextCleaner


@pytest.fixture
def normalizer():
    return InteractionNormalizer()


class TestTextCleaner:
    """Tests for element text cleaning."""

    def test_strips_markup_and_whitespace(self):
        assert TextCleaner.clean("  Add&nbsp;to <b>Bag</b>\n ") == "Add to Bag"

    def test_none_and_numbers(self):
        assert TextCleaner.clean(None) == ""
        assert TextCleaner.clean(42) == "42"


class TestPayloadCoercion:
    """Tests for coercing enhancedInteractions payloads."""

    def test_json_string(self, normalizer):
        payload = json.dumps([{"type": "click"}, {"type": "scroll"}])
        items = normalizer.coerce_sequence(payload)
        assert [i["type"] for i in items] == ["click", "scroll"]

    def test_numeric_key_mapping_is_ordered(self, normalizer):
        """Mappings keyed "0", "1", ... become lists in numeric order."""
        payload = {"10": "k", "2": "c", "0": "a", "1": "b"}
        assert normalizer.coerce_sequence(payload) == ["a", "b", "c", "k"]

    def test_unparsable_string(self, normalizer):
        assert normalizer.coerce_sequence("{not json") is None

    def test_non_numeric_mapping(self, normalizer):
        assert normalizer.coerce_sequence({"first": {}}) is None

    def test_unsupported_type(self, normalizer):
        assert normalizer.coerce_sequence(42) is None
        assert normalizer.coerce_sequence(None) is None


class TestNormalize:
    """Tests for single-interaction normalization."""

    def test_neighbour_dumps_are_dropped(self, normalizer, make_raw):
        """Sibling, nearby and parent element lists never reach the parsed record."""
        raw = make_raw("Black", "https://www2.hm.com/en_us/productpage.1265337002.html", neighbors=["$45"])
        raw["element"]["siblingElements"] = [{"text": "Navy"}]
        raw["element"]["parentElements"] = [{"tag": "div"}]

        parsed = normalizer.normalize(raw)
        element = parsed.to_dict()["element"]
        assert set(element) == {"text", "tag", "id", "className", "attributes"}
        assert "nearbyElements" not in parsed.to_dict()

    def test_neighbour_texts_still_available(self, normalizer, make_raw):
        raw = make_raw("Add to Bag", neighbors=["$45.00", " ", "Only 2 left"])
        assert normalizer.neighbor_texts(raw) == ["$45.00", "Only 2 left"]

    def test_generated_id(self, normalizer, make_raw):
        parsed = normalizer.normalize(make_raw("Black"), index=3)
        assert parsed.id == "interaction-3"

    def test_recorded_id_kept(self, normalizer, make_raw):
        parsed = normalizer.normalize(make_raw("Black", interaction_id="evt-9"), index=3)
        assert parsed.id == "evt-9"

    def test_page_title_falls_back_to_state(self, normalizer, make_raw):
        raw = make_raw("Black")
        raw["state"] = {"before": {"title": "Slim Jeans | Gap"}}
        assert normalizer.normalize(raw).context.page_title == "Slim Jeans | Gap"

    def test_iso_timestamp(self, normalizer, make_raw):
        parsed = normalizer.normalize(make_raw("Black", timestamp="2026-01-01T00:00:00Z"))
        assert parsed.timestamp == 1767225600000.0

    def test_tag_lowercased(self, normalizer, make_raw):
        parsed = normalizer.normalize(make_raw("Jeans", tag="A"))
        assert parsed.element.tag == "a"
        assert parsed.is_click

    @pytest.mark.parametrize("raw", [None, 42, "not json", ["click"]])
    def test_unparsable_records(self, normalizer, raw):
        assert normalizer.normalize(raw) is None


class TestNormalizeBatch:
    """Tests for whole-session normalization."""

    def test_skips_invalid_records(self, normalizer, make_raw):
        payload = [make_raw("Black"), "garbage", 7, make_raw("M")]
        parsed = normalizer.normalize_batch(payload)
        assert [p.text for p in parsed] == ["Black", "M"]
        assert [p.id for p in parsed] == ["interaction-0", "interaction-3"]

    def test_neighbor_lookup_uses_batch_ids(self, normalizer, make_raw):
        payload = [make_raw("Black"), make_raw("Add to Bag", neighbors=["$45"])]
        parsed = normalizer.normalize_batch(payload)
        lookup = normalizer.neighbor_lookup(payload)
        assert lookup == {parsed[1].id: ["$45"]}

    def test_neighbor_lookup_decodes_json_strings(self, normalizer, make_raw):
        """Interactions recorded as JSON strings keep their neighbour texts."""
        payload = [
            json.dumps(make_raw("Add to Bag", interaction_id="i-1", neighbors=["$45.00", "Only 2 left"])),
            "{not json",
        ]
        assert [p.id for p in normalizer.normalize_batch(payload)] == ["i-1"]
        assert normalizer.neighbor_lookup(payload) == {"i-1": ["$45.00", "Only 2 left"]}

    def test_unusable_payload(self, normalizer):
        assert normalizer.normalize_batch("{oops") == []
