"""
Tests for the heuristics configuration.
"""

import json

import pytest

from pipeline.heuristics import HeuristicsConfig, contains_phrase, find_phrase


def write_config(tmp_path, data):
    path = tmp_path / "heuristics.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestHeuristicsLoading:
    """Tests for loading and validating heuristics.json."""

    def test_default_thresholds(self, heuristics):
        """Default configuration carries the documented floors and window."""
        t = heuristics.thresholds
        assert t.category_floor == 0.6
        assert t.product_floor == 0.7
        assert t.lookahead_window == 4
        assert t.min_text_length == 2
        assert t.max_text_length == 60

    def test_vocabulary_is_lowercase(self, heuristics):
        """Vocabulary entries are normalized to lowercase."""
        assert "black" in heuristics.vocabulary.colors
        assert all(c == c.lower() for c in heuristics.vocabulary.colors)

    def test_missing_file_raises(self, tmp_path):
        """A missing configuration file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            HeuristicsConfig(str(tmp_path / "nope.json"))

    def test_floor_out_of_range_raises(self, tmp_path):
        """Confidence floors outside [0, 1] are rejected."""
        path = write_config(tmp_path, {"thresholds": {"category_floor": 1.5}})
        with pytest.raises(ValueError):
            HeuristicsConfig(str(path))

    def test_lookahead_window_bounded(self, tmp_path):
        """The look-ahead window may not exceed four interactions."""
        path = write_config(tmp_path, {"thresholds": {"lookahead_window": 5}})
        with pytest.raises(ValueError):
            HeuristicsConfig(str(path))

    def test_unknown_table_raises(self, tmp_path):
        """Unknown vocabulary tables are rejected instead of silently ignored."""
        path = write_config(tmp_path, {"vocabulary": {"flavours": ["vanilla"]}})
        with pytest.raises(ValueError):
            HeuristicsConfig(str(path))

    def test_custom_vocabulary(self, tmp_path):
        """Site vocabularies come from configuration, not code."""
        path = write_config(tmp_path, {"vocabulary": {"colors": ["Heather Oat"]}})
        config = HeuristicsConfig(str(path))
        assert config.vocabulary.colors == ["heather oat"]
        assert config.thresholds.product_floor == 0.7


class TestPhraseMatching:
    """Tests for whole-word phrase matching."""

    def test_whole_word_only(self):
        """'red' does not match inside 'tailored'."""
        assert not contains_phrase("Tailored Fit", "red")
        assert contains_phrase("Red Stripe", "red")

    def test_hyphenated_words_not_split(self):
        """A hyphen counts as part of the word."""
        assert not contains_phrase("Graphic T-Shirt", "t")

    def test_longest_phrase_wins(self):
        assert find_phrase("Slim Fit Chino", ["slim", "slim fit", "fit"]) == "slim fit"

    def test_no_match(self):
        assert find_phrase("Gift Card", ["black", "white"]) is None


class TestVocabularyQuestions:
    """Tests for vocabulary membership helpers."""

    @pytest.mark.parametrize("name", ["M", "Men", "Back", "x" * 61, "32", "30W", ""])
    def test_invalid_product_names(self, heuristics, name):
        """Sizes, category terms, UI controls and out-of-bounds text are not names."""
        assert not heuristics.is_valid_product_name(name)

    @pytest.mark.parametrize("name", ["Classic Tee", "Vintage Slim Fit Jeans", "Linen Shirt"])
    def test_valid_product_names(self, heuristics, name):
        assert heuristics.is_valid_product_name(name)

    def test_category_type(self, heuristics):
        """Categories are typed as sale, featured or regular."""
        assert heuristics.category_type("Summer Sale") == "sale"
        assert heuristics.category_type("New Arrivals") == "featured"
        assert heuristics.category_type("Jeans") == "regular"

    def test_exact_category_term(self, heuristics):
        assert heuristics.is_category_term(" Women ")
        assert not heuristics.is_category_term("Women's Linen Dress")
