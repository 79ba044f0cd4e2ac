"""
Heuristics Configuration

Loads the classifier vocabulary tables and confidence thresholds from
config/heuristics.json. New site vocabularies are added to the JSON file,
not to classifier code.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Pattern

logger = logging.getLogger(__name__)


@lru_cache(maxsize=2048)
def _phrase_pattern(phrase: str) -> Pattern:
    return re.compile(r'(?<![\w-])' + re.escape(phrase) + r'(?![\w-])', re.IGNORECASE)


def contains_phrase(text: str, phrase: str) -> bool:
    """Whole-word phrase match ("red" does not match "tailored")."""
    return bool(text) and bool(_phrase_pattern(phrase).search(text))


def find_phrase(text: str, phrases: Iterable[str]) -> Optional[str]:
    """
    Find the longest vocabulary phrase contained in text.

    Args:
        text: Text to scan
        phrases: Candidate phrases

    Returns:
        The matching phrase, or None
    """
    best = None
    for phrase in phrases:
        if contains_phrase(text, phrase) and (best is None or len(phrase) > len(best)):
            best = phrase
    return best


@dataclass
class Thresholds:
    """Confidence floors and window sizes."""
    category_floor: float = 0.6
    product_floor: float = 0.7
    lookahead_window: int = 4
    min_text_length: int = 2
    max_text_length: int = 60
    min_product_name_length: int = 5
    max_category_text_length: int = 30


@dataclass
class Vocabulary:
    """Keyword tables used by the heuristics. All entries are lowercase."""
    ui_controls: List[str] = field(default_factory=list)
    category_segments: List[str] = field(default_factory=list)
    category_terms: List[str] = field(default_factory=list)
    sale_terms: List[str] = field(default_factory=list)
    featured_terms: List[str] = field(default_factory=list)
    product_nouns: List[str] = field(default_factory=list)
    descriptors: List[str] = field(default_factory=list)
    colors: List[str] = field(default_factory=list)
    size_tokens: List[str] = field(default_factory=list)
    size_words: List[str] = field(default_factory=list)
    styles: List[str] = field(default_factory=list)
    actions: List[str] = field(default_factory=list)
    availability: List[str] = field(default_factory=list)
    non_product_terms: List[str] = field(default_factory=list)
    purchase_phrases: List[str] = field(default_factory=list)
    checkout_phrases: List[str] = field(default_factory=list)
    add_to_cart_phrases: List[str] = field(default_factory=list)
    remove_from_cart_phrases: List[str] = field(default_factory=list)
    quantity_phrases: List[str] = field(default_factory=list)
    view_cart_phrases: List[str] = field(default_factory=list)
    out_of_stock_phrases: List[str] = field(default_factory=list)
    limited_stock_phrases: List[str] = field(default_factory=list)
    in_stock_phrases: List[str] = field(default_factory=list)

    @property
    def all_category_terms(self) -> List[str]:
        return self.category_segments + self.category_terms


class HeuristicsConfig:
    """
    Vocabulary and threshold configuration.

    Responsibilities:
    - Load tables from JSON configuration
    - Validate thresholds
    - Answer vocabulary membership questions for the pipeline stages
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the configuration.

        Args:
            config_path: Path to heuristics.json. If None, uses default location.
        """
        if config_path is None:
            project_root = Path(__file__).parent.parent
            config_path = project_root / "config" / "heuristics.json"

        self.config_path = Path(config_path)
        self.thresholds = Thresholds()
        self.vocabulary = Vocabulary()

        self._load()

    def _load(self) -> None:
        """Load and validate configuration file."""
        logger.debug(f"Loading heuristics from: {self.config_path}")
        if not self.config_path.exists():
            raise FileNotFoundError(f"Heuristics configuration not found: {self.config_path}")

        with open(self.config_path, 'r', encoding='utf-8') as f:
            config = json.load(f)

        known_thresholds = set(Thresholds.__dataclass_fields__)
        raw_thresholds = config.get("thresholds", {})
        unknown = set(raw_thresholds) - known_thresholds
        if unknown:
            raise ValueError(f"Unknown thresholds: {sorted(unknown)}")
        self.thresholds = Thresholds(**raw_thresholds)

        known_tables = set(Vocabulary.__dataclass_fields__)
        tables: Dict[str, List[str]] = {}
        for name, entries in config.get("vocabulary", {}).items():
            if name not in known_tables:
                raise ValueError(f"Unknown vocabulary table: {name}")
            tables[name] = [str(e).strip().lower() for e in entries if str(e).strip()]
        self.vocabulary = Vocabulary(**tables)

        self._validate()
        logger.info(
            f"Loaded heuristics: {len(tables)} vocabulary tables, "
            f"floors category={self.thresholds.category_floor} product={self.thresholds.product_floor}"
        )

    def _validate(self) -> None:
        errors = []
        t = self.thresholds
        for name in ("category_floor", "product_floor"):
            value = getattr(t, name)
            if not 0.0 <= value <= 1.0:
                errors.append(f"{name} must be within [0, 1], got {value}")
        if not 0 <= t.lookahead_window <= 4:
            errors.append(f"lookahead_window must be within [0, 4], got {t.lookahead_window}")
        if t.min_text_length > t.max_text_length:
            errors.append("min_text_length exceeds max_text_length")
        if errors:
            raise ValueError(f"Heuristics validation failed: {errors}")

    # Vocabulary questions

    def is_ui_control(self, text: str) -> bool:
        return text.strip().lower() in self.vocabulary.ui_controls

    def is_category_term(self, text: str) -> bool:
        """Exact category vocabulary term (e.g. "Men", "Sale", "Jeans")."""
        return text.strip().lower() in self.vocabulary.all_category_terms

    def mentions_category(self, text: str) -> Optional[str]:
        return find_phrase(text, self.vocabulary.all_category_terms)

    def mentions_product_noun(self, text: str) -> Optional[str]:
        return find_phrase(text, self.vocabulary.product_nouns)

    def is_size_token(self, text: str) -> bool:
        return text.strip().lower() in self.vocabulary.size_tokens

    def mentions_descriptor(self, text: str) -> Optional[str]:
        return find_phrase(text, self.vocabulary.descriptors)

    def mentions_non_product(self, text: str) -> Optional[str]:
        return find_phrase(text, self.vocabulary.non_product_terms)

    def is_valid_product_name(self, text: str) -> bool:
        """
        Product-name filter.

        Rejects pure category or UI terms, bare size tokens, and names
        outside the configured length bounds.
        """
        if not text:
            return False
        name = text.strip()
        if not self.thresholds.min_text_length <= len(name) <= self.thresholds.max_text_length:
            return False
        if self.is_category_term(name) or self.is_ui_control(name):
            return False
        if self.is_size_token(name) or name.lower() in self.vocabulary.size_words:
            return False
        if re.fullmatch(r'\d{1,3}(\.5)?|\d{2,3}\s?w', name, re.IGNORECASE):
            return False
        return True

    def category_type(self, text: str) -> str:
        """regular | sale | featured"""
        if find_phrase(text, self.vocabulary.sale_terms):
            return "sale"
        if find_phrase(text, self.vocabulary.featured_terms):
            return "featured"
        return "regular"


# Module-level singleton for convenience
_heuristics: Optional[HeuristicsConfig] = None


def get_heuristics(config_path: Optional[str] = None, force_reload: bool = False) -> HeuristicsConfig:
    """
    Get the heuristics configuration singleton.

    Args:
        config_path: Optional path to heuristics.json
        force_reload: If True, reload even if already loaded

    Returns:
        HeuristicsConfig instance
    """
    global _heuristics
    if _heuristics is None or force_reload or config_path is not None:
        _heuristics = HeuristicsConfig(config_path)
    return _heuristics
