"""
Pricing & Availability Extractor

Reads prices and stock status from element text and, when the element
itself carries no price, from the text of its recorded spatial
neighbours.
"""

import logging
import math
import re
from dataclasses import dataclass
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple

from pipeline.heuristics import HeuristicsConfig, find_phrase, get_heuristics
from world_model.models import ParsedInteraction

logger = logging.getLogger(__name__)


_AMOUNT = r'(\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?)'


def half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (12.5 -> 13)."""
    return int(math.floor(value + 0.5))


@dataclass
class PriceInfo:
    """Price reading for one interaction or product page."""
    price: Optional[float] = None
    original_price: Optional[float] = None
    discount_percent: Optional[int] = None
    currency: str = "USD"
    stock_status: str = "unknown"  # in_stock | limited_stock | out_of_stock | unknown
    price_extracted_from: str = "none"  # element | neighbors | none
    confidence: float = 0.0

    @property
    def has_price(self) -> bool:
        return self.price is not None

    def to_dict(self) -> dict:
        return {
            "price": self.price,
            "originalPrice": self.original_price,
            "discountPercent": self.discount_percent,
            "currency": self.currency,
            "stockStatus": self.stock_status,
            "priceExtractedFrom": self.price_extracted_from,
            "confidence": self.confidence,
        }


class PricingExtractor:
    """
    Price and stock detection.

    Patterns are tried in order; the first acceptable match wins.
    """

    # (name, pattern, confidence)
    PRICE_PATTERNS: List[Tuple[str, re.Pattern, float]] = [
        ("labeled_price", re.compile(r'price:\s*\$\s*' + _AMOUNT, re.IGNORECASE), 0.95),
        ("sale_price", re.compile(r'sale:\s*\$\s*' + _AMOUNT, re.IGNORECASE), 0.90),
        ("now_price", re.compile(r'now:\s*\$\s*' + _AMOUNT, re.IGNORECASE), 0.85),
        ("dollar_amount", re.compile(r'\$\s*' + _AMOUNT), 0.90),
        ("usd_suffix", re.compile(_AMOUNT + r'\s*USD\b', re.IGNORECASE), 0.80),
    ]
    MIN_CONFIDENCE = 0.7
    MAX_AMOUNT = 10000.0

    def __init__(self, heuristics: Optional[HeuristicsConfig] = None):
        self.heuristics = heuristics or get_heuristics()

    def detect_price(self, text: str) -> Optional[Tuple[float, float]]:
        """
        Find a price in text.

        Args:
            text: Text to scan

        Returns:
            (amount, confidence) or None
        """
        if not text:
            return None
        for name, pattern, confidence in self.PRICE_PATTERNS:
            match = pattern.search(text)
            if not match:
                continue
            try:
                amount = float(match.group(1).replace(",", ""))
            except ValueError:
                continue
            if confidence > self.MIN_CONFIDENCE and 0 < amount < self.MAX_AMOUNT:
                logger.debug(f"Price {amount} matched by {name} in '{text[:40]}'")
                return amount, confidence
        return None

    def stock_status(self, texts: Iterable[str]) -> str:
        """Keyword scan for stock status, strongest signal first."""
        texts = [t for t in texts if t]
        vocab = self.heuristics.vocabulary
        for status, phrases in (
            ("out_of_stock", vocab.out_of_stock_phrases),
            ("limited_stock", vocab.limited_stock_phrases),
            ("in_stock", vocab.in_stock_phrases),
        ):
            if any(find_phrase(t, phrases) for t in texts):
                return status
        return "unknown"

    def extract_price(
        self,
        interaction: ParsedInteraction,
        neighbors: Sequence[str] = ()
    ) -> PriceInfo:
        """
        Price information for one interaction.

        Args:
            interaction: Interaction whose element may show a price
            neighbors: Text of the element's recorded spatial neighbours

        Returns:
            PriceInfo
        """
        info = PriceInfo(stock_status=self.stock_status(neighbors))

        direct = self.detect_price(interaction.text)
        if direct:
            info.price, info.confidence = direct
            info.price_extracted_from = "element"
            return info

        amounts: List[float] = []
        confidence = 0.0
        for text in neighbors:
            found = self.detect_price(text)
            if found and found[0] not in amounts:
                amounts.append(found[0])
                confidence = max(confidence, found[1])

        if not amounts:
            return info

        info.price = min(amounts)
        info.confidence = confidence
        info.price_extracted_from = "neighbors"
        if len(amounts) >= 2:
            original = max(amounts)
            info.original_price = original
            info.discount_percent = half_up((original - info.price) / original * 100)
        return info

    def extract_from_interactions(
        self,
        interactions: Sequence[ParsedInteraction],
        neighbor_lookup: Optional[Mapping[str, Sequence[str]]] = None
    ) -> PriceInfo:
        """
        Best price reading across a product page's interactions.

        Element prices beat neighbour prices; the first reading of each kind
        wins. Stock status is the first definite status found.
        """
        neighbor_lookup = neighbor_lookup or {}
        element_info = None
        neighbor_info = None
        stock = "unknown"

        for interaction in interactions:
            info = self.extract_price(interaction, neighbor_lookup.get(interaction.id, ()))
            if stock == "unknown":
                stock = info.stock_status
            if info.price_extracted_from == "element" and element_info is None:
                element_info = info
            elif info.price_extracted_from == "neighbors" and neighbor_info is None:
                neighbor_info = info

        best = element_info or neighbor_info or PriceInfo()
        best.stock_status = stock
        return best
