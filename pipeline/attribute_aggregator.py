"""
Product Attribute Aggregator

Builds one ExtractedProduct per product-page group by classifying every
member interaction and merging attribute classifications into typed
buckets.
"""

import logging
import re
from typing import Dict, List, Mapping, Optional, Sequence

from pipeline.heuristics import HeuristicsConfig, find_phrase, get_heuristics
from pipeline.intent_classifier import IntentClassifier
from pipeline.pricing_extractor import PricingExtractor
from pipeline import url_patterns
from world_model.models import (
    AttributeClassification,
    Classification,
    ExtractedProduct,
    ParsedInteraction,
    ProductAttribute,
    ProductClassification,
    ProductVariants,
    SessionContext,
)

logger = logging.getLogger(__name__)


BUCKET_ORDER = ("colors", "sizes", "styles", "actions", "availability")
BUCKET_FOR_TYPE = {
    "color": "colors",
    "size": "sizes",
    "style": "styles",
    "action": "actions",
    "availability": "availability",
}
FALLBACK_CONFIDENCE = 0.8
FALLBACK_SELECTOR = "page-main-product"
UNKNOWN_PRODUCT = "Unknown Product"


def name_rank(candidate: ProductClassification) -> tuple:
    """Longer names win, then more words, then confidence."""
    name = candidate.name.strip()
    return len(name), len(name.split()), candidate.confidence


class ProductAttributeAggregator:
    """
    Merge a product page's classifications into a single product record.
    """

    def __init__(
        self,
        classifier: Optional[IntentClassifier] = None,
        pricing: Optional[PricingExtractor] = None,
        heuristics: Optional[HeuristicsConfig] = None
    ):
        self.heuristics = heuristics or get_heuristics()
        self.classifier = classifier or IntentClassifier(self.heuristics)
        self.pricing = pricing or PricingExtractor(self.heuristics)

    def bucket_for(self, attribute: AttributeClassification) -> str:
        """
        Bucket an attribute value belongs to.

        The value is tested against each bucket vocabulary in order; the first
        match wins. Values no vocabulary recognises (numeric sizes, "30W")
        use the classifier's attribute type.
        """
        value = attribute.value.strip().lower()
        vocab = self.heuristics.vocabulary
        tables = {
            "colors": vocab.colors,
            "sizes": vocab.size_tokens + vocab.size_words,
            "styles": vocab.styles,
            "actions": vocab.actions,
            "availability": vocab.availability,
        }
        for bucket in BUCKET_ORDER:
            if value in tables[bucket]:
                return bucket
        for bucket in BUCKET_ORDER:
            if find_phrase(value, tables[bucket]):
                return bucket
        return BUCKET_FOR_TYPE[attribute.attribute_type]

    def pick_base_product(self, candidates: Sequence[ProductClassification]) -> Optional[ProductClassification]:
        """
        Choose the product identity for a page.

        Only names passing the product-name filter are considered. A
        candidate replaces the held one only when it ranks higher, so a
        shorter name never displaces a longer one whatever the arrival order.
        """
        best = None
        for candidate in candidates:
            if not self.heuristics.is_valid_product_name(candidate.name):
                continue
            if best is None or name_rank(candidate) > name_rank(best):
                best = candidate
        return best

    def aggregate(
        self,
        group_key: str,
        interactions: Sequence[ParsedInteraction],
        session_context: Optional[SessionContext] = None,
        neighbor_lookup: Optional[Mapping[str, Sequence[str]]] = None,
        classified: Optional[Mapping[str, Classification]] = None
    ) -> Optional[ExtractedProduct]:
        """
        Aggregate one product-page group.

        Args:
            group_key: Key from the product-page grouper
            interactions: Members of the group in session order
            session_context: Session hints for the classifier
            neighbor_lookup: Neighbour texts by interaction id (pricing only)
            classified: Session-wide classifications by interaction id; members
                missing from it are classified with the group as look-ahead

        Returns:
            ExtractedProduct, or None if the page yielded neither a product
            nor any attribute
        """
        if not interactions:
            return None

        window = self.classifier.window
        products: List[ProductClassification] = []
        buckets: Dict[str, Dict[str, ProductAttribute]] = {b: {} for b in BUCKET_ORDER}

        for i, interaction in enumerate(interactions):
            result = (classified or {}).get(interaction.id)
            if result is None:
                following = interactions[i + 1:i + 1 + window]
                result = self.classifier.classify(interaction, session_context, following)
            if isinstance(result, ProductClassification):
                # Look-ahead clicks can name a different product; keep the page's own
                if result.url == url_patterns.page_url(interaction.url):
                    products.append(result)
            elif isinstance(result, AttributeClassification):
                bucket = buckets[self.bucket_for(result)]
                dedup_key = result.value.strip().lower()
                held = bucket.get(dedup_key)
                if held is None or result.confidence > held.confidence:
                    bucket[dedup_key] = ProductAttribute(
                        value=result.value,
                        selector=result.selector,
                        confidence=result.confidence,
                        element_details=result.element_details,
                    )

        attribute_count = sum(len(b) for b in buckets.values())
        base = self.pick_base_product(products)
        page_url = url_patterns.page_url(interactions[0].url)

        if base is not None:
            product = ExtractedProduct(
                product_id=base.product_id,
                product_name=base.name,
                url=page_url,
                selector=base.selector,
                confidence=base.confidence,
                reasoning=base.reasoning,
            )
        elif attribute_count:
            product = self._fallback_product(interactions, page_url)
        else:
            logger.debug(f"No product or attributes on page group {group_key}")
            return None

        product.group_key = group_key
        product.category_path = self._category_path(interactions)
        product.variants = ProductVariants(
            colors=list(buckets["colors"].values()),
            sizes=list(buckets["sizes"].values()),
            styles=list(buckets["styles"].values()),
        )
        product.actions = list(buckets["actions"].values())
        product.availability = list(buckets["availability"].values())

        price = self.pricing.extract_from_interactions(interactions, neighbor_lookup)
        product.price = price.price
        product.original_price = price.original_price
        product.discount_percent = price.discount_percent
        product.currency = price.currency
        product.stock_status = price.stock_status

        logger.debug(
            f"Aggregated {group_key}: '{product.product_name}' with {attribute_count} attribute(s), "
            f"confidence {product.confidence:.2f}"
        )
        return product

    def _fallback_product(self, interactions: Sequence[ParsedInteraction], page_url: str) -> ExtractedProduct:
        url = interactions[0].url
        name = self.name_from_url(url) or self.name_from_interactions(interactions) or UNKNOWN_PRODUCT
        return ExtractedProduct(
            product_id=IntentClassifier.product_id(url, name),
            product_name=name,
            url=page_url,
            selector=FALLBACK_SELECTOR,
            confidence=FALLBACK_CONFIDENCE,
            reasoning="derived from attributes only",
        )

    def name_from_url(self, url: str) -> Optional[str]:
        """Title-cased product slug ("classic-crew-tee" -> "Classic Crew Tee")."""
        slug = url_patterns.product_slug(url)
        if not slug:
            return None
        name = re.sub(r'[-_]+', ' ', slug).strip()
        name = re.sub(r'\s+\d+$', '', name)
        name = name.title()
        return name if self.heuristics.is_valid_product_name(name) else None

    def name_from_interactions(self, interactions: Sequence[ParsedInteraction]) -> Optional[str]:
        """Longest non-UI, non-category text on the page."""
        best = None
        for interaction in interactions:
            text = interaction.text.strip()
            if not text or len(text) > self.heuristics.thresholds.max_text_length:
                continue
            if self.heuristics.is_ui_control(text) or self.heuristics.is_category_term(text):
                continue
            if self.classifier.match_attribute(text):
                continue
            if not self.heuristics.is_valid_product_name(text):
                continue
            if best is None or len(text) > len(best):
                best = text
        return best

    @staticmethod
    def _category_path(interactions: Sequence[ParsedInteraction]) -> str:
        """Category of the product page, taken from a breadcrumb link when one was clicked."""
        for interaction in interactions:
            href = str(interaction.element.attributes.get("href") or "")
            if href and url_patterns.is_category_url(href):
                path = url_patterns.category_path_from_url(href)
                if path:
                    return path
        return ""
