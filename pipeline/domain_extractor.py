"""
Domain & Category Extractor

Derives one ExtractedDomain per hostname seen in a session and collapses
category classifications into deduplicated ExtractedCategory records.
"""

import logging
from collections import OrderedDict, Counter
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from pipeline.heuristics import HeuristicsConfig, get_heuristics
from pipeline import url_patterns
from world_model.models import (
    CategoryClassification,
    ExtractedCategory,
    ExtractedDomain,
    ParsedInteraction,
    UrlPatterns,
)

logger = logging.getLogger(__name__)


UI_FRAMEWORK_HINTS = {
    "react": ("react", "jsx-", "css-"),
    "vue": ("vue", "v-", "data-v-"),
    "angular": ("ng-", "angular", "mat-"),
    "bootstrap": ("btn", "col-", "navbar", "container-fluid"),
    "tailwind": ("flex", "px-", "py-", "text-sm", "bg-"),
}


def format_site_name(host: str) -> str:
    """www2.hm.com -> Hm, shop.example.co.uk -> Example"""
    return url_patterns.vendor_from_host(host).replace("-", " ").title()


class DomainExtractor:
    """
    Build domain records from interaction URLs.
    """

    def extract_domains(self, interactions: Iterable[ParsedInteraction]) -> List[ExtractedDomain]:
        """
        One ExtractedDomain per distinct hostname.

        Args:
            interactions: Parsed interactions

        Returns:
            Domains in first-seen order; URLs that fail to parse are skipped
        """
        urls_by_host: Dict[str, List[str]] = OrderedDict()
        for interaction in interactions:
            url = interaction.url
            host = url_patterns.hostname(url)
            if host is None:
                if url:
                    logger.debug(f"No domain signal from URL: {url[:80]}")
                continue
            urls_by_host.setdefault(host, []).append(url)

        domains = []
        for host, urls in urls_by_host.items():
            domains.append(ExtractedDomain(
                domain=host,
                site_name=format_site_name(host),
                site_type="ecommerce",
                url_patterns=self.analyze_url_patterns(urls),
            ))
        return domains

    @staticmethod
    def analyze_url_patterns(urls: Iterable[str]) -> UrlPatterns:
        """Bucket observed URLs into product, category, search and sale shapes."""
        patterns = UrlPatterns()
        seen = set()
        for url in urls:
            if url in seen:
                continue
            seen.add(url)
            if url_patterns.is_product_url(url):
                patterns.product.append(url)
            if url_patterns.is_category_url(url):
                patterns.category.append(url)
            if url_patterns.is_search_url(url):
                patterns.search.append(url)
            if url_patterns.is_sale_url(url):
                patterns.sale.append(url)
        return patterns

    @staticmethod
    def page_type_counts(interactions: Iterable[ParsedInteraction]) -> Dict[str, int]:
        """Interactions per page type (product, category, cart, ...)."""
        counts = Counter()
        for interaction in interactions:
            if interaction.url:
                counts[url_patterns.page_type_for_url(interaction.url)] += 1
        return dict(counts)

    @staticmethod
    def detect_ui_frameworks(interactions: Iterable[ParsedInteraction]) -> List[str]:
        """UI frameworks hinted at by element class names."""
        found = set()
        for interaction in interactions:
            classes = interaction.element.class_name.lower().split()
            attributes = [str(a).lower() for a in interaction.element.attributes]
            tokens = classes + attributes
            for framework, hints in UI_FRAMEWORK_HINTS.items():
                if any(token.startswith(hint) for token in tokens for hint in hints):
                    found.add(framework)
        return sorted(found)


class CategoryExtractor:
    """
    Collapse category classifications into category records.
    """

    def __init__(self, heuristics: Optional[HeuristicsConfig] = None, floor: Optional[float] = None):
        """
        Args:
            heuristics: Vocabulary/threshold configuration
            floor: Minimum confidence for persistence (default from configuration)
        """
        self.heuristics = heuristics or get_heuristics()
        self.floor = floor if floor is not None else self.heuristics.thresholds.category_floor

    def passes_floor(self, category: ExtractedCategory) -> bool:
        return category.confidence >= self.floor

    def from_classifications(
        self,
        classifications: Sequence[CategoryClassification]
    ) -> Dict[Tuple[str, str], ExtractedCategory]:
        """
        Deduplicate category classifications by (domain, category path).

        URLs are merged; the highest-confidence classification supplies the
        name and reasoning.

        Args:
            classifications: Category classifications of a session

        Returns:
            Mapping of (domain, category_path) to ExtractedCategory
        """
        categories: Dict[Tuple[str, str], ExtractedCategory] = OrderedDict()
        for c in classifications:
            if not c.category_path:
                continue
            key = (c.domain, c.category_path)
            held = categories.get(key)
            if held is None:
                held = ExtractedCategory(
                    category_path=c.category_path,
                    category_name=c.name,
                    category_type=self.heuristics.category_type(f"{c.name} {c.category_path.replace('/', ' ')}"),
                    urls=[],
                    confidence=c.confidence,
                    reasoning=c.reasoning,
                )
                categories[key] = held
            elif c.confidence > held.confidence:
                held.category_name = c.name
                held.confidence = c.confidence
                held.reasoning = c.reasoning
            if c.url and c.url not in held.urls:
                held.urls.append(c.url)
        return categories
