"""
Pipeline Module

Stages that turn recorded shopping interactions into world model entities:
- Interaction Normalizer: payload coercion and element cleanup
- Intent Classifier: category/product/attribute/UI decisions
- Product-Page Grouper: URL-shape based product identity
- Attribute Aggregator: one product record per product page
- Domain & Category Extractor: sites and category records
- Navigation Extractor: category hierarchy and navigation inventories
- Shopping-Flow Analyzer: funnel, cart and checkout behaviour
- Pricing Extractor: prices, discounts and stock status
"""

from .heuristics import HeuristicsConfig, get_heuristics
from .interaction_normalizer import InteractionNormalizer, TextCleaner
from .intent_classifier import IntentClassifier
from .product_grouper import ProductPageGrouper
from .pricing_extractor import PricingExtractor, PriceInfo
from .attribute_aggregator import ProductAttributeAggregator
from .domain_extractor import DomainExtractor, CategoryExtractor
from .navigation_extractor import NavigationExtractor, NavigationArchitecture
from .shopping_flow import ShoppingFlowAnalyzer, ShoppingFlowAnalysis

__all__ = [
    "HeuristicsConfig",
    "get_heuristics",
    "InteractionNormalizer",
    "TextCleaner",
    "IntentClassifier",
    "ProductPageGrouper",
    "PricingExtractor",
    "PriceInfo",
    "ProductAttributeAggregator",
    "DomainExtractor",
    "CategoryExtractor",
    "NavigationExtractor",
    "NavigationArchitecture",
    "ShoppingFlowAnalyzer",
    "ShoppingFlowAnalysis",
]
