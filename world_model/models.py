"""
World Model Data Models

Records flowing through the ingestion pipeline: parsed interactions,
classification results and the extracted entities handed to the
repository.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Set, Tuple, Union


# Interactions

@dataclass
class InteractionContext:
    """Page the interaction happened on."""
    url: str = ""
    page_type: Optional[str] = None
    page_title: Optional[str] = None
    page_context: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "pageType": self.page_type,
            "pageTitle": self.page_title,
            "pageContext": self.page_context,
        }


@dataclass
class ElementInfo:
    """The clicked element. Never holds sibling, nearby or parent dumps."""
    text: str = ""
    tag: str = ""
    id: str = ""
    class_name: str = ""
    attributes: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "tag": self.tag,
            "id": self.id,
            "className": self.class_name,
            "attributes": self.attributes,
        }


@dataclass
class ParsedInteraction:
    """A normalized interaction record."""
    id: str
    type: str
    timestamp: Optional[float] = None  # epoch ms
    session_time: Optional[float] = None
    context: InteractionContext = field(default_factory=InteractionContext)
    element: ElementInfo = field(default_factory=ElementInfo)
    selectors: Dict[str, Any] = field(default_factory=dict)
    state: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def url(self) -> str:
        return self.context.url

    @property
    def text(self) -> str:
        return self.element.text

    @property
    def is_click(self) -> bool:
        return self.type.lower() == "click"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "timestamp": self.timestamp,
            "sessionTime": self.session_time,
            "context": self.context.to_dict(),
            "element": self.element.to_dict(),
            "selectors": self.selectors,
            "state": self.state,
            "metadata": self.metadata,
        }


@dataclass
class SessionContext:
    """Session-level hints supplied by the intake layer."""
    session_id: str = ""
    page_type: Optional[str] = None
    user_intent: Optional[str] = None
    shopping_stage: Optional[str] = None
    behavior_type: Optional[str] = None
    quality_score: Optional[float] = None


# Classifications

ClassificationKind = Literal["category", "product", "product_attribute", "ui", "ignore"]
AttributeType = Literal["color", "size", "style", "action", "availability"]


@dataclass
class ElementDetails:
    """Locator details kept alongside an attribute value."""
    tag: str = ""
    class_name: str = ""
    id: str = ""
    attributes: Dict[str, Any] = field(default_factory=dict)
    xpath: str = ""

    def to_dict(self) -> dict:
        return {
            "tag": self.tag,
            "className": self.class_name,
            "id": self.id,
            "attributes": self.attributes,
            "xpath": self.xpath,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ElementDetails":
        return cls(
            tag=data.get("tag", ""),
            class_name=data.get("className", ""),
            id=data.get("id", ""),
            attributes=data.get("attributes", {}),
            xpath=data.get("xpath", ""),
        )


@dataclass
class _ClassificationBase:
    confidence: float
    reasoning: str
    domain: str = ""

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")


@dataclass
class CategoryClassification(_ClassificationBase):
    name: str = ""
    url: str = ""
    category_path: str = ""
    kind: ClassificationKind = field(default="category", init=False)


@dataclass
class ProductClassification(_ClassificationBase):
    name: str = ""
    url: str = ""
    product_id: str = ""
    selector: str = ""
    kind: ClassificationKind = field(default="product", init=False)


@dataclass
class AttributeClassification(_ClassificationBase):
    attribute_type: AttributeType = "color"
    value: str = ""
    selector: str = ""
    element_details: ElementDetails = field(default_factory=ElementDetails)
    parent_product_url: str = ""
    kind: ClassificationKind = field(default="product_attribute", init=False)


@dataclass
class UIClassification(_ClassificationBase):
    kind: ClassificationKind = field(default="ui", init=False)


@dataclass
class IgnoreClassification(_ClassificationBase):
    kind: ClassificationKind = field(default="ignore", init=False)


Classification = Union[
    CategoryClassification,
    ProductClassification,
    AttributeClassification,
    UIClassification,
    IgnoreClassification,
]


# Extracted entities

@dataclass
class UrlPatterns:
    category: List[str] = field(default_factory=list)
    product: List[str] = field(default_factory=list)
    search: List[str] = field(default_factory=list)
    sale: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "category": list(self.category),
            "product": list(self.product),
            "search": list(self.search),
            "sale": list(self.sale),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "UrlPatterns":
        return cls(
            category=list(data.get("category", [])),
            product=list(data.get("product", [])),
            search=list(data.get("search", [])),
            sale=list(data.get("sale", [])),
        )


@dataclass
class ExtractedDomain:
    """A retail site, created once per hostname."""
    domain: str
    site_name: str
    site_type: str = "ecommerce"
    url_patterns: UrlPatterns = field(default_factory=UrlPatterns)

    def to_dict(self) -> dict:
        return {
            "domain": self.domain,
            "siteName": self.site_name,
            "siteType": self.site_type,
            "urlPatterns": self.url_patterns.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ExtractedDomain":
        return cls(
            domain=data["domain"],
            site_name=data.get("siteName", data["domain"]),
            site_type=data.get("siteType", "ecommerce"),
            url_patterns=UrlPatterns.from_dict(data.get("urlPatterns", {})),
        )


@dataclass
class ExtractedCategory:
    """A category page of a domain."""
    category_path: str
    category_name: str
    category_type: str = "regular"  # regular | sale | featured
    urls: List[str] = field(default_factory=list)
    confidence: float = 0.0
    reasoning: str = ""

    def to_dict(self) -> dict:
        return {
            "categoryPath": self.category_path,
            "categoryName": self.category_name,
            "categoryType": self.category_type,
            "urls": list(self.urls),
            "confidence": self.confidence,
            "reasoning": self.reasoning,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ExtractedCategory":
        return cls(
            category_path=data["categoryPath"],
            category_name=data.get("categoryName", ""),
            category_type=data.get("categoryType", "regular"),
            urls=list(data.get("urls", [])),
            confidence=data.get("confidence", 0.0),
            reasoning=data.get("reasoning", ""),
        )


@dataclass
class ProductAttribute:
    """One observed attribute value and how to locate it."""
    value: str
    selector: str = ""
    confidence: float = 0.0
    element_details: ElementDetails = field(default_factory=ElementDetails)

    def to_dict(self) -> dict:
        return {
            "value": self.value,
            "selector": self.selector,
            "confidence": self.confidence,
            "elementDetails": self.element_details.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ProductAttribute":
        return cls(
            value=data["value"],
            selector=data.get("selector", ""),
            confidence=data.get("confidence", 0.0),
            element_details=ElementDetails.from_dict(data.get("elementDetails", {})),
        )


def _attrs_to_dicts(attrs: List[ProductAttribute]) -> List[dict]:
    return [a.to_dict() for a in attrs]


def _attrs_from_dicts(items: List[dict]) -> List[ProductAttribute]:
    return [ProductAttribute.from_dict(i) for i in items]


@dataclass
class ProductVariants:
    colors: List[ProductAttribute] = field(default_factory=list)
    sizes: List[ProductAttribute] = field(default_factory=list)
    styles: List[ProductAttribute] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "colors": _attrs_to_dicts(self.colors),
            "sizes": _attrs_to_dicts(self.sizes),
            "styles": _attrs_to_dicts(self.styles),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ProductVariants":
        return cls(
            colors=_attrs_from_dicts(data.get("colors", [])),
            sizes=_attrs_from_dicts(data.get("sizes", [])),
            styles=_attrs_from_dicts(data.get("styles", [])),
        )


@dataclass
class ExtractedProduct:
    """A product page of a domain with its merged attribute buckets."""
    product_id: str
    product_name: str
    url: str
    selector: str = ""
    category_path: str = ""
    confidence: float = 0.0
    reasoning: str = ""
    price: Optional[float] = None
    original_price: Optional[float] = None
    discount_percent: Optional[int] = None
    currency: str = "USD"
    stock_status: str = "unknown"
    variants: ProductVariants = field(default_factory=ProductVariants)
    actions: List[ProductAttribute] = field(default_factory=list)
    availability: List[ProductAttribute] = field(default_factory=list)
    group_key: str = ""

    @property
    def attribute_count(self) -> int:
        v = self.variants
        return len(v.colors) + len(v.sizes) + len(v.styles) + len(self.actions) + len(self.availability)

    def to_dict(self) -> dict:
        return {
            "productId": self.product_id,
            "productName": self.product_name,
            "url": self.url,
            "selector": self.selector,
            "categoryPath": self.category_path,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "price": self.price,
            "originalPrice": self.original_price,
            "discountPercent": self.discount_percent,
            "currency": self.currency,
            "stockStatus": self.stock_status,
            "variants": self.variants.to_dict(),
            "actions": _attrs_to_dicts(self.actions),
            "availability": _attrs_to_dicts(self.availability),
            "groupKey": self.group_key,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ExtractedProduct":
        return cls(
            product_id=data["productId"],
            product_name=data.get("productName", ""),
            url=data.get("url", ""),
            selector=data.get("selector", ""),
            category_path=data.get("categoryPath", ""),
            confidence=data.get("confidence", 0.0),
            reasoning=data.get("reasoning", ""),
            price=data.get("price"),
            original_price=data.get("originalPrice"),
            discount_percent=data.get("discountPercent"),
            currency=data.get("currency", "USD"),
            stock_status=data.get("stockStatus", "unknown"),
            variants=ProductVariants.from_dict(data.get("variants", {})),
            actions=_attrs_from_dicts(data.get("actions", [])),
            availability=_attrs_from_dicts(data.get("availability", [])),
            group_key=data.get("groupKey", ""),
        )


# Run statistics

@dataclass
class IngestionStats:
    """Aggregation state owned by one ingestion worker."""
    sessions_processed: int = 0
    domains_found: Set[str] = field(default_factory=set)
    categories_created: Set[Tuple[str, str]] = field(default_factory=set)
    products_created: Set[Tuple[str, str]] = field(default_factory=set)
    errors: List[Dict[str, str]] = field(default_factory=list)
    classifications_analyzed: int = 0
    high_confidence_used: int = 0
    low_confidence_skipped: int = 0
    ui_filtered: int = 0
    interactions_skipped: int = 0

    def record_error(self, session_id: str, error: Exception) -> None:
        self.errors.append({
            "sessionId": session_id,
            "error": f"{type(error).__name__}: {error}",
        })

    def merge(self, other: "IngestionStats") -> "IngestionStats":
        """Combine stats of independent workers into a new summary."""
        return IngestionStats(
            sessions_processed=self.sessions_processed + other.sessions_processed,
            domains_found=self.domains_found | other.domains_found,
            categories_created=self.categories_created | other.categories_created,
            products_created=self.products_created | other.products_created,
            errors=self.errors + other.errors,
            classifications_analyzed=self.classifications_analyzed + other.classifications_analyzed,
            high_confidence_used=self.high_confidence_used + other.high_confidence_used,
            low_confidence_skipped=self.low_confidence_skipped + other.low_confidence_skipped,
            ui_filtered=self.ui_filtered + other.ui_filtered,
            interactions_skipped=self.interactions_skipped + other.interactions_skipped,
        )

    def to_dict(self) -> dict:
        return {
            "sessionsProcessed": self.sessions_processed,
            "domainsFound": len(self.domains_found),
            "categoriesCreated": len(self.categories_created),
            "productsCreated": len(self.products_created),
            "errors": list(self.errors),
            "classificationsAnalyzed": self.classifications_analyzed,
            "highConfidenceUsed": self.high_confidence_used,
            "lowConfidenceSkipped": self.low_confidence_skipped,
            "uiFiltered": self.ui_filtered,
            "interactionsSkipped": self.interactions_skipped,
        }
