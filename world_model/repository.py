"""
World Model Repository

Persistence interface for extracted domains, categories and products,
with an in-memory implementation and a JSON file implementation.

All upserts are idempotent: re-upserting an existing domain or category
is a no-op and re-upserting a product enriches it with merged attributes.
Nothing is ever deleted.
"""

import hashlib
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from utils.datetime_utils import utc_now
from utils.json_utils import dump_json, load_json
from world_model.models import (
    ExtractedCategory,
    ExtractedDomain,
    ExtractedProduct,
    ParsedInteraction,
    ProductAttribute,
    ProductVariants,
)

logger = logging.getLogger(__name__)


def make_id(prefix: str, *parts: str) -> str:
    """Deterministic id so concurrent workers agree on identities."""
    digest = hashlib.sha1("|".join(parts).encode("utf-8")).hexdigest()[:12]
    return f"{prefix}_{digest}"


def merge_attributes(held: List[ProductAttribute], new: List[ProductAttribute]) -> List[ProductAttribute]:
    """Union by case-insensitive value; the higher-confidence entry is kept."""
    merged: Dict[str, ProductAttribute] = {}
    for attribute in list(held) + list(new):
        key = attribute.value.strip().lower()
        current = merged.get(key)
        if current is None or attribute.confidence > current.confidence:
            merged[key] = attribute
    return list(merged.values())


def merge_products(held: ExtractedProduct, new: ExtractedProduct) -> ExtractedProduct:
    """
    Enrich a stored product with a newer extraction.

    The longer name is kept, attribute buckets are unioned, and price
    fields are taken from the newer extraction when it has a price.
    """
    name_source = new if (len(new.product_name), len(new.product_name.split())) > (
        len(held.product_name), len(held.product_name.split())
    ) else held
    price_source = new if new.price is not None else held

    return ExtractedProduct(
        product_id=held.product_id,
        product_name=name_source.product_name,
        url=held.url or new.url,
        selector=name_source.selector or held.selector,
        category_path=held.category_path or new.category_path,
        confidence=max(held.confidence, new.confidence),
        reasoning=name_source.reasoning,
        price=price_source.price,
        original_price=price_source.original_price,
        discount_percent=price_source.discount_percent,
        currency=price_source.currency,
        stock_status=new.stock_status if new.stock_status != "unknown" else held.stock_status,
        variants=ProductVariants(
            colors=merge_attributes(held.variants.colors, new.variants.colors),
            sizes=merge_attributes(held.variants.sizes, new.variants.sizes),
            styles=merge_attributes(held.variants.styles, new.variants.styles),
        ),
        actions=merge_attributes(held.actions, new.actions),
        availability=merge_attributes(held.availability, new.availability),
        group_key=held.group_key or new.group_key,
    )


class WorldModelRepository(ABC):
    """Asynchronous storage interface used by the ingester."""

    @abstractmethod
    async def get_domain(self, domain: str) -> Optional[dict]:
        """Stored domain record ({"id", "domain", ...}) or None."""

    @abstractmethod
    async def get_category(self, domain_id: str, category_path: str) -> Optional[dict]:
        """Stored category record or None."""

    @abstractmethod
    async def upsert_domain(self, domain: ExtractedDomain) -> str:
        """Create the domain if missing; return its id."""

    @abstractmethod
    async def upsert_category(self, domain_id: str, category: ExtractedCategory) -> dict:
        """Create the category if missing; return the stored record."""

    @abstractmethod
    async def upsert_product(
        self,
        domain: str,
        product: ExtractedProduct,
        source_interactions: Sequence[ParsedInteraction] = ()
    ) -> dict:
        """Create or enrich a product; return the stored record."""


class InMemoryRepository(WorldModelRepository):
    """
    Dictionary-backed repository.

    Each upsert builds the complete record before storing it, so a failure
    never leaves a partial entity behind.
    """

    def __init__(self):
        self.domains: Dict[str, dict] = {}
        self.categories: Dict[Tuple[str, str], dict] = {}
        self.products: Dict[Tuple[str, str], dict] = {}

    async def get_domain(self, domain: str) -> Optional[dict]:
        return self.domains.get(domain)

    async def get_category(self, domain_id: str, category_path: str) -> Optional[dict]:
        return self.categories.get((domain_id, category_path))

    async def get_product(self, domain: str, product_id: str) -> Optional[dict]:
        return self.products.get((domain, product_id))

    async def upsert_domain(self, domain: ExtractedDomain) -> str:
        existing = self.domains.get(domain.domain)
        if existing is not None:
            return existing["id"]
        record = {"id": make_id("dom", domain.domain), "createdAt": utc_now().isoformat()}
        record.update(domain.to_dict())
        self.domains[domain.domain] = record
        self._changed()
        logger.info(f"Created domain {domain.domain} ({record['id']})")
        return record["id"]

    async def upsert_category(self, domain_id: str, category: ExtractedCategory) -> dict:
        key = (domain_id, category.category_path)
        existing = self.categories.get(key)
        if existing is not None:
            return existing
        record = {
            "id": make_id("cat", domain_id, category.category_path),
            "domainId": domain_id,
            "createdAt": utc_now().isoformat(),
        }
        record.update(category.to_dict())
        self.categories[key] = record
        self._changed()
        logger.info(f"Created category {category.category_path} for {domain_id}")
        return record

    async def upsert_product(
        self,
        domain: str,
        product: ExtractedProduct,
        source_interactions: Sequence[ParsedInteraction] = ()
    ) -> dict:
        key = (domain, product.product_id)
        existing = self.products.get(key)
        source_ids = [i.id for i in source_interactions]

        if existing is None:
            merged = product
            record = {
                "id": make_id("prd", domain, product.product_id),
                "domain": domain,
                "createdAt": utc_now().isoformat(),
                "sourceInteractionIds": source_ids,
            }
        else:
            merged = merge_products(ExtractedProduct.from_dict(existing), product)
            record = {
                "id": existing["id"],
                "domain": domain,
                "createdAt": existing.get("createdAt"),
                "sourceInteractionIds": list(dict.fromkeys(existing.get("sourceInteractionIds", []) + source_ids)),
            }
        record["updatedAt"] = utc_now().isoformat()
        record.update(merged.to_dict())
        self.products[key] = record
        self._changed()
        logger.info(f"{'Created' if existing is None else 'Enriched'} product {product.product_id} on {domain}")
        return record

    def _changed(self) -> None:
        """Hook for subclasses that persist after every write."""

    def counts(self) -> Dict[str, int]:
        return {
            "domains": len(self.domains),
            "categories": len(self.categories),
            "products": len(self.products),
        }

    def snapshot(self) -> dict:
        return {
            "domains": list(self.domains.values()),
            "categories": list(self.categories.values()),
            "products": list(self.products.values()),
        }


class JsonFileRepository(InMemoryRepository):
    """
    Repository persisted as one JSON document.

    The document is rewritten after every change.
    """

    def __init__(self, path: Optional[str] = None):
        """
        Initialize storage.

        Args:
            path: JSON file path (default: data/world_model.json)
        """
        super().__init__()
        if path is None:
            path = Path(__file__).parent.parent / "data" / "world_model.json"
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if self.path.exists():
            self._load()
        logger.info(f"JsonFileRepository initialized at {self.path}")

    def _load(self) -> None:
        data = load_json(self.path)
        for record in data.get("domains", []):
            self.domains[record["domain"]] = record
        for record in data.get("categories", []):
            self.categories[(record["domainId"], record["categoryPath"])] = record
        for record in data.get("products", []):
            self.products[(record["domain"], record["productId"])] = record
        logger.info(f"Loaded world model from {self.path}: {self.counts()}")

    def _changed(self) -> None:
        self.save()

    def save(self) -> Path:
        data = self.snapshot()
        data["_storage"] = {
            "saved_at": utc_now().isoformat(),
            "version": "1.0",
        }
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, 'w', encoding='utf-8') as f:
            dump_json(data, f)
        tmp_path.replace(self.path)
        return self.path
