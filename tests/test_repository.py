"""
Tests for world model repositories.
"""

import asyncio
import json

from world_model.models import (
    ExtractedCategory,
    ExtractedDomain,
    ExtractedProduct,
    ProductAttribute,
    ProductVariants,
)
from world_model.repository import InMemoryRepository, JsonFileRepository, make_id, merge_products


def make_product(name="Vintage Slim Fit Jeans", colors=("Black",), price=None):
    return ExtractedProduct(
        product_id="796255112",
        product_name=name,
        url="https://www.gap.com/browse/product.do",
        confidence=0.9,
        price=price,
        variants=ProductVariants(colors=[ProductAttribute(c, confidence=0.95) for c in colors]),
    )


class TestInMemoryRepository:
    """Tests for idempotent upserts."""

    def test_domain_upsert_is_idempotent(self):
        repo = InMemoryRepository()
        domain = ExtractedDomain("www.gap.com", "Gap")

        first = asyncio.run(repo.upsert_domain(domain))
        second = asyncio.run(repo.upsert_domain(domain))

        assert first == second
        assert repo.counts()["domains"] == 1

    def test_category_upsert_is_idempotent(self):
        repo = InMemoryRepository()
        category = ExtractedCategory("men/jeans", "Jeans", confidence=0.85)

        first = asyncio.run(repo.upsert_category("dom_1", category))
        renamed = ExtractedCategory("men/jeans", "Men's Jeans", confidence=0.9)
        second = asyncio.run(repo.upsert_category("dom_1", renamed))

        assert second["id"] == first["id"]
        assert second["categoryName"] == "Jeans"
        assert repo.counts()["categories"] == 1

    def test_product_enrichment(self):
        repo = InMemoryRepository()
        asyncio.run(repo.upsert_product("www.gap.com", make_product("Slim Jeans", colors=("Black",))))
        record = asyncio.run(repo.upsert_product("www.gap.com", make_product(colors=("Navy", "black"), price=45.0)))

        assert repo.counts()["products"] == 1
        assert record["productName"] == "Vintage Slim Fit Jeans"
        assert sorted(c["value"].lower() for c in record["variants"]["colors"]) == ["black", "navy"]
        assert record["price"] == 45.0

    def test_price_kept_when_new_reading_has_none(self):
        repo = InMemoryRepository()
        asyncio.run(repo.upsert_product("www.gap.com", make_product(price=45.0)))
        record = asyncio.run(repo.upsert_product("www.gap.com", make_product(price=None)))
        assert record["price"] == 45.0

    def test_get_product(self):
        repo = InMemoryRepository()
        asyncio.run(repo.upsert_product("www.gap.com", make_product()))
        assert asyncio.run(repo.get_product("www.gap.com", "796255112"))["productName"] == "Vintage Slim Fit Jeans"
        assert asyncio.run(repo.get_product("www.hm.com", "796255112")) is None


class TestMergeProducts:
    """Tests for product merge rules."""

    def test_shorter_name_never_replaces_longer(self):
        merged = merge_products(make_product("Vintage Slim Fit Jeans"), make_product("Jeans"))
        assert merged.product_name == "Vintage Slim Fit Jeans"


class TestJsonFileRepository:
    """Tests for JSON persistence."""

    def test_persists_and_reloads(self, tmp_path):
        path = tmp_path / "store" / "world_model.json"
        repo = JsonFileRepository(str(path))
        domain_id = asyncio.run(repo.upsert_domain(ExtractedDomain("www.gap.com", "Gap")))
        asyncio.run(repo.upsert_category(domain_id, ExtractedCategory("men/jeans", "Jeans", confidence=0.85)))
        asyncio.run(repo.upsert_product("www.gap.com", make_product()))

        data = json.loads(path.read_text(encoding="utf-8"))
        assert "_storage" in data

        reloaded = JsonFileRepository(str(path))
        assert reloaded.counts() == {"domains": 1, "categories": 1, "products": 1}
        assert asyncio.run(reloaded.get_category(domain_id, "men/jeans"))["categoryName"] == "Jeans"


class TestIds:
    """Tests for deterministic ids."""

    def test_make_id_is_deterministic(self):
        assert make_id("dom", "www.gap.com") == make_id("dom", "www.gap.com")
        assert make_id("dom", "www.gap.com") != make_id("dom", "www2.hm.com")
        assert make_id("cat", "a").startswith("cat_")
