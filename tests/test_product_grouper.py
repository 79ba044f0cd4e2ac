"""
Tests for retailer URL shapes and product-page grouping.
"""

import re

import pytest

from pipeline import url_patterns
from pipeline.product_grouper import ProductPageGrouper


class TestGroupKeys:
    """Tests for product group keys per retailer URL family."""

    @pytest.mark.parametrize("url,expected", [
        ("https://www2.hm.com/en_us/productpage.1265337002.html", "hm-product-1265337002"),
        ("https://www.gap.com/browse/product.do?pid=796255112&vid=1", "gap-product-796255112"),
        ("https://www.nordstrom.com/s/wrap-midi-dress-women/8427767", "nordstrom-product-8427767"),
        ("https://www.example.com/p/classic-tee/12345", "example-product-12345"),
        ("https://www.amazon.com/Some-Product/dp/B08N5WRWNW/ref=sr_1_1", "amazon-product-B08N5WRWNW"),
    ])
    def test_retailer_shapes(self, url, expected):
        assert ProductPageGrouper.group_key(url) == expected

    def test_generic_product_page_uses_base_url(self):
        url = "https://shop.example.com/products/linen-shirt?variant=1#reviews"
        assert ProductPageGrouper.group_key(url) == "https://shop.example.com/products/linen-shirt"

    def test_pid_on_category_browse_is_not_a_product(self):
        """A pid on a pure category browse path does not make a product page."""
        assert ProductPageGrouper.group_key("https://www.gap.com/browse/men?pid=123") is None

    @pytest.mark.parametrize("url", ["https://www.example.com/about", "", "not a url"])
    def test_unmatched(self, url):
        assert ProductPageGrouper.group_key(url) is None

    def test_query_string_does_not_split_groups(self):
        a = ProductPageGrouper.group_key("https://www2.hm.com/en_us/productpage.1265337002.html?color=black")
        b = ProductPageGrouper.group_key("https://www2.hm.com/en_us/productpage.1265337002.html")
        assert a == b


class TestShapeRegistration:
    """Tests for extending the shape table."""

    def test_registered_shape_runs_before_fallback(self, monkeypatch):
        monkeypatch.setattr(url_patterns, "PRODUCT_SHAPES", list(url_patterns.PRODUCT_SHAPES))
        url_patterns.register_shape(url_patterns.ProductShape(
            "item_path", re.compile(r'/item/(\d+)').search, url_patterns.vendor_product_key
        ))

        assert url_patterns.PRODUCT_SHAPES[-1].name == "fallback"
        assert url_patterns.product_group_key("https://www.shop.com/item/42") == "shop-product-42"
        assert url_patterns.product_id_from_url("https://www.shop.com/item/42") == "42"


class TestGrouping:
    """Tests for grouping interactions."""

    def test_groups_in_first_seen_order(self, make_interaction):
        hm = "https://www2.hm.com/en_us/productpage.1265337002.html"
        gap = "https://www.gap.com/browse/product.do?pid=796255112"
        interactions = [
            make_interaction("Black", gap),
            make_interaction("Women", "https://www2.hm.com/en_us/women.html", tag="a"),
            make_interaction("M", hm),
            make_interaction("L", gap),
        ]

        groups = ProductPageGrouper().group(interactions)

        assert list(groups) == ["gap-product-796255112", "hm-product-1265337002"]
        assert [i.text for i in groups["gap-product-796255112"]] == ["Black", "L"]
        assert sum(len(g) for g in groups.values()) == 3


class TestUrlHelpers:
    """Tests for hostname and page-shape helpers."""

    @pytest.mark.parametrize("host,vendor", [
        ("www2.hm.com", "hm"),
        ("www.nordstrom.com", "nordstrom"),
        ("shop.example.co.uk", "example"),
    ])
    def test_vendor_from_host(self, host, vendor):
        assert url_patterns.vendor_from_host(host) == vendor

    @pytest.mark.parametrize("url,path", [
        ("https://www2.hm.com/en_us/men/shirts/casual.html", "men/shirts/casual"),
        ("https://www.gap.com/browse/women/dresses", "women/dresses"),
        ("https://www.example.com/category/shoes/boots", "shoes/boots"),
        ("https://www.example.com/list?category=Summer Sale", "summer-sale"),
    ])
    def test_category_path_from_url(self, url, path):
        assert url_patterns.category_path_from_url(url) == path

    @pytest.mark.parametrize("url,page_type", [
        ("https://www.example.com/checkout/shipping", "checkout"),
        ("https://www.example.com/cart", "cart"),
        ("https://www2.hm.com/en_us/productpage.1265337002.html", "product"),
        ("https://www.example.com/search?q=linen", "search"),
        ("https://www.example.com/women/dresses", "category"),
        ("https://www.example.com/about", "other"),
    ])
    def test_page_type_for_url(self, url, page_type):
        assert url_patterns.page_type_for_url(url) == page_type

    @pytest.mark.parametrize("url,page", [
        ("https://www.gap.com/browse/product.do?pid=796255112&vid=1", "https://www.gap.com/browse/product.do?pid=796255112"),
        ("https://www.gap.com/browse/men?pid=123", "https://www.gap.com/browse/men"),
        ("https://www2.hm.com/en_us/productpage.1265337002.html?ref=tile", "https://www2.hm.com/en_us/productpage.1265337002.html"),
        ("https://www.example.com/women/dresses?sort=new#top", "https://www.example.com/women/dresses"),
    ])
    def test_page_url_keeps_product_identity(self, url, page):
        assert url_patterns.page_url(url) == page

    def test_distinct_query_products_are_distinct_pages(self):
        first = url_patterns.page_url("https://www.gap.com/browse/product.do?pid=796255112")
        second = url_patterns.page_url("https://www.gap.com/browse/product.do?pid=541234002")
        assert first != second
