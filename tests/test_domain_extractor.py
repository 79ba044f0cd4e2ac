"""
Tests for domain and category extraction.
"""

import pytest

from pipeline.domain_extractor import CategoryExtractor, DomainExtractor, format_site_name
from world_model.models import CategoryClassification, ExtractedCategory


HM_PRODUCT = "https://www2.hm.com/en_us/productpage.1265337002.html"
HM_CATEGORY = "https://www2.hm.com/en_us/men/shirts.html"
HM_SEARCH = "https://www2.hm.com/en_us/search-results.html?q=shirt"
HM_SALE = "https://www2.hm.com/en_us/sale/men.html"


class TestDomainExtractor:
    """Tests for domain records."""

    def test_one_domain_per_host(self, make_interaction):
        interactions = [
            make_interaction("Black", HM_PRODUCT),
            make_interaction("Jeans", "https://www.gap.com/browse/men"),
            make_interaction("M", HM_PRODUCT),
            make_interaction("Oops", "not a url"),
        ]
        domains = DomainExtractor().extract_domains(interactions)
        assert [d.domain for d in domains] == ["www2.hm.com", "www.gap.com"]
        assert domains[0].site_name == "Hm"
        assert domains[0].site_type == "ecommerce"

    def test_url_pattern_buckets(self):
        patterns = DomainExtractor.analyze_url_patterns([HM_PRODUCT, HM_CATEGORY, HM_SEARCH, HM_SALE, HM_PRODUCT])
        assert patterns.product == [HM_PRODUCT]
        assert patterns.category == [HM_CATEGORY]
        assert patterns.search == [HM_SEARCH]
        assert patterns.sale == [HM_SALE]

    def test_page_type_counts(self, make_interaction):
        interactions = [
            make_interaction("Black", HM_PRODUCT),
            make_interaction("M", HM_PRODUCT),
            make_interaction("Shirts", HM_CATEGORY),
            make_interaction("Checkout", "https://www2.hm.com/en_us/checkout"),
        ]
        counts = DomainExtractor.page_type_counts(interactions)
        assert counts == {"product": 2, "category": 1, "checkout": 1}

    def test_detect_ui_frameworks(self, make_interaction):
        interactions = [make_interaction("Add to Bag", HM_PRODUCT, class_name="btn btn-primary")]
        assert DomainExtractor.detect_ui_frameworks(interactions) == ["bootstrap"]

    @pytest.mark.parametrize("host,name", [
        ("www2.hm.com", "Hm"),
        ("www.urban-outfitters.com", "Urban Outfitters"),
    ])
    def test_format_site_name(self, host, name):
        assert format_site_name(host) == name


class TestCategoryExtractor:
    """Tests for category deduplication and floors."""

    def test_deduplicates_by_domain_and_path(self, heuristics):
        classifications = [
            CategoryClassification(0.65, "context", "www.gap.com", name="Jeans", url="https://www.gap.com/browse/men/jeans", category_path="men/jeans"),
            CategoryClassification(0.85, "vocab", "www.gap.com", name="Men's Jeans", url="https://www.gap.com/browse/men/jeans?sort=new", category_path="men/jeans"),
            CategoryClassification(0.75, "vocab", "www2.hm.com", name="Jeans", url="https://www2.hm.com/en_us/men/jeans.html", category_path="men/jeans"),
        ]
        categories = CategoryExtractor(heuristics).from_classifications(classifications)

        assert list(categories) == [("www.gap.com", "men/jeans"), ("www2.hm.com", "men/jeans")]
        gap = categories[("www.gap.com", "men/jeans")]
        assert gap.category_name == "Men's Jeans"
        assert gap.confidence == 0.85
        assert len(gap.urls) == 2

    def test_category_type(self, heuristics):
        classifications = [CategoryClassification(0.8, "vocab", "www.gap.com", name="Sale", url="", category_path="sale")]
        category = CategoryExtractor(heuristics).from_classifications(classifications)[("www.gap.com", "sale")]
        assert category.category_type == "sale"

    def test_passes_floor(self, heuristics):
        extractor = CategoryExtractor(heuristics)
        assert extractor.passes_floor(ExtractedCategory("men", "Men", confidence=0.6))
        assert not extractor.passes_floor(ExtractedCategory("men", "Men", confidence=0.59))

    def test_floor_override(self, heuristics):
        extractor = CategoryExtractor(heuristics, floor=0.9)
        assert not extractor.passes_floor(ExtractedCategory("men", "Men", confidence=0.85))
