"""
Tests for navigation architecture extraction.
"""

import pytest

from pipeline.navigation_extractor import NavigationExtractor, engagement_level


HOME = "https://www.example.com/"


@pytest.fixture
def extractor(heuristics):
    return NavigationExtractor(heuristics)


def link(make_interaction, text, href, url=HOME, **kwargs):
    return make_interaction(text, url, tag="a", attributes={"href": href}, **kwargs)


class TestCategoryHierarchy:
    """Tests for the category graph."""

    def test_three_level_hierarchy(self, extractor, make_interaction):
        interactions = [
            link(make_interaction, "Women", "https://www.example.com/women"),
            link(make_interaction, "Dresses", "https://www.example.com/women/dresses"),
            link(make_interaction, "Maxi", "https://www.example.com/women/dresses/maxi"),
            link(make_interaction, "Dresses", "https://www.example.com/women/dresses"),
        ]
        architecture = extractor.extract(interactions, "www.example.com")

        assert architecture.hierarchy_depth == 3
        paths = [n.path for n in architecture.category_hierarchy]
        assert paths == ["women", "women/dresses", "women/dresses/maxi"]
        dresses = architecture.category_hierarchy[1]
        assert dresses.parent_path == "women"
        assert dresses.interaction_count == 2
        assert architecture.children_of("women") == ["women/dresses"]

    def test_implicit_parents(self, extractor, make_interaction):
        """Parents that were never clicked are inferred from the path."""
        interactions = [link(make_interaction, "Casual", "https://www.example.com/men/shirts/casual")]
        architecture = extractor.extract(interactions)

        nodes = {n.path: n for n in architecture.category_hierarchy}
        assert set(nodes) == {"men", "men/shirts", "men/shirts/casual"}
        assert nodes["men"].implicit and nodes["men/shirts"].implicit
        assert not nodes["men/shirts/casual"].implicit
        assert nodes["men/shirts"].name == "Shirts"
        assert architecture.hierarchy_depth == 3
        assert architecture.discovery_metadata["categoryCount"] == 1

    def test_empty_session(self, extractor):
        architecture = extractor.extract([])
        assert architecture.hierarchy_depth == 0
        assert architecture.category_hierarchy == []

    def test_other_domains_filtered(self, extractor, make_interaction):
        interactions = [
            link(make_interaction, "Women", "https://www.example.com/women"),
            link(make_interaction, "Men", "https://www.gap.com/browse/men", url="https://www.gap.com/"),
        ]
        architecture = extractor.extract(interactions, "www.example.com")
        assert [n.path for n in architecture.category_hierarchy] == ["women"]


class TestNavigationInventory:
    """Tests for navigation sections and engagement."""

    def test_sections(self, extractor, make_interaction):
        interactions = [
            link(make_interaction, "Women", "https://www.example.com/women"),
            link(make_interaction, "Returns", "https://www.example.com/returns", class_name="footer-link"),
            link(make_interaction, "Tops", "https://www.example.com/women/tops", class_name="subnav-item"),
            link(make_interaction, "Sale", "https://www.example.com/sale"),
        ]
        sections = extractor.navigation_inventory(interactions)
        assert [i.text for i in sections["primary"]] == ["Women"]
        assert [i.text for i in sections["footer"]] == ["Returns"]
        assert [i.text for i in sections["secondary"]] == ["Tops", "Sale"]

    def test_engagement(self, extractor, make_interaction):
        interactions = [link(make_interaction, "Women", "https://www.example.com/women") for _ in range(4)]
        interactions += [link(make_interaction, "Men", "https://www.example.com/men") for _ in range(2)]
        primary = extractor.navigation_inventory(interactions)["primary"]
        assert [(i.text, i.engagement) for i in primary] == [("Women", "high"), ("Men", "medium")]

    @pytest.mark.parametrize("count,level", [(1, "low"), (2, "medium"), (3, "medium"), (4, "high")])
    def test_engagement_level(self, count, level):
        assert engagement_level(count) == level

    def test_element_types(self, extractor, make_interaction):
        assert extractor.element_type(make_interaction("Women", tag="a")) == "link"
        assert extractor.element_type(make_interaction("Menu", tag="button")) == "button"
        assert extractor.element_type(make_interaction("More", tag="li", class_name="dropdown-toggle")) == "dropdown"
        assert extractor.element_type(make_interaction("More", tag="li")) == "menu"


class TestCrossPage:
    """Tests for page transitions and routing patterns."""

    def test_transitions(self, extractor, make_interaction):
        interactions = [
            make_interaction("Dresses", "https://www.example.com/women", tag="a"),
            make_interaction("Linen Dress", "https://www.example.com/women/dresses", tag="a"),
            make_interaction("Black", "https://www.example.com/women/dresses?sort=new"),
            make_interaction("Black", "https://www.example.com/product/linen-dress"),
        ]
        transitions = extractor.cross_page_relationships(interactions)

        assert [(t.from_page_type, t.to_page_type) for t in transitions] == [
            ("category", "category"),
            ("category", "product"),
        ]
        assert transitions[0].trigger_text == "Dresses"
        assert transitions[1].trigger_text == "Black"

    def test_transition_between_query_identified_products(self, extractor, make_interaction):
        interactions = [
            make_interaction("Black", "https://www.gap.com/browse/product.do?pid=796255112&vid=1"),
            make_interaction("Navy", "https://www.gap.com/browse/product.do?pid=541234002&vid=1"),
        ]
        transitions = extractor.cross_page_relationships(interactions)

        assert len(transitions) == 1
        assert transitions[0].from_url == "https://www.gap.com/browse/product.do?pid=796255112"
        assert transitions[0].to_url == "https://www.gap.com/browse/product.do?pid=541234002"
        assert (transitions[0].from_page_type, transitions[0].to_page_type) == ("product", "product")

    def test_url_patterns(self, extractor, make_interaction):
        interactions = [
            make_interaction("Dresses", "https://www.example.com/women", tag="a"),
            make_interaction("Black", "https://www.example.com/product/linen-dress?color=black"),
        ]
        architecture = extractor.extract(interactions)
        routing = architecture.url_patterns
        assert routing["routingPatterns"] == {"/women": 1, "/product": 1}
        assert routing["queryParameters"] == {"color": 1}
        assert routing["pageTypeFlow"] == {"category->product": 1}

    def test_to_dict(self, extractor, make_interaction):
        architecture = extractor.extract([link(make_interaction, "Women", "https://www.example.com/women")])
        data = architecture.to_dict()
        assert set(data["navigationStructure"]) == {"primary", "secondary", "footer"}
        assert data["hierarchyDepth"] == 1
