"""
Pytest Configuration and Fixtures
"""

import pytest
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


HM_PRODUCT_URL = "https://www2.hm.com/en_us/productpage.1265337002.html"
GAP_PRODUCT_URL = "https://www.gap.com/browse/product.do?pid=796255112&vid=1"
NORDSTROM_PRODUCT_URL = "https://www.nordstrom.com/s/wrap-midi-dress-women/8427767"


def build_raw_interaction(
    text="",
    url="https://www.example.com/",
    tag="button",
    interaction_type="click",
    timestamp=None,
    interaction_id=None,
    class_name="",
    attributes=None,
    neighbors=None
):
    """Raw interaction dict shaped like the recorder output."""
    element = {
        "text": text,
        "tag": tag,
        "className": class_name,
        "attributes": attributes or {},
    }
    if neighbors:
        element["nearbyElements"] = [{"text": n} for n in neighbors]
    raw = {
        "type": interaction_type,
        "context": {"url": url},
        "element": element,
    }
    if timestamp is not None:
        raw["timestamp"] = timestamp
    if interaction_id is not None:
        raw["id"] = interaction_id
    return raw


@pytest.fixture(scope="session")
def heuristics():
    """Provide the default heuristics configuration."""
    from pipeline.heuristics import get_heuristics
    return get_heuristics(force_reload=True)


@pytest.fixture(scope="session")
def classifier(heuristics):
    """Provide an intent classifier."""
    from pipeline.intent_classifier import IntentClassifier
    return IntentClassifier(heuristics)


@pytest.fixture
def make_raw():
    """Factory for raw interaction dicts."""
    return build_raw_interaction


@pytest.fixture
def make_interaction():
    """Factory for parsed interactions."""
    from pipeline.interaction_normalizer import InteractionNormalizer
    normalizer = InteractionNormalizer()

    def _make(text="", url="https://www.example.com/", **kwargs):
        return normalizer.normalize(build_raw_interaction(text, url, **kwargs))

    return _make


@pytest.fixture
def product_session():
    """A Gap session: category link, product page with attributes and neighbour prices."""
    return {
        "id": "sess-gap-1",
        "shoppingStage": "browsing",
        "enhancedInteractions": [
            build_raw_interaction(
                "Jeans", "https://www.gap.com/browse/men", tag="a", timestamp=1000,
                interaction_id="i-1", attributes={"href": "https://www.gap.com/browse/men/jeans"},
            ),
            build_raw_interaction(
                "Vintage Slim Fit Jeans", GAP_PRODUCT_URL, tag="h1", timestamp=4000,
                interaction_id="i-2", neighbors=["$45.00", "$60.00"],
            ),
            build_raw_interaction("Black", GAP_PRODUCT_URL, timestamp=6000, interaction_id="i-3"),
            build_raw_interaction("32W", GAP_PRODUCT_URL, timestamp=7000, interaction_id="i-4"),
            build_raw_interaction("Add to Bag", GAP_PRODUCT_URL, timestamp=9000, interaction_id="i-5"),
        ],
    }


@pytest.fixture
def hm_session():
    """An H&M session that only touches attributes on a product page."""
    return {
        "id": "sess-hm-1",
        "enhancedInteractions": [
            build_raw_interaction("Black", HM_PRODUCT_URL, timestamp=1000),
            build_raw_interaction("M", HM_PRODUCT_URL, timestamp=2000),
            build_raw_interaction("Add to Bag", HM_PRODUCT_URL, timestamp=3000),
        ],
    }
