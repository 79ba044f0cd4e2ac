"""
URL Patterns

Retailer URL shapes shared by the classifier, the product-page grouper and
the domain extractor. Product-page shapes are an ordered table of
(name, predicate, key builder) rows evaluated by a single dispatch loop;
the first matching row wins.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Optional
from urllib.parse import parse_qs, urlencode, urlparse

logger = logging.getLogger(__name__)


HOST_PREFIXES = ("www.", "www2.", "www3.", "secure-www.", "m.")
SECOND_LEVEL_SUFFIXES = {"co", "com", "org", "net", "ac", "gov"}

CATEGORY_SEGMENT_RE = re.compile(r'^/(men|women|kids|boys|girls|baby)(?=/|$)(/[^?#]*)?', re.IGNORECASE)
BROWSE_RE = re.compile(r'/browse/([^?#]+)', re.IGNORECASE)
CATEGORY_RE = re.compile(r'/(?:category|categories|c|collections)/([^?#]+)', re.IGNORECASE)
SEARCH_RE = re.compile(r'/search(?:/|$|\?|\.)', re.IGNORECASE)
SEARCH_PARAMS = ("q", "query", "searchterm", "keyword", "k")
IDENTITY_PARAMS = ("pid",)
SALE_RE = re.compile(r'(?<![a-z])(sale|clearance|outlet|deals|promo)(?![a-z])', re.IGNORECASE)
CART_RE = re.compile(r'/(cart|bag|basket|shoppingbag|shopping-bag)(?=/|$|\?|\.|#)', re.IGNORECASE)
CHECKOUT_RE = re.compile(r'/(checkout|payment)(?=/|$|\?|\.|#)', re.IGNORECASE)


def parse_url(url: str):
    """urlparse that returns None instead of raising."""
    if not url or not isinstance(url, str):
        return None
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return None
    if not parsed.netloc:
        return None
    return parsed


def hostname(url: str) -> Optional[str]:
    """Lowercase hostname of a URL, or None when it cannot be parsed."""
    parsed = parse_url(url)
    if parsed is None:
        return None
    try:
        host = parsed.hostname
    except ValueError:
        return None
    return host.lower() if host else None


def strip_host_prefix(host: str) -> str:
    for prefix in HOST_PREFIXES:
        if host.startswith(prefix):
            return host[len(prefix):]
    return host


def vendor_from_host(host: str) -> str:
    """
    Registrable label of a hostname.

    www2.hm.com -> hm, shop.example.co.uk -> example
    """
    labels = [l for l in strip_host_prefix(host.lower()).split(".") if l]
    if not labels:
        return host
    if len(labels) >= 3 and labels[-2] in SECOND_LEVEL_SUFFIXES and len(labels[-1]) == 2:
        return labels[-3]
    if len(labels) >= 2:
        return labels[-2]
    return labels[0]


def base_url(url: str) -> str:
    """URL with query string and fragment removed."""
    parsed = parse_url(url)
    if parsed is None:
        return url.split("#")[0].split("?")[0]
    return f"{parsed.scheme}://{parsed.netloc}{parsed.path}"


def query_params(url: str) -> dict:
    parsed = parse_url(url)
    if parsed is None:
        return {}
    return {k.lower(): v for k, v in parse_qs(parsed.query).items()}


def page_url(url: str) -> str:
    """
    Page identity URL.

    Same as base_url, except that product pages identified by a query
    parameter keep it: product.do?pid=1&vid=2 -> product.do?pid=1
    """
    base = base_url(url)
    params = query_params(url)
    kept = [(name, params[name][0]) for name in IDENTITY_PARAMS if params.get(name)]
    if kept and is_product_url(url):
        return f"{base}?{urlencode(kept)}"
    return base


# Product-page shape table

@dataclass
class ProductShape:
    """One retailer URL family."""
    name: str
    predicate: Callable[[str], Optional[re.Match]]
    key_builder: Callable[[str, re.Match], str]
    product_id_group: Optional[int] = 1


def vendor_product_key(url: str, match: re.Match) -> str:
    host = hostname(url) or ""
    return f"{vendor_from_host(host)}-product-{match.group(1)}"


def _fallback_key(url: str, match: re.Match) -> str:
    return base_url(url)


_PATH_ID_RE = re.compile(r'/p/[^/?#]+/([A-Za-z0-9]+)(?:[/?#.]|$)')
_PRODUCTPAGE_RE = re.compile(r'/productpage\.(\d{10,})', re.IGNORECASE)
_PID_RE = re.compile(r'[?&]pid=([A-Za-z0-9]+)', re.IGNORECASE)
_CATEGORY_BROWSE_RE = re.compile(r'/browse/(men|women|kids|boys|girls|baby)(?=/|$|\?)', re.IGNORECASE)
_SLUG_ID_RE = re.compile(r'/s/[^/?#]+/(\d+)(?:[/?#]|$)')
_ASIN_RE = re.compile(r'/dp/([A-Z0-9]{10})(?:[/?#]|$)')
_FALLBACK_RE = re.compile(r'(#pdp\b|/p/([^/?#]+)|/products?/([^/?#]+))', re.IGNORECASE)


def _pid_predicate(url: str) -> Optional[re.Match]:
    # A pid on a pure category browse path is a merchandising hint, not a product page
    if _CATEGORY_BROWSE_RE.search(url):
        return None
    return _PID_RE.search(url)


PRODUCT_SHAPES: List[ProductShape] = [
    ProductShape("path_id", _PATH_ID_RE.search, vendor_product_key),
    ProductShape("numeric_product_page", _PRODUCTPAGE_RE.search, vendor_product_key),
    ProductShape("query_param", _pid_predicate, vendor_product_key),
    ProductShape("slug_numeric_id", _SLUG_ID_RE.search, vendor_product_key),
    ProductShape("marketplace_asin", _ASIN_RE.search, vendor_product_key),
    ProductShape("fallback", _FALLBACK_RE.search, _fallback_key, product_id_group=None),
]


def register_shape(shape: ProductShape, position: Optional[int] = None) -> None:
    """
    Add a retailer URL shape to the dispatch table.

    Args:
        shape: Shape to add
        position: Table index; defaults to just before the fallback row
    """
    if position is None:
        position = max(len(PRODUCT_SHAPES) - 1, 0)
    PRODUCT_SHAPES.insert(position, shape)
    logger.info(f"Registered product URL shape '{shape.name}' at position {position}")


def match_product_shape(url: str):
    """
    Run the dispatch loop over the shape table.

    Returns:
        (shape, match) for the first matching row, or (None, None)
    """
    if not url:
        return None, None
    for shape in PRODUCT_SHAPES:
        match = shape.predicate(url)
        if match:
            return shape, match
    return None, None


def product_group_key(url: str) -> Optional[str]:
    """Group key for a product-page URL, or None if no shape matches."""
    shape, match = match_product_shape(url)
    if shape is None:
        return None
    return shape.key_builder(url, match)


def is_product_url(url: str) -> bool:
    shape, _ = match_product_shape(url)
    return shape is not None


def product_id_from_url(url: str) -> Optional[str]:
    """Retailer product id when the URL shape carries one."""
    shape, match = match_product_shape(url)
    if shape is None:
        return None
    if shape.product_id_group is not None:
        return match.group(shape.product_id_group)
    slug = product_slug(url)
    return f"product-{slug}"[:58] if slug else None


def product_slug(url: str) -> Optional[str]:
    """Human-readable slug of a product URL (/p/{slug}, /s/{slug}/id, /products/{slug})."""
    parsed = parse_url(url)
    path = parsed.path if parsed else url
    for pattern in (r'/p/([^/?#]+)', r'/s/([^/?#]+)/\d+', r'/products?/([^/?#]+)', r'/([^/?#]+)/dp/'):
        match = re.search(pattern, path)
        if match:
            slug = match.group(1)
            slug = re.sub(r'\.[a-z]{2,5}$', '', slug, flags=re.IGNORECASE)
            if re.search(r'[A-Za-z]{2,}', slug):
                return slug.lower()
    return None


# Page shapes

def is_category_url(url: str) -> bool:
    """Category listing shape that is not also a product page."""
    if not url or is_product_url(url):
        return False
    parsed = parse_url(url)
    path = parsed.path if parsed else url
    return bool(
        BROWSE_RE.search(path)
        or CATEGORY_RE.search(path)
        or CATEGORY_SEGMENT_RE.search(_strip_locale(path))
        or "category" in query_params(url)
    )


def is_search_url(url: str) -> bool:
    if not url:
        return False
    parsed = parse_url(url)
    path = parsed.path if parsed else url
    if SEARCH_RE.search(path):
        return True
    return any(p in query_params(url) for p in SEARCH_PARAMS)


def is_sale_url(url: str) -> bool:
    parsed = parse_url(url)
    if parsed is None:
        return bool(url and SALE_RE.search(url))
    return bool(SALE_RE.search(parsed.path) or SALE_RE.search(parsed.query))


def is_cart_url(url: str) -> bool:
    parsed = parse_url(url)
    return bool(url and CART_RE.search(parsed.path if parsed else url))


def is_checkout_url(url: str) -> bool:
    parsed = parse_url(url)
    return bool(url and CHECKOUT_RE.search(parsed.path if parsed else url))


def page_type_for_url(url: str) -> str:
    """checkout | cart | product | search | category | other"""
    if is_checkout_url(url):
        return "checkout"
    if is_cart_url(url):
        return "cart"
    if is_product_url(url):
        return "product"
    if is_search_url(url):
        return "search"
    if is_category_url(url):
        return "category"
    return "other"


_LOCALE_RE = re.compile(r'^/[a-z]{2}[_-][a-z]{2}(?=/)', re.IGNORECASE)


def _strip_locale(path: str) -> str:
    """/en_us/men/... -> /men/..."""
    return _LOCALE_RE.sub('', path)


def slugify(text: str) -> str:
    slug = re.sub(r'[^a-z0-9]+', '-', text.lower()).strip('-')
    return slug


def _clean_segments(raw: str) -> List[str]:
    segments = []
    for segment in raw.strip('/').split('/'):
        segment = re.sub(r'\.[a-z]{2,5}$', '', segment, flags=re.IGNORECASE).lower()
        if segment and segment not in ("category", "product", "c"):
            segments.append(segment)
    return segments


def category_path_from_url(url: str) -> Optional[str]:
    """
    Category path implied by a listing URL.

    /en_us/men/shirts/casual.html -> men/shirts/casual
    /browse/women/dresses         -> women/dresses
    /category/shoes/boots         -> shoes/boots
    ?category=Sale                -> sale
    """
    parsed = parse_url(url)
    if parsed is None:
        return None
    path = _strip_locale(parsed.path)

    match = CATEGORY_SEGMENT_RE.search(path)
    if match:
        segments = [match.group(1).lower()] + _clean_segments(match.group(2) or "")
        return "/".join(segments)

    for pattern in (BROWSE_RE, CATEGORY_RE):
        match = pattern.search(path)
        if match:
            segments = _clean_segments(match.group(1))
            if segments:
                return "/".join(segments)

    category = query_params(url).get("category")
    if category and category[0].strip():
        return slugify(category[0])
    return None
