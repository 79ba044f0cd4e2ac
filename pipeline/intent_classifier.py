"""
Intent Classifier

Decides what a clicked element represents on a retail page: a category
link, a product, a product attribute (colour, size, style, action,
availability), a UI control, or nothing worth keeping.

Rules run in priority order and stop at the first strong match:
1. Non-click interactions and empty interactions are ignored
2. UI control vocabulary
3. Product attributes (product pages only)
4. Cart/purchase actions off product pages (UI)
5. Text length bounds
6. Category vocabulary on links
7. Clicks leading to another product page (look-ahead)
8. Product names on product pages
9. Look-ahead navigation to category pages
10. Category page context
11. Session hints
12. Default ignore
"""

import logging
import re
from typing import List, Optional, Sequence, Tuple

from pipeline.heuristics import HeuristicsConfig, find_phrase, get_heuristics
from pipeline import url_patterns
from world_model.models import (
    AttributeClassification,
    CategoryClassification,
    Classification,
    ElementDetails,
    IgnoreClassification,
    ParsedInteraction,
    ProductClassification,
    SessionContext,
    UIClassification,
)

logger = logging.getLogger(__name__)


LINK_TAGS = {"a", "span"}
HEADING_TAGS = {"h1", "h2"}
NUMERIC_SIZE_RE = re.compile(r'^\d{1,3}(\.5)?$')
WAIST_SIZE_RE = re.compile(r'^\d{2,3}\s?w(\s?[x/]?\s?\d{2}\s?l)?$', re.IGNORECASE)
PRICE_LIKE_RE = re.compile(r'[$€£]\s*\d|\d+\s*(usd|eur|gbp)\b', re.IGNORECASE)


class IntentClassifier:
    """
    Rule-based interaction classifier.

    All vocabulary comes from the heuristics configuration so new site
    families only need configuration changes.
    """

    def __init__(self, heuristics: Optional[HeuristicsConfig] = None):
        """
        Initialize the classifier.

        Args:
            heuristics: Vocabulary/threshold configuration (default: shared singleton)
        """
        self.heuristics = heuristics or get_heuristics()
        self.vocab = self.heuristics.vocabulary
        self.window = self.heuristics.thresholds.lookahead_window

    def classify(
        self,
        interaction: ParsedInteraction,
        session_context: Optional[SessionContext] = None,
        subsequent_interactions: Sequence[ParsedInteraction] = ()
    ) -> Classification:
        """
        Classify a single interaction.

        Args:
            interaction: Interaction to classify
            session_context: Session-level hints
            subsequent_interactions: Interactions recorded after this one;
                only the first lookahead_window entries are consulted

        Returns:
            One of the classification variants
        """
        session_context = session_context or SessionContext()
        following = list(subsequent_interactions)[:self.window]

        text = interaction.text
        url = interaction.url
        domain = url_patterns.hostname(url) or ""

        if not interaction.is_click:
            return IgnoreClassification(1.0, f"non-click interaction ({interaction.type})", domain)
        if not text and not url:
            return IgnoreClassification(1.0, "no text and no URL", domain)

        ui = self._ui_control(text)
        if ui:
            return UIClassification(ui[0], ui[1], domain)

        on_product_page = url_patterns.is_product_url(url)
        if on_product_page and text:
            attribute = self.match_attribute(text)
            if attribute:
                attribute_type, confidence, reason = attribute
                return AttributeClassification(
                    confidence,
                    reason,
                    domain,
                    attribute_type=attribute_type,
                    value=text,
                    selector=self.extract_selector(interaction),
                    element_details=self.element_details(interaction),
                    parent_product_url=url_patterns.page_url(url),
                )

        if not on_product_page and self._is_action(text):
            return UIClassification(0.85, f"purchase control off a product page: '{text}'", domain)

        thresholds = self.heuristics.thresholds
        if text and not thresholds.min_text_length <= len(text) <= thresholds.max_text_length:
            return IgnoreClassification(0.8, f"text length {len(text)} outside bounds", domain)

        target = self._next_navigation(interaction, following)

        category = self._category_from_vocabulary(interaction, target, domain)
        if category:
            return category

        if target and url_patterns.is_product_url(target) and interaction.element.tag not in HEADING_TAGS:
            # Tiles on a product page that lead elsewhere name the other product
            navigation = self._navigation_intent(interaction, target, following, domain)
            if navigation:
                return navigation
            if on_product_page:
                return IgnoreClassification(0.6, "click left for another product page", domain)

        product = self._product_on_page(interaction, domain)
        if product:
            return product

        navigation = self._navigation_intent(interaction, target, following, domain)
        if navigation:
            return navigation

        if url_patterns.is_category_url(url):
            path = url_patterns.category_path_from_url(url)
            if path:
                return CategoryClassification(
                    0.65,
                    "context URL is a category page",
                    domain,
                    name=self.category_name_from_path(path),
                    url=url_patterns.page_url(url),
                    category_path=path,
                )

        hinted = self._session_hint(interaction, session_context, domain)
        if hinted:
            return hinted

        if text:
            return IgnoreClassification(0.5, "no rule matched", domain)
        return IgnoreClassification(0.3, "no element text", domain)

    def classify_session(
        self,
        interactions: Sequence[ParsedInteraction],
        session_context: Optional[SessionContext] = None
    ) -> List[Tuple[ParsedInteraction, Classification]]:
        """Classify every interaction of a session with its look-ahead window."""
        results = []
        for i, interaction in enumerate(interactions):
            window = interactions[i + 1:i + 1 + self.window]
            results.append((interaction, self.classify(interaction, session_context, window)))
        return results

    # Rules

    def _ui_control(self, text: str) -> Optional[Tuple[float, str]]:
        if not text:
            return None
        if self.heuristics.is_ui_control(text):
            return 0.95, f"exact UI control: '{text}'"
        if len(text.split()) <= 3 and not self.heuristics.mentions_product_noun(text):
            control = find_phrase(text, self.vocab.ui_controls)
            if control:
                return 0.8, f"contains UI control '{control}'"
        return None

    def match_attribute(self, text: str) -> Optional[Tuple[str, float, str]]:
        """(attribute_type, confidence, reasoning) for attribute-like text."""
        lowered = text.strip().lower()
        words = len(lowered.split())
        names_product = bool(self.heuristics.mentions_product_noun(lowered))

        if lowered in self.vocab.colors:
            return "color", 0.95, f"exact color '{text}'"
        if words <= 2 and not names_product:
            color = find_phrase(lowered, self.vocab.colors)
            if color:
                return "color", 0.9, f"contains color '{color}'"

        if lowered in self.vocab.size_tokens or lowered in self.vocab.size_words:
            return "size", 0.95, f"size token '{text}'"
        if NUMERIC_SIZE_RE.match(lowered):
            return "size", 0.9, f"numeric size '{text}'"
        if WAIST_SIZE_RE.match(lowered):
            return "size", 0.9, f"waist size '{text}'"

        if lowered in self.vocab.actions:
            return "action", 0.95, f"exact action '{text}'"
        if words <= 5 and not names_product:
            action = find_phrase(lowered, self.vocab.actions)
            if action:
                return "action", 0.9, f"contains action '{action}'"

        if lowered in self.vocab.styles:
            return "style", 0.9, f"exact style '{text}'"
        if words <= 3 and not names_product:
            style = find_phrase(lowered, self.vocab.styles)
            if style:
                return "style", 0.8, f"contains style '{style}'"

        if words <= 6 and not names_product:
            availability = find_phrase(lowered, self.vocab.availability)
            if availability:
                confidence = 0.9 if lowered == availability else 0.85
                return "availability", confidence, f"availability '{availability}'"
        return None

    def _is_action(self, text: str) -> bool:
        if not text or len(text.split()) > 5:
            return False
        return bool(find_phrase(text, self.vocab.actions)) or bool(
            find_phrase(text, self.vocab.purchase_phrases)
        )

    def _category_from_vocabulary(
        self,
        interaction: ParsedInteraction,
        target: Optional[str],
        domain: str
    ) -> Optional[CategoryClassification]:
        text = interaction.text
        if not text or len(text) >= self.heuristics.thresholds.max_category_text_length:
            return None
        if interaction.element.tag not in LINK_TAGS:
            return None
        term = self.heuristics.mentions_category(text)
        if not term:
            return None
        if self.heuristics.mentions_product_noun(text) and not self.heuristics.is_category_term(text):
            # "Slim Jeans Tee" style names on links are product tiles, not categories
            if len(text.split()) > 2:
                return None

        href = str(interaction.element.attributes.get("href") or "")
        link_url = href if url_patterns.parse_url(href) else ""
        path = None
        source_url = ""
        for candidate in (link_url, target or ""):
            if candidate and url_patterns.is_category_url(candidate):
                path = url_patterns.category_path_from_url(candidate)
                if path:
                    source_url = url_patterns.page_url(candidate)
                    break
        if not path:
            path = url_patterns.slugify(text)
            source_url = link_url or interaction.url

        exact = self.heuristics.is_category_term(text)
        return CategoryClassification(
            0.85 if exact else 0.75,
            f"{'exact' if exact else 'contains'} category term '{term}' on a link",
            domain,
            name=text,
            url=source_url,
            category_path=path,
        )

    def _product_on_page(self, interaction: ParsedInteraction, domain: str) -> Optional[ProductClassification]:
        text = interaction.text
        url = interaction.url
        if not text or not url_patterns.is_product_url(url):
            return None
        thresholds = self.heuristics.thresholds
        if not thresholds.min_product_name_length <= len(text) <= thresholds.max_text_length:
            return None
        if self.heuristics.is_category_term(text) or self.heuristics.is_ui_control(text):
            return None
        if self.heuristics.mentions_non_product(text) or PRICE_LIKE_RE.search(text):
            return None

        confidence = 0.7
        words = text.split()
        if len(words) >= 2:
            confidence += 0.05
        if len(words) >= 3:
            confidence += 0.05
        if len(text) >= 15:
            confidence += 0.05
        if self.heuristics.mentions_product_noun(text):
            confidence += 0.05
        if self.heuristics.mentions_descriptor(text):
            confidence += 0.05
        if interaction.element.tag in HEADING_TAGS:
            confidence += 0.1
        confidence = round(min(confidence, 0.95), 2)

        return ProductClassification(
            confidence,
            f"product-page text with {len(words)} word(s)",
            domain,
            name=text,
            url=url_patterns.page_url(url),
            product_id=self.product_id(url, text),
            selector=self.extract_selector(interaction),
        )

    def _next_navigation(
        self,
        interaction: ParsedInteraction,
        following: Sequence[ParsedInteraction]
    ) -> Optional[str]:
        """First URL within the window that differs from the current page."""
        current = url_patterns.page_url(interaction.url) if interaction.url else ""
        for nxt in following:
            if nxt.url and url_patterns.page_url(nxt.url) != current:
                return nxt.url
        return None

    def _navigation_intent(
        self,
        interaction: ParsedInteraction,
        target: Optional[str],
        following: Sequence[ParsedInteraction],
        domain: str
    ) -> Optional[Classification]:
        text = interaction.text
        if target:
            if url_patterns.is_product_url(target) and self._usable_name(text):
                return ProductClassification(
                    0.85,
                    "click led to a product page",
                    domain,
                    name=text,
                    url=url_patterns.page_url(target),
                    product_id=self.product_id(target, text),
                    selector=self.extract_selector(interaction),
                )
            if url_patterns.is_category_url(target) and text and len(text) < self.heuristics.thresholds.max_category_text_length:
                path = url_patterns.category_path_from_url(target) or url_patterns.slugify(text)
                return CategoryClassification(
                    0.8,
                    "click led to a category page",
                    domain,
                    name=text,
                    url=url_patterns.page_url(target),
                    category_path=path,
                )
            return None
        if following and interaction.element.tag == "button":
            return UIClassification(0.7, "button click stayed on the same page", domain)
        return None

    def _session_hint(
        self,
        interaction: ParsedInteraction,
        session_context: SessionContext,
        domain: str
    ) -> Optional[Classification]:
        text = interaction.text
        if not text:
            return None
        browsing = (session_context.page_type or "").lower() == "category" or (
            (session_context.shopping_stage or "").lower() in ("browse", "browsing")
        )
        if browsing and len(text) < self.heuristics.thresholds.max_category_text_length:
            term = self.heuristics.mentions_category(text)
            if term:
                return CategoryClassification(
                    0.7,
                    f"category-like text '{term}' during a browsing session",
                    domain,
                    name=text,
                    url=url_patterns.page_url(interaction.url) if interaction.url else "",
                    category_path=url_patterns.slugify(text),
                )
        buying = (session_context.user_intent or "").lower() in ("purchase", "buy") or (
            (session_context.page_type or "").lower() == "product"
        )
        if buying and self._usable_name(text) and self.heuristics.mentions_product_noun(text):
            return ProductClassification(
                0.6,
                "product-like text in a purchase-intent session",
                domain,
                name=text,
                url=url_patterns.page_url(interaction.url) if interaction.url else "",
                product_id=self.product_id(interaction.url, text),
                selector=self.extract_selector(interaction),
            )
        return None

    def _usable_name(self, text: str) -> bool:
        return (
            bool(text)
            and len(text) >= self.heuristics.thresholds.min_product_name_length
            and self.heuristics.is_valid_product_name(text)
            and not self.heuristics.mentions_non_product(text)
        )

    # Identity helpers

    @staticmethod
    def product_id(url: str, text: str) -> str:
        """Retailer product id from the URL, else a slug of the name."""
        product_id = url_patterns.product_id_from_url(url) if url else None
        if product_id:
            return product_id
        return f"product-{url_patterns.slugify(text)}"[:58]

    @staticmethod
    def category_name_from_path(path: str) -> str:
        last = path.rstrip("/").split("/")[-1]
        return re.sub(r'[-_]+', ' ', last).strip().title()

    @staticmethod
    def extract_selector(interaction: ParsedInteraction) -> str:
        """
        Best selector for the element.

        Prefers recorded css, xpath, then primary selectors; otherwise builds
        one from tag, id, classes and data attributes.
        """
        selectors = interaction.selectors or {}
        for key in ("css", "xpath", "primary"):
            value = selectors.get(key)
            if isinstance(value, list):
                value = value[0] if value else None
            if value:
                return str(value)

        element = interaction.element
        selector = element.tag or "*"
        if element.id:
            selector += f"#{element.id}"
        classes = [c for c in element.class_name.split() if c][:2]
        if classes:
            selector += "".join(f".{c}" for c in classes)
        for name, value in element.attributes.items():
            if str(name).startswith("data-") and value not in (None, ""):
                selector += f'[{name}="{value}"]'
                break
        return selector

    @staticmethod
    def generate_xpath(interaction: ParsedInteraction) -> str:
        element = interaction.element
        tag = element.tag or "*"
        if element.id:
            return f"//{tag}[@id='{element.id}']"
        classes = element.class_name.split()
        if classes:
            return f"//{tag}[contains(@class, '{classes[0]}')]"
        if element.text and "'" not in element.text:
            return f"//{tag}[normalize-space()='{element.text}']"
        return f"//{tag}"

    def element_details(self, interaction: ParsedInteraction) -> ElementDetails:
        element = interaction.element
        return ElementDetails(
            tag=element.tag,
            class_name=element.class_name,
            id=element.id,
            attributes=dict(element.attributes),
            xpath=self.generate_xpath(interaction),
        )
