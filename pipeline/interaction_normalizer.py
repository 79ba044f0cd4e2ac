"""
Interaction Normalizer

Turns raw recorded interactions into ParsedInteraction records.
Handles payload coercion (JSON strings, numeric-key mappings), text
cleaning, and stripping of sibling/nearby/parent element dumps.
"""

import json
import logging
import re
import unicodedata
from typing import Any, Dict, List, Mapping, Optional

from utils.datetime_utils import to_epoch_millis
from world_model.models import ElementInfo, InteractionContext, ParsedInteraction

logger = logging.getLogger(__name__)


class TextCleaner:
    """
    Clean element text captured from the page.
    """

    @classmethod
    def clean(cls, text: Any) -> str:
        """
        Clean and normalize text.

        Args:
            text: Raw text content

        Returns:
            Cleaned single-line text
        """
        if text is None:
            return ""
        if not isinstance(text, str):
            text = str(text)

        text = unicodedata.normalize("NFKC", text)

        # HTML entities and tags
        text = re.sub(r'&[a-zA-Z]+;', ' ', text)
        text = re.sub(r'&#\d+;', ' ', text)
        text = re.sub(r'<[^>]+>', ' ', text)

        text = re.sub(r'\s+', ' ', text)
        return text.strip()


class InteractionNormalizer:
    """
    Normalize raw interaction payloads.

    The clicked element is kept; everything the recorder captured around it
    (siblings, nearby elements, parents) is dropped from the parsed record.
    Neighbour text is still available through neighbor_texts() for the
    pricing extractor.
    """

    NEIGHBOR_KEYS = ("siblingElements", "nearbyElements", "parentElements")
    PASSTHROUGH_KEYS = ("selectors", "state", "metadata")

    def __init__(self):
        self._counter = 0

    @staticmethod
    def coerce_sequence(payload: Any) -> Optional[List[Any]]:
        """
        Coerce an interaction payload to an ordered list.

        Args:
            payload: JSON string, list, or mapping keyed by "0", "1", ...

        Returns:
            List of raw interactions, or None if the payload is unusable
        """
        if payload is None:
            return None
        if isinstance(payload, (bytes, bytearray)):
            payload = payload.decode('utf-8', errors='replace')
        if isinstance(payload, str):
            try:
                payload = json.loads(payload)
            except json.JSONDecodeError as e:
                logger.warning(f"Unparsable interaction payload: {e}")
                return None
        if isinstance(payload, (list, tuple)):
            return list(payload)
        if isinstance(payload, Mapping):
            numeric = {}
            for key, value in payload.items():
                try:
                    numeric[int(key)] = value
                except (TypeError, ValueError):
                    logger.warning(f"Interaction mapping has non-numeric key: {key!r}")
                    return None
            return [numeric[k] for k in sorted(numeric)]
        logger.warning(f"Unsupported interaction payload type: {type(payload).__name__}")
        return None

    @staticmethod
    def decode_item(raw: Any) -> Optional[Mapping]:
        """Raw interaction as a mapping; JSON strings are decoded."""
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except json.JSONDecodeError:
                logger.debug("Skipping interaction: invalid JSON string")
                return None
        if not isinstance(raw, Mapping):
            logger.debug(f"Skipping interaction of type {type(raw).__name__}")
            return None
        return raw

    def normalize(self, raw: Any, index: Optional[int] = None) -> Optional[ParsedInteraction]:
        """
        Normalize one raw interaction.

        Args:
            raw: Raw interaction mapping
            index: Position in the session, used for generated ids

        Returns:
            ParsedInteraction, or None when the record is unparsable
        """
        raw = self.decode_item(raw)
        if raw is None:
            return None

        self._counter += 1
        position = index if index is not None else self._counter - 1

        context_raw = raw.get("context") if isinstance(raw.get("context"), Mapping) else {}
        element_raw = raw.get("element") if isinstance(raw.get("element"), Mapping) else {}
        state = raw.get("state") if isinstance(raw.get("state"), Mapping) else {}

        page_title = context_raw.get("pageTitle")
        if not page_title:
            before = state.get("before") if isinstance(state.get("before"), Mapping) else {}
            page_title = before.get("title")

        page_context = context_raw.get("pageContext")
        context = InteractionContext(
            url=str(context_raw.get("url") or context_raw.get("pageUrl") or raw.get("url") or ""),
            page_type=context_raw.get("pageType"),
            page_title=TextCleaner.clean(page_title) or None,
            page_context=dict(page_context) if isinstance(page_context, Mapping) else {},
        )

        text = element_raw.get("text")
        if text is None:
            text = element_raw.get("textContent", element_raw.get("innerText"))
        attributes = element_raw.get("attributes")
        element = ElementInfo(
            text=TextCleaner.clean(text),
            tag=str(element_raw.get("tag") or element_raw.get("tagName") or "").lower(),
            id=str(element_raw.get("id") or ""),
            class_name=str(element_raw.get("className") or element_raw.get("class") or ""),
            attributes=dict(attributes) if isinstance(attributes, Mapping) else {},
        )

        extras = {}
        for key in self.PASSTHROUGH_KEYS:
            value = raw.get(key)
            extras[key] = dict(value) if isinstance(value, Mapping) else {}

        interaction_type = raw.get("type") or raw.get("eventType") or "unknown"
        return ParsedInteraction(
            id=str(raw.get("id") or f"interaction-{position}"),
            type=str(interaction_type),
            timestamp=to_epoch_millis(raw.get("timestamp")),
            session_time=to_epoch_millis(raw.get("sessionTime")),
            context=context,
            element=element,
            **extras,
        )

    def normalize_batch(self, payload: Any) -> List[ParsedInteraction]:
        """
        Normalize a whole session payload, skipping unparsable records.

        Args:
            payload: Raw enhancedInteractions payload

        Returns:
            Parsed interactions in recorded order
        """
        raw_items = self.coerce_sequence(payload)
        if raw_items is None:
            return []

        parsed = []
        for i, raw in enumerate(raw_items):
            interaction = self.normalize(raw, index=i)
            if interaction is not None:
                parsed.append(interaction)

        skipped = len(raw_items) - len(parsed)
        if skipped:
            logger.info(f"Normalized {len(parsed)} interactions, skipped {skipped} unparsable")
        return parsed

    @classmethod
    def neighbor_texts(cls, raw: Any) -> List[str]:
        """
        Text of the spatial neighbours recorded around an element.

        Args:
            raw: Raw interaction mapping

        Returns:
            Cleaned, non-empty neighbour texts
        """
        if not isinstance(raw, Mapping):
            return []
        element_raw = raw.get("element") if isinstance(raw.get("element"), Mapping) else {}

        texts = []
        for source in (element_raw, raw):
            for key in cls.NEIGHBOR_KEYS:
                items = source.get(key)
                if not isinstance(items, (list, tuple)):
                    continue
                for item in items:
                    if isinstance(item, Mapping):
                        value = item.get("text", item.get("textContent"))
                    else:
                        value = item
                    cleaned = TextCleaner.clean(value)
                    if cleaned:
                        texts.append(cleaned)
        return texts

    def neighbor_lookup(self, payload: Any) -> Dict[str, List[str]]:
        """
        Neighbour texts of a whole payload keyed by interaction id.

        Ids match the ones normalize_batch() assigns.
        """
        raw_items = self.coerce_sequence(payload) or []
        lookup = {}
        for i, item in enumerate(raw_items):
            raw = self.decode_item(item)
            if raw is None:
                continue
            texts = self.neighbor_texts(raw)
            if texts:
                lookup[str(raw.get("id") or f"interaction-{i}")] = texts
        return lookup
