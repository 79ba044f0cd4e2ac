"""
Shopping-Flow Analyzer

Segments a session into funnel stages (browse, product, cart, checkout),
detects conversion and cart events, and summarizes how the shopper
configured products and moved through checkout.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np

from pipeline.heuristics import HeuristicsConfig, find_phrase, get_heuristics
from pipeline.intent_classifier import IntentClassifier
from pipeline import url_patterns
from world_model.models import ParsedInteraction

logger = logging.getLogger(__name__)


STAGE_ORDER = ("browse", "product", "cart", "checkout")
STAGE_NAMES = {
    "browse": "Browse Products",
    "product": "Product Details",
    "cart": "Shopping Cart",
    "checkout": "Checkout Process",
}
CONFIGURABLE_ATTRIBUTES = ("color", "size", "style")
FAST_SELECTION_MS = 3000
MODERATE_SELECTION_MS = 10000


@dataclass
class FunnelStage:
    stage: str
    name: str
    entry_time: Optional[float] = None
    exit_time: Optional[float] = None
    interaction_count: int = 0
    urls: List[str] = field(default_factory=list)

    @property
    def duration_ms(self) -> Optional[float]:
        if self.entry_time is None or self.exit_time is None:
            return None
        return max(self.exit_time - self.entry_time, 0.0)

    def to_dict(self) -> dict:
        return {
            "stage": self.stage,
            "name": self.name,
            "entryTime": self.entry_time,
            "exitTime": self.exit_time,
            "durationMs": self.duration_ms,
            "interactionCount": self.interaction_count,
            "urls": list(self.urls),
        }


@dataclass
class FlowEvent:
    """A conversion event, cart action or checkout step."""
    event_type: str
    text: str
    url: str
    timestamp: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "type": self.event_type,
            "text": self.text,
            "url": self.url,
            "timestamp": self.timestamp,
        }


@dataclass
class PurchaseFunnel:
    stages: List[FunnelStage] = field(default_factory=list)
    conversion_events: List[FlowEvent] = field(default_factory=list)
    completion_status: str = "abandoned"  # completed | in_progress | abandoned

    @property
    def reached_stages(self) -> List[str]:
        reached = {s.stage for s in self.stages}
        return [s for s in STAGE_ORDER if s in reached]

    def to_dict(self) -> dict:
        return {
            "stages": [s.to_dict() for s in self.stages],
            "conversionEvents": [e.to_dict() for e in self.conversion_events],
            "completionStatus": self.completion_status,
            "reachedStages": self.reached_stages,
        }


@dataclass
class CartWorkflow:
    actions: List[FlowEvent] = field(default_factory=list)

    @property
    def abandoned(self) -> bool:
        """At least one cart action and no proceed_to_checkout."""
        return bool(self.actions) and not any(
            a.event_type == "proceed_to_checkout" for a in self.actions
        )

    @property
    def estimated_items(self) -> int:
        count = 0
        for action in self.actions:
            if action.event_type == "add_to_cart":
                count += 1
            elif action.event_type == "remove_from_cart":
                count = max(count - 1, 0)
        return count

    def to_dict(self) -> dict:
        return {
            "actions": [a.to_dict() for a in self.actions],
            "cartState": {
                "estimatedItems": self.estimated_items,
                "lastAction": self.actions[-1].event_type if self.actions else None,
            },
            "abandoned": self.abandoned,
        }


@dataclass
class ProductConfiguration:
    group_key: str
    steps: List[FlowEvent] = field(default_factory=list)
    final_configuration: Dict[str, str] = field(default_factory=dict)
    decision_quality: str = "decisive"  # decisive | exploratory
    selection_speed: str = "unknown"  # fast | moderate | slow | unknown

    def to_dict(self) -> dict:
        return {
            "groupKey": self.group_key,
            "steps": [s.to_dict() for s in self.steps],
            "finalConfiguration": dict(self.final_configuration),
            "decisionQuality": self.decision_quality,
            "selectionSpeed": self.selection_speed,
        }


@dataclass
class BehaviorPattern:
    name: str
    strength: float
    evidence: str

    def to_dict(self) -> dict:
        return {"name": self.name, "strength": self.strength, "evidence": self.evidence}


@dataclass
class ShoppingFlowAnalysis:
    """Shopping-flow summary of one session. Recomputed per session."""
    domain: str
    purchase_funnel: PurchaseFunnel = field(default_factory=PurchaseFunnel)
    cart_workflow: CartWorkflow = field(default_factory=CartWorkflow)
    product_configurations: List[ProductConfiguration] = field(default_factory=list)
    checkout_sequence: List[FlowEvent] = field(default_factory=list)
    behavior_patterns: List[BehaviorPattern] = field(default_factory=list)
    discovery_metadata: Dict[str, object] = field(default_factory=dict)

    @property
    def completion_status(self) -> str:
        return self.purchase_funnel.completion_status

    def to_dict(self) -> dict:
        return {
            "domain": self.domain,
            "purchaseFunnel": self.purchase_funnel.to_dict(),
            "cartWorkflow": self.cart_workflow.to_dict(),
            "productConfigurationFlow": [c.to_dict() for c in self.product_configurations],
            "checkoutSequence": [s.to_dict() for s in self.checkout_sequence],
            "behaviorPatterns": [p.to_dict() for p in self.behavior_patterns],
            "discoveryMetadata": self.discovery_metadata,
        }


def stage_for_url(url: str) -> str:
    if url_patterns.is_checkout_url(url):
        return "checkout"
    if url_patterns.is_cart_url(url):
        return "cart"
    if url_patterns.is_product_url(url):
        return "product"
    return "browse"


class ShoppingFlowAnalyzer:
    """
    Analyze the shopping funnel of a session.
    """

    def __init__(
        self,
        heuristics: Optional[HeuristicsConfig] = None,
        classifier: Optional[IntentClassifier] = None
    ):
        self.heuristics = heuristics or get_heuristics()
        self.classifier = classifier or IntentClassifier(self.heuristics)

    def analyze(self, interactions: Sequence[ParsedInteraction], domain: str = "") -> ShoppingFlowAnalysis:
        """
        Build the shopping-flow summary.

        Args:
            interactions: Parsed interactions in session order
            domain: Hostname to restrict to (empty for all)

        Returns:
            ShoppingFlowAnalysis
        """
        if domain:
            interactions = [i for i in interactions if url_patterns.hostname(i.url) == domain]

        funnel = self.purchase_funnel(interactions)
        cart = self.cart_workflow(interactions)
        configurations = self.product_configuration_flow(interactions)
        checkout = self.checkout_sequence(interactions)
        patterns = self.behavior_patterns(interactions, funnel, configurations)

        analysis = ShoppingFlowAnalysis(
            domain=domain,
            purchase_funnel=funnel,
            cart_workflow=cart,
            product_configurations=configurations,
            checkout_sequence=checkout,
            behavior_patterns=patterns,
            discovery_metadata=self._discovery_metadata(interactions, funnel, cart),
        )
        logger.debug(
            f"Shopping flow for {domain or 'all domains'}: {len(funnel.stages)} stage(s), "
            f"status {funnel.completion_status}"
        )
        return analysis

    # Funnel

    def purchase_funnel(self, interactions: Sequence[ParsedInteraction]) -> PurchaseFunnel:
        funnel = PurchaseFunnel()
        current: Optional[FunnelStage] = None

        for interaction in interactions:
            if interaction.url:
                stage = stage_for_url(interaction.url)
                if current is None or stage != current.stage:
                    if current is not None:
                        current.exit_time = interaction.timestamp
                    current = FunnelStage(
                        stage=stage,
                        name=STAGE_NAMES[stage],
                        entry_time=interaction.timestamp,
                    )
                    funnel.stages.append(current)
                current.interaction_count += 1
                page = url_patterns.page_url(interaction.url)
                if page not in current.urls:
                    current.urls.append(page)

            event = self.conversion_event(interaction)
            if event:
                funnel.conversion_events.append(event)

        if current is not None:
            last_times = [i.timestamp for i in interactions if i.timestamp is not None]
            current.exit_time = last_times[-1] if last_times else None

        if any(e.event_type == "purchase" for e in funnel.conversion_events):
            funnel.completion_status = "completed"
        elif "checkout" in funnel.reached_stages:
            funnel.completion_status = "in_progress"
        else:
            funnel.completion_status = "abandoned"
        return funnel

    def conversion_event(self, interaction: ParsedInteraction) -> Optional[FlowEvent]:
        """purchase | checkout_start | add_to_cart from the clicked text."""
        text = interaction.text
        if not interaction.is_click or not text or len(text.split()) > 6:
            return None
        vocab = self.heuristics.vocabulary
        for event_type, phrases in (
            ("purchase", vocab.purchase_phrases),
            ("checkout_start", vocab.checkout_phrases),
            ("add_to_cart", vocab.add_to_cart_phrases),
        ):
            if find_phrase(text, phrases):
                return FlowEvent(event_type, text, interaction.url, interaction.timestamp)
        return None

    # Cart

    def cart_action_type(self, text: str) -> Optional[str]:
        if not text or len(text.split()) > 6:
            return None
        vocab = self.heuristics.vocabulary
        for action_type, phrases in (
            ("add_to_cart", vocab.add_to_cart_phrases),
            ("remove_from_cart", vocab.remove_from_cart_phrases),
            ("update_quantity", vocab.quantity_phrases),
            ("proceed_to_checkout", vocab.checkout_phrases),
            ("view_cart", vocab.view_cart_phrases),
        ):
            if find_phrase(text, phrases):
                return action_type
        return None

    def cart_workflow(self, interactions: Sequence[ParsedInteraction]) -> CartWorkflow:
        workflow = CartWorkflow()
        for interaction in interactions:
            if not interaction.is_click:
                continue
            action_type = self.cart_action_type(interaction.text)
            if action_type:
                workflow.actions.append(
                    FlowEvent(action_type, interaction.text, interaction.url, interaction.timestamp)
                )
        return workflow

    # Product configuration

    def product_configuration_flow(self, interactions: Sequence[ParsedInteraction]) -> List[ProductConfiguration]:
        by_page: Dict[str, ProductConfiguration] = OrderedDict()
        for interaction in interactions:
            if not interaction.is_click or not interaction.text:
                continue
            key = url_patterns.product_group_key(interaction.url)
            if key is None:
                continue
            match = self.classifier.match_attribute(interaction.text)
            if not match or match[0] not in CONFIGURABLE_ATTRIBUTES:
                continue
            config = by_page.setdefault(key, ProductConfiguration(group_key=key))
            config.steps.append(
                FlowEvent(match[0], interaction.text, interaction.url, interaction.timestamp)
            )

        for config in by_page.values():
            changes: Dict[str, int] = {}
            for step in config.steps:
                changes[step.event_type] = changes.get(step.event_type, 0) + 1
                config.final_configuration[step.event_type] = step.text
            config.decision_quality = "exploratory" if any(c > 1 for c in changes.values()) else "decisive"
            config.selection_speed = self.selection_speed(config.steps)
        return list(by_page.values())

    @staticmethod
    def selection_speed(steps: Sequence[FlowEvent]) -> str:
        """fast / moderate / slow from the median gap between selections."""
        times = np.array([s.timestamp for s in steps if s.timestamp is not None], dtype=float)
        if times.size < 2:
            return "unknown"
        median_gap = float(np.median(np.diff(np.sort(times))))
        if median_gap < FAST_SELECTION_MS:
            return "fast"
        if median_gap < MODERATE_SELECTION_MS:
            return "moderate"
        return "slow"

    # Checkout

    @staticmethod
    def checkout_sequence(interactions: Sequence[ParsedInteraction]) -> List[FlowEvent]:
        steps = []
        for interaction in interactions:
            if interaction.is_click and interaction.text and url_patterns.is_checkout_url(interaction.url):
                steps.append(FlowEvent(
                    f"step_{len(steps) + 1}", interaction.text, interaction.url, interaction.timestamp
                ))
        return steps

    # Behaviour

    @staticmethod
    def behavior_patterns(
        interactions: Sequence[ParsedInteraction],
        funnel: PurchaseFunnel,
        configurations: Sequence[ProductConfiguration]
    ) -> List[BehaviorPattern]:
        total = sum(s.interaction_count for s in funnel.stages)
        if not total:
            return []

        patterns = []
        browse_count = sum(s.interaction_count for s in funnel.stages if s.stage == "browse")
        if browse_count:
            patterns.append(BehaviorPattern(
                "browsing",
                round(browse_count / total, 2),
                f"{browse_count} of {total} interactions on listing pages",
            ))

        product_pages = {
            url_patterns.product_group_key(i.url) for i in interactions if url_patterns.is_product_url(i.url)
        }
        if len(product_pages) >= 2:
            patterns.append(BehaviorPattern(
                "comparison",
                round(min((len(product_pages) - 1) / 3, 1.0), 2),
                f"viewed {len(product_pages)} product pages",
            ))

        selections = sum(len(c.steps) for c in configurations)
        if selections:
            patterns.append(BehaviorPattern(
                "research",
                round(min(selections / 5, 1.0), 2),
                f"{selections} attribute selection(s)",
            ))
        return patterns

    def _discovery_metadata(
        self,
        interactions: Sequence[ParsedInteraction],
        funnel: PurchaseFunnel,
        cart: CartWorkflow
    ) -> Dict[str, object]:
        shopping_actions = len(cart.actions) + sum(
            1 for e in funnel.conversion_events if e.event_type == "purchase"
        )
        durations = np.array(
            [s.duration_ms for s in funnel.stages if s.duration_ms is not None], dtype=float
        )
        abandonment_stage = None
        if funnel.completion_status == "abandoned" and funnel.stages:
            abandonment_stage = funnel.stages[-1].stage

        return {
            "shoppingActions": shopping_actions,
            "intentStrength": round(min(shopping_actions / len(interactions), 1.0), 2) if interactions else 0.0,
            "funnelCompletionRate": round(len(funnel.reached_stages) / len(STAGE_ORDER), 2),
            "abandonmentStage": abandonment_stage,
            "stageDurations": {
                "count": int(durations.size),
                "totalMs": float(durations.sum()) if durations.size else 0.0,
                "meanMs": float(np.mean(durations)) if durations.size else None,
                "medianMs": float(np.median(durations)) if durations.size else None,
                "maxMs": float(np.max(durations)) if durations.size else None,
            },
        }
