"""
World Model Ingester

Runs recorded shopping sessions through the pipeline and writes the
resulting domains, categories and products to a repository.

Per session:
1. Normalize interactions
2. Extract and upsert domains
3. Classify interactions (bounded look-ahead)
4. Gate and upsert categories
5. Group product pages, aggregate attributes, gate and upsert products

A failing session is recorded in the run statistics and the batch
continues.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from pipeline.attribute_aggregator import ProductAttributeAggregator
from pipeline.domain_extractor import CategoryExtractor, DomainExtractor
from pipeline.heuristics import HeuristicsConfig, get_heuristics
from pipeline.intent_classifier import IntentClassifier
from pipeline.interaction_normalizer import InteractionNormalizer
from pipeline.navigation_extractor import NavigationArchitecture, NavigationExtractor
from pipeline.pricing_extractor import PricingExtractor
from pipeline.product_grouper import ProductPageGrouper
from pipeline.shopping_flow import ShoppingFlowAnalysis, ShoppingFlowAnalyzer
from pipeline import url_patterns
from utils.logging_utils import PipelineLogger
from world_model.models import (
    CategoryClassification,
    ExtractedDomain,
    IngestionStats,
    ParsedInteraction,
    UIClassification,
)
from world_model.repository import WorldModelRepository
from world_model.schemas import SessionRecord

logger = logging.getLogger(__name__)


SessionInput = Union[SessionRecord, Dict[str, Any]]


@dataclass
class SessionAnalysis:
    """Read-only summaries of one session."""
    session_id: str
    domains: List[ExtractedDomain] = field(default_factory=list)
    navigation: Dict[str, NavigationArchitecture] = field(default_factory=dict)
    shopping_flow: Dict[str, ShoppingFlowAnalysis] = field(default_factory=dict)
    page_type_counts: Dict[str, int] = field(default_factory=dict)
    ui_frameworks: List[str] = field(default_factory=list)
    interaction_count: int = 0

    def to_dict(self) -> dict:
        return {
            "sessionId": self.session_id,
            "interactionCount": self.interaction_count,
            "domains": [d.to_dict() for d in self.domains],
            "navigation": {k: v.to_dict() for k, v in self.navigation.items()},
            "shoppingFlow": {k: v.to_dict() for k, v in self.shopping_flow.items()},
            "pageTypeCounts": dict(self.page_type_counts),
            "uiFrameworks": list(self.ui_frameworks),
        }


class WorldModelIngester:
    """
    Session-to-world-model orchestrator.

    Each instance owns its IngestionStats; use one instance per worker.
    """

    def __init__(
        self,
        repository: WorldModelRepository,
        heuristics: Optional[HeuristicsConfig] = None,
        pipeline_logger: Optional[PipelineLogger] = None,
        category_floor: Optional[float] = None,
        product_floor: Optional[float] = None
    ):
        """
        Initialize the ingester.

        Args:
            repository: Storage for extracted entities
            heuristics: Vocabulary/threshold configuration
            pipeline_logger: Structured logger (default: log records only, no retained events)
            category_floor: Override for the category confidence floor
            product_floor: Override for the product confidence floor
        """
        self.repository = repository
        self.heuristics = heuristics or get_heuristics()
        self.plog = pipeline_logger or PipelineLogger(keep_events=False)

        thresholds = self.heuristics.thresholds
        self.category_floor = category_floor if category_floor is not None else thresholds.category_floor
        self.product_floor = product_floor if product_floor is not None else thresholds.product_floor
        for name, value in (("category_floor", self.category_floor), ("product_floor", self.product_floor)):
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {value}")

        self.normalizer = InteractionNormalizer()
        self.classifier = IntentClassifier(self.heuristics)
        self.grouper = ProductPageGrouper()
        self.aggregator = ProductAttributeAggregator(
            classifier=self.classifier,
            pricing=PricingExtractor(self.heuristics),
            heuristics=self.heuristics,
        )
        self.domain_extractor = DomainExtractor()
        self.category_extractor = CategoryExtractor(self.heuristics, floor=self.category_floor)
        self.navigation_extractor = NavigationExtractor(self.heuristics)
        self.flow_analyzer = ShoppingFlowAnalyzer(self.heuristics, self.classifier)

        self.stats = IngestionStats()

    async def ingest_sessions(self, sessions: Iterable[SessionInput]) -> IngestionStats:
        """
        Ingest a batch of sessions sequentially.

        Args:
            sessions: SessionRecord objects or raw session mappings

        Returns:
            This worker's run statistics
        """
        sessions = list(sessions)
        logger.info(f"Starting ingestion of {len(sessions)} session(s)")

        for i, session in enumerate(sessions):
            session_id = self._session_id(session, i)
            try:
                await self.ingest_session(session)
            except Exception as e:
                self.stats.record_error(session_id, e)
                self.plog.error("session", f"failed to ingest: {e}", session_id=session_id, exc_info=True)

        logger.info(
            f"Ingestion complete: {self.stats.sessions_processed} processed, "
            f"{len(self.stats.errors)} failed, {len(self.stats.domains_found)} domains, "
            f"{len(self.stats.categories_created)} categories, {len(self.stats.products_created)} products"
        )
        return self.stats

    async def ingest_session(self, session: SessionInput) -> None:
        """
        Ingest one session. Errors propagate to the caller.

        Args:
            session: SessionRecord or raw session mapping
        """
        record = self._to_record(session)
        context = record.to_context()
        session_id = record.id

        interactions = self._normalize(record)
        neighbor_lookup = self.normalizer.neighbor_lookup(record.enhanced_interactions)

        # Domains
        domain_ids: Dict[str, str] = {}
        for domain in self.domain_extractor.extract_domains(interactions):
            existing = await self.repository.get_domain(domain.domain)
            domain_ids[domain.domain] = existing["id"] if existing else await self.repository.upsert_domain(domain)
            self.stats.domains_found.add(domain.domain)

        # Classification
        classified = self.classifier.classify_session(interactions, context)
        self.stats.classifications_analyzed += len(classified)
        self.stats.ui_filtered += sum(1 for _, c in classified if isinstance(c, UIClassification))
        self.plog.event("classify", f"classified {len(classified)} interaction(s)", session_id=session_id)

        # Categories
        category_hits = [c for _, c in classified if isinstance(c, CategoryClassification)]
        for (host, path), category in self.category_extractor.from_classifications(category_hits).items():
            if not self.category_extractor.passes_floor(category):
                self.stats.low_confidence_skipped += 1
                self.plog.low_confidence("category", session_id, category.confidence, self.category_floor, path)
                continue
            domain_id = domain_ids.get(host)
            if domain_id is None:
                continue
            self.stats.high_confidence_used += 1
            if await self.repository.get_category(domain_id, path) is None:
                await self.repository.upsert_category(domain_id, category)
                self.stats.categories_created.add((host, path))
                self.plog.event("category", f"created {path}", session_id=session_id, confidence=category.confidence)

        # Products
        by_id = {interaction.id: result for interaction, result in classified}
        for group_key, members in self.grouper.group(interactions).items():
            product = self.aggregator.aggregate(group_key, members, context, neighbor_lookup, by_id)
            if product is None:
                continue
            if product.confidence < self.product_floor:
                self.stats.low_confidence_skipped += 1
                self.plog.low_confidence("product", session_id, product.confidence, self.product_floor, group_key)
                continue
            host = url_patterns.hostname(members[0].url) or ""
            self.stats.high_confidence_used += 1
            await self.repository.upsert_product(host, product, members)
            self.stats.products_created.add((host, product.product_id))
            self.plog.event(
                "product",
                f"upserted {product.product_id} '{product.product_name}'",
                session_id=session_id,
                confidence=product.confidence,
                attributes=product.attribute_count,
            )

        self.stats.sessions_processed += 1

    def analyze_session(self, session: SessionInput) -> SessionAnalysis:
        """
        Navigation and shopping-flow summaries of a session.

        Nothing is written to the repository.
        """
        record = self._to_record(session)
        interactions = self._normalize(record)
        domains = self.domain_extractor.extract_domains(interactions)

        analysis = SessionAnalysis(
            session_id=record.id,
            domains=domains,
            page_type_counts=self.domain_extractor.page_type_counts(interactions),
            ui_frameworks=self.domain_extractor.detect_ui_frameworks(interactions),
            interaction_count=len(interactions),
        )
        for domain in domains:
            analysis.navigation[domain.domain] = self.navigation_extractor.extract(interactions, domain.domain)
            analysis.shopping_flow[domain.domain] = self.flow_analyzer.analyze(interactions, domain.domain)
        return analysis

    def _normalize(self, record: SessionRecord) -> List[ParsedInteraction]:
        raw_items = self.normalizer.coerce_sequence(record.enhanced_interactions)
        if raw_items is None:
            raise ValueError("enhancedInteractions payload could not be parsed")
        interactions = self.normalizer.normalize_batch(raw_items)
        skipped = len(raw_items) - len(interactions)
        if skipped:
            self.stats.interactions_skipped += skipped
            self.plog.event("normalize", f"skipped {skipped} unparsable interaction(s)", session_id=record.id)
        return interactions

    @staticmethod
    def _to_record(session: SessionInput) -> SessionRecord:
        if isinstance(session, SessionRecord):
            return session
        return SessionRecord.model_validate(session)

    @staticmethod
    def _session_id(session: SessionInput, index: int) -> str:
        if isinstance(session, SessionRecord):
            return session.id
        if isinstance(session, dict) and session.get("id"):
            return str(session["id"])
        return f"session-{index}"


async def ingest_sessions_parallel(
    sessions: Sequence[SessionInput],
    repository: WorldModelRepository,
    workers: int = 4,
    **ingester_kwargs: Any
) -> IngestionStats:
    """
    Ingest sessions with independent workers sharing one repository.

    Each worker owns its own ingester and statistics; the repository's
    idempotent upserts make the shared writes safe.

    Returns:
        Combined statistics of all workers
    """
    workers = max(1, min(workers, len(sessions) or 1))
    chunks = [list(sessions[i::workers]) for i in range(workers)]
    ingesters = [WorldModelIngester(repository, **ingester_kwargs) for _ in chunks]

    results = await asyncio.gather(*(ing.ingest_sessions(chunk) for ing, chunk in zip(ingesters, chunks)))

    combined = IngestionStats()
    for stats in results:
        combined = combined.merge(stats)
    return combined
