"""
CLI Command Handlers

Implementation of CLI commands for the world model pipeline.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

# Add project root to path for imports
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from pipeline.heuristics import get_heuristics
from utils.logging_utils import PipelineLogger
from world_model.ingester import SessionAnalysis, SessionInput, WorldModelIngester, ingest_sessions_parallel
from world_model.models import IngestionStats
from world_model.repository import InMemoryRepository, JsonFileRepository
from world_model.schemas import SessionRecord, load_sessions, read_session_payloads

logger = logging.getLogger(__name__)


class PipelineOrchestrator:
    """
    Wires configuration, repository and ingester together for CLI runs.

    Pipeline stages per session:
    1. Normalize interactions
    2. Extract domains
    3. Classify interactions
    4. Persist categories above the category floor
    5. Group product pages and persist products above the product floor
    """

    def __init__(
        self,
        store_path: Optional[str] = None,
        config_path: Optional[str] = None,
        trace_file: Optional[str] = None,
        category_floor: Optional[float] = None,
        product_floor: Optional[float] = None,
        in_memory: bool = False
    ):
        logger.info("Initializing PipelineOrchestrator...")
        self.heuristics = get_heuristics(config_path)
        self.repository = InMemoryRepository() if in_memory else JsonFileRepository(store_path)
        self.pipeline_logger = PipelineLogger(trace_file=trace_file, keep_events=False)
        self.ingester_kwargs = {
            "heuristics": self.heuristics,
            "pipeline_logger": self.pipeline_logger,
            "category_floor": category_floor,
            "product_floor": product_floor,
        }
        logger.info("PipelineOrchestrator initialized successfully")

    def ingester(self) -> WorldModelIngester:
        return WorldModelIngester(self.repository, **self.ingester_kwargs)

    def run_ingestion(self, sessions: List[SessionInput], workers: int = 1) -> IngestionStats:
        """Ingest sessions, optionally with parallel workers."""
        if workers > 1:
            return asyncio.run(ingest_sessions_parallel(sessions, self.repository, workers, **self.ingester_kwargs))
        return asyncio.run(self.ingester().ingest_sessions(sessions))


def _select_sessions(session_file: str, session_id: Optional[str]) -> List[SessionRecord]:
    sessions = load_sessions(session_file)
    if session_id:
        sessions = [s for s in sessions if s.id == session_id]
        if not sessions:
            raise ValueError(f"Session not found: {session_id}")
    return sessions


def run_ingest(
    session_file: str,
    store_path: Optional[str] = None,
    workers: int = 1,
    category_floor: Optional[float] = None,
    product_floor: Optional[float] = None,
    trace_file: Optional[str] = None,
    verbose: bool = True
) -> Dict:
    """
    Ingest a session file into the world model store.

    Records are handed over unvalidated so invalid ones show up as
    per-session errors in the summary.
    """
    sessions = read_session_payloads(session_file)
    orchestrator = PipelineOrchestrator(
        store_path=store_path,
        trace_file=trace_file,
        category_floor=category_floor,
        product_floor=product_floor,
    )
    stats = orchestrator.run_ingestion(sessions, workers=workers)
    summary = stats.to_dict()
    summary["store"] = orchestrator.repository.counts()

    if verbose:
        print("\nIngestion Summary:")
        print("=" * 50)
        print(f"Sessions processed:        {summary['sessionsProcessed']}")
        print(f"Sessions failed:           {len(summary['errors'])}")
        print(f"Domains found:             {summary['domainsFound']}")
        print(f"Categories created:        {summary['categoriesCreated']}")
        print(f"Products upserted:         {summary['productsCreated']}")
        print(f"Classifications analyzed:  {summary['classificationsAnalyzed']}")
        print(f"Low-confidence skipped:    {summary['lowConfidenceSkipped']}")
        print(f"UI interactions filtered:  {summary['uiFiltered']}")
        for error in summary["errors"]:
            print(f"  [FAIL] {error['sessionId']}: {error['error']}")

    return summary


def analyze_sessions(session_file: str, session_id: Optional[str] = None, verbose: bool = True) -> List[SessionAnalysis]:
    """Navigation and shopping-flow summaries without writing to the store."""
    ingester = WorldModelIngester(InMemoryRepository())
    analyses = []
    for session in _select_sessions(session_file, session_id):
        try:
            analyses.append(ingester.analyze_session(session))
        except ValueError as e:
            logger.error(f"Cannot analyze session {session.id}: {e}")
            if verbose:
                print(f"  [FAIL] {session.id}: {e}")

    if verbose:
        for analysis in analyses:
            print(f"\nSession: {analysis.session_id} ({analysis.interaction_count} interactions)")
            print(f"{'=' * 60}")
            for domain, flow in analysis.shopping_flow.items():
                navigation = analysis.navigation[domain]
                print(f"  {domain}")
                print(f"    Funnel:        {' -> '.join(s.stage for s in flow.purchase_funnel.stages)}")
                print(f"    Status:        {flow.completion_status}")
                print(f"    Categories:    {len(navigation.category_hierarchy)} (depth {navigation.hierarchy_depth})")
                print(f"    Cart actions:  {len(flow.cart_workflow.actions)}")
    return analyses


def classify_sessions(session_file: str, session_id: Optional[str] = None, verbose: bool = True) -> List[Dict]:
    """Per-interaction classifications for inspection."""
    ingester = WorldModelIngester(InMemoryRepository())
    rows = []
    for session in _select_sessions(session_file, session_id):
        interactions = ingester.normalizer.normalize_batch(session.enhanced_interactions)
        for interaction, result in ingester.classifier.classify_session(interactions, session.to_context()):
            rows.append({
                "sessionId": session.id,
                "interactionId": interaction.id,
                "text": interaction.text,
                "url": interaction.url,
                "kind": result.kind,
                "confidence": result.confidence,
                "reasoning": result.reasoning,
            })

    if verbose:
        for row in rows:
            print(f"  [{row['kind']:<17}] {row['confidence']:.2f}  {row['text'][:40]:<40}  {row['reasoning']}")
    return rows


def show_store(store_path: Optional[str] = None, verbose: bool = True) -> Dict:
    """Entity counts of the world model store."""
    repository = JsonFileRepository(store_path)
    counts = repository.counts()
    if verbose:
        print("\nWorld Model Store:")
        print("=" * 50)
        print(f"Location:    {repository.path}")
        print(f"Domains:     {counts['domains']}")
        print(f"Categories:  {counts['categories']}")
        print(f"Products:    {counts['products']}")
        for record in repository.domains.values():
            products = sum(1 for (host, _) in repository.products if host == record["domain"])
            print(f"  {record['domain']:<30} {record['siteName']:<15} {products} product(s)")
    return counts
