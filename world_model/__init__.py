"""
World Model

Entity records, session intake schema and repositories for the shopping
world model. The ingester lives in world_model.ingester.
"""

from .models import (
    ExtractedCategory,
    ExtractedDomain,
    ExtractedProduct,
    IngestionStats,
    ParsedInteraction,
    ProductAttribute,
    SessionContext,
)
from .repository import InMemoryRepository, JsonFileRepository, WorldModelRepository
from .schemas import SessionRecord, load_sessions

__all__ = [
    "ExtractedCategory",
    "ExtractedDomain",
    "ExtractedProduct",
    "IngestionStats",
    "ParsedInteraction",
    "ProductAttribute",
    "SessionContext",
    "InMemoryRepository",
    "JsonFileRepository",
    "WorldModelRepository",
    "SessionRecord",
    "load_sessions",
]
