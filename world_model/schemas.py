"""
Session Intake Schemas

Pydantic models validating session records handed over by the intake
layer before they reach the ingester.
"""

import json
import logging
from pathlib import Path
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from world_model.models import SessionContext

logger = logging.getLogger(__name__)


class SessionRecord(BaseModel):
    """One recorded shopping session."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    enhanced_interactions: Any = Field(default=None, alias="enhancedInteractions")
    page_type: Optional[str] = Field(default=None, alias="pageType")
    user_intent: Optional[str] = Field(default=None, alias="userIntent")
    shopping_stage: Optional[str] = Field(default=None, alias="shoppingStage")
    behavior_type: Optional[str] = Field(default=None, alias="behaviorType")
    quality_score: Optional[float] = Field(default=None, alias="qualityScore")

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        if value is None or not str(value).strip():
            raise ValueError("session id must be non-empty")
        return str(value).strip()

    @field_validator("quality_score")
    @classmethod
    def _score_range(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and not 0.0 <= value <= 100.0:
            raise ValueError(f"qualityScore out of range: {value}")
        return value

    def to_context(self) -> SessionContext:
        """Session hints for the classifier."""
        return SessionContext(
            session_id=self.id,
            page_type=self.page_type,
            user_intent=self.user_intent,
            shopping_stage=self.shopping_stage,
            behavior_type=self.behavior_type,
            quality_score=self.quality_score,
        )


def parse_sessions(items: List[Any]) -> List[SessionRecord]:
    """
    Validate raw session mappings, dropping invalid ones.

    Args:
        items: Raw session dictionaries

    Returns:
        Valid SessionRecord objects in input order
    """
    sessions = []
    for i, item in enumerate(items):
        try:
            sessions.append(SessionRecord.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Skipping invalid session record #{i}: {e.error_count()} error(s)")
    return sessions


def read_session_payloads(path: Union[str, Path]) -> List[Any]:
    """
    Raw session mappings from a JSON file, unvalidated.

    The file holds either a list of sessions or an object with a
    "sessions" list.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Session file not found: {path}")
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("sessions", [])
    if not isinstance(data, list):
        raise ValueError(f"Expected a list of sessions in {path}")
    return data


def load_sessions(path: Union[str, Path]) -> List[SessionRecord]:
    """Load and validate session records from a JSON file; invalid ones are dropped."""
    sessions = parse_sessions(read_session_payloads(path))
    logger.info(f"Loaded {len(sessions)} session(s) from {path}")
    return sessions
