"""
Logging utilities for pipeline runs.

Provides console logging setup for the CLI and a structured pipeline
logger that tags every event with stage, session id and confidence and
can mirror those events to a JSONL trace file.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .datetime_utils import utc_now


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(verbose: bool = False, log_file: Optional[Union[str, Path]] = None) -> None:
    """
    Configure root logging for CLI runs.

    Args:
        verbose: Enable DEBUG level output
        log_file: Optional file that receives the same records as the console
    """
    level = logging.DEBUG if verbose else logging.INFO
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, mode='a', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def append_trace(output_file: Path, data: Dict[str, Any]) -> None:
    """
    Append one event to a JSONL trace file.

    Args:
        output_file: Path to JSONL output file
        data: Event payload; a timestamp is added if missing
    """
    output_file.parent.mkdir(parents=True, exist_ok=True)
    data.setdefault('timestamp', utc_now().isoformat())
    with open(output_file, 'a', encoding='utf-8') as f:
        f.write(json.dumps(data, default=str) + '\n')


class PipelineLogger:
    """
    Structured logger passed into pipeline components.

    Each event carries the pipeline stage, the session being processed and,
    where relevant, the confidence of the decision. Events are forwarded to
    a standard library logger and kept in memory for the current run.
    """

    def __init__(
        self,
        name: str = "world_model.pipeline",
        trace_file: Optional[Union[str, Path]] = None,
        keep_events: bool = True
    ):
        """
        Initialize the pipeline logger.

        Args:
            name: Name of the underlying logging.Logger
            trace_file: Optional JSONL file receiving every event
            keep_events: Retain events in memory (exposed via .events)
        """
        self.logger = logging.getLogger(name)
        self.trace_file = Path(trace_file) if trace_file else None
        self.keep_events = keep_events
        self.events: List[Dict[str, Any]] = []

    def event(
        self,
        stage: str,
        message: str,
        session_id: Optional[str] = None,
        confidence: Optional[float] = None,
        level: int = logging.DEBUG,
        exc_info: bool = False,
        **fields: Any
    ) -> Dict[str, Any]:
        """Record a pipeline event."""
        record = {
            "stage": stage,
            "session_id": session_id,
            "confidence": round(confidence, 3) if confidence is not None else None,
            "message": message,
        }
        record.update(fields)

        prefix = f"[{session_id}] " if session_id else ""
        suffix = f" (confidence={confidence:.2f})" if confidence is not None else ""
        self.logger.log(level, f"{prefix}{stage}: {message}{suffix}", exc_info=exc_info)

        if self.keep_events:
            self.events.append(record)
        if self.trace_file:
            append_trace(self.trace_file, dict(record))
        return record

    def low_confidence(
        self,
        stage: str,
        session_id: Optional[str],
        confidence: float,
        floor: float,
        label: str
    ) -> Dict[str, Any]:
        """Record a classification skipped for falling below its floor."""
        return self.event(
            stage,
            f"skipped low-confidence {label} (floor {floor:.2f})",
            session_id=session_id,
            confidence=confidence,
            level=logging.DEBUG,
            skipped=True,
            floor=floor,
            label=label,
        )

    def error(
        self,
        stage: str,
        message: str,
        session_id: Optional[str] = None,
        exc_info: bool = False,
        **fields: Any
    ) -> Dict[str, Any]:
        """Record a failure at the given stage."""
        return self.event(stage, message, session_id=session_id, level=logging.ERROR, exc_info=exc_info, **fields)

    def events_for_stage(self, stage: str) -> List[Dict[str, Any]]:
        """Get recorded events for one stage."""
        return [e for e in self.events if e["stage"] == stage]
