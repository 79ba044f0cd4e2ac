"""
Utility modules for the shopping world model pipeline.
"""

from .datetime_utils import utc_now, to_epoch_millis
from .json_utils import WorldModelJSONEncoder, dump_json, dumps_json, load_json
from .logging_utils import PipelineLogger, setup_logging

__all__ = [
    "utc_now", "to_epoch_millis",
    "WorldModelJSONEncoder", "dump_json", "dumps_json", "load_json",
    "PipelineLogger", "setup_logging",
]
