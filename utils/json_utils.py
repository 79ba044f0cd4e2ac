"""
JSON utilities for world model records.

Handles numpy scalars produced by the flow statistics, datetimes, sets
and dataclass records so pipeline output can be written without manual
conversion at each call site.
"""

import json
from dataclasses import asdict, is_dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Union

import numpy as np


class WorldModelJSONEncoder(json.JSONEncoder):
    """JSON encoder for pipeline records and numpy types."""
    
    def default(self, obj: Any) -> Any:
        if isinstance(obj, np.floating):
            return float(obj)
        if isinstance(obj, np.integer):
            return int(obj)
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        if isinstance(obj, np.bool_):
            return bool(obj)
        
        if isinstance(obj, datetime):
            return obj.isoformat()
        
        # Sets are emitted sorted so output is stable between runs
        if isinstance(obj, (set, frozenset)):
            return sorted(obj, key=str)
        
        if hasattr(obj, "to_dict"):
            return obj.to_dict()
        if is_dataclass(obj) and not isinstance(obj, type):
            return asdict(obj)
        
        return super().default(obj)


def dump_json(obj: Any, fp, **kwargs) -> None:
    """Wrapper for json.dump that uses WorldModelJSONEncoder by default."""
    kwargs.setdefault('cls', WorldModelJSONEncoder)
    kwargs.setdefault('indent', 2)
    kwargs.setdefault('ensure_ascii', False)
    json.dump(obj, fp, **kwargs)


def dumps_json(obj: Any, **kwargs) -> str:
    """Wrapper for json.dumps that uses WorldModelJSONEncoder by default."""
    kwargs.setdefault('cls', WorldModelJSONEncoder)
    kwargs.setdefault('indent', 2)
    kwargs.setdefault('ensure_ascii', False)
    return json.dumps(obj, **kwargs)


def load_json(path: Union[str, Path]) -> Any:
    """Read a UTF-8 JSON document from disk."""
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)
