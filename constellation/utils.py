"""Utility helpers for the layout pipeline."""
from __future__ import annotations

import hashlib
import json
import math
from typing import Any, Optional, Tuple

from . import config


def split_key(key: str) -> Tuple[str, ...]:
    if not key:
        return ()
    return tuple(key.split(config.PATH_SEPARATOR))


def hash_payload(payload: Any) -> str:
    """Create a stable hash of a JSON-compatible payload."""

    blob = json.dumps(payload, sort_keys=True, default=str)
    return hashlib.sha256(blob.encode("utf-8")).hexdigest()


def as_number(value: Any) -> Optional[float]:
    """Return ``value`` as a float, or ``None`` when missing, non-numeric or NaN."""

    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def clamp(value: float, lower: float = 0.0, upper: float = 1.0) -> float:
    return max(lower, min(upper, value))
