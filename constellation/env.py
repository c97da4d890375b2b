"""Environment helpers for the layout service and CLI."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

ALIAS_KEY_MAP = {
    "manifest": "CONSTELLATION_MANIFEST",
    "manifest path": "CONSTELLATION_MANIFEST",
    "radius": "CONSTELLATION_TARGET_RADIUS",
    "target radius": "CONSTELLATION_TARGET_RADIUS",
    "host": "CONSTELLATION_HOST",
    "port": "CONSTELLATION_PORT",
}

# Environment variable -> (LayoutConfig field, parser)
LAYOUT_OVERRIDE_KEYS = {
    "CONSTELLATION_TARGET_RADIUS": ("target_radius", float),
    "CONSTELLATION_PROJECTION_SCALE": ("projection_scale", float),
    "CONSTELLATION_EXAGGERATION": ("exaggeration", float),
    "CONSTELLATION_PUSH_STRENGTH": ("push_strength", float),
    "CONSTELLATION_DAMPING": ("damping", float),
    "CONSTELLATION_MAX_ITERATIONS": ("max_iterations", int),
    "CONSTELLATION_EXCLUDED_FEATURES": (
        "excluded_features",
        lambda raw: tuple(item.strip() for item in raw.split(",") if item.strip()),
    ),
}


def load_env(path: Optional[Path] = None) -> Dict[str, str]:
    """Load variables from a .env file, returning a mapping.

    Lines are KEY=VALUE pairs; ``#`` starts a comment. Existing os.environ
    takes precedence, but values from the file are exported for later lookups.
    """

    env_path = Path(path) if path else Path(__file__).resolve().parent.parent / ".env"
    values: Dict[str, str] = {}
    if not env_path.exists():
        return values

    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, raw_value = line.split("=", 1)
        parsed_key = _normalize_key(key)
        value = raw_value.strip().strip('"').strip("'")
        if parsed_key:
            values[parsed_key] = value
            os.environ.setdefault(parsed_key, value)
    return values


def require(keys: Mapping[str, str]) -> Dict[str, str]:
    """Ensure the provided keys exist in the environment, raising if missing."""

    missing = [name for name in keys if name not in os.environ]
    if missing:
        raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")
    return {name: os.environ[name] for name in keys}


def layout_overrides_from_env(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """LayoutConfig overrides named by ``CONSTELLATION_*`` variables.

    Unparseable values raise ``ValueError`` naming the variable.
    """

    source = os.environ if environ is None else environ
    overrides: Dict[str, Any] = {}
    for name, (field_name, parser) in LAYOUT_OVERRIDE_KEYS.items():
        raw = source.get(name)
        if raw is None or not raw.strip():
            continue
        try:
            overrides[field_name] = parser(raw.strip())
        except ValueError as error:
            raise ValueError(f"Invalid value for {name}: {raw!r}") from error
    return overrides


def _normalize_key(key: str) -> Optional[str]:
    lowered = key.lower().strip()
    if not lowered:
        return None
    if lowered in ALIAS_KEY_MAP:
        return ALIAS_KEY_MAP[lowered]
    return lowered.replace(" ", "_").upper()
