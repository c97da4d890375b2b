"""Layout engine configuration constants."""
from __future__ import annotations

# Feature schema; order fixes each feature's axis angle on the ring
FEATURES = [
    "danceability",
    "energy",
    "speechiness",
    "acousticness",
    "valence",
    "tempo_norm",
    "popularity",
    "instrumentalness",
]

# Features dropped from the ring entirely (angles are assigned without them)
EXCLUDED_FEATURES = ["instrumentalness"]

# Projection
EXAGGERATION: float = 1.2
DEPTH_EXAGGERATION = (1.6, 1.2, 1.0)  # root, depth 1, deeper levels reuse the last entry
PROJECTION_SCALE: float = 180.0
TARGET_RADIUS: float = 220.0

# Contrast curve policy (feature -> gamma)
SPEECHINESS_CONTRAST_GAMMA: float = 2.0
CONTRAST_FEATURES = ["speechiness"]

# Collision resolution; unrelated pairs get the smallest threshold
RELATIONSHIPS = ("sibling", "parent_child", "unrelated")
MIN_DISTANCE = {
    "sibling": 40.0,
    "parent_child": 40.0,
    "unrelated": 30.0,
}
PUSH_STRENGTH: float = 0.3
DAMPING: float = 0.85
MAX_ITERATIONS: int = 3

# Zoomed views pin the focused parent at the origin
PARENT_EXCLUSION_RADIUS: float = 82.0
PARENT_EXCLUSION_PADDING: float = 20.0

# Quantile fallback when neither local values nor a global entry exist
DEFAULT_QUANTILE = (0.0, 0.5, 1.0)
QUANTILE_POINTS = (0.1, 0.5, 0.9)

# Tree keys
PATH_SEPARATOR = "."
MANIFEST_RESERVED_KEYS = ("global", "build")

# Track profile conversion (BPM range mapped onto tempo_norm 0.0 - 1.0)
TEMPO_MIN_BPM: float = 60.0
TEMPO_RANGE_BPM: float = 120.0

# Cache namespaces
CACHE_NAMESPACES = {
    "layouts": "layouts",
    "child_layouts": "child_layouts",
}

# Misc operational constants
CACHE_DEFAULT_TTL_SECONDS: int = 10 * 60
CACHE_MAX_ENTRIES: int = 256
AUDIT_TOP_NODES: int = 20
