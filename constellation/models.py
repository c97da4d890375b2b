"""Domain models for the constellation layout engine."""
from __future__ import annotations

import math
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from . import config

FeatureVector = Dict[str, float]


@dataclass(frozen=True)
class Quantile:
    """10th/50th/90th percentile breakpoints of one feature."""

    p10: float
    p50: float
    p90: float

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "Quantile":
        """Build from a ``{"p10", "p50", "p90"}`` mapping, keeping p10 <= p50 <= p90."""

        low, mid, high = sorted(
            float(payload.get(name, default))
            for name, default in zip(("p10", "p50", "p90"), config.DEFAULT_QUANTILE)
        )
        return cls(p10=low, p50=mid, p90=high)

    @property
    def degenerate(self) -> bool:
        return self.p90 <= self.p10

    def as_dict(self) -> Dict[str, float]:
        return {"p10": self.p10, "p50": self.p50, "p90": self.p90}


Quantiles = Dict[str, Quantile]


@dataclass(frozen=True)
class Position:
    """A point in layout units, origin at the canvas centre."""

    x: float = 0.0
    y: float = 0.0

    def norm(self) -> float:
        return math.hypot(self.x, self.y)

    def as_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}


@dataclass
class Leaf:
    """A seed track hanging off a node."""

    name: str
    artist: str = ""
    uri: Optional[str] = None
    filename: Optional[str] = None
    features: Optional[FeatureVector] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Node:
    """A genre or subgenre in the manifest tree."""

    name: str
    path: Tuple[str, ...]
    features: Optional[FeatureVector] = None
    children: List["Node"] = field(default_factory=list)
    leaves: List[Leaf] = field(default_factory=list)

    @property
    def key(self) -> str:
        return config.PATH_SEPARATOR.join(self.path)

    @property
    def depth(self) -> int:
        return len(self.path) - 1

    def walk(self) -> Iterator["Node"]:
        """Yield this node and its descendants depth-first, in insertion order."""

        yield self
        for child in self.children:
            yield from child.walk()

    def leaf_key(self, leaf: Leaf) -> str:
        return config.PATH_SEPARATOR.join(self.path + (leaf.name,))


@dataclass
class DisplayConfig:
    """The manifest's ``global.display`` block."""

    feature_angles: List[str] = field(default_factory=lambda: list(config.FEATURES))
    projection_scale: float = config.PROJECTION_SCALE
    contrast_gamma: float = config.SPEECHINESS_CONTRAST_GAMMA


@dataclass
class Manifest:
    """Parsed constellation manifest: root genres plus global statistics."""

    roots: List[Node] = field(default_factory=list)
    quantiles: Quantiles = field(default_factory=dict)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    build: Dict[str, Any] = field(default_factory=dict)

    def walk(self) -> Iterator[Node]:
        for root in self.roots:
            yield from root.walk()


@dataclass(frozen=True)
class LayoutConfig:
    """Tunable parameters of one layout computation."""

    features: Tuple[str, ...] = tuple(config.FEATURES)
    excluded_features: Tuple[str, ...] = tuple(config.EXCLUDED_FEATURES)
    exaggeration: float = config.EXAGGERATION
    depth_exaggeration: Tuple[float, ...] = config.DEPTH_EXAGGERATION
    projection_scale: float = config.PROJECTION_SCALE
    target_radius: float = config.TARGET_RADIUS
    min_distance: Mapping[str, float] = field(default_factory=lambda: dict(config.MIN_DISTANCE))
    push_strength: float = config.PUSH_STRENGTH
    damping: float = config.DAMPING
    max_iterations: int = config.MAX_ITERATIONS
    contrast: Mapping[str, float] = field(
        default_factory=lambda: {
            feature: config.SPEECHINESS_CONTRAST_GAMMA for feature in config.CONTRAST_FEATURES
        }
    )
    parent_exclusion_radius: float = config.PARENT_EXCLUSION_RADIUS
    parent_exclusion_padding: float = config.PARENT_EXCLUSION_PADDING
    average_container_features: bool = False

    @classmethod
    def from_display(cls, display: DisplayConfig, **overrides: Any) -> "LayoutConfig":
        """Adopt the manifest's feature order, projection scale and contrast gamma."""

        base = cls(
            features=tuple(display.feature_angles),
            projection_scale=float(display.projection_scale),
            contrast={feature: float(display.contrast_gamma) for feature in config.CONTRAST_FEATURES},
        )
        return base.with_overrides(**overrides) if overrides else base

    def with_overrides(self, **overrides: Any) -> "LayoutConfig":
        """Return a copy with the given fields replaced; unknown names raise ``ValueError``."""

        known = {item.name for item in fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ValueError(f"Unknown layout config fields: {', '.join(unknown)}")
        coerced: Dict[str, Any] = {}
        for name, value in overrides.items():
            if name in ("features", "excluded_features", "depth_exaggeration"):
                value = tuple(value)
            elif name in ("min_distance", "contrast"):
                value = {str(key): float(item) for key, item in dict(value).items()}
                if name == "min_distance" and not set(value) <= set(config.RELATIONSHIPS):
                    raise ValueError(f"Unknown relationship in min_distance: {', '.join(sorted(value))}")
            elif name == "max_iterations":
                value = int(value)
            elif name == "average_container_features":
                value = bool(value)
            else:
                value = float(value)
            coerced[name] = value
        _check_ranges(coerced)
        return replace(self, **coerced)

    def designated_features(self) -> List[str]:
        """Features that own an axis on the ring, in angle order."""

        excluded = set(self.excluded_features)
        return [feature for feature in self.features if feature not in excluded]

    def exaggeration_for(self, depth: int) -> float:
        if not self.depth_exaggeration:
            return self.exaggeration
        index = min(max(depth, 0), len(self.depth_exaggeration) - 1)
        return self.exaggeration * self.depth_exaggeration[index]

    def min_distance_for(self, relationship: str) -> float:
        fallback = config.MIN_DISTANCE.get(relationship, 0.0)
        return float(self.min_distance.get(relationship, fallback))

    def stable_signature(self) -> str:
        """Generate a stable string representation for caching."""

        parts = [
            "|".join(self.features),
            "|".join(sorted(self.excluded_features)),
            repr(self.exaggeration),
            "|".join(repr(value) for value in self.depth_exaggeration),
            repr(self.projection_scale),
            repr(self.target_radius),
            "|".join(f"{key}={value!r}" for key, value in sorted(self.min_distance.items())),
            repr(self.push_strength),
            repr(self.damping),
            str(self.max_iterations),
            "|".join(f"{key}={value!r}" for key, value in sorted(self.contrast.items())),
            repr(self.parent_exclusion_radius),
            repr(self.parent_exclusion_padding),
            str(self.average_container_features),
        ]
        return "::".join(parts)


def _check_ranges(values: Mapping[str, Any]) -> None:
    """Raise ``ValueError`` for settings that would fold or invert the layout."""

    if values.get("target_radius", 1.0) <= 0:
        raise ValueError("target_radius must be positive")
    for name in (
        "push_strength",
        "damping",
        "exaggeration",
        "projection_scale",
        "parent_exclusion_radius",
        "parent_exclusion_padding",
    ):
        if values.get(name, 0.0) < 0:
            raise ValueError(f"{name} must not be negative")
    if values.get("max_iterations", 0) < 0:
        raise ValueError("max_iterations must not be negative")
    if any(distance < 0 for distance in values.get("min_distance", {}).values()):
        raise ValueError("min_distance thresholds must not be negative")


@dataclass
class LayoutItem:
    """One entity entering the pipeline: a featured node or a loaded track."""

    key: str
    path: Tuple[str, ...]
    depth: int
    features: FeatureVector
    group: str  # key of the parent; identifies the sibling set


@dataclass
class LayoutDiagnostics:
    """Diagnostics produced during a layout run."""

    node_count: int = 0
    max_raw_radius: float = 0.0
    adaptive_scale: float = 1.0
    iterations_run: int = 0
    overlaps_per_iteration: List[int] = field(default_factory=list)
    residual_overlaps: int = 0
    local_groups: List[str] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)


@dataclass
class LayoutResult:
    """Final positions plus the intermediate stages used to reach them."""

    positions: Dict[str, Position]
    raw_positions: Dict[str, Position] = field(default_factory=dict)
    scaled_positions: Dict[str, Position] = field(default_factory=dict)
    diagnostics: LayoutDiagnostics = field(default_factory=LayoutDiagnostics)

    def as_dict(self) -> Dict[str, Dict[str, float]]:
        return {key: position.as_dict() for key, position in self.positions.items()}


@dataclass
class AxisLabel:
    """Where the label ring draws a feature's high and low poles."""

    feature: str
    index: int
    high_angle: float
    low_angle: float
