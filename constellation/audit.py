"""Layout audit: how far collision resolution moved nodes from their ideal spots."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from . import config, models


@dataclass
class NodeDisplacement:
    key: str
    ideal: models.Position
    actual: models.Position
    displacement: float
    displacement_pct: float
    angle_shift_degrees: float


@dataclass
class AuditReport:
    """Summary of a layout run, ranked by collision displacement."""

    node_count: int
    adaptive_scale: float
    max_raw_radius: float
    average_displacement: float
    max_displacement: float
    moved_over_20: int
    moved_over_50: int
    residual_overlaps: int
    most_displaced: List[NodeDisplacement] = field(default_factory=list)
    root_nodes: List[NodeDisplacement] = field(default_factory=list)
    outside_boundary: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        def row(entry: NodeDisplacement) -> Dict[str, Any]:
            return {
                "key": entry.key,
                "ideal": entry.ideal.as_dict(),
                "actual": entry.actual.as_dict(),
                "displacement": entry.displacement,
                "displacement_pct": entry.displacement_pct,
                "angle_shift_degrees": entry.angle_shift_degrees,
            }

        return {
            "node_count": self.node_count,
            "adaptive_scale": self.adaptive_scale,
            "max_raw_radius": self.max_raw_radius,
            "average_displacement": self.average_displacement,
            "max_displacement": self.max_displacement,
            "moved_over_20": self.moved_over_20,
            "moved_over_50": self.moved_over_50,
            "residual_overlaps": self.residual_overlaps,
            "most_displaced": [row(entry) for entry in self.most_displaced],
            "root_nodes": [row(entry) for entry in self.root_nodes],
            "outside_boundary": list(self.outside_boundary),
        }


def audit_layout(
    result: models.LayoutResult,
    layout_config: models.LayoutConfig,
    *,
    top: int = config.AUDIT_TOP_NODES,
    tolerance: float = 1e-9,
) -> AuditReport:
    """Compare final positions with the scaled, pre-collision ones."""

    entries: List[NodeDisplacement] = []
    for key, actual in result.positions.items():
        ideal = result.scaled_positions.get(key, actual)
        entries.append(_displacement(key, ideal, actual))

    entries.sort(key=lambda entry: (-entry.displacement, entry.key))
    total = sum(entry.displacement for entry in entries)

    return AuditReport(
        node_count=len(entries),
        adaptive_scale=result.diagnostics.adaptive_scale,
        max_raw_radius=result.diagnostics.max_raw_radius,
        average_displacement=total / len(entries) if entries else 0.0,
        max_displacement=entries[0].displacement if entries else 0.0,
        moved_over_20=sum(1 for entry in entries if entry.displacement > 20),
        moved_over_50=sum(1 for entry in entries if entry.displacement > 50),
        residual_overlaps=result.diagnostics.residual_overlaps,
        most_displaced=entries[: max(top, 0)],
        root_nodes=[entry for entry in entries if config.PATH_SEPARATOR not in entry.key],
        outside_boundary=sorted(
            key
            for key, position in result.positions.items()
            if position.norm() > layout_config.target_radius + tolerance
        ),
    )


def _displacement(key: str, ideal: models.Position, actual: models.Position) -> NodeDisplacement:
    moved = math.hypot(actual.x - ideal.x, actual.y - ideal.y)
    ideal_distance = ideal.norm()
    shift: Optional[float] = None
    if ideal_distance > 0 and actual.norm() > 0:
        delta = math.atan2(actual.y, actual.x) - math.atan2(ideal.y, ideal.x)
        shift = math.degrees(math.atan2(math.sin(delta), math.cos(delta)))
    return NodeDisplacement(
        key=key,
        ideal=ideal,
        actual=actual,
        displacement=moved,
        displacement_pct=(moved / ideal_distance * 100) if ideal_distance > 0 else 0.0,
        angle_shift_degrees=shift or 0.0,
    )
