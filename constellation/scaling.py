"""Adaptive radial fitting with logarithmic compression."""
from __future__ import annotations

import math
from typing import Dict, Mapping, Tuple

from . import models


def clamp_to_radius(x: float, y: float, radius: float) -> Tuple[float, float]:
    """Scale ``(x, y)`` back onto the boundary circle if it lies outside it."""

    distance = math.hypot(x, y)
    if distance > radius and distance > 0:
        factor = radius / distance
        return x * factor, y * factor
    return x, y


def adaptive_scale(points: Mapping[str, models.Position], target_radius: float) -> Tuple[float, float]:
    """Return ``(max_radius, scale)`` fitting the farthest point to the target radius."""

    max_radius = max((point.norm() for point in points.values()), default=0.0)
    if max_radius <= 0:
        return max_radius, 1.0
    return max_radius, target_radius / max_radius


def compress(distance: float, target_radius: float) -> float:
    """Logarithmic radial compression; maps [0, R] onto [0, R] monotonically."""

    if target_radius <= 0 or distance <= 0:
        return 0.0
    return target_radius * math.log2(1 + distance / target_radius)


def scale(points: Mapping[str, models.Position], target_radius: float) -> Dict[str, models.Position]:
    """Fit the point cloud to ``target_radius`` and compress it radially."""

    _, factor = adaptive_scale(points, target_radius)
    scaled: Dict[str, models.Position] = {}
    for key, point in points.items():
        x = point.x * factor
        y = point.y * factor
        distance = math.hypot(x, y)
        if distance > 0:
            ratio = compress(distance, target_radius) / distance
            x, y = clamp_to_radius(x * ratio, y * ratio, target_radius)
        scaled[key] = models.Position(x=x, y=y)
    return scaled
