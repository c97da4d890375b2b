"""Damped, feature-aware collision relaxation."""
from __future__ import annotations

import math
from itertools import combinations
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from . import models, projection, scaling, utils

Direction = Tuple[float, float]
NodePath = Union[str, Sequence[str]]


def relationship(first: NodePath, second: NodePath) -> str:
    """Classify two nodes as ``parent_child``, ``sibling`` or ``unrelated``.

    Nodes are given as path tuples, or as dotted keys when no segment
    contains the separator.
    """

    a = _as_path(first)
    b = _as_path(second)
    if len(a) > len(b):
        a, b = b, a
    if len(b) - len(a) == 1 and b[: len(a)] == a:
        return "parent_child"
    if a and len(a) == len(b) and a[:-1] == b[:-1]:
        return "sibling"
    return "unrelated"


def dominant_direction(
    percentiles: Optional[Mapping[str, float]], angles: Mapping[str, float]
) -> Optional[Direction]:
    """Unit vector along the node's most extreme feature, toward its high or low pole.

    Returns ``None`` when the node has no feature data or every feature sits
    exactly at the midpoint. Ties go to the earlier feature on the ring.
    """

    if not percentiles:
        return None
    strongest: Optional[str] = None
    strongest_deviation = 0.0
    for feature in angles:
        if feature not in percentiles:
            continue
        deviation = abs(percentiles[feature] - 0.5)
        if deviation > strongest_deviation:
            strongest = feature
            strongest_deviation = deviation
    if strongest is None:
        return None
    sign = 1.0 if percentiles[strongest] > 0.5 else -1.0
    angle = angles[strongest]
    return sign * math.cos(angle), sign * math.sin(angle)


def count_overlaps(
    points: Mapping[str, models.Position],
    layout_config: models.LayoutConfig,
    paths: Optional[Mapping[str, Tuple[str, ...]]] = None,
) -> int:
    """Number of node pairs closer than their relationship's minimum distance."""

    total = 0
    for first, second in combinations(sorted(points), 2):
        a = points[first]
        b = points[second]
        distance = math.hypot(b.x - a.x, b.y - a.y)
        if distance < layout_config.min_distance_for(relationship(_path(first, paths), _path(second, paths))):
            total += 1
    return total


def resolve(
    points: Mapping[str, models.Position],
    node_features: Mapping[str, Optional[Mapping[str, float]]],
    layout_config: models.LayoutConfig,
    *,
    paths: Optional[Mapping[str, Tuple[str, ...]]] = None,
    anchor: Optional[str] = None,
    diagnostics: Optional[models.LayoutDiagnostics] = None,
    logger: Optional[Any] = None,
) -> Dict[str, models.Position]:
    """Push overlapping nodes apart along their dominant-feature axes.

    ``node_features`` maps node keys to reshaped feature percentiles as
    produced by ``projection.feature_percentiles``. Pairs are visited in
    lexicographic key order. ``paths`` maps keys to tree paths for
    relationship lookups; keys missing from it are split on the separator.
    When ``anchor`` names a node it stays pinned and everything inside its
    exclusion zone is first pushed radially outward.
    Residual overlaps after ``max_iterations`` passes are accepted.
    """

    coords: Dict[str, List[float]] = {key: [point.x, point.y] for key, point in points.items()}
    keys = sorted(coords)
    radius = layout_config.target_radius
    angles = projection.feature_angles(layout_config.designated_features())
    directions = {key: dominant_direction(node_features.get(key), angles) for key in keys}
    pinned = anchor if anchor in coords else None

    if pinned is not None:
        _apply_parent_exclusion(coords, keys, pinned, layout_config)

    pairs = [
        (first, second, layout_config.min_distance_for(relationship(_path(first, paths), _path(second, paths))))
        for first, second in combinations(keys, 2)
    ]

    overlaps_per_iteration: List[int] = []
    for iteration in range(max(layout_config.max_iterations, 0)):
        strength = layout_config.push_strength * layout_config.damping ** iteration
        overlaps = 0
        for first, second, min_distance in pairs:
            a = coords[first]
            b = coords[second]
            dx = b[0] - a[0]
            dy = b[1] - a[1]
            distance = math.hypot(dx, dy)
            if not 0 < distance < min_distance:
                continue
            overlaps += 1
            push = (min_distance - distance) * strength / 2
            first_direction = directions[first] or (-dx / distance, -dy / distance)
            second_direction = directions[second] or (dx / distance, dy / distance)
            if first != pinned:
                _displace(a, first_direction, push, radius)
            if second != pinned:
                _displace(b, second_direction, push, radius)
        overlaps_per_iteration.append(overlaps)
        if logger:
            logger.debug(
                "collision_pass",
                extra={"iteration": iteration, "overlaps": overlaps, "strength": strength},
            )
        if not overlaps:
            break

    resolved = {key: models.Position(x=coords[key][0], y=coords[key][1]) for key in points}

    if diagnostics is not None:
        diagnostics.iterations_run = len(overlaps_per_iteration)
        diagnostics.overlaps_per_iteration = overlaps_per_iteration
        diagnostics.residual_overlaps = count_overlaps(resolved, layout_config, paths)
    return resolved


def _displace(coord: List[float], direction: Direction, distance: float, radius: float) -> None:
    x = coord[0] + direction[0] * distance
    y = coord[1] + direction[1] * distance
    coord[0], coord[1] = scaling.clamp_to_radius(x, y, radius)


def _apply_parent_exclusion(
    coords: Dict[str, List[float]],
    keys: List[str],
    anchor: str,
    layout_config: models.LayoutConfig,
) -> None:
    exclusion = layout_config.parent_exclusion_radius
    if exclusion <= 0:
        return
    centre_x, centre_y = coords[anchor]
    for key in keys:
        if key == anchor:
            continue
        coord = coords[key]
        dx = coord[0] - centre_x
        dy = coord[1] - centre_y
        distance = math.hypot(dx, dy)
        if distance >= exclusion:
            continue
        angle = math.atan2(dy, dx)
        target = max(exclusion, distance + layout_config.parent_exclusion_padding)
        coord[0], coord[1] = scaling.clamp_to_radius(
            centre_x + math.cos(angle) * target,
            centre_y + math.sin(angle) * target,
            layout_config.target_radius,
        )


def _as_path(node: NodePath) -> Tuple[str, ...]:
    if isinstance(node, str):
        return utils.split_key(node)
    return tuple(node)


def _path(key: str, paths: Optional[Mapping[str, Tuple[str, ...]]]) -> Tuple[str, ...]:
    if paths and key in paths:
        return tuple(paths[key])
    return utils.split_key(key)
