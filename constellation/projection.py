"""Angular vector-sum projection of feature vectors onto the plane."""
from __future__ import annotations

import math
from typing import Any, Collection, Dict, List, Mapping, Optional, Sequence

from . import models, normalization


def feature_angles(features: Sequence[str]) -> Dict[str, float]:
    """Primary angle of every designated feature.

    Features sit on alternating segments of a 2N-segment ring so that the
    direction opposite a feature's axis is that same feature's low pole. The
    label ring must use this function too or the map's meaning breaks.
    """

    if not features:
        return {}
    step = (2 * math.pi) / (2 * len(features))
    return {feature: index * step for index, feature in enumerate(features)}


def axis_labels(layout_config: models.LayoutConfig) -> List[models.AxisLabel]:
    """High/low pole angles for the renderer's ring of feature names."""

    angles = feature_angles(layout_config.designated_features())
    labels = []
    for index, (feature, angle) in enumerate(angles.items()):
        labels.append(
            models.AxisLabel(
                feature=feature,
                index=index,
                high_angle=angle,
                low_angle=(angle + math.pi) % (2 * math.pi),
            )
        )
    return labels


def enabled_subset(
    layout_config: models.LayoutConfig, enabled: Optional[Collection[str]] = None
) -> List[str]:
    designated = layout_config.designated_features()
    if enabled is None:
        return designated
    allowed = set(enabled)
    return [feature for feature in designated if feature in allowed]


def feature_percentiles(
    features: Mapping[str, Any],
    quantiles: Mapping[str, models.Quantile],
    layout_config: models.LayoutConfig,
    enabled: Optional[Collection[str]] = None,
) -> Dict[str, float]:
    """Reshaped percentile of every enabled feature that has a value."""

    percentiles: Dict[str, float] = {}
    for feature in enabled_subset(layout_config, enabled):
        if features.get(feature) is None:
            continue
        percentiles[feature] = normalization.percentile_for(
            features, feature, quantiles, layout_config.contrast
        )
    return percentiles


def project(
    features: Mapping[str, Any],
    quantiles: Mapping[str, models.Quantile],
    layout_config: models.LayoutConfig,
    enabled: Optional[Collection[str]] = None,
    depth: int = 0,
) -> models.Position:
    """Project one feature vector to its raw (unscaled) 2D point."""

    angles = feature_angles(layout_config.designated_features())
    exaggeration = layout_config.exaggeration_for(depth)

    x = 0.0
    y = 0.0
    for feature in enabled_subset(layout_config, enabled):
        percentile = normalization.percentile_for(
            features, feature, quantiles, layout_config.contrast
        )
        weight = (percentile - 0.5) * 2 * exaggeration
        angle = angles[feature]
        x += weight * math.cos(angle)
        y += weight * math.sin(angle)

    return models.Position(
        x=x * layout_config.projection_scale,
        y=y * layout_config.projection_scale,
    )
