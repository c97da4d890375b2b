"""Quantile-based feature normalization and per-feature contrast curves."""
from __future__ import annotations

import math
from typing import Any, Iterable, Mapping, Optional, Sequence

from . import config, models, utils

NEUTRAL: float = 0.5


def normalize(value: Any, quantile: Optional[models.Quantile]) -> float:
    """Map a raw feature value onto an approximate percentile in [0, 1].

    Missing values and missing quantiles are neutral (0.5). A constant feature
    (p10 == p90) carries no information and is neutral too. Zero-width halves
    of a partially degenerate interval contribute a fraction of 0.
    """

    number = utils.as_number(value)
    if number is None or quantile is None:
        return NEUTRAL
    if quantile.degenerate:
        return NEUTRAL

    p10, p50, p90 = quantile.p10, quantile.p50, quantile.p90
    if number <= p10:
        percentile = 0.1
    elif number <= p50:
        percentile = 0.1 + 0.4 * _fraction(number - p10, p50 - p10)
    elif number <= p90:
        percentile = 0.5 + 0.4 * _fraction(number - p50, p90 - p50)
    else:
        percentile = 0.9 + 0.1 * min(1.0, _fraction(number - p90, p90 - p50))
    return utils.clamp(percentile)


def reshape(percentile: float, feature: str, contrast: Mapping[str, float]) -> float:
    """Apply the feature's contrast curve, if the policy table names one."""

    gamma = contrast.get(feature)
    if not gamma or gamma <= 0:
        return percentile
    return utils.clamp(percentile) ** (1.0 / gamma)


def percentile_for(
    features: Mapping[str, Any],
    feature: str,
    quantiles: Mapping[str, models.Quantile],
    contrast: Mapping[str, float],
) -> float:
    """Normalize then reshape one feature of a vector.

    The contrast curve only applies to percentiles derived from a present
    value so that missing data stays exactly neutral.
    """

    value = features.get(feature)
    if utils.as_number(value) is None:
        return NEUTRAL
    return reshape(normalize(value, quantiles.get(feature)), feature, contrast)


def compute_quantiles(
    vectors: Iterable[Mapping[str, Any]],
    features: Sequence[str],
    fallback: Optional[Mapping[str, models.Quantile]] = None,
) -> models.Quantiles:
    """Compute p10/p50/p90 per feature over a population of feature vectors.

    Breakpoints are taken with the floor-index rule ``sorted[floor(n * q)]``.
    Features with no usable values fall back to ``fallback`` (normally the
    global quantiles), else to the default (0, 0.5, 1) interval.
    """

    population = list(vectors)
    fallback = fallback or {}
    quantiles: models.Quantiles = {}
    for feature in features:
        values = sorted(
            number
            for number in (utils.as_number(vector.get(feature)) for vector in population)
            if number is not None and math.isfinite(number)
        )
        if not values:
            default = fallback.get(feature)
            quantiles[feature] = default or models.Quantile(*config.DEFAULT_QUANTILE)
            continue
        p10, p50, p90 = (values[int(math.floor(len(values) * point))] for point in config.QUANTILE_POINTS)
        quantiles[feature] = models.Quantile(p10=p10, p50=p50, p90=p90)
    return quantiles


def _fraction(numerator: float, denominator: float) -> float:
    if denominator <= 0:
        return 0.0
    return numerator / denominator
