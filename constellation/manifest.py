"""Reading the game's genre constellation manifest into engine models."""
from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from . import config, models, utils

PROFILE_FEATURES = (
    "danceability",
    "energy",
    "speechiness",
    "acousticness",
    "valence",
    "popularity",
    "instrumentalness",
)


def load_manifest(path: Union[str, Path]) -> models.Manifest:
    """Read and parse a manifest JSON file."""

    manifest_path = Path(path)
    if not manifest_path.exists():
        raise ValueError(f"Manifest file not found: {manifest_path}")
    data = json.loads(manifest_path.read_text(encoding="utf-8"))
    return parse_manifest(data)


def parse_manifest(data: Mapping[str, Any]) -> models.Manifest:
    """Convert the manifest's JSON shape into a ``Manifest``.

    Every top-level key other than ``global`` and ``build`` is a root genre.
    Structural problems raise ``ValueError`` naming the offending path;
    unusable feature values are dropped and later treated as missing.
    """

    if not isinstance(data, Mapping):
        raise ValueError("Manifest must be a JSON object")

    global_block = data.get("global") or {}
    if not isinstance(global_block, Mapping):
        raise ValueError("Manifest 'global' block must be an object")

    roots = [
        _parse_node(str(key), value, (str(key),))
        for key, value in data.items()
        if key not in config.MANIFEST_RESERVED_KEYS
    ]
    build = data.get("build") or {}

    return models.Manifest(
        roots=roots,
        quantiles=_parse_quantiles(global_block.get("quantiles") or {}),
        display=_parse_display(global_block.get("display") or {}),
        build=dict(build) if isinstance(build, Mapping) else {"value": build},
    )


def find_node(manifest: models.Manifest, key: str) -> Optional[models.Node]:
    path = utils.split_key(key)
    if not path:
        return None
    candidates = manifest.roots
    node: Optional[models.Node] = None
    for name in path:
        node = next((candidate for candidate in candidates if candidate.name == name), None)
        if node is None:
            return None
        candidates = node.children
    return node


def track_features(profile: Mapping[str, Any]) -> models.FeatureVector:
    """Feature vector of a loaded track profile.

    Accepts either the track object itself or a profile wrapping it under
    ``tracks[0]``. Raw tempo (BPM) becomes ``tempo_norm`` over the 60-180 BPM
    range.
    """

    track: Mapping[str, Any] = profile
    tracks = profile.get("tracks")
    if isinstance(tracks, list) and tracks and isinstance(tracks[0], Mapping):
        track = tracks[0]

    features: models.FeatureVector = {}
    for name in PROFILE_FEATURES:
        number = utils.as_number(track.get(name))
        if number is not None:
            features[name] = number
    tempo = utils.as_number(track.get("tempo"))
    if tempo is not None:
        features["tempo_norm"] = utils.clamp((tempo - config.TEMPO_MIN_BPM) / config.TEMPO_RANGE_BPM)
    return features


def attach_track_features(leaf: models.Leaf, profile: Mapping[str, Any]) -> models.Leaf:
    """Return a copy of ``leaf`` carrying the features of its loaded profile."""

    return replace(leaf, features=track_features(profile))


def _parse_display(display: Mapping[str, Any]) -> models.DisplayConfig:
    if not isinstance(display, Mapping):
        raise ValueError("Manifest 'global.display' block must be an object")
    defaults = models.DisplayConfig()
    angles = display.get("feature_angles") or defaults.feature_angles
    if not isinstance(angles, list):
        raise ValueError("Manifest 'global.display.feature_angles' must be a list")
    scale = utils.as_number(display.get("projection_scale"))
    gamma = utils.as_number(display.get("speechiness_contrast_gamma"))
    return models.DisplayConfig(
        feature_angles=[str(feature) for feature in angles],
        projection_scale=scale if scale is not None else defaults.projection_scale,
        contrast_gamma=gamma if gamma is not None else defaults.contrast_gamma,
    )


def _parse_quantiles(payload: Mapping[str, Any]) -> models.Quantiles:
    if not isinstance(payload, Mapping):
        raise ValueError("Manifest 'global.quantiles' must be an object")
    quantiles: models.Quantiles = {}
    for feature, entry in payload.items():
        if not isinstance(entry, Mapping):
            continue
        try:
            quantiles[str(feature)] = models.Quantile.from_mapping(entry)
        except (TypeError, ValueError):
            continue
    return quantiles


def _parse_node(name: str, payload: Any, path: Tuple[str, ...]) -> models.Node:
    key = config.PATH_SEPARATOR.join(path)
    if not isinstance(payload, Mapping):
        raise ValueError(f"Manifest node '{key}' must be an object")

    subgenres = payload.get("subgenres") or {}
    if not isinstance(subgenres, Mapping):
        raise ValueError(f"Manifest node '{key}' has non-object 'subgenres'")

    seeds = payload.get("seeds") or payload.get("_seeds") or []
    if not isinstance(seeds, list):
        raise ValueError(f"Manifest node '{key}' has non-list 'seeds'")

    return models.Node(
        name=name,
        path=path,
        features=_parse_features(payload.get("features"), key),
        children=[
            _parse_node(str(child), value, path + (str(child),))
            for child, value in subgenres.items()
        ],
        leaves=[_parse_leaf(seed, key, index) for index, seed in enumerate(seeds)],
    )


def _parse_leaf(seed: Any, key: str, index: int) -> models.Leaf:
    if not isinstance(seed, Mapping):
        raise ValueError(f"Seed {index} of manifest node '{key}' must be an object")
    known = {"name", "artist", "uri", "filename", "features"}
    return models.Leaf(
        name=str(seed.get("name") or seed.get("uri") or f"seed-{index}"),
        artist=str(seed.get("artist") or ""),
        uri=seed.get("uri"),
        filename=seed.get("filename"),
        features=_parse_features(seed.get("features"), f"{key}[{index}]"),
        metadata={name: value for name, value in seed.items() if name not in known},
    )


def _parse_features(raw: Any, key: str) -> Optional[models.FeatureVector]:
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        raise ValueError(f"Features of '{key}' must be an object")
    features: Dict[str, float] = {}
    for name, value in raw.items():
        number = utils.as_number(value)
        if number is not None:
            features[str(name)] = number
    return features


def describe(manifest: models.Manifest) -> Dict[str, Any]:
    """Small summary of the tree, printed by the CLI."""

    nodes: List[models.Node] = list(manifest.walk())
    return {
        "roots": len(manifest.roots),
        "nodes": len(nodes),
        "featured_nodes": sum(1 for node in nodes if node.features is not None),
        "seeds": sum(len(node.leaves) for node in nodes),
        "quantile_features": sorted(manifest.quantiles),
    }
