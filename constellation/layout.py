"""Hierarchical layout: tree + config -> final position map."""
from __future__ import annotations

from typing import Any, Collection, Dict, Iterable, List, Optional, Set, Tuple, Union

from . import cache, collisions, config, manifest as manifest_io, models, normalization, projection, scaling, utils

LocalQuantileSelector = Union[bool, str, Iterable[str]]


def layout(
    manifest: models.Manifest,
    layout_config: Optional[models.LayoutConfig] = None,
    *,
    use_local_quantiles: LocalQuantileSelector = False,
    enabled_features: Optional[Collection[str]] = None,
    include_leaves: bool = False,
    cache_client: Optional[cache.InMemoryCache] = None,
    logger: Optional[Any] = None,
) -> models.LayoutResult:
    """Lay out every featured node of the manifest tree.

    ``use_local_quantiles`` selects which sibling sets are normalized against
    quantiles of just that set: ``True`` for all of them, or the parent keys
    of specific sets (``""`` is the set of root genres). Everything else uses
    the manifest's global quantiles.
    """

    layout_config = layout_config or models.LayoutConfig.from_display(manifest.display)
    local_selector = _freeze_selector(use_local_quantiles)
    enabled = sorted(enabled_features) if enabled_features is not None else None

    def compute() -> models.LayoutResult:
        items = collect_items(manifest, layout_config, include_leaves=include_leaves)
        groups = _local_groups(local_selector, {item.group for item in items})
        return _run_pipeline(
            items,
            manifest.quantiles,
            layout_config,
            local_groups=groups,
            enabled=enabled,
            logger=logger,
        )

    if not cache_client:
        return compute()
    key = cache.build_cache_key(
        manifest_signature(manifest),
        layout_config.stable_signature(),
        local_selector,
        enabled,
        include_leaves,
    )
    return cache_client.get_or_set(config.CACHE_NAMESPACES["layouts"], key, compute)


def layout_children(
    manifest: models.Manifest,
    parent_key: str,
    layout_config: Optional[models.LayoutConfig] = None,
    *,
    use_local_quantiles: bool = True,
    enabled_features: Optional[Collection[str]] = None,
    include_leaves: bool = True,
    cache_client: Optional[cache.InMemoryCache] = None,
    logger: Optional[Any] = None,
) -> models.LayoutResult:
    """Zoomed view of one node: its children and tracks around it.

    The parent is pinned at the origin with an exclusion zone around it; the
    visible set is normalized against its own quantiles unless
    ``use_local_quantiles`` is turned off. Raises ``KeyError`` for an unknown
    parent.
    """

    parent = manifest_io.find_node(manifest, parent_key)
    if parent is None:
        raise KeyError(f"Unknown node: {parent_key}")

    layout_config = layout_config or models.LayoutConfig.from_display(manifest.display)
    enabled = sorted(enabled_features) if enabled_features is not None else None

    def compute() -> models.LayoutResult:
        averaged = _container_features(parent) if layout_config.average_container_features else {}
        items: List[models.LayoutItem] = []
        for child in parent.children:
            features = child.features if child.features is not None else averaged.get(child.key)
            if features is not None:
                items.append(_item(child.key, child.path, features))
        if include_leaves:
            items.extend(_leaf_items(parent, {node.key for node in parent.walk()}))
        groups = {parent.key} if use_local_quantiles else set()
        return _run_pipeline(
            items,
            manifest.quantiles,
            layout_config,
            local_groups=groups,
            enabled=enabled,
            anchor=parent.path,
            logger=logger,
        )

    if not cache_client:
        return compute()
    key = cache.build_cache_key(
        manifest_signature(manifest),
        layout_config.stable_signature(),
        parent.key,
        use_local_quantiles,
        enabled,
        include_leaves,
    )
    return cache_client.get_or_set(config.CACHE_NAMESPACES["child_layouts"], key, compute)


def collect_items(
    manifest: models.Manifest,
    layout_config: models.LayoutConfig,
    *,
    include_leaves: bool = False,
) -> List[models.LayoutItem]:
    """Depth-first list of every node (and optionally track) that carries features."""

    averaged: Dict[str, models.FeatureVector] = {}
    if layout_config.average_container_features:
        for root in manifest.roots:
            averaged.update(_container_features(root))

    items: List[models.LayoutItem] = []
    seen: Set[str] = {node.key for node in manifest.walk()}
    for node in manifest.walk():
        features = node.features if node.features is not None else averaged.get(node.key)
        if features is not None:
            items.append(_item(node.key, node.path, features))
        if include_leaves:
            items.extend(_leaf_items(node, seen))
    return items


def manifest_signature(manifest: models.Manifest) -> str:
    """Stable hash of everything in the manifest that can affect a layout."""

    payload = {
        "nodes": [
            [
                node.key,
                node.features,
                [[leaf.name, leaf.features] for leaf in node.leaves],
            ]
            for node in manifest.walk()
        ],
        "quantiles": {feature: quantile.as_dict() for feature, quantile in manifest.quantiles.items()},
    }
    return utils.hash_payload(payload)


def _run_pipeline(
    items: List[models.LayoutItem],
    global_quantiles: models.Quantiles,
    layout_config: models.LayoutConfig,
    *,
    local_groups: Set[str],
    enabled: Optional[Collection[str]] = None,
    anchor: Optional[Tuple[str, ...]] = None,
    logger: Optional[Any] = None,
) -> models.LayoutResult:
    diagnostics = models.LayoutDiagnostics(node_count=len(items), local_groups=sorted(local_groups))
    designated = layout_config.designated_features()

    quantiles_by_group: Dict[str, models.Quantiles] = {}
    for group in sorted(local_groups):
        members = [item.features for item in items if item.group == group]
        if members:
            quantiles_by_group[group] = normalization.compute_quantiles(
                members, designated, fallback=global_quantiles
            )

    raw: Dict[str, models.Position] = {}
    percentiles: Dict[str, Optional[Dict[str, float]]] = {}
    for item in items:
        quantiles = quantiles_by_group.get(item.group, global_quantiles)
        raw[item.key] = projection.project(item.features, quantiles, layout_config, enabled, item.depth)
        percentiles[item.key] = projection.feature_percentiles(item.features, quantiles, layout_config, enabled)

    max_radius, factor = scaling.adaptive_scale(raw, layout_config.target_radius)
    diagnostics.max_raw_radius = max_radius
    diagnostics.adaptive_scale = factor
    scaled = scaling.scale(raw, layout_config.target_radius)

    paths = {item.key: item.path for item in items}
    anchor_key: Optional[str] = None
    if anchor is not None:
        anchor_key = config.PATH_SEPARATOR.join(anchor)
        paths[anchor_key] = anchor
        scaled[anchor_key] = models.Position(0.0, 0.0)
        percentiles[anchor_key] = None

    if not items:
        diagnostics.notes.append("no featured nodes to lay out")

    positions = collisions.resolve(
        scaled,
        percentiles,
        layout_config,
        paths=paths,
        anchor=anchor_key,
        diagnostics=diagnostics,
        logger=logger,
    )
    if diagnostics.residual_overlaps:
        diagnostics.notes.append(
            f"{diagnostics.residual_overlaps} overlapping pairs remain after "
            f"{diagnostics.iterations_run} passes"
        )

    if logger:
        logger.debug(
            "layout_complete",
            extra={
                "nodes": len(positions),
                "adaptive_scale": factor,
                "iterations": diagnostics.iterations_run,
                "residual_overlaps": diagnostics.residual_overlaps,
            },
        )

    return models.LayoutResult(
        positions=positions,
        raw_positions=raw,
        scaled_positions=scaled,
        diagnostics=diagnostics,
    )


def _item(key: str, path: tuple, features: models.FeatureVector) -> models.LayoutItem:
    return models.LayoutItem(
        key=key,
        path=path,
        depth=len(path) - 1,
        features=features,
        group=config.PATH_SEPARATOR.join(path[:-1]),
    )


def _leaf_items(node: models.Node, seen: Set[str]) -> List[models.LayoutItem]:
    """Tracks of ``node`` that carry features, keyed apart from everything in ``seen``."""

    items = []
    for index, leaf in enumerate(node.leaves):
        if leaf.features is None:
            continue
        label = leaf.name
        if node.leaf_key(leaf) in seen:
            label = f"{leaf.name}#{index}"
        path = node.path + (label,)
        key = config.PATH_SEPARATOR.join(path)
        seen.add(key)
        items.append(_item(key, path, leaf.features))
    return items


def _container_features(node: models.Node) -> Dict[str, models.FeatureVector]:
    """Mean child features for every featureless descendant of ``node`` (itself included)."""

    averaged: Dict[str, models.FeatureVector] = {}

    def visit(current: models.Node) -> Optional[models.FeatureVector]:
        child_vectors = [vector for vector in (visit(child) for child in current.children) if vector is not None]
        if current.features is not None:
            return current.features
        if not child_vectors:
            return None
        totals: Dict[str, float] = {}
        counts: Dict[str, int] = {}
        for vector in child_vectors:
            for feature, value in vector.items():
                number = utils.as_number(value)
                if number is None:
                    continue
                totals[feature] = totals.get(feature, 0.0) + number
                counts[feature] = counts.get(feature, 0) + 1
        mean = {feature: totals[feature] / counts[feature] for feature in totals}
        averaged[current.key] = mean
        return mean

    visit(node)
    return averaged


def _freeze_selector(selector: LocalQuantileSelector) -> Union[bool, tuple]:
    if isinstance(selector, bool) or selector is None:
        return bool(selector)
    if isinstance(selector, str):
        return (selector,)
    return tuple(sorted(set(selector)))


def _local_groups(selector: Union[bool, tuple], groups: Set[str]) -> Set[str]:
    if selector is True:
        return set(groups)
    if not selector:
        return set()
    return set(selector) & groups
