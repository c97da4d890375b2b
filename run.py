#!/usr/bin/env python3
"""Compute a constellation layout for a manifest file and print an audit."""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Iterable

from constellation import audit, env, manifest as manifest_io, models
from constellation.layout import layout, layout_children


def parse_args(argv: Iterable[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Lay out a genre constellation manifest and report node displacement.",
    )
    parser.add_argument(
        "--manifest",
        type=Path,
        help="Path to the manifest JSON (default: $CONSTELLATION_MANIFEST).",
    )
    parser.add_argument(
        "--parent",
        help="Lay out the zoomed view of this node key (e.g. 'rock.indie') instead of the full tree.",
    )
    parser.add_argument(
        "--local",
        action="store_true",
        help="Normalize every sibling set against its own quantiles.",
    )
    parser.add_argument(
        "--include-leaves",
        action="store_true",
        help="Include seed tracks that carry features.",
    )
    parser.add_argument(
        "--disable",
        action="append",
        default=[],
        metavar="FEATURE",
        help="Disable a feature axis (repeatable).",
    )
    parser.add_argument(
        "--top",
        type=int,
        default=20,
        help="Number of most displaced nodes to print (default: 20).",
    )
    parser.add_argument(
        "--json",
        type=Path,
        help="Optional path to write positions and the audit as JSON.",
    )
    return parser.parse_args(list(argv))


def main(argv: Iterable[str]) -> int:
    args = parse_args(argv)

    print("[1/4] Loading manifest...", flush=True)
    env.load_env()
    try:
        manifest_path = args.manifest or Path(env.require({"CONSTELLATION_MANIFEST": ""})["CONSTELLATION_MANIFEST"])
        manifest = manifest_io.load_manifest(manifest_path)
        layout_config = models.LayoutConfig.from_display(manifest.display, **env.layout_overrides_from_env())
    except (RuntimeError, ValueError) as exc:
        print(f"Failed to load manifest: {exc}", file=sys.stderr)
        return 1
    summary = manifest_io.describe(manifest)
    print(
        f"[1/4] {summary['roots']} root genres, {summary['featured_nodes']}/{summary['nodes']} "
        f"nodes with features, {summary['seeds']} seeds.\n",
        flush=True,
    )

    enabled = None
    if args.disable:
        disabled = set(args.disable)
        enabled = [feature for feature in layout_config.designated_features() if feature not in disabled]

    print("[2/4] Computing layout...", flush=True)
    try:
        if args.parent:
            result = layout_children(
                manifest,
                args.parent,
                layout_config,
                enabled_features=enabled,
                include_leaves=args.include_leaves,
            )
        else:
            result = layout(
                manifest,
                layout_config,
                use_local_quantiles=args.local,
                enabled_features=enabled,
                include_leaves=args.include_leaves,
            )
    except KeyError as exc:
        print(f"Layout failed: {exc}", file=sys.stderr)
        return 1

    diagnostics = result.diagnostics
    print(
        f"[2/4] {diagnostics.node_count} nodes, max raw radius {diagnostics.max_raw_radius:.2f}, "
        f"adaptive scale {diagnostics.adaptive_scale:.4f}, "
        f"overlaps per pass {diagnostics.overlaps_per_iteration}.\n",
        flush=True,
    )

    report = audit.audit_layout(result, layout_config, top=args.top)
    print("[3/4] Most displaced nodes:")
    for entry in report.most_displaced:
        print(
            f" - {entry.key:40s} moved {entry.displacement:6.1f} "
            f"({entry.displacement_pct:5.1f}% of ideal) angle shift {entry.angle_shift_degrees:6.1f}"
        )
    print(
        "\n[3/4] Statistics: "
        f"average={report.average_displacement:.1f} max={report.max_displacement:.1f} "
        f"over20={report.moved_over_20} over50={report.moved_over_50} "
        f"residual_overlaps={report.residual_overlaps}"
    )
    if report.outside_boundary:
        print(f"[3/4] Outside target radius: {', '.join(report.outside_boundary)}")

    if args.json:
        print(f"\n[4/4] Writing positions to {args.json}...", flush=True)
        args.json.write_text(
            json.dumps(
                {
                    "positions": result.as_dict(),
                    "audit": report.as_dict(),
                    "notes": diagnostics.notes,
                },
                indent=2,
            )
        )

    print("\n[done] Completed run.")

    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
