"""Flask API serving constellation layouts to the game frontend."""

from __future__ import annotations

import os
from typing import Any, Dict, Optional, Tuple

from flask import Flask, jsonify, request
from flask_cors import CORS

from . import audit, env, manifest as manifest_io, models, projection
from .cache import InMemoryCache
from .layout import layout, layout_children


app = Flask(__name__)
CORS(app)  # Enable CORS for development

LAYOUT_CACHE = InMemoryCache()
_DEFAULT_MANIFEST: Dict[str, Any] = {}


def _default_manifest() -> models.Manifest:
    """Manifest named by CONSTELLATION_MANIFEST, parsed once per path."""

    env.load_env()
    path = env.require({"CONSTELLATION_MANIFEST": ""})["CONSTELLATION_MANIFEST"]
    cached = _DEFAULT_MANIFEST.get(path)
    if cached is None:
        cached = manifest_io.load_manifest(path)
        _DEFAULT_MANIFEST.clear()
        _DEFAULT_MANIFEST[path] = cached
    return cached


def _resolve_request(payload: Dict[str, Any]) -> Tuple[models.Manifest, Dict[str, Any], models.LayoutConfig]:
    raw_manifest = payload.get("manifest")
    manifest = manifest_io.parse_manifest(raw_manifest) if raw_manifest is not None else _default_manifest()

    options = payload.get("options") or {}
    if not isinstance(options, dict):
        raise ValueError("options must be an object")

    overrides = env.layout_overrides_from_env()
    config_overrides = options.get("config") or {}
    if not isinstance(config_overrides, dict):
        raise ValueError("options.config must be an object")
    overrides.update(config_overrides)
    layout_config = models.LayoutConfig.from_display(manifest.display, **overrides)
    return manifest, options, layout_config


def _enabled_features(options: Dict[str, Any]) -> Optional[list]:
    enabled = options.get("enabled_features")
    if enabled is None:
        return None
    if not isinstance(enabled, list):
        raise ValueError("options.enabled_features must be a list of feature names")
    return [str(feature) for feature in enabled]


def _layout_response(result: models.LayoutResult, layout_config: models.LayoutConfig, with_audit: bool):
    diagnostics = result.diagnostics
    response_payload = {
        "positions": result.as_dict(),
        "axes": [_axis_payload(label) for label in projection.axis_labels(layout_config)],
        "metadata": {
            "target_radius": layout_config.target_radius,
            "diagnostics": {
                "node_count": diagnostics.node_count,
                "adaptive_scale": diagnostics.adaptive_scale,
                "max_raw_radius": diagnostics.max_raw_radius,
                "iterations_run": diagnostics.iterations_run,
                "overlaps_per_iteration": diagnostics.overlaps_per_iteration,
                "residual_overlaps": diagnostics.residual_overlaps,
                "local_groups": diagnostics.local_groups,
                "notes": diagnostics.notes,
            },
        },
        "status": "success",
    }
    if with_audit:
        response_payload["audit"] = audit.audit_layout(result, layout_config).as_dict()
    return jsonify(response_payload)


def _axis_payload(label: models.AxisLabel) -> Dict[str, Any]:
    return {
        "feature": label.feature,
        "index": label.index,
        "high_angle": label.high_angle,
        "low_angle": label.low_angle,
    }


def _error(message: str, status: int):
    return jsonify({"error": message, "status": "error"}), status


@app.route("/api/layout", methods=["POST"])
def get_layout():
    try:
        payload = request.get_json(force=True, silent=True)
        if not isinstance(payload, dict):
            return _error("Request body must be a JSON object.", 400)

        manifest, options, layout_config = _resolve_request(payload)
        result = layout(
            manifest,
            layout_config,
            use_local_quantiles=options.get("use_local_quantiles", False),
            enabled_features=_enabled_features(options),
            include_leaves=bool(options.get("include_leaves", False)),
            cache_client=LAYOUT_CACHE,
            logger=app.logger,
        )
        return _layout_response(result, layout_config, bool(options.get("audit", False)))
    except (ValueError, TypeError, RuntimeError) as exc:
        return _error(str(exc), 400)
    except Exception as exc:  # pragma: no cover - defensive guard
        return _error(str(exc), 500)


@app.route("/api/layout/children", methods=["POST"])
def get_child_layout():
    try:
        payload = request.get_json(force=True, silent=True)
        if not isinstance(payload, dict):
            return _error("Request body must be a JSON object.", 400)
        parent = payload.get("parent")
        if not parent or not isinstance(parent, str):
            return _error("parent must be a node key such as 'rock.indie'.", 400)

        manifest, options, layout_config = _resolve_request(payload)
        result = layout_children(
            manifest,
            parent,
            layout_config,
            use_local_quantiles=bool(options.get("use_local_quantiles", True)),
            enabled_features=_enabled_features(options),
            include_leaves=bool(options.get("include_leaves", True)),
            cache_client=LAYOUT_CACHE,
            logger=app.logger,
        )
        return _layout_response(result, layout_config, bool(options.get("audit", False)))
    except KeyError as exc:
        return _error(str(exc.args[0]) if exc.args else "Unknown node", 404)
    except (ValueError, TypeError, RuntimeError) as exc:
        return _error(str(exc), 400)
    except Exception as exc:  # pragma: no cover - defensive guard
        return _error(str(exc), 500)


@app.route("/api/axes", methods=["GET"])
def get_axes():
    try:
        manifest = _default_manifest()
        layout_config = models.LayoutConfig.from_display(manifest.display, **env.layout_overrides_from_env())
    except RuntimeError:
        layout_config = models.LayoutConfig()
    except ValueError as exc:
        return _error(str(exc), 400)
    return jsonify({
        "axes": [_axis_payload(label) for label in projection.axis_labels(layout_config)],
        "status": "success",
    })


@app.route("/api/health", methods=["GET"])
def health_check():
    return jsonify({
        "status": "healthy",
        "message": "Constellation layout server is running",
        "cached_layouts": LAYOUT_CACHE.size("layouts"),
    })


if __name__ == "__main__":  # pragma: no cover - manual execution helper
    env.load_env()
    print("Starting constellation layout server...")
    app.run(
        debug=True,
        host=os.environ.get("CONSTELLATION_HOST", "0.0.0.0"),
        port=int(os.environ.get("CONSTELLATION_PORT", "5000")),
    )
