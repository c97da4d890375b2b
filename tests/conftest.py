"""Test configuration ensuring repository modules are discoverable."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: marks tests as slow and optional")


def _features(**values):
    features = {
        "danceability": 0.5,
        "energy": 0.5,
        "speechiness": 0.1,
        "acousticness": 0.5,
        "valence": 0.5,
        "tempo_norm": 0.5,
        "popularity": 50,
        "instrumentalness": 0.2,
    }
    features.update(values)
    return features


@pytest.fixture
def manifest_data():
    """A small constellation manifest in the game's JSON shape."""

    uniform = {"p10": 0.1, "p50": 0.5, "p90": 0.9}
    return {
        "global": {
            "display": {
                "feature_angles": [
                    "danceability",
                    "energy",
                    "speechiness",
                    "acousticness",
                    "valence",
                    "tempo_norm",
                    "popularity",
                    "instrumentalness",
                ],
                "projection_scale": 180,
                "speechiness_contrast_gamma": 2.0,
            },
            "quantiles": {
                "danceability": uniform,
                "energy": uniform,
                "speechiness": {"p10": 0.03, "p50": 0.06, "p90": 0.3},
                "acousticness": uniform,
                "valence": uniform,
                "tempo_norm": uniform,
                "popularity": {"p10": 10, "p50": 50, "p90": 90},
                "instrumentalness": uniform,
            },
        },
        "build": {"version": 3, "generated": "2024-05-01"},
        "rock": {
            "features": _features(energy=0.85, acousticness=0.2),
            "seeds": [
                {"name": "Anthem", "artist": "The Louds", "features": _features(energy=0.95, valence=0.7)},
            ],
            "subgenres": {
                "indie": {
                    "features": _features(energy=0.6, valence=0.7, popularity=35),
                    "seeds": [
                        {"name": "Basement Tape", "artist": "Low Fi", "features": _features(acousticness=0.8)},
                        {"name": "No Profile Yet", "artist": "Unknown"},
                    ],
                },
                "punk": {"features": _features(energy=0.97, danceability=0.3, tempo_norm=0.9)},
                "empty": {},
            },
        },
        "electronic": {
            "features": _features(danceability=0.9, energy=0.7, acousticness=0.05),
            "subgenres": {
                "house": {"features": _features(danceability=0.95, tempo_norm=0.55)},
                "ambient": {"features": _features(energy=0.1, acousticness=0.6, danceability=0.2)},
            },
        },
        "jazz": {
            "_seeds": [{"name": "Blue Hour", "artist": "Quartet"}],
            "subgenres": {
                "bebop": {"features": _features(tempo_norm=0.95, acousticness=0.9)},
                "fusion": {"features": _features(energy=0.7, acousticness=0.4)},
            },
        },
        "hiphop": {"features": _features(speechiness=0.4, danceability=0.8, popularity=80)},
    }
