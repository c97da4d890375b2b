import json

import pytest

from constellation import manifest as manifest_io
from constellation import models


def test_parse_manifest_builds_tree_and_skips_reserved_keys(manifest_data):
    manifest = manifest_io.parse_manifest(manifest_data)

    assert [root.name for root in manifest.roots] == ["rock", "electronic", "jazz", "hiphop"]
    assert manifest.build == {"version": 3, "generated": "2024-05-01"}
    assert manifest.display.projection_scale == 180.0
    assert manifest.display.feature_angles[-1] == "instrumentalness"
    assert manifest.quantiles["popularity"] == models.Quantile(10, 50, 90)

    keys = [node.key for node in manifest.walk()]
    assert keys == [
        "rock",
        "rock.indie",
        "rock.punk",
        "rock.empty",
        "electronic",
        "electronic.house",
        "electronic.ambient",
        "jazz",
        "jazz.bebop",
        "jazz.fusion",
        "hiphop",
    ]


def test_parse_manifest_reads_seeds_under_either_key(manifest_data):
    manifest = manifest_io.parse_manifest(manifest_data)
    jazz = manifest_io.find_node(manifest, "jazz")
    indie = manifest_io.find_node(manifest, "rock.indie")

    assert [leaf.name for leaf in jazz.leaves] == ["Blue Hour"]
    assert jazz.features is None
    assert [leaf.name for leaf in indie.leaves] == ["Basement Tape", "No Profile Yet"]
    assert indie.leaves[1].features is None
    assert indie.leaf_key(indie.leaves[0]) == "rock.indie.Basement Tape"


def test_parse_manifest_drops_unusable_feature_values():
    manifest = manifest_io.parse_manifest(
        {"rock": {"features": {"energy": "loud", "valence": None, "danceability": "0.4"}}}
    )
    assert manifest.roots[0].features == {"danceability": 0.4}


def test_parse_manifest_defaults_when_global_block_missing():
    manifest = manifest_io.parse_manifest({"rock": {"features": {"energy": 0.5}}})
    assert manifest.quantiles == {}
    assert manifest.display == models.DisplayConfig()


@pytest.mark.parametrize(
    "payload",
    [
        ["not", "an", "object"],
        {"global": "nope"},
        {"rock": "nope"},
        {"rock": {"subgenres": ["indie"]}},
        {"rock": {"seeds": {"name": "x"}}},
        {"rock": {"features": [0.5]}},
        {"global": {"display": {"feature_angles": "energy"}}},
    ],
)
def test_parse_manifest_rejects_malformed_structure(payload):
    with pytest.raises(ValueError):
        manifest_io.parse_manifest(payload)


def test_find_node_returns_none_for_unknown_keys(manifest_data):
    manifest = manifest_io.parse_manifest(manifest_data)
    assert manifest_io.find_node(manifest, "rock.indie").name == "indie"
    assert manifest_io.find_node(manifest, "rock.grunge") is None
    assert manifest_io.find_node(manifest, "") is None


def test_load_manifest_reads_file(tmp_path, manifest_data):
    path = tmp_path / "manifest.json"
    path.write_text(json.dumps(manifest_data), encoding="utf-8")
    manifest = manifest_io.load_manifest(path)
    assert len(manifest.roots) == 4


def test_load_manifest_missing_file(tmp_path):
    with pytest.raises(ValueError):
        manifest_io.load_manifest(tmp_path / "missing.json")


def test_track_features_unwraps_profile_and_normalizes_tempo():
    profile = {
        "tracks": [
            {
                "danceability": 0.61,
                "energy": "0.72",
                "tempo": 120,
                "popularity": 64,
                "key": 5,
            }
        ]
    }
    features = manifest_io.track_features(profile)
    assert features == {
        "danceability": 0.61,
        "energy": 0.72,
        "popularity": 64.0,
        "tempo_norm": 0.5,
    }


def test_track_features_clamps_tempo_range():
    assert manifest_io.track_features({"tempo": 40})["tempo_norm"] == 0.0
    assert manifest_io.track_features({"tempo": 240})["tempo_norm"] == 1.0


def test_attach_track_features_returns_copy():
    leaf = models.Leaf(name="Blue Hour", artist="Quartet")
    loaded = manifest_io.attach_track_features(leaf, {"energy": 0.3})
    assert loaded.features == {"energy": 0.3}
    assert leaf.features is None


def test_describe_counts_tree(manifest_data):
    summary = manifest_io.describe(manifest_io.parse_manifest(manifest_data))
    assert summary["roots"] == 4
    assert summary["nodes"] == 11
    assert summary["featured_nodes"] == 9
    assert summary["seeds"] == 4
    assert "popularity" in summary["quantile_features"]
