import math

import pytest

from constellation import config, models
from constellation.projection import axis_labels, enabled_subset, feature_angles, feature_percentiles, project


FEATURES = list(config.FEATURES)
UNIFORM = {feature: models.Quantile(0.1, 0.5, 0.9) for feature in FEATURES}


def _plain_config(**overrides):
    """Exaggeration 1.0, scale 100 and no contrast curve, so projections are easy to reason about."""

    base = {
        "exaggeration": 1.0,
        "depth_exaggeration": (),
        "projection_scale": 100.0,
        "contrast": {},
    }
    base.update(overrides)
    return models.LayoutConfig().with_overrides(**base)


def test_feature_angles_use_half_steps_of_the_ring():
    angles = feature_angles(["a", "b", "c", "d"])
    step = math.pi / 4
    assert angles == pytest.approx({"a": 0.0, "b": step, "c": 2 * step, "d": 3 * step})
    assert feature_angles([]) == {}


def test_default_ring_excludes_instrumentalness():
    layout_config = models.LayoutConfig()
    designated = layout_config.designated_features()
    assert "instrumentalness" not in designated
    assert designated[0] == "danceability"
    angles = feature_angles(designated)
    assert angles["energy"] == pytest.approx(2 * math.pi / 14)


def test_axis_labels_place_low_pole_opposite_high_pole():
    labels = axis_labels(models.LayoutConfig())
    assert [label.feature for label in labels] == models.LayoutConfig().designated_features()
    for label in labels:
        difference = (label.low_angle - label.high_angle) % (2 * math.pi)
        assert difference == pytest.approx(math.pi)
    assert labels[0].high_angle == 0.0
    assert labels[0].low_angle == pytest.approx(math.pi)


def test_enabled_subset_keeps_ring_order():
    layout_config = models.LayoutConfig()
    assert enabled_subset(layout_config, ["valence", "danceability", "instrumentalness"]) == [
        "danceability",
        "valence",
    ]
    assert enabled_subset(layout_config) == layout_config.designated_features()


def test_neutral_vector_projects_to_origin():
    layout_config = _plain_config()
    neutral = {feature: 0.5 for feature in FEATURES}
    point = project(neutral, UNIFORM, layout_config)
    assert point.x == pytest.approx(0.0, abs=1e-9)
    assert point.y == pytest.approx(0.0, abs=1e-9)


def test_missing_features_project_to_origin():
    point = project({}, UNIFORM, _plain_config())
    assert point.norm() == pytest.approx(0.0, abs=1e-9)


def test_high_feature_pulls_along_its_axis_and_low_feature_pushes_opposite():
    layout_config = _plain_config()
    angle = feature_angles(layout_config.designated_features())["energy"]

    high = project({"energy": 0.9}, UNIFORM, layout_config)
    assert high.x == pytest.approx(80 * math.cos(angle))
    assert high.y == pytest.approx(80 * math.sin(angle))

    low = project({"energy": 0.1}, UNIFORM, layout_config)
    assert low.x == pytest.approx(-high.x)
    assert low.y == pytest.approx(-high.y)


def test_disabled_and_excluded_features_do_not_contribute():
    layout_config = _plain_config()
    assert project({"energy": 0.9}, UNIFORM, layout_config, enabled=["danceability"]).norm() == pytest.approx(0.0)
    assert project({"instrumentalness": 0.99}, UNIFORM, layout_config).norm() == pytest.approx(0.0)


def test_depth_exaggeration_multiplies_base_factor():
    layout_config = models.LayoutConfig()
    assert layout_config.exaggeration_for(0) == pytest.approx(1.92)
    assert layout_config.exaggeration_for(1) == pytest.approx(1.44)
    assert layout_config.exaggeration_for(2) == pytest.approx(1.2)
    assert layout_config.exaggeration_for(7) == pytest.approx(1.2)

    root = project({"valence": 0.9}, UNIFORM, layout_config, depth=0)
    deep = project({"valence": 0.9}, UNIFORM, layout_config, depth=2)
    assert root.norm() == pytest.approx(deep.norm() * 1.6)


def test_opposed_siblings_separate_by_analytic_distance():
    layout_config = _plain_config(excluded_features=())
    rest = {feature: 0.5 for feature in FEATURES}
    first = project({**rest, "danceability": 0.9, "energy": 0.1}, UNIFORM, layout_config)
    second = project({**rest, "danceability": 0.1, "energy": 0.9}, UNIFORM, layout_config)

    assert first.x > 0
    assert second.x < 0
    step = math.pi / 8
    expected = 1.6 * 2 * math.sin(step / 2) * 100
    separation = math.hypot(first.x - second.x, first.y - second.y)
    assert separation == pytest.approx(expected)
    assert separation > 60


def test_popularity_uses_its_own_scale():
    quantiles = dict(UNIFORM, popularity=models.Quantile(10, 50, 90))
    layout_config = _plain_config()
    percentiles = feature_percentiles({"popularity": 90, "energy": None}, quantiles, layout_config)
    assert percentiles == pytest.approx({"popularity": 0.9})


def test_contrast_curve_lifts_low_speechiness():
    layout_config = models.LayoutConfig()
    percentiles = feature_percentiles({"speechiness": 0.1}, UNIFORM, layout_config)
    assert percentiles["speechiness"] == pytest.approx(0.1 ** 0.5)


def test_unknown_config_field_is_rejected():
    with pytest.raises(ValueError):
        models.LayoutConfig().with_overrides(gravity=9.8)


def test_overrides_are_coerced():
    layout_config = models.LayoutConfig().with_overrides(
        target_radius="300",
        max_iterations=5.0,
        excluded_features=["popularity"],
        min_distance={"sibling": "50"},
    )
    assert layout_config.target_radius == 300.0
    assert layout_config.max_iterations == 5
    assert layout_config.excluded_features == ("popularity",)
    assert layout_config.min_distance_for("sibling") == 50.0
    assert layout_config.min_distance_for("unrelated") == config.MIN_DISTANCE["unrelated"]


def test_min_distance_override_rejects_unknown_relationship():
    with pytest.raises(ValueError):
        models.LayoutConfig().with_overrides(min_distance={"cousin": 10})


@pytest.mark.parametrize(
    "overrides",
    [
        {"target_radius": 0},
        {"target_radius": -5},
        {"push_strength": -0.1},
        {"damping": -1},
        {"max_iterations": -1},
        {"exaggeration": -1.2},
        {"min_distance": {"sibling": -40}},
    ],
)
def test_overrides_reject_out_of_range_values(overrides):
    with pytest.raises(ValueError):
        models.LayoutConfig().with_overrides(**overrides)


def test_default_collision_constants():
    assert config.MIN_DISTANCE["sibling"] == config.MIN_DISTANCE["parent_child"] == 40
    assert config.MIN_DISTANCE["unrelated"] < config.MIN_DISTANCE["sibling"]
    assert (config.PUSH_STRENGTH, config.DAMPING, config.MAX_ITERATIONS) == (0.3, 0.85, 3)
