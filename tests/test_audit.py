import pytest

from constellation import manifest as manifest_io
from constellation import models
from constellation.audit import audit_layout
from constellation.layout import layout


def _result():
    return models.LayoutResult(
        positions={
            "rock": models.Position(100, 0),
            "rock.indie": models.Position(0, 50),
            "jazz": models.Position(0, 300),
        },
        scaled_positions={
            "rock": models.Position(70, 0),
            "rock.indie": models.Position(0, 50),
            "jazz": models.Position(0, 240),
        },
        diagnostics=models.LayoutDiagnostics(node_count=3, adaptive_scale=2.0, max_raw_radius=110.0, residual_overlaps=1),
    )


def test_audit_ranks_nodes_by_displacement():
    report = audit_layout(_result(), models.LayoutConfig(), top=2)

    assert [entry.key for entry in report.most_displaced] == ["jazz", "rock"]
    assert report.most_displaced[0].displacement == pytest.approx(60.0)
    rock = report.most_displaced[1]
    assert rock.displacement == pytest.approx(30.0)
    assert rock.displacement_pct == pytest.approx(30 / 70 * 100)
    assert rock.angle_shift_degrees == pytest.approx(0.0)


def test_audit_statistics():
    report = audit_layout(_result(), models.LayoutConfig())

    assert report.node_count == 3
    assert report.average_displacement == pytest.approx(30.0)
    assert report.max_displacement == pytest.approx(60.0)
    assert report.moved_over_20 == 2
    assert report.moved_over_50 == 1
    assert report.residual_overlaps == 1
    assert [entry.key for entry in report.root_nodes] == ["jazz", "rock"]
    assert report.outside_boundary == ["jazz"]


def test_audit_reports_angle_shift():
    result = models.LayoutResult(
        positions={"rock": models.Position(0, 100)},
        scaled_positions={"rock": models.Position(100, 0)},
    )
    entry = audit_layout(result, models.LayoutConfig()).most_displaced[0]
    assert entry.angle_shift_degrees == pytest.approx(90.0)


def test_audit_as_dict_is_json_ready():
    payload = audit_layout(_result(), models.LayoutConfig()).as_dict()
    assert payload["most_displaced"][0]["key"] == "jazz"
    assert payload["most_displaced"][0]["actual"] == {"x": 0, "y": 300}
    assert payload["outside_boundary"] == ["jazz"]


def test_audit_of_real_layout_stays_inside_boundary(manifest_data):
    manifest = manifest_io.parse_manifest(manifest_data)
    layout_config = models.LayoutConfig.from_display(manifest.display)
    report = audit_layout(layout(manifest, layout_config), layout_config)

    assert report.outside_boundary == []
    assert report.node_count == 9
    assert len(report.root_nodes) == 3
