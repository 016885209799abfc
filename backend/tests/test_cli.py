"""Tests for VesselIQ CLI commands."""
from __future__ import annotations

import json
from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError
from typer.testing import CliRunner

from vesseliq.cli import _health_style, app
from vesseliq.modules.fleet_health import VesselHealthSummary
from vesseliq.modules.sensor_backfill import BackfillResult


runner = CliRunner()


def _scope_yielding(db):
    """Stand-in for session_scope() that yields ``db``."""
    scope = MagicMock()
    scope.return_value.__enter__.return_value = db
    scope.return_value.__exit__.return_value = False
    return scope


def _summary(vessel_id, name, health, last_update=None, source="samples"):
    return VesselHealthSummary(
        vessel_id=vessel_id, name=name, health=health, last_update=last_update,
        latitude=None, longitude=None, source=source,
    )


# ---------------------------------------------------------------------------
# init-db / seed-demo
# ---------------------------------------------------------------------------


@patch("vesseliq.database.init_db")
def test_init_db(mock_init):
    result = runner.invoke(app, ["init-db"])
    assert result.exit_code == 0
    assert "Database ready" in result.output
    mock_init.assert_called_once()


@patch("vesseliq.database.init_db")
def test_init_db_failure(mock_init):
    mock_init.side_effect = Exception("database locked")
    result = runner.invoke(app, ["init-db"])
    assert result.exit_code == 1
    assert "Database setup failed" in result.output


@patch("vesseliq.modules.demo_seed.seed_demo_fleet")
@patch("vesseliq.database.session_scope")
@patch("vesseliq.database.init_db")
def test_seed_demo(mock_init, mock_scope, mock_seed):
    db = MagicMock()
    mock_scope.side_effect = _scope_yielding(db)
    mock_seed.return_value = {"vessels": 7, "sensors": 24, "samples": 480, "unlinked": 12, "analytics": 126}
    result = runner.invoke(app, ["seed-demo"])
    assert result.exit_code == 0, result.output
    assert "Seeded 7 vessels" in result.output
    mock_seed.assert_called_once_with(db)
    db.commit.assert_called_once()


# ---------------------------------------------------------------------------
# fleet / vessel
# ---------------------------------------------------------------------------


@patch("vesseliq.modules.fleet_health.compute_fleet_health")
@patch("vesseliq.database.session_scope")
def test_fleet_table(mock_scope, mock_compute):
    mock_scope.side_effect = _scope_yielding(MagicMock())
    mock_compute.return_value = [
        _summary(1, "ALPHA", 0.9, datetime(2025, 6, 1, 12, 0)),
        _summary(2, "BRAVO", 0.0, source="no_sensors"),
    ]
    result = runner.invoke(app, ["fleet"])
    assert result.exit_code == 0, result.output
    assert "ALPHA" in result.output
    assert "BRAVO" in result.output
    assert "90%" in result.output


@patch("vesseliq.modules.fleet_health.compute_fleet_health")
@patch("vesseliq.database.session_scope")
def test_fleet_json(mock_scope, mock_compute):
    mock_scope.side_effect = _scope_yielding(MagicMock())
    mock_compute.return_value = [_summary(1, "ALPHA", 0.5, datetime(2025, 6, 1, 12, 0))]
    result = runner.invoke(app, ["fleet", "--json"])
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data == [{
        "id": 1, "name": "ALPHA", "health": 0.5, "lastUpdate": "2025-06-01T12:00:00",
        "latitude": None, "longitude": None,
    }]


@patch("vesseliq.modules.fleet_health.compute_fleet_health", return_value=[])
@patch("vesseliq.database.session_scope")
def test_fleet_empty(mock_scope, mock_compute):
    mock_scope.side_effect = _scope_yielding(MagicMock())
    result = runner.invoke(app, ["fleet", "--workers", "4"])
    assert result.exit_code == 0
    assert "No vessels found" in result.output
    assert mock_compute.call_args.kwargs["workers"] == 4


@patch("vesseliq.modules.fleet_health.get_vessel_detail", return_value=None)
@patch("vesseliq.database.session_scope")
def test_vessel_not_found(mock_scope, mock_detail):
    mock_scope.side_effect = _scope_yielding(MagicMock())
    result = runner.invoke(app, ["vessel", "42"])
    assert result.exit_code == 1
    assert "not found" in result.output


@patch("vesseliq.modules.fleet_health.get_vessel_detail")
@patch("vesseliq.database.session_scope")
def test_vessel_detail(mock_scope, mock_detail):
    mock_scope.side_effect = _scope_yielding(MagicMock())
    mock_detail.return_value = {
        "vessel": {"vessel_id": 3, "vessel_name": "CORAL", "latitude": 1.25, "longitude": 103.8, "created_at": None},
        "sensors": [
            {"sensor_id": 9, "raw_sensor_id": "C-1", "pi_point_name": "PI.HVAC.CT1.1", "subsystem": "hvac",
             "created_at": None},
        ],
    }
    result = runner.invoke(app, ["vessel", "3"])
    assert result.exit_code == 0, result.output
    assert "CORAL" in result.output
    assert "hvac" in result.output


# ---------------------------------------------------------------------------
# export / backfill-sensors / serve
# ---------------------------------------------------------------------------


def test_export_unknown_dataset():
    result = runner.invoke(app, ["export", "secrets"])
    assert result.exit_code == 1
    assert "Unknown dataset" in result.output


@patch("vesseliq.modules.csv_export.fetch_export")
@patch("vesseliq.database.session_scope")
def test_export_writes_file(mock_scope, mock_fetch, tmp_path):
    mock_scope.side_effect = _scope_yielding(MagicMock())
    mock_fetch.return_value = (["sensor_id", "value"], [(1, 2.5), (2, None)])
    out = tmp_path / "out.csv"
    result = runner.invoke(app, ["export", "stats", "-o", str(out), "--limit", "10"])
    assert result.exit_code == 0, result.output
    assert out.read_text() == '"sensor_id","value"\n"1","2.5"\n"2",""\n'
    assert mock_fetch.call_args.kwargs["limit"] == 10


@patch("vesseliq.modules.sensor_backfill.backfill_sensor_links")
@patch("vesseliq.database.session_scope")
def test_backfill_sensors(mock_scope, mock_backfill):
    mock_scope.side_effect = _scope_yielding(MagicMock())
    mock_backfill.return_value = BackfillResult(total_updated=1200, total_skipped=3, batches_processed=1)
    result = runner.invoke(app, ["backfill-sensors", "--batch-size", "500", "--pause", "0"])
    assert result.exit_code == 0, result.output
    assert "1,200 linked" in result.output
    assert "3 skipped" in result.output
    kwargs = mock_backfill.call_args.kwargs
    assert kwargs["batch_size"] == 500
    assert kwargs["pause_seconds"] == 0


@patch("uvicorn.run")
def test_serve(mock_run):
    result = runner.invoke(app, ["serve", "--port", "9001"])
    assert result.exit_code == 0
    mock_run.assert_called_once_with("vesseliq.main:app", host="127.0.0.1", port=9001)


def test_health_style_thresholds():
    assert _health_style(0.3) == "red"
    assert _health_style(0.6) == "yellow"
    assert _health_style(0.8) == "green"


# ---------------------------------------------------------------------------
# store errors
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("args,target", [
    (["fleet"], "vesseliq.modules.fleet_health.compute_fleet_health"),
    (["vessel", "1"], "vesseliq.modules.fleet_health.get_vessel_detail"),
    (["export", "stats"], "vesseliq.modules.csv_export.fetch_export"),
    (["backfill-sensors"], "vesseliq.modules.sensor_backfill.backfill_sensor_links"),
])
@patch("vesseliq.database.session_scope")
def test_store_error_exits_cleanly(mock_scope, args, target):
    mock_scope.side_effect = _scope_yielding(MagicMock())
    with patch(target, side_effect=OperationalError("SELECT", {}, Exception("connection refused"))):
        result = runner.invoke(app, args)
    assert result.exit_code == 1
    assert "Data store unavailable" in result.output
    assert not isinstance(result.exception, OperationalError)
