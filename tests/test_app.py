"""Tests for the command line entry point."""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from unittest.mock import MagicMock

import pytest

import app
from core.ecobee_influx.exceptions import SyncAbortedError
from core.ecobee_influx.models import EquipmentStatus, SyncResult, ThermostatMetadata, ThermostatSummary


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "api_key": "app-key",
        "work_dir": str(tmp_path),
        "thermostat_id": "t1",
        "influx_server": "http://influx:8086",
        "influx_database": "ecobee",
    }))
    return path


def test_parse_args_since() -> None:
    args = app.parse_args(["--config", "c.json", "--since", "2022-01-01", "--once"])
    assert args.since == date(2022, 1, 1)
    assert args.once is True
    assert args.list_thermostats is False


def test_missing_config_exits_non_zero(tmp_path: Path) -> None:
    assert app.main(["--config", str(tmp_path / "missing.json")]) == 1


def test_list_thermostats(config_file: Path, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    fetcher = MagicMock()
    fetcher.list_thermostats.return_value = [ThermostatMetadata(identifier="t1", name="Main Floor")]
    monkeypatch.setattr(app, "ReportFetcher", lambda client: fetcher)

    assert app.main(["--config", str(config_file), "--list-thermostats"]) == 0
    assert "'Main Floor': ID t1" in capsys.readouterr().out


def test_once_exits_zero_when_caught_up(config_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    service = MagicMock()
    service.run_forever.return_value = SyncResult(window=None)
    monkeypatch.setattr(app, "build_service", lambda settings, client: service)

    assert app.main(["--config", str(config_file), "--once"]) == 0
    service.run_forever.assert_called_once_with(once=True)


def test_since_seeds_backfill_start(config_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    seen = {}

    def fake_build(settings, client):
        seen["start"] = settings.backfill_start
        return MagicMock()

    monkeypatch.setattr(app, "build_service", fake_build)
    app.main(["--config", str(config_file), "--since", "2022-02-01", "--once"])
    assert seen["start"] == date(2022, 2, 1)


def test_exhausted_retries_exit_non_zero(config_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    service = MagicMock()
    service.run_forever.side_effect = SyncAbortedError("gave up")
    monkeypatch.setattr(app, "build_service", lambda settings, client: service)

    assert app.main(["--config", str(config_file)]) == 1


def test_list_thermostats_without_thermostat_id(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"api_key": "app-key", "work_dir": str(tmp_path)}))
    fetcher = MagicMock()
    fetcher.list_thermostats.return_value = [ThermostatMetadata(identifier="t1", name="Main")]
    monkeypatch.setattr(app, "ReportFetcher", lambda client: fetcher)

    assert app.main(["--config", str(path), "--list-thermostats"]) == 0
    assert "'Main': ID t1" in capsys.readouterr().out


def test_status_prints_running_equipment(config_file: Path, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    fetcher = MagicMock()
    fetcher.fetch_summary.return_value = {
        "t1": ThermostatSummary(
            identifier="t1",
            name="Main Floor",
            connected=True,
            thermostat_revision="1",
            alerts_revision="2",
            runtime_revision="3",
            interval_revision="4",
            equipment_status=EquipmentStatus.from_names(["compCool1", "fan"]),
        )
    }
    monkeypatch.setattr(app, "ReportFetcher", lambda client: fetcher)

    assert app.main(["--config", str(config_file), "--status"]) == 0
    fetcher.fetch_summary.assert_called_once_with("t1")
    assert "'Main Floor': ID t1, connected, running: compCool1, fan" in capsys.readouterr().out


def test_status_requires_thermostat_id(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("ECOBEE_THERMOSTAT_ID", raising=False)
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"api_key": "app-key", "work_dir": str(tmp_path)}))
    assert app.main(["--config", str(path), "--status"]) == 1
