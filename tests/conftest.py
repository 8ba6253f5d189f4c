"""Shared fixtures and fake collaborators for connector tests."""

from __future__ import annotations

from datetime import date, datetime

import pytest

from core.ecobee_influx.exceptions import SinkWriteError
from core.ecobee_influx.models import SinkRecord, ThermostatMetadata

THERMOSTAT_ID = "521757634832"
TODAY = datetime(2022, 3, 10, 8, 30)


class FakeClock:
    """Callable returning a fixed local time."""

    def __init__(self, now: datetime = TODAY):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class UpsertSink:
    """In-memory sink with InfluxDB overwrite semantics."""

    def __init__(self, failures: int = 0):
        self.points: dict[tuple, SinkRecord] = {}
        self.calls: list[list[SinkRecord]] = []
        self.failures = failures

    def write(self, records: list[SinkRecord]) -> int:
        self.calls.append(list(records))
        if self.failures > 0:
            self.failures -= 1
            raise SinkWriteError("InfluxDB error: 503")
        for record in records:
            self.points[record.series_key] = record
        return len(records)


class RecordingSleep:
    def __init__(self):
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


# ---------------------------------------------------------------------------
# Raw API payloads
# ---------------------------------------------------------------------------


@pytest.fixture
def runtime_report_response() -> dict:
    """Two rows of a report starting at 05:00 UTC (00:00 EST)."""
    return {
        "startDate": "2022-02-16",
        "startInterval": 60,
        "endDate": "2022-02-16",
        "endInterval": 287,
        "columns": "zoneAveTemp,zoneHumidity,fan,hvacMode,mysteryColumn",
        "reportList": [
            {
                "thermostatIdentifier": THERMOSTAT_ID,
                "rowCount": 2,
                "rowList": [
                    "2022-02-16,00:00:00,70.5,41,300,heat,x",
                    "2022-02-16,00:05:00,70.4,,285,heat,y",
                ],
            }
        ],
        "status": {"code": 0, "message": ""},
    }


@pytest.fixture
def thermostat_list_response() -> dict:
    return {
        "thermostatList": [
            {
                "identifier": THERMOSTAT_ID,
                "name": "Main Floor",
                "modelNumber": "nikeSmart",
                "brand": "ecobee",
            }
        ],
        "status": {"code": 0, "message": ""},
    }


@pytest.fixture
def metadata() -> dict[str, ThermostatMetadata]:
    return {
        THERMOSTAT_ID: ThermostatMetadata(
            identifier=THERMOSTAT_ID, name="Main Floor", model="nikeSmart", brand="ecobee"
        )
    }


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def watermark_day() -> date:
    return date(2022, 2, 15)
