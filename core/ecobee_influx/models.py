"""
Connector Data Models

Plain dataclasses passed between the fetcher, mapper, sink and sync loop.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncWindow:
    """Inclusive range of calendar days fetched in one iteration."""

    start: date
    end: date

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"Window start {self.start} is after end {self.end}")

    @property
    def days(self) -> int:
        """Number of calendar days covered (both ends included)."""
        return (self.end - self.start).days + 1

    @property
    def start_str(self) -> str:
        return self.start.isoformat()

    @property
    def end_str(self) -> str:
        return self.end.isoformat()

    def __str__(self) -> str:
        return f"{self.start_str}..{self.end_str}"


@dataclass(frozen=True)
class ThermostatMetadata:
    """Identity fields of a thermostat, used for tagging only."""

    identifier: str
    name: str = ""
    model: str = ""
    brand: str = ""


@dataclass
class RuntimeReportEntry:
    """One sampled interval of a runtime report."""

    report_time: datetime  # UTC
    data_fields: dict[str, str] = field(default_factory=dict)


@dataclass
class SinkRecord:
    """A single point ready to be written to InfluxDB."""

    measurement: str
    tags: dict[str, str]
    fields: dict[str, int | float | str]
    timestamp: datetime

    @property
    def series_key(self) -> tuple:
        """Identity InfluxDB uses to upsert: measurement, tag set and time."""
        return (self.measurement, tuple(sorted(self.tags.items())), self.timestamp)


# Equipment names reported in the thermostat summary status list
EQUIPMENT_NAMES = (
    "heatPump",
    "heatPump2",
    "heatPump3",
    "compCool1",
    "compCool2",
    "auxHeat1",
    "auxHeat2",
    "auxHeat3",
    "fan",
    "humidifier",
    "dehumidifier",
    "ventilator",
    "economizer",
    "compHotWater",
    "auxHotWater",
)


@dataclass
class EquipmentStatus:
    """Running state of each known piece of HVAC equipment."""

    running: dict[str, bool] = field(
        default_factory=lambda: {name: False for name in EQUIPMENT_NAMES}
    )

    @classmethod
    def from_names(cls, names: list[str], thermostat_id: str = "") -> "EquipmentStatus":
        """Build status from the list of equipment currently running.

        Unknown names are logged and ignored.
        """
        status = cls()
        for name in names:
            name = name.strip()
            if not name:
                continue
            if name not in status.running:
                logger.info(f"Unknown equipment status '{name}' from thermostat {thermostat_id}")
                continue
            status.running[name] = True
        return status

    def is_running(self, name: str) -> bool:
        return self.running.get(name, False)

    @property
    def active(self) -> list[str]:
        return [name for name, on in self.running.items() if on]


@dataclass
class ThermostatSummary:
    """Revision and equipment state of a thermostat."""

    identifier: str
    name: str
    connected: bool
    thermostat_revision: str
    alerts_revision: str
    runtime_revision: str
    interval_revision: str
    equipment_status: EquipmentStatus = field(default_factory=EquipmentStatus)


@dataclass
class SyncResult:
    """Outcome of one sync iteration."""

    window: Optional[SyncWindow]
    records_written: int = 0
    thermostats: list[str] = field(default_factory=list)
    attempts: int = 0

    @property
    def nothing_to_do(self) -> bool:
        return self.window is None
