"""
Runtime Report Fetching

Calls the ecobee API and shapes raw responses into typed models.

The runtime report arrives as comma-delimited rows whose first two fields
are the thermostat's local date and time. Ecobee also tells us the UTC start
of the report as ``startDate`` plus ``startInterval`` five-minute slots. The
first row is taken to be that same instant on the thermostat's clock, and the
resulting offset is applied to every row. A window that crosses a DST change
therefore has shifted timestamps after the change.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from .ecobee_client import EcobeeClient, registered_selection, thermostat_selection
from .exceptions import MalformedResponseError
from .models import (
    EquipmentStatus,
    RuntimeReportEntry,
    SyncWindow,
    ThermostatMetadata,
    ThermostatSummary,
)
from .settings import ColumnFlags

logger = logging.getLogger(__name__)

INTERVAL_MINUTES = 5

# Always requested
CORE_COLUMNS = [
    "zoneCoolTemp",
    "zoneHeatTemp",
    "zoneAveTemp",
    "zoneHumidity",
    "outdoorTemp",
    "outdoorHumidity",
    "fan",
    "hvacMode",
]

# ColumnFlags attribute -> report column
OPTIONAL_COLUMNS = {
    "humidifier": "humidifier",
    "aux_heat_1": "auxHeat1",
    "aux_heat_2": "auxHeat2",
    "heat_pump_1": "compHeat1",
    "heat_pump_2": "compHeat2",
    "cool_1": "compCool1",
    "cool_2": "compCool2",
}

LOCAL_TIME_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M")

# Fields of a thermostatSummary revision entry
REVISION_FIELD_COUNT = 7


def build_columns(flags: ColumnFlags) -> list[str]:
    """Columns to request for the given equipment flags."""
    columns = list(CORE_COLUMNS)
    for attr, column in OPTIONAL_COLUMNS.items():
        if getattr(flags, attr):
            columns.append(column)
    return columns


def _parse_local_time(date_str: str, time_str: str) -> datetime:
    text = f"{date_str.strip()} {time_str.strip()}"
    for fmt in LOCAL_TIME_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    raise MalformedResponseError(f"Unparsable report timestamp '{text}'")


def _report_start_utc(response: dict[str, Any]) -> datetime:
    try:
        start_date = datetime.strptime(response["startDate"], "%Y-%m-%d")
        start_interval = int(response.get("startInterval", 0))
    except (KeyError, TypeError, ValueError) as e:
        raise MalformedResponseError(f"Invalid report start: {e}") from e
    return (start_date + timedelta(minutes=start_interval * INTERVAL_MINUTES)).replace(
        tzinfo=timezone.utc
    )


def parse_runtime_report(response: dict[str, Any]) -> dict[str, list[RuntimeReportEntry]]:
    """Shape a raw runtime report into per-thermostat entry lists.

    Args:
        response: Decoded runtimeReport response body

    Returns:
        Dict of thermostat identifier -> entries in report order

    Raises:
        MalformedResponseError: If the report cannot be interpreted
    """
    utc_start = _report_start_utc(response)

    columns_str = response.get("columns")
    if not isinstance(columns_str, str) or not columns_str:
        raise MalformedResponseError("Runtime report has no column header")
    columns = columns_str.split(",")

    report_list = response.get("reportList")
    if not isinstance(report_list, list):
        raise MalformedResponseError("Runtime report has no reportList")

    report_data: dict[str, list[RuntimeReportEntry]] = {}
    for report in report_list:
        try:
            thermostat_id = report["thermostatIdentifier"]
            rows = report.get("rowList") or []
        except (KeyError, TypeError, AttributeError) as e:
            raise MalformedResponseError(f"Invalid report entry: {report!r}") from e

        entries: list[RuntimeReportEntry] = []
        offset = None
        for row in rows:
            fields = row.split(",")
            if len(fields) < len(columns) + 2:
                raise MalformedResponseError(
                    f"Row for {thermostat_id} has {len(fields)} fields, "
                    f"expected {len(columns) + 2}: {row}"
                )

            local_time = _parse_local_time(fields[0], fields[1])
            if offset is None:
                # First row is the thermostat's clock at utc_start
                offset = utc_start - local_time.replace(tzinfo=timezone.utc)

            data_fields = {col: fields[i + 2] for i, col in enumerate(columns)}
            entries.append(
                RuntimeReportEntry(
                    report_time=local_time.replace(tzinfo=timezone.utc) + offset,
                    data_fields=data_fields,
                )
            )

        report_data[thermostat_id] = entries

    return report_data


def parse_thermostat_summary(response: dict[str, Any]) -> dict[str, ThermostatSummary]:
    """Parse revision and status lists of a thermostatSummary response.

    Revision entries look like ``id:name:connected:thermostatRev:alertsRev:runtimeRev:intervalRev``
    and status entries like ``id:heatPump,fan``. Both lists share one order.
    """
    revision_list = response.get("revisionList") or []
    status_list = response.get("statusList") or []
    try:
        count = int(response.get("thermostatCount", len(revision_list)))
    except (TypeError, ValueError) as e:
        raise MalformedResponseError(f"Invalid thermostatCount: {e}") from e

    if len(revision_list) < count:
        raise MalformedResponseError(
            f"Summary lists {count} thermostats but only {len(revision_list)} revisions"
        )

    summaries: dict[str, ThermostatSummary] = {}
    for i in range(count):
        parts = revision_list[i].split(":")
        if len(parts) < REVISION_FIELD_COUNT:
            raise MalformedResponseError(f"Invalid revision list, not enough fields: {revision_list[i]}")

        connected_str = parts[2].strip().lower()
        if connected_str not in ("true", "false"):
            raise MalformedResponseError(f"Invalid connected flag '{parts[2]}' in {revision_list[i]}")

        equipment = EquipmentStatus()
        if i < len(status_list):
            _, _, running = status_list[i].partition(":")
            if running:
                equipment = EquipmentStatus.from_names(running.split(","), thermostat_id=parts[0])

        summaries[parts[0]] = ThermostatSummary(
            identifier=parts[0],
            name=parts[1],
            connected=connected_str == "true",
            thermostat_revision=parts[3],
            alerts_revision=parts[4],
            runtime_revision=parts[5],
            interval_revision=parts[6],
            equipment_status=equipment,
        )
    return summaries


def _metadata_from_thermostat(thermostat: dict[str, Any]) -> ThermostatMetadata:
    try:
        identifier = thermostat["identifier"]
    except (KeyError, TypeError) as e:
        raise MalformedResponseError(f"Thermostat without identifier: {thermostat!r}") from e
    return ThermostatMetadata(
        identifier=identifier,
        name=thermostat.get("name", ""),
        model=thermostat.get("modelNumber", ""),
        brand=thermostat.get("brand", ""),
    )


class ReportFetcher:
    """Fetches thermostat metadata and runtime reports."""

    def __init__(self, client: EcobeeClient):
        self.client = client

    def fetch_metadata(self, thermostat_id: str) -> dict[str, ThermostatMetadata]:
        """Get identity fields for tagging, keyed by thermostat identifier."""
        thermostats = self.client.get_thermostats(thermostat_selection(thermostat_id))
        metadata = {}
        for thermostat in thermostats:
            meta = _metadata_from_thermostat(thermostat)
            metadata[meta.identifier] = meta
        return metadata

    def list_thermostats(self) -> list[ThermostatMetadata]:
        """All thermostats registered to the account."""
        return [
            _metadata_from_thermostat(t)
            for t in self.client.get_thermostats(registered_selection())
        ]

    def fetch_summary(self, thermostat_id: str) -> dict[str, ThermostatSummary]:
        response = self.client.get_thermostat_summary(thermostat_selection(thermostat_id))
        return parse_thermostat_summary(response)

    def fetch_runtime_report(
        self,
        thermostat_id: str,
        window: SyncWindow,
        column_flags: ColumnFlags,
    ) -> dict[str, list[RuntimeReportEntry]]:
        """Get the runtime report for a window.

        Args:
            thermostat_id: Thermostat identifier
            window: Days to fetch
            column_flags: Optional equipment columns to include

        Returns:
            Dict of thermostat identifier -> entries
        """
        columns = build_columns(column_flags)
        response = self.client.get_runtime_report(
            thermostat_selection(thermostat_id),
            window.start_str,
            window.end_str,
            columns,
        )
        report = parse_runtime_report(response)

        rows = sum(len(entries) for entries in report.values())
        logger.info(f"Fetched {rows} report rows for {len(report)} thermostat(s) ({window})")
        return report
