"""
Runtime Report Field Mapping

Translates ecobee report columns into InfluxDB field names and types.
Unknown columns are dropped. Values that do not parse as numbers are left
out of the point instead of being written as zero, so "no data" never looks
like "equipment did not run".
"""

import logging
import math
from typing import Callable, Optional

from .models import RuntimeReportEntry, SinkRecord, ThermostatMetadata

logger = logging.getLogger(__name__)

DEVICE_ID_PREFIX = "ecobee-"
RECEIVER = "ecobee-influx-connector"
DEFAULT_MEASUREMENT = "ecobee_runtime_report"


def _to_int(value: str) -> int:
    # Runtime seconds occasionally arrive as "300.0"
    text = value.strip()
    try:
        return int(text)
    except ValueError:
        number = float(text)
        if not number.is_integer():
            raise
        return int(number)


def _to_float(value: str) -> float:
    number = float(value.strip())
    if not math.isfinite(number):
        raise ValueError(f"non-finite value {value!r}")
    return number


def _to_str(value: str) -> str:
    return value.strip()


# Vendor column -> (InfluxDB field, converter)
FIELD_MAP: dict[str, tuple[str, Callable[[str], int | float | str]]] = {
    "auxHeat1": ("aux_heat_1_run_time_s", _to_int),
    "auxHeat2": ("aux_heat_2_run_time_s", _to_int),
    "compCool1": ("cool_1_run_time_s", _to_int),
    "compCool2": ("cool_2_run_time_s", _to_int),
    "compHeat1": ("heat_pump_1_run_time_s", _to_int),
    "compHeat2": ("heat_pump_2_run_time_s", _to_int),
    "humidifier": ("humidifier_run_time_s", _to_int),
    "fan": ("fan_run_time_s", _to_int),
    "zoneCoolTemp": ("setpoint_cool_F", _to_float),
    "zoneHeatTemp": ("setpoint_heat_F", _to_float),
    "zoneAveTemp": ("temperature_F", _to_float),
    "zoneHumidity": ("humidity_pct", _to_float),
    "outdoorTemp": ("outdoor_temperature_F", _to_float),
    "outdoorHumidity": ("outdoor_humidity_pct", _to_float),
    "hvacMode": ("HVAC_mode", _to_str),
}


def build_tags(thermostat_id: str, metadata: Optional[ThermostatMetadata] = None) -> dict[str, str]:
    """Tags attached to every point of a thermostat."""
    tags = {
        "device_id": f"{DEVICE_ID_PREFIX}{thermostat_id}",
        "receiver": RECEIVER,
    }
    if metadata is not None:
        tags["thermostat_name"] = metadata.name
        tags["thermostat_model"] = metadata.model
        tags["thermostat_brand"] = metadata.brand
    return tags


def map_fields(data_fields: dict[str, str]) -> dict[str, int | float | str]:
    """Convert known vendor columns, skipping unknown or unparsable values."""
    fields: dict[str, int | float | str] = {}
    for column, raw in data_fields.items():
        mapping = FIELD_MAP.get(column)
        if mapping is None:
            continue

        name, convert = mapping
        if convert is _to_str:
            if raw.strip():
                fields[name] = convert(raw)
            continue

        try:
            fields[name] = convert(raw)
        except ValueError:
            logger.debug(f"Skipping unparsable value {raw!r} for column {column}")
    return fields


def map_entry(
    entry: RuntimeReportEntry,
    tags: dict[str, str],
    measurement: str = DEFAULT_MEASUREMENT,
) -> SinkRecord:
    """Map one report entry to an InfluxDB point."""
    return SinkRecord(
        measurement=measurement,
        tags=dict(tags),
        fields=map_fields(entry.data_fields),
        timestamp=entry.report_time,
    )


def map_entries(
    entries: list[RuntimeReportEntry],
    tags: dict[str, str],
    measurement: str = DEFAULT_MEASUREMENT,
) -> list[SinkRecord]:
    """Map a thermostat's entries, dropping points left without any field."""
    records = []
    skipped = 0
    for entry in entries:
        record = map_entry(entry, tags, measurement)
        if not record.fields:
            skipped += 1
            continue
        records.append(record)

    if skipped:
        logger.debug(f"Skipped {skipped} report rows without usable fields ({tags.get('device_id')})")
    return records
