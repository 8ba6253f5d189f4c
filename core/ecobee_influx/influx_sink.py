"""Writes runtime report points to InfluxDB over its 1.x HTTP API.

Points are encoded as line protocol and posted in one batch per call.
InfluxDB overwrites a point with the same measurement, tag set and timestamp,
so re-sending a window after a crash does not duplicate data.
"""

import logging
from datetime import datetime, timezone

import requests

from .exceptions import SinkWriteError
from .models import SinkRecord

_LOGGER = logging.getLogger(__name__)


def _single_line(value: str) -> str:
    # Line protocol has no escape for line breaks
    return value.replace("\r\n", " ").replace("\n", " ").replace("\r", " ")


def _escape_key(value: str) -> str:
    """Escape measurement names, tag keys, tag values and field keys."""
    return _single_line(value).replace("\\", "\\\\").replace(",", r"\,").replace("=", r"\=").replace(" ", r"\ ")


def _escape_measurement(value: str) -> str:
    return _single_line(value).replace("\\", "\\\\").replace(",", r"\,").replace(" ", r"\ ")


def _format_field_value(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return f"{value}i"
    if isinstance(value, float):
        return repr(value)
    text = _single_line(str(value)).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'


def _epoch_seconds(timestamp: datetime) -> int:
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return int(timestamp.timestamp())


def to_line_protocol(record: SinkRecord) -> str:
    """Encode one record as a line protocol line (second precision).

    Tags with empty values are left out since InfluxDB rejects them.
    """
    if not record.fields:
        raise ValueError(f"Point {record.measurement} at {record.timestamp} has no fields")

    key = _escape_measurement(record.measurement)
    for tag, value in sorted(record.tags.items()):
        if value == "" or value is None:
            continue
        key += f",{_escape_key(tag)}={_escape_key(str(value))}"

    fields = ",".join(
        f"{_escape_key(name)}={_format_field_value(value)}"
        for name, value in sorted(record.fields.items())
    )
    return f"{key} {fields} {_epoch_seconds(record.timestamp)}"


class InfluxSink:
    """Batch writer for an InfluxDB 1.x database."""

    def __init__(
        self,
        url: str,
        database: str,
        username: str = "",
        password: str = "",
        timeout: float = 10,
    ):
        """Initialize sink.

        Args:
            url: Server URL (e.g., "http://influxdb:8086")
            database: Target database
            username: Optional user for basic auth
            password: Optional password for basic auth
            timeout: Request timeout in seconds
        """
        self.url = url.rstrip("/")
        self.database = database
        self.auth = (username, password) if username else None
        self.timeout = timeout
        self.session = requests.Session()

    def health_check(self) -> None:
        """Ping the server.

        Raises:
            SinkWriteError: If InfluxDB is not reachable or unhealthy
        """
        try:
            response = self.session.get(f"{self.url}/ping", auth=self.auth, timeout=self.timeout)
        except requests.RequestException as e:
            raise SinkWriteError(f"Cannot reach InfluxDB at {self.url}: {e}") from e

        if response.status_code != 204:
            raise SinkWriteError(f"InfluxDB ping failed: {response.status_code}")

        _LOGGER.info(
            "InfluxDB reachable at %s (version %s)",
            self.url,
            response.headers.get("X-Influxdb-Version", "unknown"),
        )

    def write(self, records: list[SinkRecord]) -> int:
        """Write all records in a single request.

        Returns:
            Number of points written

        Raises:
            SinkWriteError: If the write is rejected or the server is unreachable
        """
        if not records:
            return 0

        body = "\n".join(to_line_protocol(r) for r in records)
        params = {"db": self.database, "precision": "s"}

        try:
            response = self.session.post(
                f"{self.url}/write",
                params=params,
                data=body.encode("utf-8"),
                auth=self.auth,
                headers={"Content-Type": "text/plain; charset=utf-8"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            _LOGGER.error("Error connecting to InfluxDB: %s", str(e))
            raise SinkWriteError(f"Connection error: {e!s}") from e

        if response.status_code != 204:
            _LOGGER.error("Error from InfluxDB: %s %s", response.status_code, response.text[:200])
            raise SinkWriteError(f"InfluxDB error: {response.status_code} {response.text[:200]}")

        _LOGGER.debug("Wrote %d points to %s", len(records), self.database)
        return len(records)
