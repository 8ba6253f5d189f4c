"""
Runtime Report Sync Service

Drives the backfill loop: plan the next window after the watermark, fetch
it, map it, write it to InfluxDB and only then advance the watermark.

A failure anywhere in an iteration re-runs the whole iteration. Since
InfluxDB upserts on tag set + timestamp, re-writing a window is harmless,
which makes delivery at-least-once: a crash between writing and advancing
just repeats the window on the next run.
"""

import logging
import time
from typing import Callable, Optional

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .exceptions import (
    EcobeeAPIError,
    MalformedResponseError,
    SinkWriteError,
    SyncAbortedError,
    WatermarkError,
)
from .fetcher import ReportFetcher
from .field_mapper import DEFAULT_MEASUREMENT, build_tags, map_entries
from .influx_sink import InfluxSink
from .models import SinkRecord, SyncResult, SyncWindow
from .planner import WindowPlanner
from .settings import ColumnFlags
from .watermark import WatermarkStore

logger = logging.getLogger(__name__)

# Errors that re-run the iteration; anything else is fatal right away
RETRYABLE_ERRORS = (EcobeeAPIError, MalformedResponseError, SinkWriteError, WatermarkError)


class SyncService:
    """Incremental runtime report sync for one thermostat."""

    def __init__(
        self,
        fetcher: ReportFetcher,
        sink: InfluxSink,
        store: WatermarkStore,
        planner: WindowPlanner,
        thermostat_id: str,
        column_flags: ColumnFlags = ColumnFlags(),
        measurement: str = DEFAULT_MEASUREMENT,
        retry_attempts: int = 5,
        retry_min_wait_seconds: float = 2.0,
        retry_max_wait_seconds: float = 60.0,
        idle_seconds: float = 3600.0,
        batch_pause_seconds: float = 3.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.fetcher = fetcher
        self.sink = sink
        self.store = store
        self.planner = planner
        self.thermostat_id = thermostat_id
        self.column_flags = column_flags
        self.measurement = measurement
        self.retry_attempts = retry_attempts
        self.retry_min_wait_seconds = retry_min_wait_seconds
        self.retry_max_wait_seconds = retry_max_wait_seconds
        self.idle_seconds = idle_seconds
        self.batch_pause_seconds = batch_pause_seconds
        self.sleep = sleep

    @property
    def watermark_key(self) -> str:
        return self.thermostat_id

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        wait = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            f"Sync attempt {retry_state.attempt_number}/{self.retry_attempts} failed: {exc}. "
            f"Retrying in {wait:.0f}s"
        )

    def _retrying(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(
                multiplier=self.retry_min_wait_seconds,
                min=self.retry_min_wait_seconds,
                max=self.retry_max_wait_seconds,
            ),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            before_sleep=self._log_retry,
            sleep=self.sleep,
            reraise=True,
        )

    def build_records(self, window: SyncWindow) -> dict[str, list[SinkRecord]]:
        """Fetch a window and map it into per-thermostat point batches."""
        metadata = self.fetcher.fetch_metadata(self.thermostat_id)
        report = self.fetcher.fetch_runtime_report(self.thermostat_id, window, self.column_flags)

        batches = {}
        for thermostat_id, entries in report.items():
            meta = metadata.get(thermostat_id)
            if meta is None:
                logger.warning(f"No metadata for thermostat {thermostat_id}, tagging by id only")
            tags = build_tags(thermostat_id, meta)
            batches[thermostat_id] = map_entries(entries, tags, self.measurement)
        return batches

    def sync_window(self, window: SyncWindow) -> SyncResult:
        """Fetch, write and advance for one window (single attempt)."""
        batches = self.build_records(window)
        if not batches:
            logger.warning(f"Runtime report for {window} contained no thermostats")

        written = 0
        for thermostat_id, records in batches.items():
            logger.debug(f"Writing {len(records)} points for thermostat {thermostat_id}")
            written += self.sink.write(records)

        if not self.store.write(self.watermark_key, window.end):
            raise WatermarkError(f"Could not persist watermark {window.end} for {self.watermark_key}")

        return SyncResult(window=window, records_written=written, thermostats=list(batches))

    def run_once(self) -> SyncResult:
        """Run one iteration.

        Returns:
            SyncResult; ``nothing_to_do`` is True when already caught up

        Raises:
            SyncAbortedError: If the window still fails after all attempts
        """
        watermark = self.store.read(self.watermark_key)
        window = self.planner.next_window(watermark)
        if window is None:
            logger.info(f"Nothing to do for thermostat {self.thermostat_id} (watermark {watermark})")
            return SyncResult(window=None)

        logger.info(f"Syncing {window} ({window.days} day(s)) for thermostat {self.thermostat_id}")

        retrying = self._retrying()
        try:
            for attempt in retrying:
                with attempt:
                    result = self.sync_window(window)
        except RETRYABLE_ERRORS as e:
            raise SyncAbortedError(
                f"Giving up on {window} after {self.retry_attempts} attempt(s): {e}", window=window
            ) from e

        result.attempts = retrying.statistics.get("attempt_number", 1)
        logger.info(
            f"Wrote {result.records_written} points for {window}, watermark now {window.end}"
        )
        return result

    def run_forever(self, once: bool = False) -> Optional[SyncResult]:
        """Keep syncing until caught up, then idle and check again.

        Args:
            once: Return as soon as there is nothing left to do

        Returns:
            The final "nothing to do" result when ``once`` is set
        """
        while True:
            result = self.run_once()
            if result.nothing_to_do:
                if once:
                    return result
                self.sleep(self.idle_seconds)
            else:
                self.sleep(self.batch_pause_seconds)
