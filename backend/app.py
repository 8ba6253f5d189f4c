"""
Ecobee -> InfluxDB Connector

Command line entry point. Loads configuration, wires the sync service and
runs the backfill loop until killed (or until caught up with --once).
"""

import argparse
import os
import sys
from datetime import date

import log_config  # noqa: F401
from loguru import logger

# Add core to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.ecobee_influx.ecobee_client import EcobeeClient
from core.ecobee_influx.exceptions import (
    AuthenticationError,
    ConfigurationError,
    EcobeeInfluxError,
    SinkWriteError,
    SyncAbortedError,
)
from core.ecobee_influx.fetcher import ReportFetcher
from core.ecobee_influx.influx_sink import InfluxSink
from core.ecobee_influx.planner import WindowPlanner
from core.ecobee_influx.settings import ConnectorSettings, load_settings
from core.ecobee_influx.sync_service import SyncService
from core.ecobee_influx.watermark import FileWatermarkStore


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sync ecobee runtime reports into InfluxDB.")
    parser.add_argument("--config", required=True, help="Configuration JSON or YAML file.")
    parser.add_argument(
        "--list-thermostats",
        action="store_true",
        help="List available thermostats, then exit.",
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Show connection and running equipment of the configured thermostat, then exit.",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Exit once there is nothing left to sync instead of idling.",
    )
    parser.add_argument(
        "--since",
        type=date.fromisoformat,
        help="First day to fetch (YYYY-MM-DD) when no watermark exists yet.",
    )
    return parser.parse_args(argv)


def list_thermostats(fetcher: ReportFetcher) -> None:
    for thermostat in fetcher.list_thermostats():
        print(f"'{thermostat.name}': ID {thermostat.identifier}")


def show_status(fetcher: ReportFetcher, thermostat_id: str) -> None:
    for summary in fetcher.fetch_summary(thermostat_id).values():
        state = "connected" if summary.connected else "disconnected"
        running = ", ".join(summary.equipment_status.active) or "idle"
        print(f"'{summary.name}': ID {summary.identifier}, {state}, running: {running}")


def build_service(settings: ConnectorSettings, client: EcobeeClient) -> SyncService:
    """Wire the sync service from settings."""
    sink = InfluxSink(
        settings.influx_server,
        settings.influx_database,
        username=settings.influx_user,
        password=settings.influx_password,
        timeout=settings.request_timeout_seconds,
    )
    if settings.influx_health_check_disabled:
        logger.info("InfluxDB health check disabled")
    else:
        sink.health_check()

    planner = WindowPlanner(
        max_span_days=settings.max_window_days,
        seed_start=settings.backfill_start,
    )
    return SyncService(
        fetcher=ReportFetcher(client),
        sink=sink,
        store=FileWatermarkStore(settings.work_path),
        planner=planner,
        thermostat_id=settings.thermostat_id,
        column_flags=settings.columns,
        measurement=settings.measurement,
        retry_attempts=settings.retry_attempts,
        retry_min_wait_seconds=settings.retry_min_wait_seconds,
        retry_max_wait_seconds=settings.retry_max_wait_seconds,
        idle_seconds=settings.idle_seconds,
        batch_pause_seconds=settings.batch_pause_seconds,
    )


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    try:
        settings = load_settings(args.config)
        if args.since:
            settings.backfill_start = args.since
        lookup_only = args.list_thermostats or args.status
        settings.validate(require_influx=not lookup_only)
        if args.status and not settings.thermostat_id:
            raise ConfigurationError("Missing required settings: thermostat_id")
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    client = EcobeeClient(
        settings.api_key,
        settings.token_cache_path,
        timeout=settings.request_timeout_seconds,
    )

    try:
        if args.list_thermostats:
            list_thermostats(ReportFetcher(client))
            return 0
        if args.status:
            show_status(ReportFetcher(client), settings.thermostat_id)
            return 0

        service = build_service(settings, client)
        logger.info(f"Starting sync for thermostat {settings.thermostat_id}")
        service.run_forever(once=args.once)
    except SyncAbortedError as e:
        logger.error(f"Sync aborted: {e}")
        return 1
    except AuthenticationError as e:
        logger.error(f"Ecobee authentication failed: {e}")
        return 1
    except SinkWriteError as e:
        logger.error(f"InfluxDB unavailable: {e}")
        return 1
    except EcobeeInfluxError as e:
        logger.error(f"Unrecoverable error: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        return 0

    logger.info("Nothing further to do")
    return 0


if __name__ == "__main__":
    sys.exit(main())
