"""Ecobee runtime report to InfluxDB connector package."""

# Define public API
__all__ = [
    "ConnectorSettings",
    "ColumnFlags",
    "load_settings",
    "SyncWindow",
    "SinkRecord",
    "EcobeeClient",
    "ReportFetcher",
    "InfluxSink",
    "FileWatermarkStore",
    "MemoryWatermarkStore",
    "WindowPlanner",
    "SyncService",
    "wind_chill",
    "indoor_humidity_recommendation",
]

# Import settings
from .settings import ColumnFlags, ConnectorSettings, load_settings

# Import models
from .models import SinkRecord, SyncWindow

# Import collaborators
from .ecobee_client import EcobeeClient
from .fetcher import ReportFetcher
from .influx_sink import InfluxSink
from .watermark import FileWatermarkStore, MemoryWatermarkStore
from .planner import WindowPlanner

# Import sync loop
from .sync_service import SyncService

# Import derived metrics
from .derived_metrics import indoor_humidity_recommendation, wind_chill
