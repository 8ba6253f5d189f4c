"""
Connector Configuration Settings

Settings are read from a JSON or YAML config file. Anything the file leaves
empty falls back to environment variables (a local .env file is honoured).
"""

import json
import logging
import os
import re
from dataclasses import dataclass, field, fields
from datetime import date
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Setting name -> environment variable used when the config file leaves it empty
ENV_FALLBACKS = {
    "api_key": "ECOBEE_API_KEY",
    "thermostat_id": "ECOBEE_THERMOSTAT_ID",
    "work_dir": "ECOBEE_WORK_DIR",
    "influx_server": "INFLUX_SERVER",
    "influx_user": "INFLUX_USER",
    "influx_password": "INFLUX_PASSWORD",
    "influx_database": "INFLUX_DATABASE",
}


def _camel_to_snake(name: str) -> str:
    """Convert camelCase to snake_case."""
    s1 = re.sub("(.)([A-Z][a-z]+)", r"\1_\2", name)
    return re.sub("([a-z0-9])([A-Z])", r"\1_\2", s1).lower()


@dataclass(frozen=True)
class ColumnFlags:
    """Optional equipment channels to request from the runtime report."""

    humidifier: bool = False
    aux_heat_1: bool = False
    aux_heat_2: bool = False
    heat_pump_1: bool = False
    heat_pump_2: bool = False
    cool_1: bool = False
    cool_2: bool = False


@dataclass
class ConnectorSettings:
    """Configuration for one thermostat -> InfluxDB connector."""

    api_key: str = ""
    thermostat_id: str = ""
    work_dir: str = ""
    influx_server: str = ""
    influx_user: str = ""
    influx_password: str = ""
    influx_database: str = ""
    influx_health_check_disabled: bool = False
    measurement: str = "ecobee_runtime_report"
    columns: ColumnFlags = field(default_factory=ColumnFlags)
    backfill_start: Optional[date] = None  # Seeds an absent watermark
    max_window_days: int = 14
    retry_attempts: int = 5
    retry_min_wait_seconds: float = 2.0
    retry_max_wait_seconds: float = 60.0
    idle_seconds: float = 3600.0  # Sleep when caught up
    batch_pause_seconds: float = 3.0  # Pause between windows while catching up
    request_timeout_seconds: float = 30.0

    @classmethod
    def from_dict(cls, data: dict) -> "ConnectorSettings":
        """Create from dictionary.

        Accepts snake_case or camelCase keys. The flat ``write_*`` flags of
        older config files are folded into ``columns``.
        """
        converted = {_camel_to_snake(k): v for k, v in data.items()}

        column_values = dict(converted.pop("columns", None) or {})
        for flag in fields(ColumnFlags):
            legacy_key = f"write_{flag.name}"
            if legacy_key in converted:
                column_values[flag.name] = converted.pop(legacy_key)

        unknown_columns = set(column_values) - {f.name for f in fields(ColumnFlags)}
        if unknown_columns:
            raise ConfigurationError(f"Unknown column flags: {sorted(unknown_columns)}")

        known = {f.name for f in fields(cls)}
        unknown = set(converted) - known
        if unknown:
            # Old configs carry keys we no longer use
            logger.warning(f"Ignoring unknown config keys: {sorted(unknown)}")
        kwargs = {k: v for k, v in converted.items() if k in known}

        if kwargs.get("backfill_start"):
            kwargs["backfill_start"] = _parse_date(kwargs["backfill_start"], "backfill_start")
        else:
            kwargs.pop("backfill_start", None)

        return cls(columns=ColumnFlags(**{k: bool(v) for k, v in column_values.items()}), **kwargs)

    @property
    def work_path(self) -> Path:
        return Path(self.work_dir) if self.work_dir else Path.cwd()

    @property
    def token_cache_path(self) -> Path:
        return self.work_path / "ecobee-cred-cache"

    def validate(self, require_influx: bool = True) -> None:
        """Raise ConfigurationError if mandatory settings are missing."""
        # Listing thermostats only needs the app key, so the ID can be looked up first
        required = ["api_key"]
        if require_influx:
            required += ["thermostat_id", "influx_server", "influx_database"]

        missing = [name for name in required if not getattr(self, name)]
        if missing:
            raise ConfigurationError(f"Missing required settings: {', '.join(missing)}")

        if not 1 <= self.max_window_days <= 31:
            raise ConfigurationError("max_window_days must be between 1 and 31")
        if self.retry_attempts < 1:
            raise ConfigurationError("retry_attempts must be at least 1")


def _parse_date(value, name: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a YYYY-MM-DD date, got {value!r}") from e


def _read_config_file(path: Path) -> dict:
    """Read a JSON or YAML config file into a dict."""
    try:
        with open(path) as f:
            if path.suffix.lower() in (".yaml", ".yml"):
                data = yaml.safe_load(f) or {}
            else:
                data = json.load(f)
    except OSError as e:
        raise ConfigurationError(f"Unable to read config file '{path}': {e}") from e
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Unable to parse config file '{path}': {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file '{path}' must contain a mapping")

    # Home Assistant style files nest everything under "options"
    if "options" in data and isinstance(data["options"], dict):
        data = data["options"]
    return data


def load_settings(config_path: Optional[str | Path] = None) -> ConnectorSettings:
    """Load settings from config file with environment fallback.

    Args:
        config_path: JSON or YAML file (optional, env-only if omitted)

    Returns:
        Populated ConnectorSettings (not yet validated)
    """
    data = {}
    if config_path:
        data = _read_config_file(Path(config_path))
        logger.debug(f"Loaded config from {config_path}")

    settings = ConnectorSettings.from_dict(data)

    load_dotenv()  # this loads from .env automatically
    for name, env_var in ENV_FALLBACKS.items():
        if not getattr(settings, name):
            value = os.getenv(env_var, "")
            if value:
                setattr(settings, name, value)
                logger.debug(f"Using {env_var} from environment for {name}")

    return settings
