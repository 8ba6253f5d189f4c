"""
Sync Watermark Storage

The watermark is the last calendar day whose runtime data has been fully
written to InfluxDB. It is stored per thermostat key and only ever moves
forward.
"""

import logging
import os
import tempfile
from datetime import date
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class WatermarkStore:
    """Key-value store mapping a thermostat key to its last synced day."""

    def read(self, key: str) -> Optional[date]:
        """Return the stored day, or None when there is no prior progress."""
        raise NotImplementedError

    def write(self, key: str, day: date) -> bool:
        """Persist a new day. Returns False if it could not be stored."""
        current = self.read(key)
        if current is not None and day < current:
            logger.warning(
                f"Refusing to move watermark for {key} back from {current} to {day}"
            )
            return True
        return self._store(key, day)

    def _store(self, key: str, day: date) -> bool:
        raise NotImplementedError


class MemoryWatermarkStore(WatermarkStore):
    """In-memory store, used for dry runs and tests."""

    def __init__(self, initial: Optional[dict[str, date]] = None):
        self.values: dict[str, date] = dict(initial or {})

    def read(self, key: str) -> Optional[date]:
        return self.values.get(key)

    def _store(self, key: str, day: date) -> bool:
        self.values[key] = day
        return True


class FileWatermarkStore(WatermarkStore):
    """One text file per key holding a single ``YYYY-MM-DD`` line."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        safe_key = "".join(c if c.isalnum() or c in "-_" else "_" for c in key)
        return self.directory / f"last_data_{safe_key}.txt"

    def read(self, key: str) -> Optional[date]:
        path = self.path_for(key)
        try:
            text = path.read_text().strip()
        except FileNotFoundError:
            logger.debug(f"No watermark file at {path}")
            return None
        except OSError as e:
            logger.warning(f"Cannot read watermark file {path}: {e}")
            return None

        try:
            return date.fromisoformat(text)
        except ValueError:
            logger.warning(f"Ignoring unparsable watermark '{text}' in {path}")
            return None

    def _store(self, key: str, day: date) -> bool:
        path = self.path_for(key)
        tmp_name = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".watermark-")
            with os.fdopen(fd, "w") as f:
                f.write(day.isoformat() + "\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as e:
            logger.error(f"Failed to write watermark {day} to {path}: {e}", exc_info=True)
            return False
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)

        logger.debug(f"Watermark for {key} is now {day}")
        return True
