"""
Persisted JSON documents: the config/counter file and the error log.

This module is responsible for:
- Locating the per-user config directory
- Reading and atomically rewriting JSON documents (temp file + os.replace)
- Serializing read-modify-write updates within the process
- Creating the default config document on first use
- Appending error records to the error log
"""

import json
import logging
import os
import sys
import tempfile
import threading
import traceback
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from . import __version__

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.json"
ERRORS_FILE_NAME = "errors.json"

HOME_ENV_VAR = "FILE_SORTER_HOME"
VENDOR_DIR_NAME = "WPS Programs"
APP_DIR_NAME = "File Sorter"

PLACEHOLDER_ERROR_ID = "00000000-0000-0000-0000-000000000000"


def default_config_dir() -> Path:
    """
    Resolve the directory that holds config.json and errors.json.

    Order: $FILE_SORTER_HOME, then %LOCALAPPDATA%\\WPS Programs\\File Sorter
    on Windows, then $XDG_DATA_HOME/file-sorter (or ~/.local/share/file-sorter).
    """
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return Path(override).expanduser()

    if sys.platform == "win32":
        local_app_data = os.environ.get("LOCALAPPDATA")
        base = Path(local_app_data) if local_app_data else Path.home() / "AppData" / "Local"
        return base / VENDOR_DIR_NAME / APP_DIR_NAME

    data_home = os.environ.get("XDG_DATA_HOME")
    base = Path(data_home) if data_home else Path.home() / ".local" / "share"
    return base / "file-sorter"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class JsonDocument:
    """
    A JSON file rewritten atomically on every save.

    update() runs read-modify-write under a lock so concurrent updates from
    threads of this process cannot lose each other's changes.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = threading.RLock()

    def exists(self) -> bool:
        return self.path.exists()

    def read(self, default: Any = None) -> Any:
        """
        Load the document.

        Args:
            default: Value returned when the file does not exist

        Raises:
            ValueError: If the file exists but is not valid JSON
        """
        with self._lock:
            if not self.path.exists():
                return default
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    return json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"Corrupt JSON document {self.path}: {e}") from e

    def write(self, data: Any) -> None:
        """Replace the document with data, atomically."""
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                dir=str(self.path.parent)
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise

    def update(self, func: Callable[[Any], Any], default: Any = None) -> Any:
        """
        Read, transform and write the document as one step.

        Args:
            func: Receives the current value and returns the new one
            default: Current value to use when the file does not exist

        Returns:
            The value that was written
        """
        with self._lock:
            new_value = func(self.read(default))
            self.write(new_value)
            return new_value


class ConfigStore:
    """Config document holding version info and the moved-files counter."""

    def __init__(self, config_dir: Union[str, Path, None] = None):
        self.config_dir = Path(config_dir) if config_dir else default_config_dir()
        self.document = JsonDocument(self.config_dir / CONFIG_FILE_NAME)

    @staticmethod
    def default_config() -> Dict[str, Any]:
        return {
            "firstLaunch": False,
            "version": __version__,
            "lastOpened": _now_iso(),
            "filesMoved": 0,
        }

    def load(self) -> Dict[str, Any]:
        """
        Load the config, creating the directory and defaults on first use.

        An existing document has its "version" refreshed and is saved back.

        Returns:
            The config dictionary
        """
        self.config_dir.mkdir(parents=True, exist_ok=True)

        def refresh(config: Optional[Dict[str, Any]]) -> Dict[str, Any]:
            if config is None:
                logger.info(f"Creating default config at {self.document.path}")
                return self.default_config()
            config["version"] = __version__
            return config

        return self.document.update(refresh)

    def add_files_moved(self, count: int) -> int:
        """
        Increase the filesMoved counter.

        Returns:
            The new counter value
        """
        def increment(config: Optional[Dict[str, Any]]) -> Dict[str, Any]:
            config = config if config is not None else self.default_config()
            config["filesMoved"] = int(config.get("filesMoved", 0)) + count
            return config

        return self.document.update(increment)["filesMoved"]

    def get(self, key: str, default: Any = None) -> Any:
        config = self.document.read(default={})
        return config.get(key, default)


def generate_error_id() -> str:
    return str(uuid.uuid4()).upper()


def build_error_record(error: BaseException) -> Dict[str, Any]:
    """
    Build an error log record for an exception.

    Returns:
        {"date", "error": {"stack", "message", "name"}, "errorId"}
    """
    if error.__traceback__ is not None:
        stack = "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        )
    else:
        stack = "No stack available"

    return {
        "date": _now_iso(),
        "error": {
            "stack": stack,
            "message": str(error),
            "name": type(error).__name__ or "Unknown",
        },
        "errorId": generate_error_id(),
    }


class ErrorLog:
    """Append-only JSON error log."""

    def __init__(self, config_dir: Union[str, Path, None] = None):
        self.config_dir = Path(config_dir) if config_dir else default_config_dir()
        self.document = JsonDocument(self.config_dir / ERRORS_FILE_NAME)

    @staticmethod
    def placeholder_records() -> List[Dict[str, Any]]:
        return [{
            "date": _now_iso(),
            "error": {
                "stack": "No errors yet",
                "message": "No errors",
                "name": "Info",
            },
            "errorId": PLACEHOLDER_ERROR_ID,
        }]

    def record(self, error: BaseException) -> Dict[str, Any]:
        """
        Append an exception to the log.

        A missing log is seeded with a placeholder "Info" record first.

        Returns:
            The record that was appended
        """
        entry = build_error_record(error)

        def append(records: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
            records = list(records) if records is not None else self.placeholder_records()
            records.append(entry)
            return records

        self.document.update(append)
        logger.info(f"Logged error {entry['errorId']} to {self.document.path}")
        return entry

    def read_all(self) -> List[Dict[str, Any]]:
        return self.document.read(default=[])
