"""
Rulebook File Loader
====================

Loads the rulebook from YAML and hot-reloads it when the file changes.

A reload that fails validation keeps the previous snapshot in place, so a
bad edit never leaves the engine without rules.
"""

import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from servicedesk.core.exceptions import ConfigurationException
from servicedesk.rulebook.application import IRulebookProvider
from servicedesk.rulebook.domain import Rulebook
from servicedesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class RulebookFileHandler(FileSystemEventHandler):
    """Watchdog event handler for rulebook file changes."""

    def __init__(self, manager: "RulebookManager", path: Path):
        self.manager = manager
        self.path = path
        super().__init__()

    def on_modified(self, event):
        if event.is_directory:
            return
        if Path(event.src_path).resolve() == self.path.resolve():
            logger.info(f"Rulebook file changed: {event.src_path}")
            self.manager.reload()

    on_created = on_modified


def parse_rulebook(path: Path) -> Rulebook:
    """
    Read and validate a rulebook file.

    Raises:
        ConfigurationException: unreadable YAML or invalid rules
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationException(f"Rulebook {path} is not valid YAML: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationException(f"Rulebook {path} must be a mapping at the top level")

    try:
        return Rulebook.model_validate(data)
    except ValidationError as e:
        raise ConfigurationException(
            f"Rulebook {path} failed validation",
            {"errors": e.errors(include_url=False, include_context=False)},
        ) from e


class RulebookManager(IRulebookProvider):
    """
    Thread-safe rulebook holder with hot-reload support.

    Uses watchdog to monitor the file; readers call ``snapshot()`` and keep
    the returned object for the duration of one operation.
    """

    def __init__(self):
        self._rulebook: Optional[Rulebook] = None
        self._lock = threading.Lock()
        self._path: Optional[Path] = None
        self._observer = None
        self.loaded_at: Optional[datetime] = None
        self.last_error: Optional[str] = None

    def load(self, path: Path) -> Rulebook:
        """
        Initial load. A missing file yields an empty rulebook; an invalid
        file raises ConfigurationException.
        """
        self._path = Path(path)
        rulebook = self._load_from_file(self._path)
        with self._lock:
            self._rulebook = rulebook
            self.loaded_at = datetime.now(timezone.utc)
            self.last_error = None
        logger.info("Rulebook loaded", extra={"path": str(self._path), **rulebook.summary()})
        return rulebook

    def _load_from_file(self, path: Path) -> Rulebook:
        if not path.exists():
            logger.warning(f"Rulebook file not found: {path}, using an empty rulebook")
            return Rulebook()
        return parse_rulebook(path)

    def reload(self) -> bool:
        """Reload from file. Returns False and keeps the old snapshot on failure."""
        if self._path is None:
            return False

        try:
            rulebook = self._load_from_file(self._path)
        except ConfigurationException as e:
            self.last_error = e.message
            logger.error(
                "Failed to reload rulebook, keeping previous snapshot",
                extra={"path": str(self._path), "error": e.message, "details": e.details},
            )
            return False

        with self._lock:
            self._rulebook = rulebook
            self.loaded_at = datetime.now(timezone.utc)
            self.last_error = None
        logger.info("Rulebook reloaded successfully", extra=rulebook.summary())
        return True

    def start_watching(self) -> None:
        """
        Start watching the rulebook file for changes.

        Skips watching if the file doesn't exist or inotify is unavailable.
        """
        if self._path is None:
            raise RuntimeError("Rulebook not loaded. Call load() first.")

        if not self._path.exists():
            logger.info(f"Rulebook file doesn't exist, skipping file watch: {self._path}")
            return

        try:
            self._observer = Observer()
            self._observer.schedule(
                RulebookFileHandler(self, self._path),
                str(self._path.resolve().parent),
                recursive=False,
            )
            self._observer.start()
            logger.info(f"Started watching rulebook file: {self._path}")
        except OSError as e:
            logger.warning(f"File watching not available, using static rulebook: {e}")
            self._observer = None

    def stop_watching(self) -> None:
        """Stop watching (safe to call even if not watching)."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    @property
    def is_watching(self) -> bool:
        return self._observer is not None

    @property
    def path(self) -> Optional[Path]:
        return self._path

    def snapshot(self) -> Rulebook:
        with self._lock:
            if self._rulebook is None:
                raise RuntimeError("Rulebook not loaded")
            return self._rulebook
