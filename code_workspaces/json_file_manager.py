"""JSON File Manager Base Class.

Provides thread-safe, debounced access to a JSON file with:
- File locking for cross-process safety (fcntl.flock)
- Automatic reload when the file changes on disk (mtime checking)
- Debounced writes to reduce disk I/O
- Change callbacks receiving the dotted keys ("section.key") that changed

This is the base class for SettingsManager.
"""

import fcntl
import json
import logging
import threading
from collections.abc import Callable
from pathlib import Path
from threading import Timer
from typing import Any

logger = logging.getLogger(__name__)

# Debounce delay in seconds
DEBOUNCE_DELAY = 1.0

ChangeCallback = Callable[[set[str]], None]


def diff_keys(old: dict[str, Any], new: dict[str, Any]) -> set[str]:
    """Return dotted "section.key" names whose values differ between two documents.

    Non-dict sections are compared as a whole and reported by section name.
    """
    changed: set[str] = set()
    for section in set(old) | set(new):
        before = old.get(section)
        after = new.get(section)
        if before == after:
            continue
        if isinstance(before, dict) and isinstance(after, dict):
            for key in set(before) | set(after):
                if before.get(key) != after.get(key):
                    changed.add(f"{section}.{key}")
        elif isinstance(before, dict) or isinstance(after, dict):
            present = before if isinstance(before, dict) else after
            changed.update(f"{section}.{key}" for key in present)
        else:
            changed.add(section)
    return changed


class JsonFileManager:
    """Thread-safe, debounced JSON file manager.

    Subclasses set ``_file_label`` for log messages and may pass default data.
    Callbacks run outside the lock, after the change is visible to readers.
    """

    _file_label: str = "JSON file"

    def __init__(self, file_path: Path, default_data: dict[str, Any] | None = None):
        """Initialize the manager and load the file.

        Args:
            file_path: JSON file to manage
            default_data: Data used when the file is missing or invalid
        """
        self._file_path = Path(file_path)
        self._default_data = default_data or {}
        self._lock = threading.RLock()
        self._cache: dict[str, Any] = {}
        self._dirty = False
        self._last_mtime: float = 0.0
        self._debounce_timer: Timer | None = None
        self._callbacks: list[ChangeCallback] = []

        with self._lock:
            self._load()

        logger.debug(f"{self._file_label} manager initialized from {self._file_path}")

    # ==================== Internals (lock held) ====================

    def _defaults(self) -> dict[str, Any]:
        # deep copy so the defaults never share state with the cache
        return json.loads(json.dumps(self._default_data))

    def _load(self) -> None:
        """Load data from disk."""
        try:
            if self._file_path.exists():
                with open(self._file_path, encoding="utf-8") as f:
                    data = json.load(f)
                self._last_mtime = self._file_path.stat().st_mtime
                if not isinstance(data, dict):
                    logger.error(f"{self._file_label} must contain a JSON object, using defaults")
                    data = self._defaults()
                self._cache = data
                logger.debug(f"{self._file_label} loaded, {len(self._cache)} sections")
            else:
                self._cache = self._defaults()
                self._last_mtime = 0.0
                logger.debug(f"{self._file_label} not found, using defaults: {self._file_path}")
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in {self._file_label}: {e}")
            self._cache = self._defaults()
        except OSError as e:
            logger.error(f"Failed to read {self._file_label}: {e}")
            self._cache = self._defaults()

    def _reload_if_changed(self) -> set[str]:
        """Reload if the file was modified externally; return the changed keys."""
        try:
            if not self._file_path.exists():
                return set()
            current_mtime = self._file_path.stat().st_mtime
        except OSError:
            return set()

        if current_mtime <= self._last_mtime:
            return set()

        logger.info(f"{self._file_label} changed externally, reloading")
        previous = self._cache
        self._load()
        return diff_keys(previous, self._cache)

    def _mark_dirty(self) -> None:
        """Mark data as dirty and schedule a debounced write."""
        self._dirty = True

        if self._debounce_timer is not None:
            self._debounce_timer.cancel()

        self._debounce_timer = Timer(DEBOUNCE_DELAY, self._flush_debounced)
        self._debounce_timer.daemon = True
        self._debounce_timer.start()

    def _flush_debounced(self) -> None:
        with self._lock:
            self._flush_internal()

    def _flush_internal(self) -> None:
        """Write data to disk with an exclusive file lock."""
        if not self._dirty:
            return

        try:
            self._file_path.parent.mkdir(parents=True, exist_ok=True)

            with open(self._file_path, "w", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_EX)
                try:
                    json.dump(self._cache, f, indent=2)
                    f.write("\n")
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)

            self._dirty = False
            self._last_mtime = self._file_path.stat().st_mtime
            logger.debug(f"{self._file_label} flushed to disk")

        except OSError as e:
            logger.error(f"Failed to write {self._file_label}: {e}")

    def _notify(self, changed: set[str]) -> None:
        """Invoke change callbacks (lock must NOT be held)."""
        if not changed:
            return
        with self._lock:
            callbacks = list(self._callbacks)
        for callback in callbacks:
            try:
                callback(set(changed))
            except Exception as e:
                logger.error(f"{self._file_label} change callback failed: {e}")

    # ==================== Change callbacks ====================

    def add_callback(self, callback: ChangeCallback) -> None:
        """Register a callback called with the set of changed "section.key" names."""
        with self._lock:
            self._callbacks.append(callback)

    def remove_callback(self, callback: ChangeCallback) -> None:
        """Unregister a callback (no-op if it is not registered)."""
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    # ==================== Public API ====================

    def get(self, section: str, key: str | None = None, default: Any = None) -> Any:
        """Get a value.

        Args:
            section: Top-level section name
            key: Optional key within section. If None, returns entire section.
            default: Default value if not found

        Returns:
            Value or default
        """
        with self._lock:
            changed = self._reload_if_changed()
            section_data = self._cache.get(section)
            if section_data is None:
                value = default
            elif key is None:
                value = section_data
            elif isinstance(section_data, dict):
                value = section_data.get(key, default)
            else:
                value = default

        self._notify(changed)
        return value

    def get_all(self) -> dict[str, Any]:
        """Return a shallow copy of the whole document."""
        with self._lock:
            changed = self._reload_if_changed()
            data = dict(self._cache)
        self._notify(changed)
        return data

    def set(self, section: str, key: str, value: Any, flush: bool = False) -> None:
        """Set a value.

        Args:
            section: Top-level section name
            key: Key within section
            value: Value to set
            flush: If True, write to disk immediately (default: debounced)
        """
        with self._lock:
            changed = self._reload_if_changed()

            if not isinstance(self._cache.get(section), dict):
                self._cache[section] = {}

            if self._cache[section].get(key) != value or key not in self._cache[section]:
                self._cache[section][key] = value
                changed.add(f"{section}.{key}")
                self._mark_dirty()

            if flush:
                self._flush_internal()

        self._notify(changed)

    def update_section(self, section: str, data: dict[str, Any], flush: bool = False) -> None:
        """Merge several keys into a section at once."""
        with self._lock:
            changed = self._reload_if_changed()

            if not isinstance(self._cache.get(section), dict):
                self._cache[section] = {}

            for key, value in data.items():
                if self._cache[section].get(key) != value or key not in self._cache[section]:
                    self._cache[section][key] = value
                    changed.add(f"{section}.{key}")

            if changed:
                self._mark_dirty()
            if flush:
                self._flush_internal()

        self._notify(changed)

    def flush(self) -> None:
        """Force write pending changes to disk immediately."""
        with self._lock:
            if self._debounce_timer is not None:
                self._debounce_timer.cancel()
                self._debounce_timer = None
            self._flush_internal()

    def reload(self) -> None:
        """Force reload from disk, discarding pending changes."""
        with self._lock:
            if self._debounce_timer is not None:
                self._debounce_timer.cancel()
                self._debounce_timer = None

            self._dirty = False
            previous = self._cache
            self._load()
            changed = diff_keys(previous, self._cache)

        self._notify(changed)

    @property
    def is_dirty(self) -> bool:
        """Check if there are pending changes not yet written to disk."""
        with self._lock:
            return bool(self._dirty)

    @property
    def file_path(self) -> Path:
        return self._file_path
