"""Application context: the single source of truth for runtime paths.

Every service and router receives this object instead of individual path
strings.  Properties always return the *current* value, so moving
``data_dir`` at runtime reaches the notes store and audio writer without
re-constructing them.
"""

from __future__ import annotations

import os
import threading


class AppContext:
    """Holds all runtime directory paths for the application."""

    def __init__(self, *, cwd: str, data_dir: str, config_path: str) -> None:
        self._lock = threading.Lock()
        self._cwd = cwd
        self._data_dir = data_dir
        self._config_path = config_path

    # ── data_dir (hot-swappable) ───────────────────────────────────────

    @property
    def data_dir(self) -> str:
        with self._lock:
            return self._data_dir

    @data_dir.setter
    def data_dir(self, value: str) -> None:
        with self._lock:
            self._data_dir = value

    # ── Derived data paths (always follow current data_dir) ────────────

    @property
    def meetings_dir(self) -> str:
        return os.path.join(self.data_dir, "meetings")

    @property
    def audio_dir(self) -> str:
        return os.path.join(self.data_dir, "audio")

    # ── Config (always in the app-level data dir) ──────────────────────

    @property
    def config_path(self) -> str:
        return self._config_path

    # ── Logs (stay in cwd, not in data_dir) ────────────────────────────

    @property
    def logs_dir(self) -> str:
        return os.path.join(self._cwd, "logs")

    def ensure_dirs(self) -> None:
        """Create all required directories if they don't exist."""
        for d in (
            self.data_dir,
            self.meetings_dir,
            self.audio_dir,
            self.logs_dir,
        ):
            os.makedirs(d, exist_ok=True)
