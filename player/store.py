"""Persisted playback state shared by every player in one client.

Values live in a single JSON document on disk, namespaced under an
application prefix. Every read and write starts from what is currently on
disk, so several stores opened on the same file see each other's changes.
Reads never raise and writes are best effort: once the file cannot be
written the store keeps working from memory for the rest of the session.
"""
from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

logger = logging.getLogger(__name__)

VOLUME_KEY = "volume"
MUTED_KEY = "muted"
PROGRESS_KEY = "progressByItem"


class PlaybackStore:
    def __init__(self, path: Union[str, Path, None] = None, prefix: str = "homereel"):
        self.path = Path(path).expanduser() if path is not None else None
        self.prefix = prefix
        self._data: Dict[str, Any] = {}
        # Set once a write fails; memory is then the only copy.
        self._detached = False
        self._warned = False

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    def _sync(self) -> None:
        """Replace the in-memory copy with the document on disk, if there is one."""
        if self.path is None or self._detached:
            return
        try:
            if not self.path.exists() or self.path.stat().st_size == 0:
                return
            raw = json.loads(self.path.read_text())
        except (OSError, ValueError) as e:
            if not self._warned:
                self._warned = True
                logger.warning("[store] unreadable %s, continuing in memory: %s", self.path, e)
            return
        if isinstance(raw, dict):
            self._data = raw

    def _flush(self) -> None:
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(".tmp")
            tmp.write_text(json.dumps(self._data, indent=2, sort_keys=True))
            tmp.replace(self.path)
            self._detached = False
        except (OSError, TypeError, ValueError) as e:
            self._detached = True
            logger.debug("[store] write failed for %s: %s", self.path, e)

    def read(self, key: str, default: Any = None) -> Any:
        try:
            self._sync()
            if self._key(key) not in self._data:
                return default
            return copy.deepcopy(self._data[self._key(key)])
        except Exception as e:  # noqa: BLE001
            logger.debug("[store] read %s failed: %s", key, e)
            return default

    def write(self, key: str, value: Any) -> None:
        self._sync()
        self._data[self._key(key)] = copy.deepcopy(value)
        self._flush()

    def update(self, key: str, fn: Callable[[Any], Any], default: Any = None) -> Any:
        """Read-modify-write against the latest stored value."""
        value = fn(self.read(key, default))
        self.write(key, value)
        return value

    # Typed accessors

    @property
    def volume(self) -> float:
        try:
            return min(1.0, max(0.0, float(self.read(VOLUME_KEY, 1.0))))
        except (TypeError, ValueError):
            return 1.0

    @volume.setter
    def volume(self, value: float) -> None:
        self.write(VOLUME_KEY, min(1.0, max(0.0, float(value))))

    @property
    def muted(self) -> bool:
        return bool(self.read(MUTED_KEY, False))

    @muted.setter
    def muted(self, value: bool) -> None:
        self.write(MUTED_KEY, bool(value))

    def progress(self, item_id: Optional[str]) -> Optional[float]:
        if not item_id:
            return None
        entries = self.read(PROGRESS_KEY, {})
        if not isinstance(entries, dict):
            return None
        try:
            value = entries.get(item_id)
            return float(value) if value is not None else None
        except (TypeError, ValueError):
            return None

    def save_progress(self, item_id: str, seconds: float) -> None:
        def _set(entries: Any) -> Dict[str, float]:
            out = dict(entries) if isinstance(entries, dict) else {}
            out[item_id] = float(seconds)
            return out

        self.update(PROGRESS_KEY, _set, {})

    def clear_progress(self, item_id: Optional[str]) -> None:
        if not item_id:
            return

        def _drop(entries: Any) -> Dict[str, float]:
            out = dict(entries) if isinstance(entries, dict) else {}
            out.pop(item_id, None)
            return out

        self.update(PROGRESS_KEY, _drop, {})
