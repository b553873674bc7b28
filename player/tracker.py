"""Watch-time accrual that ignores seeks and fires one view signal per item."""
from __future__ import annotations

import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class ViewTracker:
    def __init__(
        self,
        on_view: Optional[Callable[[], object]] = None,
        threshold: float = 30.0,
        max_delta: float = 2.0,
    ):
        self.on_view = on_view
        self.threshold = threshold
        self.max_delta = max_delta
        self.played_seconds = 0.0
        # Sessions start at position 0.
        self.last_time = 0.0
        self.view_tracked = False

    def reset(self) -> None:
        self.played_seconds = 0.0
        self.last_time = 0.0
        self.view_tracked = False

    def observe(self, current_time: float, playing: bool = True) -> bool:
        """Feed one time update. Returns True when this update fired the view signal."""
        last, self.last_time = self.last_time, current_time
        if not playing:
            return False
        delta = current_time - last
        if 0 < delta < self.max_delta:
            self.played_seconds += delta
        if self.view_tracked or self.played_seconds < self.threshold:
            return False
        self.view_tracked = True
        if self.on_view is None:
            return False
        try:
            self.on_view()
        except Exception as e:  # noqa: BLE001
            logger.debug("[view] callback failed: %s", e)
        return True
