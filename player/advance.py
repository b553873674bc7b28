"""End-of-stream countdown into the next item."""
from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Optional

from .timers import Scheduler, Timer

logger = logging.getLogger(__name__)


class EndMode(str, Enum):
    COUNTDOWN = "countdown"
    REPLAY = "replay"


class AutoAdvance:
    def __init__(
        self,
        scheduler: Scheduler,
        seconds: int = 10,
        on_advance: Optional[Callable[[], object]] = None,
        on_tick: Optional[Callable[[int], object]] = None,
    ):
        self.seconds = seconds
        self.on_advance = on_advance
        self.on_tick = on_tick
        self.mode: Optional[EndMode] = None
        self.remaining = 0
        self._timer = Timer(scheduler, "countdown")

    @property
    def counting(self) -> bool:
        return self.mode is EndMode.COUNTDOWN and self._timer.active

    def stream_ended(self, has_next: bool) -> None:
        self._timer.cancel()
        if not has_next or self.on_advance is None:
            self.mode = EndMode.REPLAY
            self.remaining = 0
            return
        self.mode = EndMode.COUNTDOWN
        self.remaining = self.seconds
        self._timer.start(1.0, self._tick)

    def _tick(self) -> None:
        self.remaining -= 1
        if self.on_tick is not None:
            self.on_tick(self.remaining)
        if self.remaining > 0:
            self._timer.start(1.0, self._tick)
            return
        self._fire()

    def _fire(self) -> None:
        self._timer.cancel()
        self.mode = None
        self.remaining = 0
        if self.on_advance is not None:
            self.on_advance()

    def cancel(self) -> None:
        """Stop counting and fall back to the replay affordance."""
        if self.mode is not EndMode.COUNTDOWN:
            return
        self._timer.cancel()
        self.mode = EndMode.REPLAY
        self.remaining = 0

    def advance_now(self) -> None:
        if self.mode is not EndMode.COUNTDOWN:
            return
        self._fire()

    def clear(self) -> None:
        self._timer.cancel()
        self.mode = None
        self.remaining = 0
