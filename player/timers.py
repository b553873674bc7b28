"""Single-shot timer ownership on top of an event-loop style scheduler.

Anything with ``call_later(delay, callback)`` returning a handle with
``cancel()`` and a monotonic ``time()`` works; an ``asyncio`` event loop
is the production scheduler.
"""
from __future__ import annotations

from typing import Any, Callable, Optional, Protocol


class Handle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> Handle: ...

    def time(self) -> float: ...


class Timer:
    """Owns at most one pending callback.

    ``start`` replaces whatever was pending, ``cancel`` is a no-op when
    nothing is pending.
    """

    def __init__(self, scheduler: Scheduler, name: str = "timer"):
        self._scheduler = scheduler
        self.name = name
        self._handle: Optional[Handle] = None

    @property
    def active(self) -> bool:
        return self._handle is not None

    def start(self, delay: float, callback: Callable[[], None]) -> None:
        self.cancel()

        def _fire() -> None:
            self._handle = None
            callback()

        self._handle = self._scheduler.call_later(delay, _fire)

    def cancel(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.cancel()

    def __repr__(self) -> str:
        return f"Timer({self.name!r}, active={self.active})"
