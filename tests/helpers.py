from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple

from player.engine import HAVE_CURRENT_DATA, HAVE_ENOUGH_DATA, HAVE_METADATA, HAVE_NOTHING, PlaybackState


class FakeHandle:
    def __init__(self, when: float, seq: int, callback: Callable[..., Any], args: Tuple[Any, ...]):
        self.when = when
        self.seq = seq
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeLoop:
    """Virtual-time stand-in for an asyncio loop (``call_later`` + ``time``)."""

    def __init__(self) -> None:
        self.now = 0.0
        self._seq = 0
        self._handles: List[FakeHandle] = []

    def time(self) -> float:
        return self.now

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> FakeHandle:
        self._seq += 1
        h = FakeHandle(self.now + delay, self._seq, callback, args)
        self._handles.append(h)
        return h

    @property
    def pending(self) -> int:
        return sum(1 for h in self._handles if not h.cancelled)

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [h for h in self._handles if not h.cancelled and h.when <= target + 1e-9]
            if not due:
                break
            h = min(due, key=lambda x: (x.when, x.seq))
            self._handles.remove(h)
            self.now = max(self.now, h.when)
            h.callback(*h.args)
        self._handles = [h for h in self._handles if not h.cancelled]
        self.now = target


class FakeMediaElement:
    def __init__(self) -> None:
        self.ready_state = HAVE_NOTHING
        self.src: Optional[str] = None
        self.position = 0.0
        self.volume = 1.0
        self.muted = False
        self.calls: List[Tuple[Any, ...]] = []
        self.fail_on: set = set()

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, *args))
        if name in self.fail_on:
            raise RuntimeError(f"{name} failed")

    def load(self, src: str) -> None:
        self.src = src
        self.ready_state = HAVE_NOTHING
        self._record("load", src)

    def play(self) -> None:
        self._record("play")

    def pause(self) -> None:
        self._record("pause")

    def seek(self, seconds: float) -> None:
        self.position = seconds
        self._record("seek", seconds)

    def set_volume(self, volume: float) -> None:
        self.volume = volume
        self._record("set_volume", volume)

    def set_muted(self, muted: bool) -> None:
        self.muted = muted
        self._record("set_muted", muted)

    def count(self, name: str) -> int:
        return sum(1 for c in self.calls if c[0] == name)

    def last(self, name: str) -> Optional[Tuple[Any, ...]]:
        for c in reversed(self.calls):
            if c[0] == name:
                return c
        return None


class FakeDisplay:
    def __init__(self, fail_lock: bool = False) -> None:
        self.fail_lock = fail_lock
        self.fullscreen = False
        self.orientation: Optional[str] = None
        self.calls: List[str] = []

    def request_fullscreen(self) -> None:
        self.calls.append("request_fullscreen")
        self.fullscreen = True

    def exit_fullscreen(self) -> None:
        self.calls.append("exit_fullscreen")
        self.fullscreen = False

    def lock_orientation(self, orientation: str) -> None:
        self.calls.append(f"lock:{orientation}")
        if self.fail_lock:
            raise RuntimeError("orientation lock not supported")
        self.orientation = orientation

    def unlock_orientation(self) -> None:
        self.calls.append("unlock")
        if self.fail_lock:
            raise RuntimeError("orientation lock not supported")
        self.orientation = None


def make_ready(engine, element: FakeMediaElement, duration: float = 600.0) -> None:
    """Deliver loadedmetadata followed by canplay, the way a browser does."""
    element.ready_state = HAVE_METADATA
    engine.on_loaded_metadata(duration)
    element.ready_state = HAVE_ENOUGH_DATA
    engine.on_can_play()


def start_playing(engine, element: FakeMediaElement, duration: float = 600.0) -> None:
    make_ready(engine, element, duration)
    if engine.state is not PlaybackState.PLAYING:
        engine.play()
    engine.on_playing()


def play_through(engine, start: float, stop: float, step: float = 0.5) -> None:
    """Emit contiguous time updates from ``start`` to ``stop`` inclusive."""
    t = start
    while t <= stop + 1e-9:
        engine.on_time_update(t)
        t += step


def write_video(root: Path, name: str, size: int = 1000) -> Path:
    p = root / name
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_bytes(bytes(i % 256 for i in range(size)))
    return p


__all__ = [
    "FakeDisplay",
    "FakeLoop",
    "FakeMediaElement",
    "HAVE_CURRENT_DATA",
    "make_ready",
    "play_through",
    "start_playing",
    "write_video",
]
