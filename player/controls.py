"""Control overlay visibility, tap gestures and fullscreen."""
from __future__ import annotations

import logging
from typing import Callable, Optional, Protocol, Tuple

from .settings import PlayerSettings
from .timers import Scheduler, Timer

logger = logging.getLogger(__name__)


class Display(Protocol):
    def request_fullscreen(self) -> None: ...

    def exit_fullscreen(self) -> None: ...

    def lock_orientation(self, orientation: str) -> None: ...

    def unlock_orientation(self) -> None: ...


class ControlsLayer:
    """Auto-hiding overlay plus single/double tap handling on the playback surface.

    ``can_hide`` tells the layer whether hiding is allowed right now (only
    while playing with no prompt or error on screen). ``skip`` receives the
    signed seek offset produced by a double tap.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        skip: Callable[[float], None],
        can_hide: Callable[[], bool],
        settings: Optional[PlayerSettings] = None,
        display: Optional[Display] = None,
        on_change: Optional[Callable[[], None]] = None,
    ):
        self.settings = settings or PlayerSettings()
        self._scheduler = scheduler
        self._skip = skip
        self._can_hide = can_hide
        self.display = display
        self._on_change = on_change
        self._visible = True
        self.fullscreen = False
        self.skip_indicator: Optional[float] = None
        self._last_tap: Optional[Tuple[float, float, bool]] = None
        self._hide_timer = Timer(scheduler, "controls-hide")
        self._tap_timer = Timer(scheduler, "single-tap")
        self._indicator_timer = Timer(scheduler, "skip-indicator")

    @property
    def visible(self) -> bool:
        return self._visible or not self._can_hide()

    @property
    def hide_pending(self) -> bool:
        return self._hide_timer.active

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()

    def _schedule_hide(self) -> None:
        if not self._can_hide():
            self._hide_timer.cancel()
            return
        self._hide_timer.start(self.settings.controls_hide_after, self._auto_hide)

    def _auto_hide(self) -> None:
        if self._can_hide():
            self._visible = False
            self._changed()

    def activity(self) -> None:
        """Pointer movement or key press: show and restart the hide countdown."""
        self._visible = True
        self._schedule_hide()

    def playback_changed(self) -> None:
        if self._can_hide():
            self._schedule_hide()
        else:
            self._hide_timer.cancel()
            self._visible = True

    def show(self) -> None:
        self._visible = True
        self._schedule_hide()

    def hide(self) -> None:
        self._hide_timer.cancel()
        if self._can_hide():
            self._visible = False

    def toggle(self) -> None:
        if self.visible:
            self.hide()
        else:
            self.show()

    def tap(self, x: float, width: float, on_chrome: bool = False) -> None:
        """Register a tap at horizontal position ``x`` on a surface ``width`` wide.

        Taps on control chrome are ignored here; the buttons handle them.
        """
        if on_chrome or width <= 0:
            return
        now = self._scheduler.time()
        right = x >= width / 2
        last = self._last_tap
        if (
            last is not None
            and self._tap_timer.active
            and now - last[0] <= self.settings.double_tap_window
            and last[2] == right
            and abs(x - last[1]) <= self.settings.double_tap_slop
        ):
            self._tap_timer.cancel()
            self._last_tap = None
            offset = self.settings.skip_seconds if right else -self.settings.skip_seconds
            self._skip(offset)
            self.skip_indicator = offset
            self._indicator_timer.start(self.settings.skip_indicator_seconds, self._clear_indicator)
            self._changed()
            return
        self._last_tap = (now, x, right)
        self._tap_timer.start(self.settings.double_tap_window, self._single_tap)

    def _single_tap(self) -> None:
        self._last_tap = None
        self.toggle()
        self._changed()

    def _clear_indicator(self) -> None:
        self.skip_indicator = None
        self._changed()

    def toggle_fullscreen(self) -> None:
        if self.display is None:
            return
        if not self.fullscreen:
            try:
                self.display.request_fullscreen()
            except Exception as e:  # noqa: BLE001
                logger.debug("[fullscreen] request failed: %s", e)
                return
            self.fullscreen = True
            try:
                self.display.lock_orientation("landscape")
            except Exception as e:  # noqa: BLE001
                logger.debug("[fullscreen] orientation lock failed: %s", e)
            return
        try:
            self.display.unlock_orientation()
        except Exception as e:  # noqa: BLE001
            logger.debug("[fullscreen] orientation unlock failed: %s", e)
        try:
            self.display.exit_fullscreen()
        except Exception as e:  # noqa: BLE001
            logger.debug("[fullscreen] exit failed: %s", e)
        self.fullscreen = False

    def clear(self) -> None:
        """Cancel every pending timer and reset transient gesture state."""
        self._hide_timer.cancel()
        self._tap_timer.cancel()
        self._indicator_timer.cancel()
        self._last_tap = None
        self.skip_indicator = None
        self._visible = True
