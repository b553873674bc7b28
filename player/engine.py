"""Playback engine: one media element, one explicit state machine.

The host forwards media events to the ``on_*`` methods and user intent to
the public operations. Nothing here raises across those entry points;
failures become state (``ERROR``) or are logged and dropped.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

from pydantic import BaseModel

from .advance import AutoAdvance
from .client import with_quality
from .controls import ControlsLayer, Display
from .fmt import format_time
from .resume import ResumeController
from .settings import PlayerSettings
from .store import PlaybackStore
from .timers import Scheduler
from .tracker import ViewTracker

logger = logging.getLogger(__name__)

# HTMLMediaElement.readyState levels
HAVE_NOTHING = 0
HAVE_METADATA = 1
HAVE_CURRENT_DATA = 2
HAVE_FUTURE_DATA = 3
HAVE_ENOUGH_DATA = 4


class PlaybackState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"
    SEEKING = "seeking"
    ENDED = "ended"
    ERROR = "error"


class MediaElement(Protocol):
    ready_state: int

    def load(self, src: str) -> None: ...

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def seek(self, seconds: float) -> None: ...

    def set_volume(self, volume: float) -> None: ...

    def set_muted(self, muted: bool) -> None: ...


@dataclass
class PlayerProps:
    """What the embedding host hands the player for one item."""

    media_source: str
    item_id: Optional[str] = None
    available_qualities: Sequence[str] = ()
    has_next: bool = False
    has_previous: bool = False
    on_next: Optional[Callable[[], object]] = None
    on_previous: Optional[Callable[[], object]] = None
    on_view: Optional[Callable[[], object]] = None
    autoplay: bool = False
    # Maps a quality label to a stream URL; defaults to a ``quality`` query param.
    quality_source: Optional[Callable[[str], str]] = None


@dataclass
class PlaybackSession:
    media_source: str
    item_id: Optional[str] = None
    state: PlaybackState = PlaybackState.LOADING
    current_time: float = 0.0
    duration: float = math.nan
    selected_quality: Optional[str] = None
    available_qualities: Tuple[str, ...] = field(default_factory=tuple)
    error: Optional[str] = None
    seeking: bool = False


class PlayerView(BaseModel):  # type: ignore
    state: PlaybackState
    display_state: PlaybackState
    loading: bool
    error: Optional[str] = None
    current_time: float
    duration: Optional[float] = None
    progress_percent: float
    current_time_text: str
    duration_text: str
    volume: float
    muted: bool
    controls_visible: bool
    resume_prompt: bool
    resume_position: Optional[float] = None
    end_mode: Optional[str] = None
    countdown: int = 0
    skip_indicator: Optional[float] = None
    selected_quality: Optional[str] = None
    available_qualities: List[str]
    fullscreen: bool
    has_next: bool
    has_previous: bool
    played_seconds: float
    view_tracked: bool


def _known(duration: float) -> bool:
    return math.isfinite(duration) and duration > 0


class PlaybackEngine:
    """Drives one media element.

    ``store`` holds volume, mute and per-item progress. Give every player in a
    client a store on the same file (or the same instance) so they share it.
    """

    def __init__(
        self,
        element: MediaElement,
        scheduler: Scheduler,
        store: PlaybackStore,
        settings: Optional[PlayerSettings] = None,
        display: Optional[Display] = None,
    ):
        self.element = element
        self.scheduler = scheduler
        self.store = store
        self.settings = settings or PlayerSettings()
        self.props: Optional[PlayerProps] = None
        self.session: Optional[PlaybackSession] = None
        self.tracker = ViewTracker(
            threshold=self.settings.view_threshold,
            max_delta=self.settings.max_accrual_delta,
        )
        self.resume = ResumeController(self.store, min_seconds=self.settings.resume_min_seconds)
        self.advance = AutoAdvance(
            scheduler,
            seconds=self.settings.countdown_seconds,
            on_advance=self.next,
            on_tick=lambda _remaining: self._notify(),
        )
        self.controls = ControlsLayer(
            scheduler,
            skip=self.skip,
            can_hide=self._controls_can_hide,
            settings=self.settings,
            display=display,
            on_change=self._notify,
        )
        self.volume = self.store.volume
        self.muted = self.store.muted
        self._listeners: List[Callable[[PlayerView], None]] = []
        # State to settle into once LOADING clears.
        self._intent: Optional[PlaybackState] = None
        self._autoplay = False
        # (position, play) applied when the next metadata arrives.
        self._restore: Optional[Tuple[float, bool]] = None
        self._metadata_ready = False
        self._last_saved: Optional[float] = None

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def state(self) -> PlaybackState:
        return self.session.state if self.session is not None else PlaybackState.IDLE

    def subscribe(self, listener: Callable[[PlayerView], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def snapshot(self) -> PlayerView:
        s = self.session or PlaybackSession(media_source="", state=PlaybackState.IDLE)
        duration = s.duration if _known(s.duration) else None
        percent = (s.current_time / s.duration * 100.0) if duration else 0.0
        display = s.state
        if s.seeking and s.state in (PlaybackState.PLAYING, PlaybackState.PAUSED):
            display = PlaybackState.SEEKING
        return PlayerView(
            state=s.state,
            display_state=display,
            loading=s.state is PlaybackState.LOADING,
            error=s.error,
            current_time=s.current_time,
            duration=duration,
            progress_percent=max(0.0, min(100.0, percent)),
            current_time_text=format_time(s.current_time),
            duration_text=format_time(duration),
            volume=self.volume,
            muted=self.muted,
            controls_visible=self.controls.visible,
            resume_prompt=self.resume.prompt_visible,
            resume_position=self.resume.saved_position if self.resume.prompt_visible else None,
            end_mode=self.advance.mode.value if self.advance.mode is not None else None,
            countdown=self.advance.remaining,
            skip_indicator=self.controls.skip_indicator,
            selected_quality=s.selected_quality,
            available_qualities=list(s.available_qualities),
            fullscreen=self.controls.fullscreen,
            has_next=bool(self.props and self.props.has_next),
            has_previous=bool(self.props and self.props.has_previous),
            played_seconds=self.tracker.played_seconds,
            view_tracked=self.tracker.view_tracked,
        )

    def _notify(self) -> None:
        if not self._listeners:
            return
        view = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(view)
            except Exception as e:  # noqa: BLE001
                logger.warning("[player] listener failed: %s", e)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _set_state(self, new: PlaybackState) -> None:
        s = self.session
        if s is None or s.state is new:
            return
        logger.debug("[player] %s -> %s", s.state.value, new.value)
        s.state = new
        self.controls.playback_changed()

    def _controls_can_hide(self) -> bool:
        s = self.session
        return (
            s is not None
            and s.state is PlaybackState.PLAYING
            and s.error is None
            and not self.resume.prompt_visible
        )

    def _call(self, callback: Optional[Callable[[], object]], what: str) -> None:
        if callback is None:
            return
        try:
            callback()
        except Exception as e:  # noqa: BLE001
            logger.warning("[player] %s callback failed: %s", what, e)

    def _element(self, action: str, *args) -> bool:
        try:
            getattr(self.element, action)(*args)
            return True
        except Exception as e:  # noqa: BLE001
            logger.debug("[player] element.%s failed: %s", action, e)
            return False

    def _apply_audio(self) -> None:
        self._element("set_volume", self.volume)
        self._element("set_muted", self.muted)

    def _source_url(self) -> str:
        s = self.session
        if s is None:
            return ""
        label = s.selected_quality
        if not label:
            return s.media_source
        if self.props is not None and self.props.quality_source is not None:
            return self.props.quality_source(label)
        return with_quality(s.media_source, label)

    def _load(self) -> None:
        try:
            url = self._source_url()
        except Exception as e:  # noqa: BLE001
            self.on_error(f"Failed to resolve source: {e}")
            return
        if not self._element("load", url):
            self.on_error("Failed to load video")

    def _cancel_timers(self) -> None:
        self.advance.clear()
        self.controls.clear()

    def _request_play(self) -> None:
        try:
            self.element.play()
        except Exception as e:  # noqa: BLE001
            self.on_play_rejected(e)

    def _settle(self) -> None:
        """Leave LOADING once the media can honour the recorded intent."""
        s = self.session
        if s is None or s.state is not PlaybackState.LOADING or not self._metadata_ready:
            return
        if self._intent is PlaybackState.PLAYING:
            if self.element.ready_state < HAVE_CURRENT_DATA:
                return
            self._intent = None
            self._set_state(PlaybackState.PLAYING)
            self._request_play()
            return
        self._intent = None
        self._set_state(PlaybackState.PAUSED)

    def _maybe_save_progress(self, t: float) -> None:
        s = self.session
        if s is None or not s.item_id or not _known(s.duration):
            return
        if not (self.settings.resume_min_seconds < t < self.settings.resume_max_fraction * s.duration):
            return
        if self._last_saved is not None and abs(t - self._last_saved) < self.settings.progress_save_interval:
            return
        self.store.save_progress(s.item_id, t)
        self._last_saved = t

    def _clamp(self, t: float) -> float:
        s = self.session
        t = max(0.0, float(t))
        if s is not None and _known(s.duration):
            t = min(t, s.duration)
        return t

    # ------------------------------------------------------------------
    # Source lifecycle
    # ------------------------------------------------------------------

    def set_source(self, props: PlayerProps) -> None:
        """Start a fresh session for ``props``; cancels everything from the old one."""
        self._cancel_timers()
        self.props = props
        self.session = PlaybackSession(
            media_source=props.media_source or "",
            item_id=props.item_id,
            state=PlaybackState.LOADING if props.media_source else PlaybackState.IDLE,
            available_qualities=tuple(props.available_qualities or ()),
        )
        self.tracker.on_view = props.on_view
        self.tracker.reset()
        self.resume.reset(props.item_id)
        self._intent = None
        self._restore = None
        self._metadata_ready = False
        self._last_saved = None
        self.volume = self.store.volume
        self.muted = self.store.muted
        self._apply_audio()
        if not props.media_source:
            self._autoplay = False
            self._notify()
            return
        prompting = self.resume.evaluate()
        self._autoplay = bool(props.autoplay) and not prompting
        logger.debug("[player] source %s item=%s prompt=%s", props.media_source, props.item_id, prompting)
        self._load()
        self.controls.playback_changed()
        self._notify()

    def teardown(self) -> None:
        self._cancel_timers()
        if self.session is not None:
            self._element("pause")
        self.session = None
        self.props = None
        self._intent = None
        self._restore = None
        self._autoplay = False
        self._metadata_ready = False
        self.tracker.reset()
        self.resume.reset(None)
        self._listeners.clear()

    def retry(self) -> None:
        s = self.session
        if s is None or s.state is not PlaybackState.ERROR:
            return
        s.error = None
        s.seeking = False
        self._metadata_ready = False
        self._intent = None
        self._restore = None
        s.state = PlaybackState.LOADING
        prompting = self.resume.evaluate()
        self._autoplay = not prompting
        if not prompting and s.current_time > 0:
            self._restore = (s.current_time, True)
        self._load()
        self.controls.playback_changed()
        self._notify()

    # ------------------------------------------------------------------
    # Media events
    # ------------------------------------------------------------------

    def on_load_start(self) -> None:
        s = self.session
        if s is None or s.state is PlaybackState.ERROR:
            return
        if s.state in (PlaybackState.PLAYING, PlaybackState.PAUSED) and self._intent is None:
            self._intent = s.state
        self._set_state(PlaybackState.LOADING)
        self._notify()

    def on_loaded_metadata(self, duration: float) -> None:
        s = self.session
        if s is None or s.state is PlaybackState.ERROR:
            return
        try:
            d = float(duration)
        except (TypeError, ValueError):
            d = math.nan
        s.duration = d if _known(d) else math.nan
        s.error = None
        self._metadata_ready = True
        if self._restore is not None:
            position, want_play = self._restore
            self._restore = None
            self.seek(position)
        else:
            want_play = self._autoplay
        self._autoplay = False
        if want_play:
            self._intent = PlaybackState.PLAYING
        self._settle()
        self._notify()

    def on_can_play(self) -> None:
        s = self.session
        if s is None or s.state is PlaybackState.ERROR:
            return
        self._settle()
        self._notify()

    def on_waiting(self) -> None:
        s = self.session
        if s is None or s.state not in (PlaybackState.PLAYING, PlaybackState.PAUSED):
            return
        self._intent = s.state
        self._set_state(PlaybackState.LOADING)
        self._notify()

    def on_playing(self) -> None:
        s = self.session
        if s is None or s.state is PlaybackState.ERROR:
            return
        self._intent = None
        self._metadata_ready = True
        if s.state is PlaybackState.ENDED:
            self.advance.clear()
        self._set_state(PlaybackState.PLAYING)
        self._notify()

    def on_pause(self) -> None:
        s = self.session
        if s is None:
            return
        if s.state is PlaybackState.PLAYING:
            self._set_state(PlaybackState.PAUSED)
        elif s.state is PlaybackState.LOADING:
            self._intent = PlaybackState.PAUSED
        self._notify()

    def on_time_update(self, current_time: float) -> None:
        s = self.session
        if s is None:
            return
        try:
            t = float(current_time)
        except (TypeError, ValueError):
            return
        if not math.isfinite(t):
            return
        s.current_time = t
        self.tracker.observe(t, playing=s.state is PlaybackState.PLAYING)
        self._maybe_save_progress(t)
        self._notify()

    def on_seeking(self) -> None:
        if self.session is not None:
            self.session.seeking = True
            self._notify()

    def on_seeked(self) -> None:
        if self.session is not None:
            self.session.seeking = False
            self._notify()

    def on_ended(self) -> None:
        s = self.session
        if s is None or s.state in (PlaybackState.ERROR, PlaybackState.ENDED):
            return
        self._intent = None
        if _known(s.duration):
            s.current_time = s.duration
        self._set_state(PlaybackState.ENDED)
        self.store.clear_progress(s.item_id)
        self._last_saved = None
        has_next = bool(self.props and self.props.has_next and self.props.on_next)
        self.advance.stream_ended(has_next)
        self._notify()

    def on_error(self, message: Optional[str] = None) -> None:
        s = self.session
        if s is None:
            return
        logger.warning("[player] media error on %s: %s", s.media_source, message)
        self._cancel_timers()
        self._intent = None
        self._autoplay = False
        self._restore = None
        s.error = message or "Failed to load video"
        s.seeking = False
        self._set_state(PlaybackState.ERROR)
        self._notify()

    def on_play_rejected(self, error: Optional[BaseException] = None) -> None:
        """Play was refused (autoplay policy and the like); quietly fall back to paused."""
        s = self.session
        if s is None or s.state is PlaybackState.ERROR:
            return
        logger.debug("[player] play rejected: %s", error)
        self._intent = None
        if s.state in (PlaybackState.PLAYING, PlaybackState.LOADING):
            self._set_state(PlaybackState.PAUSED)
        self._notify()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def play(self) -> None:
        s = self.session
        if s is None or not s.media_source or s.state is PlaybackState.ERROR:
            return
        if self.resume.prompt_visible:
            return
        if s.state is PlaybackState.ENDED:
            self.replay()
            return
        if s.state is PlaybackState.PLAYING:
            return
        if not self._metadata_ready or self.element.ready_state < HAVE_CURRENT_DATA:
            self._intent = PlaybackState.PLAYING
            self._set_state(PlaybackState.LOADING)
            self._notify()
            return
        self._set_state(PlaybackState.PLAYING)
        self._request_play()
        self._notify()

    def pause(self) -> None:
        s = self.session
        if s is None:
            return
        self._autoplay = False
        if s.state is PlaybackState.PLAYING:
            self._element("pause")
            self._set_state(PlaybackState.PAUSED)
        elif s.state is PlaybackState.LOADING:
            self._intent = PlaybackState.PAUSED
            if self._restore is not None:
                self._restore = (self._restore[0], False)
            self._settle()
        self._notify()

    def toggle_play(self) -> None:
        s = self.session
        if s is None:
            return
        playing = s.state is PlaybackState.PLAYING or (
            s.state is PlaybackState.LOADING and self._intent is PlaybackState.PLAYING
        )
        if playing:
            self.pause()
        else:
            self.play()

    def seek(self, seconds: float) -> None:
        s = self.session
        if s is None or not s.media_source:
            return
        try:
            t = self._clamp(seconds)
        except (TypeError, ValueError):
            return
        s.current_time = t
        self._element("seek", t)
        self._notify()

    def skip(self, offset: float) -> None:
        s = self.session
        if s is None:
            return
        self.seek(s.current_time + offset)

    def skip_forward(self) -> None:
        self.skip(self.settings.skip_seconds)

    def skip_back(self) -> None:
        self.skip(-self.settings.skip_seconds)

    def seek_fraction(self, fraction: float) -> None:
        """Progress-bar click: jump to ``fraction`` (0..1) of the duration."""
        s = self.session
        if s is None or not _known(s.duration):
            return
        self.seek(max(0.0, min(1.0, fraction)) * s.duration)

    def set_volume(self, volume: float) -> None:
        try:
            v = min(1.0, max(0.0, float(volume)))
        except (TypeError, ValueError):
            return
        self.volume = v
        self.muted = v == 0
        self.store.volume = v
        self.store.muted = self.muted
        self._apply_audio()
        self._notify()

    def toggle_mute(self) -> None:
        self.muted = not self.muted
        if not self.muted and self.volume == 0:
            self.volume = 1.0
            self.store.volume = 1.0
        self.store.muted = self.muted
        self._apply_audio()
        self._notify()

    def select_quality(self, label: Optional[str]) -> None:
        """Swap to another variant, keeping position and play/pause intent."""
        s = self.session
        if s is None or not s.media_source:
            return
        if label is not None and label not in s.available_qualities:
            return
        if label == s.selected_quality:
            return
        was_playing = self._autoplay or s.state is PlaybackState.PLAYING or (
            s.state is PlaybackState.LOADING and self._intent is PlaybackState.PLAYING
        )
        if s.state is PlaybackState.ENDED:
            self.advance.clear()
        # A position still waiting for metadata (continue, start over) wins.
        self._restore = self._restore or (s.current_time, was_playing)
        s.selected_quality = label
        s.duration = math.nan
        s.error = None
        self._intent = None
        self._metadata_ready = False
        self._set_state(PlaybackState.LOADING)
        self._load()
        self._notify()

    def continue_watching(self) -> None:
        position = self.resume.choose_continue()
        if position is None:
            return
        if self._metadata_ready:
            self.seek(position)
            self.controls.playback_changed()
            self.play()
        else:
            self._restore = (position, True)
        self._notify()

    def start_over(self) -> None:
        if not self.resume.prompt_visible:
            return
        self.resume.choose_start_over()
        self._last_saved = None
        if self._metadata_ready:
            self.seek(0.0)
            self.controls.playback_changed()
            self.play()
        else:
            self._restore = (0.0, True)
        self._notify()

    def replay(self) -> None:
        s = self.session
        if s is None or s.state is not PlaybackState.ENDED:
            return
        self.advance.clear()
        self._set_state(PlaybackState.PAUSED)
        self.seek(0.0)
        self.play()

    def cancel_countdown(self) -> None:
        self.advance.cancel()
        self._notify()

    def advance_now(self) -> None:
        self.advance.advance_now()
        self._notify()

    def next(self) -> None:
        if self.props is not None and self.props.has_next:
            self._call(self.props.on_next, "next")

    def previous(self) -> None:
        if self.props is not None and self.props.has_previous:
            self._call(self.props.on_previous, "previous")

    # Gesture / chrome passthroughs

    def pointer_activity(self) -> None:
        self.controls.activity()
        self._notify()

    def tap(self, x: float, width: float, on_chrome: bool = False) -> None:
        self.controls.tap(x, width, on_chrome=on_chrome)

    def toggle_fullscreen(self) -> None:
        self.controls.toggle_fullscreen()
        self._notify()
