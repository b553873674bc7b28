"""Client-side playback core: engine, persisted state, and its controllers."""
from .advance import AutoAdvance, EndMode
from .client import ApiClient, with_quality
from .controls import ControlsLayer, Display
from .engine import (
    MediaElement,
    PlaybackEngine,
    PlaybackSession,
    PlaybackState,
    PlayerProps,
    PlayerView,
)
from .fmt import format_duration, format_file_size, format_time, format_views
from .resume import ResumeController
from .settings import PlayerSettings, load_settings
from .store import PlaybackStore
from .timers import Scheduler, Timer
from .tracker import ViewTracker

__all__ = [
    "ApiClient",
    "AutoAdvance",
    "ControlsLayer",
    "Display",
    "EndMode",
    "MediaElement",
    "PlaybackEngine",
    "PlaybackSession",
    "PlaybackState",
    "PlaybackStore",
    "PlayerProps",
    "PlayerSettings",
    "PlayerView",
    "ResumeController",
    "Scheduler",
    "Timer",
    "ViewTracker",
    "format_duration",
    "format_file_size",
    "format_time",
    "format_views",
    "load_settings",
    "with_quality",
]
