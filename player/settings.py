"""Tunables for the playback core."""
from __future__ import annotations

from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field


class PlayerSettings(BaseModel):  # type: ignore
    skip_seconds: float = Field(10.0, gt=0)
    view_threshold: float = Field(30.0, gt=0)
    # Larger gaps between time updates are treated as seeks.
    max_accrual_delta: float = Field(2.0, gt=0)
    resume_min_seconds: float = Field(5.0, ge=0)
    resume_max_fraction: float = Field(0.8, gt=0, le=1)
    progress_save_interval: float = Field(1.0, ge=0)
    countdown_seconds: int = Field(10, ge=1)
    controls_hide_after: float = Field(3.0, gt=0)
    double_tap_window: float = Field(0.3, gt=0)
    double_tap_slop: float = Field(60.0, ge=0)
    skip_indicator_seconds: float = Field(0.7, gt=0)


def load_settings(overrides: Optional[Mapping[str, Any]] = None) -> PlayerSettings:
    """Build settings from a plain mapping, ignoring keys that are None."""
    clean = {k: v for k, v in (overrides or {}).items() if v is not None}
    return PlayerSettings(**clean)
