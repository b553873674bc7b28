"""Human-readable formatting for times, durations, counts and sizes."""
from __future__ import annotations

import math
from typing import Optional, Union

Number = Union[int, float]


def format_time(seconds: Optional[Number]) -> str:
    """Clock style: ``H:MM:SS`` from one hour up, ``M:SS`` below.

    Unknown values (None, NaN, negative, infinite) render as ``0:00``.
    """
    if seconds is None or not math.isfinite(seconds) or seconds < 0:
        return "0:00"
    total = int(seconds)
    hours, rem = divmod(total, 3600)
    mins, secs = divmod(rem, 60)
    if hours:
        return f"{hours}:{mins:02d}:{secs:02d}"
    return f"{mins}:{secs:02d}"


def format_duration(seconds: Optional[Number]) -> str:
    if not seconds or not math.isfinite(seconds):
        return "N/A"
    total = int(seconds)
    hours, rem = divmod(total, 3600)
    mins, secs = divmod(rem, 60)
    if hours:
        return f"{hours}h {mins}m"
    if mins:
        return f"{mins}m {secs}s"
    return f"{secs}s"


def format_views(views: Optional[int]) -> str:
    if not views:
        return "0"
    if views >= 1_000_000:
        return f"{views // 1_000_000}M"
    if views >= 1000:
        return f"{views // 1000}K"
    return str(views)


def format_file_size(size: Optional[int]) -> str:
    if not size:
        return "N/A"
    gb = size / (1024 ** 3)
    if gb >= 1:
        return f"{gb:.2f} GB"
    return f"{size / (1024 ** 2):.2f} MB"
