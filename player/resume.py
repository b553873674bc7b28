"""Continue-watching prompt driven by stored progress."""
from __future__ import annotations

from typing import Optional

from .store import PlaybackStore


class ResumeController:
    """Decides whether a freshly loaded item should offer to continue.

    The prompt is shown at most once per item: after either choice it stays
    dismissed until the item changes.
    """

    def __init__(self, store: PlaybackStore, min_seconds: float = 5.0):
        self.store = store
        self.min_seconds = min_seconds
        self.item_id: Optional[str] = None
        self.saved_position: Optional[float] = None
        self.prompt_visible = False
        self.dismissed = False

    def reset(self, item_id: Optional[str]) -> None:
        self.item_id = item_id
        self.saved_position = None
        self.prompt_visible = False
        self.dismissed = False

    def evaluate(self) -> bool:
        """Look up the current item; True when a prompt is now showing."""
        self.prompt_visible = False
        self.saved_position = None
        if not self.item_id or self.dismissed:
            return False
        saved = self.store.progress(self.item_id)
        if saved is None or saved <= self.min_seconds:
            return False
        self.saved_position = saved
        self.prompt_visible = True
        return True

    def choose_continue(self) -> Optional[float]:
        """Dismiss the prompt and return the position to seek to."""
        position = self.saved_position if self.prompt_visible else None
        self.prompt_visible = False
        self.dismissed = True
        return position

    def choose_start_over(self) -> None:
        self.store.clear_progress(self.item_id)
        self.saved_position = None
        self.prompt_visible = False
        self.dismissed = True
