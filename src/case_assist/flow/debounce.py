"""Debounce scheduler built on the running asyncio event loop."""

from __future__ import annotations

import asyncio
from collections.abc import Callable


class Debouncer:
    """Collapses bursts of `schedule` calls into one delayed invocation.

    Every call cancels the armed timer before arming a new one, so the action
    runs once, `delay_seconds` after the last call of a burst. The action is
    called with no arguments; callers close over whatever data they need.
    """

    def __init__(self, delay_seconds: float = 0.5) -> None:
        self.delay_seconds = delay_seconds
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self, action: Callable[[], None]) -> None:
        loop = asyncio.get_running_loop()
        self.cancel()
        self._handle = loop.call_later(self.delay_seconds, self._fire, action)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self, action: Callable[[], None]) -> None:
        self._handle = None
        action()
