from __future__ import annotations

import asyncio
import logging

from lifecounter.core import events
from lifecounter.session import GameSession

logger = logging.getLogger(__name__)


def format_time(seconds: float) -> str:
    total = max(0, int(round(seconds)))
    minutes, secs = divmod(total, 60)
    return f"{minutes:02d}:{secs:02d}"


class GameTimer:
    """Countdown for timed rounds; logs "Time's up!" into the session when it expires."""

    def __init__(self, session: GameSession, duration: float, *, loop: asyncio.AbstractEventLoop | None = None) -> None:
        if duration < 0:
            raise ValueError("duration must be >= 0")
        self.session = session
        self.duration = duration
        self._loop = loop
        self._remaining = duration
        self._deadline: float | None = None
        self._handle: asyncio.TimerHandle | None = None

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    @property
    def active(self) -> bool:
        return self._handle is not None

    @property
    def remaining(self) -> float:
        if self._deadline is None:
            return self._remaining
        return max(0.0, self._deadline - self._get_loop().time())

    def set_duration(self, duration: float) -> None:
        self.reset()
        self.duration = duration
        self._remaining = duration

    def start(self) -> None:
        if self.active:
            return
        if self._remaining <= 0:
            self._remaining = self.duration
        loop = self._get_loop()
        self._deadline = loop.time() + self._remaining
        self._handle = loop.call_later(self._remaining, self._expire)

    def stop(self) -> None:
        if self._handle is None:
            return
        self._remaining = self.remaining
        self._handle.cancel()
        self._handle = None
        self._deadline = None

    def reset(self) -> None:
        self.stop()
        self._remaining = self.duration

    def _expire(self) -> None:
        self._handle = None
        self._deadline = None
        self._remaining = 0
        logger.info("game timer expired after %s", format_time(self.duration))
        self.session.log_event(events.time_up())
