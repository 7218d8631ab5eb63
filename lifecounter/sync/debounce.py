from __future__ import annotations

import asyncio
from collections.abc import Callable


class Debouncer:
    """Trailing-edge coalescing timer on the asyncio loop.

    `schedule(fn)` cancels any pending call and reschedules `fn` to run once
    the window has elapsed without another schedule. Only the last scheduled
    callable runs.
    """

    def __init__(self, window: float, *, loop: asyncio.AbstractEventLoop | None = None) -> None:
        if window < 0:
            raise ValueError("window must be >= 0")
        self.window = window
        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None
        self._fn: Callable[[], None] | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def schedule(self, fn: Callable[[], None]) -> None:
        self.cancel()
        self._fn = fn
        self._handle = self._get_loop().call_later(self.window, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._fn = None

    def flush(self) -> bool:
        """Run the pending call now. Returns False if nothing was pending."""

        if self._handle is None:
            return False
        self._fire()
        return True

    def _fire(self) -> None:
        fn = self._fn
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._fn = None
        if fn is not None:
            fn()
