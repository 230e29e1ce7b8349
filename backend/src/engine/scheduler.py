"""Single-slot frame scheduler.

Stands in for a "next display frame" callback: at most one task is pending
at any time, and scheduling a new one replaces the one not yet run while
keeping its deadline. Rapid input therefore runs at most once per tick,
always with the latest state, and keeps running while input continues.
"""

import asyncio
import logging
from typing import Any, Callable

import sentry_sdk

logger = logging.getLogger(__name__)

# One 60 Hz display refresh
FRAME_INTERVAL_S = 1 / 60


class FrameScheduler:
    """Runs the most recently scheduled callback on the next ``interval`` tick."""

    def __init__(self, interval: float = FRAME_INTERVAL_S):
        if interval < 0:
            raise ValueError(f"interval must be >= 0, got {interval}")
        self.interval = interval
        self._handle: asyncio.TimerHandle | None = None
        self._task: tuple[Callable[..., Any], tuple] | None = None
        self.replaced = 0

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self, fn: Callable[..., Any], *args) -> None:
        """Schedule ``fn(*args)``, replacing any task not yet run.

        A pending tick keeps its deadline; only the task it will run changes.

        Must be called from within a running event loop.
        """
        loop = asyncio.get_running_loop()
        self._task = (fn, args)
        if self._handle is not None:
            self.replaced += 1
            return
        self._handle = loop.call_later(self.interval, self._run)

    def cancel(self) -> bool:
        """Drop the pending task. Returns True if one was pending."""
        if self._handle is None:
            return False
        self._handle.cancel()
        self._handle = None
        self._task = None
        return True

    def flush(self) -> bool:
        """Run the pending task now instead of waiting for the tick."""
        if self._handle is None:
            return False
        self._handle.cancel()
        self._run()
        return True

    def _run(self):
        task, self._task, self._handle = self._task, None, None
        if task is None:
            return
        fn, args = task
        try:
            fn(*args)
        except Exception as e:
            sentry_sdk.capture_exception(e)
            name = getattr(fn, "__name__", repr(fn))
            logger.exception("Scheduled frame task %s failed", name)
