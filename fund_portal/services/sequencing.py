"""
sequencing.py – "latest request wins" for screen state

Every load issues a new token. A result may only be committed while its
token is still the latest one, so a slow earlier request can never overwrite
the result of a later one.
"""

import asyncio
import itertools
import threading
from typing import Any, Awaitable, Callable, Optional, TypeVar

from fund_portal.utils.logger import get_logger


logger = get_logger("sequencing")

T = TypeVar("T")


class RequestSequencer:
    def __init__(self):
        self._counter = itertools.count(1)
        self._latest = 0
        self._lock = threading.Lock()

    def issue(self) -> int:
        with self._lock:
            self._latest = next(self._counter)
            return self._latest

    def is_latest(self, token: int) -> bool:
        with self._lock:
            return token == self._latest

    @property
    def latest(self) -> int:
        return self._latest

    def commit(self, token: int, apply: Callable[[], Any]) -> bool:
        """Run `apply` only when `token` is still current."""
        if not self.is_latest(token):
            logger.debug("Dropping stale result for request %d (latest %d)", token, self._latest)
            return False
        apply()
        return True


class LatestOnlyRunner:
    """
    Cancellation-aware variant for asyncio callers.

    `run()` cancels the previous in-flight task, awaits the new one and hands
    its result to `commit` only if nothing newer was started meanwhile and
    the runner has not been closed.
    """

    def __init__(self):
        self.sequencer = RequestSequencer()
        self._task: Optional[asyncio.Task] = None
        self.closed = False

    async def run(self, factory: Callable[[], Awaitable[T]],
                  commit: Callable[[T], Any]) -> Optional[T]:
        if self.closed:
            return None
        token = self.sequencer.issue()
        previous = self._task
        if previous is not None and not previous.done():
            previous.cancel()
        task = asyncio.ensure_future(factory())
        self._task = task
        try:
            result = await task
        except asyncio.CancelledError:
            if task.cancelled() and not self.sequencer.is_latest(token):
                # superseded by a newer run()
                return None
            raise
        except Exception:
            if self.closed or not self.sequencer.is_latest(token):
                return None
            raise
        if self.closed or not self.sequencer.is_latest(token):
            return None
        commit(result)
        return result

    def close(self) -> None:
        self.closed = True
        self.sequencer.issue()
        if self._task is not None and not self._task.done():
            self._task.cancel()
