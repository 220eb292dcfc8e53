"""
Delayed-callback schedulers.

RenderReadySync only needs "run this after N milliseconds" and the ability
to cancel it. Two implementations:
  ManualScheduler       virtual clock, advanced explicitly (tests, replays)
  APSchedulerScheduler  one-shot jobs on an APScheduler BackgroundScheduler
"""

import heapq
import itertools
import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Protocol, Tuple, runtime_checkable

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler

logger = logging.getLogger(__name__)


@runtime_checkable
class ScheduledCall(Protocol):
    def cancel(self) -> None:
        ...


@runtime_checkable
class Scheduler(Protocol):
    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> ScheduledCall:
        ...


class _ManualCall:
    def __init__(self, due: float, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """
    Scheduler on a virtual millisecond clock.

    Callbacks run only inside advance(), in due-time order, on the caller's
    thread. Callbacks scheduled while advancing run in the same advance() if
    they fall due before it ends.
    """

    def __init__(self, start_ms: float = 0.0):
        self.now = start_ms
        self._queue: List[Tuple[float, int, _ManualCall]] = []
        self._seq = itertools.count()

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> _ManualCall:
        call = _ManualCall(self.now + max(0.0, delay_ms), callback)
        heapq.heappush(self._queue, (call.due, next(self._seq), call))
        return call

    @property
    def pending(self) -> int:
        return sum(1 for _, _, c in self._queue if not c.cancelled)

    def advance(self, ms: float) -> None:
        target = self.now + ms
        while self._queue and self._queue[0][0] <= target:
            due, _, call = heapq.heappop(self._queue)
            self.now = due
            if not call.cancelled:
                call.callback()
        self.now = target

    def run_until_idle(self, limit_ms: float = 60_000) -> None:
        """Advance until nothing is pending or limit_ms of virtual time passes."""
        deadline = self.now + limit_ms
        while self.pending and self.now < deadline:
            next_due = min(c.due for _, _, c in self._queue if not c.cancelled)
            self.advance(max(0.0, next_due - self.now))


class _APSchedulerCall:
    def __init__(self, job):
        self._job = job

    def cancel(self) -> None:
        try:
            self._job.remove()
        except JobLookupError:
            logger.debug("Job %s already ran or was removed", self._job.id)


class APSchedulerScheduler:
    """One-shot delayed callbacks on an APScheduler BackgroundScheduler."""

    def __init__(self, scheduler=None):
        self._scheduler = scheduler or BackgroundScheduler()
        self._lock = threading.Lock()
        self._seq = itertools.count()

    def start(self) -> None:
        if not self._scheduler.running:
            self._scheduler.start()

    def shutdown(self, wait: bool = False) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)

    def call_later(self, delay_ms: float, callback: Callable[[], None],
                   now: Optional[datetime] = None) -> _APSchedulerCall:
        run_at = (now or datetime.now(timezone.utc)) + timedelta(milliseconds=delay_ms)
        with self._lock:
            job_id = f"render-sync-{next(self._seq)}"
        job = self._scheduler.add_job(
            func=callback,
            trigger="date",
            run_date=run_at,
            id=job_id,
            misfire_grace_time=None,
        )
        return _APSchedulerCall(job)
