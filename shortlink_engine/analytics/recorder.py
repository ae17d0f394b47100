"""
ClickRecorder – asynchronous, best-effort click event capture.

Responsibilities:
    - Accept capture tasks from the redirect path without ever blocking it
    - Derive device/browser class and best-effort geo fields
    - Persist one immutable ClickEvent per task

Concurrency model:
    - A bounded `queue.Queue` feeds a pool of daemon worker threads.
    - `submit()` uses `put_nowait`; when the queue is full the task is dropped
      and logged. The resolver never waits.
    - A task that sat in the queue longer than `task_deadline` seconds is
      abandoned and logged instead of written late.
    - A write already in progress is not interrupted. When the capture itself
      takes longer than `task_deadline` it is logged and counted as `overran`;
      bounding the write is left to the event log's own timeouts.
    - `submit()` checks the accepting flag and enqueues under the same lock
      `stop()` takes, so no task lands behind the stop sentinels.

Failure policy:
    - Any exception while deriving fields or persisting is logged and the
      event discarded. Nothing propagates to the caller and nothing is
      retried, so an event is never written twice.
    - Losing events only under-counts analytics; `click_count` on the mapping
      is maintained separately by the resolver.
"""

import logging
import queue
import threading
import time
from typing import Callable, List, Optional

from ..models import ClickEvent, RawClick
from ..storage.base import BaseEventLog
from .classify import browser_class, device_class
from .geo import GeoLocator

log = logging.getLogger("shortlink.recorder")

_STOP = object()


class ClickRecorder:
    """
    Background click capture.

    Args:
        event_log (BaseEventLog): Where events are persisted.
        geo (GeoLocator, optional): Geo collaborator; local-only by default.
        workers (int): Number of worker threads.
        queue_size (int): Pending tasks held before new ones are dropped.
        task_deadline (float): Max seconds a task may wait in the queue.
        clock (callable): Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        event_log: BaseEventLog,
        geo: Optional[GeoLocator] = None,
        workers: int = 2,
        queue_size: int = 10_000,
        task_deadline: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self.event_log = event_log
        self.geo = geo or GeoLocator()
        self.workers = workers
        self.task_deadline = task_deadline
        self._clock = clock
        self._queue: "queue.Queue" = queue.Queue(maxsize=queue_size)
        self._threads: List[threading.Thread] = []
        self._state_lock = threading.Lock()
        self._accepting = True
        self.dropped = 0
        self.abandoned = 0
        self.failed = 0
        self.overran = 0

    # ---- Lifecycle ----------------------------------------------------------

    @property
    def running(self) -> bool:
        return any(t.is_alive() for t in self._threads)

    def start(self) -> None:
        with self._state_lock:
            if self._threads:
                return
            self._accepting = True
            for i in range(self.workers):
                t = threading.Thread(target=self._work, name=f"click-recorder-{i}", daemon=True)
                t.start()
                self._threads.append(t)
        log.info("Click recorder started with %d worker(s)", self.workers)

    def stop(self, timeout: float = 5.0) -> None:
        """Stop accepting tasks, let workers drain the queue, then join them."""
        with self._state_lock:
            self._accepting = False
            threads, self._threads = self._threads, []
        for _ in threads:
            try:
                self._queue.put(_STOP, timeout=timeout)
            except queue.Full:
                log.error("Click recorder queue still full after %.1fs; workers not signalled to stop", timeout)
                break
        for t in threads:
            t.join(timeout)
        log.info("Click recorder stopped (dropped=%d, abandoned=%d, failed=%d, overran=%d)",
                 self.dropped, self.abandoned, self.failed, self.overran)

    def wait_idle(self, timeout: float = 5.0) -> bool:
        """Block until every queued task is processed. Returns False on timeout."""
        end = time.monotonic() + timeout
        with self._queue.all_tasks_done:
            while self._queue.unfinished_tasks:
                remaining = end - time.monotonic()
                if remaining <= 0:
                    return False
                self._queue.all_tasks_done.wait(remaining)
        return True

    # ---- Redirect-side entry point -----------------------------------------

    def submit(self, raw: RawClick) -> bool:
        """
        Hand a capture task to the workers without blocking.

        Returns:
            bool: False when the task was dropped (queue full or stopped).
        """
        with self._state_lock:
            if not self._accepting:
                reason = "recorder stopped"
            else:
                try:
                    self._queue.put_nowait((self._clock(), raw))
                    return True
                except queue.Full:
                    reason = "capture queue full"
        log.warning("Click for %s dropped: %s", raw.short_code, reason)
        self._count("dropped")
        return False

    # ---- Worker side ---------------------------------------------------------

    def build_event(self, raw: RawClick) -> ClickEvent:
        ctx = raw.context
        country, city = self.geo.locate(ctx.ip_address)
        return ClickEvent(
            mapping_ref=raw.mapping_ref,
            short_code=raw.short_code,
            timestamp=raw.timestamp,
            ip_address=ctx.ip_address,
            user_agent=ctx.user_agent,
            referer=ctx.referer,
            device_class=device_class(ctx.user_agent),
            browser_class=browser_class(ctx.user_agent),
            country=country,
            city=city,
        )

    def capture(self, raw: RawClick) -> Optional[ClickEvent]:
        """Derive and persist one event. Failures are logged and swallowed."""
        try:
            stored = self.event_log.append_click_event(self.build_event(raw))
        except Exception:
            log.exception("Failed to record click for %s", raw.short_code)
            self._count("failed")
            return None
        log.debug("Click recorded for %s from %s", raw.short_code, raw.context.ip_address)
        return stored

    def _work(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                enqueued_at, raw = item
                waited = self._clock() - enqueued_at
                if waited > self.task_deadline:
                    log.warning("Click for %s abandoned after %.2fs in queue", raw.short_code, waited)
                    self._count("abandoned")
                    continue
                started = self._clock()
                self.capture(raw)
                took = self._clock() - started
                if took > self.task_deadline:
                    log.warning("Click for %s took %.2fs to record (deadline %.2fs)",
                                raw.short_code, took, self.task_deadline)
                    self._count("overran")
            finally:
                self._queue.task_done()

    def _count(self, name: str) -> None:
        with self._state_lock:
            setattr(self, name, getattr(self, name) + 1)
