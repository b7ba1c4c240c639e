"""
Conversion progress tracking.

A registry of in-flight conversion jobs. Each job carries a progress
percentage and status message and fans every update out to its
subscribers. Finished jobs close their subscribers after a short grace
delay and are evicted after a longer retention window, so a client that
connects late still observes completion. Jobs that stay pending without
any update for the same window are dropped and their subscribers closed.
"""

import asyncio
import math
import threading
import time
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, Dict, List, Optional, Protocol, Set

from md_converter.core.models import JobStatus, ProgressEvent
from md_converter.utils.logging import get_logger

logger = get_logger(__name__)


class Subscriber(Protocol):
    """Receives ordered progress events for one job."""

    def send(self, event: ProgressEvent) -> None:
        ...

    def close(self) -> None:
        ...


class ChannelClosedError(Exception):
    """Raised when sending to a subscription that has been closed."""


class Subscription:
    """Queue-backed subscriber consumed as an async iterator of events."""

    _CLOSED = object()

    def __init__(self, job_id: str, registry: "JobRegistry"):
        self.job_id = job_id
        self._registry = registry
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, event: ProgressEvent) -> None:
        if self._closed:
            raise ChannelClosedError(f"Subscription to job {self.job_id} is closed")
        self._queue.put_nowait(event)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(self._CLOSED)

    def unsubscribe(self) -> None:
        """Detach from the job; call this when the consumer goes away."""
        self._registry.unsubscribe(self.job_id, self)
        self.close()

    async def events(self) -> AsyncIterator[ProgressEvent]:
        """Yield events in arrival order until the subscription is closed."""
        while True:
            item = await self._queue.get()
            if item is self._CLOSED:
                return
            yield item

    def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        return self.events()


@dataclass
class Job:
    """Tracked state of one conversion request."""

    job_id: str
    progress: int = 0
    message: str = "Starting"
    status: JobStatus = JobStatus.PENDING
    subscribers: Set[Subscriber] = field(default_factory=set)
    touched: float = 0.0  # monotonic time of the last update

    def snapshot(self) -> ProgressEvent:
        return ProgressEvent(progress=self.progress, message=self.message)


class JobRegistry:
    """Process-wide store of conversion jobs keyed by caller-supplied id.

    A ``None`` job id is accepted everywhere and means "not tracked".
    """

    def __init__(self, close_delay: float = 0.25, retention: float = 60.0):
        self.close_delay = close_delay
        self.retention = retention
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.RLock()
        self._timers: Set = set()

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def __contains__(self, job_id: object) -> bool:
        with self._lock:
            return job_id in self._jobs

    def get_job(self, job_id: Optional[str]) -> Optional[Job]:
        if not job_id:
            return None
        with self._lock:
            return self._jobs.get(job_id)

    def ensure_job(self, job_id: Optional[str]) -> Optional[Job]:
        """Return the job for ``job_id``, creating it if needed."""
        if not job_id:
            return None
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                job = Job(job_id=job_id, touched=time.monotonic())
                self._jobs[job_id] = job
                logger.debug("Job created", extra={"job_id": job_id})
                self._schedule(self.retention, self._expire_idle, job)
            return job

    def update(self, job_id: Optional[str], progress: float, message: Optional[str] = None) -> None:
        """
        Record progress for a job and push it to every subscriber.

        Progress is floored and clamped into [0, 100]. An empty message
        keeps the previous one. Unknown or missing ids are ignored.
        """
        if not job_id:
            return
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return
            job.touched = time.monotonic()
            job.progress = max(0, min(100, math.floor(progress)))
            if message:
                job.message = message
            event = job.snapshot()
            subscribers = list(job.subscribers)

        self._broadcast(job, subscribers, event)

    def _broadcast(self, job: Job, subscribers: List[Subscriber], event: ProgressEvent) -> None:
        for subscriber in subscribers:
            try:
                subscriber.send(event)
            except Exception as e:
                # A broken channel only loses its own delivery.
                logger.debug("Dropping broken subscriber", extra={
                    "job_id": job.job_id,
                    "error": str(e),
                })
                with self._lock:
                    job.subscribers.discard(subscriber)

    def add_subscriber(self, job_id: str, subscriber: Subscriber) -> Job:
        """Register ``subscriber`` and send it the job's current state."""
        with self._lock:
            job = self.ensure_job(job_id)
            event = job.snapshot()
            finished = job.status is JobStatus.DONE
            if not finished:
                job.subscribers.add(subscriber)

        try:
            subscriber.send(event)
            if finished:
                subscriber.close()
        except Exception as e:
            logger.debug("Subscriber failed on initial event", extra={
                "job_id": job_id,
                "error": str(e),
            })
            self.unsubscribe(job_id, subscriber)
        return job

    def subscribe(self, job_id: str) -> Subscription:
        """Open a queue subscription for ``job_id``."""
        subscription = Subscription(job_id, self)
        self.add_subscriber(job_id, subscription)
        return subscription

    def unsubscribe(self, job_id: str, subscriber: Subscriber) -> None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is not None:
                job.subscribers.discard(subscriber)

    def complete(self, job_id: Optional[str]) -> None:
        """Mark a job done, send the final event and schedule teardown."""
        self._finish(job_id, "Done")

    def fail(self, job_id: Optional[str], message: str = "Error") -> None:
        """Terminate a job after a pipeline failure."""
        self._finish(job_id, message)

    def _finish(self, job_id: Optional[str], message: str) -> None:
        job = self.get_job(job_id)
        if job is None:
            return
        with self._lock:
            job.status = JobStatus.DONE
        self.update(job_id, 100, message)
        self._schedule(self.close_delay, self._close_subscribers, job)

    def _close_subscribers(self, job: Job) -> None:
        with self._lock:
            subscribers = list(job.subscribers)
            job.subscribers.clear()

        for subscriber in subscribers:
            try:
                subscriber.close()
            except Exception as e:
                logger.debug("Subscriber close failed", extra={
                    "job_id": job.job_id,
                    "error": str(e),
                })

        self._schedule(self.retention, self._evict, job)

    def _expire_idle(self, job: Job) -> None:
        """Drop a pending job that has seen no update for ``retention`` seconds."""
        with self._lock:
            if self._jobs.get(job.job_id) is not job or job.status is not JobStatus.PENDING:
                return
            remaining = job.touched + self.retention - time.monotonic()
            if remaining > 0:
                expired = False
            else:
                expired = True
                del self._jobs[job.job_id]
                subscribers = list(job.subscribers)
                job.subscribers.clear()

        if not expired:
            self._schedule(remaining, self._expire_idle, job)
            return

        logger.debug("Idle job expired", extra={"job_id": job.job_id})
        for subscriber in subscribers:
            try:
                subscriber.close()
            except Exception as e:
                logger.debug("Subscriber close failed", extra={
                    "job_id": job.job_id,
                    "error": str(e),
                })

    def _evict(self, job: Job) -> None:
        with self._lock:
            if self._jobs.get(job.job_id) is job:
                del self._jobs[job.job_id]
                logger.debug("Job evicted", extra={"job_id": job.job_id})

    def _schedule(self, delay: float, callback: Callable[[Job], None], job: Job) -> None:
        def run() -> None:
            self._timers.discard(handle)
            callback(job)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            handle = threading.Timer(delay, run)
            handle.daemon = True
            self._timers.add(handle)
            handle.start()
        else:
            handle = loop.call_later(delay, run)
            self._timers.add(handle)

    def shutdown(self) -> None:
        """Cancel pending teardown timers and close every subscriber."""
        for handle in list(self._timers):
            handle.cancel()
        self._timers.clear()

        with self._lock:
            jobs = list(self._jobs.values())
            self._jobs.clear()

        for job in jobs:
            for subscriber in list(job.subscribers):
                try:
                    subscriber.close()
                except Exception:
                    logger.debug("Subscriber close failed during shutdown", extra={"job_id": job.job_id})
            job.subscribers.clear()
