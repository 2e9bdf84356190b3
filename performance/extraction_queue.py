"""
Extraction Queue

Bounded-concurrency job runner with per-job retry and exponential backoff.

Job lifecycle:
    QUEUED -> RUNNING -> (SUCCEEDED | RETRYING -> RUNNING | FAILED)
    QUEUED -> CANCELLED (only via clear())

Jobs are identified by string ids; the work function receives the id and
does the actual extraction. The FIFO and the active count are guarded by a
single lock so slot accounting stays serialized across worker threads.
Settled jobs leave the live table; only the last `history_size` of them
stay reachable through job_future / job_status.
"""

from __future__ import annotations

import threading
from collections import OrderedDict, deque
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional, Tuple

from loguru import logger

from .retry import ExponentialBackoff


class JobStatus(Enum):
    """Status of an extraction job."""

    QUEUED = 'queued'
    RUNNING = 'running'
    RETRYING = 'retrying'
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'
    CANCELLED = 'cancelled'


@dataclass
class JobOutcome:
    """Final state of one job, reported by the aggregate enqueue future."""

    job_id: str
    status: JobStatus
    result: Any = None
    error: Optional[BaseException] = None
    attempts: int = 0

    @property
    def success(self) -> bool:
        return self.status == JobStatus.SUCCEEDED

    def to_dict(self) -> Dict[str, Any]:
        return {
            'job_id': self.job_id,
            'status': self.status.value,
            'error': str(self.error) if self.error else None,
            'attempts': self.attempts,
        }


@dataclass
class QueueConfig:
    """Configuration for the extraction queue."""

    concurrency: int = 2
    max_retries: int = 3
    base_delay: float = 1.0  # seconds

    # Finished jobs still answerable through job_future / job_status
    history_size: int = 100

    # Callbacks
    on_start: Optional[Callable[[str], None]] = None
    on_complete: Optional[Callable[[str, Any], None]] = None
    on_retry: Optional[Callable[[str, int, BaseException], None]] = None
    on_error: Optional[Callable[[str, BaseException], None]] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'QueueConfig':
        """Build from a settings mapping; unknown keys are ignored."""
        data = data or {}
        return cls(
            concurrency=int(data.get('concurrency', cls.concurrency)),
            max_retries=int(data.get('max_retries', cls.max_retries)),
            base_delay=float(data.get('base_delay', cls.base_delay)),
            history_size=int(data.get('history_size', cls.history_size)),
        )


@dataclass
class _QueueItem:
    job_id: str
    future: Future = field(default_factory=Future)
    status: JobStatus = JobStatus.QUEUED
    attempts: int = 0
    result: Any = None
    error: Optional[BaseException] = None

    def outcome(self) -> JobOutcome:
        return JobOutcome(
            job_id=self.job_id,
            status=self.status,
            result=self.result,
            error=self.error,
            attempts=self.attempts,
        )


class ExtractionQueue:
    """
    Runs extraction jobs with at most `concurrency` in flight.

    Usage:
        queue = ExtractionQueue(run_job, QueueConfig(concurrency=2))
        outcomes = queue.enqueue(['doc-1', 'doc-2', 'doc-3']).result()
        for outcome in outcomes:
            print(outcome.job_id, outcome.status.value)
        queue.shutdown()

    `enqueue` never raises for job failures: its future resolves once every
    submitted job has succeeded, failed after all attempts, or been
    discarded by clear().
    """

    def __init__(
        self,
        work: Callable[[str], Any],
        config: Optional[QueueConfig] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.config = config or QueueConfig()
        if self.config.concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {self.config.concurrency}")

        self._work = work
        self._backoff = ExponentialBackoff(base_delay=self.config.base_delay)
        if sleep is not None:
            self._backoff.sleep = sleep

        self._executor = ThreadPoolExecutor(
            max_workers=self.config.concurrency,
            thread_name_prefix='extraction',
        )

        self._lock = threading.Lock()
        self._fifo: Deque[_QueueItem] = deque()
        self._active = 0
        self._jobs: Dict[str, _QueueItem] = {}
        self._history: 'OrderedDict[str, Tuple[Future, JobStatus]]' = OrderedDict()
        self._shutdown = False

        logger.debug(
            f"Extraction queue ready: concurrency={self.config.concurrency}, "
            f"max_retries={self.config.max_retries}, base_delay={self.config.base_delay}s"
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def enqueue(self, job_ids: Iterable[str]) -> Future:
        """
        Append jobs to the FIFO and start as many as free slots allow.

        Returns:
            Future resolving to a list of JobOutcome in submission order
        """
        items = [_QueueItem(job_id=str(job_id)) for job_id in job_ids]

        with self._lock:
            if self._shutdown:
                raise RuntimeError("Extraction queue is shut down")
            for item in items:
                self._fifo.append(item)
                self._jobs[item.job_id] = item

        logger.info(f"Enqueued {len(items)} extraction job(s)")
        aggregate = self._gather(items)
        self._fill_slots()
        return aggregate

    def pending(self) -> int:
        """Jobs waiting in the FIFO."""
        with self._lock:
            return len(self._fifo)

    def active(self) -> int:
        """Jobs currently running (including those waiting out a backoff)."""
        with self._lock:
            return self._active

    def clear(self) -> int:
        """
        Discard every job that has not started.

        Running jobs are untouched. Discarded jobs settle as CANCELLED.

        Returns:
            Number of discarded jobs
        """
        with self._lock:
            discarded = list(self._fifo)
            self._fifo.clear()
            for item in discarded:
                item.status = JobStatus.CANCELLED
                self._retire(item)

        for item in discarded:
            item.future.cancel()

        if discarded:
            logger.info(f"Cleared {len(discarded)} pending extraction job(s)")
        return len(discarded)

    def job_future(self, job_id: str) -> Optional[Future]:
        """
        Future of the most recent job with this id.

        Resolves to the work function's result, raises its last error, or is
        cancelled if the job was cleared. Finished jobs are remembered up to
        `history_size`; older ones give None.
        """
        with self._lock:
            item = self._jobs.get(job_id)
            if item is not None:
                return item.future
            finished = self._history.get(job_id)
        return finished[0] if finished else None

    def job_status(self, job_id: str) -> Optional[JobStatus]:
        with self._lock:
            item = self._jobs.get(job_id)
            if item is not None:
                return item.status
            finished = self._history.get(job_id)
        return finished[1] if finished else None

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting jobs, discard pending ones and release the workers."""
        with self._lock:
            self._shutdown = True
        self.clear()
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> 'ExtractionQueue':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.shutdown(wait=True)
        return False

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _gather(self, items: List[_QueueItem]) -> Future:
        """Aggregate future settled when all of `items` have settled."""
        aggregate: Future = Future()
        if not items:
            aggregate.set_result([])
            return aggregate

        remaining = [len(items)]
        counter_lock = threading.Lock()

        def on_done(_future: Future) -> None:
            with counter_lock:
                remaining[0] -= 1
                finished = remaining[0] == 0
            if finished:
                aggregate.set_result([item.outcome() for item in items])

        for item in items:
            item.future.add_done_callback(on_done)

        return aggregate

    def _fill_slots(self) -> None:
        """Start queued jobs until the concurrency limit is reached."""
        while True:
            with self._lock:
                if self._shutdown or self._active >= self.config.concurrency or not self._fifo:
                    return
                item = self._fifo.popleft()
                item.status = JobStatus.RUNNING
                self._active += 1

            try:
                self._executor.submit(self._run, item)
            except RuntimeError:
                # Executor shut down between the check and the submit
                with self._lock:
                    self._active -= 1
                    item.status = JobStatus.CANCELLED
                    self._retire(item)
                item.future.cancel()
                return

    def _run(self, item: _QueueItem) -> None:
        """Execute one job with retry; always frees its slot and settles."""
        item.future.set_running_or_notify_cancel()
        try:
            self._notify(self.config.on_start, item.job_id)
            self._attempt(item)
        except BaseException as e:
            # Not retryable (cancellation, interpreter exit); the job ends here
            item.status = JobStatus.FAILED
            item.error = e
            logger.error(f"Job {item.job_id} aborted on attempt {item.attempts}: {e!r}")
            self._notify(self.config.on_error, item.job_id, e)
        finally:
            self._settle(item)

    def _attempt(self, item: _QueueItem) -> None:
        """Run the work function up to the attempt limit, recording the outcome on `item`."""
        max_attempts = max(1, self.config.max_retries)
        last_error: Optional[BaseException] = None

        for attempt in range(1, max_attempts + 1):
            item.attempts = attempt
            try:
                result = self._work(item.job_id)
            except Exception as e:
                last_error = e
                if attempt < max_attempts:
                    item.status = JobStatus.RETRYING
                    logger.warning(f"Job {item.job_id} failed (attempt {attempt}): {e}")
                    self._notify(self.config.on_retry, item.job_id, attempt, e)
                    self._backoff.wait(attempt)
                    item.status = JobStatus.RUNNING
                continue

            item.status = JobStatus.SUCCEEDED
            item.result = result
            logger.debug(f"Job {item.job_id} succeeded after {attempt} attempt(s)")
            self._notify(self.config.on_complete, item.job_id, result)
            return

        item.status = JobStatus.FAILED
        item.error = last_error
        logger.error(f"Job {item.job_id} failed after {max_attempts} attempt(s): {last_error}")
        self._notify(self.config.on_error, item.job_id, last_error)

    def _settle(self, item: _QueueItem) -> None:
        with self._lock:
            self._active -= 1
            self._retire(item)

        if item.status == JobStatus.SUCCEEDED:
            item.future.set_result(item.result)
        else:
            item.future.set_exception(item.error)

        self._fill_slots()

    def _retire(self, item: _QueueItem) -> None:
        """Move a finished job into the bounded history. Caller holds the lock."""
        if self._jobs.get(item.job_id) is item:
            del self._jobs[item.job_id]

        self._history[item.job_id] = (item.future, item.status)
        self._history.move_to_end(item.job_id)
        while len(self._history) > self.config.history_size:
            self._history.popitem(last=False)

    @staticmethod
    def _notify(callback: Optional[Callable], *args) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            logger.error(f"Queue callback {getattr(callback, '__name__', callback)!r} raised: {e}")
