"""
Durable print queue with a background worker thread.

Jobs are processed strictly one at a time, in submission order. A job
leaves the queue only when it has printed completely (or on clear()); a
failed attempt keeps it at the head and the worker retries it after a
backoff delay, forever. Nothing behind it moves until it prints.

The queue list is persisted after every change, so a restart resumes with
the same jobs, in the same order, with their attempt counts.

Thread Safety:
    - One lock guards the job list; held only for list changes and persists
    - The print attempt itself runs outside the lock, so enqueue() and
      status() answer immediately while a job is printing
    - The head job is the only one the worker touches; clear() may remove
      it mid-attempt, in which case the result of that attempt is discarded

Usage:
    queue = JobQueue(QueueStore(path), executor)
    queue.start()                       # resume a persisted queue
    queued = queue.enqueue(job, printer_index=1)
    queue.status()
    queue.stop()
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Any, List, Optional, Sequence

from core.exceptions import ErrorKind
from models.print_job import PrintJob
from models.print_result import PrintResult
from models.queued_job import QueuedJob
from modules.job_executor import JobExecutor
from logging_config import get_job_logger, get_logger, set_thread_name

from .queue_store import QueueStore


# Module logger
logger = get_logger(__name__)

WORKER_THREAD_NAME = "PrintQueue"


@dataclass(frozen=True)
class RetryPolicy:
    """
    Backoff between attempts of the same job.

    delay = min(attempts × base, cap), where base is the long delay when the
    printer is unavailable and the short one for everything else.
    """

    base_delay_seconds: float = 10.0
    printer_offline_delay_seconds: float = 30.0
    max_delay_seconds: float = 300.0

    def delay_for(self, attempts: int, kind: Optional[ErrorKind]) -> float:
        """Seconds to wait after the ``attempts``-th failed attempt."""
        if kind is ErrorKind.PRINTER_UNAVAILABLE:
            base = self.printer_offline_delay_seconds
        else:
            base = self.base_delay_seconds
        return min(max(attempts, 1) * base, self.max_delay_seconds)


class JobQueue:
    """
    FIFO print queue with infinite retry.

    The worker thread is started on demand (by enqueue() or start()) and
    exits when the queue runs empty.

    Attributes:
        retry_policy: Backoff configuration
        is_processing: Whether a worker (thread or drain()) is active
    """

    def __init__(
        self,
        store: QueueStore,
        executor: JobExecutor,
        retry_policy: Optional[RetryPolicy] = None,
        assign_delivery_on_submit: bool = False,
        start_worker: bool = True,
        wait: Optional[Callable[[float], bool]] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize the queue and load the persisted jobs.

        Args:
            store: Durable storage of the job list
            executor: Runs print attempts
            retry_policy: Backoff delays (defaults: 10s / 30s, capped at 300s)
            assign_delivery_on_submit: Issue delivery numbers in enqueue()
                instead of on the first attempt
            start_worker: Spawn the worker thread on enqueue(); when False
                jobs only run through drain()
            wait: Backoff wait, returns True if the queue was stopped
                meanwhile (defaults to waiting on the stop event)
            clock: Current UTC time (injectable for tests)
        """
        self._store = store
        self.executor = executor
        self.retry_policy = retry_policy or RetryPolicy()
        self.assign_delivery_on_submit = assign_delivery_on_submit
        self._start_worker = start_worker
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self._lock = threading.RLock()
        self._idle = threading.Condition(self._lock)
        self._stop_event = threading.Event()
        self._wait = wait or self._stop_event.wait
        self._thread: Optional[threading.Thread] = None
        self._processing = False

        self._jobs: List[QueuedJob] = store.load()

        logger.info(
            f"JobQueue initialized ({len(self._jobs)} persisted jobs, "
            f"queue file: {store.path})"
        )

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def is_processing(self) -> bool:
        """Whether a processing loop is currently active."""
        with self._lock:
            return self._processing

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def enqueue(self, job: PrintJob, printer_index: int = 1) -> QueuedJob:
        """
        Add a job at the tail of the queue.

        Returns once the job is persisted. The delivery number is issued here
        when assign_delivery_on_submit is set, inside the same critical
        section as the append so numbers follow queue order.

        Returns:
            The QueuedJob (its ``id`` is the job id)

        Raises:
            InvalidJobError: The job is malformed; nothing is queued
            OSError: The queue file could not be written; nothing is queued
        """
        return self.enqueue_many([job], printer_index)[0]

    def enqueue_many(self, jobs: Sequence[PrintJob], printer_index: int = 1) -> List[QueuedJob]:
        """
        Add the files of one submission at the tail of the queue, in order.

        All or nothing: every job is validated before any is appended, and
        the whole batch is persisted with a single write. If that write
        fails, none of the jobs stay queued.

        Raises:
            InvalidJobError: A job is malformed; nothing is queued
            OSError: The queue file could not be written; nothing is queued
        """
        for job in jobs:
            job.validate()
        if not jobs:
            return []

        with self._lock:
            now = self._clock()
            batch = [QueuedJob.create(job, printer_index, now=now) for job in jobs]
            if self.assign_delivery_on_submit:
                for queued_job in batch:
                    self.executor.ensure_delivery_number(queued_job)

            self._jobs.extend(batch)
            try:
                self._store.save(self._jobs)
            except OSError:
                del self._jobs[-len(batch):]
                logger.error(
                    f"Could not persist queue, rejecting {len(batch)} job(s): "
                    f"{', '.join(queued_job.id for queued_job in batch)}"
                )
                raise

            first_position = len(self._jobs) - len(batch) + 1
            for position, queued_job in enumerate(batch, start=first_position):
                logger.info(
                    f"Job {queued_job.id} added to queue "
                    f"(position {position}, "
                    f"delivery: {queued_job.job.delivery_number or 'pending'})"
                )

            if self._start_worker:
                self._ensure_worker()

        return batch

    def status(self) -> Dict[str, Any]:
        """
        Snapshot of the queue.

        Returns:
            {"total": n, "pending": n, "jobs": [QueuedJob.to_dict(), ...]}
            with the job in flight first.
        """
        with self._lock:
            jobs = [queued_job.to_dict() for queued_job in self._jobs]
        return {"total": len(jobs), "pending": len(jobs), "jobs": jobs}

    def clear(self) -> int:
        """
        Remove every job, including one that is printing right now.

        Returns:
            Number of jobs removed
        """
        with self._lock:
            removed = len(self._jobs)
            self._jobs.clear()
            self._persist()
            self._idle.notify_all()

        logger.warning(f"Queue cleared ({removed} jobs removed)")
        return removed

    def start(self) -> None:
        """
        Resume processing of persisted jobs.

        Safe to call multiple times; does nothing if the queue is empty or a
        worker is already active.
        """
        with self._lock:
            self._stop_event.clear()
            if self._jobs:
                logger.info(f"Resuming processing of {len(self._jobs)} queued jobs")
                self._ensure_worker()

    def stop(self, timeout: float = 5.0) -> None:
        """
        Stop the worker thread.

        Interrupts a backoff wait; an attempt that is printing finishes
        first (bounded by the dispatch timeout). Jobs stay persisted.
        """
        self._stop_event.set()

        thread = self._thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            logger.info("Stopping print queue worker...")
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning("Print queue worker did not stop cleanly")

    def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the queue is empty and no worker is active.

        Returns:
            True if idle, False on timeout
        """
        with self._idle:
            return self._idle.wait_for(
                lambda: not self._jobs and not self._processing, timeout=timeout
            )

    def drain(self, max_attempts: Optional[int] = None) -> int:
        """
        Process the queue in the calling thread.

        Runs until the queue is empty, the queue is stopped, or
        ``max_attempts`` attempts have been made. Backoff waits still apply.

        Returns:
            Number of attempts made

        Raises:
            RuntimeError: A worker thread is already processing
        """
        with self._lock:
            if self._processing:
                raise RuntimeError("Queue is already being processed")
            self._processing = True
            self._stop_event.clear()

        return self._process_loop(max_attempts=max_attempts)

    # -------------------------------------------------------------------------
    # Worker
    # -------------------------------------------------------------------------

    def _ensure_worker(self) -> None:
        """Start a worker thread unless one is active. Caller holds the lock."""
        if self._processing:
            return

        self._processing = True
        self._thread = threading.Thread(
            target=self._run_worker,
            name=WORKER_THREAD_NAME,
            daemon=True  # Thread will exit when main process exits
        )
        self._thread.start()
        logger.info("Print queue worker started")

    def _run_worker(self) -> None:
        set_thread_name(WORKER_THREAD_NAME)
        try:
            self._process_loop()
        finally:
            logger.info("Print queue worker exiting")

    def _next_job(self) -> Optional[QueuedJob]:
        """
        Head of the queue, or None when the loop should end.

        Ending the loop and clearing ``_processing`` happen under the same
        lock enqueue() checks, so a job enqueued at that moment always gets
        a new worker.
        """
        with self._lock:
            if self._jobs and not self._stop_event.is_set():
                return self._jobs[0]
            self._processing = False
            self._idle.notify_all()
            return None

    def _process_loop(self, max_attempts: Optional[int] = None) -> int:
        attempts_made = 0
        # Set once _next_job() has handed the flag back; a new worker may own it by then
        released = False
        try:
            while True:
                if max_attempts is not None and attempts_made >= max_attempts:
                    break

                queued_job = self._next_job()
                if queued_job is None:
                    released = True
                    return attempts_made

                result = self._attempt(queued_job)
                attempts_made += 1

                if result.success:
                    continue

                delay = self.retry_policy.delay_for(
                    queued_job.attempts, result.error_kind
                )
                get_job_logger(queued_job.id).warning(
                    f"{result.message}: {result.error}. Retrying in {delay:.0f}s "
                    f"(attempt {queued_job.attempts})"
                )
                if self._wait(delay):
                    logger.info("Queue stopped during backoff")
                    break
        except Exception:
            logger.exception("Print queue worker crashed")
            raise
        finally:
            if not released:
                with self._lock:
                    self._processing = False
                    self._idle.notify_all()

        return attempts_made

    def _attempt(self, queued_job: QueuedJob) -> PrintResult:
        """Run one attempt of the head job and record its outcome."""
        with self._lock:
            queued_job.start_attempt(self._clock())
            self.executor.ensure_delivery_number(queued_job)
            self._persist()

        result = self.executor.execute(queued_job)

        with self._lock:
            still_queued = bool(self._jobs) and self._jobs[0] is queued_job
            if result.success:
                if still_queued:
                    self._jobs.pop(0)
                    self._persist()
                else:
                    logger.warning(f"Job {queued_job.id} printed after being cleared from the queue")
                logger.info(
                    f"Job {queued_job.id} completed (delivery {result.delivery_number}, "
                    f"{len(self._jobs)} remaining)"
                )
            else:
                queued_job.last_error = f"{result.message}: {result.error}" if result.error else result.message
                queued_job.last_error_kind = result.error_kind.value if result.error_kind else None
                if still_queued:
                    self._persist()

        if result.success:
            self.executor.forget(result.delivery_number)

        return result

    def _persist(self) -> None:
        """Save the list. Caller holds the lock. Failures are logged, not raised."""
        try:
            self._store.save(self._jobs)
        except OSError as e:
            logger.error(f"Error saving queue: {e}")
