"""
Background DSP jobs for PyTrackEditor.

DSP runs on a thread pool; results are committed to the store only from the
owner thread (``drain``). At most one job per track may be in flight, and a
result whose track has received a newer buffer meanwhile (undo, another edit)
is discarded instead of overwriting it.
"""
from __future__ import annotations
from concurrent.futures import Future, ThreadPoolExecutor, wait as wait_futures
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence
import threading

from trackeditor.utils.logger import get_logger

from .buffer import SampleBuffer
from .config import JOB_CONFIG
from .errors import EmptyOperation, TrackBusy
from .store import TrackStore
from .types import EditTarget

logger = get_logger("jobs")

RangeOp = Callable[[SampleBuffer, int, int], SampleBuffer]


@dataclass(eq=False)
class DspJob:
    description: str
    targets: tuple[EditTarget, ...]
    versions: dict[str, int]
    future: Future
    cancelled: bool = False

    @property
    def track_ids(self) -> tuple[str, ...]:
        return tuple(t.track_id for t in self.targets)

    def done(self) -> bool:
        return self.future.done()


@dataclass
class JobOutcome:
    """What ``drain`` did with one finished job."""
    description: str
    applied: list[str] = field(default_factory=list)
    discarded: list[str] = field(default_factory=list)
    error: Optional[BaseException] = None

    @property
    def success(self) -> bool:
        return self.error is None and bool(self.applied)


class DspJobRunner:
    """Runs range operations off the owner thread, one job per track."""

    def __init__(self, store: TrackStore, max_workers: int = JOB_CONFIG.max_workers):
        self._store = store
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="dsp")
        self._jobs: list[DspJob] = []
        self._busy: dict[str, DspJob] = {}
        self._lock = threading.Lock()

    def is_busy(self, track_id: str) -> bool:
        with self._lock:
            return track_id in self._busy

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._jobs)

    def submit(self, targets: Sequence[EditTarget], op: RangeOp, description: str) -> DspJob:
        """
        Start ``op`` on every target in the background.

        Raises:
            EmptyOperation: no targets
            TrackBusy: a target track already has a job in flight
        """
        if not targets:
            raise EmptyOperation(f"{description}: nothing to process")

        # Inputs are read once from the current snapshot
        inputs = []
        versions = {}
        for target in targets:
            track = self._store.get_track(target.track_id)
            inputs.append((target, track.buffer))
            versions[target.track_id] = track.version

        with self._lock:
            for target in targets:
                if target.track_id in self._busy:
                    raise TrackBusy(target.track_id)

            def run() -> dict[str, SampleBuffer]:
                return {t.track_id: op(buffer, t.start, t.end) for t, buffer in inputs}

            future = self._executor.submit(run)
            job = DspJob(description, tuple(targets), versions, future)
            self._jobs.append(job)
            for target in targets:
                self._busy[target.track_id] = job

        logger.info(f"Queued {description} on {len(targets)} track(s)")
        return job

    def cancel(self, track_id: str) -> bool:
        """
        Abandon the job on ``track_id``; its result will never be applied.

        A queued job is dropped at once. A job already computing keeps its
        tracks busy until ``drain`` collects it, so a second job never runs
        beside it.

        Returns:
            True if a job was newly cancelled
        """
        with self._lock:
            job = self._busy.get(track_id)
            if job is None or job.cancelled:
                return False
            job.cancelled = True
            if job.future.cancel():
                self._release(job)
        logger.info(f"Cancelled {job.description}")
        return True

    def _release(self, job: DspJob) -> None:
        if job in self._jobs:
            self._jobs.remove(job)
        for track_id in job.track_ids:
            if self._busy.get(track_id) is job:
                del self._busy[track_id]

    def wait(self, timeout: Optional[float] = None) -> None:
        """Block until every pending job has finished computing."""
        with self._lock:
            futures = [job.future for job in self._jobs]
        if futures:
            wait_futures(futures, timeout=timeout)

    def drain(self) -> list[JobOutcome]:
        """
        Commit finished jobs. Must be called on the store's owner thread.

        Targets whose track version changed since submission are discarded;
        the rest of the job is committed as one history entry.
        """
        with self._lock:
            finished = [job for job in self._jobs if job.done()]
            for job in finished:
                self._release(job)

        outcomes = []
        for job in finished:
            outcome = JobOutcome(job.description)
            outcomes.append(outcome)
            if job.cancelled or job.future.cancelled():
                outcome.discarded.extend(job.track_ids)
                continue

            error = job.future.exception()
            if error is not None:
                logger.error(f"{job.description} failed: {error}", exc_info=error)
                outcome.error = error
                continue

            fresh = {}
            for track_id, buffer in job.future.result().items():
                track = self._store.find_track(track_id)
                if track is None or track.version != job.versions[track_id]:
                    outcome.discarded.append(track_id)
                else:
                    fresh[track_id] = buffer

            if outcome.discarded:
                logger.warning(f"{job.description}: discarded stale result for {len(outcome.discarded)} track(s)")
            if fresh:
                outcome.applied = self._store.replace_buffers(fresh, job.description)
        return outcomes

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            for job in list(self._jobs):
                job.cancelled = True
                job.future.cancel()
                self._release(job)
        self._executor.shutdown(wait=wait)
        logger.debug("DSP job runner shut down")
