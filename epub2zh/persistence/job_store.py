"""
Thread-safe job registry
"""
import copy
import logging
import threading
import time
import uuid
from typing import Any, Dict, List, Optional

from epub2zh.config import JOB_RETENTION_HOURS
from epub2zh.core.adapters import CheckpointError, ResumeError
from epub2zh.core.models import JobStatus, TranslationJob
from .progress_store import ProgressStore

logger = logging.getLogger(__name__)

# Statuses in which a worker owns the job
CLAIMED_STATUSES = (JobStatus.PENDING, JobStatus.EXTRACTING, JobStatus.TRANSLATING)


class JobStore:
    """Thread-safe registry of translation jobs

    Jobs running in different worker threads share this object. Every update
    is written through to the progress store's job record when one is
    attached, so the job list survives a restart.
    """

    def __init__(self, progress_store: Optional[ProgressStore] = None):
        self._jobs: Dict[str, TranslationJob] = {}
        self._logs: Dict[str, List[Dict[str, Any]]] = {}
        self._lock = threading.RLock()  # Use RLock to allow nested locking
        self.progress_store = progress_store

    def create_job(
        self,
        source_path: str,
        options: Optional[Dict[str, Any]] = None,
        job_id: Optional[str] = None
    ) -> TranslationJob:
        """Register a new pending job and return a copy of it"""
        job = TranslationJob(
            job_id=job_id or str(uuid.uuid4()),
            source_path=str(source_path),
            options=copy.deepcopy(options or {}),
            message="Queued"
        )
        with self._lock:
            self._jobs[job.job_id] = job
            self._persist(job)
            return copy.deepcopy(job)

    def add_job(self, job: TranslationJob) -> None:
        """Insert an existing job (restored from disk)"""
        with self._lock:
            self._jobs[job.job_id] = copy.deepcopy(job)

    def update_job(self, job_id: str, **fields: Any) -> bool:
        """Update job fields; last writer wins per field"""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return False

            for name, value in fields.items():
                if not hasattr(job, name):
                    raise AttributeError(f"TranslationJob has no field '{name}'")
                setattr(job, name, value)
            job.updated_at = time.time()

            self._persist(job)
            return True

    def get_job(self, job_id: str) -> Optional[TranslationJob]:
        """Get a copy of a job"""
        with self._lock:
            job = self._jobs.get(job_id)
            # Return a deep copy to prevent external modification of nested objects
            return copy.deepcopy(job) if job else None

    def get_field(self, job_id: str, field: str, default=None):
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return default
            return getattr(job, field, default)

    def set_field(self, job_id: str, field: str, value: Any) -> bool:
        return self.update_job(job_id, **{field: value})

    def exists(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._jobs

    def list_jobs(self) -> List[TranslationJob]:
        """All jobs, newest first"""
        with self._lock:
            jobs = [copy.deepcopy(job) for job in self._jobs.values()]
        return sorted(jobs, key=lambda j: j.created_at, reverse=True)

    def get_job_summaries(self) -> List[Dict[str, Any]]:
        """Get summaries of all jobs for listing"""
        return [
            {
                "job_id": job.job_id,
                "status": job.status.value,
                "progress": job.progress_percent,
                "message": job.message,
                "degraded": job.degraded,
                "created_at": job.created_at,
                "source_file": job.source_path,
            }
            for job in self.list_jobs()
        ]

    def append_log(self, job_id: str, entry: Dict[str, Any], limit: int = 200):
        """Keep a log entry for a job (the newest `limit` entries are retained)"""
        with self._lock:
            logs = self._logs.setdefault(job_id, [])
            logs.append(entry)
            del logs[:-limit]

    def get_job_logs(self, job_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            return copy.deepcopy(self._logs.get(job_id, []))

    def discard_logs(self, job_id: str):
        with self._lock:
            self._logs.pop(job_id, None)

    def request_cancel(self, job_id: str) -> bool:
        """Flag a running job for cancellation; False if it is unknown or already finished"""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.status.is_terminal:
                return False
            job.cancel_requested = True
            job.updated_at = time.time()
            self._persist(job)
            return True

    def is_cancel_requested(self, job_id: str) -> bool:
        with self._lock:
            job = self._jobs.get(job_id)
            return bool(job and job.cancel_requested)

    def is_active(self, job_id: str) -> bool:
        with self._lock:
            job = self._jobs.get(job_id)
            return bool(job and job.status in (JobStatus.EXTRACTING, JobStatus.TRANSLATING))

    def is_claimed(self, job_id: str) -> bool:
        """True while the job is queued or running"""
        with self._lock:
            job = self._jobs.get(job_id)
            return bool(job and job.status in CLAIMED_STATUSES)

    def claim_for_resume(self, job_id: str, **fields) -> TranslationJob:
        """
        Atomically move a stopped job back to pending.

        Args:
            job_id: Job to claim
            **fields: Further fields to set together with the status

        Returns:
            A copy of the claimed job

        Raises:
            ResumeError: The job is unknown, or already queued or running
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise ResumeError(f"No job record found for {job_id}", job_id=job_id)
            if job.status in CLAIMED_STATUSES:
                raise ResumeError(f"Job {job_id} is already {job.status.value}", job_id=job_id)

            for key, value in fields.items():
                if not hasattr(job, key):
                    raise AttributeError(f"TranslationJob has no field '{key}'")
                setattr(job, key, value)
            job.status = JobStatus.PENDING
            job.updated_at = time.time()
            self._persist(job)
            return copy.deepcopy(job)

    def restore_job(self, job_id: str) -> Optional[TranslationJob]:
        """
        Load a job record from the progress store into memory.

        Returns:
            A copy of the restored job, or None if there is no readable record
        """
        if self.progress_store is None:
            return None
        try:
            job = self.progress_store.load_job(job_id)
        except CheckpointError as e:
            logger.warning(f"Could not restore job {job_id}: {e}")
            return None
        if job is None:
            return None

        with self._lock:
            if job_id not in self._jobs:
                self._adopt(job)
            return copy.deepcopy(self._jobs[job_id])

    def restore_all(self) -> int:
        """
        Load every persisted job record not already in memory.

        A job that was still running when the process stopped is marked as
        interrupted so it can be resumed.
        """
        if self.progress_store is None:
            return 0

        restored = 0
        for job in self.progress_store.list_jobs():
            with self._lock:
                if job.job_id in self._jobs:
                    continue
                self._adopt(job)
                restored += 1

        if restored:
            logger.info(f"Restored {restored} job(s) from {self.progress_store.checkpoint_dir}")
        return restored

    def _adopt(self, job: TranslationJob):
        """Register a job loaded from disk; caller holds the lock.

        No worker in this process owns it, so a job recorded as running was
        interrupted. The resume point is taken from the unit files, which are
        written before the record.
        """
        if not job.status.is_terminal:
            job.status = JobStatus.ERROR
            job.error_detail = "Interrupted by a restart"
            job.message = "Interrupted; resume to continue"
            job.cancel_requested = False
        job.last_completed_segment_id = self.progress_store.last_completed_segment_id(job.job_id)
        self._jobs[job.job_id] = job

    def get_resumable_jobs(self) -> List[TranslationJob]:
        """Unfinished jobs that have at least one checkpoint on disk"""
        if self.progress_store is None:
            return []
        return [
            job for job in self.list_jobs()
            if job.status in (JobStatus.ERROR, JobStatus.CANCELLED)
            and self.progress_store.has_checkpoints(job.job_id)
        ]

    def delete_job(self, job_id: str, delete_checkpoints: bool = True) -> bool:
        with self._lock:
            existed = self._jobs.pop(job_id, None) is not None
            self._logs.pop(job_id, None)
        if delete_checkpoints and self.progress_store is not None:
            existed = self.progress_store.delete_checkpoints(job_id) > 0 or existed
        return existed

    def evict_expired(self, retention_hours: float = JOB_RETENTION_HOURS, now: Optional[float] = None) -> List[str]:
        """
        Drop finished jobs older than the retention period, with their checkpoints.

        Returns:
            IDs of evicted jobs
        """
        cutoff = (now or time.time()) - retention_hours * 3600
        with self._lock:
            expired = [
                job_id for job_id, job in self._jobs.items()
                if job.status.is_terminal and job.updated_at < cutoff
            ]

        for job_id in expired:
            self.delete_job(job_id)

        if expired:
            logger.info(f"Evicted {len(expired)} expired job(s)")
        return expired

    def _persist(self, job: TranslationJob):
        if self.progress_store is None:
            return
        try:
            self.progress_store.save_job(job)
        except CheckpointError as e:
            # The record is a cache; unit files remain the source of truth
            logger.warning(f"Could not persist job record {job.job_id}: {e}")
