"""
Batch Processing System

Runs independent per-motif tasks:
- Job queue management with JSON-persisted job state
- Parallel execution on a thread pool (or serially in the caller)
- Per-job failure isolation: a failed job never touches its siblings

There is no timeout or cancellation; a scheduler outside the process owns
that. Any subset of jobs can be re-run, since handlers are idempotent.
"""

import fcntl
import json
import logging
import os
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ..core.exceptions import TaskError

logger = logging.getLogger(__name__)


class JobStatus(Enum):
    """Job execution status."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class Job:
    """Represents a batch processing job."""

    id: str
    name: str
    job_type: str
    params: Dict[str, Any]
    status: JobStatus = JobStatus.PENDING
    progress: float = 0.0
    message: str = ""
    created_at: str = ""
    started_at: str = ""
    completed_at: str = ""
    result: Dict[str, Any] = field(default_factory=dict)
    error: str = ""

    def __post_init__(self):
        if not self.created_at:
            self.created_at = datetime.now().isoformat()

    @property
    def finished(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.SKIPPED, JobStatus.FAILED)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["status"] = self.status.value
        return d

    @classmethod
    def from_dict(cls, data: Dict) -> "Job":
        data = dict(data)
        data["status"] = JobStatus(data["status"])
        return cls(**data)


class BatchProcessor:
    """
    Manage batch processing of independent pipeline tasks.

    Handlers are called as ``handler(params, progress_cb)`` and return a
    JSON-serializable result dict; a result with ``"skipped": True`` marks
    the job SKIPPED instead of COMPLETED.
    """

    def __init__(self, max_workers: int = 4, jobs_dir: str = "batch_jobs"):
        self.max_workers = max_workers
        self.jobs_dir = Path(jobs_dir)
        self.jobs_dir.mkdir(parents=True, exist_ok=True)

        self.jobs: Dict[str, Job] = {}
        self.job_handlers: Dict[str, Callable] = {}

        self._register_default_handlers()
        self._load_jobs()

    def _register_default_handlers(self):
        """Register default job type handlers."""
        from .tasks import handle_motif_scan

        self.register_handler("motif_scan", handle_motif_scan)

    def register_handler(self, job_type: str, handler: Callable):
        """Register a handler function for a job type."""
        self.job_handlers[job_type] = handler

    def create_job(
        self,
        name: str,
        job_type: str,
        params: Dict[str, Any],
        job_id: Optional[str] = None,
    ) -> Job:
        """Create a new job (replacing any stored job with the same id)."""
        if job_type not in self.job_handlers:
            raise TaskError(f"Unknown job type: {job_type}")

        job = Job(id=job_id or str(uuid.uuid4())[:8], name=name, job_type=job_type, params=params)

        self.jobs[job.id] = job
        self._save_job(job)

        return job

    def submit_batch(self, jobs: List[Dict[str, Any]], batch_name: str = None) -> List[Job]:
        """Create several jobs sharing a batch id."""

        created_jobs = []
        batch_id = str(uuid.uuid4())[:8]

        for i, job_spec in enumerate(jobs):
            params = dict(job_spec.get("params", {}))
            params["batch_id"] = batch_id
            params["batch_index"] = i
            job = self.create_job(
                name=job_spec.get("name", f"{batch_name or 'Batch'}_{i + 1}"),
                job_type=job_spec["job_type"],
                params=params,
                job_id=job_spec.get("id"),
            )
            created_jobs.append(job)

        return created_jobs

    def run(self, job_ids: List[str] = None) -> List[Job]:
        """Run jobs and block until all of them have finished.

        Args:
            job_ids: Jobs to run (default: every PENDING job)

        Returns:
            The jobs that were run, in submission order
        """
        if job_ids is not None:
            missing = [jid for jid in job_ids if jid not in self.jobs]
            if missing:
                raise TaskError(f"Unknown job ids: {missing}")
            jobs_to_run = [self.jobs[jid] for jid in job_ids]
        else:
            jobs_to_run = [j for j in self.jobs.values() if j.status == JobStatus.PENDING]

        logger.info(f"Running {len(jobs_to_run)} jobs with {self.max_workers} workers")

        if self.max_workers <= 1:
            for job in jobs_to_run:
                self._run_job(job)
        else:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                futures = [executor.submit(self._run_job, job) for job in jobs_to_run]
                for future in as_completed(futures):
                    future.result()

        failed = [j.id for j in jobs_to_run if j.status == JobStatus.FAILED]
        if failed:
            logger.warning(f"{len(failed)}/{len(jobs_to_run)} jobs failed: {failed}")
        return jobs_to_run

    def _run_job(self, job: Job) -> Job:
        """Execute a single job through its registered handler.

        Failures are recorded on the job and never propagate.
        """

        job.status = JobStatus.RUNNING
        job.started_at = datetime.now().isoformat()
        job.completed_at = ""
        job.progress = 0.0
        job.error = ""
        self._save_job(job)

        try:
            handler = self.job_handlers.get(job.job_type)
            if handler is None:
                raise TaskError(f"Unknown job type: {job.job_type}")

            def update_progress(progress: float, message: str = ""):
                job.progress = progress
                job.message = message
                self._save_job(job)

            result = handler(job.params, update_progress) or {}

            job.status = JobStatus.SKIPPED if result.get("skipped") else JobStatus.COMPLETED
            job.progress = 100.0
            job.result = result

        except Exception as e:
            logger.error(f"Job {job.id} ({job.name}) failed: {e}")
            job.status = JobStatus.FAILED
            job.error = str(e)

        job.completed_at = datetime.now().isoformat()
        self._save_job(job)
        return job

    def get_job(self, job_id: str) -> Optional[Job]:
        """Get job by ID."""
        return self.jobs.get(job_id)

    def get_queue_status(self) -> Dict[str, int]:
        """Get counts by status."""
        status_counts = {s.value: 0 for s in JobStatus}
        for job in self.jobs.values():
            status_counts[job.status.value] += 1
        return status_counts

    def reset_failed(self) -> List[str]:
        """Put failed jobs back in the queue; returns their ids."""
        reset = []
        for job in self.jobs.values():
            if job.status == JobStatus.FAILED:
                job.status = JobStatus.PENDING
                job.error = ""
                self._save_job(job)
                reset.append(job.id)
        return reset

    def clear_completed(self):
        """Remove finished jobs."""
        to_remove = [jid for jid, job in self.jobs.items() if job.finished]
        for jid in to_remove:
            job_file = self.jobs_dir / f"{jid}.json"
            if job_file.exists():
                job_file.unlink()
            del self.jobs[jid]

    def _save_job(self, job: Job) -> None:
        """Persist job state as JSON to the jobs directory.

        Writes under an exclusive ``fcntl.flock`` to a temporary file and
        renames it into place, so readers never see a partial file.
        """
        job_file = self.jobs_dir / f"{job.id}.json"
        tmp_file = job_file.with_suffix(".json.tmp")
        try:
            with open(tmp_file, "w") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_EX)
                try:
                    json.dump(job.to_dict(), f, indent=2, default=str)
                    f.flush()
                    os.fsync(f.fileno())
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
            tmp_file.rename(job_file)
        except OSError as e:
            logger.error("Failed to save job %s: %s", job.id, e)
            if tmp_file.exists():
                tmp_file.unlink(missing_ok=True)

    def _load_jobs(self) -> None:
        """Restore previously persisted jobs from the jobs directory.

        Jobs left RUNNING by an interrupted process are reset to PENDING.
        """
        for job_file in self.jobs_dir.glob("*.json"):
            try:
                with open(job_file, "r") as f:
                    fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                    try:
                        data = json.load(f)
                    finally:
                        fcntl.flock(f.fileno(), fcntl.LOCK_UN)
                job = Job.from_dict(data)
            except (json.JSONDecodeError, KeyError, TypeError, ValueError, OSError) as e:
                logger.warning("Failed to load job file %s: %s", job_file, e)
                continue

            if job.status == JobStatus.RUNNING:
                job.status = JobStatus.PENDING
            self.jobs[job.id] = job
