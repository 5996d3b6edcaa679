"""Independent, restartable task execution for per-motif work."""

from .batch_processor import BatchProcessor, Job, JobStatus
from .tasks import handle_motif_scan, motif_scan_params, split_tasks

__all__ = [
    "BatchProcessor",
    "Job",
    "JobStatus",
    "handle_motif_scan",
    "motif_scan_params",
    "split_tasks",
]
