"""Shared helpers for file-backed inputs and locks."""

from .file_lock import FileLock
from .job_pool import JobDescriptor, load_job_pool, save_job_pool

__all__ = [
    "FileLock",
    "JobDescriptor",
    "load_job_pool",
    "save_job_pool",
]
