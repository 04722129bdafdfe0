"""
Persistence module for translation checkpoints and job state.
"""

from .progress_store import ProgressStore, Checkpoint
from .job_store import JobStore

__all__ = ['ProgressStore', 'Checkpoint', 'JobStore']
