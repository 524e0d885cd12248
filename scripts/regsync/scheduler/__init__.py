"""
Time-based jobs: hourly review check, daily full sync, weekly digest.
"""

from .setup import JobState, ScheduledJob, SyncScheduler

__all__ = ["JobState", "ScheduledJob", "SyncScheduler"]
