"""Scheduler package for periodic collector runs."""

from .job_scheduler import JOB_ID, JobScheduler, SchedulerError

__all__ = [
    "JOB_ID",
    "JobScheduler",
    "SchedulerError"
]
