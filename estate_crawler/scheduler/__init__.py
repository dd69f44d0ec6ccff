"""Scheduler integration."""

from .apsched_adapter import APSchedulerAdapter, build_trigger, job_id

__all__ = ["APSchedulerAdapter", "build_trigger", "job_id"]
