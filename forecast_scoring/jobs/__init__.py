"""Scheduled background jobs."""

from forecast_scoring.jobs.scheduler import create_scheduler, expiry_sweep_job

__all__ = ["create_scheduler", "expiry_sweep_job"]
