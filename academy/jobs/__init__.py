"""
Background Jobs Module

Handles scheduled tasks for:
- Stale payment reconciliation
"""

from academy.jobs.scheduler import scheduler, start_scheduler, shutdown_scheduler, get_job_status
from academy.jobs.payment_jobs import reconcile_pending_payments

__all__ = [
    "scheduler",
    "start_scheduler",
    "shutdown_scheduler",
    "get_job_status",
    "reconcile_pending_payments",
]
