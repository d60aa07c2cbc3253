"""
APScheduler Configuration

Background jobs run in the application's event loop. The scheduler is
started and stopped by the FastAPI lifespan, which also hands it the
gateway client and notification dispatcher the jobs need.
"""

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.executors.asyncio import AsyncIOExecutor

from academy.config import settings

logger = logging.getLogger(__name__)

jobstores = {
    'default': MemoryJobStore()
}

executors = {
    'default': AsyncIOExecutor(),
}

job_defaults = {
    'coalesce': True,  # Combine multiple pending executions into one
    'max_instances': 1,  # Only one instance of each job at a time
    'misfire_grace_time': 60,
}

scheduler = AsyncIOScheduler(
    jobstores=jobstores,
    executors=executors,
    job_defaults=job_defaults,
    timezone='Asia/Kolkata'
)


async def run_payment_reconciliation(gateway, notifier=None):
    """Scheduler entry point for stale payment reconciliation."""
    from academy.jobs.payment_jobs import reconcile_pending_payments

    try:
        await reconcile_pending_payments(gateway, notifier=notifier)
    except Exception as e:
        logger.error(f"Job 'reconcile_pending_payments' failed: {e}")


def start_scheduler(gateway, notifier=None):
    """Start the background job scheduler."""
    if not scheduler.running:
        scheduler.add_job(
            run_payment_reconciliation,
            'interval',
            minutes=settings.PAYMENT_RECONCILE_INTERVAL_MINUTES,
            args=[gateway, notifier],
            id='reconcile_pending_payments',
            name='Reconcile Pending Payments',
            replace_existing=True,
        )

        scheduler.start()
        logger.info("Background job scheduler started")

        for job in scheduler.get_jobs():
            logger.info(f"Scheduled job: {job.name} - Next run: {job.next_run_time}")


def shutdown_scheduler():
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Background job scheduler stopped")


def get_job_status():
    """Get status of all scheduled jobs."""
    return [
        {
            'id': job.id,
            'name': job.name,
            'next_run_time': str(job.next_run_time) if job.next_run_time else None,
            'trigger': str(job.trigger),
        }
        for job in scheduler.get_jobs()
    ]
