"""
APScheduler Configuration

Background job scheduler for the campaign workflow:
- Supplier payment auto-verification sweep
- Expired login code cleanup
"""

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.executors.asyncio import AsyncIOExecutor

from app.config import settings

logger = logging.getLogger(__name__)

# Job stores
jobstores = {
    'default': MemoryJobStore()
}

# Executors
executors = {
    'default': AsyncIOExecutor(),
}

# Job defaults
job_defaults = {
    'coalesce': True,  # Combine multiple pending executions into one
    'max_instances': 1,  # Only one instance of each job at a time
    'misfire_grace_time': 60,  # Allow 60 seconds grace time for misfires
}

# Create scheduler
scheduler = AsyncIOScheduler(
    jobstores=jobstores,
    executors=executors,
    job_defaults=job_defaults,
    timezone=settings.SCHEDULER_TIMEZONE
)


async def run_job(job_name: str):
    """
    Wrapper called by APScheduler. Errors are logged so one failed run
    does not stop later runs.
    """
    from app.jobs.auth_jobs import cleanup_expired_otps
    from app.jobs.order_jobs import auto_verify_supplier_payments

    jobs = {
        'auto_verify_supplier_payments': auto_verify_supplier_payments,
        'cleanup_expired_otps': cleanup_expired_otps,
    }

    try:
        await jobs[job_name]()
    except Exception as e:
        logger.error(f"Job '{job_name}' failed: {e}")


def start_scheduler():
    """Start the background job scheduler."""
    if not settings.SCHEDULER_ENABLED:
        logger.info("Background job scheduler disabled")
        return

    if not scheduler.running:
        # Verify supplier payments pending for 24h
        scheduler.add_job(
            run_job,
            'interval',
            minutes=settings.PAYMENT_AUTO_VERIFY_INTERVAL_MINUTES,
            args=['auto_verify_supplier_payments'],
            id='auto_verify_supplier_payments',
            name='Auto-verify Supplier Payments',
            replace_existing=True,
        )

        # Remove expired login codes
        scheduler.add_job(
            run_job,
            'interval',
            seconds=settings.OTP_CLEANUP_INTERVAL_SECONDS,
            args=['cleanup_expired_otps'],
            id='cleanup_expired_otps',
            name='Cleanup Expired Login Codes',
            replace_existing=True,
        )

        scheduler.start()
        logger.info("Background job scheduler started")

        # Log all scheduled jobs
        jobs = scheduler.get_jobs()
        for job in jobs:
            logger.info(f"Scheduled job: {job.name} - Next run: {job.next_run_time}")


def shutdown_scheduler():
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Background job scheduler stopped")
