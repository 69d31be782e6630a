"""
Scheduled tasks for the marketplace.

Periodically polls the carrier for every shipment still in flight so item
statuses follow the package even when no carrier webhook arrives.
"""

import logging
from datetime import datetime
from typing import Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.core.config import get_settings
from app.database import async_session
from app.services.shipment_service import ShipmentService
from app.services.shipping.factory import get_carrier

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler: Optional[AsyncIOScheduler] = None


async def refresh_tracking_task():
    """Task to refresh tracking for in-flight shipments"""
    logger.info("=== SCHEDULED TRACKING REFRESH STARTING ===")
    carrier = get_carrier()
    try:
        async with async_session() as db:
            summary = await ShipmentService(db, carrier=carrier).refresh_in_flight()
    finally:
        await carrier.close()
    logger.info(
        "Scheduled tracking refresh done: %s checked, %s updated, %s errors",
        summary["checked"], summary["updated"], len(summary["errors"]),
    )
    return summary


def job_listener(event):
    """Listen to job events for logging"""
    if event.exception:
        logger.error(f"Job {event.job_id} crashed: {event.exception}")
    else:
        logger.info(f"Job {event.job_id} executed successfully at {datetime.now()}")


def create_scheduler() -> AsyncIOScheduler:
    """Create and configure the scheduler"""
    global scheduler

    if scheduler is not None:
        return scheduler

    settings = get_settings()
    scheduler = AsyncIOScheduler()
    scheduler.add_listener(job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)

    scheduler.add_job(
        refresh_tracking_task,
        IntervalTrigger(minutes=settings.TRACKING_REFRESH_MINUTES),
        id="refresh_tracking",
        name="Refresh Shipment Tracking",
        replace_existing=True,
        max_instances=1,  # Only one sweep at a time
        misfire_grace_time=600,
    )
    logger.info(f"Tracking refresh job added every {settings.TRACKING_REFRESH_MINUTES} minutes")

    return scheduler


async def start_scheduler():
    """Start the scheduler"""
    global scheduler

    if scheduler is None:
        scheduler = create_scheduler()

    if not scheduler.running:
        scheduler.start()
        logger.info("Scheduler started successfully")
        for job in scheduler.get_jobs():
            logger.info(f"  - {job.name}: {job.trigger}")


async def stop_scheduler():
    """Stop the scheduler gracefully"""
    global scheduler

    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped successfully")
    scheduler = None


async def get_scheduler_status():
    """Get current scheduler status and job information"""
    if scheduler is None:
        return {"status": "not_initialized", "jobs": []}

    jobs = []
    for job in scheduler.get_jobs():
        # Pending jobs have no next_run_time until the scheduler starts
        next_run = getattr(job, "next_run_time", None)
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run": next_run.isoformat() if next_run else None,
            "trigger": str(job.trigger),
        })

    return {"status": "running" if scheduler.running else "stopped", "jobs": jobs}
