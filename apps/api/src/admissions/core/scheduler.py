"""
Background Job Scheduler

APScheduler (AsyncIOScheduler) running in the API process. The only job
today is the notification outbox delivery registered by the applications
module.

Jobs are registered into a module-level registry first and added to the
scheduler when it starts, so registration order relative to startup does
not matter. Jobs open their own database sessions and must be safe to run
twice; a failing run is logged and the next interval runs as normal.
"""

import logging
from collections.abc import Callable, Coroutine
from datetime import UTC, datetime
from typing import Any

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, JobExecutionEvent
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.base import BaseTrigger

logger = logging.getLogger(__name__)

JobFunc = Callable[[], Coroutine[Any, Any, Any]]

JOB_DEFAULTS = {
    "coalesce": True,
    "max_instances": 1,
    "misfire_grace_time": 300,
}

_scheduler: AsyncIOScheduler | None = None
_registry: dict[str, tuple[JobFunc, BaseTrigger]] = {}


def _on_job_event(event: JobExecutionEvent) -> None:
    if event.exception:
        logger.error(f"Job {event.job_id} raised: {event.exception}", exc_info=event.exception)
    else:
        logger.debug(f"Job {event.job_id} finished")


def _scheduled(job_id: str):
    if _scheduler is None:
        return None
    return _scheduler.get_job(job_id)


async def start_scheduler() -> AsyncIOScheduler:
    """Create the scheduler, add every registered job and start it."""
    global _scheduler

    if _scheduler is not None and _scheduler.running:
        logger.warning("Scheduler already running")
        return _scheduler

    _scheduler = AsyncIOScheduler(timezone="UTC", job_defaults=JOB_DEFAULTS)
    _scheduler.add_listener(_on_job_event, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)

    for job_id, (func, trigger) in _registry.items():
        _scheduler.add_job(func, trigger=trigger, id=job_id, replace_existing=True)

    _scheduler.start()
    logger.info(f"Scheduler started with jobs: {sorted(_registry)}")
    return _scheduler


async def stop_scheduler() -> None:
    """Shut the scheduler down, waiting for running jobs."""
    global _scheduler

    if _scheduler is None or not _scheduler.running:
        return

    _scheduler.shutdown(wait=True)
    _scheduler = None
    logger.info("Scheduler stopped")


def register_job(job_id: str, func: JobFunc, trigger: BaseTrigger) -> None:
    """
    Register a job under ``job_id``, replacing any previous registration.

    Added to the scheduler right away if it is running, otherwise on start.
    """
    _registry[job_id] = (func, trigger)

    if _scheduler is not None:
        _scheduler.add_job(func, trigger=trigger, id=job_id, replace_existing=True)


async def trigger_job_manually(job_id: str) -> dict[str, Any]:
    """
    Run a registered job now, outside its schedule.

    The job's own exception is reported in the result rather than raised.

    Raises:
        ValueError: If no job is registered under ``job_id``
    """
    if job_id not in _registry:
        raise ValueError(f"Unknown job {job_id}. Registered: {sorted(_registry)}")

    func, _ = _registry[job_id]
    started = datetime.now(UTC).isoformat()
    logger.info(f"Running job {job_id} on demand")

    try:
        result = await func()
    except Exception as e:
        logger.error(f"On-demand run of {job_id} failed: {e}", exc_info=True)
        return {"job_id": job_id, "status": "error", "executed_at": started, "error": str(e)}

    return {"job_id": job_id, "status": "success", "executed_at": started, "result": result}


def list_registered_jobs() -> list[dict[str, Any]]:
    jobs = []
    for job_id in _registry:
        job = _scheduled(job_id)
        next_run = job.next_run_time if job else None
        jobs.append(
            {
                "job_id": job_id,
                "next_run_time": next_run.isoformat() if next_run else None,
                "is_paused": next_run is None,
            }
        )
    return jobs


def pause_job(job_id: str) -> bool:
    """False if the job is not on the running scheduler."""
    if _scheduled(job_id) is None:
        return False
    _scheduler.pause_job(job_id)
    logger.info(f"Paused job {job_id}")
    return True


def resume_job(job_id: str) -> bool:
    """False if the job is not on the running scheduler."""
    if _scheduled(job_id) is None:
        return False
    _scheduler.resume_job(job_id)
    logger.info(f"Resumed job {job_id}")
    return True
