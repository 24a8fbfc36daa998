"""
RQ task definitions for long-running generation jobs.
"""

import asyncio

from vidifolio.services.job_manager import JobManager
from vidifolio.services.observability import logger


async def _run_and_close(job_manager: JobManager, video_id: str) -> None:
    # Pooled HTTP connections are bound to this loop; close them before it ends
    try:
        await job_manager.run_pipeline(video_id)
    finally:
        await job_manager.close()


def run_generation_job(video_id: str) -> None:
    logger.info("generation_worker_start", video_id=video_id)
    try:
        job_manager = JobManager()
        asyncio.run(_run_and_close(job_manager, video_id))
    except Exception as exc:
        logger.error("generation_worker_failed", video_id=video_id, error=str(exc))
        raise
    logger.info("generation_worker_finished", video_id=video_id)
