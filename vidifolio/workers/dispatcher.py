"""
Task Dispatchers - Run generation pipelines detached from the request
"""

import asyncio
from typing import Awaitable, Callable, Optional, Set

import redis
from rq import Queue

from vidifolio.config.constants import RQ_JOB_TIMEOUT_MARGIN_S
from vidifolio.config.settings import settings
from vidifolio.services.observability import logger


def rq_job_timeout_s() -> int:
    """RQ hard limit; the pipeline hits its own deadline and records FAILED first"""
    return int(settings.pipeline_timeout_s) + RQ_JOB_TIMEOUT_MARGIN_S


class InlineDispatcher:
    """
    Runs each pipeline as an asyncio task on the current event loop

    Holds a reference to every running task until it finishes.
    """

    def __init__(self, runner: Callable[[str], Awaitable[None]]):
        self.runner = runner
        self._tasks: Set[asyncio.Task] = set()

    def dispatch(self, video_id: str) -> str:
        task = asyncio.create_task(self.runner(video_id), name=f"generate-{video_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info("pipeline_dispatched", backend="inline", video_id=video_id)
        return task.get_name()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every dispatched pipeline to finish"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class RQDispatcher:
    """Enqueues pipelines on a Redis queue consumed by `rq worker`"""

    def __init__(self, queue: Optional[Queue] = None):
        self._queue = queue

    @property
    def queue(self) -> Queue:
        if self._queue is None:
            self._queue = Queue(
                settings.rq_queue_name,
                connection=redis.from_url(settings.redis_url),
            )
        return self._queue

    def dispatch(self, video_id: str) -> str:
        from vidifolio.workers.generation_tasks import run_generation_job

        rq_job = self.queue.enqueue(
            run_generation_job,
            video_id,
            job_timeout=rq_job_timeout_s(),
        )
        logger.info(
            "pipeline_dispatched",
            backend="rq",
            video_id=video_id,
            rq_job_id=rq_job.id,
            queue=self.queue.name,
        )
        return rq_job.id

    async def drain(self) -> None:
        """Queued jobs are owned by the worker process"""
        return None


def build_dispatcher(runner: Callable[[str], Awaitable[None]], backend: str = None):
    """Create the configured dispatcher"""
    backend = backend or settings.task_backend
    if backend == "rq":
        return RQDispatcher()
    return InlineDispatcher(runner)
