"""
DashScope Adapter - Long-running video synthesis operations
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol
from pydantic import BaseModel
from dashscope import VideoSynthesis
from http import HTTPStatus

from vidifolio.config.constants import PROVIDER_FAILURE_STATUSES, PROVIDER_SUCCESS_STATUSES
from vidifolio.config.settings import settings
from vidifolio.core.errors import (
    OperationTimeoutError,
    ProviderOperationError,
    UpstreamFailure,
)
from vidifolio.services.observability import logger


class SegmentRequest(BaseModel):
    """Request for one generated clip"""

    prompt: str
    duration: int
    size: str = "1280*720"
    # Provider URL of the clip this segment continues
    reference_video_url: Optional[str] = None


class OperationStatus(BaseModel):
    """Snapshot of a provider operation"""

    operation_id: str
    status: str  # "pending", "running", "succeeded", "failed"
    video_url: Optional[str] = None
    error: Optional[str] = None

    @property
    def done(self) -> bool:
        return self.status in {"succeeded", "failed"}


class GenerationProvider(Protocol):
    """Long-running video generation API"""

    async def submit(self, request: SegmentRequest) -> str:
        ...

    async def fetch(self, operation_id: str) -> OperationStatus:
        ...


class DashScopeVideoProvider:
    """
    Adapter for DashScope video synthesis
    Uses DashScope VideoSynthesis SDK; text-to-video for first segments and
    the video extension function for continuations
    """

    def __init__(self, api_key: Optional[str] = None):
        """Initialize DashScope provider"""
        self.api_key = api_key or settings.dashscope_api_key

    def _format_task_error(
        self,
        task_status: str,
        rsp: Any,
        output_payload: Optional[Dict[str, Any]],
    ) -> str:
        parts: List[str] = []
        if task_status:
            parts.append(f"task_status={task_status}")

        code = getattr(rsp, "code", None)
        message = getattr(rsp, "message", None)
        if code:
            parts.append(f"code={code}")
        if message:
            parts.append(f"message={message}")

        if output_payload:
            for key in ("code", "message", "error", "error_code", "error_msg", "reason", "failed_reason"):
                value = output_payload.get(key)
                if value:
                    parts.append(f"{key}={value}")

        return "; ".join(parts) if parts else "Video synthesis failed without error details"

    async def submit(self, request: SegmentRequest) -> str:
        """
        Submit a segment generation request to DashScope

        Args:
            request: Segment request

        Returns:
            DashScope task ID

        Raises:
            UpstreamFailure: If API request fails
        """
        call_kwargs: Dict[str, Any] = {
            "api_key": self.api_key,
            "prompt": request.prompt,
            "size": request.size,
            "duration": request.duration,
            "prompt_extend": False,
            "watermark": False,
        }
        if request.reference_video_url:
            call_kwargs["model"] = settings.extension_model
            call_kwargs["extra_input"] = {
                "function": "video_extension",
                "first_clip_url": request.reference_video_url,
            }
        else:
            call_kwargs["model"] = settings.video_model

        logger.info(
            "segment_submit",
            model=call_kwargs["model"],
            prompt_length=len(request.prompt),
            duration=request.duration,
            extension=bool(request.reference_video_url),
        )

        rsp = await asyncio.to_thread(VideoSynthesis.async_call, **call_kwargs)

        if rsp.status_code != HTTPStatus.OK:
            error_msg = f'Failed, status_code: {rsp.status_code}, code: {rsp.code}, message: {rsp.message}'
            logger.error("segment_submit_failed", error=error_msg)
            raise UpstreamFailure(error_msg)

        task_id = rsp.output.task_id
        logger.info("segment_submitted", task_id=task_id)
        return task_id

    async def fetch(self, operation_id: str) -> OperationStatus:
        """
        Fetch the current status of a DashScope task

        Args:
            operation_id: DashScope task ID

        Returns:
            OperationStatus snapshot

        Raises:
            UpstreamFailure: If the status request itself fails
        """
        rsp = await asyncio.to_thread(
            VideoSynthesis.fetch,
            task=operation_id,
            api_key=self.api_key,
        )

        if rsp.status_code != HTTPStatus.OK:
            error_msg = f'Failed, status_code: {rsp.status_code}, code: {rsp.code}, message: {rsp.message}'
            logger.error("task_fetch_failed", task_id=operation_id, error=error_msg)
            raise UpstreamFailure(error_msg)

        output_payload: Dict[str, Any] = rsp.output if isinstance(rsp.output, dict) else {}
        if isinstance(rsp.output, dict):
            raw_task_status = rsp.output.get("task_status")
            raw_video_url = rsp.output.get("video_url")
        else:
            raw_task_status = getattr(rsp.output, "task_status", None)
            raw_video_url = getattr(rsp.output, "video_url", None)

        task_status = raw_task_status if isinstance(raw_task_status, str) else ""
        video_url = raw_video_url if isinstance(raw_video_url, str) else None
        normalized_status = task_status.strip().lower()

        if normalized_status in PROVIDER_SUCCESS_STATUSES:
            return OperationStatus(
                operation_id=operation_id,
                status="succeeded",
                video_url=video_url,
            )

        if normalized_status in PROVIDER_FAILURE_STATUSES:
            return OperationStatus(
                operation_id=operation_id,
                status="failed",
                error=self._format_task_error(task_status, rsp, output_payload),
            )

        return OperationStatus(
            operation_id=operation_id,
            status="running" if normalized_status == "running" else "pending",
        )


async def wait_for_operation(
    provider: GenerationProvider,
    operation_id: str,
    poll_interval_s: Optional[float] = None,
    timeout_s: Optional[float] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> OperationStatus:
    """
    Poll a provider operation until it is done

    Args:
        provider: Generation provider
        operation_id: Operation reference returned by submit
        poll_interval_s: Seconds between status checks
        timeout_s: Maximum seconds to wait before giving up
        sleep: Awaitable sleep function

    Returns:
        Successful OperationStatus with a video_url

    Raises:
        ProviderOperationError: If the operation failed or returned no video
        OperationTimeoutError: If the operation is not done within timeout_s
    """
    interval = settings.poll_interval_s if poll_interval_s is None else poll_interval_s
    timeout = settings.operation_timeout_s if timeout_s is None else timeout_s
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout

    while True:
        status = await provider.fetch(operation_id)
        if status.done:
            break
        if loop.time() + interval > deadline:
            logger.error("operation_timeout", operation_id=operation_id, timeout_s=timeout)
            raise OperationTimeoutError(operation_id, timeout)

        logger.info(
            "operation_in_progress",
            operation_id=operation_id,
            status=status.status,
            wait_s=interval,
        )
        await sleep(interval)

    if status.status == "failed":
        logger.error("operation_failed", operation_id=operation_id, error=status.error)
        raise ProviderOperationError(
            f"Video operation failed: {status.error or 'unknown error'}",
            operation_id=operation_id,
        )

    if not status.video_url:
        raise ProviderOperationError(
            "Video operation completed but no video returned",
            operation_id=operation_id,
        )

    logger.info("operation_completed", operation_id=operation_id, video_url=status.video_url)
    return status
