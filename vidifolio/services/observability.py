"""
Observability and Logging Service
"""

import logging

import structlog
from typing import Optional

from vidifolio.config.settings import settings


logging.basicConfig(format="%(message)s", level=getattr(logging, settings.log_level))

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

# Get logger
logger = structlog.get_logger(__name__)


def log_failure_classification(
    error_code: str,
    retryable: bool,
    video_id: Optional[str] = None,
) -> None:
    """
    Log failure classification event

    Args:
        error_code: Error code (e.g., "PROVIDER_OPERATION_FAILED", "OPERATION_TIMEOUT")
        retryable: Whether the error would succeed on a later attempt
        video_id: Optional video ID for context
    """
    log_data = {
        "error_code": error_code,
        "retryable": retryable,
    }
    if video_id:
        log_data["video_id"] = video_id

    logger.error("failure_classified", **log_data)


def log_generation_duration(
    video_id: str,
    duration_s: float,
    segment_count: int,
    strategy: str,
) -> None:
    """
    Log video generation duration

    Args:
        video_id: Video ID
        duration_s: Wall-clock seconds from pipeline start to completion
        segment_count: Number of provider segments generated
        strategy: Generation strategy used
    """
    logger.info(
        "generation_completed",
        video_id=video_id,
        duration_s=duration_s,
        segment_count=segment_count,
        strategy=strategy,
        avg_duration_per_segment=duration_s / segment_count if segment_count > 0 else 0,
    )
