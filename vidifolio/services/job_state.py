"""
Job State Management Service
"""

from typing import Any, Dict, Optional
from sqlalchemy.orm import Session

from vidifolio.models.video import VideoModel, VideoStatus
from vidifolio.services.storage import VideoDB


class JobStateError(Exception):
    """Exception raised for invalid state transitions"""

    pass


# Valid state transitions
VALID_TRANSITIONS = {
    VideoStatus.PROCESSING.value: [VideoStatus.COMPLETED.value, VideoStatus.FAILED.value],
    VideoStatus.COMPLETED.value: [],  # Terminal state
    VideoStatus.FAILED.value: [],  # Terminal state
}


def transition_state(
    db: Session,
    video_id: str,
    new_status: str,
    video_url: Optional[str] = None,
    ai_metadata: Optional[Dict[str, Any]] = None,
) -> Optional[VideoModel]:
    """
    Transition video to a terminal status with validation

    Args:
        db: Database session
        video_id: Video identifier
        new_status: Target status (COMPLETED or FAILED)
        video_url: Artifact URL, required for COMPLETED and forbidden otherwise
        ai_metadata: Full metadata to store with the transition

    Returns:
        Updated VideoModel or None if video not found

    Raises:
        JobStateError: If transition is invalid
    """
    video = VideoDB.get_video(db, video_id)
    if not video:
        return None

    current_status = video.status

    # Validate state transition
    if new_status not in VALID_TRANSITIONS.get(current_status, []):
        raise JobStateError(
            f"Invalid state transition: {current_status} -> {new_status}. "
            f"Valid transitions from {current_status}: {VALID_TRANSITIONS.get(current_status, [])}"
        )

    metadata = ai_metadata if ai_metadata is not None else dict(video.ai_metadata or {})

    if new_status == VideoStatus.COMPLETED.value:
        if not video_url:
            raise JobStateError("COMPLETED requires a video_url")
        metadata.pop("error", None)
    else:
        if video_url:
            raise JobStateError(f"{new_status} must not carry a video_url")
        if not metadata.get("error"):
            raise JobStateError("FAILED requires ai_metadata.error")

    return VideoDB.update_video(
        db,
        video_id,
        status=new_status,
        video_url=video_url,
        ai_metadata=metadata,
    )


def get_current_state(db: Session, video_id: str) -> Optional[str]:
    """
    Get current status of a video

    Args:
        db: Database session
        video_id: Video identifier

    Returns:
        Current status or None if video not found
    """
    video = VideoDB.get_video(db, video_id)
    return video.status if video else None


def is_terminal_state(status: str) -> bool:
    """
    Check if status is a terminal state

    Args:
        status: Video status

    Returns:
        True if status is COMPLETED or FAILED
    """
    return status in [VideoStatus.COMPLETED.value, VideoStatus.FAILED.value]
