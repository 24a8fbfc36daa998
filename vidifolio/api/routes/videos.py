"""
Video Generation API Routes
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from vidifolio.api.deps import get_current_user, get_job_manager
from vidifolio.core.errors import NotFoundOrUnauthorized
from vidifolio.models import get_db
from vidifolio.models.user import UserModel
from vidifolio.services.job_manager import JobManager
from vidifolio.services.observability import logger


router = APIRouter()


class GenerateVideoRequest(BaseModel):
    """Request to start a generation job"""

    portfolio_id: str = Field(..., min_length=1)
    visual_style: str = Field(..., min_length=1)


class VideoUpdateRequest(BaseModel):
    """Editable video fields"""

    model_config = ConfigDict(extra="forbid")

    ai_metadata: Dict[str, Any] = Field(default_factory=dict)


def _not_found() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"error": "Video not found or unauthorized"},
    )


@router.post("/videos/generate", status_code=status.HTTP_201_CREATED)
async def generate_video(
    request: GenerateVideoRequest,
    db: Session = Depends(get_db),
    user: UserModel = Depends(get_current_user),
    job_manager: JobManager = Depends(get_job_manager),
):
    """
    Start generating a video for one of the caller's portfolios

    Returns the PROCESSING record immediately; clients poll GET /videos/{id}.
    """
    video = await job_manager.submit(
        db,
        user_id=user.id,
        portfolio_id=request.portfolio_id,
        visual_style=request.visual_style,
    )
    return video.to_dict()


@router.get("/videos")
async def list_or_get_videos(
    id: Optional[str] = None,
    db: Session = Depends(get_db),
    user: UserModel = Depends(get_current_user),
    job_manager: JobManager = Depends(get_job_manager),
):
    """List the caller's videos, or fetch one with ?id="""
    if id:
        return await get_video(id, db=db, user=user, job_manager=job_manager)

    videos = job_manager.list_videos(db, user.id)
    return [video.to_dict() for video in videos]


@router.get("/videos/{video_id}")
async def get_video(
    video_id: str,
    db: Session = Depends(get_db),
    user: UserModel = Depends(get_current_user),
    job_manager: JobManager = Depends(get_job_manager),
):
    """Get one of the caller's videos"""
    try:
        video = job_manager.get_video(db, video_id, user.id)
    except NotFoundOrUnauthorized:
        return _not_found()

    logger.info("video_status_query", video_id=video.id, status=video.status)
    return video.to_dict()


@router.patch("/videos/{video_id}")
async def update_video(
    video_id: str,
    request: VideoUpdateRequest,
    db: Session = Depends(get_db),
    user: UserModel = Depends(get_current_user),
    job_manager: JobManager = Depends(get_job_manager),
):
    """Patch client-editable ai_metadata keys of one of the caller's videos"""
    video = job_manager.update_video(db, video_id, user.id, request.ai_metadata)
    return video.to_dict()
