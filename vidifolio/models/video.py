"""
Video Model
"""

import uuid
from datetime import datetime
from enum import Enum
from sqlalchemy import Column, String, JSON, DateTime, ForeignKey, Index

from vidifolio.models import Base


class VideoStatus(str, Enum):
    """Video generation lifecycle states"""

    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class VideoModel(Base):
    """
    Video - One generation job and its lifecycle state

    The row is created in PROCESSING before any provider call and is
    written only by the pipeline that owns it afterwards.
    """

    __tablename__ = "videos"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    portfolio_id = Column(String, ForeignKey("portfolios.id", ondelete="RESTRICT"), nullable=False)

    status = Column(String, nullable=False, default=VideoStatus.PROCESSING.value)

    # Public URL of the stored artifact, set only on COMPLETED
    video_url = Column(String, nullable=True)

    # {"model", "visual_style", "segments", "extension_count", ...}
    ai_metadata = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_videos_user_id", "user_id"),
        Index("idx_videos_status", "status"),
        Index("idx_videos_created_at", "created_at"),
    )

    def to_dict(self) -> dict:
        """Convert video model to dictionary"""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "portfolio_id": self.portfolio_id,
            "status": self.status,
            "video_url": self.video_url,
            "ai_metadata": self.ai_metadata,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
