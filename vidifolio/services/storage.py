"""
Storage Service - Database operations for Users, Portfolios and Videos
"""

from sqlalchemy.orm import Session
from typing import List, Optional, Dict, Any
from datetime import datetime

from vidifolio.models.user import UserModel
from vidifolio.models.portfolio import PortfolioModel
from vidifolio.models.video import VideoModel, VideoStatus


class UserDB:
    """User database operations"""

    @staticmethod
    def upsert_user(
        db: Session,
        clerk_id: str,
        email: str,
        full_name: str,
    ) -> UserModel:
        """Create the user on first sign-in or refresh email/name on later ones"""
        user = UserDB.get_by_clerk_id(db, clerk_id)
        if user:
            user.email = email
            user.full_name = full_name
        else:
            user = UserModel(
                clerk_id=clerk_id,
                email=email,
                full_name=full_name,
                credits=0,
            )
            db.add(user)
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def get_by_clerk_id(db: Session, clerk_id: str) -> Optional[UserModel]:
        """Get user by identity provider subject"""
        return db.query(UserModel).filter(UserModel.clerk_id == clerk_id).first()

    @staticmethod
    def update_credits(db: Session, clerk_id: str, credits: int) -> Optional[UserModel]:
        """Set the credit balance"""
        user = UserDB.get_by_clerk_id(db, clerk_id)
        if user:
            user.credits = credits
            db.commit()
            db.refresh(user)
        return user


class PortfolioDB:
    """Portfolio database operations"""

    @staticmethod
    def create_portfolio(
        db: Session,
        user_id: str,
        title: str,
        pdf_path: Optional[str] = None,
        raw_data: Optional[Dict[str, Any]] = None,
    ) -> PortfolioModel:
        """Create a new portfolio"""
        portfolio = PortfolioModel(
            user_id=user_id,
            title=title,
            pdf_path=pdf_path,
            raw_data=raw_data,
        )
        db.add(portfolio)
        db.commit()
        db.refresh(portfolio)
        return portfolio

    @staticmethod
    def get_owned(db: Session, portfolio_id: str, user_id: str) -> Optional[PortfolioModel]:
        """Get portfolio by ID only if owned by user"""
        return (
            db.query(PortfolioModel)
            .filter(PortfolioModel.id == portfolio_id, PortfolioModel.user_id == user_id)
            .first()
        )

    @staticmethod
    def list_portfolios(db: Session, user_id: str) -> List[PortfolioModel]:
        """List a user's portfolios, newest first"""
        return (
            db.query(PortfolioModel)
            .filter(PortfolioModel.user_id == user_id)
            .order_by(PortfolioModel.created_at.desc())
            .all()
        )

    @staticmethod
    def delete_portfolio(db: Session, portfolio_id: str, user_id: str) -> bool:
        """Delete a portfolio owned by user"""
        portfolio = PortfolioDB.get_owned(db, portfolio_id, user_id)
        if portfolio:
            db.delete(portfolio)
            db.commit()
            return True
        return False


class VideoDB:
    """Video database operations"""

    @staticmethod
    def create_video(
        db: Session,
        user_id: str,
        portfolio_id: str,
        ai_metadata: Dict[str, Any],
    ) -> VideoModel:
        """Create a new video in PROCESSING"""
        video = VideoModel(
            user_id=user_id,
            portfolio_id=portfolio_id,
            status=VideoStatus.PROCESSING.value,
            video_url=None,
            ai_metadata=ai_metadata,
        )
        db.add(video)
        db.commit()
        db.refresh(video)
        return video

    @staticmethod
    def get_video(db: Session, video_id: str) -> Optional[VideoModel]:
        """Get video by ID"""
        return db.query(VideoModel).filter(VideoModel.id == video_id).first()

    @staticmethod
    def get_owned(db: Session, video_id: str, user_id: str) -> Optional[VideoModel]:
        """Get video by ID only if owned by user"""
        return (
            db.query(VideoModel)
            .filter(VideoModel.id == video_id, VideoModel.user_id == user_id)
            .first()
        )

    @staticmethod
    def count_for_portfolio(db: Session, portfolio_id: str) -> int:
        """Count videos generated from a portfolio"""
        return db.query(VideoModel).filter(VideoModel.portfolio_id == portfolio_id).count()

    @staticmethod
    def list_videos(db: Session, user_id: str) -> List[VideoModel]:
        """List a user's videos, newest first"""
        return (
            db.query(VideoModel)
            .filter(VideoModel.user_id == user_id)
            .order_by(VideoModel.created_at.desc())
            .all()
        )

    @staticmethod
    def update_video(
        db: Session,
        video_id: str,
        **fields: Any,
    ) -> Optional[VideoModel]:
        """Update video fields"""
        video = VideoDB.get_video(db, video_id)
        if video:
            for key, value in fields.items():
                setattr(video, key, value)
            video.updated_at = datetime.utcnow()
            db.commit()
            db.refresh(video)
        return video
