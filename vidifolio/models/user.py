"""
User Model
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, CheckConstraint

from vidifolio.models import Base


class UserModel(Base):
    """
    User - Account synced from the identity provider on first sign-in
    """

    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    # External identity subject (JWT "sub")
    clerk_id = Column(String, unique=True, nullable=False, index=True)

    email = Column(String, nullable=False)
    full_name = Column(String, nullable=False, default="User")

    credits = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("credits >= 0", name="ck_users_credits_non_negative"),
    )

    def to_dict(self) -> dict:
        """Convert user model to dictionary"""
        return {
            "id": self.id,
            "clerk_id": self.clerk_id,
            "email": self.email,
            "full_name": self.full_name,
            "credits": self.credits,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
