"""
Portfolio Model
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, JSON, DateTime, ForeignKey, Index

from vidifolio.models import Base


class PortfolioModel(Base):
    """
    Portfolio - Uploaded source document plus structured metadata used as generation input
    """

    __tablename__ = "portfolios"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    title = Column(String, nullable=False)

    # Blob path inside the portfolios bucket
    pdf_path = Column(String, nullable=True)

    # Arbitrary structured metadata supplied by the client
    raw_data = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_portfolios_user_id", "user_id"),
    )

    def to_dict(self) -> dict:
        """Convert portfolio model to dictionary"""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "pdf_path": self.pdf_path,
            "raw_data": self.raw_data,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
