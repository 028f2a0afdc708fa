"""Code review model."""
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, ForeignKey, Index, String, Text
from sqlalchemy.orm import relationship

from codesensei.database import Base


class Review(Base):
    """A submitted code review, owned by exactly one user."""

    __tablename__ = "reviews"
    __table_args__ = (
        Index("ix_reviews_user_created", "user_id", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    code = Column(Text, nullable=False)
    type = Column(String(20), nullable=False)  # bug | optimization | readability
    language = Column(String(20), nullable=False)  # javascript | python | java | cpp
    review = Column(Text, default="")
    status = Column(String(20), nullable=False, default="pending")  # pending | completed | failed
    created_at = Column(String(32), default=lambda: datetime.now(timezone.utc).isoformat())

    user = relationship("User", back_populates="reviews")
