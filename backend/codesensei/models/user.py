"""User account model."""
import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, Index, String
from sqlalchemy.orm import relationship

from codesensei.database import Base


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class User(Base):
    """User account.

    Soft-deleted accounts (``is_deleted``) never authenticate and are excluded
    from credential lookup.
    """

    __tablename__ = "users"
    __table_args__ = (
        Index("ix_users_username_deleted", "username", "is_deleted"),
        Index("ix_users_email_deleted", "email", "is_deleted"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    username = Column(String(50), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(100))
    role = Column(String(10), nullable=False, default="user")  # user | admin
    is_deleted = Column(Boolean, nullable=False, default=False, index=True)
    deleted_at = Column(String(32))
    created_at = Column(String(32), default=_utcnow_iso)
    updated_at = Column(String(32), default=_utcnow_iso, onupdate=_utcnow_iso)

    # Relationships
    reviews = relationship("Review", back_populates="user", passive_deletes=True)
