"""SQLAlchemy models package."""
from codesensei.models.user import User
from codesensei.models.review import Review

__all__ = [
    "User",
    "Review",
]
