"""Credential store and review store operations."""
from datetime import datetime, timezone

import bcrypt
from sqlalchemy import or_
from sqlalchemy.orm import Session

from codesensei.models.review import Review
from codesensei.models.user import User


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return bcrypt.checkpw(
        plain_password.encode("utf-8"),
        hashed_password.encode("utf-8"),
    )


def get_password_hash(password: str, rounds: int = 12) -> str:
    """Hash a password."""
    return bcrypt.hashpw(
        password.encode("utf-8"),
        bcrypt.gensalt(rounds=rounds),
    ).decode("utf-8")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def find_by_credentials(db: Session, username_or_email: str) -> User | None:
    """Find an active (non-deleted) user by username or email."""
    login = username_or_email.strip()
    return db.query(User).filter(
        or_(User.username == login, User.email == normalize_email(login)),
        User.is_deleted.is_(False),
    ).first()


def find_any_by_credentials(db: Session, username_or_email: str) -> User | None:
    """Like find_by_credentials but includes soft-deleted accounts."""
    login = username_or_email.strip()
    return db.query(User).filter(
        or_(User.username == login, User.email == normalize_email(login)),
    ).first()


def username_or_email_taken(db: Session, username: str, email: str) -> bool:
    """Uniqueness check over every account, deleted ones included."""
    return db.query(User.id).filter(
        or_(User.username == username.strip(), User.email == normalize_email(email)),
    ).first() is not None


def get_active_user(db: Session, user_id: str) -> User | None:
    user = db.get(User, user_id)
    if user is None or user.is_deleted:
        return None
    return user


def create_user(
    db: Session,
    username: str,
    email: str,
    password_hash: str,
    name: str | None = None,
) -> User:
    user = User(
        username=username.strip(),
        email=normalize_email(email),
        password_hash=password_hash,
        name=name.strip() if name else None,
    )
    db.add(user)
    db.flush()
    return user


def mark_deleted(db: Session, user: User) -> None:
    """Flag the account so concurrent logins reject it before the row is gone."""
    user.is_deleted = True
    user.deleted_at = datetime.now(timezone.utc).isoformat()
    db.flush()


def delete_reviews_for_user(db: Session, user_id: str) -> int:
    """Delete every review owned by ``user_id``. Returns count deleted."""
    return db.query(Review).filter(Review.user_id == user_id).delete(synchronize_session=False)


def hard_delete_user(db: Session, user: User) -> None:
    db.delete(user)
    db.flush()


def list_reviews_for_user(db: Session, user_id: str, limit: int = 50) -> list[Review]:
    return (
        db.query(Review)
        .filter(Review.user_id == user_id)
        .order_by(Review.created_at.desc())
        .limit(limit)
        .all()
    )


def count_reviews_for_user(db: Session, user_id: str) -> int:
    return db.query(Review).filter(Review.user_id == user_id).count()
