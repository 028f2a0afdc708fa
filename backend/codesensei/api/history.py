"""Review history API endpoints."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from codesensei.api.deps import get_current_user, get_db
from codesensei.models.user import User
from codesensei.schemas.common import Envelope
from codesensei.schemas.review import ReviewResponse
from codesensei.services.accounts import list_reviews_for_user

router = APIRouter(prefix="/history", tags=["history"])

HISTORY_LIMIT = 50


@router.get("", response_model=Envelope[list[ReviewResponse]], response_model_exclude_none=True)
def get_history(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Get the current user's review history, newest first."""
    reviews = list_reviews_for_user(db, current_user.id, limit=HISTORY_LIMIT)
    return Envelope(
        data=[ReviewResponse.model_validate(review) for review in reviews],
        message=None if reviews else "No reviews found",
    )
