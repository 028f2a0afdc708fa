"""Review history schemas."""
from codesensei.schemas.common import CamelModel


class ReviewResponse(CamelModel):
    id: str
    code: str
    type: str
    language: str
    review: str | None = None
    status: str
    created_at: str
