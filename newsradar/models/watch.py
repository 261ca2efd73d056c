"""Watch keyword models."""

from typing import Optional

from pydantic import Field

from .base import DBModel

CONFIDENCE_THRESHOLD = 0.7


class WatchKeyword(DBModel):
    """User-owned topic checked against incoming articles."""

    user_id: int = Field(..., description="Owning user")
    keyword: str = Field(..., description="Watched term")
    description: Optional[str] = Field(None, description="Disambiguation hint for the judge")
    is_active: bool = Field(True)
    color: Optional[str] = Field(None, description="Display color")


class WatchMatch(DBModel):
    """Article flagged as relevant to a keyword; unique per pair."""

    article_id: int = Field(..., description="Foreign key to articles")
    watch_keyword_id: int = Field(..., description="Foreign key to watch_keywords")
    confidence: float = Field(..., ge=0.0, le=1.0)
    reason: str = Field("", description="Short rationale from the judge")
