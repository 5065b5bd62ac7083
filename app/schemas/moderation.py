import enum
from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field


class ModerationStatus(str, enum.Enum):
    pending = "PENDING"
    approved = "APPROVED"
    flagged = "FLAGGED"
    rejected = "REJECTED"


class VerdictSource(str, enum.Enum):
    bypass = "bypass"
    manual_required = "manual-required"
    heuristic = "heuristic"
    ai = "ai"
    combined = "combined"


class Sentiment(str, enum.Enum):
    very_negative = "very_negative"
    negative = "negative"
    neutral = "neutral"
    positive = "positive"
    very_positive = "very_positive"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---- Pipeline results ----
class HeuristicResult(BaseModel):
    flags: List[str] = Field(default_factory=list)
    score: float = Field(default=0.0, ge=0.0, le=1.0)
    sentiment: Sentiment = Sentiment.neutral
    sentiment_score: float = Field(default=0.0, ge=-1.0, le=1.0)
    quality_score: float = Field(default=0.5, ge=0.0, le=1.0)

    class Config:
        frozen = True


class SentimentAnalysis(BaseModel):
    score: float = Field(default=0.0, ge=-1.0, le=1.0)
    sentiment: Sentiment = Sentiment.neutral
    negative_keywords: List[str] = Field(default_factory=list)
    positive_keywords: List[str] = Field(default_factory=list)

    class Config:
        frozen = True


class AIModerationResult(BaseModel):
    flagged: bool
    categories: Dict[str, bool] = Field(default_factory=dict)
    category_scores: Dict[str, float] = Field(default_factory=dict)
    flagged_categories: List[str] = Field(default_factory=list)

    class Config:
        frozen = True


class ModerationVerdict(BaseModel):
    """Immutable outcome of one moderation pass."""

    status: ModerationStatus
    flags: List[str] = Field(default_factory=list)
    score: float = Field(default=0.0, ge=0.0, le=1.0)
    source: VerdictSource
    sentiment: Sentiment = Sentiment.neutral
    quality_score: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    evaluated_at: datetime = Field(default_factory=utcnow)

    class Config:
        frozen = True

    @property
    def auto_publish(self) -> bool:
        return self.status == ModerationStatus.approved


# ---- Requests ----
class SubmitTestimonialRequest(BaseModel):
    author_name: str = Field(min_length=1, max_length=200)
    author_email: Optional[EmailStr] = None
    is_oauth_verified: bool = False
    content: str
    rating: Optional[int] = Field(default=None, ge=1, le=5)


class ModerationPreviewRequest(BaseModel):
    content: str
    project_id: Optional[str] = None
    author_email: Optional[EmailStr] = None
    author_verified: bool = False
    rating: Optional[int] = Field(default=None, ge=1, le=5)


# ---- Responses ----
class TestimonialResponse(BaseModel):
    id: str
    project_id: str
    author_name: str
    author_email: Optional[str] = None
    is_oauth_verified: bool
    content: str
    rating: Optional[int] = None
    moderation_status: ModerationStatus
    moderation_flags: List[str] = Field(default_factory=list)
    moderation_score: Optional[float] = None
    quality_score: Optional[float] = None
    is_published: bool
    created_at: datetime

    class Config:
        from_attributes = True


class ModerationResultResponse(BaseModel):
    testimonial: TestimonialResponse
    verdict: ModerationVerdict
    auto_publish: bool


class ModerationQueueResponse(BaseModel):
    total: int
    items: List[TestimonialResponse]
