from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CreateReviewRequest(BaseModel):
    booking_id: str
    rating: int = Field(..., ge=1, le=5)
    review: Optional[str] = Field(None, max_length=2000)
    user_name: Optional[str] = Field(None, max_length=255)


class ReviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    bus_id: str
    booking_id: str
    user_id: str
    user_name: Optional[str] = None
    rating: int
    review: Optional[str] = None
    created_at: Optional[datetime] = None


class RatingSummary(BaseModel):
    bus_id: str
    rating: float
    count: int


class ReviewStatus(BaseModel):
    booking_id: str
    reviewed: bool
