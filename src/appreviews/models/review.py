"""Review entity model."""

from __future__ import annotations

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, field_validator


class Review(BaseModel):
    """One ingested App Store review.

    ``id`` is the sole dedup key: storing a review whose id is already
    known replaces the previous record entirely.

    Parameters
    ----------
    id : str
        Globally unique review identifier taken from the feed entry.
    app_id : str
        App Store application id the review belongs to.
    author : str
        Reviewer display name.
    content : str
        Review body text.
    rating : int
        Star rating, 1 to 5.
    submitted_at : datetime
        Submission time reported by the feed (timezone-aware).
    fetched_at : datetime
        Time the review was downloaded (timezone-aware).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str
    app_id: str
    author: str = ""
    content: str = ""
    rating: int = Field(..., ge=1, le=5)
    submitted_at: AwareDatetime
    fetched_at: AwareDatetime

    @field_validator("id")
    @classmethod
    def _normalize_id(cls, value: str) -> str:
        review_id = value.strip()
        if not review_id:
            raise ValueError("id must be non-empty")
        return review_id
