"""iTunes customer-review RSS feed (JSON flavour) wire models.

Every scalar in the feed is wrapped in ``{"label": "..."}``; the rating
lives under the namespaced ``im:rating`` key.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

_INTEGER_RE = re.compile(r"[+-]?[0-9]+")
_RFC3339_RE = re.compile(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:\.\d+)?(?:Z|[+-]\d{2}:\d{2})")


class Label(BaseModel):
    model_config = ConfigDict(extra="ignore")

    label: str


class FeedAuthor(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Label


class FeedEntry(BaseModel):
    """A single review entry as it appears in the feed.

    Rating and timestamp labels are checked here rather than left to the
    lax coercion of :class:`~appreviews.models.review.Review`: the rating
    must be a plain integer literal and ``updated`` an RFC 3339 timestamp
    with seconds and an offset.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: Label
    author: FeedAuthor
    content: Label = Field(default_factory=lambda: Label(label=""))
    rating: Label = Field(..., alias="im:rating")
    updated: Label

    @field_validator("rating")
    @classmethod
    def _check_rating(cls, value: Label) -> Label:
        if not _INTEGER_RE.fullmatch(value.label):
            raise ValueError(f"invalid rating {value.label!r}")
        return value

    @field_validator("updated")
    @classmethod
    def _check_updated(cls, value: Label) -> Label:
        if not _RFC3339_RE.fullmatch(value.label):
            raise ValueError(f"invalid timestamp {value.label!r}")
        return value


class FeedBody(BaseModel):
    model_config = ConfigDict(extra="ignore")

    entry: list[dict[str, Any]] = Field(default_factory=list)

    @field_validator("entry", mode="before")
    @classmethod
    def _coerce_single_entry(cls, value: Any) -> Any:
        # Feeds with exactly one review carry a bare object instead of a list.
        if isinstance(value, dict):
            return [value]
        if value is None:
            return []
        return value


class RssFeed(BaseModel):
    """Top-level feed document.

    Entries are kept as raw dicts so each one can be validated on its own
    and dropped individually.
    """

    model_config = ConfigDict(extra="ignore")

    feed: FeedBody
