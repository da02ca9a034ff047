"""Data models for appreviews."""

from appreviews.models.feed import FeedAuthor, FeedBody, FeedEntry, Label, RssFeed
from appreviews.models.review import Review

__all__ = [
    "FeedAuthor",
    "FeedBody",
    "FeedEntry",
    "Label",
    "Review",
    "RssFeed",
]
