"""Custom exception hierarchy for appreviews."""

from __future__ import annotations


class AppReviewsError(Exception):
    """Base exception for all appreviews errors."""


class ConfigError(AppReviewsError):
    """Invalid or missing configuration."""


class FetchError(AppReviewsError):
    """Feed fetch failure (network, non-200, timeout, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        url: str = "",
    ) -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(message)


class FeedFormatError(FetchError):
    """Feed document decoded as JSON but does not have the expected shape."""


class StoreError(AppReviewsError):
    """Base exception for review store failures."""


class PersistError(StoreError):
    """Writing the mirror file failed.

    The in-memory map has already been updated when this is raised, so
    memory is ahead of disk until the next successful persist.
    """


class CorruptStateError(StoreError):
    """The mirror file exists but could not be read or parsed.

    The in-memory map is left untouched.
    """
