"""appreviews - poll App Store review feeds, persist them, serve them over HTTP."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("appreviews")
except PackageNotFoundError:
    __version__ = "0+local"
from appreviews.config import PollerConfig, load_app_ids
from appreviews.exceptions import (
    AppReviewsError,
    ConfigError,
    CorruptStateError,
    FeedFormatError,
    FetchError,
    PersistError,
    StoreError,
)
from appreviews.feed import ITunesReviewsFetcher, ReviewsFetcher, build_feed_url, parse_feed
from appreviews.models import Review
from appreviews.poller import ReviewPoller
from appreviews.store import ReviewStore

__all__ = [
    "__version__",
    "AppReviewsError",
    "ConfigError",
    "CorruptStateError",
    "FeedFormatError",
    "FetchError",
    "ITunesReviewsFetcher",
    "PersistError",
    "PollerConfig",
    "Review",
    "ReviewPoller",
    "ReviewStore",
    "ReviewsFetcher",
    "StoreError",
    "build_feed_url",
    "load_app_ids",
    "parse_feed",
]
