"""iTunes customer-review feed client.

Endpoint:
  - https://itunes.apple.com/{country}/rss/customerreviews/id={app_id}/sortBy=mostRecent/page=1/json
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, Protocol

import aiohttp
from pydantic import ValidationError

from appreviews._constants import DEFAULT_COUNTRY, DEFAULT_FETCH_TIMEOUT, FEED_URL_TEMPLATE
from appreviews._transport import HttpTransport, Transport
from appreviews.exceptions import AppReviewsError, FeedFormatError
from appreviews.models.feed import FeedEntry, RssFeed
from appreviews.models.review import Review

_logger = logging.getLogger(__name__)


class ReviewsFetcher(Protocol):
    """Anything that can turn an app id into a batch of reviews."""

    async def fetch_reviews(self, app_id: str) -> list[Review]:
        ...


def build_feed_url(app_id: str, country: str = DEFAULT_COUNTRY) -> str:
    """Return the most-recent-first review feed URL for ``app_id``."""
    return FEED_URL_TEMPLATE.format(country=country, app_id=app_id)


def _entry_to_review(raw: dict[str, Any], app_id: str, fetched_at: datetime) -> Review:
    entry = FeedEntry.model_validate(raw)
    return Review.model_validate(
        {
            "id": entry.id.label,
            "app_id": app_id,
            "author": entry.author.name.label,
            "content": entry.content.label,
            "rating": int(entry.rating.label),
            "submitted_at": entry.updated.label,
            "fetched_at": fetched_at,
        }
    )


def parse_feed(document: Any, app_id: str, fetched_at: datetime) -> list[Review]:
    """Convert a decoded feed document into reviews.

    Entries with a bad rating, a bad timestamp or missing fields are
    skipped with a warning; the remaining entries are still returned.

    Raises
    ------
    FeedFormatError
        If the document itself is not a feed.
    """
    try:
        feed = RssFeed.model_validate(document)
    except ValidationError as exc:
        raise FeedFormatError(f"Malformed feed document for app {app_id}: {exc}") from exc

    reviews: list[Review] = []
    for raw in feed.feed.entry:
        try:
            reviews.append(_entry_to_review(raw, app_id, fetched_at))
        except ValidationError as exc:
            _logger.warning(
                "Skipping malformed review entry for app %s: %s",
                app_id,
                exc.errors(include_url=False, include_input=False),
            )
    return reviews


class ITunesReviewsFetcher:
    """Async fetcher for App Store customer reviews.

    Usage::

        async with ITunesReviewsFetcher() as fetcher:
            reviews = await fetcher.fetch_reviews("284882215")
    """

    def __init__(
        self,
        *,
        country: str = DEFAULT_COUNTRY,
        timeout: float = DEFAULT_FETCH_TIMEOUT,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
        url_builder: Callable[[str, str], str] = build_feed_url,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self._country = country
        self._timeout = timeout
        self._external_session = session is not None
        self._http_session = session
        self._transport: Transport | None = transport
        self._url_builder = url_builder
        self._clock = clock

    async def __aenter__(self) -> ITunesReviewsFetcher:
        if self._transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = HttpTransport(self._http_session, timeout=self._timeout)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
            self._transport = None

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise AppReviewsError("Fetcher not initialized. Use 'async with ITunesReviewsFetcher() as fetcher:'")
        return self._transport

    async def fetch_reviews(self, app_id: str) -> list[Review]:
        """Download and parse the latest reviews page for ``app_id``.

        Raises
        ------
        FetchError
            If the feed cannot be downloaded or is not a feed document.
        """
        transport = self._require_transport()
        url = self._url_builder(app_id, self._country)
        document = await transport.get_json(url)
        return parse_feed(document, app_id, self._clock())
