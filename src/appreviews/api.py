"""Read-only HTTP API over the review store.

Endpoints:
  - GET /api/reviews?app_id=<id>&hours=<n>
  - GET /api/average-rating?app_id=<id>&hours=<n>
  - GET /api/health
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

from aiohttp import web
from pydantic import TypeAdapter

from appreviews._constants import DEFAULT_WINDOW_HOURS
from appreviews.models.review import Review

_logger = logging.getLogger(__name__)

_REVIEW_LIST = TypeAdapter(list[Review])

_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


class ReviewReader(Protocol):
    """Read contract the API needs from the store."""

    def all_reviews(self) -> list[Review]:
        ...

    def reviews_since(self, app_id: str, window: timedelta) -> list[Review]:
        ...


STORE_KEY: web.AppKey[ReviewReader] = web.AppKey("store", ReviewReader)


class _BadRequest(Exception):
    pass


def round_half_up(value: float, digits: int = 1) -> float:
    """Round ``value`` to ``digits`` decimals, halves away from zero.

    ``round()`` uses banker's rounding on binary floats, which turns
    ``4.25`` into ``4.2``; going through :class:`~decimal.Decimal` keeps
    the decimal reading of the number.
    """
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def average_rating(reviews: list[Review]) -> float:
    if not reviews:
        return 0.0
    return round_half_up(sum(review.rating for review in reviews) / len(reviews))


def _query_window(request: web.Request) -> tuple[str, int]:
    app_id = request.query.get("app_id", "")
    if not app_id:
        raise _BadRequest("app_id query parameter is required")

    hours_raw = request.query.get("hours")
    if hours_raw is None or hours_raw == "":
        return app_id, DEFAULT_WINDOW_HOURS
    try:
        hours = int(hours_raw)
    except ValueError:
        hours = 0
    if hours <= 0:
        raise _BadRequest("hours must be a positive integer")
    return app_id, hours


async def get_recent_reviews(request: web.Request) -> web.Response:
    try:
        app_id, hours = _query_window(request)
    except _BadRequest as exc:
        return web.Response(status=400, text=str(exc))

    reviews = request.app[STORE_KEY].reviews_since(app_id, timedelta(hours=hours))
    reviews.sort(key=lambda review: review.submitted_at, reverse=True)
    return web.Response(
        body=_REVIEW_LIST.dump_json(reviews),
        content_type="application/json",
    )


async def get_average_rating(request: web.Request) -> web.Response:
    try:
        app_id, hours = _query_window(request)
    except _BadRequest as exc:
        return web.Response(status=400, text=str(exc))

    reviews = request.app[STORE_KEY].reviews_since(app_id, timedelta(hours=hours))
    return web.json_response(
        {
            "app_id": app_id,
            "average_rating": average_rating(reviews),
            "review_count": len(reviews),
            "hours": hours,
        }
    )


async def health_check(request: web.Request) -> web.Response:
    total = len(request.app[STORE_KEY].all_reviews())
    return web.json_response(
        {
            "status": "healthy",
            "timestamp": datetime.now(UTC).isoformat(timespec="seconds"),
            "total_reviews": total,
        }
    )


@web.middleware
async def cors_middleware(
    request: web.Request,
    handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
) -> web.StreamResponse:
    """Allow browser frontends on any origin; answer preflight directly."""
    if request.method == "OPTIONS":
        return web.Response(status=200, headers=_CORS_HEADERS)
    try:
        response = await handler(request)
    except web.HTTPException as exc:
        exc.headers.update(_CORS_HEADERS)
        raise
    response.headers.update(_CORS_HEADERS)
    return response


def create_app(store: ReviewReader) -> web.Application:
    """Build the read API application bound to ``store``."""
    app = web.Application(middlewares=[cors_middleware])
    app[STORE_KEY] = store
    app.router.add_get("/api/reviews", get_recent_reviews, allow_head=False)
    app.router.add_get("/api/average-rating", get_average_rating, allow_head=False)
    app.router.add_get("/api/health", health_check, allow_head=False)
    return app
