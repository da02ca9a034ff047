from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from appreviews._constants import USER_AGENT
from appreviews.exceptions import AppReviewsError, FeedFormatError, FetchError
from appreviews.feed import ITunesReviewsFetcher, build_feed_url, parse_feed

_FETCHED_AT = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


def _entry(review_id: str, *, rating: str = "5", updated: str = "2026-01-01T10:30:00-07:00") -> dict[str, Any]:
    return {
        "author": {"name": {"label": f"author-{review_id}"}, "uri": {"label": "https://example.com"}},
        "updated": {"label": updated},
        "im:rating": {"label": rating},
        "im:version": {"label": "1.2.3"},
        "id": {"label": review_id},
        "title": {"label": "Title"},
        "content": {"label": f"content-{review_id}", "attributes": {"type": "text"}},
    }


def _feed(entries: Any) -> dict[str, Any]:
    return {"feed": {"author": {"name": {"label": "iTunes Store"}}, "entry": entries}}


def test_build_feed_url() -> None:
    assert build_feed_url("284882215") == (
        "https://itunes.apple.com/us/rss/customerreviews/id=284882215/sortBy=mostRecent/page=1/json"
    )
    assert "/gb/rss/" in build_feed_url("1", "gb")


def test_parse_feed_converts_entries() -> None:
    reviews = parse_feed(_feed([_entry("r1"), _entry("r2", rating="3")]), "app1", _FETCHED_AT)

    assert [review.id for review in reviews] == ["r1", "r2"]
    first = reviews[0]
    assert first.app_id == "app1"
    assert first.author == "author-r1"
    assert first.content == "content-r1"
    assert first.rating == 5
    assert first.submitted_at == datetime(2026, 1, 1, 17, 30, tzinfo=UTC)
    assert first.fetched_at == _FETCHED_AT
    assert reviews[1].rating == 3


def test_parse_feed_single_entry_object() -> None:
    reviews = parse_feed(_feed(_entry("only")), "app1", _FETCHED_AT)

    assert [review.id for review in reviews] == ["only"]


def test_parse_feed_without_entries() -> None:
    assert parse_feed({"feed": {"author": {}}}, "app1", _FETCHED_AT) == []


def test_parse_feed_skips_invalid_entries(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="appreviews")
    app_info = {"id": {"label": "https://apps.apple.com/app"}, "im:name": {"label": "Some App"}}

    reviews = parse_feed(
        _feed(
            [
                app_info,
                _entry("r-ok"),
                _entry("r-bad", rating="abc"),
                _entry("r-range", rating="6"),
                _entry("r-time", updated="yesterday"),
                _entry("r-naive", updated="2026-01-01T10:30:00"),
                _entry("r-float", rating="5.0"),
                _entry("r-padded", rating=" 5 "),
                _entry("r-epoch", updated="1767261600"),
                _entry("r-space", updated="2026-01-01 10:00:00Z"),
                _entry("r-no-seconds", updated="2026-01-01T10:00Z"),
            ]
        ),
        "app1",
        _FETCHED_AT,
    )

    assert [review.id for review in reviews] == ["r-ok"]
    assert caplog.text.count("Skipping malformed review entry") == 10


def test_parse_feed_accepts_fractional_seconds_and_utc_suffix() -> None:
    reviews = parse_feed(
        _feed([_entry("r-frac", updated="2026-01-01T10:30:00.250Z"), _entry("r-plus", rating="+4")]),
        "app1",
        _FETCHED_AT,
    )

    assert [review.id for review in reviews] == ["r-frac", "r-plus"]
    assert reviews[0].submitted_at == datetime(2026, 1, 1, 10, 30, 0, 250000, tzinfo=UTC)
    assert reviews[1].rating == 4


@pytest.mark.parametrize("document", [[], "feed", {"nofeed": {}}, {"feed": "x"}, {"feed": {"entry": "x"}}])
def test_parse_feed_rejects_non_feed_documents(document: Any) -> None:
    with pytest.raises(FeedFormatError):
        parse_feed(document, "app1", _FETCHED_AT)


class _FakeTransport:
    def __init__(self, document: Any) -> None:
        self.document = document
        self.urls: list[str] = []

    async def get_json(self, url: str) -> Any:
        self.urls.append(url)
        return self.document


@pytest.mark.asyncio
async def test_fetcher_uses_transport_and_clock() -> None:
    transport = _FakeTransport(_feed([_entry("r1")]))

    async with ITunesReviewsFetcher(transport=transport, country="de", clock=lambda: _FETCHED_AT) as fetcher:
        reviews = await fetcher.fetch_reviews("42")

    assert transport.urls == [build_feed_url("42", "de")]
    assert [review.fetched_at for review in reviews] == [_FETCHED_AT]


@pytest.mark.asyncio
async def test_fetcher_requires_context_manager() -> None:
    fetcher = ITunesReviewsFetcher()

    with pytest.raises(AppReviewsError):
        await fetcher.fetch_reviews("42")


async def _feed_server(handler: Any) -> TestServer:
    app = web.Application()
    app.router.add_get("/feed/{app_id}", handler)
    server = TestServer(app)
    await server.start_server()
    return server


@pytest.mark.asyncio
async def test_fetcher_over_http_sends_user_agent() -> None:
    seen: dict[str, str] = {}

    async def handler(request: web.Request) -> web.Response:
        seen["user_agent"] = request.headers.get("User-Agent", "")
        return web.json_response(_feed([_entry(request.match_info["app_id"] + "-r1")]))

    server = await _feed_server(handler)
    try:
        fetcher = ITunesReviewsFetcher(url_builder=lambda app_id, _country: str(server.make_url(f"/feed/{app_id}")))
        async with fetcher:
            reviews = await fetcher.fetch_reviews("app1")
    finally:
        await server.close()

    assert seen["user_agent"] == USER_AGENT
    assert [review.id for review in reviews] == ["app1-r1"]


@pytest.mark.asyncio
async def test_fetcher_over_http_non_200_is_fetch_error() -> None:
    async def handler(_request: web.Request) -> web.Response:
        return web.Response(status=503, text="unavailable")

    server = await _feed_server(handler)
    try:
        fetcher = ITunesReviewsFetcher(url_builder=lambda app_id, _country: str(server.make_url(f"/feed/{app_id}")))
        async with fetcher:
            with pytest.raises(FetchError) as excinfo:
                await fetcher.fetch_reviews("app1")
    finally:
        await server.close()

    assert excinfo.value.status_code == 503
    assert excinfo.value.url.endswith("/feed/app1")


@pytest.mark.asyncio
async def test_fetcher_over_http_invalid_json_is_fetch_error() -> None:
    async def handler(_request: web.Request) -> web.Response:
        return web.Response(status=200, text="<html>not json</html>")

    server = await _feed_server(handler)
    try:
        fetcher = ITunesReviewsFetcher(url_builder=lambda app_id, _country: str(server.make_url(f"/feed/{app_id}")))
        async with fetcher:
            with pytest.raises(FetchError, match="Invalid JSON"):
                await fetcher.fetch_reviews("app1")
    finally:
        await server.close()


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [b"\xff\xfe", b'{"feed": {"entry": "\xff\xfe"}}'])
async def test_fetcher_over_http_non_utf8_body_is_fetch_error(body: bytes) -> None:
    async def handler(_request: web.Request) -> web.Response:
        return web.Response(status=200, body=body, content_type="application/json")

    server = await _feed_server(handler)
    try:
        fetcher = ITunesReviewsFetcher(url_builder=lambda app_id, _country: str(server.make_url(f"/feed/{app_id}")))
        async with fetcher:
            with pytest.raises(FetchError, match="Invalid JSON") as excinfo:
                await fetcher.fetch_reviews("app1")
    finally:
        await server.close()

    assert excinfo.value.status_code == 200


@pytest.mark.asyncio
async def test_fetcher_connection_refused_is_fetch_error() -> None:
    async def handler(_request: web.Request) -> web.Response:
        return web.Response(text="{}")

    server = await _feed_server(handler)
    url = str(server.make_url("/feed/app1"))
    await server.close()

    async with ITunesReviewsFetcher(url_builder=lambda _app_id, _country: url) as fetcher:
        with pytest.raises(FetchError):
            await fetcher.fetch_reviews("app1")
