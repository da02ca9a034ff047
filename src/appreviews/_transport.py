"""HTTP transport for feed downloads."""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

import aiohttp

from appreviews._constants import DEFAULT_FETCH_TIMEOUT, USER_AGENT
from appreviews.exceptions import FetchError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by the feed fetcher.

    Tests pass in plain objects with a matching ``get_json`` coroutine.
    """

    async def get_json(self, url: str) -> Any:
        ...


class HttpTransport:
    """GET-and-decode-JSON transport with a fixed User-Agent and a bounded timeout."""

    def __init__(
        self,
        http_session: aiohttp.ClientSession,
        *,
        timeout: float = DEFAULT_FETCH_TIMEOUT,
    ) -> None:
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def get_json(self, url: str) -> Any:
        """Download ``url`` and decode the body as JSON.

        Raises
        ------
        FetchError
            On network failure, timeout, non-200 status or invalid JSON.
        """
        headers = {
            "accept": "application/json",
            "user-agent": USER_AGENT,
        }

        _logger.debug("GET %s", url)

        try:
            async with self._http.get(url, headers=headers, timeout=self._timeout) as resp:
                body = await resp.read()
                if resp.status != 200:
                    raise FetchError(
                        f"unexpected status code {resp.status} from {url}",
                        status_code=resp.status,
                        url=url,
                    )
        except FetchError:
            raise
        except TimeoutError as exc:
            raise FetchError(f"Request to {url} timed out", url=url) from exc
        except aiohttp.ClientError as exc:
            raise FetchError(f"Request to {url} failed: {exc}", url=url) from exc

        try:
            return json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            preview = body[:200].decode("utf-8", errors="replace")
            raise FetchError(
                f"Invalid JSON from {url}: {preview}",
                status_code=resp.status,
                url=url,
            ) from exc
