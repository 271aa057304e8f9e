"""Rate-limit aware client for the Spotify Web API.

All upstream traffic goes through CatalogClient.request(), which applies the
same policy to every call:

  - one attempt, bounded by REQUEST_TIMEOUT_SECONDS
  - a 429 whose Retry-After hint is at most RATE_LIMIT_MAX_RETRY_MS is waited
    out and retried exactly once; longer (or missing) hints raise RateLimited
    straight away so callers can fall back to cached data
  - every other non-2xx response raises a CatalogError carrying the status

Blocking `requests` calls are pushed to a worker thread with asyncio.to_thread
so that the event loop keeps serving other sessions while a call is pending.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional

import requests

from playlist_sorter.config import (
    RATE_LIMIT_MAX_RETRY_MS,
    REQUEST_TIMEOUT_SECONDS,
    SPOTIFY_API_BASE,
)
from playlist_sorter.core import log_debug, log_info, log_warning

from .errors import CatalogError, CatalogTimeout, RateLimited, Unauthorized

SleepFn = Callable[[float], Awaitable[None]]


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    return max(0.0, seconds)


class CatalogClient:
    """Bearer-token client for one user session."""

    def __init__(
        self,
        access_token: Optional[str],
        http: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        sleep: SleepFn = asyncio.sleep,
        api_base: str = SPOTIFY_API_BASE,
    ) -> None:
        self.access_token = access_token
        self._http = http if http is not None else requests.Session()
        self._timeout = timeout
        self._sleep = sleep
        self._api_base = api_base.rstrip("/")

    def _absolute(self, url: str) -> str:
        if url.startswith("http://") or url.startswith("https://"):
            return url
        return f"{self._api_base}/{url.lstrip('/')}"

    def _headers(self, body: Any) -> Dict[str, str]:
        headers = {"Authorization": f"Bearer {self.access_token}"}
        if body is not None:
            headers["Content-Type"] = "application/json"
        return headers

    async def _send(self, method: str, url: str, body: Any) -> requests.Response:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(
                    self._http.request,
                    method,
                    url,
                    headers=self._headers(body),
                    json=body,
                    timeout=self._timeout,
                ),
                timeout=self._timeout,
            )
        except (asyncio.TimeoutError, requests.Timeout) as e:
            raise CatalogTimeout(
                f"Spotify request timed out after {self._timeout:g}s: {method} {url}"
            ) from e
        except requests.RequestException as e:
            raise CatalogError(f"Spotify request failed for {method} {url}: {e}") from e

    @staticmethod
    def _parse(method: str, url: str, response: requests.Response) -> Any:
        status = response.status_code
        if status == 401:
            raise Unauthorized(body=response.text)
        if status == 429:
            raise RateLimited(
                retry_after=_parse_retry_after(response.headers.get("Retry-After")),
                body=response.text,
            )
        if not 200 <= status < 300:
            body = response.text
            raise CatalogError(
                f"Spotify API error {status} for {method} {url}: {body or 'No body'}",
                status=status,
                body=body,
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {}

    async def request(self, url: str, method: str = "GET", body: Any = None) -> Any:
        """
        Perform a single upstream call and return the parsed JSON body.

        Raises Unauthorized, RateLimited, CatalogTimeout or CatalogError.
        """
        if not self.access_token:
            raise Unauthorized(f"Spotify access token missing for request: {url}")

        full_url = self._absolute(url)
        response = await self._send(method, full_url, body)

        if response.status_code == 429:
            retry_after = _parse_retry_after(response.headers.get("Retry-After"))
            if retry_after is None or retry_after * 1000 > RATE_LIMIT_MAX_RETRY_MS:
                log_warning(
                    f"Spotify rate limit on {method} {full_url} "
                    f"(Retry-After: {retry_after if retry_after is not None else 'not provided'})."
                )
                raise RateLimited(retry_after=retry_after, body=response.text)

            log_info(f"Spotify rate limit on {method} {full_url}; retrying in {retry_after:g}s.")
            await self._sleep(retry_after)
            response = await self._send(method, full_url, body)

        return self._parse(method, full_url, response)

    async def fetch_paged(self, url: str) -> List[Any]:
        """
        Follow the `next` cursor until it is null and return every item.

        Pages are requested strictly one after another: a cursor is only
        valid once the previous page has been returned.
        """
        items: List[Any] = []
        next_url: Optional[str] = url
        page = 0

        while next_url:
            page += 1
            data = await self.request(next_url)
            if not isinstance(data, dict):
                break
            items.extend(data.get("items") or [])
            next_url = data.get("next")

        log_debug(f"Fetched {len(items)} items in {page} page(s) from {url}.")
        return items
