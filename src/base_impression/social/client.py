"""HTTP client for the social platform API (v2 user and timeline endpoints)."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

import httpx

from base_impression.social.models import ActivityRecord, ActivityWindow, SocialIdentity

logger = logging.getLogger(__name__)

# Constants
DEFAULT_BASE_URL = "https://api.twitter.com"
DEFAULT_TIMEOUT_SECONDS = 15.0
DEFAULT_PAGE_SIZE = 100
DEFAULT_MAX_PAGES = 10


class SocialClientError(Exception):
    """Base exception for social client errors."""


class SocialAPIError(SocialClientError):
    """Raised when the API answers with an error or an unreadable payload."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class InvalidHandleError(SocialClientError, ValueError):
    """Raised when a handle is empty after normalization."""


def normalize_handle(handle: str) -> str:
    """Strip whitespace and a leading '@' from a handle.

    Raises:
        InvalidHandleError: If nothing is left.
    """
    normalized = (handle or "").strip().lstrip("@").strip()
    if not normalized:
        raise InvalidHandleError("Handle must not be empty")
    return normalized


def _format_ts(ts: datetime) -> str:
    return ts.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


class SocialClient:
    """Read-only client for identity lookup and post scans.

    Example:
        ```python
        async with httpx.AsyncClient() as http:
            client = SocialClient(bearer_token="...", http=http)
            identity = await client.get_identity("jessepollak")
            posts = await client.get_posts(identity, window)
        ```
    """

    def __init__(
        self,
        bearer_token: str,
        *,
        http: httpx.AsyncClient | None = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_pages: int = DEFAULT_MAX_PAGES,
    ) -> None:
        self._bearer_token = bearer_token
        self._http = http
        self._owns_http = http is None
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._page_size = page_size
        self._max_pages = max_pages

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient()
        return self._http

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self._bearer_token}",
            "Accept": "application/json",
        }
        url = f"{self._base_url}{path}"
        try:
            response = await self._client().get(
                url, params=params, headers=headers, timeout=self._timeout
            )
        except httpx.HTTPError as e:
            raise SocialAPIError(f"Request to {path} failed: {e}") from e

        if response.status_code != 200:
            raise SocialAPIError(
                f"Social API error {response.status_code} for {path}",
                status_code=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError as e:
            raise SocialAPIError(f"Malformed JSON from {path}") from e
        if not isinstance(payload, dict):
            raise SocialAPIError(f"Unexpected payload type from {path}")
        return payload

    async def get_identity(self, handle: str) -> SocialIdentity:
        """Resolve a handle to a stable identity and registration date."""
        username = normalize_handle(handle)
        payload = await self._get(
            f"/2/users/by/username/{username}",
            params={"user.fields": "created_at"},
        )
        data = payload.get("data")
        if not isinstance(data, dict):
            raise SocialAPIError(f"Identity lookup for {username} returned no data")
        try:
            return SocialIdentity.from_dict(data)
        except (KeyError, ValueError) as e:
            raise SocialAPIError(f"Malformed identity payload for {username}: {e}") from e

    async def get_posts(
        self,
        identity: SocialIdentity,
        window: ActivityWindow,
    ) -> list[ActivityRecord]:
        """Fetch the identity's posts created within ``window``.

        Follows pagination up to ``max_pages`` pages.
        """
        params: dict[str, Any] = {
            "start_time": _format_ts(window.start),
            "end_time": _format_ts(window.end),
            "max_results": self._page_size,
            "tweet.fields": "created_at",
        }
        records: list[ActivityRecord] = []

        for _ in range(self._max_pages):
            payload = await self._get(f"/2/users/{identity.identity_id}/tweets", params=params)
            for item in payload.get("data") or []:
                try:
                    records.append(ActivityRecord.from_dict(item, origin_handle=identity.handle))
                except (KeyError, TypeError, ValueError) as e:
                    raise SocialAPIError(f"Malformed post payload: {e}") from e

            next_token = (payload.get("meta") or {}).get("next_token")
            if not next_token:
                break
            params["pagination_token"] = next_token
        else:
            logger.warning(
                "Post scan for %s stopped after %d pages", identity.handle, self._max_pages
            )

        return records

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http and self._http is not None:
            await self._http.aclose()
            self._http = None
