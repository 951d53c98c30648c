"""
Async HTTP client for the engagement API.

Thin wrapper over httpx.AsyncClient: one method per endpoint, JSON in and
out, non-2xx answers raised as EngagementAPIError. The identity provider's
user id travels in X-User-Id on every request.
"""
from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Optional

import httpx

from .errors import EngagementAPIError

logger = logging.getLogger(__name__)

# What a UI call site catches: transport failures and API rejections.
CALL_ERRORS = (httpx.HTTPError, EngagementAPIError)


class EngagementAPI:
    def __init__(
        self,
        base_url: str,
        user_id: Optional[int] = None,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if user_id is not None:
            headers["X-User-Id"] = str(user_id)
        self.user_id = user_id
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "EngagementAPI":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> dict[str, Any]:
        response = await self._client.request(method, path, **kwargs)
        if response.status_code >= 400:
            try:
                message = response.json().get("error") or response.reason_phrase
            except ValueError:
                message = response.text or response.reason_phrase
            raise EngagementAPIError(response.status_code, message)
        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    # Articles

    async def increment_views(self, article_id: int, idempotency_key: Optional[str] = None) -> dict[str, Any]:
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else None
        return await self._request("POST", f"/api/articles/{article_id}/increment-views/", headers=headers)

    async def get_article_stats(self, article_id: int) -> dict[str, Any]:
        return await self._request("GET", f"/api/articles/{article_id}/stats/")

    async def toggle_like(self, article_id: int) -> dict[str, Any]:
        return await self._request("POST", f"/api/articles/{article_id}/like/")

    async def check_like(self, article_id: int) -> bool:
        data = await self._request("GET", f"/api/articles/{article_id}/like/")
        return bool(data.get("isLiked"))

    # Follow graph

    async def check_follow(self, target_id: int) -> bool:
        data = await self._request("GET", f"/api/users/{target_id}/follow/")
        return bool(data.get("isFollowing"))

    async def batch_check_follow(self, target_ids: list[int]) -> dict[int, bool]:
        data = await self._request(
            "GET", "/api/users/follow-status/", params={"ids": ",".join(str(i) for i in target_ids)}
        )
        return {int(target_id): bool(value) for target_id, value in data.get("statuses", {}).items()}

    async def toggle_follow(self, target_id: int) -> dict[str, Any]:
        return await self._request("POST", f"/api/users/{target_id}/follow/")

    async def get_follow_counts(self, user_id: int) -> dict[str, Any]:
        return await self._request("GET", f"/api/users/{user_id}/follow-counts/")

    async def list_followers(self, user_id: int, limit: int = 20) -> list[dict[str, Any]]:
        data = await self._request("GET", f"/api/users/{user_id}/followers/", params={"limit": limit})
        return data.get("items", [])

    async def list_following(self, user_id: int, limit: int = 20) -> list[dict[str, Any]]:
        data = await self._request("GET", f"/api/users/{user_id}/following/", params={"limit": limit})
        return data.get("items", [])

    async def recommend(self, limit: int = 3) -> list[dict[str, Any]]:
        data = await self._request("GET", "/api/recommendations/", params={"limit": limit})
        return data.get("items", [])

    # Notifications

    async def list_notifications(self, limit: int = 20) -> dict[str, Any]:
        return await self._request("GET", "/api/notifications/", params={"limit": limit})

    async def mark_read(self, notification_id: int) -> None:
        await self._request("POST", f"/api/notifications/{notification_id}/read/")

    async def mark_all_read(self) -> int:
        data = await self._request("POST", "/api/notifications/read-all/")
        return int(data.get("updated", 0))

    async def stream_notifications(self, last_event_id: Optional[int] = None) -> AsyncIterator[dict[str, Any]]:
        """
        Yield raw notification rows from the SSE stream until it closes.

        Passing the last seen id resumes the stream; the server replays
        anything newer before going live.
        """
        headers = {"Accept": "text/event-stream"}
        if last_event_id:
            headers["Last-Event-ID"] = str(last_event_id)

        async with self._client.stream(
            "GET", "/api/notifications/stream/", headers=headers, timeout=None
        ) as response:
            if response.status_code >= 400:
                await response.aread()
                raise EngagementAPIError(response.status_code, response.text or response.reason_phrase)
            async for event in parse_sse(response.aiter_lines()):
                yield event


async def parse_sse(lines: AsyncIterator[str]) -> AsyncIterator[dict[str, Any]]:
    """
    Minimal text/event-stream parser: collects data: lines until a blank
    line, then yields the decoded JSON. Comments (keep-alives) and retry:
    hints are skipped.
    """
    data_lines: list[str] = []
    async for line in lines:
        if line == "":
            if data_lines:
                payload = "\n".join(data_lines)
                data_lines = []
                try:
                    yield json.loads(payload)
                except ValueError:
                    logger.warning(f"Skipping malformed SSE payload: {payload[:100]}")
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        if field == "data":
            data_lines.append(value[1:] if value.startswith(" ") else value)
