"""Client for the web-analytics provider that supplies real view counts.

The provider exposes two read-only endpoints:

- ``GET /views?url=<page url>`` returns ``{"views": <count>}`` for one page,
- ``GET /views/posts`` returns ``{"<post id>": <count>, ...}`` for every post page.

Transport failures and unexpected answers surface as :class:`AnalyticsError`
so callers deal with a single exception family.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from medpost.core.settings import settings

logger = logging.getLogger(__name__)

SINGLE_PAGE_PATH = "/views"
ALL_POSTS_PATH = "/views/posts"


class AnalyticsError(RuntimeError):
    """The provider was unreachable or returned something unusable."""


class AnalyticsDisabledError(AnalyticsError):
    """A call was attempted with no provider configured."""


@dataclass(frozen=True)
class AnalyticsConfig:
    base_url: str | None
    api_key: str | None
    timeout_seconds: float

    @classmethod
    def from_settings(cls) -> AnalyticsConfig:
        return cls(
            base_url=settings.analytics_base_url,
            api_key=settings.analytics_api_key,
            timeout_seconds=settings.analytics_timeout_seconds,
        )

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    def headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers


class AnalyticsClient:
    """Lazily opened ``httpx.AsyncClient`` bound to one provider."""

    def __init__(
        self,
        config: AnalyticsConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or AnalyticsConfig.from_settings()
        self._transport = transport
        self._http: httpx.AsyncClient | None = None
        self._lock = asyncio.Lock()

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    async def _session(self) -> httpx.AsyncClient:
        if not self.enabled:
            raise AnalyticsDisabledError("Analytics provider is not configured")
        async with self._lock:
            if self._http is None:
                self._http = httpx.AsyncClient(
                    base_url=self.config.base_url or "",
                    headers=self.config.headers(),
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                    transport=self._transport,
                )
            return self._http

    async def _fetch(self, path: str, **params: str) -> httpx.Response:
        http = await self._session()
        try:
            return await http.get(path, params=params or None)
        except httpx.HTTPError as exc:
            logger.warning("Analytics request %s failed: %s", path, exc)
            raise AnalyticsError(f"Analytics request failed: {exc}") from exc

    @staticmethod
    def _json(response: httpx.Response, what: str) -> Any:
        if response.status_code != httpx.codes.OK:
            raise AnalyticsError(f"Analytics answered {response.status_code} for {what}")
        try:
            return response.json()
        except ValueError as exc:
            raise AnalyticsError(f"Analytics sent invalid JSON for {what}") from exc

    async def get_post_view_count(self, url: str) -> int:
        """Real views of one page. Pages the provider has never seen count as zero."""
        response = await self._fetch(SINGLE_PAGE_PATH, url=url)
        if response.status_code == httpx.codes.NOT_FOUND:
            return 0
        payload = self._json(response, url)
        try:
            return int(payload.get("views", 0))
        except (AttributeError, TypeError, ValueError) as exc:
            raise AnalyticsError(f"Malformed analytics payload for {url}") from exc

    async def get_all_posts_view_count(self) -> dict[str, int]:
        """Real views keyed by the post identifier as the provider reports it."""
        payload = self._json(await self._fetch(ALL_POSTS_PATH), "post views")
        try:
            return {str(key): int(value) for key, value in payload.items()}
        except (AttributeError, TypeError, ValueError) as exc:
            raise AnalyticsError("Malformed analytics payload for post views") from exc

    async def close(self) -> None:
        async with self._lock:
            if self._http is not None:
                await self._http.aclose()
                self._http = None


_shared_client: AnalyticsClient | None = None


def get_analytics_client() -> AnalyticsClient:
    """Process-wide client configured from settings."""
    global _shared_client
    if _shared_client is None:
        _shared_client = AnalyticsClient()
    return _shared_client
