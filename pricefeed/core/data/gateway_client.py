"""GatewayClient — calls the edge gateway's ``/?apiId=...`` surface."""
from typing import Any

import aiohttp
from aiolimiter import AsyncLimiter

from pricefeed.core.config import settings


class GatewayClient:

    def __init__(
        self,
        base_url: str | None = None,
        requests_per_minute: int | None = None,
        timeout_seconds: float | None = None,
    ):
        self.base_url = (base_url or settings.gateway_url).rstrip("/")
        self._limiter = AsyncLimiter(requests_per_minute or settings.upstream_requests_per_minute, 60)
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds or settings.request_timeout_seconds)

    async def get_json(self, api_id: str, params: dict[str, str]) -> Any:
        """GET one route and decode its JSON body. Non-2xx raises ClientResponseError."""
        query = {"apiId": api_id, **params}
        async with self._limiter:
            async with aiohttp.ClientSession(timeout=self._timeout) as session:
                async with session.get(f"{self.base_url}/", params=query) as resp:
                    resp.raise_for_status()
                    return await resp.json(content_type=None)

    async def get_text(self, api_id: str, params: dict[str, str]) -> str:
        """GET one route and return its body as text (the XML routes)."""
        query = {"apiId": api_id, **params}
        async with self._limiter:
            async with aiohttp.ClientSession(timeout=self._timeout) as session:
                async with session.get(f"{self.base_url}/", params=query) as resp:
                    resp.raise_for_status()
                    return await resp.text()
