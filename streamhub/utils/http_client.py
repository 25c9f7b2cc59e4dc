"""
HTTP fetch utilities

Wraps an httpx.AsyncClient with the route fallback used for every upstream
source: the direct URL first, then each configured proxy prefix in order.
There is no retry or backoff; each route is tried exactly once.
"""
import json
import logging
from typing import Any
from urllib.parse import quote

import httpx

from streamhub.config import settings
from streamhub.errors import FetchError


logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "Accept": "application/json, text/plain, */*",
    "Accept-Language": "en-US,en;q=0.9",
}


class HttpFetcher:
    """Network fetch collaborator shared by all source adapters."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        proxy_prefixes: list[str] | None = None,
        timeout: float | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout or settings.http_timeout_sec,
            headers=DEFAULT_HEADERS,
            follow_redirects=True,
        )
        self.proxy_prefixes = (
            list(proxy_prefixes) if proxy_prefixes is not None else settings.proxy_prefix_list
        )

    def routes(self, url: str) -> list[str]:
        """Direct URL followed by every proxied variant."""
        encoded = quote(url, safe="")
        return [url] + [f"{prefix}{encoded}" for prefix in self.proxy_prefixes]

    async def fetch(self, url: str) -> httpx.Response:
        """
        Fetch a URL, falling back through the proxy chain.

        Args:
            url: Upstream URL

        Returns:
            First successful (2xx) response

        Raises:
            FetchError: If every route fails with a transport error or non-2xx status
        """
        last_status: int | None = None
        last_error: str | None = None

        for index, route in enumerate(self.routes(url)):
            label = "direct" if index == 0 else f"proxy {index}/{len(self.proxy_prefixes)}"
            try:
                response = await self._client.get(route)
                response.raise_for_status()
                if index > 0:
                    logger.info("Fetched %s via %s", url, label)
                return response
            except httpx.HTTPStatusError as exc:
                last_status = exc.response.status_code
                last_error = f"HTTP {last_status}"
                logger.warning("Fetch of %s failed (%s): HTTP %s", url, label, last_status)
            except httpx.HTTPError as exc:
                last_error = f"{type(exc).__name__}: {exc}"
                logger.warning("Fetch of %s failed (%s): %s", url, label, last_error)

        logger.error("All fetch attempts failed for %s (direct and proxies): %s", url, last_error)
        raise FetchError(
            f"All fetch attempts failed for {url}: {last_error}",
            url=url,
            status_code=last_status,
        )

    async def fetch_text(self, url: str) -> str:
        response = await self.fetch(url)
        return response.text

    async def fetch_json(self, url: str) -> Any:
        """Fetch and decode a JSON body. An undecodable body counts as a failed fetch."""
        response = await self.fetch(url)
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise FetchError(f"Invalid JSON from {url}: {exc}", url=url, status_code=response.status_code) from exc

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
