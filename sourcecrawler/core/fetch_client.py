"""
aiohttp-backed fetch client.

Every request carries the crawler's identifying User-Agent, follows redirects
and is bounded by a total timeout.
"""

import asyncio
from typing import Dict, Optional

import aiohttp
from loguru import logger

from sourcecrawler.interfaces.crawl_interfaces import FetchError, FetchResponse, IFetchClient
from sourcecrawler.models.source_models import CrawlerConfig


class HttpFetchClient(IFetchClient):
    """Fetch client using a shared aiohttp session."""

    def __init__(self, config: Optional[CrawlerConfig] = None):
        self.config = config or CrawlerConfig()
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        """Async context manager entry."""
        self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(headers=self.config.request_headers)
        return self.session

    async def close(self) -> None:
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None

    def _timeout(self, timeout_ms: Optional[int]) -> aiohttp.ClientTimeout:
        ms = timeout_ms if timeout_ms is not None else self.config.timeout_ms
        return aiohttp.ClientTimeout(total=ms / 1000)

    @staticmethod
    def _decode(raw: bytes, charset: Optional[str]) -> str:
        try:
            return raw.decode(charset or 'utf-8', errors='replace')
        except LookupError:
            return raw.decode('utf-8', errors='replace')

    @staticmethod
    def _headers(response: aiohttp.ClientResponse) -> Dict[str, str]:
        return {key.lower(): value for key, value in response.headers.items()}

    async def get(self, url: str, headers: Optional[Dict[str, str]] = None,
                  timeout_ms: Optional[int] = None, max_redirects: int = 5) -> FetchResponse:
        session = self._ensure_session()
        try:
            async with session.get(url, headers=headers, timeout=self._timeout(timeout_ms),
                                   allow_redirects=True, max_redirects=max_redirects) as response:
                if response.status >= 400:
                    raise FetchError(f"HTTP {response.status} for {url}", url=url, status=response.status)
                raw = await response.read()
                return FetchResponse(
                    status=response.status,
                    headers=self._headers(response),
                    body=self._decode(raw, response.charset),
                    url=str(response.url),
                )
        except asyncio.TimeoutError as e:
            raise FetchError(f"Timeout fetching {url}", url=url, cause=e)
        except aiohttp.ClientError as e:
            logger.debug(f"Fetch failed for {url}: {e}")
            raise FetchError(f"Request failed for {url}: {e}", url=url, cause=e)

    async def head(self, url: str, headers: Optional[Dict[str, str]] = None,
                   timeout_ms: Optional[int] = None) -> FetchResponse:
        session = self._ensure_session()
        try:
            async with session.head(url, headers=headers, timeout=self._timeout(timeout_ms),
                                    allow_redirects=True,
                                    max_redirects=self.config.probe_max_redirects) as response:
                return FetchResponse(
                    status=response.status,
                    headers=self._headers(response),
                    url=str(response.url),
                )
        except asyncio.TimeoutError as e:
            raise FetchError(f"Timeout probing {url}", url=url, cause=e)
        except aiohttp.ClientError as e:
            raise FetchError(f"Probe failed for {url}: {e}", url=url, cause=e)
