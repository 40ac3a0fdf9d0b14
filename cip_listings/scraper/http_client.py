"""
HTTP client for fetching CIP pages.

Wraps an ``aiohttp.ClientSession`` with the configured timeout, User-Agent
and proxy. Each page gets exactly one attempt. Transport failures and non-2xx
statuses surface as :class:`~cip_listings.errors.NetworkError`; a body that
does not decode as :class:`~cip_listings.errors.ParseError`.
"""

import asyncio
import logging
from typing import Optional

import aiohttp

from cip_listings.errors import NetworkError
from cip_listings.errors import ParseError
from cip_listings.settings import Settings
from cip_listings.settings import get_settings

logger = logging.getLogger(__name__)


class HttpClient:
    """Async page fetcher, used as ``async with HttpClient() as client``."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "HttpClient":
        self._session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.settings.request_timeout),
            headers={
                "User-Agent": self.settings.user_agent,
                "Accept-Language": "fr-FR,fr;q=0.9,en;q=0.8",
            },
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    async def fetch_text(self, url: str) -> str:
        """GET ``url`` and return the response body as text."""
        if self._session is None:
            raise RuntimeError("HttpClient must be used as an async context manager")

        try:
            async with self._session.get(url, proxy=self.settings.proxy_url) as resp:
                if not 200 <= resp.status < 300:
                    logger.warning(f"[FETCH] status={resp.status} url={url}")
                    raise NetworkError(url, f"HTTP {resp.status}")
                status = resp.status
                try:
                    text = await resp.text()
                except UnicodeDecodeError as e:
                    logger.warning(f"[FETCH] undecodable body charset={resp.charset} url={url}")
                    raise ParseError(f"{url}: response is not valid text: {e}") from e
        except asyncio.TimeoutError as e:
            logger.warning(f"[FETCH] timeout url={url}")
            raise NetworkError(url, "timed out") from e
        except aiohttp.ClientError as e:
            logger.warning(f"[FETCH] error={type(e).__name__} url={url} msg={e}")
            raise NetworkError(url, str(e) or type(e).__name__) from e

        logger.debug(f"[FETCH] status={status} bytes={len(text)} url={url}")
        return text
