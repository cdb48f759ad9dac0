"""Proxy Client — HTTP calls from the frontend to each server's proxy."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import aiohttp

from errors import LookingGlassError, QueryTimeout, UpstreamConnectionError

logger = logging.getLogger(__name__)


class ProxyClient:
    """Queries `/bird` and `/traceroute` on http://<server>:<port>.

    One aiohttp session is opened on first use and shared by every call
    until `close()`.
    """

    def __init__(self, port: int = 8000, timeout: float = 120.0, token: Optional[str] = None):
        self.port = port
        self.timeout = timeout
        self.token = token
        self._session: Optional[aiohttp.ClientSession] = None

    def _url(self, server: str, endpoint: str) -> str:
        host = f"[{server}]" if ":" in server else server
        return f"http://{host}:{self.port}/{endpoint}"

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            headers = {"Authorization": f"Bearer {self.token}"} if self.token else None
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers=headers,
            )
        return self._session

    async def close(self):
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _get(self, server: str, endpoint: str, query: str) -> str:
        session = self._get_session()
        try:
            async with session.get(self._url(server, endpoint), params={"q": query}) as resp:
                body = await resp.text()
                if resp.status >= 400:
                    raise LookingGlassError(f"HTTP error: {resp.status} {body.strip()}".strip())
                return body
        except asyncio.TimeoutError:
            raise QueryTimeout(f"{server}: request timed out after {self.timeout:g}s")
        except aiohttp.ClientError as e:
            logger.warning("[%s] proxy request failed: %s", server, e)
            raise UpstreamConnectionError(str(e))

    async def bird_query(self, server: str, command: str) -> str:
        return await self._get(server, "bird", command)

    async def traceroute_query(self, server: str, target: str) -> str:
        return await self._get(server, "traceroute", target)
