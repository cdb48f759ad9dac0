"""Whois Collector — RFC 3912 lookups with bounded time and size."""

from __future__ import annotations

import asyncio
import logging

from errors import QueryTimeout, UpstreamConnectionError

logger = logging.getLogger(__name__)

WHOIS_PORT = 43
CONNECT_TIMEOUT = 10.0
READ_TIMEOUT = 30.0
MAX_RESPONSE_SIZE = 1024 * 1024


class WhoisClient:
    def __init__(
        self,
        server: str,
        port: int = WHOIS_PORT,
        connect_timeout: float = CONNECT_TIMEOUT,
        read_timeout: float = READ_TIMEOUT,
        max_size: int = MAX_RESPONSE_SIZE,
    ):
        self.server = server
        self.port = port
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.max_size = max_size

    async def _read_all(self, reader: asyncio.StreamReader) -> bytes:
        data = bytearray()
        while len(data) < self.max_size:
            chunk = await reader.read(min(65536, self.max_size - len(data)))
            if not chunk:
                break
            data.extend(chunk)
        return bytes(data)

    async def query(self, target: str) -> str:
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(self.server, self.port), self.connect_timeout
            )
        except asyncio.TimeoutError:
            raise QueryTimeout(f"Timed out connecting to {self.server}")
        except OSError as e:
            raise UpstreamConnectionError(f"Failed to connect to {self.server}: {e}")

        try:
            writer.write(f"{target}\r\n".encode())
            await writer.drain()
            data = await asyncio.wait_for(self._read_all(reader), self.read_timeout)
        except asyncio.TimeoutError:
            raise QueryTimeout(f"Timed out reading from {self.server}")
        except OSError as e:
            raise UpstreamConnectionError(f"Whois query to {self.server} failed: {e}")
        finally:
            writer.close()

        if len(data) >= self.max_size:
            logger.warning("Whois response from %s truncated at %d bytes", self.server, self.max_size)
        return data.decode(errors="replace")
