"""
BIRD Collector — query the routing daemon over its control socket.

Each call is one connection: greet, restrict, query, drain, close.
The daemon answers with framed lines:

  0001 BIRD 2.0.12 ready.        status code, terminal (leading 0)
  1007-Table master4:            status code, more lines follow
   172.20.0.53/32  unicast ...   continuation, one alignment byte
  0000                           terminal

Codes whose leading digit is 0, 8 or 9 end the reply.
"""

from __future__ import annotations

import asyncio
import logging
import socket

from errors import ProtocolError, QueryTimeout, UpstreamConnectionError

logger = logging.getLogger(__name__)

MAX_LINE_SIZE = 1024
RESTRICT_COMMAND = "restrict"
RESTRICT_CONFIRMATION = "Access restricted"
_TERMINAL_DIGITS = b"089"


def frame_line(raw: bytes) -> tuple[bytes, bool]:
    """Strip the status prefix from one raw line.

    Returns (content, more_lines_follow).
    """
    if len(raw) > 4 and raw[:4].isdigit():
        content = raw[5:] if len(raw) > 6 else b""
        return content, raw[0] not in _TERMINAL_DIGITS
    if len(raw) > 3 and raw[:3].isdigit() and raw[3:4] == b" ":
        content = raw[4:] if len(raw) > 5 else b""
        return content, raw[0] not in _TERMINAL_DIGITS
    # Continuation line: drop the alignment byte
    return (raw[1:] if len(raw) > 1 else b""), True


async def read_raw_line(reader: asyncio.StreamReader) -> tuple[bytes, bool]:
    """Read up to MAX_LINE_SIZE bytes or one newline-terminated line.

    Returns (raw, eof). An over-long line is cut at the cap and the rest
    is read as the next line.
    """
    try:
        return await reader.readuntil(b"\n"), False
    except asyncio.LimitOverrunError:
        return await reader.readexactly(MAX_LINE_SIZE), False
    except asyncio.IncompleteReadError as e:
        return e.partial, True


class BirdClient:
    """Control-protocol client for one BIRD socket."""

    def __init__(self, socket_path: str, timeout: float = 10.0):
        self.socket_path = socket_path
        self.timeout = timeout

    async def _connect(self) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        try:
            if ":" in self.socket_path or not hasattr(socket, "AF_UNIX"):
                # host:port, or a bare port on platforms without domain sockets
                host, _, port = self.socket_path.rpartition(":")
                coro = asyncio.open_connection(host or "127.0.0.1", int(port), limit=MAX_LINE_SIZE)
            else:
                coro = asyncio.open_unix_connection(self.socket_path, limit=MAX_LINE_SIZE)
            return await asyncio.wait_for(coro, self.timeout)
        except asyncio.TimeoutError:
            raise QueryTimeout(f"Timed out connecting to BIRD socket {self.socket_path}")
        except (OSError, ValueError) as e:
            raise UpstreamConnectionError(f"Failed to connect to BIRD socket: {e}")

    async def _read_line(self, reader: asyncio.StreamReader, output: bytearray) -> bool:
        try:
            raw, eof = await asyncio.wait_for(read_raw_line(reader), self.timeout)
        except asyncio.TimeoutError:
            raise QueryTimeout("Timed out reading from BIRD socket")
        except OSError as e:
            raise UpstreamConnectionError(f"Lost connection to BIRD socket: {e}")
        logger.debug("Bird raw line: %r", raw)
        content, more = frame_line(raw)
        output.extend(content)
        return more and not eof

    async def _write_line(self, writer: asyncio.StreamWriter, command: str):
        writer.write(f"{command}\n".encode())
        try:
            await asyncio.wait_for(writer.drain(), self.timeout)
        except asyncio.TimeoutError:
            raise QueryTimeout("Timed out writing to BIRD socket")
        except OSError as e:
            raise UpstreamConnectionError(f"Lost connection to BIRD socket: {e}")

    async def execute(self, command: str) -> str:
        """Run one command with restricted privileges and return its output."""
        reader, writer = await self._connect()
        try:
            # Greeting
            await self._read_line(reader, bytearray())

            await self._write_line(writer, RESTRICT_COMMAND)
            confirmation = bytearray()
            await self._read_line(reader, confirmation)
            if RESTRICT_CONFIRMATION not in confirmation.decode(errors="replace"):
                raise ProtocolError("Could not verify that bird access was restricted")

            await self._write_line(writer, command)
            output = bytearray()
            while await self._read_line(reader, output):
                pass
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass

        result = output.decode(errors="replace")
        logger.debug("Bird command %r output: %s", command, result)
        return result
