"""
Traceroute Collector — autodetect a working tool once, then run it per request.

Detection order (first success against 127.0.0.1 wins):
  1. configured binary + configured flags (adopted as-is)
  2. configured binary with each entry of CUSTOM_FLAG_SETS
  3. each entry of KNOWN_TOOLS

The winner is cached for the life of the process. If nothing works,
traceroute stays disabled and every run fails with BinaryUnavailable.
"""

from __future__ import annotations

import asyncio
import logging
import re
import shlex
from dataclasses import dataclass
from typing import Optional

from errors import BinaryUnavailable, ExecutionError, InvalidQuery, QueryTimeout

logger = logging.getLogger(__name__)

PROBE_TARGET = "127.0.0.1"

CUSTOM_FLAG_SETS: list[tuple[str, ...]] = [
    ("-q1", "-N32", "-w1"),
    ("-q1", "-w1"),
    (),
]

KNOWN_TOOLS: list[tuple[str, tuple[str, ...]]] = [
    ("mtr", ("-w", "-c1", "-Z1", "-G1", "-b")),
    ("traceroute", ("-q1", "-N32", "-w1")),   # Debian
    ("traceroute", ("-q1", "-w1")),           # FreeBSD
    ("traceroute", ()),
]

# A hop line with nothing but an index and one or more "*" markers
_UNRESPONSIVE_HOP_RE = re.compile(r"^[ \t]*(\d*)(?:[ \t]*\*)+[ \t]*\n", re.MULTILINE)


@dataclass(frozen=True)
class ProbeConfig:
    binary: str
    flags: tuple[str, ...] = ()

    def command(self, target: list[str]) -> list[str]:
        return [self.binary, *self.flags, *target]


def strip_unresponsive_hops(output: str) -> str:
    """Drop fully silent hops and append a count of them."""
    cleaned, skipped = _UNRESPONSIVE_HOP_RE.subn("", output)
    result = cleaned.strip()
    if skipped > 0:
        result += f"\n\n{skipped} hops not responding."
    return result


class TracerouteRunner:
    """Bounded-concurrency traceroute executor."""

    def __init__(
        self,
        binary: Optional[str] = None,
        flags: list[str] | tuple[str, ...] = (),
        max_concurrent: int = 10,
        raw: bool = False,
        timeout: float = 120.0,
        probe_timeout: float = 10.0,
    ):
        self.binary = binary
        self.flags = tuple(flags)
        self.raw = raw
        self.timeout = timeout
        self.probe_timeout = probe_timeout
        self.max_concurrent = max_concurrent
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._initialized = False
        self._config: Optional[ProbeConfig] = None

    @property
    def config(self) -> Optional[ProbeConfig]:
        return self._config

    def candidates(self) -> list[ProbeConfig]:
        out: list[ProbeConfig] = []
        if self.binary:
            for flags in CUSTOM_FLAG_SETS:
                out.append(ProbeConfig(self.binary, flags))
        for binary, flags in KNOWN_TOOLS:
            out.append(ProbeConfig(binary, flags))
        return out

    async def _execute(self, argv: list[str], timeout: float) -> tuple[int, bytes]:
        """Spawn argv and wait for it. Returns (returncode, stdout)."""
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ExecutionError(f"Failed to start {argv[0]}: {e}")

        try:
            stdout, _ = await asyncio.wait_for(proc.communicate(), timeout)
        except asyncio.TimeoutError:
            raise QueryTimeout(f"{argv[0]} timed out after {timeout:g}s")
        finally:
            # Timeout or cancellation: never leave the child running
            if proc.returncode is None:
                try:
                    proc.kill()
                except ProcessLookupError:
                    pass
                await proc.wait()
        return proc.returncode, stdout

    async def _probe(self, candidate: ProbeConfig) -> bool:
        argv = candidate.command([PROBE_TARGET])
        try:
            returncode, _ = await self._execute(argv, self.probe_timeout)
        except (ExecutionError, QueryTimeout) as e:
            logger.info("Traceroute autodetect fail, continuing: %s (%s)", " ".join(argv), e)
            return False
        if returncode != 0:
            logger.info("Traceroute autodetect fail, continuing: %s (status %s)", " ".join(argv), returncode)
            return False
        logger.info("Traceroute autodetect success: %s", " ".join(argv))
        return True

    async def init(self) -> Optional[ProbeConfig]:
        """Detect the tool once. Later calls return the cached result."""
        if self._initialized:
            return self._config

        if self.binary and self.flags:
            self._config = ProbeConfig(self.binary, self.flags)
        else:
            for candidate in self.candidates():
                if await self._probe(candidate):
                    self._config = candidate
                    break

        if self._config is None:
            logger.warning("Traceroute autodetect failed! Traceroute will be disabled")
        self._initialized = True
        return self._config

    async def run(self, query: str) -> str:
        if not self._initialized:
            raise BinaryUnavailable("Traceroute not initialized")
        if self._config is None:
            raise BinaryUnavailable()

        try:
            target = shlex.split(query.strip())
        except ValueError:
            raise InvalidQuery("Failed to parse args: invalid shell syntax")

        async with self._semaphore:
            returncode, stdout = await self._execute(self._config.command(target), self.timeout)

        if returncode != 0:
            raise ExecutionError(
                f"Error executing traceroute: Command failed with status: {returncode}",
                returncode=returncode,
            )

        output = stdout.decode(errors="replace")
        if self.raw:
            return output
        return strip_unresponsive_hops(output)
