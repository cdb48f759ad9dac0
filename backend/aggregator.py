"""
Query Aggregator — fan one command out to many servers.

Input: '+'-delimited display names + one command.
Output: one ServerResult per resolved server, in the caller's order.

A failing server only fills in its own `error`; the others still run.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from collectors import QueryFn
from settings import ServerTable

logger = logging.getLogger(__name__)


@dataclass
class ServerResult:
    server: str
    output: Optional[str] = None
    error: Optional[str] = None
    query_time_ms: Optional[float] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class AggregatedResult:
    command: str
    servers: list[str] = field(default_factory=list)
    results: list[ServerResult] = field(default_factory=list)


class QueryAggregator:
    def __init__(self, servers: ServerTable, query_fn: QueryFn):
        self.servers = servers
        self.query_fn = query_fn

    async def _query_one(self, server: str, command: str) -> ServerResult:
        t0 = time.monotonic()
        try:
            output = await self.query_fn(server, command)
        except Exception as e:
            logger.warning("[%s] %r failed: %s", server, command, e)
            return ServerResult(server=server, error=str(e) or type(e).__name__,
                                query_time_ms=(time.monotonic() - t0) * 1000)
        return ServerResult(server=server, output=output,
                            query_time_ms=(time.monotonic() - t0) * 1000)

    async def aggregate(self, display_names: str, command: str) -> AggregatedResult:
        servers = self.servers.resolve(display_names)
        results = await asyncio.gather(*(self._query_one(s, command) for s in servers))
        return AggregatedResult(command=command, servers=servers, results=list(results))
