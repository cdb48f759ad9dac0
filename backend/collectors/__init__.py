"""Collectors — talk to routing daemons, diagnostic tools and remote proxies."""

from typing import Awaitable, Callable

# (server, command) -> raw text. Raises errors.LookingGlassError on failure.
QueryFn = Callable[[str, str], Awaitable[str]]
