"""
Parse BIRD `show route ... all` output into per-route fields.

Each extractor takes one text chunk and returns None/empty when the field
is missing, so malformed daemon output degrades instead of raising.

Sample chunk (after splitting on the route type keyword):

   [ibgp_sjc2 2023-04-29 from fd86:bad:11b7:22::1] * (100/38) [AS4242423914i]
  \tvia 169.254.108.122 on igp-sjc2
  \tBGP.as_path: 4242423914
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional

_ROUTE_SPLIT_RE = re.compile(r"(?:unicast|blackhole|unreachable|prohibited)")
_PROTOCOL_NAME_RE = re.compile(r"\[(.*?) .*\]")
_VIA_RE = re.compile(r"^\t(via .*?)$", re.MULTILINE)
_AS_PATH_RE = re.compile(r"^\tBGP\.as_path: (.*?)$", re.MULTILINE)

PREFERRED_MARKER = "*"


@dataclass
class BirdRoute:
    protocol: str = ""
    via: str = ""
    as_path: list[str] = field(default_factory=list)
    preferred: bool = False

    @property
    def label(self) -> str:
        return f"{self.protocol}\n{self.via}".strip()


def split_routes(response: str) -> list[str]:
    """One chunk per route entry; text before the first keyword is dropped."""
    return _ROUTE_SPLIT_RE.split(response)[1:]


def is_preferred(chunk: str) -> bool:
    return PREFERRED_MARKER in chunk


def protocol_name(chunk: str) -> Optional[str]:
    m = _PROTOCOL_NAME_RE.search(chunk)
    return m.group(1).strip() if m else None


def next_hop(chunk: str) -> Optional[str]:
    m = _VIA_RE.search(chunk)
    return m.group(1).strip() if m else None


def as_path(chunk: str) -> list[str]:
    """AS path tokens; confederation segments lose their parentheses."""
    m = _AS_PATH_RE.search(chunk)
    if not m:
        return []
    tokens = (token.lstrip("(").rstrip(")") for token in m.group(1).split())
    return [t for t in tokens if t]


def parse_route(chunk: str) -> BirdRoute:
    route = BirdRoute(
        via=next_hop(chunk) or "",
        as_path=as_path(chunk),
        preferred=is_preferred(chunk),
    )
    name = protocol_name(chunk)
    if name is not None:
        route.protocol = f"{name}{PREFERRED_MARKER}" if route.preferred else name
    return route


def parse_routes(response: str) -> list[BirdRoute]:
    return [parse_route(chunk) for chunk in split_routes(response)]
