"""
BGP Map — Build an AS-path graph from `show route ... all` output and
serialize it as Graphviz DOT.

Nodes are servers, ASNs and the queried target. Re-adding a node or edge
merges into the existing one: attributes are last-write-wins per key,
edge labels accumulate.

The daemon output is untrusted. Every identifier and attribute value is
quoted and escaped, and the frontend embeds the document base64-encoded.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

import networkx as nx

from parsers.bird_route import parse_routes

logger = logging.getLogger(__name__)

AsnResolver = Callable[[str], str]

_DOT_ESCAPES = [
    ("\\", "\\\\"),
    ('"', '\\"'),
    ("\n", "\\n"),
    ("\r", "\\r"),
    ("\t", "\\t"),
    # Graphviz decodes entities in labels; keeps markup out of the document
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
]


def escape(s: str) -> str:
    """Quote one DOT token."""
    for raw, repl in _DOT_ESCAPES:
        s = s.replace(raw, repl)
    return f'"{s}"'


def format_attrs(attrs: dict[str, str]) -> str:
    if not attrs:
        return ""
    parts = [f'{k.replace(chr(34), "")}={escape(attrs[k])}' for k in sorted(attrs)]
    return f" [{','.join(parts)}]"


def default_asn_resolver(asn: str) -> str:
    return f"AS{asn}"


class AsnCache:
    """Memoizes ASN → display text for one serialization pass."""

    def __init__(self, resolver: AsnResolver = default_asn_resolver):
        self.resolver = resolver
        self._cache: dict[str, str] = {}

    def lookup(self, asn: str) -> str:
        if asn not in self._cache:
            self._cache[asn] = self.resolver(asn)
        return self._cache[asn]


@dataclass
class PointInfo:
    needs_resolution: bool = False
    attrs: dict[str, str] = field(default_factory=dict)


@dataclass
class EdgeInfo:
    labels: list[str] = field(default_factory=list)
    attrs: dict[str, str] = field(default_factory=dict)


class RouteGraph:
    """Directed graph of servers, ASNs and the target."""

    def __init__(self):
        self.graph = nx.DiGraph()

    def add_point(self, name: str, needs_resolution: bool = False, attrs: Optional[dict[str, str]] = None):
        # add_edge may already have created the node without point data
        point = self.graph.nodes[name].get("info") if name in self.graph else None
        if point is None:
            point = PointInfo()
            self.graph.add_node(name, info=point)
        point.needs_resolution = needs_resolution
        point.attrs.update(attrs or {})

    def add_edge(self, src: str, dest: str, label: str = "", attrs: Optional[dict[str, str]] = None):
        if self.graph.has_edge(src, dest):
            edge = self.graph.edges[src, dest]["info"]
        else:
            edge = EdgeInfo()
            self.graph.add_edge(src, dest, info=edge)
        if label:
            edge.labels.append(label)
        edge.attrs.update(attrs or {})

    def get_point(self, name: str) -> Optional[PointInfo]:
        if name not in self.graph:
            return None
        return self.graph.nodes[name].get("info")

    def get_edge(self, src: str, dest: str) -> Optional[EdgeInfo]:
        if not self.graph.has_edge(src, dest):
            return None
        return self.graph.edges[src, dest]["info"]

    @property
    def points(self) -> dict[str, PointInfo]:
        return {name: data["info"] for name, data in self.graph.nodes(data=True) if "info" in data}

    @property
    def edges(self) -> dict[tuple[str, str], EdgeInfo]:
        return {(src, dest): data["info"] for src, dest, data in self.graph.edges(data=True)}

    def to_graphviz(self, resolver: AsnResolver = default_asn_resolver) -> str:
        asn_cache = AsnCache(resolver)
        lines = ["digraph {", "  rankdir=LR;", "  node [shape=box];"]

        for name, point in self.points.items():
            attrs = dict(point.attrs)
            attrs["label"] = asn_cache.lookup(name) if point.needs_resolution else name
            lines.append(f"  {escape(name)}{format_attrs(attrs)};")

        for (src, dest), edge in self.edges.items():
            attrs = dict(edge.attrs)
            if edge.labels:
                attrs["label"] = "\n".join(edge.labels)
            lines.append(f"  {escape(src)} -> {escape(dest)}{format_attrs(attrs)};")

        lines.append("}")
        return "\n".join(lines) + "\n"


def _edge_attrs(preferred: bool) -> dict[str, str]:
    attrs = {"fontsize": "12.0"}
    if preferred:
        attrs["color"] = "red"
    return attrs


def _point_attrs(preferred: bool) -> dict[str, str]:
    return {"color": "red"} if preferred else {}


def build_route_graph(servers: list[str], responses: list[str], target: str) -> RouteGraph:
    graph = RouteGraph()
    graph.add_point(target, False, {"color": "red", "shape": "diamond"})

    for server, response in zip(servers, responses):
        if not response:
            continue
        graph.add_point(server, False, {"color": "blue", "shape": "box"})

        for route in parse_routes(response):
            if not route.as_path:
                graph.add_edge(server, target, route.label, _edge_attrs(route.preferred))
                continue

            for i, asn in enumerate(route.as_path):
                if i == 0:
                    graph.add_edge(server, asn, route.label, _edge_attrs(route.preferred))
                else:
                    graph.add_edge(route.as_path[i - 1], asn, "", _edge_attrs(route.preferred))
                graph.add_point(asn, True, _point_attrs(route.preferred))

            graph.add_edge(route.as_path[-1], target, "", _edge_attrs(route.preferred))

    logger.debug("BGP map for %s: %d points, %d edges", target,
                 graph.graph.number_of_nodes(), graph.graph.number_of_edges())
    return graph


def bird_route_to_graphviz(
    servers: list[str],
    responses: list[str],
    target: str,
    resolver: AsnResolver = default_asn_resolver,
) -> str:
    return build_route_graph(servers, responses, target).to_graphviz(resolver)


def encode_graph(dot: str) -> str:
    return base64.b64encode(dot.encode()).decode("ascii")


def decode_graph(encoded: str) -> str:
    return base64.b64decode(encoded).decode()
