"""Parsers for BIRD control-socket output."""

from .bird_route import BirdRoute, parse_route, parse_routes, split_routes
from .summary import Summary, SummaryRow, parse_summary

__all__ = [
    "BirdRoute", "parse_route", "parse_routes", "split_routes",
    "Summary", "SummaryRow", "parse_summary",
]
