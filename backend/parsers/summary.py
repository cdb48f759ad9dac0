"""Parse BIRD `show protocols` output into summary table rows."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from errors import ParseError

# Name Proto Table State Since Info
_LINE_RE = re.compile(r"(\w+)\s+(\w+)\s+([\w-]+)\s+(\w+)\s+([0-9\-\. :]+)(.*)")

STATE_CLASSES = {
    "up": "success",
    "down": "secondary",
    "start": "danger",
    "passive": "info",
}


@dataclass
class SummaryRow:
    name: str
    proto: str
    table: str
    state: str
    mapped_state: str
    since: str
    info: str


@dataclass
class Summary:
    headers: list[str] = field(default_factory=list)
    rows: list[SummaryRow] = field(default_factory=list)


def parse_summary(
    data: str,
    protocol_filter: list[str] | None = None,
    name_filter: str = "",
) -> Summary:
    lines = data.strip().split("\n")
    if len(lines) <= 1:
        raise ParseError(f"Invalid summary data: {data.strip()}")

    protocols = {p.lower() for p in protocol_filter or []}
    hidden = re.compile(name_filter) if name_filter else None

    summary = Summary(headers=lines[0].split())
    for line in lines[1:]:
        line = line.strip()
        if not line:
            continue
        m = _LINE_RE.match(line)
        if not m:
            continue

        name, proto, table, state, since, info = m.groups()
        if protocols and proto.lower() not in protocols:
            continue
        if hidden and hidden.search(name):
            continue

        info = info.strip()
        if "Passive" in info:
            mapped = "info"
        else:
            mapped = STATE_CLASSES.get(state, "secondary")

        summary.rows.append(SummaryRow(
            name=name,
            proto=proto,
            table=table,
            state=state,
            mapped_state=mapped,
            since=since.strip(),
            info=info,
        ))

    summary.rows.sort(key=lambda r: r.name)
    return summary
