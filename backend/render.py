"""Minimal HTML for the frontend views. All daemon text is escaped here."""

from __future__ import annotations

from html import escape

from parsers.summary import Summary
from settings import FrontendSettings, ServerTable

OPTIONS = [
    ("summary", "Summary"),
    ("detail", "Detail"),
    ("route", "Route"),
    ("route_all", "Route (all)"),
    ("route_where", "Route where"),
    ("route_where_all", "Route where (all)"),
    ("route_bgpmap", "Route BGP map"),
    ("route_where_bgpmap", "Route where BGP map"),
    ("traceroute", "Traceroute"),
    ("whois", "Whois"),
    ("generic", "Generic"),
]


def pre(text: str) -> str:
    return f"<pre>{escape(text)}</pre>"


def server_block(server_name: str, command: str, body: str) -> str:
    return f"<h2>{escape(server_name)}: {escape(command)}</h2>\n{body}\n"


def error_block(server_name: str, command: str, error: str) -> str:
    return server_block(server_name, command, f'<p class="error">Error: {escape(error)}</p>')


def summary_table(summary: Summary) -> str:
    head = "".join(f"<th>{escape(h)}</th>" for h in summary.headers)
    rows = []
    for r in summary.rows:
        cells = [r.name, r.proto, r.table, r.state, r.since, r.info]
        tds = "".join(f"<td>{escape(c)}</td>" for c in cells)
        rows.append(f'<tr class="table-{escape(r.mapped_state)}">{tds}</tr>')
    return f'<table class="summary">\n<tr>{head}</tr>\n' + "\n".join(rows) + "\n</table>"


def bgpmap_block(target: str, encoded_graph: str) -> str:
    # base64 alphabet only; safe inside an attribute
    return (f"<h2>BGP map: {escape(target)}</h2>\n"
            f'<div class="bgpmap" data-graph="{encoded_graph}"></div>\n')


def page(settings: FrontendSettings, servers: ServerTable, option: str,
         url_servers: str, command: str, content: str) -> str:
    title = f"{settings.title_brand} - {option} {command}".strip()
    nav = [f'<a href="/summary/{escape(servers.all_display_string())}">'
           f"{escape(settings.navbar_all_servers)}</a>"]
    for name in servers.display:
        nav.append(f'<a href="/summary/{escape(name)}">{escape(name)}</a>')
    options = "".join(
        f'<option value="{key}"{" selected" if key == option else ""}>{label}</option>'
        for key, label in OPTIONS
    )
    return (
        "<!DOCTYPE html>\n<html>\n<head>"
        f"<title>{escape(title)}</title></head>\n<body>\n"
        f'<nav><a href="{escape(settings.navbar_brand_url)}">{escape(settings.navbar_brand)}</a> '
        + " ".join(nav)
        + "</nav>\n"
        f'<form data-servers="{escape(url_servers)}"><select name="option">{options}</select>'
        f'<input name="command" value="{escape(command)}"></form>\n'
        f"<main>\n{content}</main>\n</body>\n</html>\n"
    )
