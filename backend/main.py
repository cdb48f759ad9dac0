"""Looking Glass frontend — fans BIRD/traceroute queries out to every proxy."""

from __future__ import annotations

import logging
import os
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import HTMLResponse, RedirectResponse

import render
from aggregator import AggregatedResult, QueryAggregator
from bgpmap import bird_route_to_graphviz, encode_graph
from collectors.proxy_client import ProxyClient
from collectors.whois import WhoisClient
from errors import LookingGlassError
from models import BirdApiResponse, ServerResultModel, TracerouteApiResponse, WhoisApiResponse
from parsers.summary import parse_summary
from settings import FrontendSettings, listen_kwargs

logger = logging.getLogger(__name__)

VERSION = "1.0.0"

# option → BIRD command template; "{}" is the path argument
BIRD_COMMANDS: dict[str, str] = {
    "detail": "show protocols all {}",
    "route": "show route for {}",
    "route_all": "show route for {} all",
    "route_where": "show route where net ~ [ {} ]",
    "route_where_all": "show route where net ~ [ {} ] all",
    "route_from_protocol": "show route protocol {}",
    "route_from_protocol_all": "show route protocol {} all",
    "route_filtered_from_protocol": "show route filtered protocol {}",
    "route_filtered_from_protocol_all": "show route filtered protocol {} all",
    "route_from_origin": "show route where bgp_path.last = {}",
    "route_from_origin_all": "show route where bgp_path.last = {} all",
    "generic": "show {}",
}

BGPMAP_COMMANDS: dict[str, str] = {
    "route_bgpmap": "show route for {} all",
    "route_where_bgpmap": "show route where net ~ [ {} ] all",
}


def create_app(
    settings: FrontendSettings,
    client: Optional[ProxyClient] = None,
    whois: Optional[WhoisClient] = None,
) -> FastAPI:
    servers = settings.server_table()
    client = client or ProxyClient(port=settings.proxy_port, timeout=settings.timeout,
                                   token=settings.proxy_token)
    whois = whois or WhoisClient(settings.whois)
    bird = QueryAggregator(servers, client.bird_query)
    trace = QueryAggregator(servers, client.traceroute_query)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await client.close()

    app = FastAPI(title="Looking Glass", version=VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.servers = servers

    def _html(option: str, url_servers: str, command: str, content: str) -> HTMLResponse:
        return HTMLResponse(render.page(settings, servers, option, url_servers, command, content))

    def _render_results(option: str, agg: AggregatedResult) -> str:
        blocks = []
        for r in agg.results:
            name = servers.display_name(r.server)
            if r.error is not None:
                blocks.append(render.error_block(name, agg.command, r.error))
                continue
            body = render.pre(r.output or "")
            if option == "summary" and (r.output or "").startswith("Name"):
                try:
                    summary = parse_summary(r.output, settings.protocol_filter, settings.name_filter)
                    body = render.summary_table(summary)
                except LookingGlassError as e:
                    logger.warning("[%s] summary parse failed: %s", r.server, e)
            blocks.append(render.server_block(name, agg.command, body))
        return "".join(blocks)

    async def _bird_view(option: str, url_servers: str, command: str) -> HTMLResponse:
        agg = await bird.aggregate(url_servers, command)
        return _html(option, url_servers, command, _render_results(option, agg))

    async def _bgpmap_view(option: str, url_servers: str, command: str, target: str) -> HTMLResponse:
        agg = await bird.aggregate(url_servers, command)
        names = [servers.display_name(r.server) for r in agg.results]
        outputs = [r.output or "" for r in agg.results]
        dot = bird_route_to_graphviz(names, outputs, target)
        content = render.bgpmap_block(target, encode_graph(dot))
        for r in agg.results:
            if r.error is not None:
                content += render.error_block(servers.display_name(r.server), command, r.error)
        return _html(option, url_servers, target, content)

    @app.get("/")
    async def root():
        return RedirectResponse(f"/summary/{servers.all_display_string()}", status_code=308)

    @app.get("/summary/{servers_param}")
    async def summary(servers_param: str):
        return await _bird_view("summary", servers_param, "show protocols")

    def _register_bird(option: str, template: str):
        async def view(servers_param: str, arg: str):
            return await _bird_view(option, servers_param, template.format(arg))
        app.add_api_route(f"/{option}/{{servers_param}}/{{arg:path}}", view, methods=["GET"], name=option)

    def _register_bgpmap(option: str, template: str):
        async def view(servers_param: str, arg: str):
            return await _bgpmap_view(option, servers_param, template.format(arg), arg)
        app.add_api_route(f"/{option}/{{servers_param}}/{{arg:path}}", view, methods=["GET"], name=option)

    for option, template in BIRD_COMMANDS.items():
        _register_bird(option, template)
    for option, template in BGPMAP_COMMANDS.items():
        _register_bgpmap(option, template)

    @app.get("/traceroute/{servers_param}/{target:path}")
    async def traceroute(servers_param: str, target: str):
        agg = await trace.aggregate(servers_param, target)
        content = _render_results("traceroute", agg)
        return _html("traceroute", servers_param, target, content)

    @app.get("/whois/{target:path}")
    async def whois_view(target: str):
        try:
            content = render.server_block("whois", target, render.pre(await whois.query(target)))
        except LookingGlassError as e:
            content = render.error_block("whois", target, str(e))
        return _html("whois", servers.all_display_string(), target, content)

    @app.get("/api/bird/{servers_param}/{command:path}", response_model=BirdApiResponse)
    async def bird_api(servers_param: str, command: str):
        agg = await bird.aggregate(servers_param, command)
        return BirdApiResponse(servers=agg.servers, command=command, results=_serialize_results(agg))

    @app.get("/api/traceroute/{servers_param}/{target:path}", response_model=TracerouteApiResponse)
    async def traceroute_api(servers_param: str, target: str):
        agg = await trace.aggregate(servers_param, target)
        return TracerouteApiResponse(servers=agg.servers, target=target, results=_serialize_results(agg))

    @app.get("/api/whois/{target:path}", response_model=WhoisApiResponse)
    async def whois_api(target: str):
        try:
            return WhoisApiResponse(target=target, result=await whois.query(target))
        except LookingGlassError as e:
            return WhoisApiResponse(target=target, error=str(e))

    @app.get("/api/health")
    async def health():
        return {"status": "ok", "version": VERSION, "servers": len(servers.actual)}

    return app


def _serialize_results(agg: AggregatedResult) -> list[ServerResultModel]:
    return [ServerResultModel(server=r.server, result=r.output, error=r.error) for r in agg.results]


def main():
    import uvicorn

    path = sys.argv[1] if len(sys.argv) > 1 else os.getenv("LG_FRONTEND_CONFIG")
    settings = FrontendSettings.from_yaml(path) if path else FrontendSettings()
    logging.basicConfig(level=settings.log_level.upper())
    logger.info("Listening on %s...", settings.listen)
    uvicorn.run(create_app(settings), **listen_kwargs(settings.listen))


if __name__ == "__main__":
    main()
