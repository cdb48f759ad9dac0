"""
Looking Glass Proxy — runs next to each BIRD instance.

  GET /bird?q=<command>         BIRD control socket, restricted
  GET /bird6?q=<command>        same handler
  GET /traceroute?q=<args>      autodetected traceroute tool
  GET /traceroute6?q=<args>     same handler

Every request passes the AccessGate first. Bodies are plain text.
"""

from __future__ import annotations

import logging
import os
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from access import AccessGate
from collectors.bird import BirdClient
from collectors.traceroute import TracerouteRunner
from errors import InvalidQuery, LookingGlassError
from settings import ProxySettings, listen_kwargs

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def create_proxy_app(
    settings: ProxySettings,
    bird_client: Optional[BirdClient] = None,
    runner: Optional[TracerouteRunner] = None,
) -> FastAPI:
    bird_client = bird_client or BirdClient(settings.bird_socket, timeout=settings.bird_timeout)
    runner = runner or TracerouteRunner(
        binary=settings.traceroute_bin,
        flags=settings.traceroute_flags,
        max_concurrent=settings.traceroute_max_concurrent,
        raw=settings.traceroute_raw,
    )
    gate = AccessGate(settings.allowed_nets, settings.auth_enabled, settings.auth_token)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await runner.init()
        yield

    app = FastAPI(title="Looking Glass Proxy", version=VERSION, lifespan=lifespan,
                  docs_url=None, redoc_url=None)
    app.state.bird = bird_client
    app.state.traceroute = runner

    @app.middleware("http")
    async def access_control(request: Request, call_next):
        source = request.client.host if request.client else None
        try:
            gate.check(source, request.headers.get("authorization"))
        except LookingGlassError as e:
            return PlainTextResponse(f"{e}\n", status_code=e.status_code)
        return await call_next(request)

    @app.exception_handler(LookingGlassError)
    async def looking_glass_error(request: Request, exc: LookingGlassError):
        logger.warning("%s %s failed: %s", request.url.path, request.query_params.get("q", ""), exc)
        return PlainTextResponse(str(exc), status_code=exc.status_code)

    @app.get("/")
    async def invalid():
        return PlainTextResponse("Invalid Request\n", status_code=500)

    @app.get("/bird")
    @app.get("/bird6")
    async def bird(q: str = ""):
        if not q:
            raise InvalidQuery("Query parameter 'q' is required")
        return PlainTextResponse(await bird_client.execute(q))

    @app.get("/traceroute")
    @app.get("/traceroute6")
    async def traceroute(q: str = ""):
        if not q.strip():
            raise InvalidQuery("Query parameter 'q' is required")
        return PlainTextResponse(await runner.run(q))

    return app


def main():
    import uvicorn

    path = sys.argv[1] if len(sys.argv) > 1 else os.getenv("LG_PROXY_CONFIG")
    settings = ProxySettings.from_yaml(path) if path else ProxySettings()
    logging.basicConfig(level=settings.log_level.upper())
    logger.info("Settings initialized: %s", settings.model_dump(exclude={"auth_token"}))
    logger.info("Listening on %s...", settings.listen)
    uvicorn.run(create_proxy_app(settings), **listen_kwargs(settings.listen))


if __name__ == "__main__":
    main()
