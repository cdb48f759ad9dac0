"""Tests for the whois and proxy HTTP clients against local servers."""

import sys
import asyncio
from pathlib import Path

import pytest
from aiohttp import web

sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from collectors.proxy_client import ProxyClient
from collectors.whois import WhoisClient
from errors import LookingGlassError, QueryTimeout, UpstreamConnectionError


def run(coro):
    return asyncio.run(coro)


# --- Whois ---

async def _whois_roundtrip(reply: bytes, max_size: int = 1024 * 1024):
    received = []

    async def handle(reader, writer):
        received.append(await reader.readline())
        writer.write(reply)
        await writer.drain()
        writer.close()

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    async with server:
        result = await WhoisClient("127.0.0.1", port=port, max_size=max_size).query("AS4242423914")
    return received, result


class TestWhoisClient:

    def test_query_line_and_response(self):
        received, result = run(_whois_roundtrip(b"aut-num: AS4242423914\nas-name: EXAMPLE\n"))
        assert received == [b"AS4242423914\r\n"]
        assert result == "aut-num: AS4242423914\nas-name: EXAMPLE\n"

    def test_response_capped(self):
        _, result = run(_whois_roundtrip(b"x" * 5000, max_size=100))
        assert result == "x" * 100

    def test_unreachable_server(self):
        async def scenario():
            # Grab a free port, then close it again
            server = await asyncio.start_server(lambda r, w: None, "127.0.0.1", 0)
            port = server.sockets[0].getsockname()[1]
            server.close()
            await server.wait_closed()
            return await WhoisClient("127.0.0.1", port=port).query("AS1")

        with pytest.raises(UpstreamConnectionError):
            run(scenario())

    def test_stalled_server_times_out(self):
        async def scenario():
            async def handle(reader, writer):
                # Read the query, then say nothing until the client hangs up
                await reader.readline()
                await reader.read()
                writer.close()

            server = await asyncio.start_server(handle, "127.0.0.1", 0)
            port = server.sockets[0].getsockname()[1]
            async with server:
                return await WhoisClient("127.0.0.1", port=port, read_timeout=0.2).query("AS1")

        with pytest.raises(QueryTimeout, match="Timed out reading"):
            run(scenario())


# --- Proxy client ---

async def _with_proxy(token, call, client_timeout=5):
    seen = {}
    release = asyncio.Event()

    async def bird(request):
        seen["q"] = request.query.get("q")
        seen["auth"] = request.headers.get("Authorization")
        return web.Response(text=f"ok: {request.query.get('q')}")

    async def traceroute(request):
        return web.Response(text="Traceroute not supported on this node", status=500)

    async def slow(request):
        await release.wait()
        return web.Response(text="too late")

    app = web.Application()
    app.router.add_get("/bird", bird)
    app.router.add_get("/traceroute", traceroute)
    app.router.add_get("/slow", slow)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    port = runner.addresses[0][1]
    client = ProxyClient(port=port, timeout=client_timeout, token=token)
    try:
        result = await call(client)
        seen["session"] = client._session
    finally:
        await client.close()
        release.set()
        await runner.cleanup()
    return seen, result


class TestProxyClient:

    def test_bird_query_with_token(self):
        seen, result = run(_with_proxy("s3cret", lambda c: c.bird_query("127.0.0.1", "show route for 10.0.0.0/8")))
        assert result == "ok: show route for 10.0.0.0/8"
        assert seen["q"] == "show route for 10.0.0.0/8"
        assert seen["auth"] == "Bearer s3cret"

    def test_no_token_no_header(self):
        seen, _ = run(_with_proxy(None, lambda c: c.bird_query("127.0.0.1", "show status")))
        assert seen["auth"] is None

    def test_error_status_carries_body(self):
        with pytest.raises(LookingGlassError, match="HTTP error: 500 Traceroute not supported"):
            run(_with_proxy(None, lambda c: c.traceroute_query("127.0.0.1", "10.0.0.1")))

    def test_session_shared_across_calls(self):
        async def two_calls(client):
            await client.bird_query("127.0.0.1", "show status")
            first = client._session
            await client.bird_query("127.0.0.1", "show protocols")
            return first

        seen, first = run(_with_proxy(None, two_calls))
        assert first is not None
        assert seen["session"] is first
        assert first.closed

    def test_slow_proxy_times_out(self):
        with pytest.raises(QueryTimeout, match="timed out"):
            run(_with_proxy(None, lambda c: c._get("127.0.0.1", "slow", "show status"), client_timeout=0.2))

    def test_close_without_use(self):
        run(ProxyClient().close())

    def test_ipv6_host_bracketed(self):
        assert ProxyClient(port=8000)._url("fd00::1", "bird") == "http://[fd00::1]:8000/bird"
        assert ProxyClient(port=8000)._url("fra1.example.net", "bird") == "http://fra1.example.net:8000/bird"
