import asyncio

import pytest
from aiohttp import test_utils, web

from helpers import wait_for
from remote_display.errors import TransportError
from remote_display.poller import FramePoller, HttpFetcher


def make_display_app(image):
    """A display host serving ``image`` at /screen.png, recording cache tokens."""
    app = web.Application()
    requests = []

    async def screen(request):
        requests.append(request.query.get("t"))
        return web.Response(body=image, content_type="image/png")

    app.router.add_get("/screen.png", screen)
    return app, requests


def test_fetcher_returns_full_body(png_bytes):
    image = png_bytes()

    async def _run():
        async with test_utils.TestServer(make_display_app(image)[0]) as server:
            fetcher = HttpFetcher(timeout=2)
            try:
                body = await fetcher(f"{server.make_url('/screen.png')}?t=1")
            finally:
                await fetcher.close()
        return body

    assert asyncio.run(_run()) == image


def test_fetcher_raises_on_http_error():
    async def _run():
        async with test_utils.TestServer(web.Application()) as server:
            fetcher = HttpFetcher(timeout=2)
            try:
                with pytest.raises(TransportError) as exc_info:
                    await fetcher(f"{server.make_url('/screen.png')}?t=1")
            finally:
                await fetcher.close()
        assert exc_info.value.reason == "HTTP 404"

    asyncio.run(_run())


def test_fetcher_raises_on_refused_connection():
    async def _run():
        fetcher = HttpFetcher(timeout=2)
        try:
            with pytest.raises(TransportError):
                await fetcher("http://127.0.0.1:1/screen.png?t=1")
        finally:
            await fetcher.close()

    asyncio.run(_run())


def test_poller_streams_from_display_host(png_bytes):
    image = png_bytes((30, 20))
    app, requests = make_display_app(image)

    async def _run():
        async with test_utils.TestServer(app) as server:
            poller = FramePoller(timeout=2)
            poller.start(f"{server.host}:{server.port}")
            await wait_for(lambda: poller.state.sequence >= 3)
            await poller.close()

        assert poller.state.frame.size == (30, 20)
        assert poller.state.fps is not None and poller.state.fps > 0
        assert poller.state.error == ""

    asyncio.run(_run())

    assert len(requests) >= 3
    assert len(set(requests)) == len(requests)
