import asyncio
import json

import aiohttp
import pytest
from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed

from helpers import ScriptedFetch, free_port_pair, wait_for
from remote_display.poller import FramePoller
from remote_display.server import ViewerServer


@pytest.fixture
def live_config(config):
    config.set("server", "port", free_port_pair())
    return config


async def recv_state(websocket):
    return json.loads(await asyncio.wait_for(websocket.recv(), 2))


def test_feed_sends_current_state_then_changes(live_config, png_bytes):
    image = png_bytes((12, 6))
    fetch = ScriptedFetch({"10.0.0.5": [image]})

    async def _run():
        server = ViewerServer(live_config, poller=FramePoller(fetch))
        await server.start()
        try:
            async with connect(f"ws://127.0.0.1:{live_config.ws_port}") as websocket:
                first = await recv_state(websocket)
                assert first["active"] is False
                assert first["address"] is None
                assert first["sequence"] == 0

                async with aiohttp.ClientSession() as http:
                    resp = await http.post(
                        f"http://127.0.0.1:{live_config.port}/connect",
                        json={"address": "10.0.0.5"},
                    )
                    assert resp.status == 200

                messages = [await recv_state(websocket)]
                while messages[-1]["sequence"] < 1:
                    messages.append(await recv_state(websocket))

                assert messages[0]["active"] is True
                assert messages[0]["address"] == "10.0.0.5"
                assert any(m["loading"] for m in messages)
                assert messages[-1]["frame"] == {"width": 12, "height": 6, "format": "PNG"}
                assert messages[-1]["error"] == ""
                assert len(server.clients) == 1

                await server.stop()

                # Buffered updates drain, then the feed is closed by the server
                with pytest.raises(ConnectionClosed):
                    while True:
                        await recv_state(websocket)

            await wait_for(lambda: not server.clients)
            assert not server.poller.active
        finally:
            if server.poller.active:
                await server.stop()

    asyncio.run(_run())


def test_run_forever_resumes_address_until_shutdown(live_config):
    fetch = ScriptedFetch()

    async def _run():
        server = ViewerServer(live_config, poller=FramePoller(fetch))
        task = asyncio.create_task(server.run_forever("10.0.0.6"))

        await wait_for(lambda: server.poller.active)
        assert server.poller.address == "10.0.0.6"
        assert server.store.load() == "10.0.0.6"
        await wait_for(lambda: fetch.count("10.0.0.6") == 1)

        server.shutdown_event.set()
        await asyncio.wait_for(task, 5)
        assert not server.poller.active

    asyncio.run(_run())


def test_start_resumes_saved_address(live_config):
    async def _run():
        server = ViewerServer(live_config, poller=FramePoller(ScriptedFetch()))
        server.store.save("10.0.0.8")
        await server.start()
        try:
            assert server.poller.address == "10.0.0.8"
        finally:
            await server.stop()

    asyncio.run(_run())
