"""
Viewer server for Remote Display.
Serves the live view page over HTTP and pushes poller state to browsers
over a WebSocket feed.
"""

import asyncio
import json
import logging
import signal
from typing import Any, Dict, Optional, Set

from aiohttp import web
from websockets.asyncio.server import ServerConnection, broadcast, serve as ws_serve
from websockets.exceptions import ConnectionClosed

from . import __version__
from .config import Config, get_config
from .poller import FramePoller, PublishedState
from .store import AddressStore
from .ui import render_index

logger = logging.getLogger(__name__)


class ViewerServer:
    """
    HTTP + WebSocket front end for the frame poller.

    Features:
    - Live view page with address form, FPS overlay and fullscreen toggle
    - Latest complete frame served from ``/frame``
    - State pushed to every open page on each change
    - Last address remembered across restarts
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        poller: Optional[FramePoller] = None,
        store: Optional[AddressStore] = None,
    ):
        """Initialize the server."""
        self.config = config or get_config()
        self.poller = poller or FramePoller(
            scheme=self.config.scheme,
            retry_delay=self.config.retry_delay,
            timeout=self.config.timeout_seconds,
        )
        self.store = store or AddressStore(self.config.address_file)

        # Open state feed connections
        self.clients: Set[ServerConnection] = set()

        # Server instances
        self.http_runner: Optional[web.AppRunner] = None
        self.ws_server = None

        # Shutdown event
        self.shutdown_event = asyncio.Event()

        self._unsubscribe = self.poller.subscribe(self._on_state)

        self.http_app = web.Application()
        self._setup_http_routes()

    def _setup_http_routes(self) -> None:
        self.http_app.router.add_get("/", self._handle_index)
        self.http_app.router.add_get("/frame", self._handle_frame)
        self.http_app.router.add_get("/status", self._handle_status)
        self.http_app.router.add_get("/ping", self._handle_ping)
        self.http_app.router.add_post("/connect", self._handle_connect)
        self.http_app.router.add_post("/disconnect", self._handle_disconnect)

    def connect(self, address: str) -> None:
        """Remember ``address`` and (re)start polling it."""
        address = address.strip()
        self.store.save(address)
        self.poller.start(address)
        self._broadcast_state()

    def disconnect(self) -> None:
        self.poller.stop()
        self._broadcast_state()

    def state_payload(self, state: Optional[PublishedState] = None) -> Dict[str, Any]:
        """Published state plus the current target, ready for JSON."""
        if state is None:
            state = self.poller.state
        payload = state.to_dict()
        payload["address"] = self.poller.address
        payload["active"] = self.poller.active
        return payload

    def _on_state(self, state: PublishedState) -> None:
        self._broadcast_state(state)

    def _broadcast_state(self, state: Optional[PublishedState] = None) -> None:
        if self.clients:
            broadcast(self.clients, json.dumps(self.state_payload(state)))

    async def _handle_index(self, request: web.Request) -> web.Response:
        """Serve the live view page; ``?ip=`` connects straight away."""
        address = request.query.get("ip", "").strip()
        if address and address != self.poller.address:
            self.connect(address)

        html = render_index(
            title=self.config.title,
            ws_port=self.config.ws_port,
            idle_hide_ms=int(self.config.idle_hide_seconds * 1000),
        )
        return web.Response(text=html, content_type="text/html")

    async def _handle_frame(self, request: web.Request) -> web.Response:
        """Return the newest complete frame."""
        frame = self.poller.state.frame
        if frame is None:
            raise web.HTTPNotFound(text="no frame yet")

        return web.Response(
            body=frame.data,
            content_type=frame.content_type,
            headers={"Cache-Control": "no-store"},
        )

    async def _handle_status(self, request: web.Request) -> web.Response:
        status = {
            "status": "running",
            "version": __version__,
            "url": self.poller.session.url if self.poller.session else None,
            "state": self.state_payload(),
        }
        return web.json_response(status)

    async def _handle_ping(self, request: web.Request) -> web.Response:
        return web.Response(text="pong")

    async def _handle_connect(self, request: web.Request) -> web.Response:
        """Start polling the address posted as JSON or form data."""
        if request.content_type == "application/json":
            try:
                data = await request.json()
            except json.JSONDecodeError:
                raise web.HTTPBadRequest(text="invalid JSON")
        else:
            data = await request.post()

        if not hasattr(data, "get"):
            raise web.HTTPBadRequest(text="expected an object")

        address = str(data.get("address", "")).strip()
        if not address:
            raise web.HTTPBadRequest(text="address is required")

        self.connect(address)
        return web.json_response(self.state_payload())

    async def _handle_disconnect(self, request: web.Request) -> web.Response:
        self.disconnect()
        return web.json_response(self.state_payload())

    async def _websocket_handler(self, websocket: ServerConnection) -> None:
        """Send the current state, then keep the feed open for broadcasts."""
        self.clients.add(websocket)
        logger.info("Viewer connected: %s", websocket.remote_address)

        try:
            await websocket.send(json.dumps(self.state_payload()))
            await websocket.wait_closed()
        except ConnectionClosed:
            pass
        finally:
            self.clients.discard(websocket)
            logger.info("Viewer disconnected: %s", websocket.remote_address)

    async def start(self, address: Optional[str] = None) -> None:
        """Start both HTTP and WebSocket servers and resume polling."""
        self.http_runner = web.AppRunner(self.http_app)
        await self.http_runner.setup()
        http_site = web.TCPSite(self.http_runner, self.config.host, self.config.port)
        await http_site.start()

        self.ws_server = await ws_serve(
            self._websocket_handler,
            self.config.host,
            self.config.ws_port,
            ping_interval=20,
            ping_timeout=20,
        )

        # `remote-display stop` sends SIGTERM
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.shutdown_event.set)
            except NotImplementedError:
                pass

        initial = self.store.resolve(address)
        if initial:
            self.poller.start(initial)

        print(f"\n🖥️  Remote Display started!")
        print(f"   Viewer:     http://{self.config.host}:{self.config.port}")
        print(f"   State feed: ws://{self.config.host}:{self.config.ws_port}")
        if initial:
            print(f"   Showing:    {self.poller.session.url}")
        print()

    async def stop(self) -> None:
        """Stop the servers and the poller."""
        self._unsubscribe()
        await self.poller.close()

        for client in list(self.clients):
            try:
                await client.close()
            except ConnectionClosed:
                pass
        self.clients.clear()

        if self.ws_server:
            self.ws_server.close()
            await self.ws_server.wait_closed()

        if self.http_runner:
            await self.http_runner.cleanup()

        print("\n🖥️  Remote Display stopped.\n")

    async def run_forever(self, address: Optional[str] = None) -> None:
        """Run the server until interrupted."""
        await self.start(address)

        try:
            await self.shutdown_event.wait()
        except asyncio.CancelledError:
            pass
        finally:
            await self.stop()


def run_server(config: Optional[Config] = None, address: Optional[str] = None) -> None:
    """Run the server (blocking)."""
    server = ViewerServer(config)

    try:
        asyncio.run(server.run_forever(address))
    except KeyboardInterrupt:
        print("\nShutting down...")
