import asyncio
import socket
import time


async def wait_for(predicate, timeout=2.0, interval=0.005):
    """Poll ``predicate`` on the running loop until it holds or time runs out."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met within %.1fs" % timeout)
        await asyncio.sleep(interval)


class FakeClock:
    """Returns the given timestamps one per call."""

    def __init__(self, *times):
        self._times = list(times)

    def __call__(self):
        return self._times.pop(0)


class ScriptedFetch:
    """
    Fake fetch coroutine keyed by host address.

    Each address gets a list of steps: bytes to return, an exception to
    raise, or an asyncio.Event / a delay in seconds to wait on before taking
    the next step. Once a script runs out the fetch blocks forever.
    """

    def __init__(self, scripts=None):
        self.scripts = {address: list(steps) for address, steps in (scripts or {}).items()}
        self.urls = []

    def count(self, address):
        return sum(1 for url in self.urls if f"//{address}/" in url)

    async def __call__(self, url):
        self.urls.append(url)
        address = url.split("//", 1)[1].split("/", 1)[0]
        script = self.scripts.get(address, [])
        if not script:
            await asyncio.Event().wait()
        response = script.pop(0)
        if isinstance(response, asyncio.Event):
            await response.wait()
            response = script.pop(0)
        if isinstance(response, (int, float)) and not isinstance(response, bool):
            await asyncio.sleep(response)
            response = script.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def free_port_pair(host="127.0.0.1"):
    """Find a port whose successor is free too (viewer HTTP + state feed)."""
    for _ in range(50):
        with socket.socket() as sock:
            sock.bind((host, 0))
            port = sock.getsockname()[1]
        if port >= 65535:
            continue
        try:
            with socket.socket() as first, socket.socket() as second:
                first.bind((host, port))
                second.bind((host, port + 1))
        except OSError:
            continue
        return port
    raise RuntimeError("no free port pair found")
