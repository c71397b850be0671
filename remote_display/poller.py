"""
Continuous frame poller.
Fetches the remote screen image over and over and publishes the newest
completely decoded frame, turning a still-image endpoint into a live view.
"""

import asyncio
import dataclasses
import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

import aiohttp

from .errors import FetchError, TransportError
from .frames import Frame, decode_frame

logger = logging.getLogger(__name__)

# Fixed image path on the display host
SCREEN_PATH = "/screen.png"

Fetch = Callable[[str], Awaitable[bytes]]
Subscriber = Callable[["PublishedState"], None]


def build_screen_url(address: str, scheme: str = "http") -> str:
    """
    Build the image URL for a host address.

    ``10.0.0.5`` and ``10.0.0.5:8080`` get ``scheme`` prepended; an address
    that already carries a scheme is used as the base unchanged.
    """
    base = address.strip().rstrip("/")
    if "://" not in base:
        base = f"{scheme}://{base}"
    return f"{base}{SCREEN_PATH}"


def cache_busted(url: str) -> str:
    """Append a per-attempt query token so no cache can replay an old frame."""
    return f"{url}?t={time.time_ns()}"


@dataclass(frozen=True)
class PublishedState:
    """Snapshot of what the viewer should currently render."""

    frame: Optional[Frame] = None
    loading: bool = False
    error: str = ""
    fps: Optional[float] = None
    sequence: int = 0

    def to_dict(self) -> Dict[str, Any]:
        frame = None
        if self.frame is not None:
            frame = {
                "width": self.frame.width,
                "height": self.frame.height,
                "format": self.frame.format,
            }
        return {
            "frame": frame,
            "loading": self.loading,
            "error": self.error,
            "fps": self.fps,
            "sequence": self.sequence,
        }


@dataclass(eq=False)
class PollSession:
    """
    One generation of polling against a single target.

    Only the session the poller currently holds may publish; any other
    session is stale and its results are dropped.
    """

    token: int
    address: str
    url: str
    in_flight: bool = False
    last_arrival: Optional[float] = None
    failures: int = 0
    retry_handle: Optional[asyncio.TimerHandle] = field(default=None, repr=False)

    def cancel_retry(self) -> None:
        if self.retry_handle is not None:
            self.retry_handle.cancel()
            self.retry_handle = None


class HttpFetcher:
    """Download image bodies with a shared aiohttp client session."""

    def __init__(self, timeout: float = 5.0):
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: Optional[aiohttp.ClientSession] = None

    async def __call__(self, url: str) -> bytes:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self._timeout,
                headers={"Cache-Control": "no-cache"},
            )

        try:
            async with self._session.get(url) as resp:
                if resp.status >= 400:
                    raise TransportError(url, f"HTTP {resp.status}")
                # read() returns only once the whole body has arrived
                return await resp.read()
        except aiohttp.ClientError as e:
            raise TransportError(url, str(e) or type(e).__name__) from e
        except asyncio.TimeoutError as e:
            raise TransportError(url, "timed out") from e

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None


class FramePoller:
    """
    Self-throttling, self-healing polling loop for a remote screen image.

    Guarantees:
    - At most one fetch in flight per session
    - ``start()`` always supersedes whatever was running before
    - Failures retry after a fixed delay, forever, until stopped
    - FPS comes from the arrival times of consecutive frames of one session

    All methods must be called from the event loop thread.
    """

    def __init__(
        self,
        fetch: Optional[Fetch] = None,
        *,
        scheme: str = "http",
        retry_delay: float = 0.1,
        timeout: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the poller.

        Args:
            fetch: Coroutine function returning the full body for a URL.
                Defaults to an aiohttp based fetcher owned by the poller.
            scheme: Scheme used for addresses given without one
            retry_delay: Seconds to wait before retrying a failed fetch
            timeout: Total request timeout for the default fetcher
            clock: Monotonic clock used for frame arrival times
        """
        self._owned_fetcher: Optional[HttpFetcher] = None
        if fetch is None:
            self._owned_fetcher = HttpFetcher(timeout=timeout)
            fetch = self._owned_fetcher
        self._fetch = fetch
        self.scheme = scheme
        self.retry_delay = retry_delay
        self._clock = clock

        self._tokens = itertools.count(1)
        self._session: Optional[PollSession] = None
        self._state = PublishedState()
        self._subscribers: List[Subscriber] = []
        self._tasks: Set[asyncio.Task] = set()

    @property
    def state(self) -> PublishedState:
        return self._state

    @property
    def session(self) -> Optional[PollSession]:
        """The live session, or None when stopped."""
        return self._session

    @property
    def address(self) -> Optional[str]:
        return self._session.address if self._session else None

    @property
    def active(self) -> bool:
        return self._session is not None

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a callback for published state changes.

        Returns:
            A function that removes the callback again.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def start(self, address: str) -> None:
        """
        Start polling ``address``, superseding any previous target.

        Starting the same address again is a reconnect: a new session with
        fresh FPS and error state.
        """
        address = address.strip()
        if not address:
            raise ValueError("address must not be empty")

        self._invalidate()
        session = PollSession(
            token=next(self._tokens),
            address=address,
            url=build_screen_url(address, self.scheme),
        )
        self._session = session
        logger.info("Polling %s (session %d)", session.url, session.token)

        self._publish(frame=None, loading=False, error="", fps=None)
        self._spawn(session)

    def stop(self) -> None:
        """
        Stop polling. The last frame and error stay published.

        Calling this while stopped does nothing.
        """
        session = self._session
        if session is None:
            return

        self._invalidate()
        logger.info("Stopped polling %s (session %d)", session.url, session.token)

        # An abandoned fetch will never clear the loading flag itself
        if self._state.loading:
            self._publish(loading=False)

    async def close(self) -> None:
        """Stop, wait for outstanding work and release the HTTP client."""
        self.stop()

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        if self._owned_fetcher is not None:
            await self._owned_fetcher.close()

    async def run_generation(self, session: PollSession) -> None:
        """
        Perform one fetch/decode/publish step for ``session``.

        The next step is scheduled from here: immediately after a frame,
        after ``retry_delay`` after a failure. Calls made while a fetch is
        outstanding, or for a session that is no longer current, return
        without doing anything.
        """
        if session.in_flight:
            return
        if not self._is_current(session):
            return

        session.in_flight = True
        self._publish(loading=True)

        try:
            url = cache_busted(session.url)
            data = await self._fetch_body(url)
            frame = await asyncio.to_thread(decode_frame, data, url)
        except FetchError as e:
            session.in_flight = False
            self._handle_failure(session, e)
        else:
            session.in_flight = False
            self._handle_frame(session, dataclasses.replace(frame, arrival=self._clock()))
        finally:
            # Cancellation from close() lands here
            session.in_flight = False

    async def _fetch_body(self, url: str) -> bytes:
        try:
            return await self._fetch(url)
        except FetchError:
            raise
        except Exception as e:
            raise TransportError(url, str(e) or type(e).__name__) from e

    def _is_current(self, session: PollSession) -> bool:
        current = self._session
        return current is not None and current.token == session.token

    def _invalidate(self) -> None:
        if self._session is not None:
            self._session.cancel_retry()
        self._session = None

    def _handle_frame(self, session: PollSession, frame: Frame) -> None:
        if not self._is_current(session):
            logger.debug("Dropping frame from superseded session %d", session.token)
            return

        fps = self._state.fps
        if session.last_arrival is not None:
            elapsed = frame.arrival - session.last_arrival
            if elapsed > 0:
                fps = 1.0 / elapsed
        session.last_arrival = frame.arrival

        if session.failures:
            logger.info("%s recovered after %d failed attempts", session.url, session.failures)
            session.failures = 0

        self._publish(
            frame=frame,
            loading=False,
            error="",
            fps=fps,
            sequence=self._state.sequence + 1,
        )
        self._spawn(session)

    def _handle_failure(self, session: PollSession, error: FetchError) -> None:
        if not self._is_current(session):
            logger.debug("Dropping failure from superseded session %d: %s", session.token, error)
            return

        session.failures += 1
        if session.failures == 1:
            logger.warning("Fetch failed: %s", error)
        else:
            logger.debug("Fetch failed (attempt %d): %s", session.failures, error)

        # Only the first failure of a run is shown
        message = self._state.error or error.user_message
        self._publish(loading=False, error=message)
        self._schedule_retry(session)

    def _schedule_retry(self, session: PollSession) -> None:
        loop = asyncio.get_running_loop()
        session.cancel_retry()
        session.retry_handle = loop.call_later(self.retry_delay, self._retry, session)

    def _retry(self, session: PollSession) -> None:
        session.retry_handle = None
        self._spawn(session)

    def _spawn(self, session: PollSession) -> None:
        if not self._is_current(session):
            return
        task = asyncio.get_running_loop().create_task(self.run_generation(session))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _publish(self, **changes: Any) -> None:
        state = dataclasses.replace(self._state, **changes)
        if state == self._state:
            return
        self._state = state

        for callback in list(self._subscribers):
            try:
                callback(state)
            except Exception:
                logger.exception("State subscriber %r failed", callback)
