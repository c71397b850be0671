"""
Fetch failures raised by the frame poller.
Both kinds are recoverable and lead to a retry.
"""


class FetchError(Exception):
    """A single frame fetch attempt failed."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"{url}: {reason}")
        self.url = url.partition("?")[0]
        self.reason = reason

    @property
    def user_message(self) -> str:
        return f"Error connecting to {self.url}. Please verify the IP address and ensure the display host is accessible."


class TransportError(FetchError):
    """Network unreachable, connection refused, timeout or an HTTP error status."""

    @property
    def user_message(self) -> str:
        return f"Failed to load image from {self.url}. Please check the IP address and network connection."


class DecodeError(FetchError):
    """A response arrived but was not a complete, valid image."""

    @property
    def user_message(self) -> str:
        return f"Invalid image received from {self.url}. The display host may be restarting."
