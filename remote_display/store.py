"""
Last-used address persistence.
"""

import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class AddressStore:
    """
    Remembers the last display host address in a single small file.

    An explicit address (``--ip`` flag, ``?ip=`` query parameter) always
    wins over the saved one and replaces it.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Optional[str]:
        """Return the saved address, or None if nothing usable is stored."""
        try:
            address = self.path.read_text().strip()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("Could not read saved address from %s: %s", self.path, e)
            return None
        return address or None

    def save(self, address: str) -> None:
        address = address.strip()
        if not address:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(address + "\n")
        except OSError as e:
            logger.warning("Could not save address to %s: %s", self.path, e)

    def resolve(self, override: Optional[str] = None) -> Optional[str]:
        """
        Pick the address to start with.

        Args:
            override: Address given explicitly by the user, if any

        Returns:
            The override (after saving it) or the saved address.
        """
        if override and override.strip():
            address = override.strip()
            self.save(address)
            return address
        return self.load()
