"""Handler for the read-only state group ``primary_interface``."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from .rci_state import RciError, RciStateError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InterfaceInfo:
    """Name and IPv4 address of a network interface."""

    name: str
    ipv4: Tuple[int, int, int, int]

    def __post_init__(self) -> None:
        octets = tuple(self.ipv4)
        if len(octets) != 4 or not all(0 <= octet <= 255 for octet in octets):
            raise ValueError(f"invalid IPv4 address: {self.ipv4!r}")
        object.__setattr__(self, "ipv4", octets)

    @property
    def ip_string(self) -> str:
        return "%d.%d.%d.%d" % self.ipv4


class PrimaryInterface:
    """Reports the interface used to reach the cloud server at ``url``.

    ``lookup`` is called with ``url`` at session start and returns the
    :class:`InterfaceInfo` of the interface that routes to it.
    """

    def __init__(self, url: str, lookup: Callable[[str], InterfaceInfo]) -> None:
        self.url = url
        self._lookup = lookup
        self._name: Optional[str] = None
        self._ip: Optional[str] = None

    def start(self) -> None:
        """Look up the main interface; raise RciStateError if that fails."""
        logger.debug("    Called 'primary_interface start'")
        try:
            info = self._lookup(self.url)
        except (OSError, LookupError, ValueError) as exc:
            raise RciStateError(RciError.LOAD_FAIL, str(exc)) from exc
        self._name = info.name
        self._ip = info.ip_string

    def end(self) -> None:
        """Forget the values gathered at start."""
        logger.debug("    Called 'primary_interface end'")
        self._name = None
        self._ip = None

    def connection_type(self) -> Optional[str]:
        """Name of the main interface, or None outside a session."""
        logger.debug("    Called 'connection_type get'")
        return self._name

    def ip_addr(self) -> Optional[str]:
        """Dotted IPv4 address of the main interface, or None outside a session."""
        logger.debug("    Called 'ip_addr get'")
        return self._ip