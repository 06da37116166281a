"""Handlers for the read-only state groups ``device_state`` and ``gps_stats``."""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass

logger = logging.getLogger(__name__)

FLOAT_MAX_LENGTH = 14
_UINT32_MASK = 0xFFFFFFFF
_NO_LOCATION = "0.0"


class RciError(enum.IntEnum):
    """Error ids reported by state group handlers."""

    NONE = 0
    BAD_COMMAND = 1
    BAD_DESCRIPTOR = 2
    BAD_VALUE = 3
    INVALID_INDEX = 4
    INVALID_NAME = 5
    MISSING_NAME = 6
    LOAD_FAIL = 7
    SAVE_FAIL = 8
    MEMORY_FAIL = 9
    NOT_IMPLEMENTED = 10


class RciStateError(Exception):
    """Raised when a state value cannot be produced."""

    def __init__(self, error: RciError, message: str = "") -> None:
        super().__init__(message or error.name)
        self.error = error


@dataclass
class StaticLocation:
    """The configured fixed position of the device."""

    use_static_location: bool = False
    latitude: float = 0.0
    longitude: float = 0.0
    altitude: float = 0.0


def _uptime_seconds() -> float:
    clock = getattr(time, "CLOCK_BOOTTIME", None)
    if clock is not None:
        return time.clock_gettime(clock)
    with open("/proc/uptime", encoding="ascii") as handle:
        return float(handle.read().split()[0])


class DeviceState:
    """The ``device_state`` group."""

    def __init__(self) -> None:
        self.active = False

    def start(self) -> None:
        """Open a query session on the group."""
        logger.debug("    Called 'device_state start'")
        self.active = True

    def end(self) -> None:
        """Close the query session on the group."""
        logger.debug("    Called 'device_state end'")
        self.active = False

    def system_up_time(self) -> int:
        """Seconds since boot, as an unsigned 32-bit value."""
        logger.debug("    Called 'system_up_time get'")
        try:
            seconds = _uptime_seconds()
        except (OSError, ValueError, IndexError) as exc:
            logger.error("sysinfo failed: %s", exc)
            raise RciStateError(RciError.LOAD_FAIL, str(exc)) from exc
        return int(seconds) & _UINT32_MASK


class GpsStats:
    """The ``gps_stats`` group, reporting the configured static location."""

    def __init__(self, location: StaticLocation) -> None:
        self.location = location
        self.active = False

    def start(self) -> None:
        """Open a query session on the group."""
        logger.debug("    Called 'gps_stats start'")
        self.active = True

    def end(self) -> None:
        """Close the query session on the group."""
        logger.debug("    Called 'gps_stats end'")
        self.active = False

    def _format(self, value: float) -> str:
        if not self.location.use_static_location:
            return _NO_LOCATION
        return ("%f" % value)[: FLOAT_MAX_LENGTH - 1]

    def latitude(self) -> str:
        """Latitude as text, or ``"0.0"`` when no static location is used."""
        logger.debug("    Called 'latitude get'")
        return self._format(self.location.latitude)

    def longitude(self) -> str:
        """Longitude as text, or ``"0.0"`` when no static location is used."""
        logger.debug("    Called 'longitude get'")
        return self._format(self.location.longitude)