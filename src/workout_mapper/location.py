from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from workout_mapper.geo import Coordinates


class LocationError(Exception):
    """Base class for location acquisition failures."""


class PermissionDenied(LocationError):
    """The user (or the platform) refused access to the current position."""


class LocationProvider(Protocol):
    async def request_current_position(self) -> Coordinates:
        """Return (latitude, longitude) or raise PermissionDenied."""
        ...


class StaticLocationProvider:
    """Answers with a fixed position from config.ini; denies when none is configured."""

    def __init__(self, coordinates: Coordinates | None):
        self.coordinates = coordinates

    async def request_current_position(self) -> Coordinates:
        if self.coordinates is None:
            raise PermissionDenied("No location configured")
        lat, lon = self.coordinates
        return float(lat), float(lon)
