from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

# (latitude, longitude) in degrees
Coordinates = tuple[float, float]

TILE_SIZE = 256
MAX_LATITUDE = 85.0511287798  # Web Mercator cut-off


@dataclass(frozen=True)
class Bounds:
    south: float
    west: float
    north: float
    east: float

    @property
    def center(self) -> Coordinates:
        return (self.south + self.north) / 2.0, (self.west + self.east) / 2.0

    def contains(self, point: Coordinates) -> bool:
        lat, lon = point
        return self.south <= lat <= self.north and self.west <= lon <= self.east


def bounds_of(points: Iterable[Coordinates]) -> Bounds:
    """Smallest lat/lon rectangle covering every point. Raises ValueError when empty."""
    pts = list(points)
    if not pts:
        raise ValueError("Cannot compute bounds of an empty set of coordinates")
    lats = [float(lat) for lat, _ in pts]
    lons = [float(lon) for _, lon in pts]
    return Bounds(south=min(lats), west=min(lons), north=max(lats), east=max(lons))


def _mercator_y(lat: float) -> float:
    lat = max(-MAX_LATITUDE, min(MAX_LATITUDE, lat))
    rad = math.radians(lat)
    return math.log(math.tan(math.pi / 4.0 + rad / 2.0))


def zoom_for_bounds(
    bounds: Bounds,
    width_px: int,
    height_px: int,
    *,
    padding_px: int = 32,
    max_zoom: float = 18.0,
) -> float:
    """
    Largest zoom level at which ``bounds`` fits a viewport of the given pixel size.
    A single point (zero-size bounds) yields ``max_zoom``.
    """
    usable_w = max(1, width_px - 2 * padding_px)
    usable_h = max(1, height_px - 2 * padding_px)

    # Fraction of the world each span covers at zoom 0
    lon_frac = (bounds.east - bounds.west) / 360.0
    lat_frac = (_mercator_y(bounds.north) - _mercator_y(bounds.south)) / (2.0 * math.pi)

    candidates = [max_zoom]
    if lon_frac > 0:
        candidates.append(math.log2(usable_w / (TILE_SIZE * lon_frac)))
    if lat_frac > 0:
        candidates.append(math.log2(usable_h / (TILE_SIZE * lat_frac)))
    return max(0.0, min(candidates))
