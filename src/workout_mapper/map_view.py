from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from workout_mapper.geo import Bounds, Coordinates


@dataclass(frozen=True)
class Marker:
    """A pin plus its popup; the popup stays open until the marker is removed."""
    coordinates: Coordinates
    popup_text: str
    css_class: str  # e.g. "running-popup"


class MapView(Protocol):
    """Drawing surface. Calls are fire-and-forget."""

    def set_view(self, center: Coordinates, zoom: int) -> None: ...

    def fly_to(self, center: Coordinates, zoom: int) -> None:
        """Like set_view, but animated."""
        ...

    def add_marker(self, marker: Marker) -> None: ...

    def fit_bounds(self, bounds: Bounds) -> None: ...

    def clear_markers(self) -> None: ...
