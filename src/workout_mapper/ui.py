from __future__ import annotations

import asyncio
import contextlib
import threading
from typing import TYPE_CHECKING

import gi
from loguru import logger

from workout_mapper.config import APP_ID, AppConfig
from workout_mapper.database import KeyValueStorage
from workout_mapper.geo import zoom_for_bounds
from workout_mapper.location import PermissionDenied, StaticLocationProvider
from workout_mapper.session import (
    MapClicked,
    SessionManager,
    StartRequested,
)
from workout_mapper.store import WorkoutStore
from workout_mapper.ui_workouts import WorkoutSidebar
from workout_mapper.workouts import WorkoutFactory

gi.require_versions({"Gtk": "4.0", "Adw": "1", "Shumate": "1.0", "Geoclue": "2.0"})

from gi.repository import Adw, Gdk, Geoclue, GLib, Gtk, Shumate  # noqa: E402

if TYPE_CHECKING:
    from concurrent.futures import Future

    from workout_mapper.geo import Bounds, Coordinates
    from workout_mapper.location import LocationProvider
    from workout_mapper.map_view import Marker
    from workout_mapper.session import Event

Adw.init()

_PROV = Gtk.CssProvider()
_PROV.load_from_data(b"""
.popup { padding: 4px 10px; border-radius: 6px; background-color: rgba(45,52,54,0.92); color: white; }
.running-popup { border-left: 5px solid #00c46a; }
.cycling-popup { border-left: 5px solid #ffb545; }
.workout--running { border-left: 5px solid #00c46a; }
.workout--cycling { border-left: 5px solid #ffb545; }
""")
Gtk.StyleContext.add_provider_for_display(
    Gdk.Display.get_default(), _PROV, Gtk.STYLE_PROVIDER_PRIORITY_APPLICATION
)


class GeoclueLocationProvider:
    """
    Asks Geoclue for the current position. Geoclue calls back on the GLib main
    loop; the result is handed to the awaiting asyncio loop thread-safely.
    """

    def __init__(self, desktop_id: str = APP_ID):
        self.desktop_id = desktop_id
        self._simple = None  # keep the client alive while the app runs

    async def request_current_position(self) -> Coordinates:
        loop = asyncio.get_running_loop()
        fut: asyncio.Future = loop.create_future()

        def _on_ready(_source, result):
            try:
                self._simple = Geoclue.Simple.new_finish(result)
            except GLib.Error as e:
                loop.call_soon_threadsafe(fut.set_exception, PermissionDenied(e.message))
                return
            loc = self._simple.get_location()
            coords = (float(loc.get_latitude()), float(loc.get_longitude()))
            loop.call_soon_threadsafe(fut.set_result, coords)

        def _request():
            Geoclue.Simple.new(
                self.desktop_id, Geoclue.AccuracyLevel.EXACT, None, _on_ready
            )
            return False

        GLib.idle_add(_request)
        return await fut


class ShumateMapView:
    """MapView backed by a libshumate SimpleMap with one marker layer."""

    def __init__(self, config: AppConfig, on_click):
        self.widget = Shumate.SimpleMap()
        self.widget.set_vexpand(True)
        self.widget.set_hexpand(True)

        source = Shumate.RasterRenderer.new_from_url(config.tile_url)
        source.set_license(config.attribution)
        self.widget.set_map_source(source)

        self.map = self.widget.get_map()
        self.viewport = self.widget.get_viewport()
        self.markers = Shumate.MarkerLayer.new(self.viewport)
        self.map.add_layer(self.markers)

        self._on_click = on_click
        click = Gtk.GestureClick()
        click.connect("released", self._on_released)
        self.map.add_controller(click)

    def _on_released(self, _gesture, n_press: int, x: float, y: float):
        if n_press != 1:
            return
        lat, lon = self.viewport.widget_coords_to_location(self.map, x, y)
        self._on_click((lat, lon))

    # ---- MapView ----
    def set_view(self, center: Coordinates, zoom: int) -> None:
        self.viewport.set_zoom_level(zoom)
        self.map.center_on(*center)

    def fly_to(self, center: Coordinates, zoom: int) -> None:
        self.map.go_to_full(center[0], center[1], zoom)

    def add_marker(self, marker: Marker) -> None:
        label = Gtk.Label(label=marker.popup_text)
        label.add_css_class("popup")
        label.add_css_class(marker.css_class)

        pin = Gtk.Image.new_from_icon_name("mark-location-symbolic")
        pin.set_pixel_size(24)

        box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=2)
        box.append(label)
        box.append(pin)

        item = Shumate.Marker()
        item.set_location(*marker.coordinates)
        item.set_child(box)
        self.markers.add_marker(item)

    def fit_bounds(self, bounds: Bounds) -> None:
        zoom = zoom_for_bounds(
            bounds,
            self.map.get_width(),
            self.map.get_height(),
            max_zoom=self.viewport.get_max_zoom_level(),
        )
        lat, lon = bounds.center
        self.map.go_to_full(lat, lon, zoom)

    def clear_markers(self) -> None:
        self.markers.remove_all()


class WorkoutMapperApp(Adw.Application):
    def __init__(self, config: AppConfig, *, reset: bool = False):
        super().__init__(application_id=APP_ID)
        self.config = config
        self.reset_on_start = reset

        self.window = None
        self.session: SessionManager | None = None

        if config.use_geoclue:
            self.location: LocationProvider = GeoclueLocationProvider()
        else:
            self.location = StaticLocationProvider(config.static_location)

        # Location lookups run on their own loop so GTK stays responsive
        self.loop = asyncio.new_event_loop()
        self._thread: threading.Thread | None = None

    def show_toast(self, message: str) -> None:
        print(message)
        toast = Adw.Toast.new(message)
        self.toast_overlay.add_toast(toast)

    def show_alert(self, message: str) -> None:
        logger.info("Alert: {}", message)
        dialog = Adw.AlertDialog.new("Workout Mapper", message)
        dialog.add_response("ok", "OK")
        dialog.present(self.window)

    def dispatch(self, event: Event) -> None:
        self.session.dispatch(event)

    def do_activate(self):
        if not self.window:
            self._build_ui()
            self._thread = threading.Thread(target=self.loop.run_forever, daemon=True)
            self._thread.start()

            if self.reset_on_start:
                self.session.reset()
                self.show_toast("All workouts deleted")
            self._request_location()

        self.window.present()

    def _build_ui(self):
        self.window = Adw.ApplicationWindow(application=self)
        self.window.connect("close-request", lambda *a: (self.quit(), False)[1])
        self.window.set_title("Workout Mapper")
        self.window.set_default_size(1200, 800)
        self.toast_overlay = Adw.ToastOverlay()
        self.window.set_content(self.toast_overlay)

        toolbar_view = Adw.ToolbarView()
        toolbar_view.add_top_bar(Adw.HeaderBar())
        self.toast_overlay.set_child(toolbar_view)

        self.sidebar = WorkoutSidebar(self)
        self.map_view = ShumateMapView(
            self.config, on_click=lambda coords: self.dispatch(MapClicked(coords))
        )
        # No clicks until a position is known
        self.map_view.widget.set_sensitive(False)

        paned = Gtk.Paned(orientation=Gtk.Orientation.HORIZONTAL)
        paned.set_start_child(self.sidebar.build_page())
        paned.set_end_child(self.map_view.widget)
        paned.set_resize_start_child(False)
        paned.set_shrink_start_child(False)
        toolbar_view.set_content(paned)

        self.session = SessionManager(
            factory=WorkoutFactory(),
            store=WorkoutStore(),
            storage=KeyValueStorage(self.config.database_url),
            map_view=self.map_view,
            view=self.sidebar,
            location=self.location,
            zoom_level=self.config.zoom_level,
        )

    def _request_location(self) -> None:
        self.session.dispatch(StartRequested())
        fut = asyncio.run_coroutine_threadsafe(
            self.location.request_current_position(), self.loop
        )
        fut.add_done_callback(lambda f: GLib.idle_add(self._deliver_location, f))

    def _deliver_location(self, fut: Future) -> bool:
        self.session.finish_location_request(fut)
        return False

    def do_shutdown(self):
        try:
            if self.loop.is_running():
                self.loop.call_soon_threadsafe(self.loop.stop)
            if self._thread:
                with contextlib.suppress(RuntimeError):
                    self._thread.join(timeout=3)
        finally:
            Adw.Application.do_shutdown(self)
