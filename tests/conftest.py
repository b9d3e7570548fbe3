from __future__ import annotations

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from workout_mapper.database import KeyValueStorage
from workout_mapper.location import PermissionDenied, StaticLocationProvider
from workout_mapper.session import SessionManager
from workout_mapper.store import WorkoutStore
from workout_mapper.workouts import WorkoutFactory

HOME = (51.5, -0.12)


class FakeMapView:
    def __init__(self):
        self.calls: list[tuple] = []
        self.markers = []

    def set_view(self, center, zoom):
        self.calls.append(("set_view", center, zoom))

    def fly_to(self, center, zoom):
        self.calls.append(("fly_to", center, zoom))

    def add_marker(self, marker):
        self.markers.append(marker)

    def fit_bounds(self, bounds):
        self.calls.append(("fit_bounds", bounds))

    def clear_markers(self):
        self.markers.clear()


class FakeView:
    def __init__(self):
        self.form_visible = False
        self.form_resets = 0
        self.cards = []
        self.show_all_visible = False
        self.map_enabled = False
        self.alerts: list[str] = []

    def show_form(self):
        self.form_visible = True

    def hide_form(self):
        self.form_visible = False
        self.form_resets += 1

    def render_workout(self, workout):
        self.cards.append(workout)

    def clear_workouts(self):
        self.cards.clear()

    def set_show_all_visible(self, visible):
        self.show_all_visible = visible

    def set_map_enabled(self, enabled):
        self.map_enabled = enabled

    def alert(self, message):
        self.alerts.append(message)


class DeniedLocation:
    async def request_current_position(self):
        raise PermissionDenied("User denied geolocation")


class StepClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now = current + timedelta(seconds=1)
        return current


@pytest.fixture
def home():
    return HOME


@pytest.fixture
def denied_location():
    return DeniedLocation()


@pytest.fixture
def clock():
    return StepClock(datetime(2024, 3, 7, 9, 30, tzinfo=ZoneInfo("UTC")))


@pytest.fixture
def factory(clock):
    return WorkoutFactory(clock=clock)


@pytest.fixture
def storage(tmp_path):
    return KeyValueStorage(f"sqlite:///{tmp_path / 'workouts.db'}")


@pytest.fixture
def map_view():
    return FakeMapView()


@pytest.fixture
def view():
    return FakeView()


@pytest.fixture
def make_session(factory, storage, map_view, view):
    def _make(location=None, store=None):
        return SessionManager(
            factory=factory,
            store=store if store is not None else WorkoutStore(),
            storage=storage,
            map_view=map_view,
            view=view,
            location=location or StaticLocationProvider(HOME),
        )

    return _make
