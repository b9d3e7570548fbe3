from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, Union

from loguru import logger

from workout_mapper.config import DEFAULT_ZOOM_LEVEL
from workout_mapper.geo import bounds_of
from workout_mapper.location import LocationError
from workout_mapper.map_view import Marker
from workout_mapper.store import STORAGE_KEY
from workout_mapper.workouts import ValidationError, create_from_form, popup_text

if TYPE_CHECKING:
    from concurrent.futures import Future

    from workout_mapper.database import KeyValueStorage
    from workout_mapper.geo import Coordinates
    from workout_mapper.location import LocationProvider
    from workout_mapper.map_view import MapView
    from workout_mapper.store import WorkoutStore
    from workout_mapper.workouts import Workout, WorkoutFactory, WorkoutForm

PERMISSION_MESSAGE = "The map cannot be downloaded without your permission"


# ---------- States ----------


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class AwaitingLocation:
    pass


@dataclass(frozen=True)
class LocationReady:
    pass


@dataclass(frozen=True)
class FormOpen:
    selected_coordinates: Coordinates


@dataclass(frozen=True)
class Rendered:
    pass


State = Union[Idle, AwaitingLocation, LocationReady, FormOpen, Rendered]

# States in which a map exists and accepts interaction
_MAP_STATES = (LocationReady, FormOpen, Rendered)


# ---------- Events ----------


@dataclass(frozen=True)
class StartRequested:
    pass


@dataclass(frozen=True)
class LocationAcquired:
    coordinates: Coordinates


@dataclass(frozen=True)
class LocationDenied:
    reason: str = ""


@dataclass(frozen=True)
class MapClicked:
    coordinates: Coordinates


@dataclass(frozen=True)
class FormSubmitted:
    form: WorkoutForm


@dataclass(frozen=True)
class WorkoutSelected:
    workout_id: str


@dataclass(frozen=True)
class ShowAllRequested:
    pass


@dataclass(frozen=True)
class ResetRequested:
    pass


Event = Union[
    StartRequested,
    LocationAcquired,
    LocationDenied,
    MapClicked,
    FormSubmitted,
    WorkoutSelected,
    ShowAllRequested,
    ResetRequested,
]


class SessionError(Exception):
    pass


class InvalidTransition(SessionError):
    def __init__(self, state: State, event: Event):
        super().__init__(f"{type(event).__name__} is not accepted in state {type(state).__name__}")
        self.state = state
        self.event = event


class SessionView(Protocol):
    """Everything besides the map that the user sees."""

    def show_form(self) -> None:
        """Reveal the workout form and focus the distance field."""
        ...

    def hide_form(self) -> None:
        """Hide the form and reset its fields."""
        ...

    def render_workout(self, workout: Workout) -> None: ...

    def clear_workouts(self) -> None: ...

    def set_show_all_visible(self, visible: bool) -> None: ...

    def set_map_enabled(self, enabled: bool) -> None:
        """Map clicks are only delivered while enabled."""
        ...

    def alert(self, message: str) -> None:
        """Blocking, user-visible message."""
        ...


class SessionManager:
    def __init__(
        self,
        *,
        factory: WorkoutFactory,
        store: WorkoutStore,
        storage: KeyValueStorage,
        map_view: MapView,
        view: SessionView,
        location: LocationProvider,
        zoom_level: int = DEFAULT_ZOOM_LEVEL,
    ):
        self.factory = factory
        self.store = store
        self.storage = storage
        self.map_view = map_view
        self.view = view
        self.location = location
        self.zoom_level = zoom_level

        self.state: State = Idle()
        # Set once location is refused; only a reset clears it
        self.map_unavailable = False

        self._handlers = {
            StartRequested: self._on_start,
            LocationAcquired: self._on_location_acquired,
            LocationDenied: self._on_location_denied,
            MapClicked: self._on_map_click,
            FormSubmitted: self._on_form_submit,
            WorkoutSelected: self._on_workout_selected,
            ShowAllRequested: self._on_show_all,
            ResetRequested: self._on_reset,
        }

    # ---- Public API ----
    def dispatch(self, event: Event) -> State:
        """Run the handler for ``event`` against the current state and return the new state."""
        handler = self._handlers.get(type(event))
        if handler is None:
            raise SessionError(f"Unknown event: {event!r}")

        previous = self.state
        self.state = handler(previous, event)
        if type(self.state) is not type(previous):
            logger.info(
                "Session {} -> {} on {}",
                type(previous).__name__,
                type(self.state).__name__,
                type(event).__name__,
            )
        return self.state

    async def start(self) -> State:
        """Ask for the current position; the only place the session waits."""
        self.dispatch(StartRequested())
        try:
            coords = await self.location.request_current_position()
        except Exception as e:
            return self.complete_start(error=e)
        return self.complete_start(coords)

    def complete_start(
        self, coordinates: Coordinates | None = None, *, error: BaseException | None = None
    ) -> State:
        """
        Turn the outcome of a location request into LocationAcquired or LocationDenied.
        Any failure counts as a denial, so the session never stays in AwaitingLocation.
        """
        if error is None and coordinates is None:
            error = LocationError("No position returned")
        if error is not None:
            if isinstance(error, LocationError):
                logger.error("Location unavailable: {}", error)
            else:
                logger.opt(exception=error).error("Location request failed")
            return self.dispatch(LocationDenied(reason=str(error)))
        return self.dispatch(LocationAcquired(coordinates=coordinates))

    def finish_location_request(self, fut: Future) -> State:
        """complete_start() for a finished concurrent or asyncio future."""
        error = fut.exception()
        if error is not None:
            return self.complete_start(error=error)
        return self.complete_start(fut.result())

    def reset(self) -> State:
        return self.dispatch(ResetRequested())

    # ---- Guards ----
    def _require(self, state: State, event: Event, *allowed: type) -> None:
        if not isinstance(state, allowed):
            raise InvalidTransition(state, event)

    def _require_map(self, state: State, event: Event) -> None:
        if self.map_unavailable:
            raise InvalidTransition(state, event)
        self._require(state, event, *_MAP_STATES)

    # ---- Handlers ----
    def _on_start(self, state: State, event: StartRequested) -> State:
        self._require(state, event, Idle)
        if self.map_unavailable:
            raise InvalidTransition(state, event)
        self.view.set_map_enabled(False)
        return AwaitingLocation()

    def _on_location_acquired(self, state: State, event: LocationAcquired) -> State:
        self._require(state, event, AwaitingLocation)
        self.map_view.set_view(event.coordinates, self.zoom_level)

        restored = self.store.load(self.storage.get(STORAGE_KEY))
        for workout in restored:
            self._render(workout)
        self.view.set_show_all_visible(bool(restored))
        self.view.set_map_enabled(True)
        return LocationReady()

    def _on_location_denied(self, state: State, event: LocationDenied) -> State:
        self._require(state, event, AwaitingLocation)
        self.map_unavailable = True
        self.view.set_map_enabled(False)
        self.view.alert(PERMISSION_MESSAGE)
        return Idle()

    def _on_map_click(self, state: State, event: MapClicked) -> State:
        self._require_map(state, event)
        self.view.show_form()
        return FormOpen(selected_coordinates=event.coordinates)

    def _on_form_submit(self, state: State, event: FormSubmitted) -> State:
        self._require(state, event, FormOpen)
        try:
            workout = create_from_form(self.factory, event.form, state.selected_coordinates)
        except ValidationError as e:
            self.view.alert(str(e))
            return state

        self.store.append(workout)
        self._persist()
        self._render(workout)
        self.view.hide_form()
        if len(self.store) == 1:
            self.view.set_show_all_visible(True)
        return Rendered()

    def _on_workout_selected(self, state: State, event: WorkoutSelected) -> State:
        self._require_map(state, event)
        workout = self.store.find(event.workout_id)
        if workout is None:
            logger.warning("No stored workout with id {}", event.workout_id)
            return state
        self.map_view.fly_to(workout.coordinates, self.zoom_level)
        return state

    def _on_show_all(self, state: State, event: ShowAllRequested) -> State:
        self._require_map(state, event)
        if not len(self.store):
            return state
        self.map_view.fit_bounds(bounds_of(w.coordinates for w in self.store.all()))
        return state

    def _on_reset(self, state: State, event: ResetRequested) -> State:
        self.storage.clear()
        self.store.clear()
        self.view.hide_form()
        self.view.clear_workouts()
        self.map_view.clear_markers()
        self.view.set_show_all_visible(False)
        self.view.set_map_enabled(False)
        self.map_unavailable = False
        return Idle()

    # ---- Helpers ----
    def _persist(self) -> None:
        self.storage.set(STORAGE_KEY, self.store.serialize())

    def _render(self, workout: Workout) -> None:
        logger.debug("Rendering workout {} ({})", workout.id, workout.description)
        self.view.render_workout(workout)
        self.map_view.add_marker(
            Marker(
                coordinates=workout.coordinates,
                popup_text=popup_text(workout),
                css_class=f"{workout.type}-popup",
            )
        )
