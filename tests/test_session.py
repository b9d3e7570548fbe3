from __future__ import annotations

import asyncio
from concurrent.futures import Future

import pytest

from workout_mapper.geo import Bounds
from workout_mapper.location import PermissionDenied
from workout_mapper.session import (
    PERMISSION_MESSAGE,
    AwaitingLocation,
    FormOpen,
    FormSubmitted,
    Idle,
    InvalidTransition,
    LocationAcquired,
    LocationReady,
    MapClicked,
    Rendered,
    ResetRequested,
    ShowAllRequested,
    StartRequested,
    WorkoutSelected,
)
from workout_mapper.store import STORAGE_KEY, WorkoutStore
from workout_mapper.workouts import INVALID_INPUT_MESSAGE, WorkoutForm

RUN_FORM = WorkoutForm(type="running", distance="5", duration="30", cadence="180")
RIDE_FORM = WorkoutForm(type="cycling", distance="20", duration="60", elevation="300")


def started(make_session, **kwargs):
    session = make_session(**kwargs)
    asyncio.run(session.start())
    return session


def add_workout(session, coords, form=RUN_FORM):
    session.dispatch(MapClicked(coords))
    return session.dispatch(FormSubmitted(form))


def test_initial_state_is_idle(make_session):
    assert make_session().state == Idle()


def test_start_centers_map_on_location(make_session, map_view, view, home):
    session = started(make_session)
    assert session.state == LocationReady()
    assert map_view.calls == [("set_view", home, 13)]
    assert view.show_all_visible is False
    assert view.alerts == []


def test_start_goes_through_awaiting_location(make_session):
    session = make_session()
    assert session.dispatch(StartRequested()) == AwaitingLocation()
    assert session.dispatch(LocationAcquired((1.0, 2.0))) == LocationReady()


def test_permission_denied_stays_idle_and_blocks_map(make_session, view, map_view, denied_location):
    session = started(make_session, location=denied_location)
    assert session.state == Idle()
    assert view.alerts == [PERMISSION_MESSAGE]
    assert session.map_unavailable
    assert map_view.calls == []

    with pytest.raises(InvalidTransition):
        session.dispatch(MapClicked((1.0, 1.0)))
    with pytest.raises(InvalidTransition):
        session.dispatch(StartRequested())


def test_map_click_opens_form_with_coordinates(make_session, view):
    session = started(make_session)
    state = session.dispatch(MapClicked((48.0, 2.0)))
    assert state == FormOpen(selected_coordinates=(48.0, 2.0))
    assert view.form_visible


def test_map_click_before_location_is_invalid(make_session):
    session = make_session()
    with pytest.raises(InvalidTransition):
        session.dispatch(MapClicked((1.0, 1.0)))
    assert session.state == Idle()


def test_submit_creates_renders_and_persists(make_session, view, map_view, storage):
    session = started(make_session)
    state = add_workout(session, (48.0, 2.0))

    assert state == Rendered()
    (workout,) = session.store.all()
    assert workout.coordinates == (48.0, 2.0)
    assert workout.pace == 6.0
    assert view.cards == [workout]
    assert not view.form_visible
    assert view.show_all_visible
    assert [m.coordinates for m in map_view.markers] == [(48.0, 2.0)]
    assert map_view.markers[0].css_class == "running-popup"
    assert workout.id in storage.get(STORAGE_KEY)


def test_invalid_submit_keeps_form_open(make_session, view, storage):
    session = started(make_session)
    session.dispatch(MapClicked((48.0, 2.0)))
    bad = WorkoutForm(type="running", distance="-1", duration="30", cadence="180")

    state = session.dispatch(FormSubmitted(bad))

    assert state == FormOpen(selected_coordinates=(48.0, 2.0))
    assert view.alerts == [INVALID_INPUT_MESSAGE]
    assert view.form_visible
    assert view.form_resets == 0
    assert session.store.all() == ()
    assert storage.get(STORAGE_KEY) is None


def test_submit_outside_form_is_invalid(make_session):
    session = started(make_session)
    with pytest.raises(InvalidTransition):
        session.dispatch(FormSubmitted(RUN_FORM))


def test_show_all_button_revealed_once(make_session, view):
    session = started(make_session)
    add_workout(session, (10.0, 10.0))
    view.show_all_visible = False  # pretend the UI hid it
    add_workout(session, (20.0, 20.0), RIDE_FORM)
    assert view.show_all_visible is False


def test_select_workout_flies_to_it(make_session, map_view):
    session = started(make_session)
    add_workout(session, (10.0, 10.0))
    workout = session.store.all()[0]

    session.dispatch(WorkoutSelected(workout.id))
    assert map_view.calls[-1] == ("fly_to", (10.0, 10.0), 13)

    before = list(map_view.calls)
    session.dispatch(WorkoutSelected("missing"))
    assert map_view.calls == before


def test_show_all_fits_bounds(make_session, map_view):
    session = started(make_session)
    add_workout(session, (10.0, 10.0))
    add_workout(session, (20.0, 20.0), RIDE_FORM)

    session.dispatch(ShowAllRequested())

    name, bounds = map_view.calls[-1]
    assert name == "fit_bounds"
    assert bounds == Bounds(south=10.0, west=10.0, north=20.0, east=20.0)
    assert bounds.contains((10.0, 10.0)) and bounds.contains((20.0, 20.0))
    assert not bounds.contains((90.0, 90.0))


def test_show_all_with_no_workouts_is_a_noop(make_session, map_view):
    session = started(make_session)
    session.dispatch(ShowAllRequested())
    assert [c[0] for c in map_view.calls] == ["set_view"]


def test_restore_renders_saved_workouts_without_validation(
    make_session, storage, view, map_view, factory
):
    previous = WorkoutStore()
    previous.append(factory.create("running", 5, 30, (10.0, 10.0), 180))
    previous.append(factory.create("cycling", 20, 60, (20.0, 20.0), -40))
    storage.set(STORAGE_KEY, previous.serialize())

    session = started(make_session)

    assert [w.id for w in session.store.all()] == [w.id for w in previous.all()]
    assert [w.id for w in view.cards] == [w.id for w in previous.all()]
    assert len(map_view.markers) == 2
    assert view.show_all_visible


def test_corrupt_storage_starts_empty_without_alert(make_session, storage, view):
    storage.set(STORAGE_KEY, "{broken")
    session = started(make_session)
    assert session.state == LocationReady()
    assert session.store.all() == ()
    assert view.alerts == []
    assert view.show_all_visible is False


def test_reset_clears_everything(make_session, storage, view, map_view):
    session = started(make_session)
    add_workout(session, (10.0, 10.0))

    state = session.dispatch(ResetRequested())

    assert state == Idle()
    assert storage.get(STORAGE_KEY) is None
    assert session.store.all() == ()
    assert view.cards == []
    assert map_view.markers == []
    assert view.show_all_visible is False

    # a fresh start loads nothing
    asyncio.run(session.start())
    assert session.state == LocationReady()
    assert session.store.all() == ()
    assert view.show_all_visible is False


def test_reset_after_denial_allows_a_new_start(make_session, denied_location):
    session = started(make_session, location=denied_location)
    session.reset()
    assert not session.map_unavailable
    assert session.dispatch(StartRequested()) == AwaitingLocation()


def test_persisted_workouts_survive_a_new_session(make_session, factory):
    first = started(make_session)
    add_workout(first, (10.0, 10.0))
    add_workout(first, (20.0, 20.0), RIDE_FORM)

    second = started(make_session, store=WorkoutStore())
    assert [w.id for w in second.store.all()] == [w.id for w in first.store.all()]


def test_map_enabled_only_while_a_position_is_known(make_session, view, denied_location):
    session = make_session()
    session.dispatch(StartRequested())
    assert view.map_enabled is False
    session.dispatch(LocationAcquired((1.0, 2.0)))
    assert view.map_enabled is True
    session.reset()
    assert view.map_enabled is False

    refused = started(make_session, location=denied_location)
    assert refused.map_unavailable
    assert view.map_enabled is False


def test_complete_start_with_coordinates(make_session, map_view, home):
    session = make_session()
    session.dispatch(StartRequested())
    assert session.complete_start(home) == LocationReady()
    assert map_view.calls == [("set_view", home, 13)]


def test_complete_start_with_location_error(make_session, view):
    session = make_session()
    session.dispatch(StartRequested())
    assert session.complete_start(error=PermissionDenied("nope")) == Idle()
    assert view.alerts == [PERMISSION_MESSAGE]
    assert session.map_unavailable


def test_unexpected_location_failure_counts_as_denial(make_session, view):
    session = make_session()
    session.dispatch(StartRequested())
    assert session.complete_start(error=RuntimeError("dbus went away")) == Idle()
    assert view.alerts == [PERMISSION_MESSAGE]
    assert session.map_unavailable


def test_finish_location_request_from_a_thread_future(make_session, view, home):
    ok = make_session()
    ok.dispatch(StartRequested())
    fut = Future()
    fut.set_result(home)
    assert ok.finish_location_request(fut) == LocationReady()

    broken = make_session()
    broken.dispatch(StartRequested())
    failed = Future()
    failed.set_exception(OSError("geoclue unavailable"))
    assert broken.finish_location_request(failed) == Idle()
    assert view.alerts == [PERMISSION_MESSAGE]


def test_start_survives_a_provider_crash(make_session, view):
    class Crashing:
        async def request_current_position(self):
            raise RuntimeError("boom")

    session = started(make_session, location=Crashing())
    assert session.state == Idle()
    assert view.alerts == [PERMISSION_MESSAGE]


def test_deeply_nested_storage_blob_starts_empty(make_session, storage, view):
    storage.set(STORAGE_KEY, "[" * 100_000 + "]" * 100_000)
    session = started(make_session)
    assert session.state == LocationReady()
    assert session.store.all() == ()
    assert view.alerts == []


def test_second_map_click_recaptures_coordinates(make_session):
    session = started(make_session)
    session.dispatch(MapClicked((1.0, 1.0)))
    assert session.dispatch(MapClicked((2.0, 3.0))) == FormOpen(selected_coordinates=(2.0, 3.0))

    session.dispatch(FormSubmitted(RUN_FORM))
    assert session.store.all()[0].coordinates == (2.0, 3.0)


def test_select_and_show_all_keep_the_form_open(make_session, map_view):
    session = started(make_session)
    add_workout(session, (10.0, 10.0))
    workout = session.store.all()[0]
    session.dispatch(MapClicked((5.0, 5.0)))
    form_state = FormOpen(selected_coordinates=(5.0, 5.0))

    assert session.dispatch(WorkoutSelected(workout.id)) == form_state
    assert map_view.calls[-1] == ("fly_to", (10.0, 10.0), 13)
    assert session.dispatch(ShowAllRequested()) == form_state
    assert map_view.calls[-1][0] == "fit_bounds"


@pytest.mark.parametrize("event", [WorkoutSelected("1234567890"), ShowAllRequested()])
def test_map_commands_rejected_after_denial(make_session, map_view, denied_location, event):
    session = started(make_session, location=denied_location)
    with pytest.raises(InvalidTransition):
        session.dispatch(event)
    assert session.state == Idle()
    assert map_view.calls == []
