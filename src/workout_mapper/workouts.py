from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Literal, Union

if TYPE_CHECKING:
    from collections.abc import Callable

    from workout_mapper.geo import Coordinates

Sport = Literal["running", "cycling"]
SPORTS: tuple[Sport, ...] = ("running", "cycling")

MONTHS = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)
ICONS = {"running": "🏃‍♂️", "cycling": "🚴‍♀️"}

INVALID_INPUT_MESSAGE = "Inputs have to be positive numbers!"


class WorkoutError(Exception):
    pass


class ValidationError(WorkoutError):
    """Raised when form values are not finite or not positive where required."""

    def __init__(self, message: str = INVALID_INPUT_MESSAGE, *, field: str | None = None):
        super().__init__(message)
        self.field = field


@dataclass(frozen=True)
class RunningStats:
    cadence: float  # steps/min
    pace: float  # min/km


@dataclass(frozen=True)
class CyclingStats:
    elevation_gain: float  # meters, may be negative
    speed: float  # km/h


Stats = Union[RunningStats, CyclingStats]


@dataclass(frozen=True)
class Workout:
    id: str
    created_at: datetime
    type: Sport
    distance: float  # km
    duration: float  # minutes
    coordinates: Coordinates
    description: str
    stats: Stats

    @property
    def pace(self) -> float | None:
        return self.stats.pace if isinstance(self.stats, RunningStats) else None

    @property
    def speed(self) -> float | None:
        return self.stats.speed if isinstance(self.stats, CyclingStats) else None

    @property
    def cadence(self) -> float | None:
        return self.stats.cadence if isinstance(self.stats, RunningStats) else None

    @property
    def elevation_gain(self) -> float | None:
        return self.stats.elevation_gain if isinstance(self.stats, CyclingStats) else None


def workout_id(created_at: datetime) -> str:
    """Last 10 digits of the creation time in epoch milliseconds."""
    ms = int(created_at.timestamp() * 1000)
    return str(ms)[-10:]


def describe(sport: str, created_at: datetime) -> str:
    return f"{sport[:1].upper()}{sport[1:]} on {MONTHS[created_at.month - 1]} {created_at.day}"


def _all_finite(*values: float) -> bool:
    return all(isinstance(v, (int, float)) and math.isfinite(v) for v in values)


def _all_positive(*values: float) -> bool:
    return all(v > 0 for v in values)


def _local_now() -> datetime:
    return datetime.now().astimezone()


class WorkoutFactory:
    def __init__(self, clock: Callable[[], datetime] = _local_now):
        self.clock = clock

    def create(
        self,
        sport: str,
        distance: float,
        duration: float,
        coordinates: Coordinates,
        extra: float,
    ) -> Workout:
        """
        Validate the raw numbers and build an immutable workout.

        ``extra`` is the cadence for running and the elevation gain for cycling.
        Cycling only requires the elevation gain to be finite; its sign is not checked.
        """
        if sport not in SPORTS:
            raise ValidationError(f"Unknown workout type: {sport!r}", field="type")
        if not _all_finite(distance, duration, extra):
            raise ValidationError()

        if sport == "running":
            if not _all_positive(distance, duration, extra):
                raise ValidationError()
            stats: Stats = RunningStats(cadence=extra, pace=duration / distance)
        else:
            if not _all_positive(distance, duration):
                raise ValidationError()
            stats = CyclingStats(elevation_gain=extra, speed=distance / (duration / 60))

        created_at = self.clock()
        lat, lon = coordinates
        return Workout(
            id=workout_id(created_at),
            created_at=created_at,
            type=sport,
            distance=distance,
            duration=duration,
            coordinates=(float(lat), float(lon)),
            description=describe(sport, created_at),
            stats=stats,
        )


# ---------- Form input ----------


def parse_number(raw: str | None) -> float:
    """
    Coerce a form field the way a browser number input does:
    blank -> 0.0, anything unparseable -> NaN.
    """
    text = (raw or "").strip()
    if not text:
        return 0.0
    try:
        return float(text)
    except ValueError:
        return math.nan


@dataclass(frozen=True)
class WorkoutForm:
    """Raw field values as typed by the user."""
    type: str
    distance: str = ""
    duration: str = ""
    cadence: str = ""
    elevation: str = ""

    def extra_field(self) -> str:
        return self.cadence if self.type == "running" else self.elevation


def create_from_form(factory: WorkoutFactory, form: WorkoutForm, coordinates: Coordinates) -> Workout:
    return factory.create(
        form.type,
        parse_number(form.distance),
        parse_number(form.duration),
        coordinates,
        parse_number(form.extra_field()),
    )


# ---------- Display helpers ----------


def _format_number(v: float) -> str:
    v = float(v)
    return str(int(v)) if v.is_integer() else f"{v:g}"


def popup_text(workout: Workout) -> str:
    return f"{ICONS[workout.type]} {workout.description}"


def card_rows(workout: Workout) -> list[tuple[str, str, str]]:
    """(icon, value, unit) rows for a workout summary card."""
    rows = [
        (ICONS[workout.type], _format_number(workout.distance), "km"),
        ("⏱", _format_number(workout.duration), "min"),
    ]
    stats = workout.stats
    if isinstance(stats, RunningStats):
        rows.append(("⚡️", f"{stats.pace:.1f}", "min/km"))
        rows.append(("🦶", _format_number(stats.cadence), "spm"))
    else:
        rows.append(("⚡️", f"{stats.speed:.1f}", "km/h"))
        rows.append(("⛰", _format_number(stats.elevation_gain), "m"))
    return rows
