from __future__ import annotations

import json
from datetime import datetime
from typing import TYPE_CHECKING

from loguru import logger

from workout_mapper.workouts import CyclingStats, RunningStats, Workout

if TYPE_CHECKING:
    from collections.abc import Iterator

STORAGE_KEY = "workouts"


def _encode(workout: Workout) -> dict:
    data = {
        "id": workout.id,
        "date": workout.created_at.isoformat(),
        "type": workout.type,
        "distance": workout.distance,
        "duration": workout.duration,
        "coords": list(workout.coordinates),
        "description": workout.description,
    }
    stats = workout.stats
    if isinstance(stats, RunningStats):
        data["cadence"] = stats.cadence
        data["pace"] = stats.pace
    else:
        data["elevationGain"] = stats.elevation_gain
        data["speed"] = stats.speed
    return data


def _decode_running(data: dict) -> RunningStats:
    return RunningStats(cadence=float(data["cadence"]), pace=float(data["pace"]))


def _decode_cycling(data: dict) -> CyclingStats:
    return CyclingStats(elevation_gain=float(data["elevationGain"]), speed=float(data["speed"]))


_STATS_DECODERS = {
    "running": _decode_running,
    "cycling": _decode_cycling,
}


def _decode(data: dict) -> Workout:
    """Re-hydrate one record. Stored derived values are kept as-is, never recomputed."""
    decoder = _STATS_DECODERS.get(data.get("type"))
    if decoder is None:
        raise ValueError(f"Unknown workout type: {data.get('type')!r}")
    lat, lon = data["coords"]
    return Workout(
        id=str(data["id"]),
        created_at=datetime.fromisoformat(data["date"]),
        type=data["type"],
        distance=float(data["distance"]),
        duration=float(data["duration"]),
        coordinates=(float(lat), float(lon)),
        description=str(data["description"]),
        stats=decoder(data),
    )


class WorkoutStore:
    """Insertion-ordered collection of workouts. There is no per-item delete."""

    def __init__(self) -> None:
        self._workouts: list[Workout] = []

    def __len__(self) -> int:
        return len(self._workouts)

    def __iter__(self) -> Iterator[Workout]:
        return iter(tuple(self._workouts))

    def append(self, workout: Workout) -> None:
        self._workouts.append(workout)

    def all(self) -> tuple[Workout, ...]:
        return tuple(self._workouts)

    def find(self, workout_id: str) -> Workout | None:
        return next((w for w in self._workouts if w.id == workout_id), None)

    def clear(self) -> None:
        self._workouts.clear()

    def serialize(self) -> str:
        return json.dumps([_encode(w) for w in self._workouts])

    def load(self, blob: str | bytes | None) -> tuple[Workout, ...]:
        """
        Replace the contents with the records decoded from ``blob``.
        Anything unreadable yields an empty store; this is logged, not raised.
        """
        self._workouts.clear()
        if not blob:
            return ()

        try:
            records = json.loads(blob)
            if not isinstance(records, list):
                raise TypeError(f"expected a list, got {type(records).__name__}")
            restored = [_decode(r) for r in records]
        except (ValueError, TypeError, KeyError, AttributeError, RecursionError) as e:
            logger.warning("Discarding unreadable persisted workouts: {}: {}", type(e).__name__, e)
            return ()

        self._workouts.extend(restored)
        logger.debug("Restored {} workouts from storage", len(restored))
        return tuple(restored)
