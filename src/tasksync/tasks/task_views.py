# src/tasksync/tasks/task_views.py

"""Read-only views over a task collection (ordering, filtering, proximity)."""

from __future__ import annotations

import math
from collections.abc import Iterable

from .task_models import Task, parse_date

EARTH_RADIUS_KM = 6371.0


def _date_key(task: Task) -> tuple[int, float]:
    # Unparseable dates sort last instead of breaking the whole list.
    try:
        dt = parse_date(task.date)
    except ValueError:
        return (1, 0.0)
    if dt.tzinfo is None:
        dt = dt.astimezone()
    return (0, dt.timestamp())


def sort_by_date(tasks: Iterable[Task]) -> list[Task]:
    """Earliest due date first."""
    return sorted(tasks, key=_date_key)


def sort_pending_first(tasks: Iterable[Task]) -> list[Task]:
    """Not-done tasks on top, done at the bottom; order within each group is kept."""
    return sorted(tasks, key=lambda t: t.is_done)


def filter_by_place(tasks: Iterable[Task], place: str | None) -> list[Task]:
    """Empty or None place means no filter."""
    if not place:
        return list(tasks)
    return [t for t in tasks if t.place == place]


def unique_places(tasks: Iterable[Task]) -> list[str]:
    """Distinct places in first-seen order."""
    seen: dict[str, None] = {}
    for t in tasks:
        seen.setdefault(t.place, None)
    return list(seen)


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in kilometres."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def nearest_task(tasks: Iterable[Task], latitude: float, longitude: float) -> tuple[Task, float] | None:
    """Closest task that has coordinates, with its distance in km; None if no task has any."""
    best: tuple[Task, float] | None = None
    for t in tasks:
        if not t.has_location:
            continue
        dist = haversine_km(latitude, longitude, t.latitude, t.longitude)  # type: ignore[arg-type]
        if best is None or dist < best[1]:
            best = (t, dist)
    return best
