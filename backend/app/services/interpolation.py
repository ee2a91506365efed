"""
Motion interpolation.

An InterpolationRun is a pure function of time: sampling it never mutates
it, so a map marker and a progress readout can read the same run without
diverging.
"""

import itertools
from dataclasses import dataclass
from typing import Dict, Iterator, Optional

from backend.app.schemas.geo import Coordinates


def lerp(start: Coordinates, end: Coordinates, fraction: float) -> Coordinates:
    """Linear interpolation of latitude and longitude independently."""
    return Coordinates(
        lat=start.lat + (end.lat - start.lat) * fraction,
        lng=start.lng + (end.lng - start.lng) * fraction,
    )


@dataclass(frozen=True)
class InterpolationRun:
    """One synthetic motion from start to end over a fixed duration."""
    id: int
    start: Coordinates
    end: Coordinates
    start_time: float
    duration: float

    @property
    def end_time(self) -> float:
        return self.start_time + self.duration

    def fraction_at(self, now: float) -> float:
        if now >= self.end_time or self.duration <= 0:
            return 1.0
        if now <= self.start_time:
            return 0.0
        return (now - self.start_time) / self.duration

    def is_complete(self, now: float) -> bool:
        return now >= self.end_time

    def position_at(self, now: float) -> Coordinates:
        if now >= self.end_time:
            return self.end
        if now <= self.start_time:
            return self.start
        return lerp(self.start, self.end, self.fraction_at(now))


class MotionInterpolator:
    """
    Registry of live interpolation runs.

    Ids are handed out monotonically and never reused, so a cancelled run
    cannot be confused with its replacement.
    """

    def __init__(self):
        self._ids = itertools.count(1)
        self._runs: Dict[int, InterpolationRun] = {}

    def __len__(self) -> int:
        return len(self._runs)

    def __iter__(self) -> Iterator[InterpolationRun]:
        return iter(list(self._runs.values()))

    def __contains__(self, run_id: int) -> bool:
        return run_id in self._runs

    def create(self, start: Coordinates, end: Coordinates, start_time: float, duration: float) -> InterpolationRun:
        if duration < 0:
            raise ValueError("duration must not be negative")
        run = InterpolationRun(
            id=next(self._ids),
            start=start,
            end=end,
            start_time=start_time,
            duration=duration,
        )
        self._runs[run.id] = run
        return run

    def get(self, run_id: int) -> Optional[InterpolationRun]:
        return self._runs.get(run_id)

    def remove(self, run_id: int) -> Optional[InterpolationRun]:
        return self._runs.pop(run_id, None)

    def clear(self) -> None:
        self._runs.clear()

    def position_at(self, run_id: int, now: float) -> Optional[Coordinates]:
        run = self._runs.get(run_id)
        return run.position_at(now) if run is not None else None
