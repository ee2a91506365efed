"""
Recorded path playback.

Scrubs one subject's recorded waypoint path at 1x/2x/4x. The playhead is a
fraction of the path's recorded duration; the location under it is sampled
from an interpolation run over the waypoint segment that contains it.
"""

import bisect
import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

from backend.app.core.exceptions import (
    InvalidPlaybackPathError, InvalidPlaybackSpeedError, PlaybackStateError
)
from backend.app.schemas.geo import Coordinates
from backend.app.schemas.playback import PlaybackLocation, PlaybackState
from backend.app.services.interpolation import MotionInterpolator

logger = logging.getLogger("fleetops.playback")

DEFAULT_SPEEDS = (1, 2, 4)


class PlaybackStatus(str, enum.Enum):
    """Playback state machine."""
    IDLE = "IDLE"  # No subject selected
    PAUSED = "PAUSED"  # Subject selected, playhead held
    PLAYING = "PLAYING"  # Playhead advancing


@dataclass
class PlaybackSession:
    subject_id: str
    waypoints: Tuple[PlaybackLocation, ...]
    offsets: Tuple[float, ...]  # seconds since the first waypoint
    segment_runs: Tuple[int, ...]  # interpolation run id per segment
    speed: int
    position: float = 0.0
    running: bool = False
    last_advance: Optional[float] = field(default=None)

    @property
    def total_duration(self) -> float:
        return self.offsets[-1]


class PlaybackController:
    """
    Single-session playback state machine.

    Selecting a new subject discards the previous session wholesale; every
    operation except select() requires a selected subject.
    """

    def __init__(self, speeds: Sequence[int] = DEFAULT_SPEEDS,
                 time_fn: Callable[[], float] = time.monotonic):
        self.speeds = tuple(speeds)
        self._time_fn = time_fn
        self._interpolator = MotionInterpolator()
        self._session: Optional[PlaybackSession] = None

    @property
    def status(self) -> PlaybackStatus:
        if self._session is None:
            return PlaybackStatus.IDLE
        return PlaybackStatus.PLAYING if self._session.running else PlaybackStatus.PAUSED

    @property
    def position(self) -> float:
        return self._session.position if self._session else 0.0

    @property
    def speed(self) -> int:
        return self._session.speed if self._session else self.speeds[0]

    def _require_session(self, operation: str) -> PlaybackSession:
        if self._session is None:
            raise PlaybackStateError(operation, PlaybackStatus.IDLE.value)
        return self._session

    def select(self, subject_id: str, waypoints: Sequence[PlaybackLocation]) -> PlaybackState:
        if not waypoints:
            raise InvalidPlaybackPathError(subject_id)
        self.close()

        ordered = tuple(sorted(waypoints, key=lambda w: w.recorded_at))
        origin = ordered[0].recorded_at
        offsets = tuple((w.recorded_at - origin).total_seconds() for w in ordered)

        runs: List[int] = []
        for i in range(len(ordered) - 1):
            run = self._interpolator.create(
                start=Coordinates(lat=ordered[i].latitude, lng=ordered[i].longitude),
                end=Coordinates(lat=ordered[i + 1].latitude, lng=ordered[i + 1].longitude),
                start_time=offsets[i],
                duration=offsets[i + 1] - offsets[i],
            )
            runs.append(run.id)

        self._session = PlaybackSession(
            subject_id=subject_id,
            waypoints=ordered,
            offsets=offsets,
            segment_runs=tuple(runs),
            speed=self.speeds[0],
        )
        logger.info("Playback session for %s (%d waypoints, %.0fs)",
                    subject_id, len(ordered), offsets[-1])
        return self.state()

    def close(self) -> None:
        if self._session is not None:
            logger.info("Closing playback session for %s", self._session.subject_id)
        self._session = None
        self._interpolator.clear()

    def play(self, now: Optional[float] = None) -> None:
        session = self._require_session("play")
        if session.running:
            return
        if session.position >= 1.0:
            session.position = 0.0
        session.running = True
        session.last_advance = self._time_fn() if now is None else now

    def pause(self, now: Optional[float] = None) -> None:
        session = self._require_session("pause")
        if session.running:
            self.advance(now)
        session.running = False
        session.last_advance = None

    def restart(self) -> None:
        session = self._require_session("restart")
        session.position = 0.0
        session.running = False
        session.last_advance = None

    def set_speed(self, multiplier: int) -> None:
        session = self._require_session("set speed")
        if multiplier not in self.speeds:
            raise InvalidPlaybackSpeedError(multiplier, self.speeds)
        session.speed = multiplier

    def cycle_speed(self) -> int:
        session = self._require_session("cycle speed")
        index = self.speeds.index(session.speed) if session.speed in self.speeds else -1
        session.speed = self.speeds[(index + 1) % len(self.speeds)]
        return session.speed

    def advance(self, now: Optional[float] = None) -> float:
        """Move the playhead by real elapsed time × speed; auto-pauses at the end."""
        session = self._session
        if session is None or not session.running:
            return self.position
        now = self._time_fn() if now is None else now
        elapsed = max(0.0, now - session.last_advance)
        session.last_advance = now

        if session.total_duration <= 0:
            session.position = 1.0
        else:
            step = session.speed * elapsed / session.total_duration
            session.position = min(1.0, max(0.0, session.position + step))

        if session.position >= 1.0:
            session.position = 1.0
            session.running = False
            session.last_advance = None
            logger.info("Playback for %s completed", session.subject_id)
        return session.position

    def _playhead(self, session: PlaybackSession) -> float:
        return session.position * session.total_duration

    def current_index(self) -> int:
        session = self._session
        if session is None:
            return 0
        index = bisect.bisect_right(session.offsets, self._playhead(session)) - 1
        return min(max(index, 0), len(session.waypoints) - 1)

    def current_location(self) -> Optional[Coordinates]:
        session = self._session
        if session is None:
            return None
        if not session.segment_runs:
            only = session.waypoints[0]
            return Coordinates(lat=only.latitude, lng=only.longitude)
        segment = min(self.current_index(), len(session.segment_runs) - 1)
        return self._interpolator.position_at(session.segment_runs[segment], self._playhead(session))

    def state(self) -> PlaybackState:
        session = self._session
        if session is None:
            return PlaybackState(status=PlaybackStatus.IDLE.value, speed=self.speed)
        return PlaybackState(
            status=self.status.value,
            subject_id=session.subject_id,
            position=session.position,
            progress=session.position * 100,
            speed=session.speed,
            waypoint_count=len(session.waypoints),
            current_index=self.current_index(),
            current_location=self.current_location(),
        )
