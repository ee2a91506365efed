"""
Demo simulation controller.

Runs a batch of synthetic driver motions on the shared tick clock. The
controller is the only owner of its run registry; everything it hands out
is a read-only value.
"""

import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from backend.app.core.exceptions import InvalidSimulationConfigError
from backend.app.schemas.geo import Coordinates
from backend.app.schemas.simulation import SimulatedPosition, SimulationConfig, SimulationState
from backend.app.services.interpolation import InterpolationRun, MotionInterpolator

logger = logging.getLogger("fleetops.simulation")

PositionListener = Callable[[int, List[SimulatedPosition]], None]


def parse_simulation_config(raw: Union[SimulationConfig, Mapping[str, Any]]) -> SimulationConfig:
    """Validate one config; raises InvalidSimulationConfigError."""
    if isinstance(raw, SimulationConfig):
        return raw
    try:
        return SimulationConfig.model_validate(raw)
    except ValidationError as exc:
        entity_id = raw.get("entity_id") if isinstance(raw, Mapping) else None
        raise InvalidSimulationConfigError(
            f"{exc.error_count()} validation error(s)", entity_id=entity_id
        ) from exc


class SimulationController:
    """
    Owns the active simulation batch.

    Progress is the mean completion of every run in the batch, with finished
    runs counting as complete, so it never decreases while the batch lives.
    """

    def __init__(self, time_fn: Callable[[], float] = time.monotonic):
        self._time_fn = time_fn
        self._interpolator = MotionInterpolator()
        self._active: Dict[str, InterpolationRun] = {}
        self._finished: Dict[str, SimulatedPosition] = {}
        self._listeners: List[PositionListener] = []
        self.generation = 0
        self.progress = 0.0
        self.last_tick: Optional[float] = None

    @property
    def is_simulating(self) -> bool:
        return bool(self._active)

    @property
    def active_count(self) -> int:
        return len(self._active)

    @property
    def finished_count(self) -> int:
        return len(self._finished)

    def is_current(self, generation: int) -> bool:
        return generation == self.generation

    def add_listener(self, listener: PositionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def start(self, configs: Iterable[Union[SimulationConfig, Mapping[str, Any]]],
              now: Optional[float] = None) -> int:
        """Replace the batch with one run per valid config; returns the run count."""
        valid: Dict[str, SimulationConfig] = {}
        for raw in configs:
            try:
                config = parse_simulation_config(raw)
            except InvalidSimulationConfigError as exc:
                logger.warning("Skipping simulation config: %s", exc.message, extra=exc.details)
                continue
            valid[config.entity_id] = config

        if not valid:
            logger.info("No valid simulation configs, keeping current batch")
            return 0

        now = self._time_fn() if now is None else now
        self._cancel_all()
        self.generation += 1
        for entity_id, config in valid.items():
            self._active[entity_id] = self._interpolator.create(
                start=config.start_location,
                end=config.end_location,
                start_time=now,
                duration=config.duration_seconds,
            )
        logger.info("Started simulation batch %d with %d drivers", self.generation, len(valid))
        return len(valid)

    def tick(self, now: Optional[float] = None) -> List[SimulatedPosition]:
        """Advance every active run to ``now`` and recompute progress."""
        if not self._active:
            return []
        now = self._time_fn() if now is None else now
        self.last_tick = now

        positions: List[SimulatedPosition] = []
        for entity_id, run in list(self._active.items()):
            sample = self._sample(entity_id, run, now)
            positions.append(sample)
            if sample.finished:
                self._finished[entity_id] = sample
                del self._active[entity_id]
                self._interpolator.remove(run.id)

        fractions = [p.fraction for p in positions if not p.finished]
        fractions.extend(1.0 for _ in self._finished)
        if fractions:
            self.progress = max(self.progress, sum(fractions) / len(fractions) * 100)

        if not self._active:
            logger.info("Simulation batch %d complete", self.generation)

        generation = self.generation
        for listener in list(self._listeners):
            try:
                listener(generation, positions)
            except Exception:
                logger.exception("Simulation position listener failed")
        return positions

    def stop(self) -> None:
        """Hard-cancel every run; nothing from this batch is emitted afterwards."""
        if self._active or self._finished:
            logger.info("Stopping simulation batch %d", self.generation)
        self._cancel_all()
        self.generation += 1

    def clear_finished(self) -> None:
        self._finished.clear()

    def _cancel_all(self) -> None:
        self._active.clear()
        self._finished.clear()
        self._interpolator.clear()
        self.progress = 0.0
        self.last_tick = None

    @staticmethod
    def _sample(entity_id: str, run: InterpolationRun, now: float) -> SimulatedPosition:
        return SimulatedPosition(
            entity_id=entity_id,
            run_id=run.id,
            position=run.position_at(now),
            fraction=run.fraction_at(now),
            finished=run.is_complete(now),
        )

    def positions(self, now: Optional[float] = None) -> List[SimulatedPosition]:
        """Current positions: live runs sampled at ``now`` plus retained finished ones."""
        now = self._time_fn() if now is None else now
        live = [self._sample(entity_id, run, now) for entity_id, run in self._active.items()]
        return live + list(self._finished.values())

    def position_for(self, entity_id: str, now: Optional[float] = None) -> Optional[Coordinates]:
        run = self._active.get(entity_id)
        if run is not None:
            return run.position_at(self._time_fn() if now is None else now)
        finished = self._finished.get(entity_id)
        return finished.position if finished is not None else None

    def state(self, now: Optional[float] = None) -> SimulationState:
        return SimulationState(
            is_simulating=self.is_simulating,
            progress=self.progress,
            generation=self.generation,
            active_runs=self.active_count,
            finished_runs=self.finished_count,
            positions=self.positions(now),
            last_tick=self.last_tick,
        )
