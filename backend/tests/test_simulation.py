"""
Demo Simulation Tests.

Covers batch replacement, monotonic progress, and hard cancellation.
"""

import pytest

from backend.app.core.exceptions import InvalidSimulationConfigError
from backend.app.schemas.geo import Coordinates
from backend.app.services.simulation import SimulationController, parse_simulation_config


def config(entity_id, duration=10.0, start=(0.0, 0.0), end=(10.0, 10.0)):
    return {
        "entity_id": entity_id,
        "start_location": {"lat": start[0], "lng": start[1]},
        "end_location": {"lat": end[0], "lng": end[1]},
        "duration_seconds": duration,
    }


@pytest.fixture
def controller(fake_clock):
    return SimulationController(time_fn=fake_clock)


def test_start_creates_one_run_per_config(controller):
    count = controller.start([config("d1"), config("d2")])
    assert count == 2
    assert controller.is_simulating
    assert controller.active_count == 2
    assert controller.generation == 1


def test_invalid_configs_are_skipped(controller):
    count = controller.start([
        config("d1"),
        config("d2", duration=0),
        {"entity_id": "d3", "start_location": {"lat": 200, "lng": 0}},
    ])
    assert count == 1
    assert controller.active_count == 1


def test_all_invalid_is_a_noop(controller):
    controller.start([config("d1")])
    generation = controller.generation
    assert controller.start([config("bad", duration=-5)]) == 0
    assert controller.generation == generation
    assert controller.active_count == 1


def test_parse_rejects_bad_config():
    with pytest.raises(InvalidSimulationConfigError) as exc_info:
        parse_simulation_config(config("d1", duration=0))
    assert exc_info.value.status_code == 422
    assert exc_info.value.details["entity_id"] == "d1"


def test_second_start_replaces_batch(controller, fake_clock):
    controller.start([config("d1"), config("d2")])
    fake_clock.advance(5)
    controller.tick()

    controller.start([config("d3")])
    assert controller.active_count == 1
    assert controller.progress == 0.0
    assert controller.position_for("d1") is None
    assert controller.position_for("d3") == Coordinates(lat=0.0, lng=0.0)


def test_duplicate_entity_last_config_wins(controller, fake_clock):
    controller.start([config("d1", end=(1.0, 1.0)), config("d1", end=(2.0, 2.0))])
    assert controller.active_count == 1
    fake_clock.advance(10)
    controller.tick()
    assert controller.position_for("d1") == Coordinates(lat=2.0, lng=2.0)


def test_progress_is_monotonic_and_reaches_100(controller, fake_clock):
    controller.start([config("short", duration=2), config("long", duration=10)])
    readings = []
    for _ in range(12):
        fake_clock.advance(1)
        controller.tick()
        readings.append(controller.progress)

    assert readings == sorted(readings)
    assert readings[-1] == pytest.approx(100.0)
    assert not controller.is_simulating


def test_progress_counts_finished_runs_as_complete(controller, fake_clock):
    controller.start([config("short", duration=2), config("long", duration=10)])
    fake_clock.advance(2)
    controller.tick()
    # short done (1.0), long at 0.2
    assert controller.progress == pytest.approx(60.0)
    assert controller.finished_count == 1


def test_finished_runs_keep_final_position(controller, fake_clock):
    controller.start([config("d1", duration=4, end=(4.0, 8.0))])
    fake_clock.advance(4)
    positions = controller.tick()
    assert positions[0].finished is True
    assert not controller.is_simulating
    assert controller.position_for("d1") == Coordinates(lat=4.0, lng=8.0)

    controller.clear_finished()
    assert controller.position_for("d1") is None


def test_positions_are_interpolated(controller, fake_clock):
    controller.start([config("d1", duration=10)])
    fake_clock.advance(5)
    [sample] = controller.positions()
    assert sample.position == Coordinates(lat=5.0, lng=5.0)
    assert sample.fraction == pytest.approx(0.5)


def test_stop_cancels_and_silences_batch(controller, fake_clock):
    emitted = []
    controller.add_listener(lambda generation, positions: emitted.append(generation))
    controller.start([config("d1"), config("d2")])
    fake_clock.advance(1)
    controller.tick()
    old_generation = controller.generation

    controller.stop()
    assert not controller.is_simulating
    assert controller.progress == 0.0
    assert controller.positions() == []
    assert not controller.is_current(old_generation)

    fake_clock.advance(1)
    assert controller.tick() == []
    assert emitted == [old_generation]


def test_tick_without_runs_is_noop(controller):
    assert controller.tick() == []
    assert controller.last_tick is None


def test_state_snapshot(controller, fake_clock):
    controller.start([config("d1", duration=10)])
    fake_clock.advance(5)
    controller.tick()
    state = controller.state()
    assert state.is_simulating is True
    assert state.progress == pytest.approx(50.0)
    assert state.active_runs == 1
    assert state.finished_runs == 0
    assert state.last_tick == fake_clock.now
    assert len(state.positions) == 1


def test_start_with_empty_list_leaves_batch_untouched(controller, fake_clock):
    controller.start([config("d1")])
    fake_clock.advance(5)
    controller.tick()
    progress = controller.progress

    assert controller.start([]) == 0
    assert controller.progress == progress
    assert controller.is_simulating


def test_failing_listener_does_not_block_others(controller, fake_clock):
    def broken(generation, positions):
        raise RuntimeError("listener down")

    received = []
    controller.add_listener(broken)
    controller.add_listener(lambda generation, positions: received.append(positions))
    controller.start([config("d1", duration=10)])
    fake_clock.advance(5)

    positions = controller.tick()
    assert len(positions) == 1
    assert received == [positions]
