"""
Motion Interpolation Tests.
"""

import pytest

from backend.app.schemas.geo import Coordinates
from backend.app.services.interpolation import InterpolationRun, MotionInterpolator, lerp

A = Coordinates(lat=0.0, lng=0.0)
B = Coordinates(lat=10.0, lng=20.0)


def test_lerp_is_componentwise():
    mid = lerp(A, B, 0.25)
    assert mid.lat == pytest.approx(2.5)
    assert mid.lng == pytest.approx(5.0)


def test_run_clamps_to_endpoints():
    run = InterpolationRun(id=1, start=A, end=B, start_time=100.0, duration=10.0)
    assert run.position_at(50.0) == A
    assert run.position_at(100.0) == A
    assert run.position_at(110.0) == B
    assert run.position_at(999.0) == B
    assert run.fraction_at(105.0) == pytest.approx(0.5)
    assert run.fraction_at(200.0) == 1.0


def test_run_midpoint_is_exact():
    run = InterpolationRun(id=1, start=A, end=B, start_time=100.0, duration=10.0)
    assert run.position_at(105.0) == Coordinates(lat=5.0, lng=10.0)


def test_sampling_does_not_mutate_run():
    run = InterpolationRun(id=1, start=A, end=B, start_time=0.0, duration=4.0)
    first = run.position_at(1.0)
    run.position_at(3.0)
    assert run.position_at(1.0) == first
    assert run.start_time == 0.0


def test_completion_is_at_end_time():
    run = InterpolationRun(id=1, start=A, end=B, start_time=0.0, duration=4.0)
    assert not run.is_complete(3.99)
    assert run.is_complete(4.0)


def test_zero_duration_run_is_immediately_complete():
    run = InterpolationRun(id=1, start=A, end=B, start_time=5.0, duration=0.0)
    assert run.is_complete(5.0)
    assert run.position_at(5.0) == B
    assert run.fraction_at(5.0) == 1.0


def test_registry_ids_are_unique_and_monotonic():
    registry = MotionInterpolator()
    first = registry.create(A, B, 0.0, 1.0)
    registry.remove(first.id)
    second = registry.create(A, B, 0.0, 1.0)
    registry.clear()
    third = registry.create(A, B, 0.0, 1.0)
    assert first.id < second.id < third.id
    assert first.id not in registry
    assert len(registry) == 1


def test_registry_position_lookup():
    registry = MotionInterpolator()
    run = registry.create(A, B, 0.0, 2.0)
    assert registry.position_at(run.id, 1.0) == Coordinates(lat=5.0, lng=10.0)
    assert registry.position_at(999, 1.0) is None
    assert registry.get(run.id) is run
    assert list(registry) == [run]


def test_negative_duration_is_rejected():
    with pytest.raises(ValueError):
        MotionInterpolator().create(A, B, 0.0, -1.0)
