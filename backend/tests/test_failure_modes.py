"""
Failure Injection Tests.

Validates that side-service failures never reach the metrics or motion state.
"""

import asyncio
import pytest
from backend.app.core.clock import TickClock
from backend.app.core.exceptions import ConfigurationError
from backend.app.core.reliability import CircuitBreaker, CircuitOpenError
from backend.app.services.metrics_aggregator import LOADS, MetricsAggregator
from backend.app.services.metrics_publisher import MetricsPublisher
from backend.app.services.stream import InMemoryCollection


@pytest.mark.asyncio
async def test_circuit_breaker_activates():
    """Test that circuit breaker opens after threshold failures."""
    cb = CircuitBreaker(failure_threshold=2, reset_timeout=1)

    async def failing_func():
        raise ValueError("Boom")

    # Fail 1
    with pytest.raises(ValueError):
        await cb.call(failing_func)

    # Fail 2 (Threshold reached)
    with pytest.raises(ValueError):
        await cb.call(failing_func)

    # Call 3 (Should be CircuitOpenError)
    with pytest.raises(CircuitOpenError):
        await cb.call(failing_func)


@pytest.mark.asyncio
async def test_circuit_breaker_half_open_failure_reopens(fake_clock):
    cb = CircuitBreaker(failure_threshold=1, reset_timeout=10, time_fn=fake_clock)

    async def failing_func():
        raise ValueError("Boom")

    with pytest.raises(ValueError):
        await cb.call(failing_func)
    assert cb.state == "OPEN"

    fake_clock.advance(11)
    with pytest.raises(ValueError):
        await cb.call(failing_func)
    assert cb.state == "OPEN"


@pytest.mark.asyncio
async def test_redis_outage_does_not_break_publishing(mock_redis):
    """A failed publish is reported, not raised."""
    aggregator = MetricsAggregator()
    publisher = MetricsPublisher(mock_redis, "fleetops:test", "fleetops:test:updates")

    mock_redis.fail = True
    assert await publisher.publish(aggregator.state) is False

    mock_redis.fail = False
    assert await publisher.publish(aggregator.state) is True
    assert "fleetops:test" in mock_redis.store
    assert mock_redis.published[0][0] == "fleetops:test:updates"


@pytest.mark.asyncio
async def test_redis_socket_error_is_contained(mock_redis, mocker):
    publisher = MetricsPublisher(mock_redis, "fleetops:test", "fleetops:test:updates")
    mocker.patch.object(mock_redis, "publish", side_effect=OSError("broken pipe"))

    assert await publisher.publish(MetricsAggregator().state) is False


@pytest.mark.asyncio
async def test_publisher_follows_aggregator(mock_redis):
    aggregator = MetricsAggregator()
    publisher = MetricsPublisher(mock_redis, "fleetops:test", "fleetops:test:updates")
    publisher.attach(aggregator)

    aggregator.on_loads_snapshot([{"id": "1", "status": "active"}])
    await publisher.aclose()

    assert len(mock_redis.published) == 1
    assert '"active":1' in mock_redis.store["fleetops:test"]


@pytest.mark.asyncio
async def test_slow_write_does_not_let_older_state_win(mock_redis):
    aggregator = MetricsAggregator()
    publisher = MetricsPublisher(mock_redis, "fleetops:test", "fleetops:test:updates")
    publisher.attach(aggregator)
    fast_set = mock_redis.set
    writes = []

    async def slow_first_set(key, value, ex=None):
        writes.append(value)
        if len(writes) == 1:
            await asyncio.sleep(0.05)
        return await fast_set(key, value, ex=ex)

    mock_redis.set = slow_first_set

    aggregator.on_loads_snapshot([{"id": "1", "status": "active"}])
    await asyncio.sleep(0)
    aggregator.on_loads_snapshot([{"id": "1", "status": "active"}, {"id": "2", "status": "active"}])
    await publisher.aclose()

    assert len(writes) == 2
    assert '"active":2' in mock_redis.store["fleetops:test"]
    assert '"active":2' in mock_redis.published[-1][1]


def test_listener_failure_does_not_block_state_update():
    aggregator = MetricsAggregator()

    def broken(state):
        raise RuntimeError("listener down")

    aggregator.add_listener(broken)
    loads = InMemoryCollection(LOADS, [{"id": "1", "status": "delivered"}])
    aggregator.attach(LOADS, loads)
    assert aggregator.metrics.load_counts.delivered == 1


def test_tick_handler_failure_is_isolated(fake_clock):
    clock = TickClock(0.5, time_fn=fake_clock)
    calls = []

    def broken(now):
        raise RuntimeError("handler down")

    clock.add_handler(broken)
    clock.add_handler(calls.append)
    clock.tick()
    assert calls == [fake_clock.now]


@pytest.mark.parametrize("interval", [0, -1])
def test_tick_clock_rejects_non_positive_interval(interval):
    with pytest.raises(ConfigurationError):
        TickClock(interval)
