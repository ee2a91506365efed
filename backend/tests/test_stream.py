"""
Collection Subscription Tests.

In-memory collections deliver synchronously; table-backed live queries are
exercised against the SQLite test database.
"""

import asyncio
from datetime import datetime, timezone
import pytest
from sqlalchemy import select, text

from backend.app.models.load import Load
from backend.app.services.stream import (
    InMemoryCollection, QueryCollectionSource, Snapshot, StreamError, row_to_record
)

T0 = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def test_subscribe_delivers_current_contents():
    collection = InMemoryCollection("loads", [{"id": "1"}, {"id": "2"}])
    events = []
    collection.subscribe(events.append)
    assert len(events) == 1
    assert isinstance(events[0], Snapshot)
    assert events[0].size == 2
    assert events[0].sequence == 1


def test_every_change_delivers_full_snapshot():
    collection = InMemoryCollection("loads", [{"id": "1"}])
    events = []
    collection.subscribe(events.append)

    collection.put({"id": "2"})
    collection.put({"id": "1", "status": "delivered"})
    collection.remove("2")

    assert [e.size for e in events] == [1, 2, 2, 1]
    assert [e.sequence for e in events] == [1, 2, 3, 4]
    assert events[-1].records == ({"id": "1", "status": "delivered"},)


def test_unsubscribe_is_idempotent():
    collection = InMemoryCollection("drivers")
    events = []
    subscription = collection.subscribe(events.append)
    subscription.unsubscribe()
    subscription.unsubscribe()

    collection.put({"id": "d1"})
    assert len(events) == 1
    assert not subscription.active
    assert collection.subscriber_count == 0


def test_fail_is_terminal():
    collection = InMemoryCollection("shippers", [{"id": "s1"}])
    events = []
    subscription = collection.subscribe(events.append)

    collection.fail("permission denied")
    collection.put({"id": "s2"})

    assert isinstance(events[-1], StreamError)
    assert events[-1].reason == "permission denied"
    assert not subscription.active


def test_subscriptions_have_independent_sequences():
    collection = InMemoryCollection("loads")
    first, second = [], []
    collection.subscribe(first.append)
    collection.put({"id": "1"})
    collection.subscribe(second.append)
    assert first[-1].sequence == 2
    assert second[-1].sequence == 1


@pytest.mark.asyncio
async def test_row_to_record_maps_columns(db_session):
    db_session.add(Load(id="L-1", status="active", rate=1200.0, created_at=T0))
    await db_session.commit()
    row = (await db_session.execute(select(Load))).scalar_one()
    record = row_to_record(row)
    assert record["id"] == "L-1"
    assert record["rate"] == 1200.0
    assert "shipper_id" in record


@pytest.mark.asyncio
async def test_query_source_pushes_snapshot_on_change(db_session, session_factory):
    db_session.add(Load(id="L-1", status="active", created_at=T0))
    await db_session.commit()

    source = QueryCollectionSource("loads", session_factory, lambda: select(Load).order_by(Load.id), 0.01)
    events = []
    subscription = source.subscribe(events.append)

    await asyncio.sleep(0.05)
    assert len(events) == 1
    assert events[0].records[0]["id"] == "L-1"

    db_session.add(Load(id="L-2", status="pending", created_at=T0))
    await db_session.commit()
    await asyncio.sleep(0.05)

    subscription.unsubscribe()
    assert len(events) == 2
    assert events[-1].size == 2
    assert events[-1].sequence == 2


@pytest.mark.asyncio
async def test_query_source_error_ends_subscription(session_factory):
    source = QueryCollectionSource("loads", session_factory, lambda: text("SELECT * FROM missing_table"), 0.01)
    events = []
    subscription = source.subscribe(events.append)
    await asyncio.sleep(0.05)

    assert len(events) == 1
    assert isinstance(events[0], StreamError)
    assert "loads" in events[0].reason
    assert not subscription.active
