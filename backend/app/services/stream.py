"""
Streaming collection subscriptions.

A subscription delivers events of the sum type Snapshot | StreamError:
every Snapshot carries the ENTIRE current collection (never a delta) and a
strictly increasing sequence number; a StreamError is terminal for that
subscription until the consumer subscribes again.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from backend.app.core.exceptions import SourceUnavailableError

logger = logging.getLogger("fleetops.stream")


@dataclass(frozen=True)
class Snapshot:
    """Full view of a collection at one point in time."""
    source: str
    records: Tuple[Mapping[str, Any], ...]
    sequence: int
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def size(self) -> int:
        return len(self.records)


@dataclass(frozen=True)
class StreamError:
    """Terminal failure of one subscription."""
    source: str
    reason: str


StreamEvent = Union[Snapshot, StreamError]
EventHandler = Callable[[StreamEvent], None]


class Subscription:
    """Handle for a live query. unsubscribe() is safe to call any number of times."""

    _ids = itertools.count(1)

    def __init__(self, source: str, on_unsubscribe: Callable[["Subscription"], None]):
        self.id = next(self._ids)
        self.source = source
        self._on_unsubscribe = on_unsubscribe
        self._active = True
        self._sequence = 0

    @property
    def active(self) -> bool:
        return self._active

    def next_sequence(self) -> int:
        self._sequence += 1
        return self._sequence

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._on_unsubscribe(self)
        logger.debug("Subscription %s on '%s' released", self.id, self.source)


class CollectionSource:
    """Abstract live query over one collection."""

    def __init__(self, name: str):
        self.name = name

    def subscribe(self, on_event: EventHandler) -> Subscription:
        raise NotImplementedError


class InMemoryCollection(CollectionSource):
    """
    Collection held in process memory.

    Every mutation pushes a full snapshot to each subscriber synchronously,
    and a new subscriber immediately receives the current contents.
    """

    def __init__(self, name: str, records: Iterable[Mapping[str, Any]] = ()):
        super().__init__(name)
        self._records: Dict[str, Dict[str, Any]] = {}
        self._subscribers: Dict[int, Tuple[Subscription, EventHandler]] = {}
        for record in records:
            self._records[self._key(record)] = dict(record)

    @staticmethod
    def _key(record: Mapping[str, Any]) -> str:
        key = record.get("id")
        # id-less documents are still part of the collection
        return str(key) if key is not None else f"__anon_{id(record)}"

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def records(self) -> List[Dict[str, Any]]:
        return [dict(r) for r in self._records.values()]

    def subscribe(self, on_event: EventHandler) -> Subscription:
        subscription = Subscription(self.name, self._detach)
        self._subscribers[subscription.id] = (subscription, on_event)
        self._deliver(subscription, on_event)
        return subscription

    def _detach(self, subscription: Subscription) -> None:
        self._subscribers.pop(subscription.id, None)

    def _deliver(self, subscription: Subscription, on_event: EventHandler) -> None:
        snapshot = Snapshot(
            source=self.name,
            records=tuple(dict(r) for r in self._records.values()),
            sequence=subscription.next_sequence(),
        )
        on_event(snapshot)

    def _broadcast(self) -> None:
        for subscription, on_event in list(self._subscribers.values()):
            if subscription.active:
                self._deliver(subscription, on_event)

    def put(self, record: Mapping[str, Any]) -> None:
        self._records[self._key(record)] = dict(record)
        self._broadcast()

    def remove(self, record_id: str) -> None:
        if self._records.pop(str(record_id), None) is not None:
            self._broadcast()

    def replace_all(self, records: Iterable[Mapping[str, Any]]) -> None:
        self._records = {}
        for record in records:
            self._records[self._key(record)] = dict(record)
        self._broadcast()

    def fail(self, reason: str) -> None:
        """Terminate every current subscription with an error."""
        for subscription, on_event in list(self._subscribers.values()):
            on_event(StreamError(source=self.name, reason=reason))
            subscription.unsubscribe()


def row_to_record(row: Any) -> Dict[str, Any]:
    """Column name -> value mapping for an ORM instance."""
    mapper = sa_inspect(row).mapper
    return {attr.key: getattr(row, attr.key) for attr in mapper.column_attrs}


class QueryCollectionSource(CollectionSource):
    """
    Live query over a database table.

    Polls the statement every ``poll_interval`` seconds and pushes a snapshot
    on the first result and whenever the result set differs from the last one.
    A database error ends the subscription with a StreamError.
    """

    def __init__(self, name: str, session_factory: async_sessionmaker,
                 statement_factory: Callable[[], Any], poll_interval: float = 2.0):
        super().__init__(name)
        self.session_factory = session_factory
        self.statement_factory = statement_factory
        self.poll_interval = poll_interval
        self._tasks: Dict[int, asyncio.Task] = {}

    def subscribe(self, on_event: EventHandler) -> Subscription:
        subscription = Subscription(self.name, self._detach)
        task = asyncio.get_running_loop().create_task(self._poll(subscription, on_event))
        self._tasks[subscription.id] = task
        return subscription

    def _detach(self, subscription: Subscription) -> None:
        task = self._tasks.pop(subscription.id, None)
        if task is not None and not task.done():
            task.cancel()

    async def fetch(self) -> Tuple[Dict[str, Any], ...]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(self.statement_factory())
                return tuple(row_to_record(row) for row in result.scalars().all())
        except SQLAlchemyError as exc:
            raise SourceUnavailableError(self.name, str(exc)) from exc

    async def _poll(self, subscription: Subscription, on_event: EventHandler) -> None:
        previous: Optional[Tuple[Dict[str, Any], ...]] = None
        while subscription.active:
            try:
                records = await self.fetch()
            except SourceUnavailableError as exc:
                logger.error("Live query on '%s' failed: %s", self.name, exc.details["reason"])
                if subscription.active:
                    on_event(StreamError(source=self.name, reason=exc.message))
                    self._tasks.pop(subscription.id, None)
                    subscription.unsubscribe()
                return
            if subscription.active and records != previous:
                previous = records
                on_event(Snapshot(source=self.name, records=records,
                                  sequence=subscription.next_sequence()))
            await asyncio.sleep(self.poll_interval)
