"""
backend.quizduel.store - shared record store
============================================

The match protocol only relies on four operations: create, last-write-wins
update, equality-filtered list, and a subscription that yields a full snapshot
of every matching record on subscribe and again after each change. Nothing
here offers compare-and-swap or transactions; readers on other clients may
see writes late.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from abc import ABC, abstractmethod
from collections import deque
from typing import Any, Deque, Dict, List, Optional

from pymongo import ReturnDocument

from .db import InMemoryDatabase
from .errors import RecordNotFoundError, StoreUnavailableError
from .events import EventStore
from .utils import matches_filter, new_record_id

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


class Subscription(ABC):
    """Async iterator of record snapshots. Not restartable once closed.

    Transient store outages are retried from the same cursor with a growing
    delay; only ``aclose()`` ends the iteration. Other store errors propagate.
    """

    retry_delay = 0.1
    max_retry_delay = 5.0

    def __init__(self, record_filter: Dict[str, Any]):
        self.record_filter = dict(record_filter)
        self._pending: Deque[Record] = deque()
        self._cursor: Optional[int] = None
        self._closed = False
        self._failures = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self):
        return self

    async def __anext__(self) -> Record:
        while True:
            if self._closed:
                raise StopAsyncIteration
            if self._pending:
                return self._pending.popleft()
            try:
                await self._fetch()
            except StoreUnavailableError as exc:
                await self._backoff(exc)
                continue
            self._failures = 0
            if not self._pending:
                await self._wait_for_change(self._cursor)

    async def _fetch(self) -> None:
        if self._cursor is None:
            cursor = await self._latest_seq()
            self._pending.extend(await self._initial_records())
            self._cursor = cursor
            return
        for change in await self._changes_after(self._cursor):
            self._cursor = change["seq"]
            if matches_filter(change["record"], self.record_filter):
                self._pending.append(change["record"])

    async def _backoff(self, exc: StoreUnavailableError) -> None:
        self._failures += 1
        delay = min(self.retry_delay * 2 ** (self._failures - 1), self.max_retry_delay)
        logger.warning("Feed %s unavailable (attempt %d), retrying in %.2fs: %s",
                       self.record_filter, self._failures, delay, exc)
        await asyncio.sleep(delay)

    async def aclose(self) -> None:
        self._closed = True

    @abstractmethod
    async def _latest_seq(self) -> int: ...

    @abstractmethod
    async def _initial_records(self) -> List[Record]: ...

    @abstractmethod
    async def _changes_after(self, seq: int) -> List[Dict[str, Any]]: ...

    @abstractmethod
    async def _wait_for_change(self, seq: int) -> None: ...


class RecordStore(ABC):
    @abstractmethod
    async def create(self, fields: Dict[str, Any]) -> Record: ...

    @abstractmethod
    async def update(self, record_id: str, fields: Dict[str, Any]) -> Record: ...

    @abstractmethod
    async def get(self, record_id: str) -> Optional[Record]: ...

    @abstractmethod
    async def list(self, record_filter: Optional[Dict[str, Any]] = None) -> List[Record]: ...

    @abstractmethod
    def subscribe(self, record_filter: Dict[str, Any]) -> Subscription: ...


class InMemorySubscription(Subscription):
    def __init__(self, store: "InMemoryRecordStore", record_filter: Dict[str, Any]):
        super().__init__(record_filter)
        self._store = store

    async def _latest_seq(self) -> int:
        return await self._store.event_store.latest_seq()

    async def _initial_records(self) -> List[Record]:
        return await self._store.list(self.record_filter)

    async def _changes_after(self, seq: int) -> List[Dict[str, Any]]:
        # Unfiltered so the cursor also moves past other records' changes.
        return await self._store.event_store.list(after=seq)

    async def _wait_for_change(self, seq: int) -> None:
        await self._store.wait_for_change(seq, lambda: self._closed)

    async def aclose(self) -> None:
        await super().aclose()
        await self._store.wake_subscribers()


class InMemoryRecordStore(RecordStore):
    """Process-local store; every write is appended to the change log before waking feeds."""

    def __init__(self, database: Optional[InMemoryDatabase] = None):
        self.database = database or InMemoryDatabase()
        self.collection = self.database.matches
        self.event_store = EventStore(self.database)
        self._latest_seq = 0
        self._changed = asyncio.Condition()

    async def create(self, fields: Dict[str, Any]) -> Record:
        record = copy.deepcopy(fields)
        record["id"] = new_record_id()
        await self.collection.insert_one(record)
        await self._publish(record["id"], "created", record)
        logger.debug("Created record %s", record["id"])
        return record

    async def update(self, record_id: str, fields: Dict[str, Any]) -> Record:
        changes = {key: value for key, value in fields.items() if key != "id"}
        updated = await self.collection.find_one_and_update(
            {"id": record_id},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            raise RecordNotFoundError(record_id)
        await self._publish(record_id, "updated", updated)
        logger.debug("Updated record %s fields=%s", record_id, sorted(changes))
        return updated

    async def get(self, record_id: str) -> Optional[Record]:
        return await self.collection.find_one({"id": record_id})

    async def list(self, record_filter: Optional[Dict[str, Any]] = None) -> List[Record]:
        return [doc async for doc in self.collection.find(record_filter or {})]

    def subscribe(self, record_filter: Dict[str, Any]) -> Subscription:
        return InMemorySubscription(self, record_filter)

    async def changes(self, after: Optional[int] = None, limit: int = 200, record_id: Optional[str] = None):
        return await self.event_store.list(after=after, limit=limit, record_id=record_id)

    async def wait_for_change(self, seq: int, cancelled=lambda: False) -> None:
        async with self._changed:
            await self._changed.wait_for(lambda: self._latest_seq > seq or cancelled())

    async def wake_subscribers(self) -> None:
        async with self._changed:
            self._changed.notify_all()

    async def _publish(self, record_id: str, change: str, record: Record) -> None:
        seq = await self.event_store.append(record_id, change, record)
        async with self._changed:
            self._latest_seq = max(self._latest_seq, seq)
            self._changed.notify_all()
