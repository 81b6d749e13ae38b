from __future__ import annotations

from typing import Any, List

from pymongo import ReturnDocument

from .db import InMemoryDatabase
from .utils import now_ts

CHANGE_STREAM = "matches"


class EventStore:
    """Sequenced change log of record snapshots, read by feeds via ``after`` cursors.

    Entries are never pruned, so the log grows by one full snapshot per write
    for as long as the process lives.
    """

    def __init__(self, database: InMemoryDatabase, stream: str = CHANGE_STREAM):
        self.counters_collection = database.match_event_counters
        self.events_collection = database.match_events
        self.stream = stream

    async def append(self, record_id: str, change: str, record: dict[str, Any]) -> int:
        """Store a full snapshot of ``record`` and return its sequence number."""

        counter_doc = await self.counters_collection.find_one_and_update(
            {"_id": self.stream},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        seq = int(counter_doc["seq"])

        await self.events_collection.insert_one(
            {
                "seq": seq,
                "record_id": record_id,
                "change": change,
                "timestamp": now_ts(),
                "record": record,
            }
        )
        return seq

    async def latest_seq(self) -> int:
        counter_doc = await self.counters_collection.find_one({"_id": self.stream})
        return int(counter_doc["seq"]) if counter_doc else 0

    async def list(
        self,
        after: int | None = None,
        limit: int = 200,
        record_id: str | None = None,
    ) -> List[dict[str, Any]]:
        """Return changes that occur after the given sequence, oldest first."""

        query: dict[str, Any] = {}
        if record_id is not None:
            query["record_id"] = record_id
        if after is not None:
            query["seq"] = {"$gt": after}

        cursor = (
            self.events_collection.find(query)
            .sort("seq", 1)
            .limit(limit)
        )

        events: List[dict[str, Any]] = []
        async for doc in cursor:
            events.append(
                {
                    "seq": doc["seq"],
                    "record_id": doc["record_id"],
                    "change": doc["change"],
                    "timestamp": doc.get("timestamp"),
                    "record": doc.get("record", {}),
                }
            )
        return events
