from __future__ import annotations

import asyncio
import copy
from functools import lru_cache
from typing import Any, Dict, Iterator, List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from pymongo import ReturnDocument


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:8080"
    CORS_ORIGIN_REGEX: Optional[str] = None
    STORE_URL: str = "http://localhost:8000"
    STORE_TIMEOUT: float = 10.0
    FEED_POLL_INTERVAL: float = 0.5
    FEED_BATCH_LIMIT: int = 200
    FEED_MAX_RETRY_DELAY: float = 5.0
    ANTHROPIC_API_KEY: Optional[str] = None
    ANTHROPIC_MODEL: str = "claude-3-5-sonnet-latest"
    ANTHROPIC_MAX_TOKENS: int = 4096
    QUESTION_COUNT: int = 10
    LOG_LEVEL: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()


class InMemoryCursor:
    """Lazy ``find`` result; ``sort``/``limit`` chain like a Motor cursor."""

    def __init__(self, collection: "InMemoryCollection", query: Dict[str, Any]):
        self._collection = collection
        self._query = query or {}
        self._order: Optional[tuple[str, int]] = None
        self._limit: Optional[int] = None
        self._docs: Optional[Iterator[Dict[str, Any]]] = None

    def sort(self, key: str, direction: int):
        self._order = (key, direction)
        return self

    def limit(self, limit: int):
        self._limit = limit
        return self

    async def _load(self) -> Iterator[Dict[str, Any]]:
        if self._docs is None:
            docs = await self._collection._find_all(self._query)
            if self._order is not None:
                key, direction = self._order
                docs.sort(key=lambda d: d.get(key), reverse=direction < 0)
            self._docs = iter(docs if self._limit is None else docs[: self._limit])
        return self._docs

    def __aiter__(self):
        return self

    async def __anext__(self):
        docs = await self._load()
        try:
            return next(docs)
        except StopIteration as exc:
            raise StopAsyncIteration from exc


class InMemoryCollection:
    """Mongo-flavoured collection keyed by ``key_field``; supports ``$set``/``$inc`` and ``$gt``."""

    def __init__(self, key_field: str = "_id"):
        self.key_field = key_field
        self._docs: Dict[Any, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def _find_all(self, query: Dict[str, Any]) -> List[Dict[str, Any]]:
        async with self._lock:
            return [copy.deepcopy(doc) for doc in self._candidates(query) if self._matches(doc, query)]

    async def find_one(self, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        async with self._lock:
            doc = self._first(query)
            return copy.deepcopy(doc) if doc is not None else None

    def find(self, query: Dict[str, Any]):
        return InMemoryCursor(self, query)

    async def insert_one(self, document: Dict[str, Any]):
        async with self._lock:
            key = document.get(self.key_field, len(self._docs))
            if key in self._docs:
                raise ValueError(f"Duplicate {self.key_field}: {key!r}")
            self._docs[key] = copy.deepcopy(document)

    async def find_one_and_update(
        self,
        query: Dict[str, Any],
        update: Dict[str, Any],
        *,
        upsert: bool = False,
        return_document: bool = ReturnDocument.BEFORE,
    ) -> Optional[Dict[str, Any]]:
        async with self._lock:
            doc = self._first(query)
            if doc is None:
                if not upsert:
                    return None
                doc = copy.deepcopy(query)
                self._docs[doc.get(self.key_field, len(self._docs))] = doc
                original = None
            else:
                original = copy.deepcopy(doc)
            self._apply_update(doc, update)
            return copy.deepcopy(doc) if return_document == ReturnDocument.AFTER else original

    def _candidates(self, query: Dict[str, Any]) -> List[Dict[str, Any]]:
        key = query.get(self.key_field)
        if key is not None and not isinstance(key, dict):
            doc = self._docs.get(key)
            return [doc] if doc is not None else []
        return list(self._docs.values())

    def _first(self, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return next((doc for doc in self._candidates(query) if self._matches(doc, query)), None)

    @staticmethod
    def _apply_update(doc: Dict[str, Any], update: Dict[str, Any]) -> None:
        for op, payload in update.items():
            if op == "$set":
                doc.update(copy.deepcopy(payload))
            elif op == "$inc":
                for key, value in payload.items():
                    doc[key] = doc.get(key, 0) + value
            else:  # pragma: no cover - only the above operators are used today
                raise ValueError(f"Unsupported update operator: {op}")

    @staticmethod
    def _matches(doc: Dict[str, Any], query: Dict[str, Any]) -> bool:
        for key, expected in (query or {}).items():
            actual = doc.get(key)
            if isinstance(expected, dict):
                if set(expected) != {"$gt"}:  # pragma: no cover - extend as new operators are required
                    raise ValueError(f"Unsupported query operator(s): {expected}")
                if actual is None or actual <= expected["$gt"]:
                    return False
            elif actual != expected:
                return False
        return True


class InMemoryDatabase:
    def __init__(self):
        self.matches = InMemoryCollection(key_field="id")
        self.match_event_counters = InMemoryCollection()
        self.match_events = InMemoryCollection(key_field="seq")
