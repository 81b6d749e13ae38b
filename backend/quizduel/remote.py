"""
backend.quizduel.remote - HTTP client for the match store service
=================================================================

``HttpRecordStore`` speaks to the FastAPI service in ``main.py``. Feeds poll
``/api/matches/changes`` with an ``after`` cursor, the same way browser
clients long-poll the change log.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from .db import Settings, settings as default_settings
from .errors import RecordNotFoundError, StoreError, StoreUnavailableError
from .store import Record, RecordStore, Subscription

logger = logging.getLogger(__name__)

MATCHES_PATH = "/api/matches"
CHANGES_PATH = "/api/matches/changes"


class HttpSubscription(Subscription):
    def __init__(self, store: "HttpRecordStore", record_filter: Dict[str, Any]):
        super().__init__(record_filter)
        self._store = store
        self.retry_delay = store.poll_interval
        self.max_retry_delay = store.max_retry_delay

    async def _latest_seq(self) -> int:
        body = await self._store._request("GET", CHANGES_PATH, params={"limit": 0})
        return int(body["head_seq"])

    async def _initial_records(self) -> List[Record]:
        return await self._store.list(self.record_filter)

    async def _changes_after(self, seq: int) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"after": seq, "limit": self._store.batch_limit}
        if "id" in self.record_filter:
            params["id"] = self.record_filter["id"]
        body = await self._store._request("GET", CHANGES_PATH, params=params)
        return body["events"]

    async def _wait_for_change(self, seq: int) -> None:
        await asyncio.sleep(self._store.poll_interval)


class HttpRecordStore(RecordStore):
    def __init__(self, client: Optional[httpx.AsyncClient] = None, settings: Optional[Settings] = None):
        settings = settings or default_settings
        self._client = client or httpx.AsyncClient(base_url=settings.STORE_URL, timeout=settings.STORE_TIMEOUT)
        self.poll_interval = settings.FEED_POLL_INTERVAL
        self.batch_limit = settings.FEED_BATCH_LIMIT
        self.max_retry_delay = settings.FEED_MAX_RETRY_DELAY

    async def create(self, fields: Dict[str, Any]) -> Record:
        return await self._request("POST", MATCHES_PATH, json=fields)

    async def update(self, record_id: str, fields: Dict[str, Any]) -> Record:
        return await self._request("PATCH", f"{MATCHES_PATH}/{record_id}", json=fields)

    async def get(self, record_id: str) -> Optional[Record]:
        try:
            return await self._request("GET", f"{MATCHES_PATH}/{record_id}")
        except RecordNotFoundError:
            return None

    async def list(self, record_filter: Optional[Dict[str, Any]] = None) -> List[Record]:
        body = await self._request("GET", MATCHES_PATH, params=dict(record_filter or {}))
        return body["matches"]

    def subscribe(self, record_filter: Dict[str, Any]) -> Subscription:
        return HttpSubscription(self, record_filter)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            logger.warning("Store request %s %s timed out", method, path)
            raise StoreUnavailableError(f"{method} {path} timed out") from exc
        except httpx.RequestError as exc:
            logger.warning("Store request %s %s failed: %s", method, path, exc)
            raise StoreUnavailableError(f"{method} {path} failed: {exc}") from exc

        if response.status_code == 404:
            raise RecordNotFoundError(path.rsplit("/", 1)[-1])
        if response.is_error:
            raise StoreError(f"{method} {path} returned {response.status_code}: {response.text}")
        return response.json()
