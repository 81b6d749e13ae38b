"""
backend.quizduel.observer - derive local game state from match snapshots
========================================================================

Each player runs one observer per match. Every snapshot delivered by the
store feed is applied to the player's ``LocalGame``; the rules are checked
independently so a single snapshot can both reveal the questions and move
the question pointer.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from pydantic import ValidationError

from .errors import StoreError
from .models import Match
from .state import GamePhase, LocalGame
from .store import RecordStore, Subscription

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[Match], Union[None, Awaitable[None]]]


class MatchObserver:
    def __init__(self, store: RecordStore, game: LocalGame):
        self.store = store
        self.game = game
        self._subscription: Optional[Subscription] = None
        self._task: Optional[asyncio.Task] = None
        self._on_snapshot: Optional[SnapshotCallback] = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def observe(self, match_id: str, on_snapshot: Optional[SnapshotCallback] = None) -> asyncio.Task:
        if on_snapshot is not None:
            self._on_snapshot = on_snapshot
        if self.active:
            raise RuntimeError(f"Already observing match {self.game.match_id}")
        self._subscription = self.store.subscribe({"id": match_id})
        self._task = asyncio.create_task(self._run(match_id, self._subscription))
        return self._task

    def set_callback(self, on_snapshot: Optional[SnapshotCallback]) -> None:
        self._on_snapshot = on_snapshot

    async def stop(self) -> None:
        if self._subscription is not None:
            await self._subscription.aclose()
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self._task = None
        self._subscription = None

    async def _run(self, match_id: str, subscription: Subscription) -> None:
        try:
            async for doc in subscription:
                match = Match(**doc)
                self.apply(match)
                if self._on_snapshot is not None:
                    await self._notify(match)
        except (StoreError, ValidationError) as exc:
            logger.error("Feed for match %s failed: %s", match_id, exc)
            self.game.fail(str(exc))

    async def _notify(self, match: Match) -> None:
        # Callback errors are logged and dropped; the feed keeps running.
        try:
            result: Any = self._on_snapshot(match)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Snapshot callback for match %s failed", match.id)

    def apply(self, match: Match) -> None:
        game = self.game
        if game.phase in (GamePhase.ERROR, GamePhase.IDLE):
            return

        if match.questions and game.phase not in (GamePhase.QUIZ, GamePhase.COMPLETE):
            game.transition(GamePhase.QUIZ)
            logger.info("Player %s: questions arrived for match %s", game.player_id, match.id)
        elif not match.is_open and game.phase == GamePhase.SEARCHING:
            game.transition(GamePhase.FOUND)
            logger.info("Player %s: paired with %s", game.player_id, match.player_two_id)

        if match.questions:
            game.match = match

        # The pointer lands one past the shared index; stale (lower) indexes are ignored.
        if match.current_question_index > game.tracked_index:
            game.tracked_index = match.current_question_index
            game.pointer = match.current_question_index + 1

        if game.phase == GamePhase.QUIZ and game.pointer >= len(game.match.questions):
            game.transition(GamePhase.COMPLETE)
            logger.info("Player %s: match %s complete", game.player_id, match.id)
