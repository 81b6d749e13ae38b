"""
backend.quizduel.coordinator - matchmaking
==========================================

Pairs two players through the shared store without any server arbitration:
claim the first open match with an unconditional write, or open a new one
and wait for a peer. Two players claiming the same open match at once both
believe they are player two; the record keeps the last writer. That race is
accepted, not detected.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .errors import CoordinationError, StoreError
from .models import Match, UNASSIGNED
from .observer import MatchObserver
from .state import GamePhase, PlayerRole
from .store import RecordStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchHandle:
    match_id: str
    player_id: str
    role: PlayerRole


class MatchCoordinator:
    def __init__(self, store: RecordStore, observer: MatchObserver):
        self.store = store
        self.observer = observer

    @property
    def game(self):
        return self.observer.game

    async def find_or_create_match(self, player_id: str) -> MatchHandle:
        try:
            open_matches = await self.store.list({"player_two_id": UNASSIGNED})
            if open_matches:
                handle = await self._claim(Match(**open_matches[0]), player_id)
            else:
                handle = await self._create(player_id)
        except StoreError as exc:
            logger.error("Matchmaking for %s failed: %s", player_id, exc)
            self.game.fail(str(exc))
            raise CoordinationError(player_id, str(exc)) from exc

        self.game.match_id = handle.match_id
        self.game.role = handle.role
        self.observer.observe(handle.match_id)
        return handle

    async def _claim(self, match: Match, player_id: str) -> MatchHandle:
        # Last write wins; a concurrent claimer may overwrite us without either side noticing.
        await self.store.update(match.id, {"player_two_id": player_id})
        self.game.transition(GamePhase.FOUND)
        logger.info("Player %s joined match %s hosted by %s", player_id, match.id, match.player_one_id)
        return MatchHandle(match_id=match.id, player_id=player_id, role=PlayerRole.PLAYER_TWO)

    async def _create(self, player_id: str) -> MatchHandle:
        fields = {
            "player_one_id": player_id,
            "player_two_id": UNASSIGNED,
            "questions": [],
            "current_question_index": 0,
            "player_one_score": 0,
            "player_two_score": 0,
        }
        self.game.transition(GamePhase.SEARCHING)
        doc = await self.store.create(fields)
        logger.info("Player %s opened match %s", player_id, doc["id"])
        return MatchHandle(match_id=doc["id"], player_id=player_id, role=PlayerRole.PLAYER_ONE)
