from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Optional

from .coordinator import MatchCoordinator, MatchHandle
from .errors import QuizDuelError
from .generator import QuestionGenerator
from .models import Match
from .observer import MatchObserver
from .session import QuizSession
from .state import GamePhase, LocalGame, PlayerRole
from .store import RecordStore

logger = logging.getLogger(__name__)


class GameClient:
    """One player's side of a match: matchmaking, observation and answering."""

    def __init__(self, player_id: str, store: RecordStore, generator: Optional[QuestionGenerator] = None):
        self.player_id = player_id
        self.game = LocalGame(player_id=player_id)
        self.observer = MatchObserver(store, self.game)
        self.coordinator = MatchCoordinator(store, self.observer)
        self.session = QuizSession(store, self.game, generator)
        self.handle: Optional[MatchHandle] = None
        self._generation: Optional[asyncio.Task] = None
        self.observer.set_callback(self._on_snapshot)

    @property
    def phase(self) -> GamePhase:
        return self.game.phase

    async def search(self) -> Optional[MatchHandle]:
        if self.game.phase != GamePhase.IDLE:
            raise RuntimeError(f"{self.player_id} already left the lobby ({self.game.phase.value})")
        try:
            self.handle = await self.coordinator.find_or_create_match(self.player_id)
        except QuizDuelError as exc:
            logger.error("Search for %s failed: %s", self.player_id, exc)
            return None
        return self.handle

    async def answer(self, option: str) -> bool:
        if self.handle is None:
            return False
        try:
            return await self.session.submit_answer(self.handle.match_id, option)
        except QuizDuelError as exc:
            logger.error("Answer from %s failed: %s", self.player_id, exc)
            return False

    async def wait_for(self, *phases: GamePhase, timeout: float = 5.0, interval: float = 0.01) -> GamePhase:
        """Poll until the local game reaches one of ``phases`` (or errors out)."""
        targets = set(phases) | {GamePhase.ERROR}
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while self.game.phase not in targets:
            if loop.time() >= deadline:
                raise asyncio.TimeoutError(
                    f"{self.player_id} still {self.game.phase.value} after {timeout}s"
                )
            await asyncio.sleep(interval)
        return self.game.phase

    async def wait_for_pointer(self, pointer: int, timeout: float = 5.0, interval: float = 0.01) -> int:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while self.game.pointer < pointer and self.game.phase != GamePhase.ERROR:
            if loop.time() >= deadline:
                raise asyncio.TimeoutError(f"{self.player_id} pointer stuck at {self.game.pointer}")
            await asyncio.sleep(interval)
        return self.game.pointer

    def status_text(self) -> str:
        game = self.game
        if game.phase == GamePhase.IDLE:
            return f"Welcome {self.player_id}!"
        if game.phase == GamePhase.SEARCHING:
            return "Searching for a game now"
        if game.phase == GamePhase.FOUND:
            return "Questions are getting generated now..."
        if game.phase == GamePhase.COMPLETE:
            return f"Quiz is over!\n{self.session.outcome().describe(self.player_id)}"
        if game.phase == GamePhase.QUIZ:
            question = game.current_question
            if question is None:
                return "Loading game..."
            return "\n".join([question.question, *question.options])
        return "There is an error."

    async def close(self) -> None:
        await self.observer.stop()
        if self._generation is not None and not self._generation.done():
            self._generation.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._generation

    async def _on_snapshot(self, match: Match) -> None:
        # Player one owns generation and starts it once, when it first sees its opponent.
        if (
            self._generation is None
            and self.game.role == PlayerRole.PLAYER_ONE
            and self.game.phase == GamePhase.FOUND
        ):
            self._generation = asyncio.create_task(self._generate(match.id))

    async def _generate(self, match_id: str) -> None:
        try:
            await self.session.generate_and_publish(match_id)
        except QuizDuelError as exc:
            logger.error("Generation by %s failed: %s", self.player_id, exc)
