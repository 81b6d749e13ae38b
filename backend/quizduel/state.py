from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import InvalidTransitionError
from .models import Match

logger = logging.getLogger(__name__)


class GamePhase(str, Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    FOUND = "found"
    QUIZ = "quiz"
    COMPLETE = "complete"
    ERROR = "error"


class PlayerRole(str, Enum):
    PLAYER_ONE = "player_one"
    PLAYER_TWO = "player_two"


# Valid transitions: {current_phase: {allowed next phases}}. ERROR is reachable from any live phase.
TRANSITIONS = {
    GamePhase.IDLE: {GamePhase.SEARCHING, GamePhase.FOUND},
    GamePhase.SEARCHING: {GamePhase.FOUND, GamePhase.QUIZ},
    GamePhase.FOUND: {GamePhase.QUIZ},
    GamePhase.QUIZ: {GamePhase.COMPLETE},
    GamePhase.COMPLETE: set(),
    GamePhase.ERROR: set(),
}

TERMINAL_PHASES = {GamePhase.COMPLETE, GamePhase.ERROR}


@dataclass
class LocalGame:
    """
    One player's view of a match.

    ``match`` is the cached game view and is only set once the questions
    have arrived (quiz and complete phases). ``pointer`` is the local
    question pointer; ``tracked_index`` is the last shared index the pointer
    was derived from, starting below any real index so the first snapshot
    always moves it.
    """

    player_id: str
    phase: GamePhase = GamePhase.IDLE
    role: Optional[PlayerRole] = None
    match_id: Optional[str] = None
    match: Optional[Match] = None
    pointer: int = -1
    tracked_index: int = -1
    answered_index: Optional[int] = None
    error: Optional[str] = None

    def can_transition(self, target: GamePhase) -> bool:
        if target == GamePhase.ERROR:
            return self.phase != GamePhase.ERROR
        return target in TRANSITIONS[self.phase]

    def transition(self, target: GamePhase) -> None:
        if not self.can_transition(target):
            raise InvalidTransitionError(self.phase.value, target.value)
        logger.debug("Player %s: %s -> %s", self.player_id, self.phase.value, target.value)
        self.phase = target

    def fail(self, message: str) -> None:
        if self.phase == GamePhase.ERROR:
            return
        self.error = message
        self.transition(GamePhase.ERROR)

    @property
    def finished(self) -> bool:
        return self.phase in TERMINAL_PHASES

    @property
    def current_question(self):
        if self.match is None or not 0 <= self.pointer < len(self.match.questions):
            return None
        return self.match.questions[self.pointer]
