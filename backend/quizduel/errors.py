"""
backend.quizduel.errors - exception hierarchy
=============================================

Store failures are raised by record store implementations. The coordination,
generation and answer errors are raised by the match protocol components
after they have moved the local game into the ``error`` phase.
"""

from __future__ import annotations

from typing import List, Optional


class QuizDuelError(Exception):
    """Base exception for all QuizDuel errors."""
    pass


class StoreError(QuizDuelError):
    """The shared record store rejected or could not complete an operation."""
    pass


class RecordNotFoundError(StoreError):
    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Record '{record_id}' does not exist")


class StoreUnavailableError(StoreError):
    """The store could not be reached."""
    pass


class CoordinationError(QuizDuelError):
    """Matchmaking could not read or write the shared match record."""

    def __init__(self, player_id: str, message: str):
        self.player_id = player_id
        super().__init__(f"Matchmaking failed for '{player_id}': {message}")


class GenerationError(QuizDuelError):
    """The question generator failed or returned unusable questions."""

    def __init__(self, match_id: str, errors: Optional[List[str]] = None):
        self.match_id = match_id
        self.errors = list(errors or [])
        detail = "; ".join(self.errors) if self.errors else "unknown error"
        super().__init__(f"Question generation failed for match '{match_id}': {detail}")


class AnswerSubmissionError(QuizDuelError):
    """Writing an answer to the match record failed."""

    def __init__(self, match_id: str, question_index: int, message: str):
        self.match_id = match_id
        self.question_index = question_index
        super().__init__(
            f"Answer for question {question_index} of match '{match_id}' was not stored: {message}"
        )


class InvalidTransitionError(QuizDuelError):
    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move game from '{current}' to '{target}'")
