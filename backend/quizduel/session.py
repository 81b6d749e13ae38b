"""
backend.quizduel.session - question hand-off and answer protocol
================================================================

Player one generates the question set and publishes it with a single write.
After that both players submit answers by writing the shared index (and their
own score on a correct answer). Writes are unconditional: two players
answering the same question before seeing each other's write can both score
and both push the index. Nothing here compensates for that.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from pydantic import ValidationError

from .errors import AnswerSubmissionError, GenerationError, StoreError
from .generator import QuestionGenerator
from .models import CORRECT_ANSWER_POINTS, Match, Question
from .state import GamePhase, LocalGame
from .store import RecordStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Outcome:
    player_one_id: str
    player_two_id: str
    player_one_score: int
    player_two_score: int

    @property
    def is_tie(self) -> bool:
        return self.player_one_score == self.player_two_score

    @property
    def winner_id(self) -> Optional[str]:
        if self.is_tie:
            return None
        if self.player_one_score > self.player_two_score:
            return self.player_one_id
        return self.player_two_id

    @property
    def winner_score(self) -> int:
        return max(self.player_one_score, self.player_two_score)

    def describe(self, viewer_id: str) -> str:
        if self.is_tie:
            return f"It's a tie with {self.player_one_score}!"
        label = "You" if self.winner_id == viewer_id else self.winner_id
        return f"{label} won with {self.winner_score} points!"

    @classmethod
    def from_match(cls, match: Match) -> "Outcome":
        return cls(
            player_one_id=match.player_one_id,
            player_two_id=match.player_two_id,
            player_one_score=match.player_one_score,
            player_two_score=match.player_two_score,
        )


class QuizSession:
    def __init__(self, store: RecordStore, game: LocalGame, generator: Optional[QuestionGenerator] = None):
        self.store = store
        self.game = game
        self.generator = generator

    async def generate_and_publish(self, match_id: str, description: str = "") -> List[Question]:
        if self.generator is None:
            self._generation_failed(match_id, ["no question generator configured"])

        result = await self.generator.generate(description)
        if not result.ok:
            self._generation_failed(match_id, result.errors or ["generator returned no data"])

        try:
            questions = [Question.model_validate(item) for item in result.data]
        except ValidationError as exc:
            self._generation_failed(match_id, [f"invalid question: {err['msg']}" for err in exc.errors()])

        try:
            await self.store.update(match_id, {"questions": [q.model_dump() for q in questions]})
        except StoreError as exc:
            logger.error("Publishing questions for match %s failed: %s", match_id, exc)
            self.game.fail(str(exc))
            raise GenerationError(match_id, [str(exc)]) from exc

        logger.info("Published %d questions to match %s", len(questions), match_id)
        return questions

    def _generation_failed(self, match_id: str, errors: List[str]) -> None:
        # The peer is not told; it stays in found/searching until it gives up.
        logger.error("Question generation for match %s failed: %s", match_id, errors)
        self.game.fail("; ".join(errors))
        raise GenerationError(match_id, errors)

    def can_answer(self) -> bool:
        game = self.game
        return (
            game.phase == GamePhase.QUIZ
            and game.current_question is not None
            and game.answered_index != game.pointer
        )

    async def submit_answer(self, match_id: str, chosen_option: str) -> bool:
        """
        Record an answer for the question at the local pointer.

        Returns False without writing when the local game cannot take an
        answer (not in quiz, pointer out of range, or this question was
        already answered here). Returns True once the write has been issued.
        """
        if not self.can_answer():
            return False

        game = self.game
        match = game.match
        question = game.current_question
        index = game.pointer
        game.answered_index = index

        fields = {"current_question_index": index}
        correct = chosen_option == question.correct_answer
        if correct:
            score_field = match.score_field_for(game.player_id)
            fields[score_field] = getattr(match, score_field) + CORRECT_ANSWER_POINTS

        try:
            await self.store.update(match_id, fields)
        except StoreError as exc:
            # answered_index is kept; the local game does not roll back.
            logger.error("Answer for question %d of match %s was not stored: %s", index, match_id, exc)
            game.fail(str(exc))
            raise AnswerSubmissionError(match_id, index, str(exc)) from exc

        logger.debug(
            "Player %s answered question %d of match %s (%s)",
            game.player_id, index, match_id, "correct" if correct else "wrong",
        )
        return True

    def is_complete(self) -> bool:
        match = self.game.match
        return match is not None and self.game.pointer >= len(match.questions)

    def outcome(self) -> Optional[Outcome]:
        if not self.is_complete():
            return None
        return Outcome.from_match(self.game.match)
