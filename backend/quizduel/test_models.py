from __future__ import annotations

from unittest import TestCase

from pydantic import ValidationError

from .models import CORRECT_ANSWER_POINTS, Match, Question, UNASSIGNED


def _question(**overrides) -> dict:
    data = {
        "question": "Who won the 2022 World Cup?",
        "options": ["Brazil", "France", "Argentina", "Germany"],
        "correctAnswer": "Argentina",
        "category": "Sport",
    }
    data.update(overrides)
    return data


class QuestionTests(TestCase):
    def test_accepts_generator_keys(self):
        q = Question.model_validate(_question())
        self.assertEqual(q.correct_answer, "Argentina")
        self.assertEqual(q.options[2], "Argentina")

    def test_accepts_field_names(self):
        data = _question()
        data["correct_answer"] = data.pop("correctAnswer")
        self.assertEqual(Question.model_validate(data).correct_answer, "Argentina")

    def test_rejects_missing_field(self):
        data = _question()
        del data["category"]
        with self.assertRaises(ValidationError):
            Question.model_validate(data)

    def test_rejects_wrong_option_count(self):
        with self.assertRaises(ValidationError):
            Question.model_validate(_question(options=["Brazil", "France", "Argentina"]))

    def test_rejects_duplicate_options(self):
        with self.assertRaises(ValidationError):
            Question.model_validate(_question(options=["Brazil", "Brazil", "Argentina", "Germany"]))

    def test_rejects_answer_outside_options(self):
        with self.assertRaises(ValidationError):
            Question.model_validate(_question(correctAnswer="Spain"))


class MatchTests(TestCase):
    def test_defaults(self):
        m = Match(id="m1", player_one_id="alice")
        self.assertEqual(m.player_two_id, UNASSIGNED)
        self.assertTrue(m.is_open)
        self.assertEqual(m.questions, [])
        self.assertEqual((m.current_question_index, m.player_one_score, m.player_two_score), (0, 0, 0))

    def test_score_helpers(self):
        m = Match(id="m1", player_one_id="alice", player_two_id="bob", player_two_score=CORRECT_ANSWER_POINTS)
        self.assertFalse(m.is_open)
        self.assertEqual(m.score_field_for("alice"), "player_one_score")
        self.assertEqual(m.score_field_for("bob"), "player_two_score")
        self.assertEqual(m.score_for("bob"), 10)
        self.assertEqual(m.opponent_of("alice"), "bob")
        self.assertEqual(m.opponent_of("bob"), "alice")
