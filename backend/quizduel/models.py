from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

UNASSIGNED = "notAssigned"
CORRECT_ANSWER_POINTS = 10
OPTIONS_PER_QUESTION = 4


class Question(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    question: str
    options: List[str]
    correct_answer: str = Field(alias="correctAnswer")
    category: str

    @field_validator("options")
    @classmethod
    def _four_distinct_options(cls, options: List[str]) -> List[str]:
        if len(options) != OPTIONS_PER_QUESTION:
            raise ValueError(f"expected {OPTIONS_PER_QUESTION} options, got {len(options)}")
        if len(set(options)) != len(options):
            raise ValueError("options must be distinct")
        return options

    @model_validator(mode="after")
    def _answer_is_an_option(self) -> "Question":
        if self.correct_answer not in self.options:
            raise ValueError(f"correct answer {self.correct_answer!r} is not one of the options")
        return self


# One record per two-player match; terminal once current_question_index reaches len(questions).
class Match(BaseModel):
    id: str
    player_one_id: str
    player_two_id: str = UNASSIGNED
    questions: List[Question] = Field(default_factory=list)
    current_question_index: int = 0
    player_one_score: int = 0
    player_two_score: int = 0

    @property
    def is_open(self) -> bool:
        return self.player_two_id == UNASSIGNED

    def score_field_for(self, player_id: str) -> str:
        return "player_one_score" if self.player_one_id == player_id else "player_two_score"

    def score_for(self, player_id: str) -> int:
        return getattr(self, self.score_field_for(player_id))

    def opponent_of(self, player_id: str) -> str:
        return self.player_two_id if self.player_one_id == player_id else self.player_one_id
