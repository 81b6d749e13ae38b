from pydantic import BaseModel, Field
from typing import List, Optional
from .models import Match, Question, UNASSIGNED


class CreateMatchIn(BaseModel):
    player_one_id: str
    player_two_id: str = UNASSIGNED
    questions: List[Question] = Field(default_factory=list)


class UpdateMatchIn(BaseModel):
    player_two_id: Optional[str] = None
    questions: Optional[List[Question]] = None
    current_question_index: Optional[int] = Field(default=None, ge=0)
    player_one_score: Optional[int] = Field(default=None, ge=0)
    player_two_score: Optional[int] = Field(default=None, ge=0)


class MatchListOut(BaseModel):
    matches: List[Match]


class ChangeOut(BaseModel):
    seq: int
    record_id: str
    change: str
    timestamp: Optional[float] = None
    record: Match


class ChangeFeedOut(BaseModel):
    events: List[ChangeOut]
    latest_seq: Optional[int] = None
    head_seq: int = 0
