from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from typing import Optional

from .db import settings
from .errors import RecordNotFoundError
from .logging_config import setup_logging
from .models import Match
from .schemas import ChangeFeedOut, CreateMatchIn, MatchListOut, UpdateMatchIn
from .store import InMemoryRecordStore, RecordStore

setup_logging(settings.LOG_LEVEL)

app = FastAPI(title="QuizDuel Match Store")

origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
origin_regex = settings.CORS_ORIGIN_REGEX or None

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_origin_regex=origin_regex,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

store = InMemoryRecordStore()


def get_store() -> RecordStore:
    return store


@app.get("/api/health")
async def health():
    return {"ok": True}


@app.post("/api/matches", response_model=Match, status_code=201)
async def create_match(payload: CreateMatchIn, records: RecordStore = Depends(get_store)):
    doc = await records.create(payload.model_dump())
    return Match(**doc)


@app.get("/api/matches", response_model=MatchListOut)
async def list_matches(
    id: Optional[str] = None,
    player_one_id: Optional[str] = None,
    player_two_id: Optional[str] = None,
    records: RecordStore = Depends(get_store),
):
    candidates = {"id": id, "player_one_id": player_one_id, "player_two_id": player_two_id}
    record_filter = {key: value for key, value in candidates.items() if value is not None}
    docs = await records.list(record_filter)
    return MatchListOut(matches=[Match(**doc) for doc in docs])


# Registered before /api/matches/{match_id} so "changes" is not taken as an id.
@app.get("/api/matches/changes", response_model=ChangeFeedOut)
async def list_changes(
    after: int | None = None,
    limit: int = 200,
    id: Optional[str] = None,
    records: InMemoryRecordStore = Depends(get_store),
):
    events = await records.changes(after=after, limit=limit, record_id=id)
    latest_seq = events[-1]["seq"] if events else after
    head_seq = await records.event_store.latest_seq()
    return {"events": events, "latest_seq": latest_seq, "head_seq": head_seq}


@app.get("/api/matches/{match_id}", response_model=Match)
async def get_match(match_id: str, records: RecordStore = Depends(get_store)):
    doc = await records.get(match_id)
    if not doc:
        raise HTTPException(404, "Match not found")
    return Match(**doc)


@app.patch("/api/matches/{match_id}", response_model=Match)
async def update_match(match_id: str, payload: UpdateMatchIn, records: RecordStore = Depends(get_store)):
    try:
        doc = await records.update(match_id, payload.model_dump(exclude_unset=True))
    except RecordNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Match(**doc)
