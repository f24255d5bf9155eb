from __future__ import annotations

from fastapi import APIRouter, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from questforge_api.clock import Clock
from questforge_api.core.config import Settings
from questforge_api.challenges import (
    close_challenge,
    create_challenge,
    get_challenge,
    is_participant,
    join_challenge,
    participant_count,
)
from questforge_api.deps import CurrentClock, CurrentUserId, DBSession
from questforge_api.leaderboard import ranked
from questforge_api.locks import write_transaction
from questforge_api.models import Challenge


class ChallengeOut(BaseModel):
    id: int
    creator_id: str
    name: str
    description: str
    template_id: int
    start_day: int
    end_day: int
    active: bool
    participant_count: int


class CreateChallengeIn(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    description: str = Field(default="", max_length=2000)
    template_id: int
    start_day: int = Field(ge=0)
    end_day: int = Field(ge=0)


class CreateChallengeOut(BaseModel):
    challenge: ChallengeOut
    quest_id: int


class JoinChallengeOut(BaseModel):
    challenge_id: int
    quest_id: int


class ParticipantOut(BaseModel):
    challenge_id: int
    user_id: str
    participant: bool


class ChallengeLeaderboardRow(BaseModel):
    rank: int
    user_id: str
    score: int
    streak: int


router = APIRouter(prefix="/api/challenges", tags=["challenges"])


def _challenge_out(db: Session, ch: Challenge) -> ChallengeOut:
    return ChallengeOut(
        id=int(ch.id),
        creator_id=str(ch.creator_id),
        name=str(ch.name),
        description=str(ch.description or ""),
        template_id=int(ch.template_id),
        start_day=int(ch.start_day),
        end_day=int(ch.end_day),
        active=bool(ch.active),
        participant_count=participant_count(db, challenge_id=int(ch.id)),
    )


@router.post("", response_model=CreateChallengeOut)
def create(
    req: CreateChallengeIn,
    request: Request,
    user_id: str = CurrentUserId,
    db: Session = DBSession,
    clock: Clock = CurrentClock,
) -> CreateChallengeOut:
    with write_transaction(db):
        created = create_challenge(
            db,
            creator_id=user_id,
            name=req.name,
            description=req.description,
            template_id=req.template_id,
            start_day=req.start_day,
            end_day=req.end_day,
            clock=clock,
            request=request,
        )
        out = CreateChallengeOut(
            challenge=_challenge_out(db, created.challenge), quest_id=created.quest_id
        )
    return out


@router.get("/{challenge_id}", response_model=ChallengeOut | None)
def get(challenge_id: int, db: Session = DBSession) -> ChallengeOut | None:
    ch = get_challenge(db, challenge_id=challenge_id)
    return _challenge_out(db, ch) if ch is not None else None


@router.post("/{challenge_id}/join", response_model=JoinChallengeOut)
def join(
    challenge_id: int,
    request: Request,
    user_id: str = CurrentUserId,
    db: Session = DBSession,
    clock: Clock = CurrentClock,
) -> JoinChallengeOut:
    with write_transaction(db):
        quest_id = join_challenge(
            db, user_id=user_id, challenge_id=challenge_id, clock=clock, request=request
        )
    return JoinChallengeOut(challenge_id=challenge_id, quest_id=quest_id)


@router.post("/{challenge_id}/close", response_model=ChallengeOut)
def close(
    challenge_id: int,
    request: Request,
    user_id: str = CurrentUserId,
    db: Session = DBSession,
    clock: Clock = CurrentClock,
) -> ChallengeOut:
    with write_transaction(db):
        ch = close_challenge(
            db, caller_id=user_id, challenge_id=challenge_id, clock=clock, request=request
        )
        out = _challenge_out(db, ch)
    return out


@router.get("/{challenge_id}/participants/{user_id}", response_model=ParticipantOut)
def participant(challenge_id: int, user_id: str, db: Session = DBSession) -> ParticipantOut:
    return ParticipantOut(
        challenge_id=challenge_id,
        user_id=user_id,
        participant=is_participant(db, challenge_id=challenge_id, user_id=user_id),
    )


@router.get("/{challenge_id}/leaderboard", response_model=list[ChallengeLeaderboardRow])
def leaderboard(
    challenge_id: int,
    limit: int | None = Query(default=None, ge=1, le=1000),
    db: Session = DBSession,
) -> list[ChallengeLeaderboardRow]:
    settings = Settings()
    rows = ranked(
        db,
        challenge_id=challenge_id,
        limit=int(limit or settings.leaderboard_default_limit),
    )
    return [
        ChallengeLeaderboardRow(rank=r.rank, user_id=r.user_id, score=r.score, streak=r.streak)
        for r in rows
    ]
