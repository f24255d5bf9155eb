from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from questforge_api.clock import Clock
from questforge_api.deps import CurrentClock, CurrentUserId, DBSession
from questforge_api.locks import write_transaction
from questforge_api.marketplace import create_quest_from_template
from questforge_api.models import Quest
from questforge_api.quest_registry import (
    complete_quest,
    create_quest,
    get_quest,
    is_quest_completed,
    list_user_quests,
    toggle_active,
)
from questforge_api.streaks import get_streak_info


class QuestOut(BaseModel):
    id: int
    owner_id: str
    name: str
    description: str
    frequency: str
    custom_interval_days: int | None = None
    difficulty: str
    reward_points: int
    active: bool
    created_day: int
    origin_template_id: int | None = None
    origin_challenge_id: int | None = None


class CreateQuestIn(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    description: str = Field(default="", max_length=2000)
    frequency: str = Field(min_length=1, max_length=16)
    custom_interval_days: int | None = Field(default=None, le=3650)
    difficulty: str = Field(min_length=1, max_length=16)
    reward: int = Field(default=0, ge=0, le=1_000_000)


class StreakOut(BaseModel):
    current_streak: int
    longest_streak: int
    last_completion_day: int | None = None


class CompleteQuestOut(BaseModel):
    ok: bool = True
    quest_id: int
    day: int
    reputation_awarded: int
    streak: StreakOut
    streak_maintained: bool
    leaderboards_updated: list[int] = Field(default_factory=list)


class ToggleQuestOut(BaseModel):
    quest_id: int
    active: bool


class CompletedOut(BaseModel):
    quest_id: int
    day: int
    completed: bool


class StreakInfoOut(StreakOut):
    quest_id: int
    user_id: str


router = APIRouter(prefix="/api/quests", tags=["quests"])


def quest_to_out(q: Quest) -> QuestOut:
    return QuestOut(
        id=int(q.id),
        owner_id=str(q.owner_id),
        name=str(q.name),
        description=str(q.description or ""),
        frequency=str(q.frequency),
        custom_interval_days=q.custom_interval_days,
        difficulty=str(q.difficulty),
        reward_points=int(q.reward_points or 0),
        active=bool(q.active),
        created_day=int(q.created_day),
        origin_template_id=q.origin_template_id,
        origin_challenge_id=q.origin_challenge_id,
    )


@router.post("", response_model=QuestOut)
def create(
    req: CreateQuestIn,
    request: Request,
    user_id: str = CurrentUserId,
    db: Session = DBSession,
    clock: Clock = CurrentClock,
) -> QuestOut:
    with write_transaction(db):
        quest = create_quest(
            db,
            owner_id=user_id,
            name=req.name,
            description=req.description,
            frequency=req.frequency,
            custom_interval_days=req.custom_interval_days,
            difficulty=req.difficulty,
            reward=req.reward,
            clock=clock,
            request=request,
        )
        out = quest_to_out(quest)
    return out


@router.get("", response_model=list[QuestOut])
def mine(
    user_id: str = CurrentUserId,
    db: Session = DBSession,
) -> list[QuestOut]:
    return [quest_to_out(q) for q in list_user_quests(db, user_id=user_id)]


@router.post("/from-template/{template_id}", response_model=QuestOut)
def from_template(
    template_id: int,
    request: Request,
    user_id: str = CurrentUserId,
    db: Session = DBSession,
    clock: Clock = CurrentClock,
) -> QuestOut:
    with write_transaction(db):
        quest = create_quest_from_template(
            db, caller_id=user_id, template_id=template_id, clock=clock, request=request
        )
        out = quest_to_out(quest)
    return out


@router.get("/{quest_id}", response_model=QuestOut | None)
def get(quest_id: int, db: Session = DBSession) -> QuestOut | None:
    quest = get_quest(db, quest_id=quest_id)
    return quest_to_out(quest) if quest is not None else None


@router.post("/{quest_id}/complete", response_model=CompleteQuestOut)
def complete(
    quest_id: int,
    request: Request,
    user_id: str = CurrentUserId,
    db: Session = DBSession,
    clock: Clock = CurrentClock,
) -> CompleteQuestOut:
    with write_transaction(db):
        result = complete_quest(
            db, caller_id=user_id, quest_id=quest_id, clock=clock, request=request
        )
    return CompleteQuestOut(
        quest_id=result.quest_id,
        day=result.day,
        reputation_awarded=result.reputation_awarded,
        streak=StreakOut(
            current_streak=result.streak.current_streak,
            longest_streak=result.streak.longest_streak,
            last_completion_day=result.day,
        ),
        streak_maintained=result.streak.maintained,
        leaderboards_updated=list(result.leaderboards_updated),
    )


@router.post("/{quest_id}/toggle", response_model=ToggleQuestOut)
def toggle(
    quest_id: int,
    request: Request,
    user_id: str = CurrentUserId,
    db: Session = DBSession,
    clock: Clock = CurrentClock,
) -> ToggleQuestOut:
    with write_transaction(db):
        active = toggle_active(
            db, caller_id=user_id, quest_id=quest_id, clock=clock, request=request
        )
    return ToggleQuestOut(quest_id=quest_id, active=active)


@router.get("/{quest_id}/completions/{day}", response_model=CompletedOut)
def completed(quest_id: int, day: int, db: Session = DBSession) -> CompletedOut:
    return CompletedOut(
        quest_id=quest_id,
        day=day,
        completed=is_quest_completed(db, quest_id=quest_id, day=day),
    )


@router.get("/{quest_id}/streak/{user_id}", response_model=StreakInfoOut)
def streak(quest_id: int, user_id: str, db: Session = DBSession) -> StreakInfoOut:
    info = get_streak_info(db, quest_id=quest_id, user_id=user_id)
    return StreakInfoOut(
        quest_id=info.quest_id,
        user_id=info.user_id,
        current_streak=info.current_streak,
        longest_streak=info.longest_streak,
        last_completion_day=info.last_completion_day,
    )
