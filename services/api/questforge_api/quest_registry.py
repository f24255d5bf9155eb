from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from fastapi import Request
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from questforge_api import leaderboard, profiles, streaks
from questforge_api.clock import Clock, clock_datetime, current_day
from questforge_api.core.config import Settings
from questforge_api.errors import (
    AlreadyCompletedToday,
    CapacityExceeded,
    InvalidInput,
    NotAuthorized,
    NotChallengeMember,
    QuestNotActive,
    QuestNotFound,
)
from questforge_api.eventlog import log_event
from questforge_api.models import (
    Challenge,
    ChallengeParticipant,
    Quest,
    QuestCompletion,
    UserQuestIndex,
)
from questforge_api.sequences import next_id


Frequency = Literal["daily", "weekly", "monthly", "custom"]
Difficulty = Literal["easy", "medium", "hard"]

FREQUENCIES: tuple[str, ...] = ("daily", "weekly", "monthly", "custom")
DIFFICULTY_LEVELS: dict[str, int] = {"easy": 1, "medium": 2, "hard": 3}


@dataclass(frozen=True)
class Schedule:
    frequency: str
    custom_interval_days: int | None
    difficulty: str


def validate_schedule(
    *, frequency: str, custom_interval_days: int | None, difficulty: str
) -> Schedule:
    freq = str(frequency or "").strip().lower()
    if freq not in FREQUENCIES:
        raise InvalidInput("frequency", f"unknown frequency {frequency!r}")
    diff = str(difficulty or "").strip().lower()
    if diff not in DIFFICULTY_LEVELS:
        raise InvalidInput("difficulty", f"unknown difficulty {difficulty!r}")

    interval: int | None = None
    if freq == "custom" and custom_interval_days is not None:
        interval = int(custom_interval_days)
        if interval < 1:
            raise InvalidInput(
                "custom_interval_days", "custom interval must be at least 1 day"
            )
    return Schedule(frequency=freq, custom_interval_days=interval, difficulty=diff)


def completion_reward(difficulty: str) -> int:
    settings = Settings()
    level = DIFFICULTY_LEVELS.get(str(difficulty), 0)
    return int(level) * int(settings.reputation_per_difficulty_level)


def _append_to_user_index(session: Session, *, user_id: str, quest_id: int) -> None:
    settings = Settings()
    count = int(
        session.scalar(
            select(func.count())
            .select_from(UserQuestIndex)
            .where(UserQuestIndex.user_id == str(user_id))
        )
        or 0
    )
    if count >= int(settings.max_quests_per_user):
        raise CapacityExceeded(
            "quest index is full",
            collection="user_quests",
            capacity=int(settings.max_quests_per_user),
        )
    session.add(UserQuestIndex(user_id=str(user_id), quest_id=int(quest_id), position=count))
    session.flush()


def create_quest(
    session: Session,
    *,
    owner_id: str,
    name: str,
    description: str,
    frequency: str,
    difficulty: str,
    reward: int,
    clock: Clock,
    custom_interval_days: int | None = None,
    origin_template_id: int | None = None,
    origin_challenge_id: int | None = None,
    request: Request | None = None,
) -> Quest:
    schedule = validate_schedule(
        frequency=frequency,
        custom_interval_days=custom_interval_days,
        difficulty=difficulty,
    )
    if int(reward) < 0:
        raise InvalidInput("reward", "reward must be non-negative")

    profiles.ensure_profile(session, user_id=owner_id)
    day = current_day(clock)
    quest = Quest(
        id=next_id(session, name="quest"),
        owner_id=str(owner_id),
        name=str(name),
        description=str(description or ""),
        frequency=schedule.frequency,
        custom_interval_days=schedule.custom_interval_days,
        difficulty=schedule.difficulty,
        reward_points=int(reward),
        active=True,
        created_day=day,
        origin_template_id=int(origin_template_id) if origin_template_id is not None else None,
        origin_challenge_id=(
            int(origin_challenge_id) if origin_challenge_id is not None else None
        ),
    )
    session.add(quest)
    session.flush()
    _append_to_user_index(session, user_id=owner_id, quest_id=int(quest.id))

    log_event(
        session,
        type="quest_created",
        user_id=str(owner_id),
        request=request,
        payload={
            "quest_id": int(quest.id),
            "frequency": schedule.frequency,
            "difficulty": schedule.difficulty,
            "origin_template_id": quest.origin_template_id,
            "origin_challenge_id": quest.origin_challenge_id,
            "day": day,
        },
        now=clock_datetime(clock),
    )
    return quest


def _template_challenges_joined(
    session: Session, *, template_id: int, user_id: str
) -> tuple[bool, bool]:
    """(template backs any challenge, caller joined one of them)."""
    any_challenge = session.scalar(
        select(Challenge.id).where(Challenge.template_id == int(template_id)).limit(1)
    )
    if any_challenge is None:
        return False, False
    joined = session.scalar(
        select(ChallengeParticipant.challenge_id)
        .join(Challenge, Challenge.id == ChallengeParticipant.challenge_id)
        .where(Challenge.template_id == int(template_id))
        .where(ChallengeParticipant.user_id == str(user_id))
        .limit(1)
    )
    return True, joined is not None


def _authorize_completion(session: Session, *, quest: Quest, caller_id: str) -> None:
    if str(quest.owner_id) == str(caller_id):
        return
    if quest.origin_template_id is None:
        raise NotAuthorized("only the quest owner may complete this quest")
    has_challenge, joined = _template_challenges_joined(
        session, template_id=int(quest.origin_template_id), user_id=caller_id
    )
    if joined:
        return
    if has_challenge:
        raise NotChallengeMember(
            "join a challenge built on this quest's template first",
            template_id=int(quest.origin_template_id),
        )
    raise NotAuthorized("only the quest owner may complete this quest")


@dataclass(frozen=True)
class CompletionResult:
    quest_id: int
    user_id: str
    day: int
    reputation_awarded: int
    streak: streaks.StreakUpdate
    leaderboards_updated: list[int] = field(default_factory=list)


def complete_quest(
    session: Session,
    *,
    caller_id: str,
    quest_id: int,
    clock: Clock,
    request: Request | None = None,
) -> CompletionResult:
    quest = session.get(Quest, int(quest_id))
    if quest is None:
        raise QuestNotFound(quest_id=int(quest_id))
    _authorize_completion(session, quest=quest, caller_id=caller_id)
    if not quest.active:
        raise QuestNotActive("quest is inactive", quest_id=int(quest.id))

    day = current_day(clock)
    now = clock_datetime(clock)
    if session.get(QuestCompletion, {"quest_id": int(quest.id), "day": day}) is not None:
        raise AlreadyCompletedToday(quest_id=int(quest.id), day=day)

    try:
        session.add(
            QuestCompletion(
                quest_id=int(quest.id),
                day=day,
                user_id=str(caller_id),
                completed_at=now,
            )
        )
        session.flush()
    except IntegrityError as exc:
        raise AlreadyCompletedToday(quest_id=int(quest.id), day=day) from exc

    update = streaks.apply_completion(session, quest=quest, user_id=caller_id, current_day=day)
    reward = completion_reward(str(quest.difficulty))
    profiles.record_completion(
        session,
        user_id=caller_id,
        day=day,
        reward=reward,
        new_current_streak=update.current_streak,
    )

    updated: list[int] = []
    if quest.origin_challenge_id is not None:
        # A challenge quest scores only on the board of the challenge that spawned it.
        updated = leaderboard.record_challenge_completion(
            session,
            challenge_id=int(quest.origin_challenge_id),
            user_id=caller_id,
            streak=update.current_streak,
            day=day,
        )
    elif quest.origin_template_id is not None:
        updated = leaderboard.record_template_completion(
            session,
            template_id=int(quest.origin_template_id),
            user_id=caller_id,
            streak=update.current_streak,
            day=day,
        )

    if update.was_reset:
        log_event(
            session,
            type="quest_streak_reset",
            user_id=str(caller_id),
            request=request,
            payload={
                "quest_id": int(quest.id),
                "previous_streak": update.previous_streak,
                "day": day,
            },
            now=now,
        )
    log_event(
        session,
        type="quest_completed",
        user_id=str(caller_id),
        request=request,
        payload={
            "quest_id": int(quest.id),
            "day": day,
            "reputation_awarded": reward,
            "current_streak": update.current_streak,
            "leaderboards": updated,
        },
        now=now,
    )
    return CompletionResult(
        quest_id=int(quest.id),
        user_id=str(caller_id),
        day=day,
        reputation_awarded=reward,
        streak=update,
        leaderboards_updated=updated,
    )


def toggle_active(
    session: Session,
    *,
    caller_id: str,
    quest_id: int,
    clock: Clock,
    request: Request | None = None,
) -> bool:
    quest = session.get(Quest, int(quest_id))
    if quest is None:
        raise QuestNotFound(quest_id=int(quest_id))
    if str(quest.owner_id) != str(caller_id):
        raise NotAuthorized("only the quest owner may toggle it")
    quest.active = not bool(quest.active)
    session.add(quest)
    log_event(
        session,
        type="quest_toggled",
        user_id=str(caller_id),
        request=request,
        payload={"quest_id": int(quest.id), "active": bool(quest.active)},
        now=clock_datetime(clock),
    )
    return bool(quest.active)


def get_quest(session: Session, *, quest_id: int) -> Quest | None:
    return session.get(Quest, int(quest_id))


def list_user_quests(session: Session, *, user_id: str) -> list[Quest]:
    return list(
        session.scalars(
            select(Quest)
            .join(UserQuestIndex, UserQuestIndex.quest_id == Quest.id)
            .where(UserQuestIndex.user_id == str(user_id))
            .order_by(UserQuestIndex.position.asc())
        ).all()
    )


def is_quest_completed(session: Session, *, quest_id: int, day: int) -> bool:
    return session.get(QuestCompletion, {"quest_id": int(quest_id), "day": int(day)}) is not None
