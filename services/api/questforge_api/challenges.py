from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from questforge_api import leaderboard, profiles
from questforge_api.clock import Clock, clock_datetime, current_day
from questforge_api.core.config import Settings
from questforge_api.errors import (
    AlreadyJoinedChallenge,
    CapacityExceeded,
    ChallengeNotFound,
    InvalidInput,
    NotActive,
    NotAuthorized,
    TemplateNotFound,
)
from questforge_api.eventlog import log_event
from questforge_api.models import Challenge, ChallengeParticipant, QuestTemplate
from questforge_api.quest_registry import create_quest
from questforge_api.sequences import next_id


@dataclass(frozen=True)
class ChallengeCreated:
    challenge: Challenge
    quest_id: int


def participant_count(session: Session, *, challenge_id: int) -> int:
    return int(
        session.scalar(
            select(func.count())
            .select_from(ChallengeParticipant)
            .where(ChallengeParticipant.challenge_id == int(challenge_id))
        )
        or 0
    )


def is_participant(session: Session, *, challenge_id: int, user_id: str) -> bool:
    row = session.get(
        ChallengeParticipant, {"challenge_id": int(challenge_id), "user_id": str(user_id)}
    )
    return row is not None


def _add_participant(session: Session, *, challenge: Challenge, user_id: str, day: int) -> None:
    settings = Settings()
    count = participant_count(session, challenge_id=int(challenge.id))
    if count >= int(settings.challenge_participant_cap):
        raise CapacityExceeded(
            "challenge is full",
            collection="participants",
            capacity=int(settings.challenge_participant_cap),
        )
    session.add(
        ChallengeParticipant(
            challenge_id=int(challenge.id),
            user_id=str(user_id),
            position=count,
            joined_day=int(day),
        )
    )
    leaderboard.add_entry(session, challenge_id=int(challenge.id), user_id=user_id)
    session.flush()


def _spawn_quest(
    session: Session,
    *,
    template: QuestTemplate,
    challenge: Challenge,
    user_id: str,
    clock: Clock,
    request: Request | None,
) -> int:
    quest = create_quest(
        session,
        owner_id=user_id,
        name=str(template.name),
        description=str(template.description or ""),
        frequency=str(template.frequency),
        custom_interval_days=template.custom_interval_days,
        difficulty=str(template.difficulty),
        reward=int(template.recommended_reward or 0),
        origin_template_id=int(template.id),
        origin_challenge_id=int(challenge.id),
        clock=clock,
        request=request,
    )
    return int(quest.id)


def create_challenge(
    session: Session,
    *,
    creator_id: str,
    name: str,
    description: str,
    template_id: int,
    start_day: int,
    end_day: int,
    clock: Clock,
    request: Request | None = None,
) -> ChallengeCreated:
    template = session.get(QuestTemplate, int(template_id))
    if template is None:
        raise TemplateNotFound(template_id=int(template_id))
    if int(end_day) <= int(start_day):
        raise InvalidInput(
            "date_range",
            "end_day must be after start_day",
            start_day=int(start_day),
            end_day=int(end_day),
        )
    day = current_day(clock)
    if int(start_day) < day:
        raise InvalidInput(
            "start_day",
            "start_day is in the past",
            start_day=int(start_day),
            current_day=day,
        )

    profiles.ensure_profile(session, user_id=creator_id)
    challenge = Challenge(
        id=next_id(session, name="challenge"),
        creator_id=str(creator_id),
        name=str(name),
        description=str(description or ""),
        template_id=int(template.id),
        start_day=int(start_day),
        end_day=int(end_day),
        active=True,
        created_day=day,
    )
    session.add(challenge)
    session.flush()
    _add_participant(session, challenge=challenge, user_id=creator_id, day=day)
    quest_id = _spawn_quest(
        session,
        template=template,
        challenge=challenge,
        user_id=creator_id,
        clock=clock,
        request=request,
    )

    log_event(
        session,
        type="challenge_created",
        user_id=str(creator_id),
        request=request,
        payload={
            "challenge_id": int(challenge.id),
            "template_id": int(template.id),
            "start_day": int(start_day),
            "end_day": int(end_day),
            "quest_id": quest_id,
        },
        now=clock_datetime(clock),
    )
    return ChallengeCreated(challenge=challenge, quest_id=quest_id)


def join_challenge(
    session: Session,
    *,
    user_id: str,
    challenge_id: int,
    clock: Clock,
    request: Request | None = None,
) -> int:
    challenge = session.get(Challenge, int(challenge_id))
    if challenge is None:
        raise ChallengeNotFound(challenge_id=int(challenge_id))
    day = current_day(clock)
    if not challenge.active or day > int(challenge.end_day):
        raise NotActive(
            "challenge is closed",
            challenge_id=int(challenge.id),
            end_day=int(challenge.end_day),
        )
    if is_participant(session, challenge_id=int(challenge.id), user_id=user_id):
        raise AlreadyJoinedChallenge(challenge_id=int(challenge.id))

    template = session.get(QuestTemplate, int(challenge.template_id))
    if template is None:
        raise TemplateNotFound(template_id=int(challenge.template_id))

    profiles.ensure_profile(session, user_id=user_id)
    _add_participant(session, challenge=challenge, user_id=user_id, day=day)
    quest_id = _spawn_quest(
        session,
        template=template,
        challenge=challenge,
        user_id=user_id,
        clock=clock,
        request=request,
    )
    log_event(
        session,
        type="challenge_joined",
        user_id=str(user_id),
        request=request,
        payload={"challenge_id": int(challenge.id), "quest_id": quest_id},
        now=clock_datetime(clock),
    )
    return quest_id


def close_challenge(
    session: Session,
    *,
    caller_id: str,
    challenge_id: int,
    clock: Clock,
    request: Request | None = None,
) -> Challenge:
    challenge = session.get(Challenge, int(challenge_id))
    if challenge is None:
        raise ChallengeNotFound(challenge_id=int(challenge_id))
    if str(challenge.creator_id) != str(caller_id):
        raise NotAuthorized("only the challenge creator may close it")
    if challenge.active:
        challenge.active = False
        session.add(challenge)
        log_event(
            session,
            type="challenge_closed",
            user_id=str(caller_id),
            request=request,
            payload={"challenge_id": int(challenge.id)},
            now=clock_datetime(clock),
        )
    return challenge


def get_challenge(session: Session, *, challenge_id: int) -> Challenge | None:
    return session.get(Challenge, int(challenge_id))


def list_participants(session: Session, *, challenge_id: int) -> list[str]:
    rows = session.scalars(
        select(ChallengeParticipant.user_id)
        .where(ChallengeParticipant.challenge_id == int(challenge_id))
        .order_by(ChallengeParticipant.position.asc())
    ).all()
    return [str(u) for u in rows]
