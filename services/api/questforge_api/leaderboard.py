from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from questforge_api.core.config import Settings
from questforge_api.errors import CapacityExceeded
from questforge_api.models import Challenge, LeaderboardEntry


@dataclass(frozen=True)
class RankedEntry:
    rank: int
    user_id: str
    score: int
    streak: int


def entry_count(session: Session, *, challenge_id: int) -> int:
    return int(
        session.scalar(
            select(func.count())
            .select_from(LeaderboardEntry)
            .where(LeaderboardEntry.challenge_id == int(challenge_id))
        )
        or 0
    )


def add_entry(session: Session, *, challenge_id: int, user_id: str) -> LeaderboardEntry:
    """Insert a zero-score entry; fails once the board holds the participant cap."""
    settings = Settings()
    count = entry_count(session, challenge_id=challenge_id)
    if count >= int(settings.challenge_participant_cap):
        raise CapacityExceeded(
            "leaderboard is full",
            collection="leaderboard",
            capacity=int(settings.challenge_participant_cap),
        )
    row = LeaderboardEntry(
        challenge_id=int(challenge_id),
        user_id=str(user_id),
        score=0,
        streak=0,
        position=count,
    )
    session.add(row)
    session.flush()
    return row


def upsert(session: Session, *, challenge_id: int, user_id: str, streak: int) -> bool:
    """
    Count one completion for ``user_id`` on the challenge board.

    Only existing entries change (score + 1, streak overwritten); a user without
    an entry has not joined, so the call is a no-op and returns False.
    """
    row = session.get(
        LeaderboardEntry, {"challenge_id": int(challenge_id), "user_id": str(user_id)}
    )
    if row is None:
        return False
    row.score = int(row.score or 0) + 1
    row.streak = int(streak)
    session.add(row)
    return True


def active_challenge_ids_for_template(
    session: Session, *, template_id: int, day: int
) -> list[int]:
    rows = session.scalars(
        select(Challenge.id)
        .where(Challenge.template_id == int(template_id))
        .where(Challenge.active.is_(True))
        .where(Challenge.start_day <= int(day))
        .where(Challenge.end_day >= int(day))
        .order_by(Challenge.id.asc())
    ).all()
    return [int(cid) for cid in rows]


def record_challenge_completion(
    session: Session, *, challenge_id: int, user_id: str, streak: int, day: int
) -> list[int]:
    challenge = session.get(Challenge, int(challenge_id))
    if challenge is None or not challenge.active:
        return []
    if not int(challenge.start_day) <= int(day) <= int(challenge.end_day):
        return []
    if upsert(session, challenge_id=int(challenge.id), user_id=user_id, streak=streak):
        return [int(challenge.id)]
    return []


def record_template_completion(
    session: Session, *, template_id: int, user_id: str, streak: int, day: int
) -> list[int]:
    updated: list[int] = []
    for cid in active_challenge_ids_for_template(session, template_id=template_id, day=day):
        if upsert(session, challenge_id=cid, user_id=user_id, streak=streak):
            updated.append(cid)
    return updated


def ranked(session: Session, *, challenge_id: int, limit: int | None = None) -> list[RankedEntry]:
    q = (
        select(LeaderboardEntry)
        .where(LeaderboardEntry.challenge_id == int(challenge_id))
        .order_by(
            LeaderboardEntry.score.desc(),
            LeaderboardEntry.streak.desc(),
            LeaderboardEntry.position.asc(),
        )
    )
    if limit is not None:
        q = q.limit(max(1, int(limit)))
    rows = session.scalars(q).all()
    return [
        RankedEntry(
            rank=idx,
            user_id=str(r.user_id),
            score=int(r.score or 0),
            streak=int(r.streak or 0),
        )
        for idx, r in enumerate(rows, start=1)
    ]
