from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from sqlalchemy.orm import Session

from questforge_api.errors import InsufficientReputation, InvalidInput
from questforge_api.models import UserProfile


@dataclass(frozen=True)
class ProfileView:
    user_id: str
    reputation: int
    total_completions: int
    longest_streak_ever: int
    current_streak_aggregate: int
    last_active_day: int | None


def _view(user_id: str, row: UserProfile | None) -> ProfileView:
    if row is None:
        return ProfileView(
            user_id=str(user_id),
            reputation=0,
            total_completions=0,
            longest_streak_ever=0,
            current_streak_aggregate=0,
            last_active_day=None,
        )
    return ProfileView(
        user_id=str(row.user_id),
        reputation=int(row.reputation or 0),
        total_completions=int(row.total_completions or 0),
        longest_streak_ever=int(row.longest_streak_ever or 0),
        current_streak_aggregate=int(row.current_streak_aggregate or 0),
        last_active_day=row.last_active_day,
    )


def get_or_default(session: Session, *, user_id: str) -> ProfileView:
    """Read a profile without creating it; unknown users read as zeroed."""
    return _view(user_id, session.get(UserProfile, str(user_id)))


def ensure_profile(session: Session, *, user_id: str) -> UserProfile:
    row = session.get(UserProfile, str(user_id))
    if row is not None:
        return row
    row = UserProfile(
        user_id=str(user_id),
        reputation=0,
        total_completions=0,
        longest_streak_ever=0,
        current_streak_aggregate=0,
        last_active_day=None,
    )
    session.add(row)
    session.flush()
    return row


def apply(
    session: Session, *, user_id: str, mutation: Callable[[UserProfile], None]
) -> UserProfile:
    row = ensure_profile(session, user_id=user_id)
    mutation(row)
    session.add(row)
    return row


def credit(session: Session, *, user_id: str, amount: int) -> UserProfile:
    if int(amount) < 0:
        raise InvalidInput("amount", "credit amount must be non-negative")

    def _credit(row: UserProfile) -> None:
        row.reputation = int(row.reputation or 0) + int(amount)

    return apply(session, user_id=user_id, mutation=_credit)


def debit(session: Session, *, user_id: str, amount: int) -> UserProfile:
    if int(amount) < 0:
        raise InvalidInput("amount", "debit amount must be non-negative")
    row = ensure_profile(session, user_id=user_id)
    balance = int(row.reputation or 0)
    if balance < int(amount):
        raise InsufficientReputation(
            "reputation balance too low",
            balance=balance,
            required=int(amount),
        )

    def _debit(r: UserProfile) -> None:
        r.reputation = balance - int(amount)

    return apply(session, user_id=user_id, mutation=_debit)


def transfer(session: Session, *, from_user_id: str, to_user_id: str, amount: int) -> None:
    """Move reputation between users; the total across both is unchanged."""
    debit(session, user_id=from_user_id, amount=amount)
    credit(session, user_id=to_user_id, amount=amount)


def record_completion(
    session: Session, *, user_id: str, day: int, reward: int, new_current_streak: int
) -> UserProfile:
    def _completed(row: UserProfile) -> None:
        row.reputation = int(row.reputation or 0) + int(reward)
        row.total_completions = int(row.total_completions or 0) + 1
        row.current_streak_aggregate = int(row.current_streak_aggregate or 0) + 1
        row.longest_streak_ever = max(
            int(row.longest_streak_ever or 0), int(new_current_streak)
        )
        row.last_active_day = int(day)

    return apply(session, user_id=user_id, mutation=_completed)
