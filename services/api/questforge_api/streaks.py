from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from questforge_api.models import Quest, QuestStreak


FREQUENCY_INTERVAL_DAYS: dict[str, int] = {
    "daily": 1,
    "weekly": 7,
    "monthly": 30,
}


def expected_interval(*, frequency: str, custom_interval_days: int | None) -> int:
    fixed = FREQUENCY_INTERVAL_DAYS.get(str(frequency))
    if fixed is not None:
        return fixed
    if custom_interval_days is None:
        return 1
    return int(custom_interval_days)


def streak_maintained(
    *, current_day: int, last_completion_day: int | None, interval: int
) -> bool:
    """
    True when a completion on ``current_day`` continues the chain.

    The first completion always counts. Otherwise the gap must be positive
    and no larger than the quest's interval; a longer gap breaks the chain.
    """
    if last_completion_day is None:
        return True
    gap = int(current_day) - int(last_completion_day)
    return gap > 0 and gap <= int(interval)


@dataclass(frozen=True)
class StreakInfo:
    quest_id: int
    user_id: str
    current_streak: int
    longest_streak: int
    last_completion_day: int | None


@dataclass(frozen=True)
class StreakUpdate:
    previous_streak: int
    current_streak: int
    longest_streak: int
    maintained: bool

    @property
    def was_reset(self) -> bool:
        return not self.maintained and self.previous_streak > 0


def get_streak_info(session: Session, *, quest_id: int, user_id: str) -> StreakInfo:
    row = session.get(QuestStreak, {"quest_id": int(quest_id), "user_id": str(user_id)})
    if row is None:
        return StreakInfo(
            quest_id=int(quest_id),
            user_id=str(user_id),
            current_streak=0,
            longest_streak=0,
            last_completion_day=None,
        )
    return StreakInfo(
        quest_id=int(row.quest_id),
        user_id=str(row.user_id),
        current_streak=int(row.current_streak or 0),
        longest_streak=int(row.longest_streak or 0),
        last_completion_day=row.last_completion_day,
    )


def apply_completion(
    session: Session, *, quest: Quest, user_id: str, current_day: int
) -> StreakUpdate:
    row = session.get(QuestStreak, {"quest_id": int(quest.id), "user_id": str(user_id)})
    if row is None:
        row = QuestStreak(
            quest_id=int(quest.id),
            user_id=str(user_id),
            current_streak=0,
            longest_streak=0,
            last_completion_day=None,
        )

    interval = expected_interval(
        frequency=str(quest.frequency),
        custom_interval_days=quest.custom_interval_days,
    )
    previous = int(row.current_streak or 0)
    maintained = streak_maintained(
        current_day=current_day,
        last_completion_day=row.last_completion_day,
        interval=interval,
    )
    new_current = previous + 1 if maintained else 1
    new_longest = max(new_current, int(row.longest_streak or 0))

    row.current_streak = new_current
    row.longest_streak = new_longest
    row.last_completion_day = int(current_day)
    session.add(row)

    return StreakUpdate(
        previous_streak=previous,
        current_streak=new_current,
        longest_streak=new_longest,
        maintained=maintained,
    )
