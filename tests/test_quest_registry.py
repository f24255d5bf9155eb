from __future__ import annotations

import pytest

from conftest import BASE_DAY


def _create(session, clock, owner: str, **kwargs):
    from questforge_api.locks import write_transaction
    from questforge_api.quest_registry import create_quest

    params = {
        "name": "Read 20 pages",
        "description": "Any book.",
        "frequency": "daily",
        "difficulty": "medium",
        "reward": 20,
    }
    params.update(kwargs)
    with write_transaction(session):
        quest = create_quest(session, owner_id=owner, clock=clock, **params)
        quest_id = int(quest.id)
    return quest_id


def test_medium_quest_completion_awards_reputation_once_per_day(
    session, clock, new_user
) -> None:
    from questforge_api.errors import AlreadyCompletedToday
    from questforge_api.locks import write_transaction
    from questforge_api.profiles import get_or_default
    from questforge_api.quest_registry import complete_quest, is_quest_completed
    from questforge_api.streaks import get_streak_info

    owner = new_user()
    qid = _create(session, clock, owner)

    with write_transaction(session):
        result = complete_quest(session, caller_id=owner, quest_id=qid, clock=clock)
    assert result.reputation_awarded == 20
    assert result.day == BASE_DAY
    assert result.leaderboards_updated == []

    profile = get_or_default(session, user_id=owner)
    assert profile.total_completions == 1
    assert profile.reputation == 20
    assert profile.last_active_day == BASE_DAY
    assert get_streak_info(session, quest_id=qid, user_id=owner).current_streak == 1
    assert is_quest_completed(session, quest_id=qid, day=BASE_DAY) is True
    assert is_quest_completed(session, quest_id=qid, day=BASE_DAY + 1) is False

    with pytest.raises(AlreadyCompletedToday):
        with write_transaction(session):
            complete_quest(session, caller_id=owner, quest_id=qid, clock=clock)

    # The failed attempt changed nothing.
    assert get_or_default(session, user_id=owner).reputation == 20
    assert get_or_default(session, user_id=owner).total_completions == 1


@pytest.mark.parametrize(("difficulty", "reward"), [("easy", 10), ("hard", 30)])
def test_reward_follows_difficulty_not_declared_points(
    session, clock, new_user, difficulty: str, reward: int
) -> None:
    from questforge_api.locks import write_transaction
    from questforge_api.quest_registry import complete_quest

    owner = new_user()
    qid = _create(session, clock, owner, difficulty=difficulty, reward=999)
    with write_transaction(session):
        result = complete_quest(session, caller_id=owner, quest_id=qid, clock=clock)
    assert result.reputation_awarded == reward


def test_schedule_is_normalized(session, clock, new_user) -> None:
    from questforge_api.quest_registry import get_quest

    owner = new_user()
    qid = _create(session, clock, owner, frequency="Weekly", difficulty="HARD",
                  custom_interval_days=4)
    quest = get_quest(session, quest_id=qid)
    assert quest is not None
    assert quest.frequency == "weekly"
    assert quest.difficulty == "hard"
    # Only custom schedules keep an interval.
    assert quest.custom_interval_days is None
    assert quest.active is True
    assert quest.created_day == BASE_DAY


@pytest.mark.parametrize(
    ("kwargs", "field"),
    [
        ({"frequency": "hourly"}, "frequency"),
        ({"difficulty": "legendary"}, "difficulty"),
        ({"frequency": "custom", "custom_interval_days": 0}, "custom_interval_days"),
        ({"reward": -1}, "reward"),
    ],
)
def test_create_quest_rejects_invalid_input(session, clock, new_user, kwargs, field) -> None:
    from questforge_api.errors import InvalidInput
    from questforge_api.quest_registry import list_user_quests

    owner = new_user()
    with pytest.raises(InvalidInput) as ei:
        _create(session, clock, owner, **kwargs)
    assert ei.value.field == field
    assert ei.value.to_detail()["error"] == "invalid_input"
    assert list_user_quests(session, user_id=owner) == []


def test_user_quests_listed_in_creation_order(session, clock, new_user) -> None:
    from questforge_api.quest_registry import list_user_quests

    owner = new_user()
    ids = [_create(session, clock, owner, name=f"q{i}") for i in range(3)]
    assert [int(q.id) for q in list_user_quests(session, user_id=owner)] == ids
    assert ids == sorted(ids)


def test_quest_ids_increase_monotonically(session) -> None:
    from questforge_api.locks import write_transaction
    from questforge_api.sequences import next_id

    with write_transaction(session):
        first = next_id(session, name="quest")
        second = next_id(session, name="quest")
    assert first >= 1
    assert second == first + 1


def test_user_quest_capacity(session, clock, new_user, monkeypatch) -> None:
    from questforge_api.errors import CapacityExceeded
    from questforge_api.quest_registry import list_user_quests

    monkeypatch.setenv("QUESTFORGE_MAX_QUESTS_PER_USER", "2")
    owner = new_user()
    _create(session, clock, owner)
    _create(session, clock, owner)
    with pytest.raises(CapacityExceeded) as ei:
        _create(session, clock, owner)
    assert ei.value.details["capacity"] == 2
    assert len(list_user_quests(session, user_id=owner)) == 2


def test_only_owner_may_complete_plain_quest(session, clock, new_user) -> None:
    from questforge_api.errors import NotAuthorized
    from questforge_api.locks import write_transaction
    from questforge_api.profiles import get_or_default
    from questforge_api.quest_registry import complete_quest

    owner, other = new_user(), new_user()
    qid = _create(session, clock, owner)
    with pytest.raises(NotAuthorized):
        with write_transaction(session):
            complete_quest(session, caller_id=other, quest_id=qid, clock=clock)
    assert get_or_default(session, user_id=other).total_completions == 0


def test_complete_missing_quest(session, clock, new_user) -> None:
    from questforge_api.errors import QuestNotFound
    from questforge_api.locks import write_transaction
    from questforge_api.quest_registry import complete_quest

    with pytest.raises(QuestNotFound) as ei:
        with write_transaction(session):
            complete_quest(session, caller_id=new_user(), quest_id=10**9, clock=clock)
    assert ei.value.details["entity"] == "quest"


def test_toggle_blocks_completion_until_reactivated(session, clock, new_user) -> None:
    from questforge_api.errors import NotAuthorized, QuestNotActive
    from questforge_api.locks import write_transaction
    from questforge_api.quest_registry import complete_quest, toggle_active

    owner, other = new_user(), new_user()
    qid = _create(session, clock, owner)

    with pytest.raises(NotAuthorized):
        with write_transaction(session):
            toggle_active(session, caller_id=other, quest_id=qid, clock=clock)

    with write_transaction(session):
        assert toggle_active(session, caller_id=owner, quest_id=qid, clock=clock) is False

    with pytest.raises(QuestNotActive):
        with write_transaction(session):
            complete_quest(session, caller_id=owner, quest_id=qid, clock=clock)

    with write_transaction(session):
        assert toggle_active(session, caller_id=owner, quest_id=qid, clock=clock) is True
    with write_transaction(session):
        complete_quest(session, caller_id=owner, quest_id=qid, clock=clock)


def test_completion_writes_events(session, clock, new_user) -> None:
    from sqlalchemy import select

    from questforge_api.locks import write_transaction
    from questforge_api.models import Event
    from questforge_api.quest_registry import complete_quest

    owner = new_user()
    qid = _create(session, clock, owner)
    with write_transaction(session):
        complete_quest(session, caller_id=owner, quest_id=qid, clock=clock)

    types = session.scalars(select(Event.type).where(Event.user_id == owner)).all()
    assert sorted(types) == ["quest_completed", "quest_created"]
