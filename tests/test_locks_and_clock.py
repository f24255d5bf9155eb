from __future__ import annotations

import pytest


def test_advisory_lock_key_is_stable_and_distinct() -> None:
    from questforge_api.locks import advisory_lock_key

    a1 = advisory_lock_key(name="engine_write")
    a2 = advisory_lock_key(name="engine_write")
    b = advisory_lock_key(name="engine_other")

    assert isinstance(a1, int)
    assert a1 == a2
    assert a1 != b


def test_xact_lock_is_noop_on_sqlite(session) -> None:
    from questforge_api.locks import WRITE_LOCK_NAME, acquire_xact_lock

    acquire_xact_lock(session, name=WRITE_LOCK_NAME)


def test_write_transaction_rolls_back_on_error(session, new_user) -> None:
    from questforge_api import profiles
    from questforge_api.locks import write_transaction

    user = new_user()
    with pytest.raises(RuntimeError):
        with write_transaction(session):
            profiles.credit(session, user_id=user, amount=5)
            raise RuntimeError("boom")
    assert profiles.get_or_default(session, user_id=user).reputation == 0

    with write_transaction(session):
        profiles.credit(session, user_id=user, amount=5)
    assert profiles.get_or_default(session, user_id=user).reputation == 5


def test_fixed_clock_days() -> None:
    from questforge_api.clock import FixedClock, SECONDS_PER_DAY, current_day, day_number

    clock = FixedClock.at_day(12)
    assert current_day(clock) == 12
    clock.set_day(13, second_of_day=SECONDS_PER_DAY - 1)
    assert current_day(clock) == 13
    assert day_number(SECONDS_PER_DAY * 5) == 5


def test_profile_debit_guards(session, new_user) -> None:
    from questforge_api import profiles
    from questforge_api.errors import InsufficientReputation, InvalidInput
    from questforge_api.locks import write_transaction

    user = new_user()
    with pytest.raises(InvalidInput):
        with write_transaction(session):
            profiles.credit(session, user_id=user, amount=-1)
    with pytest.raises(InsufficientReputation):
        with write_transaction(session):
            profiles.debit(session, user_id=user, amount=1)
    # Reads never create a profile.
    assert profiles.get_or_default(session, user_id=new_user()).last_active_day is None
