from __future__ import annotations

import pytest


def _fund(session, user_id: str, amount: int) -> None:
    from questforge_api import profiles
    from questforge_api.locks import write_transaction

    with write_transaction(session):
        profiles.credit(session, user_id=user_id, amount=amount)


def _template(session, clock, creator: str, *, price: int = 50, for_sale: bool = True) -> int:
    from questforge_api.locks import write_transaction
    from questforge_api.marketplace import create_template

    with write_transaction(session):
        template = create_template(
            session,
            creator_id=creator,
            name="Cold shower",
            description="Two minutes.",
            frequency="daily",
            difficulty="hard",
            recommended_reward=30,
            for_sale=for_sale,
            price=price,
            clock=clock,
        )
        template_id = int(template.id)
    return template_id


def _buy(session, clock, buyer: str, template_id: int):
    from questforge_api.locks import write_transaction
    from questforge_api.marketplace import purchase_template

    with write_transaction(session):
        quest = purchase_template(session, buyer_id=buyer, template_id=template_id, clock=clock)
        quest_id = int(quest.id)
    return quest_id


def test_purchase_transfers_reputation_and_creates_quest(session, clock, new_user) -> None:
    from questforge_api.errors import InsufficientReputation
    from questforge_api.marketplace import get_template, has_purchased
    from questforge_api.profiles import get_or_default
    from questforge_api.quest_registry import get_quest, list_user_quests

    creator, buyer = new_user("creator"), new_user("buyer")
    tid = _template(session, clock, creator, price=50)

    _fund(session, buyer, 30)
    with pytest.raises(InsufficientReputation) as ei:
        _buy(session, clock, buyer, tid)
    assert ei.value.details == {"balance": 30, "required": 50}
    assert get_or_default(session, user_id=buyer).reputation == 30
    assert get_or_default(session, user_id=creator).reputation == 0
    assert has_purchased(session, template_id=tid, user_id=buyer) is False

    _fund(session, buyer, 30)
    qid = _buy(session, clock, buyer, tid)

    assert get_or_default(session, user_id=buyer).reputation == 10
    assert get_or_default(session, user_id=creator).reputation == 50
    template = get_template(session, template_id=tid)
    assert template is not None and template.purchase_count == 1
    assert has_purchased(session, template_id=tid, user_id=buyer) is True

    quest = get_quest(session, quest_id=qid)
    assert quest is not None
    assert quest.owner_id == buyer
    assert quest.origin_template_id == tid
    assert quest.difficulty == "hard"
    assert quest.reward_points == 30
    assert [int(q.id) for q in list_user_quests(session, user_id=buyer)] == [qid]


def test_purchase_conserves_total_reputation(session, clock, new_user) -> None:
    from questforge_api.profiles import get_or_default

    creator, buyer = new_user(), new_user()
    tid = _template(session, clock, creator, price=25)
    _fund(session, creator, 7)
    _fund(session, buyer, 100)

    def total() -> int:
        return sum(get_or_default(session, user_id=u).reputation for u in (creator, buyer))

    before = total()
    _buy(session, clock, buyer, tid)
    _buy(session, clock, buyer, tid)
    assert total() == before
    assert get_or_default(session, user_id=buyer).reputation == 50


def test_buying_own_template_nets_zero(session, clock, new_user) -> None:
    from questforge_api.profiles import get_or_default

    creator = new_user()
    tid = _template(session, clock, creator, price=40)
    _fund(session, creator, 40)
    _buy(session, clock, creator, tid)
    assert get_or_default(session, user_id=creator).reputation == 40


def test_purchase_rejects_unlisted_and_missing_templates(session, clock, new_user) -> None:
    from questforge_api.errors import TemplateNotForSale, TemplateNotFound
    from questforge_api.profiles import get_or_default

    creator, buyer = new_user(), new_user()
    tid = _template(session, clock, creator, for_sale=False)
    _fund(session, buyer, 500)

    with pytest.raises(TemplateNotForSale):
        _buy(session, clock, buyer, tid)
    with pytest.raises(TemplateNotFound):
        _buy(session, clock, buyer, 10**9)
    assert get_or_default(session, user_id=buyer).reputation == 500


def test_create_template_validates(session, clock, new_user) -> None:
    from questforge_api.errors import InvalidInput

    with pytest.raises(InvalidInput) as ei:
        _template(session, clock, new_user(), price=-5)
    assert ei.value.field == "price"


def test_failed_quest_creation_keeps_payment(session, clock, new_user, monkeypatch) -> None:
    from sqlalchemy import select

    from questforge_api.errors import CapacityExceeded
    from questforge_api.marketplace import unfulfilled_purchases
    from questforge_api.models import Event
    from questforge_api.profiles import get_or_default
    from questforge_api.quest_registry import create_quest
    from questforge_api.locks import write_transaction

    creator, buyer = new_user(), new_user()
    tid = _template(session, clock, creator, price=20)
    _fund(session, buyer, 20)

    monkeypatch.setenv("QUESTFORGE_MAX_QUESTS_PER_USER", "1")
    with write_transaction(session):
        create_quest(
            session,
            owner_id=buyer,
            name="filler",
            description="",
            frequency="daily",
            difficulty="easy",
            reward=0,
            clock=clock,
        )

    with pytest.raises(CapacityExceeded):
        _buy(session, clock, buyer, tid)

    assert get_or_default(session, user_id=buyer).reputation == 0
    assert get_or_default(session, user_id=creator).reputation == 20
    pending = unfulfilled_purchases(session, buyer_id=buyer)
    assert len(pending) == 1
    assert pending[0].template_id == tid
    assert pending[0].price == 20
    assert pending[0].quest_id is None

    types = session.scalars(select(Event.type).where(Event.user_id == buyer)).all()
    assert "template_purchased" in types
    assert "template_purchase_unfulfilled" in types


def test_reinstantiating_settles_unfulfilled_purchase(
    session, clock, new_user, monkeypatch
) -> None:
    from questforge_api.errors import CapacityExceeded
    from questforge_api.locks import write_transaction
    from questforge_api.marketplace import create_quest_from_template, unfulfilled_purchases
    from questforge_api.models import TemplatePurchase
    from questforge_api.profiles import get_or_default
    from questforge_api.quest_registry import create_quest

    creator, buyer = new_user(), new_user()
    tid = _template(session, clock, creator, price=15)
    _fund(session, buyer, 15)

    monkeypatch.setenv("QUESTFORGE_MAX_QUESTS_PER_USER", "1")
    with write_transaction(session):
        create_quest(
            session,
            owner_id=buyer,
            name="filler",
            description="",
            frequency="daily",
            difficulty="easy",
            reward=0,
            clock=clock,
        )
    with pytest.raises(CapacityExceeded):
        _buy(session, clock, buyer, tid)
    [pending] = unfulfilled_purchases(session, buyer_id=buyer)
    purchase_id = int(pending.id)

    monkeypatch.setenv("QUESTFORGE_MAX_QUESTS_PER_USER", "10")
    with write_transaction(session):
        quest = create_quest_from_template(
            session, caller_id=buyer, template_id=tid, clock=clock
        )
        quest_id = int(quest.id)

    assert unfulfilled_purchases(session, buyer_id=buyer) == []
    settled = session.get(TemplatePurchase, purchase_id)
    assert settled is not None and settled.quest_id == quest_id

    # Further copies are free and leave the settled purchase alone.
    with write_transaction(session):
        create_quest_from_template(session, caller_id=buyer, template_id=tid, clock=clock)
    session.refresh(settled)
    assert settled.quest_id == quest_id
    assert get_or_default(session, user_id=buyer).reputation == 0


def test_quest_from_template_requires_creator_or_buyer(session, clock, new_user) -> None:
    from questforge_api.errors import NotAuthorized
    from questforge_api.locks import write_transaction
    from questforge_api.marketplace import create_quest_from_template
    from questforge_api.profiles import get_or_default

    creator, buyer, stranger = new_user(), new_user(), new_user()
    tid = _template(session, clock, creator, price=10)
    _fund(session, buyer, 10)
    _buy(session, clock, buyer, tid)

    with write_transaction(session):
        own = create_quest_from_template(session, caller_id=creator, template_id=tid, clock=clock)
        assert own.origin_template_id == tid
    with write_transaction(session):
        again = create_quest_from_template(session, caller_id=buyer, template_id=tid, clock=clock)
        assert again.owner_id == buyer
    with pytest.raises(NotAuthorized):
        with write_transaction(session):
            create_quest_from_template(session, caller_id=stranger, template_id=tid, clock=clock)

    # Re-instantiating is free.
    assert get_or_default(session, user_id=buyer).reputation == 0


def test_for_sale_listing_orders_by_popularity(session, clock, new_user) -> None:
    from questforge_api.marketplace import list_templates_for_sale

    creator, buyer = new_user(), new_user()
    quiet = _template(session, clock, creator, price=0)
    popular = _template(session, clock, creator, price=0)
    hidden = _template(session, clock, creator, price=0, for_sale=False)
    _buy(session, clock, buyer, popular)

    listed = [int(t.id) for t in list_templates_for_sale(session, limit=1000)]
    assert hidden not in listed
    assert listed.index(popular) < listed.index(quiet)
