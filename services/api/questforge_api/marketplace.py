from __future__ import annotations

from fastapi import Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from questforge_api import profiles
from questforge_api.clock import Clock, clock_datetime, current_day
from questforge_api.errors import (
    InvalidInput,
    NotAuthorized,
    QuestForgeError,
    TemplateNotForSale,
    TemplateNotFound,
)
from questforge_api.eventlog import log_event
from questforge_api.locks import WRITE_LOCK_NAME, acquire_xact_lock
from questforge_api.models import Quest, QuestTemplate, TemplatePurchase
from questforge_api.quest_registry import create_quest, validate_schedule
from questforge_api.sequences import next_id


def create_template(
    session: Session,
    *,
    creator_id: str,
    name: str,
    description: str,
    frequency: str,
    difficulty: str,
    recommended_reward: int,
    for_sale: bool,
    price: int,
    clock: Clock,
    custom_interval_days: int | None = None,
    request: Request | None = None,
) -> QuestTemplate:
    schedule = validate_schedule(
        frequency=frequency,
        custom_interval_days=custom_interval_days,
        difficulty=difficulty,
    )
    if int(price) < 0:
        raise InvalidInput("price", "price must be non-negative")
    if int(recommended_reward) < 0:
        raise InvalidInput("recommended_reward", "reward must be non-negative")

    profiles.ensure_profile(session, user_id=creator_id)
    template = QuestTemplate(
        id=next_id(session, name="template"),
        creator_id=str(creator_id),
        name=str(name),
        description=str(description or ""),
        frequency=schedule.frequency,
        custom_interval_days=schedule.custom_interval_days,
        difficulty=schedule.difficulty,
        recommended_reward=int(recommended_reward),
        for_sale=bool(for_sale),
        price=int(price),
        purchase_count=0,
        created_day=current_day(clock),
    )
    session.add(template)
    session.flush()
    log_event(
        session,
        type="template_created",
        user_id=str(creator_id),
        request=request,
        payload={
            "template_id": int(template.id),
            "for_sale": bool(template.for_sale),
            "price": int(template.price),
        },
        now=clock_datetime(clock),
    )
    return template


def _spawn_from_template(
    session: Session,
    *,
    template: QuestTemplate,
    owner_id: str,
    clock: Clock,
    request: Request | None,
) -> Quest:
    return create_quest(
        session,
        owner_id=owner_id,
        name=str(template.name),
        description=str(template.description or ""),
        frequency=str(template.frequency),
        custom_interval_days=template.custom_interval_days,
        difficulty=str(template.difficulty),
        reward=int(template.recommended_reward or 0),
        origin_template_id=int(template.id),
        clock=clock,
        request=request,
    )


def purchase_template(
    session: Session,
    *,
    buyer_id: str,
    template_id: int,
    clock: Clock,
    request: Request | None = None,
) -> Quest:
    """
    Pay for a template and create the buyer's quest from it.

    The reputation transfer, purchase counter and purchase record are committed
    before the quest is created. If quest creation then fails, the payment
    stays committed, the purchase is logged as unfulfilled (its ``quest_id``
    stays null) and the error propagates. Nothing is refunded or retried.
    """
    template = session.get(QuestTemplate, int(template_id))
    if template is None:
        raise TemplateNotFound(template_id=int(template_id))
    if not template.for_sale:
        raise TemplateNotForSale(template_id=int(template.id))

    price = int(template.price or 0)
    creator_id = str(template.creator_id)
    day = current_day(clock)
    now = clock_datetime(clock)

    profiles.transfer(session, from_user_id=buyer_id, to_user_id=creator_id, amount=price)
    template.purchase_count = int(template.purchase_count or 0) + 1
    session.add(template)

    purchase_id = next_id(session, name="purchase")
    purchase = TemplatePurchase(
        id=purchase_id,
        template_id=int(template.id),
        buyer_id=str(buyer_id),
        price=price,
        day=day,
        quest_id=None,
    )
    session.add(purchase)
    log_event(
        session,
        type="template_purchased",
        user_id=str(buyer_id),
        request=request,
        payload={
            "template_id": int(template.id),
            "purchase_id": purchase_id,
            "creator_id": creator_id,
            "price": price,
        },
        now=now,
    )
    session.commit()

    # The commit released the transaction-scoped lock; take it again for the
    # quest-creation step.
    acquire_xact_lock(session, name=WRITE_LOCK_NAME)
    try:
        quest = _spawn_from_template(
            session, template=template, owner_id=buyer_id, clock=clock, request=request
        )
    except QuestForgeError as exc:
        session.rollback()
        log_event(
            session,
            type="template_purchase_unfulfilled",
            user_id=str(buyer_id),
            request=request,
            payload={
                "template_id": int(template_id),
                "purchase_id": purchase_id,
                "price": price,
                "error": exc.code,
            },
            now=now,
        )
        session.commit()
        raise

    purchase.quest_id = int(quest.id)
    session.add(purchase)
    return quest


def has_purchased(session: Session, *, template_id: int, user_id: str) -> bool:
    row = session.scalar(
        select(TemplatePurchase.id)
        .where(TemplatePurchase.template_id == int(template_id))
        .where(TemplatePurchase.buyer_id == str(user_id))
        .limit(1)
    )
    return row is not None


def create_quest_from_template(
    session: Session,
    *,
    caller_id: str,
    template_id: int,
    clock: Clock,
    request: Request | None = None,
) -> Quest:
    """
    Instantiate a template again without paying (creator or past buyer only).

    A buyer holding an unfulfilled purchase of this template gets the new quest
    linked to the oldest such purchase, which settles it.
    """
    template = session.get(QuestTemplate, int(template_id))
    if template is None:
        raise TemplateNotFound(template_id=int(template_id))
    if str(template.creator_id) != str(caller_id) and not has_purchased(
        session, template_id=int(template.id), user_id=caller_id
    ):
        raise NotAuthorized("purchase this template before using it")
    quest = _spawn_from_template(
        session, template=template, owner_id=caller_id, clock=clock, request=request
    )

    pending = session.scalars(
        select(TemplatePurchase)
        .where(TemplatePurchase.template_id == int(template.id))
        .where(TemplatePurchase.buyer_id == str(caller_id))
        .where(TemplatePurchase.quest_id.is_(None))
        .order_by(TemplatePurchase.id.asc())
        .limit(1)
    ).first()
    if pending is not None:
        pending.quest_id = int(quest.id)
        session.add(pending)
        log_event(
            session,
            type="template_purchase_fulfilled",
            user_id=str(caller_id),
            request=request,
            payload={
                "template_id": int(template.id),
                "purchase_id": int(pending.id),
                "quest_id": int(quest.id),
            },
            now=clock_datetime(clock),
        )
    return quest


def get_template(session: Session, *, template_id: int) -> QuestTemplate | None:
    return session.get(QuestTemplate, int(template_id))


def list_templates_for_sale(session: Session, *, limit: int = 50) -> list[QuestTemplate]:
    return list(
        session.scalars(
            select(QuestTemplate)
            .where(QuestTemplate.for_sale.is_(True))
            .order_by(QuestTemplate.purchase_count.desc(), QuestTemplate.id.asc())
            .limit(max(1, int(limit)))
        ).all()
    )


def unfulfilled_purchases(session: Session, *, buyer_id: str) -> list[TemplatePurchase]:
    return list(
        session.scalars(
            select(TemplatePurchase)
            .where(TemplatePurchase.buyer_id == str(buyer_id))
            .where(TemplatePurchase.quest_id.is_(None))
            .order_by(TemplatePurchase.id.asc())
        ).all()
    )
