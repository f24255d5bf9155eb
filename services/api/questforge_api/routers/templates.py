from __future__ import annotations

from fastapi import APIRouter, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from questforge_api.clock import Clock
from questforge_api.deps import CurrentClock, CurrentUserId, DBSession
from questforge_api.locks import write_transaction
from questforge_api.marketplace import (
    create_template,
    get_template,
    list_templates_for_sale,
    purchase_template,
)
from questforge_api.models import QuestTemplate
from questforge_api.routers.quests import QuestOut, quest_to_out


class TemplateOut(BaseModel):
    id: int
    creator_id: str
    name: str
    description: str
    frequency: str
    custom_interval_days: int | None = None
    difficulty: str
    recommended_reward: int
    for_sale: bool
    price: int
    purchase_count: int


class CreateTemplateIn(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    description: str = Field(default="", max_length=2000)
    frequency: str = Field(min_length=1, max_length=16)
    custom_interval_days: int | None = Field(default=None, le=3650)
    difficulty: str = Field(min_length=1, max_length=16)
    recommended_reward: int = Field(default=0, ge=0, le=1_000_000)
    for_sale: bool = False
    price: int = Field(default=0, ge=0, le=1_000_000_000)


router = APIRouter(prefix="/api/templates", tags=["templates"])


def template_to_out(t: QuestTemplate) -> TemplateOut:
    return TemplateOut(
        id=int(t.id),
        creator_id=str(t.creator_id),
        name=str(t.name),
        description=str(t.description or ""),
        frequency=str(t.frequency),
        custom_interval_days=t.custom_interval_days,
        difficulty=str(t.difficulty),
        recommended_reward=int(t.recommended_reward or 0),
        for_sale=bool(t.for_sale),
        price=int(t.price or 0),
        purchase_count=int(t.purchase_count or 0),
    )


@router.post("", response_model=TemplateOut)
def create(
    req: CreateTemplateIn,
    request: Request,
    user_id: str = CurrentUserId,
    db: Session = DBSession,
    clock: Clock = CurrentClock,
) -> TemplateOut:
    with write_transaction(db):
        template = create_template(
            db,
            creator_id=user_id,
            name=req.name,
            description=req.description,
            frequency=req.frequency,
            custom_interval_days=req.custom_interval_days,
            difficulty=req.difficulty,
            recommended_reward=req.recommended_reward,
            for_sale=req.for_sale,
            price=req.price,
            clock=clock,
            request=request,
        )
        out = template_to_out(template)
    return out


@router.get("", response_model=list[TemplateOut])
def for_sale(
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = DBSession,
) -> list[TemplateOut]:
    return [template_to_out(t) for t in list_templates_for_sale(db, limit=limit)]


@router.get("/{template_id}", response_model=TemplateOut | None)
def get(template_id: int, db: Session = DBSession) -> TemplateOut | None:
    template = get_template(db, template_id=template_id)
    return template_to_out(template) if template is not None else None


@router.post("/{template_id}/purchase", response_model=QuestOut)
def purchase(
    template_id: int,
    request: Request,
    user_id: str = CurrentUserId,
    db: Session = DBSession,
    clock: Clock = CurrentClock,
) -> QuestOut:
    with write_transaction(db):
        quest = purchase_template(
            db, buyer_id=user_id, template_id=template_id, clock=clock, request=request
        )
        out = quest_to_out(quest)
    return out
