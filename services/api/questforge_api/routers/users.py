from __future__ import annotations

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy.orm import Session

from questforge_api.deps import CurrentUserId, DBSession
from questforge_api.marketplace import unfulfilled_purchases
from questforge_api.profiles import ProfileView, get_or_default

router = APIRouter(prefix="/api/users", tags=["users"])


class UserProfileOut(BaseModel):
    user_id: str
    reputation: int
    total_completions: int
    longest_streak_ever: int
    current_streak_aggregate: int
    last_active_day: int | None = None


class UnfulfilledPurchaseOut(BaseModel):
    purchase_id: int
    template_id: int
    price: int
    day: int


def _profile_out(p: ProfileView) -> UserProfileOut:
    return UserProfileOut(
        user_id=p.user_id,
        reputation=p.reputation,
        total_completions=p.total_completions,
        longest_streak_ever=p.longest_streak_ever,
        current_streak_aggregate=p.current_streak_aggregate,
        last_active_day=p.last_active_day,
    )


@router.get("/me/profile", response_model=UserProfileOut)
def my_profile(user_id: str = CurrentUserId, db: Session = DBSession) -> UserProfileOut:
    return _profile_out(get_or_default(db, user_id=user_id))


@router.get("/me/unfulfilled-purchases", response_model=list[UnfulfilledPurchaseOut])
def my_unfulfilled_purchases(
    user_id: str = CurrentUserId, db: Session = DBSession
) -> list[UnfulfilledPurchaseOut]:
    return [
        UnfulfilledPurchaseOut(
            purchase_id=int(p.id),
            template_id=int(p.template_id),
            price=int(p.price),
            day=int(p.day),
        )
        for p in unfulfilled_purchases(db, buyer_id=user_id)
    ]


@router.get("/{user_id}/profile", response_model=UserProfileOut)
def profile(user_id: str, db: Session = DBSession) -> UserProfileOut:
    return _profile_out(get_or_default(db, user_id=user_id))
