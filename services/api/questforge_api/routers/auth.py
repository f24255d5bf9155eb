from __future__ import annotations

import re

from fastapi import APIRouter
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from questforge_api.core.security import create_access_token
from questforge_api.deps import CurrentUserId, DBSession
from questforge_api.profiles import get_or_default

router = APIRouter(prefix="/api/auth", tags=["auth"])

_USERNAME_RE = re.compile(r"^[a-z0-9_][a-z0-9_.-]{0,63}$")


class AuthResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    username: str = Field(min_length=1, max_length=64)

    @field_validator("username")
    @classmethod
    def _normalize(cls, v: str) -> str:
        name = str(v or "").strip().lower()
        if not _USERNAME_RE.match(name):
            raise ValueError("username may contain letters, digits, '_', '.', '-'")
        return name


class MeResponse(BaseModel):
    user_id: str
    reputation: int


@router.post("/login", response_model=AuthResponse)
def auth_login(req: LoginRequest) -> AuthResponse:
    # Identity is delegated: the engine trusts whatever principal the token names.
    return AuthResponse(access_token=create_access_token(subject=req.username))


@router.get("/me", response_model=MeResponse)
def auth_me(user_id: str = CurrentUserId, db: Session = DBSession) -> MeResponse:
    profile = get_or_default(db, user_id=user_id)
    return MeResponse(user_id=user_id, reputation=profile.reputation)
