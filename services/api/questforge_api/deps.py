from __future__ import annotations

import jwt
from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from questforge_api.clock import Clock, SystemClock
from questforge_api.core.security import subject_from_token
from questforge_api.db import SessionLocal


def get_db() -> Session:
    with SessionLocal() as session:
        yield session


def get_clock() -> Clock:
    return SystemClock()


def get_current_user_id(authorization: str | None = Header(default=None)) -> str:
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing Authorization header")
    if not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Invalid Authorization header")
    token = authorization.split(" ", 1)[1].strip()
    try:
        return subject_from_token(token)
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail="Invalid token") from e


CurrentUserId = Depends(get_current_user_id)
DBSession = Depends(get_db)
CurrentClock = Depends(get_clock)
