from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

from questforge_api.core.config import Settings


_ALGORITHM = "HS256"


def create_access_token(*, subject: str, now: datetime | None = None) -> str:
    """Sign a bearer token naming ``subject`` as the acting user."""
    settings = Settings()
    issued = now or datetime.now(UTC)
    expires = issued + timedelta(minutes=int(settings.auth_jwt_exp_minutes))
    claims: dict[str, Any] = {
        "iss": settings.auth_jwt_issuer,
        "sub": str(subject),
        "iat": int(issued.timestamp()),
        "exp": int(expires.timestamp()),
    }
    return jwt.encode(claims, settings.auth_jwt_secret, algorithm=_ALGORITHM)


def decode_token(token: str) -> dict[str, Any]:
    settings = Settings()
    return jwt.decode(
        token,
        settings.auth_jwt_secret,
        algorithms=[_ALGORITHM],
        issuer=settings.auth_jwt_issuer,
        options={"require": ["sub", "exp", "iss"]},
    )


def subject_from_token(token: str) -> str:
    """Verified principal of ``token``; raises ``jwt.InvalidTokenError`` otherwise."""
    subject = str(decode_token(token).get("sub") or "").strip()
    if not subject:
        raise jwt.InvalidTokenError("token has an empty subject")
    return subject
