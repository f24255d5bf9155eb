from __future__ import annotations

import hashlib
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

import orjson
from fastapi import Request
from sqlalchemy.orm import Session

from questforge_api.core.config import Settings
from questforge_api.models import Event


def _hash_with_secret(*, raw: str | None) -> str | None:
    value = str(raw or "").strip()
    if not value:
        return None
    secret = Settings().auth_jwt_secret
    return hashlib.sha256(f"{value}|{secret}".encode("utf-8")).hexdigest()


def ip_hash_from_request(request: Request | None) -> str | None:
    if request is None:
        return None
    ip = getattr(getattr(request, "client", None), "host", None)
    return _hash_with_secret(raw=str(ip or ""))


def request_id_from_request(request: Request | None) -> str | None:
    if request is None:
        return None
    value = getattr(getattr(request, "state", None), "request_id", None)
    return str(value)[:80] if value else None


def log_event(
    session: Session,
    *,
    type: str,
    user_id: str | None,
    request: Request | None = None,
    payload: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> Event:
    """Append a domain event in the caller's transaction.

    The row commits or rolls back together with the state change it describes.
    """
    now_dt = now or datetime.now(UTC)
    p: dict[str, Any] = dict(payload or {})

    p.setdefault("v", 1)
    p.setdefault("user_id", user_id)

    if request is not None:
        ip_hash = ip_hash_from_request(request)
        if ip_hash:
            p.setdefault("ip_hash", ip_hash)
        request_id = request_id_from_request(request)
        if request_id:
            p.setdefault("request_id", request_id)
        try:
            p.setdefault("path", str(request.url.path))
        except Exception:  # noqa: BLE001
            pass

    ev = Event(
        id=f"ev_{uuid4().hex}",
        user_id=user_id,
        type=str(type),
        payload_json=orjson.dumps(p).decode("utf-8"),
        created_at=now_dt,
    )
    session.add(ev)
    return ev
