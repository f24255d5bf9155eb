from __future__ import annotations

import contextlib
import hashlib
from threading import RLock
from typing import Iterator

from sqlalchemy import text
from sqlalchemy.orm import Session


# Every mutation runs under this lock so writes never interleave in-process.
_WRITE_LOCK = RLock()

WRITE_LOCK_NAME = "engine_write"


def advisory_lock_key(*, name: str) -> int:
    raw = f"questforge:{str(name)}".encode("utf-8")
    digest = hashlib.sha256(raw).digest()
    return int.from_bytes(digest[:8], byteorder="big", signed=True)


def _is_postgres(session: Session) -> bool:
    try:
        bind = session.get_bind()
        return bool(getattr(getattr(bind, "dialect", None), "name", "") == "postgresql")
    except Exception:  # noqa: BLE001
        return False


def acquire_xact_lock(session: Session, *, name: str) -> None:
    """Cross-process lock released by the database at commit/rollback."""
    if not _is_postgres(session):
        return
    key = advisory_lock_key(name=name)
    session.execute(text("SELECT pg_advisory_xact_lock(:k)"), {"k": key})


@contextlib.contextmanager
def write_transaction(session: Session) -> Iterator[Session]:
    """Run one engine mutation as a single serialized transaction.

    Commits when the block exits cleanly; any exception rolls back whatever is
    still uncommitted and propagates unchanged.
    """
    with _WRITE_LOCK:
        try:
            acquire_xact_lock(session, name=WRITE_LOCK_NAME)
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
