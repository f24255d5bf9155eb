from __future__ import annotations

from typing import Literal

from sqlalchemy.orm import Session

from questforge_api.models import IdSequence


SequenceName = Literal["quest", "template", "challenge", "purchase"]


def next_id(session: Session, *, name: SequenceName) -> int:
    """Allocate the next id for ``name``; ids start at 1.

    Must run inside a serialized write (see ``locks.write_transaction``). The
    counter row is updated in the caller's transaction, so a rolled-back call
    hands the same id to the next caller and committed ids never repeat.
    """
    row = session.get(IdSequence, str(name), with_for_update=True)
    if row is None:
        row = IdSequence(name=str(name), value=0)
        session.add(row)
    row.value = int(row.value or 0) + 1
    session.flush()
    return int(row.value)
