from __future__ import annotations

from typing import TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

T = TypeVar("T")


def get_for_update(db: Session, model: type[T], pk: int) -> T | None:
    """
    Re-read a row under ``SELECT ... FOR UPDATE``.

    Pending changes are flushed first so refreshing the identity map copy
    never drops an unflushed write from the same unit of work.
    """
    db.flush()
    return (
        db.execute(
            select(model)
            .where(model.id == pk)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalars()
        .one_or_none()
    )
