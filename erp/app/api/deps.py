from __future__ import annotations

from typing import Generator

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from erp.app.db.session import SessionLocal
from erp.services.posting import PostingRegistry


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_actor_id(x_user_id: int | None = Header(default=None)) -> int | None:
    """Acting user, as forwarded by the authenticating gateway."""
    return x_user_id


def get_registry(db: Session = Depends(get_db)) -> PostingRegistry:
    return PostingRegistry.load(db)
