from collections.abc import Generator
from typing import Optional

from fastapi import Header
from sqlalchemy.orm import Session

from db import SessionLocal


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_actor(x_actor: Optional[str] = Header(None)) -> Optional[str]:
    # the caller is already authenticated upstream; this is only recorded
    if x_actor is None:
        return None
    return x_actor.strip() or None
