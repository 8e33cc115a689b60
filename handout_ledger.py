"""Handout Ledger: the assignment history of every asset.

Rows are opened once and closed once; nothing here touches the asset's status.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import select, func, or_
from sqlalchemy.orm import Session

import crud
from crud import HANDOUT_PREFIX, persist, utcnow
from errors import AlreadyActive, AlreadyClosed, AssetNotFound, InvalidInput, NotFound
from models import Handout
from orm import AssetORM, HandoutORM

ALLOWED_SORTS = {
    "id": HandoutORM.id,
    "asset_id": HandoutORM.asset_id,
    "holder": HandoutORM.holder,
    "department": HandoutORM.department,
    "opened_at": HandoutORM.opened_at,
    "closed_at": HandoutORM.closed_at,
}

CLOSE_REASONS = ("returned", "repair", "retired")


def _get_row(db: Session, handout_id: str) -> HandoutORM:
    row = db.get(HandoutORM, handout_id)
    if row is None:
        raise NotFound("handout", handout_id)
    return row


def _active_row(db: Session, asset_id: str) -> Optional[HandoutORM]:
    stmt = (
        select(HandoutORM)
        .where(HandoutORM.asset_id == asset_id, HandoutORM.status == "active")
        .order_by(HandoutORM.opened_at.desc())
        .limit(1)
    )
    return db.execute(stmt).scalars().first()


def open(
    db: Session,
    asset_id: str,
    holder: str,
    department: str,
    purpose: Optional[str] = None,
    *,
    commit: bool = True,
) -> Handout:
    holder = (holder or "").strip()
    department = (department or "").strip()
    if not holder:
        raise InvalidInput("holder is required")
    if not department:
        raise InvalidInput("department is required")

    if db.get(AssetORM, asset_id) is None:
        raise AssetNotFound(asset_id)

    active = _active_row(db, asset_id)
    if active is not None:
        raise AlreadyActive(asset_id, active.id)

    h = HandoutORM(
        id=crud.next_id(db, HANDOUT_PREFIX),
        asset_id=asset_id,
        holder=holder,
        department=department,
        purpose=(purpose or "").strip() or None,
        status="active",
        opened_at=utcnow(),
        closed_at=None,
        closed_reason=None,
    )
    db.add(h)
    persist(db, commit=commit)
    return crud._handout_to_schema(h)


def close(db: Session, handout_id: str, *, reason: str = "returned", commit: bool = True) -> Handout:
    if reason not in CLOSE_REASONS:
        raise InvalidInput(f"unknown close reason {reason!r}")

    h = _get_row(db, handout_id)
    if h.status != "active":
        raise AlreadyClosed(handout_id)

    h.status = "returned"
    h.closed_at = utcnow()
    h.closed_reason = reason

    persist(db, commit=commit)
    return crud._handout_to_schema(h)


def get(db: Session, handout_id: str) -> Handout:
    return crud._handout_to_schema(_get_row(db, handout_id))


def active_for(db: Session, asset_id: str) -> Optional[Handout]:
    row = _active_row(db, asset_id)
    return crud._handout_to_schema(row) if row else None


def count_active(db: Session, asset_id: str) -> int:
    stmt = select(func.count()).select_from(HandoutORM).where(
        HandoutORM.asset_id == asset_id, HandoutORM.status == "active"
    )
    return int(db.execute(stmt).scalar_one())


def build_handouts_query(q: str | None, status: str | None, asset_id: str | None):
    stmt = select(HandoutORM)

    if q:
        like = crud.like_pattern(q)
        stmt = stmt.where(
            or_(
                HandoutORM.id.ilike(like, escape=crud.LIKE_ESCAPE),
                HandoutORM.asset_id.ilike(like, escape=crud.LIKE_ESCAPE),
                HandoutORM.holder.ilike(like, escape=crud.LIKE_ESCAPE),
                HandoutORM.department.ilike(like, escape=crud.LIKE_ESCAPE),
                HandoutORM.purpose.ilike(like, escape=crud.LIKE_ESCAPE),
            )
        )
    if status:
        stmt = stmt.where(HandoutORM.status == status)
    if asset_id:
        stmt = stmt.where(HandoutORM.asset_id == asset_id)

    return stmt


def count_handouts(
    db: Session,
    *,
    q: str | None = None,
    status: str | None = None,
    asset_id: str | None = None,
) -> int:
    stmt = build_handouts_query(q, status, asset_id)
    count_stmt = select(func.count()).select_from(stmt.subquery())
    return int(db.execute(count_stmt).scalar_one())


def list_handouts(
    db: Session,
    *,
    q: str | None = None,
    status: str | None = None,
    asset_id: str | None = None,
    sort: str = "id",
    order: str = "asc",
    limit: int | None = None,
    offset: int = 0,
) -> list[Handout]:
    stmt = build_handouts_query(q, status, asset_id)

    col = ALLOWED_SORTS.get(sort, HandoutORM.id)
    desc = (order or "").lower() == "desc"
    stmt = stmt.order_by(col.desc() if desc else col.asc(), HandoutORM.id.asc())

    if limit is not None:
        stmt = stmt.limit(limit)
    stmt = stmt.offset(offset)
    rows = db.execute(stmt).scalars().all()
    return [crud._handout_to_schema(h) for h in rows]
