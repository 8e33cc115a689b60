"""Repair Ledger: service tickets for assets."""

from __future__ import annotations

import math
from typing import Optional

from sqlalchemy import select, func, or_
from sqlalchemy.orm import Session

import crud
from crud import REPAIR_PREFIX, persist, utcnow
from errors import AssetNotFound, IllegalTransition, InvalidCost, InvalidInput, NotFound, RepairInProgress
from models import OPEN_REPAIR_STATUSES, PRIORITIES, REPAIR_STATUSES, RepairTicket
from orm import AssetORM, RepairTicketORM

TRANSITIONS = {
    "pending": ("in-progress", "cancelled"),
    "in-progress": ("completed", "cancelled"),
    "completed": (),
    "cancelled": (),
}

ALLOWED_SORTS = {
    "id": RepairTicketORM.id,
    "asset_id": RepairTicketORM.asset_id,
    "priority": RepairTicketORM.priority,
    "status": RepairTicketORM.status,
    "cost": RepairTicketORM.cost,
    "created_at": RepairTicketORM.created_at,
    "updated_at": RepairTicketORM.updated_at,
}


def _get_row(db: Session, ticket_id: str) -> RepairTicketORM:
    row = db.get(RepairTicketORM, ticket_id)
    if row is None:
        raise NotFound("repair ticket", ticket_id)
    return row


def _open_row(db: Session, asset_id: str) -> Optional[RepairTicketORM]:
    stmt = (
        select(RepairTicketORM)
        .where(
            RepairTicketORM.asset_id == asset_id,
            RepairTicketORM.status.in_(OPEN_REPAIR_STATUSES),
        )
        .order_by(RepairTicketORM.created_at.desc())
        .limit(1)
    )
    return db.execute(stmt).scalars().first()


def validate_cost(cost) -> float:
    try:
        value = float(cost)
    except (TypeError, ValueError):
        raise InvalidCost(cost) from None
    if math.isnan(value) or math.isinf(value) or value < 0:
        raise InvalidCost(cost)
    return value


def open(
    db: Session,
    asset_id: str,
    issue: str,
    technician: str,
    cost: float = 0.0,
    priority: str = "medium",
    *,
    commit: bool = True,
) -> RepairTicket:
    issue = (issue or "").strip()
    technician = (technician or "").strip()
    if not issue:
        raise InvalidInput("issue is required")
    if not technician:
        raise InvalidInput("technician is required")
    if priority not in PRIORITIES:
        raise InvalidInput(f"priority must be one of {', '.join(PRIORITIES)}")
    cost = validate_cost(cost)

    if db.get(AssetORM, asset_id) is None:
        raise AssetNotFound(asset_id)

    current = _open_row(db, asset_id)
    if current is not None:
        raise RepairInProgress(asset_id, current.id)

    now = utcnow()
    t = RepairTicketORM(
        id=crud.next_id(db, REPAIR_PREFIX),
        asset_id=asset_id,
        issue=issue,
        technician=technician,
        cost=cost,
        priority=priority,
        status="pending",
        created_at=now,
        completed_at=None,
        updated_at=now,
    )
    db.add(t)
    persist(db, commit=commit)
    return crud._ticket_to_schema(t)


def advance(db: Session, ticket_id: str, new_status: str, *, commit: bool = True) -> RepairTicket:
    t = _get_row(db, ticket_id)
    if new_status not in REPAIR_STATUSES:
        raise InvalidInput(f"unknown repair status {new_status!r}")
    if new_status not in TRANSITIONS[t.status]:
        raise IllegalTransition(t.status, new_status, "advance repair")

    now = utcnow()
    t.status = new_status
    t.updated_at = now
    if new_status == "completed":
        t.completed_at = now

    persist(db, commit=commit)
    return crud._ticket_to_schema(t)


def get(db: Session, ticket_id: str) -> RepairTicket:
    return crud._ticket_to_schema(_get_row(db, ticket_id))


def open_for(db: Session, asset_id: str) -> Optional[RepairTicket]:
    row = _open_row(db, asset_id)
    return crud._ticket_to_schema(row) if row else None


def count_open(db: Session, asset_id: str) -> int:
    stmt = select(func.count()).select_from(RepairTicketORM).where(
        RepairTicketORM.asset_id == asset_id,
        RepairTicketORM.status.in_(OPEN_REPAIR_STATUSES),
    )
    return int(db.execute(stmt).scalar_one())


def build_tickets_query(q: str | None, status: str | None, priority: str | None, asset_id: str | None):
    stmt = select(RepairTicketORM)

    if q:
        like = crud.like_pattern(q)
        stmt = stmt.join(AssetORM, AssetORM.id == RepairTicketORM.asset_id).where(
            or_(
                RepairTicketORM.id.ilike(like, escape=crud.LIKE_ESCAPE),
                RepairTicketORM.asset_id.ilike(like, escape=crud.LIKE_ESCAPE),
                RepairTicketORM.issue.ilike(like, escape=crud.LIKE_ESCAPE),
                RepairTicketORM.technician.ilike(like, escape=crud.LIKE_ESCAPE),
                AssetORM.model.ilike(like, escape=crud.LIKE_ESCAPE),
            )
        )
    if status:
        stmt = stmt.where(RepairTicketORM.status == status)
    if priority:
        stmt = stmt.where(RepairTicketORM.priority == priority)
    if asset_id:
        stmt = stmt.where(RepairTicketORM.asset_id == asset_id)

    return stmt


def count_tickets(
    db: Session,
    *,
    q: str | None = None,
    status: str | None = None,
    priority: str | None = None,
    asset_id: str | None = None,
) -> int:
    stmt = build_tickets_query(q, status, priority, asset_id)
    count_stmt = select(func.count()).select_from(stmt.subquery())
    return int(db.execute(count_stmt).scalar_one())


def list_tickets(
    db: Session,
    *,
    q: str | None = None,
    status: str | None = None,
    priority: str | None = None,
    asset_id: str | None = None,
    sort: str = "id",
    order: str = "asc",
    limit: int | None = None,
    offset: int = 0,
) -> list[RepairTicket]:
    stmt = build_tickets_query(q, status, priority, asset_id)

    col = ALLOWED_SORTS.get(sort, RepairTicketORM.id)
    desc = (order or "").lower() == "desc"
    stmt = stmt.order_by(col.desc() if desc else col.asc(), RepairTicketORM.id.asc())

    if limit is not None:
        stmt = stmt.limit(limit)
    stmt = stmt.offset(offset)
    rows = db.execute(stmt).scalars().all()
    return [crud._ticket_to_schema(t) for t in rows]
