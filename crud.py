from __future__ import annotations

from datetime import datetime, timezone

from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from models import Activity, Asset, Handout, RepairTicket
from orm import ActivityORM, AssetORM, HandoutORM, IdCounterORM, RepairTicketORM

ASSET_PREFIX = "LP"
HANDOUT_PREFIX = "HO"
REPAIR_PREFIX = "RPR"

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def persist(db: Session, *, commit: bool) -> None:
    if commit:
        db.commit()
    else:
        db.flush()

def format_id(prefix: str, number: int) -> str:
    return f"{prefix}-{number:03d}"

def parse_id_number(prefix: str, value: str) -> Optional[int]:
    head, sep, tail = (value or "").partition("-")
    if head != prefix or not sep or not tail.isdigit():
        return None
    return int(tail)

def next_id(db: Session, prefix: str) -> str:
    # UPDATE first so the write lock is taken before the value is read back
    db.execute(
        sqlite_insert(IdCounterORM)
        .values(prefix=prefix, value=0)
        .on_conflict_do_nothing(index_elements=["prefix"])
    )
    db.execute(
        update(IdCounterORM)
        .where(IdCounterORM.prefix == prefix)
        .values(value=IdCounterORM.value + 1)
        .execution_options(synchronize_session=False)
    )
    value = db.execute(
        select(IdCounterORM.value).where(IdCounterORM.prefix == prefix)
    ).scalar_one()
    return format_id(prefix, value)

LIKE_ESCAPE = "\\"


def like_pattern(q: str) -> str:
    """Substring pattern for ``ilike``; ``%`` and ``_`` in ``q`` match literally."""
    q = q.strip()
    for ch in (LIKE_ESCAPE, "%", "_"):
        q = q.replace(ch, LIKE_ESCAPE + ch)
    return f"%{q}%"


def page_meta(total: int, *, limit: int, offset: int) -> dict:
    if limit < 1:
        limit = 1
    if limit > 500:
        limit = 500
    if offset < 0:
        offset = 0

    total_pages = max(1, (total + limit - 1) // limit)
    return {
        "total": total,
        "limit": limit,
        "offset": offset,
        "total_pages": total_pages,
    }

def _asset_to_schema(a: AssetORM) -> Asset:
    return Asset(
        id=a.id,
        brand=a.brand,
        model=a.model,
        serial_number=a.serial_number,
        specs=a.specs,
        condition=a.condition,
        status=a.status,  # type: ignore
        assigned_to=a.assigned_to,
        created_at=a.created_at,
        updated_at=a.updated_at,
    )

def _handout_to_schema(h: HandoutORM) -> Handout:
    return Handout(
        id=h.id,
        asset_id=h.asset_id,
        holder=h.holder,
        department=h.department,
        purpose=h.purpose,
        status=h.status,  # type: ignore
        opened_at=h.opened_at,
        closed_at=h.closed_at,
        closed_reason=h.closed_reason,
    )

def _ticket_to_schema(t: RepairTicketORM) -> RepairTicket:
    return RepairTicket(
        id=t.id,
        asset_id=t.asset_id,
        issue=t.issue,
        technician=t.technician,
        cost=t.cost,
        priority=t.priority,  # type: ignore
        status=t.status,  # type: ignore
        created_at=t.created_at,
        completed_at=t.completed_at,
        updated_at=t.updated_at,
    )

def _activity_to_schema(e: ActivityORM) -> Activity:
    return Activity(
        id=e.id,
        kind=e.kind,
        asset_id=e.asset_id,
        ref_id=e.ref_id,
        message=e.message,
        actor=e.actor,
        created_at=e.created_at,
    )


# ---------- Activity ----------
def record_activity(
    db: Session,
    *,
    kind: str,
    asset_id: str,
    message: str,
    ref_id: Optional[str] = None,
    actor: Optional[str] = None,
    commit: bool = False,
) -> None:
    db.add(
        ActivityORM(
            kind=kind,
            asset_id=asset_id,
            ref_id=ref_id,
            message=message,
            actor=actor,
            created_at=utcnow(),
        )
    )
    persist(db, commit=commit)


def list_activity(db: Session, *, asset_id: Optional[str] = None, limit: int = 20) -> list[Activity]:
    stmt = select(ActivityORM)
    if asset_id:
        stmt = stmt.where(ActivityORM.asset_id == asset_id)
    stmt = stmt.order_by(ActivityORM.id.desc()).limit(limit)
    return [_activity_to_schema(e) for e in db.execute(stmt).scalars().all()]
