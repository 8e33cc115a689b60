"""Asset Registry: owns asset rows and their canonical status.

Only the coordinator calls ``set_status``; everything else here is either an
insert or a read.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import select, func, or_
from sqlalchemy.orm import Session

import crud
from crud import ASSET_PREFIX, persist, utcnow
from errors import AssetNotFound, DuplicateId, DuplicateSerial, InvalidInput, InvariantViolation
from models import ASSET_STATUSES, Asset, AssetIn
from orm import AssetORM


ALLOWED_SORTS = {
    "id": AssetORM.id,
    "brand": AssetORM.brand,
    "model": AssetORM.model,
    "serial_number": AssetORM.serial_number,
    "status": AssetORM.status,
    "updated_at": AssetORM.updated_at,
}


def _get_row(db: Session, asset_id: str) -> AssetORM:
    row = db.get(AssetORM, asset_id)
    if row is None:
        raise AssetNotFound(asset_id)
    return row


def _required(value: Optional[str], field: str) -> str:
    value = (value or "").strip()
    if not value:
        raise InvalidInput(f"{field} is required")
    return value


def _check_assignment(status: str, assigned_to: Optional[str]) -> None:
    if status not in ASSET_STATUSES:
        raise InvariantViolation(f"unknown asset status {status!r}")
    if (status == "handed-out") != bool(assigned_to):
        raise InvariantViolation(
            f"assigned_to must be set exactly when status is 'handed-out' "
            f"(status={status!r}, assigned_to={assigned_to!r})"
        )


def serial_exists(db: Session, serial_number: str, exclude_asset_id: Optional[str] = None) -> bool:
    stmt = select(AssetORM.id).where(func.lower(AssetORM.serial_number) == serial_number.lower())
    if exclude_asset_id:
        stmt = stmt.where(AssetORM.id != exclude_asset_id)
    return db.execute(stmt).first() is not None


def _allocate_id(db: Session) -> str:
    while True:
        candidate = crud.next_id(db, ASSET_PREFIX)
        if db.get(AssetORM, candidate) is None:
            return candidate


def add(db: Session, body: AssetIn, *, commit: bool = True) -> Asset:
    brand = _required(body.brand, "brand")
    model = _required(body.model, "model")
    serial_number = _required(body.serial_number, "serial_number")

    if serial_exists(db, serial_number):
        raise DuplicateSerial(serial_number)

    if body.id:
        number = crud.parse_id_number(ASSET_PREFIX, body.id.strip().upper())
        if number is None:
            raise InvalidInput(f"asset id must look like {ASSET_PREFIX}-001, got {body.id!r}")
        asset_id = crud.format_id(ASSET_PREFIX, number)
        if db.get(AssetORM, asset_id) is not None:
            raise DuplicateId(asset_id)
    else:
        asset_id = _allocate_id(db)

    # handed-out needs a holder, which an insert never carries
    _check_assignment(body.status, None)

    now = utcnow()
    a = AssetORM(
        id=asset_id,
        brand=brand,
        model=model,
        serial_number=serial_number,
        specs=body.specs,
        condition=body.condition,
        status=body.status,
        assigned_to=None,
        created_at=now,
        updated_at=now,
    )
    db.add(a)
    persist(db, commit=commit)
    if commit:
        db.refresh(a)
    return crud._asset_to_schema(a)


def get(db: Session, asset_id: str) -> Asset:
    return crud._asset_to_schema(_get_row(db, asset_id))


def set_status(
    db: Session,
    asset_id: str,
    status: str,
    assigned_to: Optional[str] = None,
    *,
    commit: bool = True,
) -> Asset:
    a = _get_row(db, asset_id)
    _check_assignment(status, assigned_to)

    a.status = status
    a.assigned_to = assigned_to
    a.updated_at = utcnow()

    persist(db, commit=commit)
    if commit:
        db.refresh(a)
    return crud._asset_to_schema(a)


def build_assets_query(q: str | None, status: str | None):
    stmt = select(AssetORM)

    if q:
        like = crud.like_pattern(q)
        stmt = stmt.where(
            or_(
                AssetORM.id.ilike(like, escape=crud.LIKE_ESCAPE),
                AssetORM.brand.ilike(like, escape=crud.LIKE_ESCAPE),
                AssetORM.model.ilike(like, escape=crud.LIKE_ESCAPE),
                AssetORM.serial_number.ilike(like, escape=crud.LIKE_ESCAPE),
            )
        )
    if status:
        stmt = stmt.where(AssetORM.status == status)

    return stmt


def count_assets(db: Session, *, q: str | None = None, status: str | None = None) -> int:
    stmt = build_assets_query(q, status)
    count_stmt = select(func.count()).select_from(stmt.subquery())
    return int(db.execute(count_stmt).scalar_one())


def list_assets(
    db: Session,
    *,
    q: str | None = None,
    status: str | None = None,
    sort: str = "id",
    order: str = "asc",
    limit: int | None = None,
    offset: int = 0,
) -> list[Asset]:
    stmt = build_assets_query(q, status)

    col = ALLOWED_SORTS.get(sort, AssetORM.id)
    desc = (order or "").lower() == "desc"
    stmt = stmt.order_by(col.desc() if desc else col.asc(), AssetORM.id.asc())

    if limit is not None:
        stmt = stmt.limit(limit)
    stmt = stmt.offset(offset)
    rows = db.execute(stmt).scalars().all()
    return [crud._asset_to_schema(a) for a in rows]
