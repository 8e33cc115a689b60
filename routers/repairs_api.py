from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

import coordinator
import crud
import repair_ledger
from dependencies import get_actor, get_db
from filter_helpers import (
    blank_to_none,
    normalize_limit,
    normalize_offset,
    normalize_order,
    normalize_priority,
    normalize_repair_status,
    normalize_sort,
)
from models import ListMeta, RepairClose, RepairResult, RepairTicket

router = APIRouter()


@router.get("/repairs", response_model=list[RepairTicket])
def list_repairs_api(
    q: Optional[str] = None,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    asset_id: Optional[str] = None,
    sort: str = "id",
    order: str = "asc",
    limit: int = 50,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    return repair_ledger.list_tickets(
        db,
        q=blank_to_none(q),
        status=normalize_repair_status(status),
        priority=normalize_priority(priority),
        asset_id=blank_to_none(asset_id),
        sort=normalize_sort(sort, repair_ledger.ALLOWED_SORTS),
        order=normalize_order(order),
        limit=normalize_limit(limit),
        offset=normalize_offset(offset),
    )


@router.get("/repairs/meta", response_model=ListMeta)
def repairs_meta_api(
    q: Optional[str] = None,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    asset_id: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    total = repair_ledger.count_tickets(
        db,
        q=blank_to_none(q),
        status=normalize_repair_status(status),
        priority=normalize_priority(priority),
        asset_id=blank_to_none(asset_id),
    )
    return ListMeta(**crud.page_meta(total, limit=limit, offset=offset))


@router.get("/repairs/{ticket_id}", response_model=RepairTicket)
def get_repair_api(
    ticket_id: str,
    db: Session = Depends(get_db),
):
    return repair_ledger.get(db, ticket_id)


@router.post("/repairs/{ticket_id}/start", response_model=RepairResult)
def start_repair_api(
    ticket_id: str,
    db: Session = Depends(get_db),
    actor: Optional[str] = Depends(get_actor),
):
    return coordinator.start_repair(db, ticket_id, actor=actor)


@router.post("/repairs/{ticket_id}/close", response_model=RepairResult)
def close_repair_api(
    ticket_id: str,
    body: RepairClose,
    db: Session = Depends(get_db),
    actor: Optional[str] = Depends(get_actor),
):
    return coordinator.close_repair(db, ticket_id, body.outcome, actor=actor)
