from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

import coordinator
import crud
import handout_ledger
import registry
import repair_ledger
from dependencies import get_actor, get_db
from filter_helpers import (
    blank_to_none,
    normalize_asset_status,
    normalize_limit,
    normalize_offset,
    normalize_order,
    normalize_sort,
)
from models import (
    Activity,
    Asset,
    AssetIn,
    Handout,
    HandoutIn,
    HandoutResult,
    ListMeta,
    ReasonIn,
    RepairIn,
    RepairOpened,
    RepairTicket,
)

router = APIRouter()


@router.get("/assets", response_model=list[Asset])
def list_assets_api(
    q: Optional[str] = None,
    status: Optional[str] = None,
    sort: str = "id",
    order: str = "asc",
    limit: int = 50,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    return registry.list_assets(
        db,
        q=blank_to_none(q),
        status=normalize_asset_status(status),
        sort=normalize_sort(sort, registry.ALLOWED_SORTS),
        order=normalize_order(order),
        limit=normalize_limit(limit),
        offset=normalize_offset(offset),
    )


@router.get("/assets/meta", response_model=ListMeta)
def assets_meta_api(
    q: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    total = registry.count_assets(db, q=blank_to_none(q), status=normalize_asset_status(status))
    return ListMeta(**crud.page_meta(total, limit=limit, offset=offset))


@router.post("/assets", response_model=Asset, status_code=201)
def create_asset_api(
    body: AssetIn,
    db: Session = Depends(get_db),
    actor: Optional[str] = Depends(get_actor),
):
    return coordinator.add_asset(db, body, actor=actor)


@router.get("/assets/{asset_id}", response_model=Asset)
def get_asset_api(
    asset_id: str,
    db: Session = Depends(get_db),
):
    return registry.get(db, asset_id)


@router.get("/assets/{asset_id}/handouts", response_model=list[Handout])
def asset_handouts_api(
    asset_id: str,
    db: Session = Depends(get_db),
):
    registry.get(db, asset_id)
    return handout_ledger.list_handouts(db, asset_id=asset_id, sort="opened_at", order="desc")


@router.get("/assets/{asset_id}/repairs", response_model=list[RepairTicket])
def asset_repairs_api(
    asset_id: str,
    db: Session = Depends(get_db),
):
    registry.get(db, asset_id)
    return repair_ledger.list_tickets(db, asset_id=asset_id, sort="created_at", order="desc")


@router.get("/assets/{asset_id}/activity", response_model=list[Activity])
def asset_activity_api(
    asset_id: str,
    limit: int = 20,
    db: Session = Depends(get_db),
):
    registry.get(db, asset_id)
    return crud.list_activity(db, asset_id=asset_id, limit=normalize_limit(limit))


@router.post("/assets/{asset_id}/handout", response_model=HandoutResult, status_code=201)
def hand_out_api(
    asset_id: str,
    body: HandoutIn,
    db: Session = Depends(get_db),
    actor: Optional[str] = Depends(get_actor),
):
    return coordinator.hand_out(
        db,
        asset_id,
        holder=body.holder,
        department=body.department,
        purpose=body.purpose,
        actor=actor,
    )


@router.post("/assets/{asset_id}/repairs", response_model=RepairOpened, status_code=201)
def open_repair_api(
    asset_id: str,
    body: RepairIn,
    db: Session = Depends(get_db),
    actor: Optional[str] = Depends(get_actor),
):
    return coordinator.open_repair(
        db,
        asset_id,
        issue=body.issue,
        technician=body.technician,
        cost=body.cost,
        priority=body.priority,
        actor=actor,
    )


@router.post("/assets/{asset_id}/out-of-order", response_model=Asset)
def mark_out_of_order_api(
    asset_id: str,
    body: ReasonIn,
    db: Session = Depends(get_db),
    actor: Optional[str] = Depends(get_actor),
):
    return coordinator.mark_out_of_order(db, asset_id, reason=body.reason, actor=actor)


@router.post("/assets/{asset_id}/retire", response_model=Asset)
def retire_api(
    asset_id: str,
    body: ReasonIn,
    db: Session = Depends(get_db),
    actor: Optional[str] = Depends(get_actor),
):
    return coordinator.retire(db, asset_id, reason=body.reason, actor=actor)


@router.post("/assets/{asset_id}/reinstate", response_model=Asset)
def reinstate_api(
    asset_id: str,
    db: Session = Depends(get_db),
    actor: Optional[str] = Depends(get_actor),
):
    return coordinator.reinstate(db, asset_id, actor=actor)
