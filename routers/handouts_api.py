from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

import coordinator
import crud
import handout_ledger
from dependencies import get_actor, get_db
from filter_helpers import (
    blank_to_none,
    normalize_handout_status,
    normalize_limit,
    normalize_offset,
    normalize_order,
    normalize_sort,
)
from models import Handout, HandoutResult, ListMeta

router = APIRouter()


@router.get("/handouts", response_model=list[Handout])
def list_handouts_api(
    q: Optional[str] = None,
    status: Optional[str] = None,
    asset_id: Optional[str] = None,
    sort: str = "id",
    order: str = "asc",
    limit: int = 50,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    return handout_ledger.list_handouts(
        db,
        q=blank_to_none(q),
        status=normalize_handout_status(status),
        asset_id=blank_to_none(asset_id),
        sort=normalize_sort(sort, handout_ledger.ALLOWED_SORTS),
        order=normalize_order(order),
        limit=normalize_limit(limit),
        offset=normalize_offset(offset),
    )


@router.get("/handouts/meta", response_model=ListMeta)
def handouts_meta_api(
    q: Optional[str] = None,
    status: Optional[str] = None,
    asset_id: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    total = handout_ledger.count_handouts(
        db,
        q=blank_to_none(q),
        status=normalize_handout_status(status),
        asset_id=blank_to_none(asset_id),
    )
    return ListMeta(**crud.page_meta(total, limit=limit, offset=offset))


@router.get("/handouts/{handout_id}", response_model=Handout)
def get_handout_api(
    handout_id: str,
    db: Session = Depends(get_db),
):
    return handout_ledger.get(db, handout_id)


@router.post("/handouts/{handout_id}/return", response_model=HandoutResult)
def return_handout_api(
    handout_id: str,
    db: Session = Depends(get_db),
    actor: Optional[str] = Depends(get_actor),
):
    return coordinator.return_asset(db, handout_id, actor=actor)
