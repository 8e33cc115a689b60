from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

import crud
import stats
from dependencies import get_db
from filter_helpers import normalize_limit
from models import Activity, FleetStats

router = APIRouter()


@router.get("/stats", response_model=FleetStats)
def stats_api(db: Session = Depends(get_db)):
    return stats.fleet_stats(db)


@router.get("/activity", response_model=list[Activity])
def activity_api(
    limit: int = 20,
    db: Session = Depends(get_db),
):
    return crud.list_activity(db, limit=normalize_limit(limit, max_value=200))
