from sqlalchemy import select, func
from sqlalchemy.orm import Session

from models import ASSET_STATUSES, FleetStats
from orm import AssetORM, HandoutORM, RepairTicketORM


def _count_by(db: Session, column) -> dict[str, int]:
    rows = db.execute(select(column, func.count()).group_by(column)).all()
    return {r[0]: int(r[1]) for r in rows}


def fleet_stats(db: Session) -> FleetStats:
    """Counts computed from the current rows; nothing is cached."""
    by_status = {s: 0 for s in ASSET_STATUSES}
    by_status.update(_count_by(db, AssetORM.status))

    handouts = _count_by(db, HandoutORM.status)
    repairs = _count_by(db, RepairTicketORM.status)

    departments = db.execute(
        select(func.count(func.distinct(HandoutORM.department)))
    ).scalar_one()
    total_cost = db.execute(
        select(func.coalesce(func.sum(RepairTicketORM.cost), 0.0))
    ).scalar_one()

    return FleetStats(
        total_assets=sum(by_status.values()),
        assets_by_status=by_status,
        total_handouts=sum(handouts.values()),
        active_handouts=handouts.get("active", 0),
        returned_handouts=handouts.get("returned", 0),
        departments=int(departments),
        total_repairs=sum(repairs.values()),
        pending_repairs=repairs.get("pending", 0),
        in_progress_repairs=repairs.get("in-progress", 0),
        total_repair_cost=round(float(total_cost), 2),
    )
