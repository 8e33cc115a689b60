#!/usr/bin/env python3
# seed_fleet.py
import argparse
import logging
import sys
from pathlib import Path

from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

import coordinator
import db as dbmod
import orm
from models import AssetIn

logger = logging.getLogger("seed_fleet")

LAPTOPS = [
    ("LP-001", "Dell", "Latitude 7420", "DL7420001", "Intel i7, 16GB RAM, 512GB SSD", "Excellent"),
    ("LP-002", "Lenovo", "ThinkPad X1 Carbon", "LV1XC002", "Intel i5, 8GB RAM, 256GB SSD", "Good"),
    ("LP-003", "HP", "EliteBook 840", "HP840003", "Intel i7, 32GB RAM, 1TB SSD", "Excellent"),
    ("LP-004", "Apple", "MacBook Pro 14", "MBP14004", "M2 Pro, 16GB RAM, 512GB SSD", "Like New"),
    ("LP-007", "Dell", "Latitude 7420", "DL7420007", "Intel i5, 16GB RAM, 256GB SSD", "Good"),
    ("LP-008", "Dell", "Latitude 7420", "DL7420008", "Intel i5, 16GB RAM, 256GB SSD", "Fair"),
    ("LP-012", "HP", "EliteBook 840", "HP840012", "Intel i5, 16GB RAM, 512GB SSD", "Good"),
    ("LP-015", "Lenovo", "ThinkPad X1", "LVX1015", "Intel i7, 16GB RAM, 512GB SSD", "Fair"),
]

HANDOUTS = [
    # asset, holder, department, purpose, returned
    ("LP-002", "Alice Johnson", "Marketing", "Quarterly presentation preparation", False),
    ("LP-007", "Bob Smith", "IT", "Remote work setup", True),
    ("LP-012", "Carol Davis", "Finance", "Monthly reporting and analysis", False),
]

REPAIRS = [
    # asset, issue, technician, cost, priority, final state
    ("LP-003", "Screen flickering, possible LCD cable issue", "John Smith", 150.00, "high", "in-progress"),
    ("LP-008", "Keyboard keys not responding", "Sarah Johnson", 85.00, "medium", "completed"),
    ("LP-015", "Battery not charging, possible charger port damage", "Mike Wilson", 200.00, "urgent", "pending"),
]


def seed(session, *, actor: str = "seed") -> dict:
    for asset_id, brand, model, serial, specs, condition in LAPTOPS:
        coordinator.add_asset(
            session,
            AssetIn(id=asset_id, brand=brand, model=model, serial_number=serial, specs=specs, condition=condition),
            actor=actor,
        )

    for asset_id, holder, department, purpose, returned in HANDOUTS:
        result = coordinator.hand_out(session, asset_id, holder, department, purpose, actor=actor)
        if returned:
            coordinator.return_asset(session, result.handout.id, actor=actor)

    for asset_id, issue, technician, cost, priority, final in REPAIRS:
        opened = coordinator.open_repair(session, asset_id, issue, technician, cost, priority, actor=actor)
        if final == "in-progress":
            coordinator.start_repair(session, opened.ticket.id, actor=actor)
        elif final in ("completed", "cancelled"):
            coordinator.close_repair(session, opened.ticket.id, final, actor=actor)

    return {"assets": len(LAPTOPS), "handouts": len(HANDOUTS), "repairs": len(REPAIRS)}


def main() -> int:
    ap = argparse.ArgumentParser(description="Seed the laptop fleet database with demo records.")
    ap.add_argument("--db", default=None, help="Path to SQLite DB (default: APP_DB_PATH or data/fleet.db)")
    ap.add_argument("--reset", action="store_true", help="Drop and recreate all tables first")
    ap.add_argument("--log-level", default="INFO")
    args = ap.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    db_path = Path(args.db).expanduser().resolve() if args.db else dbmod.DB_PATH
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = dbmod.make_engine(db_path)

    if args.reset:
        orm.Base.metadata.drop_all(bind=engine)
    orm.Base.metadata.create_all(bind=engine)

    Session = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    with Session() as session:
        existing = session.execute(select(func.count()).select_from(orm.AssetORM)).scalar_one()
        if existing:
            logger.error("%s already has %s assets; use --reset to start over", db_path, existing)
            return 1

        counts = seed(session)

    logger.info(
        "seeded %s assets=%s handouts=%s repairs=%s",
        db_path,
        counts["assets"],
        counts["handouts"],
        counts["repairs"],
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
