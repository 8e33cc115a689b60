import os
import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# ---- test DB path; must be set before db.py is imported ----
_TMP_DIR = Path(tempfile.mkdtemp(prefix="fleet_test_"))
os.environ["APP_DB_PATH"] = str(_TMP_DIR / "test_fleet.db")


@pytest.fixture(scope="session")
def app_module():
    import main

    return main


@pytest.fixture()
def client(app_module):
    import dependencies
    from db import SessionLocal

    def _get_db_override():
        db = SessionLocal()
        try:
            yield db
        finally:
            db.close()

    app_module.app.dependency_overrides[dependencies.get_db] = _get_db_override
    with TestClient(app_module.app) as c:
        yield c
    app_module.app.dependency_overrides.clear()


@pytest.fixture()
def db_session(app_module):
    from db import SessionLocal

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def clean_db(app_module, db_session):
    # wipe everything before each test (children before assets)
    from sqlalchemy import delete
    from orm import ActivityORM, AssetORM, HandoutORM, IdCounterORM, RepairTicketORM

    db_session.execute(delete(ActivityORM))
    db_session.execute(delete(HandoutORM))
    db_session.execute(delete(RepairTicketORM))
    db_session.execute(delete(AssetORM))
    db_session.execute(delete(IdCounterORM))
    db_session.commit()
    yield


@pytest.fixture()
def add_laptop(db_session):
    """Register a laptop through the coordinator; serials are unique per call."""
    import coordinator
    from models import AssetIn

    counter = {"n": 0}

    def _add(asset_id=None, brand="Dell", model="Latitude 7420", serial=None, status="available", **extra):
        counter["n"] += 1
        body = AssetIn(
            id=asset_id,
            brand=brand,
            model=model,
            serial_number=serial or f"SN-{counter['n']:04d}",
            status=status,
            **extra,
        )
        return coordinator.add_asset(db_session, body)

    return _add
