import threading

import pytest

import coordinator
import handout_ledger
import registry
from db import SessionLocal
from errors import AssetNotFound, IllegalTransition


def _run_in_threads(targets):
    barrier = threading.Barrier(len(targets))
    results: list = [None] * len(targets)

    def wrap(i, fn):
        db = SessionLocal()
        try:
            barrier.wait()
            results[i] = fn(db)
        except Exception as exc:  # collected and asserted on by the test
            results[i] = exc
        finally:
            db.close()

    threads = [threading.Thread(target=wrap, args=(i, fn)) for i, fn in enumerate(targets)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return results


def _hand_out_to(asset_id, holder):
    return lambda db: coordinator.hand_out(db, asset_id, holder, "IT")


def test_racing_handouts_on_one_asset(db_session, add_laptop):
    laptop = add_laptop()

    results = _run_in_threads(
        [
            lambda db: coordinator.hand_out(db, laptop.id, "Alice", "Marketing"),
            lambda db: coordinator.hand_out(db, laptop.id, "Bob", "IT"),
        ]
    )

    failures = [r for r in results if isinstance(r, Exception)]
    successes = [r for r in results if not isinstance(r, Exception)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], IllegalTransition)

    db_session.expire_all()
    asset = registry.get(db_session, laptop.id)
    assert asset.status == "handed-out"
    assert asset.assigned_to == successes[0].handout.holder
    assert handout_ledger.count_handouts(db_session, asset_id=laptop.id) == 1


def test_parallel_handouts_on_different_assets(db_session, add_laptop):
    laptops = [add_laptop() for _ in range(4)]

    results = _run_in_threads(
        [_hand_out_to(laptop.id, f"user-{n}") for n, laptop in enumerate(laptops)]
    )

    assert not [r for r in results if isinstance(r, Exception)]
    ids = sorted(r.handout.id for r in results)
    assert ids == ["HO-001", "HO-002", "HO-003", "HO-004"]

    db_session.expire_all()
    assert registry.count_assets(db_session, status="handed-out") == 4


def test_lock_entries_are_released(db_session, add_laptop):
    laptop = add_laptop()
    before = len(coordinator.LOCKS)

    for n in range(50):
        with pytest.raises(AssetNotFound):
            coordinator.hand_out(db_session, f"LP-9{n:03d}", "Mallory", "IT")
    coordinator.hand_out(db_session, laptop.id, "Alice", "Marketing")

    assert len(coordinator.LOCKS) == before == 0
