import coordinator
import registry
import seed_fleet
import stats


def test_seed_builds_a_consistent_demo_fleet(db_session):
    counts = seed_fleet.seed(db_session)
    assert counts == {"assets": 8, "handouts": 3, "repairs": 3}

    db_session.expire_all()
    for asset in registry.list_assets(db_session):
        coordinator.check_asset_invariants(db_session, asset.id)

    assert registry.get(db_session, "LP-002").assigned_to == "Alice Johnson"
    assert registry.get(db_session, "LP-003").status == "under-repair"

    s = stats.fleet_stats(db_session)
    assert s.total_assets == 8
    assert s.assets_by_status == {
        "available": 4,
        "handed-out": 2,
        "under-repair": 2,
        "out-of-order": 0,
    }
    assert s.active_handouts == 2
    assert s.returned_handouts == 1
    assert s.departments == 3
    assert s.pending_repairs == 1
    assert s.in_progress_repairs == 1
    assert s.total_repair_cost == 435.0
