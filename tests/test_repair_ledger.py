import pytest

import repair_ledger
from errors import AssetNotFound, IllegalTransition, InvalidCost, InvalidInput, NotFound, RepairInProgress


def test_open_creates_pending_ticket(db_session, add_laptop):
    laptop = add_laptop()
    t = repair_ledger.open(db_session, laptop.id, "Screen flickering", "John Smith", 150, "high")

    assert t.id == "RPR-001"
    assert t.status == "pending"
    assert t.cost == 150.0
    assert t.priority == "high"
    assert t.completed_at is None
    assert repair_ledger.open_for(db_session, laptop.id).id == t.id


@pytest.mark.parametrize("cost", [-1, -0.01, float("nan"), float("inf"), "abc", None])
def test_open_rejects_bad_cost(db_session, add_laptop, cost):
    laptop = add_laptop()
    with pytest.raises(InvalidCost):
        repair_ledger.open(db_session, laptop.id, "Keyboard", "Sarah", cost)


def test_zero_cost_is_fine(db_session, add_laptop):
    laptop = add_laptop()
    assert repair_ledger.open(db_session, laptop.id, "Keyboard", "Sarah", 0).cost == 0.0


def test_open_requires_fields(db_session, add_laptop):
    laptop = add_laptop()
    with pytest.raises(InvalidInput):
        repair_ledger.open(db_session, laptop.id, "", "Sarah", 10)
    with pytest.raises(InvalidInput):
        repair_ledger.open(db_session, laptop.id, "Keyboard", " ", 10)
    with pytest.raises(InvalidInput):
        repair_ledger.open(db_session, laptop.id, "Keyboard", "Sarah", 10, "critical")


def test_open_unknown_asset(db_session):
    with pytest.raises(AssetNotFound):
        repair_ledger.open(db_session, "LP-404", "Keyboard", "Sarah", 10)


def test_second_open_ticket_is_refused(db_session, add_laptop):
    laptop = add_laptop()
    first = repair_ledger.open(db_session, laptop.id, "Battery", "Mike", 200, "urgent")

    with pytest.raises(RepairInProgress):
        repair_ledger.open(db_session, laptop.id, "Fan noise", "Mike", 20)

    repair_ledger.advance(db_session, first.id, "in-progress")
    with pytest.raises(RepairInProgress):
        repair_ledger.open(db_session, laptop.id, "Fan noise", "Mike", 20)

    repair_ledger.advance(db_session, first.id, "completed")
    second = repair_ledger.open(db_session, laptop.id, "Fan noise", "Mike", 20)
    assert second.id == "RPR-002"


def test_advance_legal_path_sets_completed_at(db_session, add_laptop):
    laptop = add_laptop()
    t = repair_ledger.open(db_session, laptop.id, "Keyboard", "Sarah", 85)

    t = repair_ledger.advance(db_session, t.id, "in-progress")
    assert t.status == "in-progress"
    assert t.completed_at is None

    t = repair_ledger.advance(db_session, t.id, "completed")
    assert t.status == "completed"
    assert t.completed_at is not None


@pytest.mark.parametrize(
    "path, target",
    [
        ([], "completed"),
        ([], "pending"),
        (["in-progress"], "pending"),
        (["in-progress", "completed"], "cancelled"),
        (["cancelled"], "in-progress"),
    ],
)
def test_advance_illegal(db_session, add_laptop, path, target):
    laptop = add_laptop()
    t = repair_ledger.open(db_session, laptop.id, "Keyboard", "Sarah", 85)
    for step in path:
        repair_ledger.advance(db_session, t.id, step)

    with pytest.raises(IllegalTransition) as exc:
        repair_ledger.advance(db_session, t.id, target)
    assert exc.value.target == target


def test_advance_pending_to_cancelled(db_session, add_laptop):
    laptop = add_laptop()
    t = repair_ledger.open(db_session, laptop.id, "Keyboard", "Sarah", 85)
    t = repair_ledger.advance(db_session, t.id, "cancelled")
    assert t.status == "cancelled"
    assert t.completed_at is None
    assert repair_ledger.open_for(db_session, laptop.id) is None


def test_advance_unknown_ticket(db_session):
    with pytest.raises(NotFound):
        repair_ledger.advance(db_session, "RPR-999", "in-progress")


def test_list_searches_asset_model(db_session, add_laptop):
    hp = add_laptop(brand="HP", model="EliteBook 840")
    dell = add_laptop()
    repair_ledger.open(db_session, hp.id, "Screen flickering", "John Smith", 150, "high")
    repair_ledger.open(db_session, dell.id, "Keyboard keys not responding", "Sarah Johnson", 85)

    assert [t.asset_id for t in repair_ledger.list_tickets(db_session, q="elitebook")] == [hp.id]
    assert [t.asset_id for t in repair_ledger.list_tickets(db_session, q="sarah")] == [dell.id]
    assert [t.id for t in repair_ledger.list_tickets(db_session, priority="high")] == ["RPR-001"]
    assert repair_ledger.count_tickets(db_session, status="pending") == 2
