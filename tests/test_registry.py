import pytest

import registry
from errors import AssetNotFound, DuplicateId, DuplicateSerial, InvalidInput, InvariantViolation, NotFound
from models import AssetIn


def _body(serial, **kw):
    data = {"brand": "Dell", "model": "Latitude 7420", "serial_number": serial}
    data.update(kw)
    return AssetIn(**data)


def test_add_defaults_to_available_and_allocates_sequential_ids(db_session):
    a = registry.add(db_session, _body("DL001"))
    b = registry.add(db_session, _body("DL002"))

    assert a.id == "LP-001"
    assert b.id == "LP-002"
    assert a.status == "available"
    assert a.assigned_to is None


def test_add_skips_ids_taken_by_caller(db_session):
    registry.add(db_session, _body("DL001", id="LP-002"))
    first = registry.add(db_session, _body("DL002"))
    second = registry.add(db_session, _body("DL003"))

    assert first.id == "LP-001"
    assert second.id == "LP-003"


def test_add_normalises_caller_id(db_session):
    a = registry.add(db_session, _body("DL001", id="lp-10"))
    assert a.id == "LP-010"


def test_add_duplicate_serial_is_case_insensitive(db_session):
    registry.add(db_session, _body("DL7420001"))
    with pytest.raises(DuplicateSerial):
        registry.add(db_session, _body("dl7420001"))


def test_add_duplicate_id(db_session):
    registry.add(db_session, _body("DL001", id="LP-010"))
    with pytest.raises(DuplicateId) as exc:
        registry.add(db_session, _body("DL002", id="LP-010"))
    assert exc.value.entity_id == "LP-010"


@pytest.mark.parametrize("bad_id", ["10", "HO-001", "LP-", "LP-1a"])
def test_add_rejects_malformed_id(db_session, bad_id):
    with pytest.raises(InvalidInput):
        registry.add(db_session, _body("DL001", id=bad_id))


def test_add_requires_brand_model_serial(db_session):
    with pytest.raises(InvalidInput):
        registry.add(db_session, _body("DL001", brand="  "))
    with pytest.raises(InvalidInput):
        registry.add(db_session, _body("   "))


def test_add_cannot_insert_handed_out_without_holder(db_session):
    with pytest.raises(InvariantViolation):
        registry.add(db_session, _body("DL001", status="handed-out"))


def test_get_unknown_asset(db_session):
    with pytest.raises(AssetNotFound) as exc:
        registry.get(db_session, "LP-999")
    assert isinstance(exc.value, NotFound)


def test_set_status_enforces_assignment_rule(db_session):
    a = registry.add(db_session, _body("DL001"))

    with pytest.raises(InvariantViolation):
        registry.set_status(db_session, a.id, "handed-out")
    with pytest.raises(InvariantViolation):
        registry.set_status(db_session, a.id, "available", assigned_to="Alice")
    with pytest.raises(InvariantViolation):
        registry.set_status(db_session, a.id, "lost")

    updated = registry.set_status(db_session, a.id, "handed-out", assigned_to="Alice")
    assert updated.status == "handed-out"
    assert updated.assigned_to == "Alice"


def test_set_status_unknown_asset(db_session):
    with pytest.raises(AssetNotFound):
        registry.set_status(db_session, "LP-404", "available")


def test_list_filters_by_status_and_text(db_session):
    registry.add(db_session, _body("DL7420001"))
    registry.add(db_session, _body("LV1XC002", brand="Lenovo", model="ThinkPad X1 Carbon"))
    registry.add(db_session, _body("HP840003", brand="HP", model="EliteBook 840", status="out-of-order"))

    assert [a.id for a in registry.list_assets(db_session, q="thinkpad")] == ["LP-002"]
    assert [a.id for a in registry.list_assets(db_session, q="hp840")] == ["LP-003"]
    assert [a.id for a in registry.list_assets(db_session, q="lp-00")] == ["LP-001", "LP-002", "LP-003"]
    assert [a.id for a in registry.list_assets(db_session, status="out-of-order")] == ["LP-003"]
    assert registry.list_assets(db_session, q="lenovo", status="out-of-order") == []
    assert registry.count_assets(db_session, status="available") == 2


def test_list_paging_and_sort(db_session):
    for i in range(5):
        registry.add(db_session, _body(f"SN{i}"))

    page = registry.list_assets(db_session, sort="id", order="desc", limit=2, offset=1)
    assert [a.id for a in page] == ["LP-004", "LP-003"]


def test_list_is_repeatable(db_session):
    registry.add(db_session, _body("DL001"))
    registry.add(db_session, _body("DL002", brand="Apple", model="MacBook Pro 14"))

    first = registry.list_assets(db_session, q="d", status="available")
    second = registry.list_assets(db_session, q="d", status="available")
    assert first == second


def test_add_commit_false_rollback_discards(db_session):
    created = registry.add(db_session, _body("DL001"), commit=False)

    db_session.rollback()
    db_session.expire_all()

    with pytest.raises(AssetNotFound):
        registry.get(db_session, created.id)


def test_search_treats_wildcards_literally(db_session, add_laptop):
    add_laptop()
    add_laptop(brand="Lenovo", model="ThinkPad X1 Carbon")
    underscored = add_laptop(serial="DL_7420_01")
    percent = add_laptop(brand="Apple", model="MacBook Air 100%")

    assert [a.id for a in registry.list_assets(db_session, q="_")] == [underscored.id]
    assert [a.id for a in registry.list_assets(db_session, q="%")] == [percent.id]
    assert registry.list_assets(db_session, q="Thin_Pad") == []
    assert registry.count_assets(db_session, q="dl_7420") == 1
