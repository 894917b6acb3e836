from __future__ import annotations

import pytest

from beneficiary_hub.db.store import NotFoundError
from beneficiary_hub.models.beneficiary import BeneficiaryRecord, RecordValidationError
from beneficiary_hub.services import beneficiaries, teams
from beneficiary_hub.services.authorization import AuthorizationError


@pytest.fixture()
def seeded(store, admin):
    docs = store.insert("beneficiaries", [
        {"team_id": admin.team_id, "last_name": "Reyes", "birth_month": "March", "amount": 500.0},
        {"team_id": admin.team_id, "last_name": "abad", "birth_month": "11", "amount": 1500.0},
        {"team_id": admin.team_id, "last_name": "Cruz", "birth_month": "January", "city": "Imus"},
        {"team_id": admin.team_id, "amount": 0.0},
    ])
    return [d["id"] for d in docs]


def test_load_records_excludes_empty(store, admin, seeded):
    records = beneficiaries.load_records(store, admin)
    assert [r.last_name for r in records] == ["Reyes", "abad", "Cruz"]


def test_load_records_team_scoped(store, admin, seeded, outsider):
    other = teams.create_team(store, outsider, "Other")
    assert beneficiaries.load_records(store, outsider.with_team(other.id)) == []
    with pytest.raises(AuthorizationError):
        beneficiaries.load_records(store, outsider.with_team(admin.team_id))


def test_search_any_field(store, admin, seeded):
    records = beneficiaries.load_records(store, admin)
    assert [r.last_name for r in beneficiaries.search_records(records, "IMUS")] == ["Cruz"]
    assert [r.last_name for r in beneficiaries.search_records(records, "1500")] == ["abad"]
    assert len(beneficiaries.search_records(records, "  ")) == 3


def test_sort_records(store, admin, seeded):
    records = beneficiaries.load_records(store, admin)
    names = lambda rs: [r.last_name for r in rs]  # noqa: E731
    assert names(beneficiaries.sort_records(records, "last_name", "asc")) == ["abad", "Cruz", "Reyes"]
    assert names(beneficiaries.sort_records(records, "birth_month", "asc")) == ["Cruz", "Reyes", "abad"]
    assert names(beneficiaries.sort_records(records, "amount", "desc")) == ["abad", "Reyes", "Cruz"]
    assert names(beneficiaries.sort_records(records, "amount", None)) == ["Reyes", "abad", "Cruz"]
    with pytest.raises(RecordValidationError):
        beneficiaries.sort_records(records, "nickname", "asc")
    with pytest.raises(ValueError):
        beneficiaries.sort_records(records, "amount", "up")


def test_next_sort_direction_cycle():
    assert beneficiaries.next_sort_direction(None, None, "city") == "asc"
    assert beneficiaries.next_sort_direction("city", "asc", "city") == "desc"
    assert beneficiaries.next_sort_direction("city", "desc", "city") is None
    assert beneficiaries.next_sort_direction("city", None, "city") == "asc"
    assert beneficiaries.next_sort_direction("city", "desc", "province") == "asc"


def test_update_record(store, admin, seeded):
    updated = beneficiaries.update_record(store, admin, seeded[0], {"first_name": " Jose ", "amount": "₱750"})
    assert isinstance(updated, BeneficiaryRecord)
    assert updated.first_name == "Jose"
    assert updated.amount == 750.0
    assert updated.last_name == "Reyes"
    with pytest.raises(RecordValidationError):
        beneficiaries.update_record(store, admin, seeded[0], {"nickname": "x"})
    with pytest.raises(NotFoundError):
        beneficiaries.update_record(store, admin, "missing", {"city": "x"})


def test_mass_update_drops_blank_values(store, admin, seeded):
    result = beneficiaries.mass_update(
        store, admin, seeded[:2], {"city": "Bacoor", "province": "  ", "sex": ""}, chunk_size=1, progress=False
    )
    assert result.completed == 2
    assert result.total_chunks == 2
    docs = store.find("beneficiaries", {"id": seeded[:2]})
    assert all(d["city"] == "Bacoor" for d in docs)
    assert all(d["province"] is None for d in docs)
    noop = beneficiaries.mass_update(store, admin, seeded, {"city": ""}, progress=False)
    assert noop.completed == 0


def test_mass_update_rejects_foreign_ids(store, admin, seeded):
    with pytest.raises(NotFoundError):
        beneficiaries.mass_update(store, admin, [seeded[0], "elsewhere"], {"city": "X"}, progress=False)
    assert store.get("beneficiaries", seeded[0])["city"] is None


@pytest.mark.parametrize("k", [0, 1, 2, 3, 4])
def test_delete_leaves_complement(store, admin, seeded, k):
    result = beneficiaries.delete_records(store, admin, seeded[:k], chunk_size=2, progress=False)
    assert result.completed == k
    remaining = [d["id"] for d in store.find("beneficiaries", {"team_id": admin.team_id})]
    assert remaining == seeded[k:]


def test_clear_team_data(store, admin, seeded):
    assert beneficiaries.clear_team_data(store, admin, lambda n: False, progress=False) is None
    assert store.count("beneficiaries") == 4
    seen: list[int] = []
    result = beneficiaries.clear_team_data(store, admin, lambda n: seen.append(n) or True, progress=False)
    assert seen == [4]
    assert result.completed == 4
    assert store.count("beneficiaries") == 0
