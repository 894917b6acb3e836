from __future__ import annotations

import pytest

from beneficiary_hub.db.store import NotFoundError
from beneficiary_hub.services import beneficiaries, teams
from beneficiary_hub.services.authorization import AuthorizationError


def test_records_stay_within_their_team(store, admin, outsider):
    other = teams.create_team(store, outsider, "Barangay Dos")
    theirs = outsider.with_team(other.id)
    mine = store.insert("beneficiaries", [{"team_id": admin.team_id, "last_name": "Cruz"}])[0]
    store.insert("beneficiaries", [{"team_id": other.id, "last_name": "Reyes"}])

    assert [r.last_name for r in beneficiaries.load_records(store, theirs)] == ["Reyes"]
    with pytest.raises(NotFoundError):
        beneficiaries.delete_records(store, theirs, [mine["id"]], progress=False)
    with pytest.raises(AuthorizationError):
        beneficiaries.delete_records(store, outsider.with_team(admin.team_id), [mine["id"]], progress=False)
    assert store.count("beneficiaries", {"team_id": admin.team_id}) == 1

    # クリアは自チームのみ
    beneficiaries.clear_team_data(store, theirs, lambda n: True, progress=False)
    assert store.count("beneficiaries", {"team_id": admin.team_id}) == 1
    assert store.count("beneficiaries", {"team_id": other.id}) == 0


def test_invited_member_gains_access_after_accepting(store, admin):
    invite = teams.add_member(store, admin, admin.team_id, "volunteer@example.org")
    volunteer = teams.register_user(store, "volunteer@example.org")
    with pytest.raises(AuthorizationError):
        teams.select_team(store, volunteer, admin.team_id)
    teams.accept_invitation(store, volunteer, invite.id)
    session = teams.select_team(store, volunteer, admin.team_id)
    assert beneficiaries.load_records(store, session) == []
    with pytest.raises(AuthorizationError):
        teams.delete_team(store, session, admin.team_id)
