from __future__ import annotations

import pytest

from beneficiary_hub.db.store import NotFoundError
from beneficiary_hub.models.team import ANONYMOUS, Role
from beneficiary_hub.services import teams
from beneficiary_hub.services.authorization import AuthorizationError
from beneficiary_hub.services.teams import TeamError


def test_register_user_normalizes_email(store):
    s = teams.register_user(store, "  New@Example.ORG ")
    assert s.email == "new@example.org"
    with pytest.raises(TeamError):
        teams.register_user(store, "new@example.org")
    with pytest.raises(TeamError):
        teams.register_user(store, "not-an-email")


def test_create_team_makes_creator_admin(store, admin):
    members = teams.list_members(store, admin, admin.team_id)
    assert len(members) == 1
    assert members[0].role is Role.ADMIN
    assert members[0].user_id == admin.user_id


def test_create_team_requires_sign_in_and_name(store, admin):
    with pytest.raises(AuthorizationError):
        teams.create_team(store, ANONYMOUS, "X")
    with pytest.raises(TeamError):
        teams.create_team(store, admin, "   ")


def test_list_teams_oldest_first_and_default(store, admin):
    second = teams.create_team(store, admin, "Barangay Dos")
    listed = [t.name for t in teams.list_teams(store, admin)]
    assert listed == ["Barangay Uno", "Barangay Dos"]
    assert teams.default_team(store, admin.with_team(None)).team_id == admin.team_id
    assert teams.default_team(store, admin, preferred=second.id).team_id == second.id
    assert teams.default_team(store, admin, preferred="gone").team_id == admin.team_id


def test_default_team_none_without_membership(store, outsider):
    assert teams.default_team(store, outsider).team_id is None


def test_select_team_requires_membership(store, admin, outsider):
    with pytest.raises(AuthorizationError):
        teams.select_team(store, outsider, admin.team_id)
    assert teams.select_team(store, admin, admin.team_id).team_id == admin.team_id


def test_update_team(store, admin, member):
    t = teams.update_team(store, admin, admin.team_id, name=" Renamed ", description="")
    assert t.name == "Renamed"
    assert t.description is None
    with pytest.raises(AuthorizationError):
        teams.update_team(store, member, admin.team_id, name="Nope")
    with pytest.raises(TeamError):
        teams.update_team(store, admin, admin.team_id, name=" ")


def test_add_member_existing_and_pending(store, admin, member):
    members = {m.email: m for m in teams.list_members(store, admin, admin.team_id)}
    assert members["member@example.org"].pending is False
    assert members["member@example.org"].role is Role.MEMBER
    invited = teams.add_member(store, admin, admin.team_id, "Invitee@Example.org", "admin")
    assert invited.pending is True
    assert invited.role is Role.ADMIN
    with pytest.raises(TeamError, match="already a member"):
        teams.add_member(store, admin, admin.team_id, "invitee@example.org")


def test_member_cannot_add_members(store, member):
    with pytest.raises(AuthorizationError):
        teams.add_member(store, member, member.team_id, "x@example.org")


def test_role_change_and_remove(store, admin, member):
    m = next(m for m in teams.list_members(store, admin, admin.team_id) if m.email == "member@example.org")
    updated = teams.update_member_role(store, admin, admin.team_id, m.id, "admin")
    assert updated.is_admin
    teams.remove_member(store, admin, admin.team_id, m.id)
    assert [x.email for x in teams.list_members(store, admin, admin.team_id)] == ["admin@example.org"]
    with pytest.raises(NotFoundError):
        teams.remove_member(store, admin, admin.team_id, m.id)


def test_accept_and_decline_invitations(store, admin):
    first = teams.add_member(store, admin, admin.team_id, "guest@example.org")
    guest = teams.register_user(store, "guest@example.org")
    assert [m.id for m in teams.pending_invitations(store, guest)] == [first.id]
    assert teams.list_teams(store, guest) == []

    joined = teams.accept_invitation(store, guest, first.id)
    assert joined.pending is False
    assert joined.user_id == guest.user_id
    assert [t.id for t in teams.list_teams(store, guest)] == [admin.team_id]
    with pytest.raises(TeamError):
        teams.accept_invitation(store, guest, first.id)

    invite = teams.add_member(store, admin, admin.team_id, "late@example.org")
    stranger = teams.register_user(store, "stranger@example.org")
    with pytest.raises(AuthorizationError):
        teams.decline_invitation(store, stranger, invite.id)
    late = teams.register_user(store, "late@example.org")
    teams.decline_invitation(store, late, invite.id)
    assert teams.pending_invitations(store, late) == []
    assert store.count("team_members", {"email": "late@example.org"}) == 0


def test_delete_team_cascades(store, admin, member):
    link = store.insert("form_links", [{"team_id": admin.team_id, "name": "Intake"}])[0]
    store.insert("form_submissions", [{"team_id": admin.team_id, "form_link_id": link["id"], "last_name": "X"}])
    store.insert("beneficiaries", [{"team_id": admin.team_id, "last_name": "Y"}])
    with pytest.raises(AuthorizationError):
        teams.delete_team(store, member, admin.team_id)
    teams.delete_team(store, admin, admin.team_id)
    for collection in ("teams", "team_members", "form_links", "form_submissions", "beneficiaries"):
        assert store.count(collection) == 0, collection
