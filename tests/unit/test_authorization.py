from __future__ import annotations

import pytest

from beneficiary_hub.models.team import ANONYMOUS, Session
from beneficiary_hub.services.authorization import Action, AuthorizationError, authorize, find_membership, require
from beneficiary_hub.services import teams


def test_admin_may_do_everything(store, admin):
    for action in (Action.READ_RECORDS, Action.WRITE_RECORDS, Action.UPDATE_TEAM, Action.DELETE_TEAM):
        assert authorize(store, admin, action, admin.team_id)


def test_member_cannot_manage_team(store, member):
    assert authorize(store, member, Action.WRITE_RECORDS, member.team_id)
    assert authorize(store, member, Action.MANAGE_FORM_LINKS, member.team_id)
    decision = authorize(store, member, Action.MANAGE_MEMBERS, member.team_id)
    assert not decision
    assert "admin" in decision.reason


def test_outsider_and_anonymous_denied(store, admin, outsider):
    assert not authorize(store, outsider, Action.READ_RECORDS, admin.team_id)
    d = authorize(store, ANONYMOUS, Action.READ_RECORDS, admin.team_id)
    assert not d
    assert d.reason == "not signed in"


def test_no_team_selected(store, admin):
    d = authorize(store, admin, Action.READ_RECORDS, None)
    assert not d
    assert d.reason == "no team selected"


def test_pending_invitation_grants_nothing(store, admin):
    teams.add_member(store, admin, admin.team_id, "later@example.org")
    invitee = Session(user_id="someone", email="later@example.org")
    assert not authorize(store, invitee, Action.READ_TEAM, admin.team_id)


def test_membership_matched_by_email(store, admin):
    teams.add_member(store, admin, admin.team_id, "byemail@example.org")
    store.update("team_members", [m.id for m in teams.list_members(store, admin, admin.team_id)
                                  if m.email == "byemail@example.org"], {"pending": False})
    session = Session(user_id="other-id", email="ByEmail@example.org")
    member = find_membership(store, session, admin.team_id)
    assert member is not None
    assert member.email == "byemail@example.org"


def test_submission_needs_link_of_team(store, admin):
    link = store.insert("form_links", [{"team_id": admin.team_id, "name": "Intake"}])[0]
    assert authorize(store, ANONYMOUS, Action.SUBMIT_APPLICATION, admin.team_id, form_link_id=link["id"])
    assert not authorize(store, ANONYMOUS, Action.SUBMIT_APPLICATION, admin.team_id, form_link_id=None)
    assert not authorize(store, ANONYMOUS, Action.SUBMIT_APPLICATION, "other-team", form_link_id=link["id"])
    assert not authorize(store, ANONYMOUS, Action.SUBMIT_APPLICATION, admin.team_id, form_link_id="missing")


def test_require_raises_with_decision(store, member):
    with pytest.raises(AuthorizationError) as exc:
        require(store, member, Action.DELETE_TEAM, member.team_id)
    assert exc.value.decision.action is Action.DELETE_TEAM
    assert exc.value.decision.team_id == member.team_id
