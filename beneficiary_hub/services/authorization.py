from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from ..db.store import DocumentStore
from ..models.team import Session, TeamMember

"""Explicit authorization checks.

Every service call asks ``authorize`` (or ``require``) before touching team
data. The answer is a Decision carrying the reason, so callers can log or
surface why something was refused.

Rules:
- accepted members may read the team, read/write its records and manage
  form links
- only admins may update or delete the team and manage its members
- submitting an application is public but needs a form link that belongs
  to the team
- pending invitations grant nothing
"""

__all__ = [
    "Action",
    "AuthorizationError",
    "Decision",
    "authorize",
    "find_membership",
    "require",
]

logger = logging.getLogger(__name__)


class AuthorizationError(Exception):
    def __init__(self, decision: Decision) -> None:
        super().__init__(decision.reason)
        self.decision = decision


class Action(Enum):
    READ_TEAM = "read_team"
    READ_RECORDS = "read_records"
    WRITE_RECORDS = "write_records"
    MANAGE_FORM_LINKS = "manage_form_links"
    UPDATE_TEAM = "update_team"
    MANAGE_MEMBERS = "manage_members"
    DELETE_TEAM = "delete_team"
    SUBMIT_APPLICATION = "submit_application"


MEMBER_ACTIONS = frozenset(
    {Action.READ_TEAM, Action.READ_RECORDS, Action.WRITE_RECORDS, Action.MANAGE_FORM_LINKS}
)
ADMIN_ACTIONS = frozenset({Action.UPDATE_TEAM, Action.MANAGE_MEMBERS, Action.DELETE_TEAM})


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str
    action: Action | None = None
    team_id: str | None = None

    def __bool__(self) -> bool:
        return self.allowed


def find_membership(store: DocumentStore, session: Session, team_id: str) -> TeamMember | None:
    """Accepted membership of the session user in ``team_id``, if any.

    Matches on user id first, then on the (lowercased) email.
    """
    if not session.is_authenticated:
        return None
    docs = store.find("team_members", {"team_id": team_id, "pending": False})
    email = session.normalized_email
    for doc in docs:
        if doc.get("user_id") and doc["user_id"] == session.user_id:
            return TeamMember.from_document(doc)
    if email:
        for doc in docs:
            if (doc.get("email") or "").lower() == email:
                return TeamMember.from_document(doc)
    return None


def _authorize_submission(store: DocumentStore, team_id: str, form_link_id: str | None) -> Decision:
    if not form_link_id:
        return Decision(False, "a form link is required to submit an application")
    links = store.find("form_links", {"id": form_link_id})
    if not links:
        return Decision(False, f"form link {form_link_id} does not exist")
    if links[0]["team_id"] != team_id:
        return Decision(False, f"form link {form_link_id} does not belong to team {team_id}")
    return Decision(True, "public form link")


def authorize(
    store: DocumentStore,
    session: Session,
    action: Action,
    team_id: str | None,
    *,
    form_link_id: str | None = None,
) -> Decision:
    if not team_id:
        decision = Decision(False, "no team selected")
    elif action is Action.SUBMIT_APPLICATION:
        decision = _authorize_submission(store, team_id, form_link_id)
    elif not session.is_authenticated:
        decision = Decision(False, "not signed in")
    else:
        member = find_membership(store, session, team_id)
        if member is None:
            decision = Decision(False, f"not a member of team {team_id}")
        elif action in ADMIN_ACTIONS and not member.is_admin:
            decision = Decision(False, f"{action.value} requires the admin role")
        elif action in MEMBER_ACTIONS or action in ADMIN_ACTIONS:
            decision = Decision(True, f"{member.role.value} of team {team_id}")
        else:  # pragma: no cover
            decision = Decision(False, f"unknown action {action}")
    decision = Decision(decision.allowed, decision.reason, action, team_id)
    if not decision.allowed:
        logger.debug("denied action=%s team=%s reason=%s", action.value, team_id, decision.reason)
    return decision


def require(
    store: DocumentStore,
    session: Session,
    action: Action,
    team_id: str | None,
    *,
    form_link_id: str | None = None,
) -> Decision:
    """authorize() that raises AuthorizationError on deny."""
    decision = authorize(store, session, action, team_id, form_link_id=form_link_id)
    if not decision.allowed:
        raise AuthorizationError(decision)
    return decision
