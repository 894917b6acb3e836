from __future__ import annotations

import logging

from ..db.store import DocumentStore, NotFoundError
from ..models.team import Role, Session, Team, TeamMember
from .authorization import Action, AuthorizationError, Decision, require

"""Teams and membership.

The selected team lives on the Session; select_team returns a new Session
instead of remembering the choice anywhere.
"""

__all__ = [
    "TeamError",
    "accept_invitation",
    "add_member",
    "create_team",
    "decline_invitation",
    "default_team",
    "delete_team",
    "list_members",
    "list_teams",
    "pending_invitations",
    "register_user",
    "remove_member",
    "select_team",
    "update_member_role",
    "update_team",
]

logger = logging.getLogger(__name__)


class TeamError(Exception):
    pass


def register_user(store: DocumentStore, email: str, display_name: str | None = None) -> Session:
    """Create a user document and return a Session for it."""
    normalized = (email or "").strip().lower()
    if not normalized or "@" not in normalized:
        raise TeamError(f"invalid email address: {email!r}")
    if store.find("users", {"email": normalized}):
        raise TeamError(f"a user with email {normalized} already exists")
    doc = store.insert("users", [{"email": normalized, "display_name": display_name}])[0]
    return Session(user_id=doc["id"], email=normalized)


def create_team(store: DocumentStore, session: Session, name: str, description: str | None = None) -> Team:
    """Create a team; the creator becomes its admin."""
    if not session.is_authenticated:
        raise AuthorizationError(Decision(False, "not signed in"))
    name = (name or "").strip()
    if not name:
        raise TeamError("team name must not be empty")
    doc = store.insert("teams", [{"name": name, "description": (description or "").strip() or None}])[0]
    store.insert(
        "team_members",
        [{
            "team_id": doc["id"],
            "user_id": session.user_id,
            "email": session.normalized_email,
            "role": Role.ADMIN.value,
            "pending": False,
        }],
    )
    logger.info("team created: %s (%s)", name, doc["id"])
    return Team.from_document(doc)


def _memberships(store: DocumentStore, session: Session) -> list[TeamMember]:
    if not session.is_authenticated:
        return []
    by_id = store.find("team_members", {"user_id": session.user_id})
    by_email = store.find("team_members", {"email": session.normalized_email}) if session.normalized_email else []
    seen: set[str] = set()
    members: list[TeamMember] = []
    for doc in [*by_id, *by_email]:
        if doc["id"] in seen:
            continue
        seen.add(doc["id"])
        members.append(TeamMember.from_document(doc))
    return members


def list_teams(store: DocumentStore, session: Session) -> list[Team]:
    """Teams where the user holds an accepted membership, oldest first."""
    team_ids = list(dict.fromkeys(m.team_id for m in _memberships(store, session) if not m.pending))
    if not team_ids:
        return []
    docs = store.find("teams", {"id": team_ids}, order_by="created_at")
    return [Team.from_document(d) for d in docs]


def pending_invitations(store: DocumentStore, session: Session) -> list[TeamMember]:
    return [m for m in _memberships(store, session) if m.pending]


def select_team(store: DocumentStore, session: Session, team_id: str) -> Session:
    require(store, session, Action.READ_TEAM, team_id)
    return session.with_team(team_id)


def default_team(store: DocumentStore, session: Session, preferred: str | None = None) -> Session:
    """Session bound to ``preferred`` if still a member, else the first team (or none)."""
    teams = list_teams(store, session)
    ids = [t.id for t in teams]
    if preferred and preferred in ids:
        return session.with_team(preferred)
    return session.with_team(ids[0] if ids else None)


def update_team(
    store: DocumentStore,
    session: Session,
    team_id: str,
    *,
    name: str | None = None,
    description: str | None = None,
) -> Team:
    require(store, session, Action.UPDATE_TEAM, team_id)
    changes: dict[str, str | None] = {}
    if name is not None:
        if not name.strip():
            raise TeamError("team name must not be empty")
        changes["name"] = name.strip()
    if description is not None:
        changes["description"] = description.strip() or None
    if changes:
        store.update("teams", [team_id], changes)
    return Team.from_document(store.get("teams", team_id))


def delete_team(store: DocumentStore, session: Session, team_id: str) -> None:
    """Delete a team together with its members, links, submissions and records."""
    require(store, session, Action.DELETE_TEAM, team_id)
    for collection in ("form_submissions", "beneficiaries", "form_links", "team_members"):
        removed = store.delete_where(collection, {"team_id": team_id})
        logger.debug("team %s: removed %d from %s", team_id, removed, collection)
    store.delete("teams", [team_id])
    logger.info("team deleted: %s", team_id)


def list_members(store: DocumentStore, session: Session, team_id: str) -> list[TeamMember]:
    require(store, session, Action.READ_TEAM, team_id)
    return [TeamMember.from_document(d) for d in store.find("team_members", {"team_id": team_id})]


def add_member(
    store: DocumentStore, session: Session, team_id: str, email: str, role: Role | str = Role.MEMBER
) -> TeamMember:
    """Add a member by email; unknown users get a pending invitation."""
    require(store, session, Action.MANAGE_MEMBERS, team_id)
    role = role if isinstance(role, Role) else Role.parse(role)
    normalized = (email or "").strip().lower()
    if not normalized or "@" not in normalized:
        raise TeamError(f"invalid email address: {email!r}")
    if store.find("team_members", {"team_id": team_id, "email": normalized}):
        raise TeamError("This user is already a member of this team.")
    users = store.find("users", {"email": normalized})
    user_id = users[0]["id"] if users else ""
    doc = store.insert(
        "team_members",
        [{
            "team_id": team_id,
            "user_id": user_id,
            "email": normalized,
            "role": role.value,
            "pending": user_id == "",
        }],
    )[0]
    member = TeamMember.from_document(doc)
    logger.info("member added: %s role=%s pending=%s", normalized, role.value, member.pending)
    return member


def _member_of_team(store: DocumentStore, team_id: str, membership_id: str) -> TeamMember:
    member = TeamMember.from_document(store.get("team_members", membership_id))
    if member.team_id != team_id:
        raise NotFoundError(f"team_members: {membership_id} is not part of team {team_id}")
    return member


def remove_member(store: DocumentStore, session: Session, team_id: str, membership_id: str) -> None:
    require(store, session, Action.MANAGE_MEMBERS, team_id)
    _member_of_team(store, team_id, membership_id)
    store.delete("team_members", [membership_id])


def update_member_role(
    store: DocumentStore, session: Session, team_id: str, membership_id: str, role: Role | str
) -> TeamMember:
    require(store, session, Action.MANAGE_MEMBERS, team_id)
    role = role if isinstance(role, Role) else Role.parse(role)
    _member_of_team(store, team_id, membership_id)
    store.update("team_members", [membership_id], {"role": role.value})
    return TeamMember.from_document(store.get("team_members", membership_id))


def decline_invitation(store: DocumentStore, session: Session, membership_id: str) -> None:
    member = _own_invitation(store, session, membership_id)
    store.delete("team_members", [member.id])


def _own_invitation(store: DocumentStore, session: Session, membership_id: str) -> TeamMember:
    if not session.is_authenticated:
        raise AuthorizationError(Decision(False, "not signed in"))
    member = TeamMember.from_document(store.get("team_members", membership_id))
    if not member.pending:
        raise TeamError(f"invitation {membership_id} is not pending")
    if member.email.lower() != session.normalized_email:
        raise AuthorizationError(Decision(False, "invitation was sent to a different email address"))
    return member


def accept_invitation(store: DocumentStore, session: Session, membership_id: str) -> TeamMember:
    """Bind the invitation to the session user and clear ``pending``."""
    member = _own_invitation(store, session, membership_id)
    store.update("team_members", [member.id], {"user_id": session.user_id, "pending": False})
    logger.info("invitation accepted: team=%s", member.team_id)
    return TeamMember.from_document(store.get("team_members", member.id))
