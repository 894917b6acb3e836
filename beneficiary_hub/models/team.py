from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any

"""Team, membership, form link and submission models.

These mirror the documents kept in the teams / team_members / form_links /
form_submissions collections.
"""

__all__ = [
    "Role",
    "Team",
    "TeamMember",
    "FormLink",
    "Session",
]


class Role(Enum):
    """Membership role within a team."""
    ADMIN = "admin"
    MEMBER = "member"

    @classmethod
    def parse(cls, value: str) -> Role:
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(f"invalid role: {value!r} (expected admin or member)") from None


@dataclass(frozen=True)
class Team:
    id: str
    name: str
    description: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> Team:
        return cls(
            id=doc["id"],
            name=doc["name"],
            description=doc.get("description"),
            created_at=doc.get("created_at"),
        )


@dataclass(frozen=True)
class TeamMember:
    """A membership row. ``pending`` marks an invitation not yet accepted."""
    id: str
    team_id: str
    role: Role
    user_id: str = ""
    email: str = ""
    pending: bool = False
    created_at: datetime | None = None

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> TeamMember:
        return cls(
            id=doc["id"],
            team_id=doc["team_id"],
            role=Role(doc["role"]),
            user_id=doc.get("user_id") or "",
            email=doc.get("email") or "",
            pending=bool(doc.get("pending")),
            created_at=doc.get("created_at"),
        )

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


@dataclass(frozen=True)
class FormLink:
    id: str
    team_id: str
    name: str
    created_at: datetime | None = None
    submissions_count: int = 0

    @classmethod
    def from_document(cls, doc: dict[str, Any], submissions_count: int = 0) -> FormLink:
        return cls(
            id=doc["id"],
            team_id=doc["team_id"],
            name=doc["name"],
            created_at=doc.get("created_at"),
            submissions_count=submissions_count,
        )


@dataclass(frozen=True)
class Session:
    """Explicit caller context passed to every operation.

    ``team_id`` is the selected team; selecting another team produces a new
    Session rather than mutating shared state.
    """
    user_id: str | None
    email: str | None = None
    team_id: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)

    @property
    def normalized_email(self) -> str:
        return (self.email or "").strip().lower()

    def with_team(self, team_id: str | None) -> Session:
        return replace(self, team_id=team_id)


ANONYMOUS = Session(user_id=None)
