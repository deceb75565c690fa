"""Team roster and aggregation records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models import SessionData, utcnow
from ..storage.models import StoredSession, session_to_payload

MemberRole = Literal["member", "lead"]


class TeamMember(BaseModel):
    """A teammate listed in the roster."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., description="Stable identifier, matched against RECAP_MEMBER_ID.")
    name: str = Field(..., description="Display name.")
    email: str = Field(default="", description="Contact address shown on the dashboard.")
    role: MemberRole = Field(default="member", description="Team leads see member details.")
    is_online: bool = Field(default=False, alias="isOnline")
    last_active: datetime | None = Field(default=None, alias="lastActive")

    @field_validator("id", "name")
    @classmethod
    def _normalize_text(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Team member id and name must not be empty")
        return normalized


class SharedSessionRecord(BaseModel):
    """The document a member publishes to the team channel."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    member_id: str = Field(..., alias="memberId")
    shared_at: datetime = Field(..., alias="sharedAt")
    session: StoredSession

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)


@dataclass(slots=True, frozen=True)
class TeamDataPermissions:
    can_view_team_data: bool
    can_view_member_details: bool
    is_team_lead: bool
    team_id: str

    def to_payload(self) -> dict[str, Any]:
        return {
            "canViewTeamData": self.can_view_team_data,
            "canViewMemberDetails": self.can_view_member_details,
            "isTeamLead": self.is_team_lead,
            "teamId": self.team_id,
        }


@dataclass(slots=True)
class TeamMemberSession:
    """One roster entry in an aggregate; ``session_data`` is set only for opted-in members."""

    member: TeamMember
    session_data: SessionData | None
    has_opted_in: bool
    last_updated: datetime

    def __post_init__(self) -> None:
        if self.session_data is not None and not self.has_opted_in:
            raise ValueError("session data present for a member who has not opted in")

    def to_payload(self) -> dict[str, Any]:
        return {
            "member": self.member.model_dump(mode="json", by_alias=True),
            "sessionData": session_to_payload(self.session_data) if self.session_data else None,
            "hasOptedIn": self.has_opted_in,
            "lastUpdated": self.last_updated.isoformat(),
        }


@dataclass(slots=True)
class TeamSessionData:
    team_id: str
    members: list[TeamMemberSession] = field(default_factory=list)
    aggregated_at: datetime = field(default_factory=utcnow)

    def to_payload(self) -> dict[str, Any]:
        return {
            "teamId": self.team_id,
            "members": [entry.to_payload() for entry in self.members],
            "aggregatedAt": self.aggregated_at.isoformat(),
        }


__all__ = [
    "MemberRole",
    "SharedSessionRecord",
    "TeamDataPermissions",
    "TeamMember",
    "TeamMemberSession",
    "TeamSessionData",
]
