"""Team sharing: roster, transport and privacy-gated aggregation."""

from .aggregator import OPT_IN_KEY, TeamDataAggregator, TeamSharingError
from .channel import DirectoryTeamChannel, InMemoryTeamChannel, TeamChannel
from .models import (
    SharedSessionRecord,
    TeamDataPermissions,
    TeamMember,
    TeamMemberSession,
    TeamSessionData,
)
from .roster import RosterLoadError, RosterLoader, load_roster

__all__ = [
    "DirectoryTeamChannel",
    "InMemoryTeamChannel",
    "OPT_IN_KEY",
    "RosterLoadError",
    "RosterLoader",
    "SharedSessionRecord",
    "TeamChannel",
    "TeamDataAggregator",
    "TeamDataPermissions",
    "TeamMember",
    "TeamMemberSession",
    "TeamSessionData",
    "TeamSharingError",
    "load_roster",
]
