"""Privacy-gated aggregation of teammates' session records."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable

from ..config import ConfigurationService
from ..filters import ExclusionFilter
from ..models import SessionData, utcnow
from ..storage import SessionStoreError, StateStore, StoredSession
from .channel import TeamChannel
from .models import SharedSessionRecord, TeamDataPermissions, TeamMember, TeamMemberSession, TeamSessionData

logger = logging.getLogger(__name__)

OPT_IN_KEY = "sessionRecap.teamOptIn"


class TeamSharingError(RuntimeError):
    """Raised when the opt-in state cannot be changed."""


class TeamDataAggregator:
    """Opt-in state machine and aggregation over a :class:`TeamChannel`.

    Nothing leaves the local record unless the persisted opt-in flag is set,
    the team dashboard is enabled and ``privacySettings.shareWithTeam`` holds.
    """

    def __init__(
        self,
        config_service: ConfigurationService,
        state_store: StateStore,
        channel: TeamChannel,
        *,
        members: Iterable[TeamMember] = (),
        workspace_root: Path | None = None,
        member_id: str = "local",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config_service = config_service
        self._state = state_store
        self._channel = channel
        self._members = list(members)
        self._workspace_root = Path(workspace_root) if workspace_root else None
        self._member_id = member_id
        self._clock = clock or utcnow
        self._filter = ExclusionFilter(config_service.current)

    @property
    def member_id(self) -> str:
        return self._member_id

    @property
    def team_id(self) -> str:
        name = self._workspace_root.name if self._workspace_root is not None else ""
        return f"team-{name or 'default'}"

    def _self_member(self) -> TeamMember:
        for member in self._members:
            if member.id == self._member_id:
                return member
        return TeamMember(id=self._member_id, name=self._member_id)

    async def has_user_opted_in(self) -> bool:
        flag = await self._state.get(OPT_IN_KEY, False)
        return bool(flag) and self._config_service.current.enable_team_dashboard

    async def opt_in_to_team_sharing(self) -> None:
        previous = self._config_service.current
        try:
            self._config_service.update_configuration("privacySettings.shareWithTeam", True)
            self._config_service.update_configuration("enableTeamDashboard", True)
            await self._state.update(OPT_IN_KEY, True)
        except (SessionStoreError, ValueError) as exc:
            # The flag is persisted last; only the settings need undoing.
            if self._config_service.current is not previous:
                self._config_service.replace(previous.to_mapping())
            raise TeamSharingError(f"Failed to opt in to team data sharing: {exc}") from exc
        logger.info("Opted in to team data sharing", extra={"member_id": self._member_id})

    async def opt_out_of_team_sharing(self) -> None:
        try:
            await self._state.update(OPT_IN_KEY, False)
            self._config_service.update_configuration("privacySettings.shareWithTeam", False)
            await self._channel.withdraw(self._member_id)
        except (SessionStoreError, OSError, ValueError) as exc:
            raise TeamSharingError(f"Failed to opt out of team data sharing: {exc}") from exc
        logger.info("Opted out of team data sharing", extra={"member_id": self._member_id})

    async def get_user_permissions(self) -> TeamDataPermissions | None:
        if not await self.has_user_opted_in():
            return None
        return TeamDataPermissions(
            can_view_team_data=True,
            can_view_member_details=True,
            is_team_lead=self._self_member().role == "lead",
            team_id=self.team_id,
        )

    async def is_team_dashboard_available(self) -> bool:
        if not self._config_service.current.enable_team_dashboard:
            return False
        return await self.get_user_permissions() is not None

    async def share_session_data(self, session: SessionData) -> bool:
        """Publish a filtered copy of ``session``; return whether anything was sent."""

        config = self._config_service.current
        if not config.privacy_settings.share_with_team or not await self.has_user_opted_in():
            logger.debug("Team sharing skipped; not opted in", extra={"member_id": self._member_id})
            return False

        self._filter.update_config(config)
        record = SharedSessionRecord(
            member_id=self._member_id,
            shared_at=self._clock(),
            session=StoredSession.from_session_data(self._filter.filter_session(session)),
        )
        try:
            await self._channel.publish(record)
        except (OSError, ValueError) as exc:
            logger.warning("Failed to share session data", extra={"error": str(exc)})
            return False
        return True

    async def get_team_session_data(self) -> TeamSessionData | None:
        permissions = await self.get_user_permissions()
        if permissions is None or not permissions.can_view_team_data:
            return None

        try:
            records = await self._channel.fetch_all()
        except OSError as exc:
            logger.warning("Failed to fetch team records", extra={"error": str(exc)})
            records = {}

        roster = list(self._members)
        if all(member.id != self._member_id for member in roster):
            roster.append(self._self_member())

        now = self._clock()
        entries: list[TeamMemberSession] = []
        for member in roster:
            record = records.get(member.id)
            if record is None:
                entries.append(
                    TeamMemberSession(
                        member=member,
                        session_data=None,
                        has_opted_in=False,
                        last_updated=member.last_active or now,
                    )
                )
                continue
            entries.append(
                TeamMemberSession(
                    member=member,
                    session_data=record.session.to_session_data(),
                    has_opted_in=True,
                    last_updated=record.shared_at,
                )
            )
        return TeamSessionData(team_id=permissions.team_id, members=entries, aggregated_at=now)


__all__ = ["OPT_IN_KEY", "TeamDataAggregator", "TeamSharingError"]
