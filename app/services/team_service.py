from __future__ import annotations

import logging

from app.core.config import Settings, get_settings
from app.core.errors import BadRequestError, ConflictError, NotFoundError, UnauthorizedError
from app.schemas.auth import CurrentUserResponse
from app.schemas.team import (
    TeamCreateRequest,
    TeamMemberResponse,
    TeamMembershipResponse,
    TeamResponse,
    TeamUpdateRequest,
)
from app.services.email_service import EmailService, create_email_service
from app.services.email_templates import team_invitation_email
from app.services.standup_models import InvitationStatus, Membership, Team, TeamRole, UserAccount
from app.services.team_membership_store import TeamMembershipStore, create_team_membership_store
from app.services.user_store import UserStore, create_user_store

logger = logging.getLogger(__name__)


class TeamService:
    """Team lifecycle and the invitation state machine.

    ``is_member`` is the access predicate every standup, summary and stats
    operation relies on: a user belongs to a team only while their
    membership row is ACCEPTED.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        user_store: UserStore | None = None,
        team_store: TeamMembershipStore | None = None,
        email_service: EmailService | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.user_store = user_store or create_user_store(self.settings)
        self.team_store = team_store or create_team_membership_store(self.settings)
        self.email_service = email_service or create_email_service(self.settings)

    def create_team(self, *, current_user: CurrentUserResponse, payload: TeamCreateRequest) -> TeamResponse:
        name = _validate_team_name(payload.name)
        team, _ = self.team_store.create_team_with_owner(
            name=name,
            description=payload.description,
            owner_user_id=current_user.id,
        )
        logger.info("Team created team_id=%s owner=%s", team.id, current_user.id)
        return to_team_response(team)

    def list_my_teams(self, current_user: CurrentUserResponse) -> list[TeamResponse]:
        memberships = self.team_store.list_memberships_for_user(
            current_user.id,
            status=InvitationStatus.accepted,
        )
        teams = self.team_store.list_teams_by_ids([membership.team_id for membership in memberships])
        return [to_team_response(team) for team in teams if not team.deleted]

    def get_team(self, team_id: str) -> TeamResponse:
        return to_team_response(self.get_live_team(team_id))

    def update_team(
        self,
        *,
        current_user: CurrentUserResponse,
        team_id: str,
        payload: TeamUpdateRequest,
    ) -> TeamResponse:
        team = self._get_team_or_404(team_id)
        self._assert_owner(team, current_user.id, "Only team owner can update the team.")
        if team.deleted:
            raise BadRequestError("Cannot update a deleted team.")

        updated_team = self.team_store.update_team(
            team.id,
            name=_validate_team_name(payload.name),
            description=payload.description,
        )
        if not updated_team:
            raise NotFoundError("Team not found.")
        return to_team_response(updated_team)

    def delete_team(self, *, current_user: CurrentUserResponse, team_id: str) -> None:
        team = self.get_live_team(team_id)
        self._assert_owner(team, current_user.id, "Only team owner can delete the team.")
        self.team_store.mark_team_deleted(team.id)
        logger.info("Team soft-deleted team_id=%s", team.id)

    def list_members(self, *, current_user: CurrentUserResponse, team_id: str) -> list[TeamMemberResponse]:
        team = self.require_member(team_id, current_user.id)
        memberships = self.team_store.list_memberships_for_team(team.id, status=InvitationStatus.accepted)
        return self._to_member_responses(memberships)

    def invite_member(
        self,
        *,
        current_user: CurrentUserResponse,
        team_id: str,
        email: str,
        role: str | None = None,
    ) -> TeamMembershipResponse:
        team = self._get_team_or_404(team_id)
        if team.deleted:
            raise BadRequestError("Cannot add members to deleted team.")
        self._assert_owner(team, current_user.id, "Only team owner can add members.")

        invitee = self.user_store.get_user_by_email(email.strip().lower())
        if not invitee:
            raise NotFoundError(f"User not found with email: {email.strip()}")

        membership = self.team_store.reset_membership_to_pending(
            team_id=team.id,
            user_id=invitee.id,
            role=_parse_invite_role(role),
        )
        if membership is None:
            raise ConflictError("User is already a member of this team.")

        logger.info("Invitation issued team_id=%s user_id=%s", team.id, invitee.id)
        self._send_invitation_email(team=team, invitee=invitee, inviter_name=current_user.full_name)
        return to_membership_response(membership)

    def remove_member(self, *, current_user: CurrentUserResponse, team_id: str, user_id: str) -> None:
        team = self.get_live_team(team_id)
        self._assert_owner(team, current_user.id, "Only team owner can remove members.")
        if user_id.strip() == team.owner_user_id:
            raise BadRequestError("Cannot remove team owner.")
        self.team_store.delete_membership(team_id=team.id, user_id=user_id.strip())

    def get_team_by_invite_code(self, invite_code: str) -> TeamResponse:
        return to_team_response(self._get_team_by_invite_code(invite_code))

    def join_by_code(self, *, current_user: CurrentUserResponse, invite_code: str) -> TeamMembershipResponse:
        team = self._get_team_by_invite_code(invite_code)
        membership = self.team_store.join_membership(team_id=team.id, user_id=current_user.id)
        if membership is not None:
            logger.info("User joined by code team_id=%s user_id=%s", team.id, current_user.id)
            return to_membership_response(membership)

        existing = self.team_store.get_membership(team.id, current_user.id)
        if existing and existing.status == InvitationStatus.pending:
            raise BadRequestError(
                "You already have a pending invitation to this team. "
                "Please accept or reject it from your dashboard.",
            )
        raise ConflictError("You are already a member of this team.")

    def accept_invitation(self, *, current_user: CurrentUserResponse, team_id: str) -> TeamMembershipResponse:
        return self._respond(current_user=current_user, team_id=team_id, status=InvitationStatus.accepted)

    def reject_invitation(self, *, current_user: CurrentUserResponse, team_id: str) -> TeamMembershipResponse:
        return self._respond(current_user=current_user, team_id=team_id, status=InvitationStatus.rejected)

    def list_pending_invitations(
        self,
        *,
        current_user: CurrentUserResponse,
        team_id: str,
    ) -> list[TeamMemberResponse]:
        team = self.get_live_team(team_id)
        self._assert_owner(team, current_user.id, "Only team owner can view pending invitations.")
        memberships = self.team_store.list_memberships_for_team(team.id, status=InvitationStatus.pending)
        return self._to_member_responses(memberships)

    def list_my_pending_invitations(self, current_user: CurrentUserResponse) -> list[TeamResponse]:
        memberships = self.team_store.list_memberships_for_user(
            current_user.id,
            status=InvitationStatus.pending,
        )
        teams = self.team_store.list_teams_by_ids([membership.team_id for membership in memberships])
        return [to_team_response(team) for team in teams if not team.deleted]

    def is_member(self, team_id: str, user_id: str) -> bool:
        membership = self.team_store.get_membership(team_id.strip(), user_id.strip())
        return membership is not None and membership.is_accepted

    def require_member(self, team_id: str, user_id: str) -> Team:
        team = self.get_live_team(team_id)
        if not self.is_member(team.id, user_id):
            raise UnauthorizedError("You are not a member of this team.")
        return team

    def require_owner(self, team_id: str, user_id: str, detail: str) -> Team:
        team = self.get_live_team(team_id)
        self._assert_owner(team, user_id, detail)
        return team

    def list_accepted_members(self, team_id: str) -> list[UserAccount]:
        memberships = self.team_store.list_memberships_for_team(team_id, status=InvitationStatus.accepted)
        return self.user_store.list_users_by_ids([membership.user_id for membership in memberships])

    def get_live_team(self, team_id: str) -> Team:
        team = self._get_team_or_404(team_id)
        if team.deleted:
            raise NotFoundError(f"Team not found with id: {team_id}")
        return team

    def _respond(
        self,
        *,
        current_user: CurrentUserResponse,
        team_id: str,
        status: InvitationStatus,
    ) -> TeamMembershipResponse:
        team = self.get_live_team(team_id)
        membership = self.team_store.respond_to_invitation(
            team_id=team.id,
            user_id=current_user.id,
            status=status,
        )
        if membership is None:
            raise BadRequestError("No pending invitation for this team.")
        logger.info("Invitation %s team_id=%s user_id=%s", status.value.lower(), team.id, current_user.id)
        return to_membership_response(membership)

    def _get_team_or_404(self, team_id: str) -> Team:
        team = self.team_store.get_team(team_id.strip())
        if not team:
            raise NotFoundError(f"Team not found with id: {team_id}")
        return team

    def _get_team_by_invite_code(self, invite_code: str) -> Team:
        team = self.team_store.get_team_by_invite_code(invite_code)
        if not team:
            raise NotFoundError("Invalid invite code.")
        return team

    def _assert_owner(self, team: Team, user_id: str, detail: str) -> None:
        if team.owner_user_id != user_id:
            raise UnauthorizedError(detail)

    def _to_member_responses(self, memberships: list[Membership]) -> list[TeamMemberResponse]:
        users_by_id = {
            user.id: user
            for user in self.user_store.list_users_by_ids([membership.user_id for membership in memberships])
        }
        responses: list[TeamMemberResponse] = []
        for membership in memberships:
            user = users_by_id.get(membership.user_id)
            if not user:
                continue
            responses.append(
                TeamMemberResponse(
                    user_id=user.id,
                    email=user.email,
                    full_name=user.name,
                    role=membership.role.value,
                    status=membership.status.value,
                    invited_at=membership.invited_at,
                    responded_at=membership.responded_at,
                ),
            )
        return responses

    def _send_invitation_email(self, *, team: Team, invitee: UserAccount, inviter_name: str) -> None:
        subject, html_body = team_invitation_email(
            team_name=team.name,
            inviter_name=inviter_name or "A teammate",
            invite_code=team.invite_code,
            frontend_base_url=self.settings.frontend_base_url,
        )
        self.email_service.send_html(invitee.email, subject, html_body)


def to_team_response(team: Team) -> TeamResponse:
    return TeamResponse(
        id=team.id,
        name=team.name,
        description=team.description,
        owner_user_id=team.owner_user_id,
        invite_code=team.invite_code,
        created_at=team.created_at,
    )


def to_membership_response(membership: Membership) -> TeamMembershipResponse:
    return TeamMembershipResponse(
        team_id=membership.team_id,
        user_id=membership.user_id,
        role=membership.role.value,
        status=membership.status.value,
        invited_at=membership.invited_at,
        responded_at=membership.responded_at,
    )


def _validate_team_name(name: str) -> str:
    normalized_name = name.strip()
    if len(normalized_name) < 2:
        raise BadRequestError("Team name must contain at least 2 characters.")
    return normalized_name


def _parse_invite_role(role: str | None) -> TeamRole:
    if role is None or not role.strip():
        return TeamRole.member
    try:
        return TeamRole(role.strip().upper())
    except ValueError as exc:
        raise BadRequestError(f"Unknown team role: {role}") from exc
