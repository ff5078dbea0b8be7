from __future__ import annotations

import logging

from app.core.config import Settings, get_settings
from app.core.errors import BadRequestError, ConflictError, NotFoundError
from app.schemas.auth import CurrentUserResponse
from app.schemas.reminder import ReminderResponse
from app.services.clock import TodayProvider, today_provider_for
from app.services.email_service import EmailDeliveryError, EmailService, create_email_service
from app.services.email_templates import standup_reminder_email
from app.services.standup_models import Team, UserAccount
from app.services.standup_store import StandupStore, create_standup_store
from app.services.team_service import TeamService
from app.services.user_store import UserStore, create_user_store

logger = logging.getLogger(__name__)

_ONLY_OWNER = "Only team owners can send reminders."


class ReminderService:
    def __init__(
        self,
        settings: Settings | None = None,
        *,
        team_service: TeamService | None = None,
        user_store: UserStore | None = None,
        standup_store: StandupStore | None = None,
        email_service: EmailService | None = None,
        today: TodayProvider | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.user_store = user_store or create_user_store(self.settings)
        self.team_service = team_service or TeamService(self.settings, user_store=self.user_store)
        self.standup_store = standup_store or create_standup_store(self.settings)
        self.email_service = email_service or create_email_service(self.settings)
        self.today = today or today_provider_for(self.settings)

    def remind_member(
        self,
        *,
        current_user: CurrentUserResponse,
        team_id: str,
        user_id: str,
    ) -> ReminderResponse:
        team = self.team_service.require_owner(team_id, current_user.id, _ONLY_OWNER)
        if not self.team_service.is_member(team.id, user_id):
            raise BadRequestError("User is not a member of this team.")

        member = self.user_store.get_user_by_id(user_id.strip())
        if not member:
            raise NotFoundError(f"User not found with id: {user_id}")

        if self.standup_store.find_standup(team_id=team.id, user_id=member.id, standup_date=self.today()):
            raise ConflictError("User has already submitted their standup today.")

        try:
            delivered = self._send_reminder(member, team)
        except EmailDeliveryError as exc:
            logger.error("Failed to send reminder to %s: %s", member.email, exc)
            return ReminderResponse(emails_sent=0, message=f"Failed to send reminder to {member.name}")
        if not delivered:
            return ReminderResponse(emails_sent=0, message="Email delivery is not configured.")
        return ReminderResponse(emails_sent=1, message=f"Reminder sent to {member.name}")

    def remind_all_pending(self, *, current_user: CurrentUserResponse, team_id: str) -> ReminderResponse:
        team = self.team_service.require_owner(team_id, current_user.id, _ONLY_OWNER)
        today = self.today()
        submitted_user_ids = {standup.user_id for standup in self.standup_store.list_by_team_and_date(team.id, today)}
        pending_members = [
            member for member in self.team_service.list_accepted_members(team.id) if member.id not in submitted_user_ids
        ]
        if not pending_members:
            return ReminderResponse(
                emails_sent=0,
                message="All team members have already submitted their standups",
            )

        emails_sent = 0
        for member in pending_members:
            try:
                if self._send_reminder(member, team):
                    emails_sent += 1
            except EmailDeliveryError as exc:
                logger.error("Failed to send reminder to %s: %s", member.email, exc)

        if emails_sent == 1:
            message = "Reminder sent to 1 team member"
        else:
            message = f"Reminders sent to {emails_sent} team members"
        return ReminderResponse(emails_sent=emails_sent, message=message)

    def _send_reminder(self, member: UserAccount, team: Team) -> bool:
        subject, html_body = standup_reminder_email(
            user_name=member.name,
            team_name=team.name,
            team_id=team.id,
            frontend_base_url=self.settings.frontend_base_url,
        )
        delivered = self.email_service.send_html_and_wait(member.email, subject, html_body)
        if delivered:
            logger.info("Reminder sent team_id=%s user_id=%s", team.id, member.id)
        return delivered
