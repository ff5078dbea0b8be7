from __future__ import annotations

import logging
from datetime import date, timedelta

from app.core.config import Settings, get_settings
from app.core.errors import BadRequestError, ConflictError, NotFoundError
from app.schemas.auth import CurrentUserResponse
from app.schemas.summary import WeeklySummaryResponse
from app.services.clock import TodayProvider, today_provider_for
from app.services.email_service import EmailDeliveryError, EmailService, create_email_service
from app.services.email_templates import weekly_summary_email
from app.services.standup_models import DuplicateRecordError, Team, WeeklySummary
from app.services.standup_store import StandupStore, create_standup_store
from app.services.standup_summary_writer import StandupSummaryWriter
from app.services.summary_store import SummaryStore, create_summary_store
from app.services.team_service import TeamService
from app.services.user_store import UserStore, create_user_store

logger = logging.getLogger(__name__)

WEEK_LENGTH_DAYS = 7


class WeeklySummaryService:
    """Owner-triggered seven-day digests, one per team and week start."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        team_service: TeamService | None = None,
        user_store: UserStore | None = None,
        standup_store: StandupStore | None = None,
        summary_store: SummaryStore | None = None,
        writer: StandupSummaryWriter | None = None,
        email_service: EmailService | None = None,
        today: TodayProvider | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.user_store = user_store or create_user_store(self.settings)
        self.team_service = team_service or TeamService(self.settings, user_store=self.user_store)
        self.standup_store = standup_store or create_standup_store(self.settings)
        self.summary_store = summary_store or create_summary_store(self.settings)
        self.writer = writer or StandupSummaryWriter(self.settings)
        self.email_service = email_service or create_email_service(self.settings)
        self.today = today or today_provider_for(self.settings)

    def generate(self, *, current_user: CurrentUserResponse, team_id: str) -> WeeklySummaryResponse:
        team = self.team_service.require_owner(
            team_id,
            current_user.id,
            "Only team owner can generate weekly summaries.",
        )
        week_end = self.today()
        week_start = week_end - timedelta(days=WEEK_LENGTH_DAYS - 1)

        if self.summary_store.get_weekly_summary(team.id, week_start):
            raise ConflictError("Weekly summary already exists for this week.")

        standups = self.standup_store.list_by_team_and_date_range(team.id, week_start, week_end)
        if not standups:
            raise BadRequestError("No standups found for this week.")

        generated = self.writer.write(standups, period_label=f"{week_start.isoformat()} to {week_end.isoformat()}")
        summary_text = build_weekly_header(week_start, week_end, len(standups)) + generated.text

        try:
            weekly = self.summary_store.create_weekly_summary(
                team_id=team.id,
                week_start_date=week_start,
                week_end_date=week_end,
                summary_text=summary_text,
                sent_to_owner=False,
            )
        except DuplicateRecordError as exc:
            raise ConflictError("Weekly summary already exists for this week.") from exc

        # Only the request that won the insert emails the owner.
        sent_to_owner = self._email_owner(team, week_start, week_end, summary_text)
        if sent_to_owner:
            weekly = self.summary_store.mark_weekly_summary_sent(weekly.id) or weekly

        logger.info(
            "Weekly summary stored team_id=%s week_start=%s sent_to_owner=%s",
            team.id,
            week_start.isoformat(),
            sent_to_owner,
        )
        return to_weekly_response(weekly)

    def list_summaries(self, *, current_user: CurrentUserResponse, team_id: str) -> list[WeeklySummaryResponse]:
        team = self.team_service.require_member(team_id, current_user.id)
        return [to_weekly_response(summary) for summary in self.summary_store.list_weekly_summaries(team.id)]

    def get_latest(self, *, current_user: CurrentUserResponse, team_id: str) -> WeeklySummaryResponse:
        team = self.team_service.require_member(team_id, current_user.id)
        summaries = self.summary_store.list_weekly_summaries(team.id)
        if not summaries:
            raise NotFoundError("No weekly summaries found for this team.")
        return to_weekly_response(summaries[0])

    def _email_owner(self, team: Team, week_start: date, week_end: date, summary_text: str) -> bool:
        owner = self.user_store.get_user_by_id(team.owner_user_id)
        if not owner:
            logger.warning("Weekly summary owner not found team_id=%s", team.id)
            return False

        subject, html_body = weekly_summary_email(
            owner_name=owner.name,
            team_name=team.name,
            week_start_date=week_start,
            week_end_date=week_end,
            summary_text=summary_text,
        )
        try:
            return self.email_service.send_html_and_wait(owner.email, subject, html_body)
        except EmailDeliveryError as exc:
            logger.error("Failed to email weekly summary team_id=%s: %s", team.id, exc)
            return False


def build_weekly_header(week_start: date, week_end: date, standup_count: int) -> str:
    return (
        f"## 📅 Weekly Summary: {week_start.isoformat()} to {week_end.isoformat()}\n\n"
        f"**Total Standups:** {standup_count}\n\n"
        "---\n\n"
    )


def to_weekly_response(summary: WeeklySummary) -> WeeklySummaryResponse:
    return WeeklySummaryResponse(
        id=summary.id,
        team_id=summary.team_id,
        week_start_date=summary.week_start_date,
        week_end_date=summary.week_end_date,
        summary_text=summary.summary_text,
        sent_to_owner=summary.sent_to_owner,
        created_at=summary.created_at,
    )
