from __future__ import annotations

import logging
from datetime import date

from app.core.config import Settings, get_settings
from app.core.errors import BadRequestError, NotFoundError
from app.schemas.auth import CurrentUserResponse
from app.schemas.summary import StandupSummaryResponse
from app.services.clock import TodayProvider, today_provider_for
from app.services.standup_models import StandupSummary
from app.services.standup_store import StandupStore, create_standup_store
from app.services.standup_summary_writer import StandupSummaryWriter
from app.services.summary_store import SummaryStore, create_summary_store
from app.services.team_service import TeamService

logger = logging.getLogger(__name__)


class StandupSummaryService:
    """Daily summaries. Regenerating a date replaces the previous row."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        team_service: TeamService | None = None,
        standup_store: StandupStore | None = None,
        summary_store: SummaryStore | None = None,
        writer: StandupSummaryWriter | None = None,
        today: TodayProvider | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.team_service = team_service or TeamService(self.settings)
        self.standup_store = standup_store or create_standup_store(self.settings)
        self.summary_store = summary_store or create_summary_store(self.settings)
        self.writer = writer or StandupSummaryWriter(self.settings)
        self.today = today or today_provider_for(self.settings)

    def generate(
        self,
        *,
        current_user: CurrentUserResponse,
        team_id: str,
        summary_date: date | None = None,
    ) -> StandupSummaryResponse:
        team = self.team_service.require_member(team_id, current_user.id)
        target_date = summary_date or self.today()

        standups = self.standup_store.list_by_team_and_date(team.id, target_date)
        if not standups:
            raise BadRequestError(f"No standups found for {target_date.isoformat()}.")

        generated = self.writer.write(standups, period_label=target_date.isoformat())
        summary = self.summary_store.replace_daily_summary(
            team_id=team.id,
            summary_date=target_date,
            summary_text=generated.text,
            generated_by_ai=generated.generated_by_ai,
        )
        logger.info(
            "Daily summary stored team_id=%s date=%s generated_by_ai=%s",
            team.id,
            target_date.isoformat(),
            generated.generated_by_ai,
        )
        return to_summary_response(summary)

    def get_by_date(
        self,
        *,
        current_user: CurrentUserResponse,
        team_id: str,
        summary_date: date | None = None,
    ) -> StandupSummaryResponse:
        team = self.team_service.require_member(team_id, current_user.id)
        target_date = summary_date or self.today()
        summary = self.summary_store.get_daily_summary(team.id, target_date)
        if not summary:
            raise NotFoundError(f"No summary found for {target_date.isoformat()}.")
        return to_summary_response(summary)

    def list_by_range(
        self,
        *,
        current_user: CurrentUserResponse,
        team_id: str,
        start_date: date,
        end_date: date,
    ) -> list[StandupSummaryResponse]:
        team = self.team_service.require_member(team_id, current_user.id)
        if start_date > end_date:
            raise BadRequestError("start_date must be on or before end_date.")
        summaries = self.summary_store.list_daily_summaries(team.id, start_date, end_date)
        return [to_summary_response(summary) for summary in summaries]


def to_summary_response(summary: StandupSummary) -> StandupSummaryResponse:
    return StandupSummaryResponse(
        id=summary.id,
        team_id=summary.team_id,
        date=summary.date,
        summary_text=summary.summary_text,
        generated_by_ai=summary.generated_by_ai,
        created_at=summary.created_at,
    )
