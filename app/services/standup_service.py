from __future__ import annotations

from collections.abc import Sequence
from datetime import date

from app.core.config import Settings, get_settings
from app.core.errors import BadRequestError, ConflictError, NotFoundError, UnauthorizedError
from app.schemas.auth import CurrentUserResponse
from app.schemas.standup import StandupCreateRequest, StandupResponse, StandupUpdateRequest
from app.services.clock import TodayProvider, today_provider_for
from app.services.standup_models import DuplicateRecordError, Standup
from app.services.standup_store import StandupStore, create_standup_store
from app.services.team_service import TeamService
from app.services.user_store import UserStore, create_user_store


class StandupService:
    def __init__(
        self,
        settings: Settings | None = None,
        *,
        team_service: TeamService | None = None,
        standup_store: StandupStore | None = None,
        user_store: UserStore | None = None,
        today: TodayProvider | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.user_store = user_store or create_user_store(self.settings)
        self.team_service = team_service or TeamService(self.settings, user_store=self.user_store)
        self.standup_store = standup_store or create_standup_store(self.settings)
        self.today = today or today_provider_for(self.settings)

    def submit(
        self,
        *,
        current_user: CurrentUserResponse,
        team_id: str,
        payload: StandupCreateRequest,
    ) -> StandupResponse:
        team = self.team_service.require_member(team_id, current_user.id)
        try:
            standup = self.standup_store.create_standup(
                team_id=team.id,
                user_id=current_user.id,
                standup_date=self.today(),
                yesterday_text=payload.yesterday_text.strip(),
                today_text=payload.today_text.strip(),
                blockers_text=_optional_text(payload.blockers_text),
            )
        except DuplicateRecordError as exc:
            raise ConflictError("You have already submitted a standup for today.") from exc
        return self._to_response(standup, user_name=current_user.full_name)

    def update(
        self,
        *,
        current_user: CurrentUserResponse,
        standup_id: str,
        payload: StandupUpdateRequest,
    ) -> StandupResponse:
        standup = self._get_owned_standup(standup_id, current_user.id, "You can only update your own standups.")
        if standup.date != self.today():
            raise BadRequestError("You can only update today's standup.")

        updated = self.standup_store.update_standup(
            standup.id,
            yesterday_text=payload.yesterday_text.strip(),
            today_text=payload.today_text.strip(),
            blockers_text=_optional_text(payload.blockers_text),
        )
        if not updated:
            raise NotFoundError(f"Standup not found with id: {standup_id}")
        return self._to_response(updated, user_name=current_user.full_name)

    def delete(self, *, current_user: CurrentUserResponse, standup_id: str) -> None:
        standup = self._get_owned_standup(standup_id, current_user.id, "You can only delete your own standups.")
        self.standup_store.delete_standup(standup.id)

    def list_by_date(
        self,
        *,
        current_user: CurrentUserResponse,
        team_id: str,
        standup_date: date | None = None,
    ) -> list[StandupResponse]:
        team = self.team_service.require_member(team_id, current_user.id)
        standups = self.standup_store.list_by_team_and_date(team.id, standup_date or self.today())
        return self._to_responses(standups)

    def list_by_range(
        self,
        *,
        current_user: CurrentUserResponse,
        team_id: str,
        start_date: date,
        end_date: date,
    ) -> list[StandupResponse]:
        team = self.team_service.require_member(team_id, current_user.id)
        if start_date > end_date:
            raise BadRequestError("start_date must be on or before end_date.")
        standups = self.standup_store.list_by_team_and_date_range(team.id, start_date, end_date)
        return self._to_responses(standups)

    def _get_owned_standup(self, standup_id: str, user_id: str, detail: str) -> Standup:
        standup = self.standup_store.get_standup(standup_id.strip())
        if not standup:
            raise NotFoundError(f"Standup not found with id: {standup_id}")
        if standup.user_id != user_id:
            raise UnauthorizedError(detail)
        return standup

    def _to_responses(self, standups: Sequence[Standup]) -> list[StandupResponse]:
        names_by_id = {
            user.id: user.name
            for user in self.user_store.list_users_by_ids(sorted({standup.user_id for standup in standups}))
        }
        return [self._to_response(standup, user_name=names_by_id.get(standup.user_id)) for standup in standups]

    def _to_response(self, standup: Standup, *, user_name: str | None) -> StandupResponse:
        return StandupResponse(
            id=standup.id,
            team_id=standup.team_id,
            user_id=standup.user_id,
            user_name=user_name,
            date=standup.date,
            yesterday_text=standup.yesterday_text,
            today_text=standup.today_text,
            blockers_text=standup.blockers_text,
            created_at=standup.created_at,
            updated_at=standup.updated_at,
        )


def _optional_text(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    return value.strip()
