from datetime import date

from fastapi import APIRouter, Depends, Query

from app.schemas.auth import CurrentUserResponse
from app.schemas.summary import StandupSummaryResponse
from app.services.auth_service import require_current_user
from app.services.standup_summary_service import StandupSummaryService

router = APIRouter(prefix="/summaries", tags=["summaries"])


@router.post("/teams/{team_id}/generate", response_model=StandupSummaryResponse)
def generate_summary(
    team_id: str,
    summary_date: date | None = Query(default=None, alias="date"),
    current_user: CurrentUserResponse = Depends(require_current_user),
) -> StandupSummaryResponse:
    service = StandupSummaryService()
    return service.generate(current_user=current_user, team_id=team_id, summary_date=summary_date)


@router.get("/teams/{team_id}", response_model=StandupSummaryResponse)
def get_summary(
    team_id: str,
    summary_date: date | None = Query(default=None, alias="date"),
    current_user: CurrentUserResponse = Depends(require_current_user),
) -> StandupSummaryResponse:
    service = StandupSummaryService()
    return service.get_by_date(current_user=current_user, team_id=team_id, summary_date=summary_date)


@router.get("/teams/{team_id}/range", response_model=list[StandupSummaryResponse])
def list_summaries_in_range(
    team_id: str,
    start_date: date = Query(...),
    end_date: date = Query(...),
    current_user: CurrentUserResponse = Depends(require_current_user),
) -> list[StandupSummaryResponse]:
    service = StandupSummaryService()
    return service.list_by_range(
        current_user=current_user,
        team_id=team_id,
        start_date=start_date,
        end_date=end_date,
    )
