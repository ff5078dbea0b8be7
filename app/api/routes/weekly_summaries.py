from fastapi import APIRouter, Depends, status

from app.schemas.auth import CurrentUserResponse
from app.schemas.summary import WeeklySummaryResponse
from app.services.auth_service import require_current_user
from app.services.weekly_summary_service import WeeklySummaryService

router = APIRouter(prefix="/weekly-summaries", tags=["weekly-summaries"])


@router.post(
    "/teams/{team_id}/generate",
    response_model=WeeklySummaryResponse,
    status_code=status.HTTP_201_CREATED,
)
def generate_weekly_summary(
    team_id: str,
    current_user: CurrentUserResponse = Depends(require_current_user),
) -> WeeklySummaryResponse:
    service = WeeklySummaryService()
    return service.generate(current_user=current_user, team_id=team_id)


@router.get("/teams/{team_id}", response_model=list[WeeklySummaryResponse])
def list_weekly_summaries(
    team_id: str,
    current_user: CurrentUserResponse = Depends(require_current_user),
) -> list[WeeklySummaryResponse]:
    service = WeeklySummaryService()
    return service.list_summaries(current_user=current_user, team_id=team_id)


@router.get("/teams/{team_id}/latest", response_model=WeeklySummaryResponse)
def get_latest_weekly_summary(
    team_id: str,
    current_user: CurrentUserResponse = Depends(require_current_user),
) -> WeeklySummaryResponse:
    service = WeeklySummaryService()
    return service.get_latest(current_user=current_user, team_id=team_id)
