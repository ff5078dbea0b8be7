from fastapi import APIRouter, Depends

from app.schemas.auth import CurrentUserResponse
from app.schemas.stats import HeatmapEntry
from app.services.auth_service import require_current_user
from app.services.stats_service import StatsService

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("/teams/{team_id}/heatmap", response_model=list[HeatmapEntry])
def get_team_heatmap(
    team_id: str,
    current_user: CurrentUserResponse = Depends(require_current_user),
) -> list[HeatmapEntry]:
    service = StatsService()
    return service.heatmap(current_user=current_user, team_id=team_id)
