from datetime import date

from fastapi import APIRouter, Depends, Query, Response, status

from app.schemas.auth import CurrentUserResponse
from app.schemas.standup import StandupCreateRequest, StandupResponse, StandupUpdateRequest
from app.services.auth_service import require_current_user
from app.services.standup_service import StandupService

router = APIRouter(prefix="/standups", tags=["standups"])


@router.post(
    "/teams/{team_id}",
    response_model=StandupResponse,
    status_code=status.HTTP_201_CREATED,
)
def submit_standup(
    team_id: str,
    payload: StandupCreateRequest,
    current_user: CurrentUserResponse = Depends(require_current_user),
) -> StandupResponse:
    service = StandupService()
    return service.submit(current_user=current_user, team_id=team_id, payload=payload)


@router.get("/teams/{team_id}", response_model=list[StandupResponse])
def list_team_standups(
    team_id: str,
    standup_date: date | None = Query(default=None, alias="date"),
    current_user: CurrentUserResponse = Depends(require_current_user),
) -> list[StandupResponse]:
    service = StandupService()
    return service.list_by_date(current_user=current_user, team_id=team_id, standup_date=standup_date)


@router.get("/teams/{team_id}/range", response_model=list[StandupResponse])
def list_team_standups_in_range(
    team_id: str,
    start_date: date = Query(...),
    end_date: date = Query(...),
    current_user: CurrentUserResponse = Depends(require_current_user),
) -> list[StandupResponse]:
    service = StandupService()
    return service.list_by_range(
        current_user=current_user,
        team_id=team_id,
        start_date=start_date,
        end_date=end_date,
    )


@router.put("/{standup_id}", response_model=StandupResponse)
def update_standup(
    standup_id: str,
    payload: StandupUpdateRequest,
    current_user: CurrentUserResponse = Depends(require_current_user),
) -> StandupResponse:
    service = StandupService()
    return service.update(current_user=current_user, standup_id=standup_id, payload=payload)


@router.delete("/{standup_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_standup(
    standup_id: str,
    current_user: CurrentUserResponse = Depends(require_current_user),
) -> Response:
    service = StandupService()
    service.delete(current_user=current_user, standup_id=standup_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
