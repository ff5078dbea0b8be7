from fastapi import APIRouter, Depends

from app.schemas.auth import CurrentUserResponse
from app.schemas.reminder import ReminderResponse
from app.services.auth_service import require_current_user
from app.services.reminder_service import ReminderService

router = APIRouter(prefix="/reminders", tags=["reminders"])


@router.post("/teams/{team_id}/members/{user_id}", response_model=ReminderResponse)
def remind_team_member(
    team_id: str,
    user_id: str,
    current_user: CurrentUserResponse = Depends(require_current_user),
) -> ReminderResponse:
    service = ReminderService()
    return service.remind_member(current_user=current_user, team_id=team_id, user_id=user_id)


@router.post("/teams/{team_id}/all-pending", response_model=ReminderResponse)
def remind_all_pending_members(
    team_id: str,
    current_user: CurrentUserResponse = Depends(require_current_user),
) -> ReminderResponse:
    service = ReminderService()
    return service.remind_all_pending(current_user=current_user, team_id=team_id)
