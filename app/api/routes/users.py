from fastapi import APIRouter, Depends

from app.schemas.auth import CurrentUserResponse, UserUpdateRequest
from app.services.auth_service import require_current_user
from app.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/{user_id}", response_model=CurrentUserResponse)
def get_user(
    user_id: str,
    current_user: CurrentUserResponse = Depends(require_current_user),
) -> CurrentUserResponse:
    service = UserService()
    return service.get_user(user_id)


@router.put("/{user_id}", response_model=CurrentUserResponse)
def update_user(
    user_id: str,
    payload: UserUpdateRequest,
    current_user: CurrentUserResponse = Depends(require_current_user),
) -> CurrentUserResponse:
    service = UserService()
    return service.update_user(current_user=current_user, user_id=user_id, payload=payload)
