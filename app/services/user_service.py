from __future__ import annotations

import logging

from app.core.config import Settings, get_settings
from app.core.errors import BadRequestError, NotFoundError, UnauthorizedError
from app.schemas.auth import CurrentUserResponse, UserUpdateRequest
from app.services.auth_service import to_current_user_response
from app.services.user_store import UserStore, create_user_store

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, settings: Settings | None = None, user_store: UserStore | None = None) -> None:
        self.settings = settings or get_settings()
        self.user_store = user_store or create_user_store(self.settings)

    def get_user(self, user_id: str) -> CurrentUserResponse:
        user = self.user_store.get_user_by_id(user_id.strip())
        if not user:
            raise NotFoundError(f"User not found with id: {user_id}")
        return to_current_user_response(user)

    def update_user(
        self,
        *,
        current_user: CurrentUserResponse,
        user_id: str,
        payload: UserUpdateRequest,
    ) -> CurrentUserResponse:
        if user_id.strip() != current_user.id:
            raise UnauthorizedError("You can only update your own profile.")
        full_name = payload.full_name.strip()
        if len(full_name) < 2:
            raise BadRequestError("full_name must contain at least 2 characters.")

        user = self.user_store.update_name(current_user.id, full_name)
        if not user:
            raise NotFoundError(f"User not found with id: {user_id}")
        logger.info("Profile updated user=%s", user.id)
        return to_current_user_response(user)
