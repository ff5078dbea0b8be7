from __future__ import annotations

import logging
from datetime import UTC, datetime

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.config import Settings, get_settings
from app.core.errors import AuthenticationError, BadRequestError, ConflictError, NotFoundError
from app.schemas.auth import AuthTokenResponse, CurrentUserResponse, LoginRequest, RegisterRequest
from app.services.email_service import EmailDeliveryError, EmailService, create_email_service
from app.services.email_templates import password_reset_email, verification_email
from app.services.security_utils import (
    create_access_token,
    decode_access_token,
    hash_password,
    new_password_reset_token,
    new_verification_token,
    verify_password,
)
from app.services.standup_models import UserAccount
from app.services.user_store import UserStore, create_user_store

logger = logging.getLogger(__name__)

_HTTP_BEARER = HTTPBearer(auto_error=False)


class AuthService:
    def __init__(
        self,
        settings: Settings | None = None,
        user_store: UserStore | None = None,
        *,
        email_service: EmailService | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.user_store = user_store or create_user_store(self.settings)
        self.email_service = email_service or create_email_service(self.settings)

    @property
    def verification_required(self) -> bool:
        return self.settings.auth_email_verification_enabled and self.email_service.is_configured

    def register(self, payload: RegisterRequest) -> AuthTokenResponse:
        full_name = payload.full_name.strip()
        email = str(payload.email).strip().lower()
        password = payload.password

        if len(full_name) < 2:
            raise BadRequestError("full_name must contain at least 2 characters.")
        if not _is_plausible_email(email):
            raise BadRequestError("email must be a valid email address.")
        _validate_password(password)

        if self.user_store.get_user_by_email(email):
            raise ConflictError("An account with this email already exists.")

        verification_token: str | None = None
        verification_expires_at: datetime | None = None
        if self.verification_required:
            verification_token, verification_expires_at = self._new_verification_token()

        try:
            user = self.user_store.create_user(
                email=email,
                name=full_name,
                password_hash=hash_password(password),
                verified=verification_token is None,
                verification_token=verification_token,
                verification_expires_at=verification_expires_at,
            )
        except ValueError as exc:
            raise ConflictError("An account with this email already exists.") from exc

        if verification_token is not None:
            user = self._send_verification_or_auto_verify(user, verification_token)
        return self._build_auth_token_response(user)

    def login(self, payload: LoginRequest) -> AuthTokenResponse:
        email = str(payload.email).strip().lower()
        user = self.user_store.get_user_by_email(email)
        if not user or not verify_password(payload.password, user.password_hash):
            raise AuthenticationError("Invalid email or password.")
        if not user.verified:
            raise AuthenticationError("Email not verified. Please check your inbox.")
        return self._build_auth_token_response(user)

    def verify_email(self, token: str) -> None:
        user = self.user_store.get_user_by_verification_token(token.strip())
        if not user:
            raise BadRequestError("Invalid or expired verification token.")
        if user.verification_expires_at and user.verification_expires_at < datetime.now(UTC):
            raise BadRequestError("Verification token has expired.")
        self.user_store.set_verification_state(
            user.id,
            verified=True,
            verification_token=None,
            verification_expires_at=None,
        )

    def resend_verification(self, user_id: str) -> None:
        user = self.user_store.get_user_by_id(user_id)
        if not user:
            raise NotFoundError("User not found.")
        if user.verified:
            raise BadRequestError("Email is already verified.")

        token, expires_at = self._new_verification_token()
        updated_user = self.user_store.set_verification_state(
            user.id,
            verified=False,
            verification_token=token,
            verification_expires_at=expires_at,
        )
        subject, html_body = verification_email(
            user_name=(updated_user or user).name,
            token=token,
            frontend_base_url=self.settings.frontend_base_url,
        )
        self.email_service.send_html(user.email, subject, html_body)

    def initiate_password_reset(self, email: str) -> None:
        """Email a one-time reset link. Unknown addresses are ignored silently."""
        user = self.user_store.get_user_by_email(email.strip().lower())
        if not user:
            logger.info("Password reset requested for unknown email")
            return

        ttl_minutes = self.settings.auth_password_reset_token_ttl_minutes
        token, expires_at = new_password_reset_token(ttl_minutes)
        self.user_store.set_password_reset_token(user.id, token=token, expires_at=expires_at)
        subject, html_body = password_reset_email(
            user_name=user.name,
            token=token,
            frontend_base_url=self.settings.frontend_base_url,
            ttl_minutes=ttl_minutes,
        )
        self.email_service.send_html(user.email, subject, html_body)

    def reset_password(self, token: str, password: str) -> None:
        user = self.user_store.get_user_by_password_reset_token(token.strip())
        if not user:
            raise BadRequestError("Invalid or expired password reset token.")
        if user.password_reset_expires_at and user.password_reset_expires_at < datetime.now(UTC):
            raise BadRequestError("Password reset token has expired.")
        _validate_password(password)
        self.user_store.update_password(user.id, hash_password(password))
        logger.info("Password reset user=%s", user.id)

    def verify_password(self, user_id: str, password: str) -> None:
        user = self.user_store.get_user_by_id(user_id)
        if not user or not verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid password.")

    def get_current_user_from_token(self, access_token: str) -> CurrentUserResponse:
        payload = decode_access_token(access_token, self.settings.auth_secret_key)
        if not payload:
            raise AuthenticationError("Invalid or expired access token.")

        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject.strip():
            raise AuthenticationError("Invalid access token payload.")

        user = self.user_store.get_user_by_id(subject)
        if not user:
            raise AuthenticationError("User not found for this access token.")
        return to_current_user_response(user)

    def _send_verification_or_auto_verify(self, user: UserAccount, token: str) -> UserAccount:
        subject, html_body = verification_email(
            user_name=user.name,
            token=token,
            frontend_base_url=self.settings.frontend_base_url,
        )
        try:
            delivered = self.email_service.send_html_and_wait(user.email, subject, html_body)
        except EmailDeliveryError as exc:
            logger.warning("Verification email failed, auto-verifying user=%s: %s", user.id, exc)
            delivered = False

        if delivered:
            logger.info("Verification email sent to=%s", user.email)
            return user
        return (
            self.user_store.set_verification_state(
                user.id,
                verified=True,
                verification_token=None,
                verification_expires_at=None,
            )
            or user
        )

    def _new_verification_token(self) -> tuple[str, datetime]:
        return new_verification_token(self.settings.auth_verification_token_ttl_hours)

    def _build_auth_token_response(self, user: UserAccount) -> AuthTokenResponse:
        current_user = to_current_user_response(user)
        access_token, expires_in_seconds = create_access_token(
            claims={
                "sub": current_user.id,
                "email": current_user.email,
            },
            secret_key=self.settings.auth_secret_key,
            ttl_minutes=self.settings.auth_token_ttl_minutes,
        )
        return AuthTokenResponse(
            access_token=access_token,
            expires_in_seconds=expires_in_seconds,
            user=current_user,
        )


def _is_plausible_email(email: str) -> bool:
    local_part, separator, domain = email.partition("@")
    if not separator or not local_part or "." not in domain:
        return False
    return not any(char.isspace() or ord(char) < 32 for char in email)


def _validate_password(password: str) -> None:
    if len(password) < 4:
        raise BadRequestError("password must contain at least 4 characters.")


def to_current_user_response(user: UserAccount) -> CurrentUserResponse:
    return CurrentUserResponse(
        id=user.id,
        email=user.email,
        full_name=user.name,
        verified=user.verified,
    )


def require_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_HTTP_BEARER),
) -> CurrentUserResponse:
    if not credentials or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Authentication required.")
    service = AuthService()
    return service.get_current_user_from_token(credentials.credentials)
