from fastapi import APIRouter, Depends, Query, status

from app.schemas.auth import (
    AuthTokenResponse,
    CurrentUserResponse,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
    VerifyPasswordRequest,
)
from app.services.auth_service import AuthService, require_current_user

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=AuthTokenResponse, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest) -> AuthTokenResponse:
    service = AuthService()
    return service.register(payload)


@router.post("/login", response_model=AuthTokenResponse)
def login(payload: LoginRequest) -> AuthTokenResponse:
    service = AuthService()
    return service.login(payload)


@router.get("/me", response_model=CurrentUserResponse)
def get_me(
    current_user: CurrentUserResponse = Depends(require_current_user),
) -> CurrentUserResponse:
    return current_user


@router.get("/verify", response_model=MessageResponse)
def verify_email(token: str = Query(..., min_length=1)) -> MessageResponse:
    service = AuthService()
    service.verify_email(token)
    return MessageResponse(message="Email verified successfully. You can now login.")


@router.post("/resend-verification", response_model=MessageResponse)
def resend_verification(
    current_user: CurrentUserResponse = Depends(require_current_user),
) -> MessageResponse:
    service = AuthService()
    service.resend_verification(current_user.id)
    return MessageResponse(message="Verification email sent successfully.")


@router.post("/verify-password", response_model=MessageResponse)
def verify_password(
    payload: VerifyPasswordRequest,
    current_user: CurrentUserResponse = Depends(require_current_user),
) -> MessageResponse:
    service = AuthService()
    service.verify_password(current_user.id, payload.password)
    return MessageResponse(message="Password verified.")


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(payload: ForgotPasswordRequest) -> MessageResponse:
    service = AuthService()
    service.initiate_password_reset(payload.email)
    return MessageResponse(message="If an account exists for this email, a reset link has been sent.")


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(payload: ResetPasswordRequest) -> MessageResponse:
    service = AuthService()
    service.reset_password(payload.token, payload.password)
    return MessageResponse(message="Password updated. You can now login.")
