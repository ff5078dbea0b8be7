from pydantic import BaseModel


class CurrentUserResponse(BaseModel):
    id: str
    email: str
    full_name: str
    verified: bool = True


class RegisterRequest(BaseModel):
    full_name: str
    email: str
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


class VerifyPasswordRequest(BaseModel):
    password: str


class AuthTokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in_seconds: int
    user: CurrentUserResponse


class MessageResponse(BaseModel):
    message: str


class ForgotPasswordRequest(BaseModel):
    email: str


class ResetPasswordRequest(BaseModel):
    token: str
    password: str


class UserUpdateRequest(BaseModel):
    full_name: str
