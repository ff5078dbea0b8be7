from functools import lru_cache
from typing import Annotated

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "StandUpStrip API"
    app_env: str = "development"
    app_version: str = "0.1.0"
    log_level: str = "INFO"
    api_prefix: str = "/api"
    allowed_origins: Annotated[list[str], NoDecode] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    user_data_store: str = "mongodb"
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_db_name: str = "standupstrip"
    mongodb_connect_timeout_ms: int = 2000
    mongodb_users_collection: str = "users"
    mongodb_teams_collection: str = "teams"
    mongodb_team_memberships_collection: str = "team_memberships"
    mongodb_standups_collection: str = "standups"
    mongodb_standup_summaries_collection: str = "standup_summaries"
    mongodb_weekly_summaries_collection: str = "weekly_summaries"
    standup_timezone: str = "UTC"
    auth_secret_key: str = "change-me-in-production"
    auth_token_ttl_minutes: int = 60 * 12
    auth_email_verification_enabled: bool = False
    auth_verification_token_ttl_hours: int = 24
    auth_password_reset_token_ttl_minutes: int = 60
    gemini_api_key: str = ""
    gemini_api_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_model: str = "gemini-1.5-flash"
    gemini_api_timeout_seconds: float = 20.0
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    mail_from_email: str = ""
    mail_from_name: str = "StandUpStrip"
    email_worker_pool_size: int = 4
    email_send_timeout_seconds: float = 30.0
    frontend_base_url: str = "http://localhost:3000"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def parse_allowed_origins(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return value.strip().upper() or "INFO"

    @field_validator("user_data_store", mode="before")
    @classmethod
    def normalize_user_data_store(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("standup_timezone", mode="before")
    @classmethod
    def normalize_standup_timezone(cls, value: str) -> str:
        return value.strip() or "UTC"

    @field_validator("gemini_api_timeout_seconds", mode="before")
    @classmethod
    def normalize_gemini_timeout(cls, value: float | str) -> float:
        parsed_value = float(value)
        if parsed_value <= 0:
            return 20.0
        return parsed_value

    @field_validator("email_send_timeout_seconds", mode="before")
    @classmethod
    def normalize_email_send_timeout(cls, value: float | str) -> float:
        parsed_value = float(value)
        if parsed_value <= 0:
            return 30.0
        return parsed_value

    @field_validator("email_worker_pool_size", mode="before")
    @classmethod
    def normalize_email_worker_pool_size(cls, value: int | str) -> int:
        parsed_value = int(value)
        if parsed_value <= 0:
            return 4
        return parsed_value

    @field_validator("auth_token_ttl_minutes", mode="before")
    @classmethod
    def normalize_auth_token_ttl(cls, value: int | str) -> int:
        parsed_value = int(value)
        if parsed_value <= 0:
            return 60 * 12
        return parsed_value

    @field_validator("auth_verification_token_ttl_hours", mode="before")
    @classmethod
    def normalize_verification_token_ttl(cls, value: int | str) -> int:
        parsed_value = int(value)
        if parsed_value <= 0:
            return 24
        return parsed_value

    @field_validator("auth_password_reset_token_ttl_minutes", mode="before")
    @classmethod
    def normalize_password_reset_token_ttl(cls, value: int | str) -> int:
        parsed_value = int(value)
        if parsed_value <= 0:
            return 60
        return parsed_value

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host.strip() and self.mail_from_email.strip())


@lru_cache
def get_settings() -> Settings:
    return Settings()
