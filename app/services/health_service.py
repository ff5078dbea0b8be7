from datetime import UTC, datetime

from app.core.config import Settings
from app.schemas.health import HealthResponse
from app.services.clock import TodayProvider, today_provider_for


class HealthService:
    def __init__(self, settings: Settings, *, today: TodayProvider | None = None) -> None:
        self.settings = settings
        self.today = today or today_provider_for(settings)

    def get_status(self) -> HealthResponse:
        return HealthResponse(
            status="ok",
            service=self.settings.app_name,
            version=self.settings.app_version,
            environment=self.settings.app_env,
            storage_backend="mongodb" if self.settings.user_data_store == "mongodb" else "memory",
            ai_summaries_enabled=bool(self.settings.gemini_api_key.strip()),
            email_enabled=self.settings.smtp_configured,
            standup_timezone=self.settings.standup_timezone,
            standup_date=self.today(),
            timestamp=datetime.now(UTC),
        )
