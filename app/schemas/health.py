from datetime import date, datetime

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str = "ok"
    service: str
    version: str
    environment: str
    storage_backend: str
    ai_summaries_enabled: bool
    email_enabled: bool
    standup_timezone: str
    # Calendar day new standups are filed under.
    standup_date: date
    timestamp: datetime
