from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator


class StandupCreateRequest(BaseModel):
    yesterday_text: str = Field(min_length=1, max_length=2000)
    today_text: str = Field(min_length=1, max_length=2000)
    blockers_text: str | None = Field(default=None, max_length=1000)

    @field_validator("yesterday_text", "today_text")
    @classmethod
    def reject_blank_text(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class StandupUpdateRequest(StandupCreateRequest):
    pass


class StandupResponse(BaseModel):
    id: str
    team_id: str
    user_id: str
    user_name: str | None = None
    date: date
    yesterday_text: str
    today_text: str
    blockers_text: str | None = None
    created_at: datetime
    updated_at: datetime
