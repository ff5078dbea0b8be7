from datetime import date, datetime

from pydantic import BaseModel


class StandupSummaryResponse(BaseModel):
    id: str
    team_id: str
    date: date
    summary_text: str
    generated_by_ai: bool
    created_at: datetime


class WeeklySummaryResponse(BaseModel):
    id: str
    team_id: str
    week_start_date: date
    week_end_date: date
    summary_text: str
    sent_to_owner: bool
    created_at: datetime
