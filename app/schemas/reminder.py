from pydantic import BaseModel


class ReminderResponse(BaseModel):
    emails_sent: int
    message: str
