from datetime import datetime

from pydantic import BaseModel, Field


class TeamResponse(BaseModel):
    id: str
    name: str
    description: str | None = None
    owner_user_id: str
    invite_code: str
    created_at: datetime


class TeamMemberResponse(BaseModel):
    user_id: str
    email: str
    full_name: str
    role: str
    status: str
    invited_at: datetime
    responded_at: datetime | None = None


class TeamCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1000)


class TeamUpdateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1000)


class TeamInviteRequest(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    role: str | None = None


class TeamMembershipResponse(BaseModel):
    team_id: str
    user_id: str
    role: str
    status: str
    invited_at: datetime
    responded_at: datetime | None = None
