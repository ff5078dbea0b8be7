from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, date, datetime
from enum import StrEnum
from typing import Any


class DuplicateRecordError(ValueError):
    """Raised by stores when a uniqueness invariant would be violated."""


class TeamRole(StrEnum):
    owner = "OWNER"
    member = "MEMBER"


class InvitationStatus(StrEnum):
    pending = "PENDING"
    accepted = "ACCEPTED"
    rejected = "REJECTED"


@dataclass(frozen=True)
class UserAccount:
    id: str
    email: str
    name: str
    password_hash: str
    verified: bool
    created_at: datetime
    verification_token: str | None = None
    verification_expires_at: datetime | None = None
    password_reset_token: str | None = None
    password_reset_expires_at: datetime | None = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> UserAccount:
        return cls(
            id=str(record.get("_id", "")),
            email=str(record.get("email", "")).strip().lower(),
            name=str(record.get("name", "")).strip(),
            password_hash=str(record.get("password_hash", "")),
            verified=bool(record.get("verified", True)),
            created_at=_as_datetime(record.get("created_at")),
            verification_token=record.get("verification_token") or None,
            verification_expires_at=_as_optional_datetime(record.get("verification_expires_at")),
            password_reset_token=record.get("password_reset_token") or None,
            password_reset_expires_at=_as_optional_datetime(record.get("password_reset_expires_at")),
        )


@dataclass(frozen=True)
class Team:
    id: str
    name: str
    owner_user_id: str
    invite_code: str
    created_at: datetime
    description: str | None = None
    deleted: bool = False

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Team:
        return cls(
            id=str(record.get("_id", "")),
            name=str(record.get("name", "")).strip(),
            owner_user_id=str(record.get("owner_user_id", "")).strip(),
            invite_code=str(record.get("invite_code", "")).strip().upper(),
            created_at=_as_datetime(record.get("created_at")),
            description=record.get("description") or None,
            deleted=bool(record.get("deleted", False)),
        )


@dataclass(frozen=True)
class Membership:
    id: str
    team_id: str
    user_id: str
    role: TeamRole
    status: InvitationStatus
    invited_at: datetime
    responded_at: datetime | None = None

    @property
    def is_accepted(self) -> bool:
        return self.status == InvitationStatus.accepted

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Membership:
        return cls(
            id=str(record.get("_id", "")),
            team_id=str(record.get("team_id", "")).strip(),
            user_id=str(record.get("user_id", "")).strip(),
            role=_parse_role(record.get("role")),
            status=InvitationStatus(str(record.get("status", "PENDING")).strip().upper()),
            invited_at=_as_datetime(record.get("invited_at")),
            responded_at=_as_optional_datetime(record.get("responded_at")),
        )


@dataclass(frozen=True)
class Standup:
    id: str
    team_id: str
    user_id: str
    date: date
    yesterday_text: str
    today_text: str
    created_at: datetime
    updated_at: datetime
    blockers_text: str | None = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Standup:
        return cls(
            id=str(record.get("_id", "")),
            team_id=str(record.get("team_id", "")).strip(),
            user_id=str(record.get("user_id", "")).strip(),
            date=_as_date(record.get("date")),
            yesterday_text=str(record.get("yesterday_text", "")),
            today_text=str(record.get("today_text", "")),
            created_at=_as_datetime(record.get("created_at")),
            updated_at=_as_datetime(record.get("updated_at")),
            blockers_text=record.get("blockers_text") or None,
        )


@dataclass(frozen=True)
class StandupSummary:
    id: str
    team_id: str
    date: date
    summary_text: str
    generated_by_ai: bool
    created_at: datetime

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> StandupSummary:
        return cls(
            id=str(record.get("_id", "")),
            team_id=str(record.get("team_id", "")).strip(),
            date=_as_date(record.get("date")),
            summary_text=str(record.get("summary_text", "")),
            generated_by_ai=bool(record.get("generated_by_ai", False)),
            created_at=_as_datetime(record.get("created_at")),
        )


@dataclass(frozen=True)
class WeeklySummary:
    id: str
    team_id: str
    week_start_date: date
    week_end_date: date
    summary_text: str
    sent_to_owner: bool
    created_at: datetime

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> WeeklySummary:
        return cls(
            id=str(record.get("_id", "")),
            team_id=str(record.get("team_id", "")).strip(),
            week_start_date=_as_date(record.get("week_start_date")),
            week_end_date=_as_date(record.get("week_end_date")),
            summary_text=str(record.get("summary_text", "")),
            sent_to_owner=bool(record.get("sent_to_owner", False)),
            created_at=_as_datetime(record.get("created_at")),
        )


def date_key(value: date) -> str:
    # Mongo has no date-only type; calendar days are stored as ISO strings.
    return value.isoformat()


def _parse_role(value: Any) -> TeamRole:
    try:
        return TeamRole(str(value or "").strip().upper())
    except ValueError:
        return TeamRole.member


def _as_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def _as_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.now(UTC)


def _as_optional_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    return None
