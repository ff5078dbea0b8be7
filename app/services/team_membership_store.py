from __future__ import annotations

import secrets
import string
from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import UTC, datetime
from functools import lru_cache
from threading import RLock
from typing import Any

from app.core.config import Settings
from app.services.standup_models import InvitationStatus, Membership, Team, TeamRole

INVITE_CODE_LENGTH = 8
INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits
_MAX_INVITE_CODE_ATTEMPTS = 10


class TeamMembershipStore(ABC):
    @abstractmethod
    def create_team_with_owner(
        self,
        *,
        name: str,
        description: str | None,
        owner_user_id: str,
    ) -> tuple[Team, Membership]:
        raise NotImplementedError

    @abstractmethod
    def get_team(self, team_id: str) -> Team | None:
        """Return the team even when it is soft-deleted."""
        raise NotImplementedError

    @abstractmethod
    def get_team_by_invite_code(self, invite_code: str) -> Team | None:
        raise NotImplementedError

    @abstractmethod
    def list_teams_by_ids(self, team_ids: list[str]) -> list[Team]:
        raise NotImplementedError

    @abstractmethod
    def update_team(self, team_id: str, *, name: str, description: str | None) -> Team | None:
        raise NotImplementedError

    @abstractmethod
    def mark_team_deleted(self, team_id: str) -> Team | None:
        raise NotImplementedError

    @abstractmethod
    def get_membership(self, team_id: str, user_id: str) -> Membership | None:
        raise NotImplementedError

    @abstractmethod
    def list_memberships_for_user(
        self,
        user_id: str,
        *,
        status: InvitationStatus | None = None,
    ) -> list[Membership]:
        raise NotImplementedError

    @abstractmethod
    def list_memberships_for_team(
        self,
        team_id: str,
        *,
        status: InvitationStatus | None = None,
    ) -> list[Membership]:
        raise NotImplementedError

    @abstractmethod
    def reset_membership_to_pending(
        self,
        *,
        team_id: str,
        user_id: str,
        role: TeamRole,
    ) -> Membership | None:
        """Upsert the row to PENDING unless it is already ACCEPTED (then None)."""
        raise NotImplementedError

    @abstractmethod
    def respond_to_invitation(
        self,
        *,
        team_id: str,
        user_id: str,
        status: InvitationStatus,
    ) -> Membership | None:
        """Move a PENDING row to ``status``; None when no PENDING row exists."""
        raise NotImplementedError

    @abstractmethod
    def join_membership(self, *, team_id: str, user_id: str) -> Membership | None:
        """Create or overwrite a REJECTED row as ACCEPTED; None when a PENDING or ACCEPTED row exists."""
        raise NotImplementedError

    @abstractmethod
    def delete_membership(self, *, team_id: str, user_id: str) -> bool:
        raise NotImplementedError


class InMemoryTeamMembershipStore(TeamMembershipStore):
    def __init__(self) -> None:
        self._lock = RLock()
        self._next_team_id = 1
        self._next_membership_id = 1

        self._teams_by_id: dict[str, dict[str, Any]] = {}
        self._team_id_by_invite_code: dict[str, str] = {}
        self._memberships_by_team_user: dict[tuple[str, str], dict[str, Any]] = {}

    def create_team_with_owner(
        self,
        *,
        name: str,
        description: str | None,
        owner_user_id: str,
    ) -> tuple[Team, Membership]:
        with self._lock:
            now = datetime.now(UTC)
            invite_code = self._generate_unreserved_invite_code()
            team_id = str(self._next_team_id)
            self._next_team_id += 1
            team = {
                "_id": team_id,
                "name": name.strip(),
                "description": _normalize_description(description),
                "owner_user_id": owner_user_id.strip(),
                "invite_code": invite_code,
                "deleted": False,
                "created_at": now,
                "updated_at": now,
            }
            self._teams_by_id[team_id] = team
            # Codes stay reserved after a soft delete; this map is never pruned.
            self._team_id_by_invite_code[invite_code] = team_id
            owner_membership = self._write_membership(
                team_id=team_id,
                user_id=owner_user_id.strip(),
                role=TeamRole.owner,
                status=InvitationStatus.accepted,
                invited_at=now,
                responded_at=now,
            )
            return Team.from_record(team), owner_membership

    def get_team(self, team_id: str) -> Team | None:
        team = self._teams_by_id.get(team_id.strip())
        if not team:
            return None
        return Team.from_record(team)

    def get_team_by_invite_code(self, invite_code: str) -> Team | None:
        team_id = self._team_id_by_invite_code.get(_normalize_invite_code(invite_code))
        if not team_id:
            return None
        team = self.get_team(team_id)
        if not team or team.deleted:
            return None
        return team

    def list_teams_by_ids(self, team_ids: list[str]) -> list[Team]:
        teams: list[Team] = []
        for team_id in team_ids:
            team = self.get_team(team_id)
            if team:
                teams.append(team)
        return teams

    def update_team(self, team_id: str, *, name: str, description: str | None) -> Team | None:
        with self._lock:
            team = self._teams_by_id.get(team_id.strip())
            if not team:
                return None
            team["name"] = name.strip()
            team["description"] = _normalize_description(description)
            team["updated_at"] = datetime.now(UTC)
            return Team.from_record(team)

    def mark_team_deleted(self, team_id: str) -> Team | None:
        with self._lock:
            team = self._teams_by_id.get(team_id.strip())
            if not team:
                return None
            team["deleted"] = True
            team["updated_at"] = datetime.now(UTC)
            return Team.from_record(team)

    def get_membership(self, team_id: str, user_id: str) -> Membership | None:
        membership = self._memberships_by_team_user.get((team_id.strip(), user_id.strip()))
        if not membership:
            return None
        return Membership.from_record(membership)

    def list_memberships_for_user(
        self,
        user_id: str,
        *,
        status: InvitationStatus | None = None,
    ) -> list[Membership]:
        normalized_user_id = user_id.strip()
        with self._lock:
            records = [
                record
                for (_, record_user_id), record in self._memberships_by_team_user.items()
                if record_user_id == normalized_user_id
                and (status is None or record["status"] == status.value)
            ]
        return [Membership.from_record(record) for record in records]

    def list_memberships_for_team(
        self,
        team_id: str,
        *,
        status: InvitationStatus | None = None,
    ) -> list[Membership]:
        normalized_team_id = team_id.strip()
        with self._lock:
            records = [
                record
                for (record_team_id, _), record in self._memberships_by_team_user.items()
                if record_team_id == normalized_team_id
                and (status is None or record["status"] == status.value)
            ]
        return [Membership.from_record(record) for record in records]

    def reset_membership_to_pending(
        self,
        *,
        team_id: str,
        user_id: str,
        role: TeamRole,
    ) -> Membership | None:
        with self._lock:
            existing = self._memberships_by_team_user.get((team_id.strip(), user_id.strip()))
            if existing and existing["status"] == InvitationStatus.accepted.value:
                return None
            return self._write_membership(
                team_id=team_id,
                user_id=user_id,
                role=role,
                status=InvitationStatus.pending,
                invited_at=datetime.now(UTC),
                responded_at=None,
            )

    def respond_to_invitation(
        self,
        *,
        team_id: str,
        user_id: str,
        status: InvitationStatus,
    ) -> Membership | None:
        with self._lock:
            existing = self._memberships_by_team_user.get((team_id.strip(), user_id.strip()))
            if not existing or existing["status"] != InvitationStatus.pending.value:
                return None
            existing["status"] = status.value
            existing["responded_at"] = datetime.now(UTC)
            return Membership.from_record(existing)

    def join_membership(self, *, team_id: str, user_id: str) -> Membership | None:
        with self._lock:
            existing = self._memberships_by_team_user.get((team_id.strip(), user_id.strip()))
            if existing and existing["status"] != InvitationStatus.rejected.value:
                return None
            now = datetime.now(UTC)
            return self._write_membership(
                team_id=team_id,
                user_id=user_id,
                role=TeamRole.member,
                status=InvitationStatus.accepted,
                invited_at=now,
                responded_at=now,
            )

    def delete_membership(self, *, team_id: str, user_id: str) -> bool:
        with self._lock:
            removed = self._memberships_by_team_user.pop((team_id.strip(), user_id.strip()), None)
        return removed is not None

    def _write_membership(
        self,
        *,
        team_id: str,
        user_id: str,
        role: TeamRole,
        status: InvitationStatus,
        invited_at: datetime,
        responded_at: datetime | None,
    ) -> Membership:
        key = (team_id.strip(), user_id.strip())
        record = self._memberships_by_team_user.get(key)
        if record is None:
            record = {"_id": str(self._next_membership_id), "team_id": key[0], "user_id": key[1]}
            self._next_membership_id += 1
            self._memberships_by_team_user[key] = record
        record.update(
            {
                "role": role.value,
                "status": status.value,
                "invited_at": invited_at,
                "responded_at": responded_at,
            },
        )
        return Membership.from_record(record)

    def _generate_unreserved_invite_code(self) -> str:
        for _ in range(_MAX_INVITE_CODE_ATTEMPTS):
            invite_code = generate_invite_code()
            if invite_code not in self._team_id_by_invite_code:
                return invite_code
        raise RuntimeError("Unable to allocate a unique invite code.")


class MongoTeamMembershipStore(TeamMembershipStore):
    def __init__(
        self,
        *,
        uri: str,
        db_name: str,
        teams_collection_name: str,
        memberships_collection_name: str,
        connect_timeout_ms: int = 2000,
    ) -> None:
        from pymongo import MongoClient

        self._client = MongoClient(
            uri,
            serverSelectionTimeoutMS=connect_timeout_ms,
            connectTimeoutMS=connect_timeout_ms,
            tz_aware=True,
        )
        database = self._client[db_name]
        self._teams = database[teams_collection_name]
        self._memberships = database[memberships_collection_name]

        self._teams.create_index("invite_code", unique=True)
        self._teams.create_index("owner_user_id")
        self._memberships.create_index([("team_id", 1), ("user_id", 1)], unique=True)
        self._memberships.create_index([("user_id", 1), ("status", 1)])
        self._memberships.create_index([("team_id", 1), ("status", 1)])

    def create_team_with_owner(
        self,
        *,
        name: str,
        description: str | None,
        owner_user_id: str,
    ) -> tuple[Team, Membership]:
        from pymongo.errors import DuplicateKeyError

        now = datetime.now(UTC)
        team_payload = {
            "name": name.strip(),
            "description": _normalize_description(description),
            "owner_user_id": owner_user_id.strip(),
            "deleted": False,
            "created_at": now,
            "updated_at": now,
        }
        inserted_id = None
        for _ in range(_MAX_INVITE_CODE_ATTEMPTS):
            try:
                inserted_id = self._teams.insert_one(
                    {**team_payload, "invite_code": generate_invite_code()},
                ).inserted_id
                break
            except DuplicateKeyError:
                continue
        if inserted_id is None:
            raise RuntimeError("Unable to allocate a unique invite code.")

        team_id = str(inserted_id)
        try:
            self._memberships.insert_one(
                {
                    "team_id": team_id,
                    "user_id": owner_user_id.strip(),
                    "role": TeamRole.owner.value,
                    "status": InvitationStatus.accepted.value,
                    "invited_at": now,
                    "responded_at": now,
                },
            )
        except Exception:
            # The owner row is part of team creation; undo the team insert.
            self._teams.delete_one({"_id": inserted_id})
            raise

        team = self.get_team(team_id)
        membership = self.get_membership(team_id, owner_user_id)
        if not team or not membership:
            raise RuntimeError("Unable to read created team.")
        return team, membership

    def get_team(self, team_id: str) -> Team | None:
        object_id = _to_object_id(team_id)
        if not object_id:
            return None
        return _to_team(self._teams.find_one({"_id": object_id}))

    def get_team_by_invite_code(self, invite_code: str) -> Team | None:
        record = self._teams.find_one(
            {"invite_code": _normalize_invite_code(invite_code), "deleted": False},
        )
        return _to_team(record)

    def list_teams_by_ids(self, team_ids: list[str]) -> list[Team]:
        object_ids = [object_id for object_id in map(_to_object_id, team_ids) if object_id]
        if not object_ids:
            return []
        by_id = {
            str(record.get("_id")): _to_team(record)
            for record in self._teams.find({"_id": {"$in": object_ids}})
        }
        return [by_id[team_id] for team_id in team_ids if by_id.get(team_id)]

    def update_team(self, team_id: str, *, name: str, description: str | None) -> Team | None:
        return self._update_team_fields(
            team_id,
            {"name": name.strip(), "description": _normalize_description(description)},
        )

    def mark_team_deleted(self, team_id: str) -> Team | None:
        return self._update_team_fields(team_id, {"deleted": True})

    def get_membership(self, team_id: str, user_id: str) -> Membership | None:
        record = self._memberships.find_one({"team_id": team_id.strip(), "user_id": user_id.strip()})
        return _to_membership(record)

    def list_memberships_for_user(
        self,
        user_id: str,
        *,
        status: InvitationStatus | None = None,
    ) -> list[Membership]:
        query: dict[str, Any] = {"user_id": user_id.strip()}
        if status:
            query["status"] = status.value
        return [_to_membership(record) for record in self._memberships.find(query)]

    def list_memberships_for_team(
        self,
        team_id: str,
        *,
        status: InvitationStatus | None = None,
    ) -> list[Membership]:
        query: dict[str, Any] = {"team_id": team_id.strip()}
        if status:
            query["status"] = status.value
        return [_to_membership(record) for record in self._memberships.find(query)]

    def reset_membership_to_pending(
        self,
        *,
        team_id: str,
        user_id: str,
        role: TeamRole,
    ) -> Membership | None:
        return self._conditional_upsert(
            team_id=team_id,
            user_id=user_id,
            allowed_statuses=[InvitationStatus.pending, InvitationStatus.rejected],
            values={
                "role": role.value,
                "status": InvitationStatus.pending.value,
                "invited_at": datetime.now(UTC),
                "responded_at": None,
            },
        )

    def respond_to_invitation(
        self,
        *,
        team_id: str,
        user_id: str,
        status: InvitationStatus,
    ) -> Membership | None:
        from pymongo import ReturnDocument

        record = self._memberships.find_one_and_update(
            {
                "team_id": team_id.strip(),
                "user_id": user_id.strip(),
                "status": InvitationStatus.pending.value,
            },
            {"$set": {"status": status.value, "responded_at": datetime.now(UTC)}},
            return_document=ReturnDocument.AFTER,
        )
        return _to_membership(record)

    def join_membership(self, *, team_id: str, user_id: str) -> Membership | None:
        now = datetime.now(UTC)
        return self._conditional_upsert(
            team_id=team_id,
            user_id=user_id,
            allowed_statuses=[InvitationStatus.rejected],
            values={
                "role": TeamRole.member.value,
                "status": InvitationStatus.accepted.value,
                "invited_at": now,
                "responded_at": now,
            },
        )

    def delete_membership(self, *, team_id: str, user_id: str) -> bool:
        result = self._memberships.delete_one({"team_id": team_id.strip(), "user_id": user_id.strip()})
        return result.deleted_count > 0

    def _conditional_upsert(
        self,
        *,
        team_id: str,
        user_id: str,
        allowed_statuses: list[InvitationStatus],
        values: Mapping[str, Any],
    ) -> Membership | None:
        from pymongo import ReturnDocument
        from pymongo.errors import DuplicateKeyError

        # When a row exists in a status outside ``allowed_statuses`` the filter
        # misses, the upsert collides with the unique (team_id, user_id) index
        # and the write is rejected as a whole.
        try:
            record = self._memberships.find_one_and_update(
                {
                    "team_id": team_id.strip(),
                    "user_id": user_id.strip(),
                    "status": {"$in": [status.value for status in allowed_statuses]},
                },
                {"$set": dict(values)},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError:
            return None
        return _to_membership(record)

    def _update_team_fields(self, team_id: str, values: Mapping[str, Any]) -> Team | None:
        from pymongo import ReturnDocument

        object_id = _to_object_id(team_id)
        if not object_id:
            return None
        record = self._teams.find_one_and_update(
            {"_id": object_id},
            {"$set": {**values, "updated_at": datetime.now(UTC)}},
            return_document=ReturnDocument.AFTER,
        )
        return _to_team(record)


def generate_invite_code() -> str:
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(INVITE_CODE_LENGTH))


def _normalize_invite_code(invite_code: str) -> str:
    return invite_code.strip().upper()


def _normalize_description(description: str | None) -> str | None:
    if description is None:
        return None
    return description.strip() or None


def _to_object_id(record_id: str) -> Any | None:
    from bson import ObjectId
    from bson.errors import InvalidId

    try:
        return ObjectId(record_id)
    except (InvalidId, TypeError):
        return None


def _serialize_record(record: Mapping[str, Any] | None) -> dict[str, Any] | None:
    if not record:
        return None
    payload = dict(record)
    payload["_id"] = str(record.get("_id", ""))
    return payload


def _to_team(record: Mapping[str, Any] | None) -> Team | None:
    serialized = _serialize_record(record)
    if not serialized:
        return None
    return Team.from_record(serialized)


def _to_membership(record: Mapping[str, Any] | None) -> Membership | None:
    serialized = _serialize_record(record)
    if not serialized:
        return None
    return Membership.from_record(serialized)


def create_team_membership_store(settings: Settings) -> TeamMembershipStore:
    return _create_team_membership_store_cached(
        user_data_store=settings.user_data_store,
        mongodb_uri=settings.mongodb_uri,
        mongodb_db_name=settings.mongodb_db_name,
        mongodb_teams_collection=settings.mongodb_teams_collection,
        mongodb_team_memberships_collection=settings.mongodb_team_memberships_collection,
        mongodb_connect_timeout_ms=settings.mongodb_connect_timeout_ms,
    )


@lru_cache
def _create_team_membership_store_cached(
    *,
    user_data_store: str,
    mongodb_uri: str,
    mongodb_db_name: str,
    mongodb_teams_collection: str,
    mongodb_team_memberships_collection: str,
    mongodb_connect_timeout_ms: int,
) -> TeamMembershipStore:
    if user_data_store == "mongodb":
        return MongoTeamMembershipStore(
            uri=mongodb_uri,
            db_name=mongodb_db_name,
            teams_collection_name=mongodb_teams_collection,
            memberships_collection_name=mongodb_team_memberships_collection,
            connect_timeout_ms=mongodb_connect_timeout_ms,
        )

    return InMemoryTeamMembershipStore()


def clear_team_membership_store_cache() -> None:
    _create_team_membership_store_cached.cache_clear()
