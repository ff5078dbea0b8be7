from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import UTC, datetime
from functools import lru_cache
from threading import Lock
from typing import Any

from app.core.config import Settings
from app.services.standup_models import UserAccount


class UserStore(ABC):
    @abstractmethod
    def get_user_by_id(self, user_id: str) -> UserAccount | None:
        raise NotImplementedError

    @abstractmethod
    def get_user_by_email(self, email: str) -> UserAccount | None:
        raise NotImplementedError

    @abstractmethod
    def get_user_by_verification_token(self, token: str) -> UserAccount | None:
        raise NotImplementedError

    @abstractmethod
    def list_users_by_ids(self, user_ids: list[str]) -> list[UserAccount]:
        raise NotImplementedError

    @abstractmethod
    def create_user(
        self,
        *,
        email: str,
        name: str,
        password_hash: str,
        verified: bool = True,
        verification_token: str | None = None,
        verification_expires_at: datetime | None = None,
    ) -> UserAccount:
        raise NotImplementedError

    @abstractmethod
    def set_verification_state(
        self,
        user_id: str,
        *,
        verified: bool,
        verification_token: str | None,
        verification_expires_at: datetime | None,
    ) -> UserAccount | None:
        raise NotImplementedError

    @abstractmethod
    def get_user_by_password_reset_token(self, token: str) -> UserAccount | None:
        raise NotImplementedError

    @abstractmethod
    def set_password_reset_token(
        self,
        user_id: str,
        *,
        token: str | None,
        expires_at: datetime | None,
    ) -> UserAccount | None:
        raise NotImplementedError

    @abstractmethod
    def update_password(self, user_id: str, password_hash: str) -> UserAccount | None:
        """Store the new hash and consume any outstanding reset token."""
        raise NotImplementedError

    @abstractmethod
    def update_name(self, user_id: str, name: str) -> UserAccount | None:
        raise NotImplementedError


class InMemoryUserStore(UserStore):
    def __init__(self) -> None:
        self._lock = Lock()
        self._next_id = 1
        self._users_by_id: dict[str, dict[str, Any]] = {}
        self._user_id_by_email: dict[str, str] = {}

    def get_user_by_id(self, user_id: str) -> UserAccount | None:
        user = self._users_by_id.get(user_id)
        if not user:
            return None
        return UserAccount.from_record(user)

    def get_user_by_email(self, email: str) -> UserAccount | None:
        user_id = self._user_id_by_email.get(_normalize_email(email))
        if not user_id:
            return None
        return self.get_user_by_id(user_id)

    def get_user_by_verification_token(self, token: str) -> UserAccount | None:
        normalized_token = token.strip()
        if not normalized_token:
            return None
        for user in self._users_by_id.values():
            if user.get("verification_token") == normalized_token:
                return UserAccount.from_record(user)
        return None

    def list_users_by_ids(self, user_ids: list[str]) -> list[UserAccount]:
        users: list[UserAccount] = []
        for user_id in user_ids:
            user = self.get_user_by_id(user_id)
            if user:
                users.append(user)
        return users

    def create_user(
        self,
        *,
        email: str,
        name: str,
        password_hash: str,
        verified: bool = True,
        verification_token: str | None = None,
        verification_expires_at: datetime | None = None,
    ) -> UserAccount:
        normalized_email = _normalize_email(email)
        with self._lock:
            if normalized_email in self._user_id_by_email:
                raise ValueError("email_already_exists")

            user_id = str(self._next_id)
            self._next_id += 1
            now = datetime.now(UTC)
            user = {
                "_id": user_id,
                "email": normalized_email,
                "name": name.strip(),
                "password_hash": password_hash,
                "verified": verified,
                "verification_token": verification_token,
                "verification_expires_at": verification_expires_at,
                "created_at": now,
                "updated_at": now,
            }
            self._users_by_id[user_id] = user
            self._user_id_by_email[normalized_email] = user_id
        return UserAccount.from_record(user)

    def set_verification_state(
        self,
        user_id: str,
        *,
        verified: bool,
        verification_token: str | None,
        verification_expires_at: datetime | None,
    ) -> UserAccount | None:
        with self._lock:
            user = self._users_by_id.get(user_id)
            if not user:
                return None
            user["verified"] = verified
            user["verification_token"] = verification_token
            user["verification_expires_at"] = verification_expires_at
            user["updated_at"] = datetime.now(UTC)
            return UserAccount.from_record(user)

    def get_user_by_password_reset_token(self, token: str) -> UserAccount | None:
        normalized_token = token.strip()
        if not normalized_token:
            return None
        with self._lock:
            for user in self._users_by_id.values():
                if user.get("password_reset_token") == normalized_token:
                    return UserAccount.from_record(user)
        return None

    def set_password_reset_token(
        self,
        user_id: str,
        *,
        token: str | None,
        expires_at: datetime | None,
    ) -> UserAccount | None:
        return self._update(user_id, password_reset_token=token, password_reset_expires_at=expires_at)

    def update_password(self, user_id: str, password_hash: str) -> UserAccount | None:
        return self._update(
            user_id,
            password_hash=password_hash,
            password_reset_token=None,
            password_reset_expires_at=None,
        )

    def update_name(self, user_id: str, name: str) -> UserAccount | None:
        return self._update(user_id, name=name.strip())

    def _update(self, user_id: str, **fields: Any) -> UserAccount | None:
        with self._lock:
            user = self._users_by_id.get(user_id)
            if not user:
                return None
            user.update(fields, updated_at=datetime.now(UTC))
            return UserAccount.from_record(user)


class MongoUserStore(UserStore):
    def __init__(
        self,
        *,
        uri: str,
        db_name: str,
        users_collection_name: str,
        connect_timeout_ms: int = 2000,
    ) -> None:
        from pymongo import MongoClient

        self._client = MongoClient(
            uri,
            serverSelectionTimeoutMS=connect_timeout_ms,
            connectTimeoutMS=connect_timeout_ms,
            tz_aware=True,
        )
        self._users = self._client[db_name][users_collection_name]

        self._users.create_index("email", unique=True)
        self._users.create_index(
            "verification_token",
            partialFilterExpression={"verification_token": {"$type": "string"}},
        )
        self._users.create_index(
            "password_reset_token",
            partialFilterExpression={"password_reset_token": {"$type": "string"}},
        )

    def get_user_by_id(self, user_id: str) -> UserAccount | None:
        object_id = _to_object_id(user_id)
        if not object_id:
            return None
        return _to_user(self._users.find_one({"_id": object_id}))

    def get_user_by_email(self, email: str) -> UserAccount | None:
        return _to_user(self._users.find_one({"email": _normalize_email(email)}))

    def get_user_by_verification_token(self, token: str) -> UserAccount | None:
        normalized_token = token.strip()
        if not normalized_token:
            return None
        return _to_user(self._users.find_one({"verification_token": normalized_token}))

    def list_users_by_ids(self, user_ids: list[str]) -> list[UserAccount]:
        object_ids = [object_id for object_id in map(_to_object_id, user_ids) if object_id]
        if not object_ids:
            return []
        by_id = {
            str(record.get("_id")): _to_user(record)
            for record in self._users.find({"_id": {"$in": object_ids}})
        }
        return [by_id[user_id] for user_id in user_ids if by_id.get(user_id)]

    def create_user(
        self,
        *,
        email: str,
        name: str,
        password_hash: str,
        verified: bool = True,
        verification_token: str | None = None,
        verification_expires_at: datetime | None = None,
    ) -> UserAccount:
        from pymongo.errors import DuplicateKeyError

        now = datetime.now(UTC)
        payload = {
            "email": _normalize_email(email),
            "name": name.strip(),
            "password_hash": password_hash,
            "verified": verified,
            "verification_token": verification_token,
            "verification_expires_at": verification_expires_at,
            "created_at": now,
            "updated_at": now,
        }
        try:
            insert_result = self._users.insert_one(payload)
        except DuplicateKeyError as exc:
            raise ValueError("email_already_exists") from exc
        created = _to_user(self._users.find_one({"_id": insert_result.inserted_id}))
        if not created:
            raise RuntimeError("Unable to read created user.")
        return created

    def set_verification_state(
        self,
        user_id: str,
        *,
        verified: bool,
        verification_token: str | None,
        verification_expires_at: datetime | None,
    ) -> UserAccount | None:
        from pymongo import ReturnDocument

        object_id = _to_object_id(user_id)
        if not object_id:
            return None
        record = self._users.find_one_and_update(
            {"_id": object_id},
            {
                "$set": {
                    "verified": verified,
                    "verification_token": verification_token,
                    "verification_expires_at": verification_expires_at,
                    "updated_at": datetime.now(UTC),
                },
            },
            return_document=ReturnDocument.AFTER,
        )
        return _to_user(record)

    def get_user_by_password_reset_token(self, token: str) -> UserAccount | None:
        normalized_token = token.strip()
        if not normalized_token:
            return None
        return _to_user(self._users.find_one({"password_reset_token": normalized_token}))

    def set_password_reset_token(
        self,
        user_id: str,
        *,
        token: str | None,
        expires_at: datetime | None,
    ) -> UserAccount | None:
        return self._update(user_id, password_reset_token=token, password_reset_expires_at=expires_at)

    def update_password(self, user_id: str, password_hash: str) -> UserAccount | None:
        return self._update(
            user_id,
            password_hash=password_hash,
            password_reset_token=None,
            password_reset_expires_at=None,
        )

    def update_name(self, user_id: str, name: str) -> UserAccount | None:
        return self._update(user_id, name=name.strip())

    def _update(self, user_id: str, **fields: Any) -> UserAccount | None:
        from pymongo import ReturnDocument

        object_id = _to_object_id(user_id)
        if not object_id:
            return None
        record = self._users.find_one_and_update(
            {"_id": object_id},
            {"$set": {**fields, "updated_at": datetime.now(UTC)}},
            return_document=ReturnDocument.AFTER,
        )
        return _to_user(record)


def _to_user(record: Mapping[str, Any] | None) -> UserAccount | None:
    if not record:
        return None
    serialized = dict(record)
    serialized["_id"] = str(record.get("_id", ""))
    return UserAccount.from_record(serialized)


def _to_object_id(record_id: str) -> Any | None:
    from bson import ObjectId
    from bson.errors import InvalidId

    try:
        return ObjectId(record_id)
    except (InvalidId, TypeError):
        return None


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def create_user_store(settings: Settings) -> UserStore:
    return _create_user_store_cached(
        user_data_store=settings.user_data_store,
        mongodb_uri=settings.mongodb_uri,
        mongodb_db_name=settings.mongodb_db_name,
        mongodb_users_collection=settings.mongodb_users_collection,
        mongodb_connect_timeout_ms=settings.mongodb_connect_timeout_ms,
    )


@lru_cache
def _create_user_store_cached(
    *,
    user_data_store: str,
    mongodb_uri: str,
    mongodb_db_name: str,
    mongodb_users_collection: str,
    mongodb_connect_timeout_ms: int,
) -> UserStore:
    if user_data_store == "mongodb":
        return MongoUserStore(
            uri=mongodb_uri,
            db_name=mongodb_db_name,
            users_collection_name=mongodb_users_collection,
            connect_timeout_ms=mongodb_connect_timeout_ms,
        )

    return InMemoryUserStore()


def clear_user_store_cache() -> None:
    _create_user_store_cached.cache_clear()
