from __future__ import annotations

from abc import ABC, abstractmethod
from collections import Counter
from collections.abc import Mapping
from datetime import UTC, date, datetime
from functools import lru_cache
from threading import Lock
from typing import Any

from app.core.config import Settings
from app.services.standup_models import DuplicateRecordError, Standup, date_key


class StandupStore(ABC):
    @abstractmethod
    def create_standup(
        self,
        *,
        team_id: str,
        user_id: str,
        standup_date: date,
        yesterday_text: str,
        today_text: str,
        blockers_text: str | None,
    ) -> Standup:
        """Insert a standup; raises DuplicateRecordError for a second (team, user, date)."""
        raise NotImplementedError

    @abstractmethod
    def get_standup(self, standup_id: str) -> Standup | None:
        raise NotImplementedError

    @abstractmethod
    def find_standup(self, *, team_id: str, user_id: str, standup_date: date) -> Standup | None:
        raise NotImplementedError

    @abstractmethod
    def list_by_team_and_date(self, team_id: str, standup_date: date) -> list[Standup]:
        raise NotImplementedError

    @abstractmethod
    def list_by_team_and_date_range(self, team_id: str, start_date: date, end_date: date) -> list[Standup]:
        raise NotImplementedError

    @abstractmethod
    def update_standup(
        self,
        standup_id: str,
        *,
        yesterday_text: str,
        today_text: str,
        blockers_text: str | None,
    ) -> Standup | None:
        raise NotImplementedError

    @abstractmethod
    def delete_standup(self, standup_id: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def count_daily_standups(self, team_id: str, since: date) -> list[tuple[date, int]]:
        """Per-day standup counts from ``since`` (inclusive), ascending, zero days omitted."""
        raise NotImplementedError


class InMemoryStandupStore(StandupStore):
    def __init__(self) -> None:
        self._lock = Lock()
        self._next_id = 1
        self._standups_by_id: dict[str, dict[str, Any]] = {}
        self._standup_id_by_key: dict[tuple[str, str, str], str] = {}

    def create_standup(
        self,
        *,
        team_id: str,
        user_id: str,
        standup_date: date,
        yesterday_text: str,
        today_text: str,
        blockers_text: str | None,
    ) -> Standup:
        key = (team_id.strip(), user_id.strip(), date_key(standup_date))
        with self._lock:
            if key in self._standup_id_by_key:
                raise DuplicateRecordError("standup_already_exists")
            standup_id = str(self._next_id)
            self._next_id += 1
            now = datetime.now(UTC)
            record = {
                "_id": standup_id,
                "team_id": key[0],
                "user_id": key[1],
                "date": key[2],
                "yesterday_text": yesterday_text,
                "today_text": today_text,
                "blockers_text": blockers_text,
                "created_at": now,
                "updated_at": now,
            }
            self._standups_by_id[standup_id] = record
            self._standup_id_by_key[key] = standup_id
        return Standup.from_record(record)

    def get_standup(self, standup_id: str) -> Standup | None:
        record = self._standups_by_id.get(standup_id.strip())
        if not record:
            return None
        return Standup.from_record(record)

    def find_standup(self, *, team_id: str, user_id: str, standup_date: date) -> Standup | None:
        standup_id = self._standup_id_by_key.get((team_id.strip(), user_id.strip(), date_key(standup_date)))
        if not standup_id:
            return None
        return self.get_standup(standup_id)

    def list_by_team_and_date(self, team_id: str, standup_date: date) -> list[Standup]:
        return self.list_by_team_and_date_range(team_id, standup_date, standup_date)

    def list_by_team_and_date_range(self, team_id: str, start_date: date, end_date: date) -> list[Standup]:
        normalized_team_id = team_id.strip()
        start_key = date_key(start_date)
        end_key = date_key(end_date)
        with self._lock:
            records = [
                record
                for record in self._standups_by_id.values()
                if record["team_id"] == normalized_team_id and start_key <= record["date"] <= end_key
            ]
        records.sort(key=lambda record: (record["date"], record["created_at"]))
        return [Standup.from_record(record) for record in records]

    def update_standup(
        self,
        standup_id: str,
        *,
        yesterday_text: str,
        today_text: str,
        blockers_text: str | None,
    ) -> Standup | None:
        with self._lock:
            record = self._standups_by_id.get(standup_id.strip())
            if not record:
                return None
            record["yesterday_text"] = yesterday_text
            record["today_text"] = today_text
            record["blockers_text"] = blockers_text
            record["updated_at"] = datetime.now(UTC)
            return Standup.from_record(record)

    def delete_standup(self, standup_id: str) -> bool:
        with self._lock:
            record = self._standups_by_id.pop(standup_id.strip(), None)
            if not record:
                return False
            self._standup_id_by_key.pop((record["team_id"], record["user_id"], record["date"]), None)
        return True

    def count_daily_standups(self, team_id: str, since: date) -> list[tuple[date, int]]:
        normalized_team_id = team_id.strip()
        since_key = date_key(since)
        with self._lock:
            counts = Counter(
                record["date"]
                for record in self._standups_by_id.values()
                if record["team_id"] == normalized_team_id and record["date"] >= since_key
            )
        return [(date.fromisoformat(day), count) for day, count in sorted(counts.items())]


class MongoStandupStore(StandupStore):
    def __init__(
        self,
        *,
        uri: str,
        db_name: str,
        standups_collection_name: str,
        connect_timeout_ms: int = 2000,
    ) -> None:
        from pymongo import MongoClient

        self._client = MongoClient(
            uri,
            serverSelectionTimeoutMS=connect_timeout_ms,
            connectTimeoutMS=connect_timeout_ms,
            tz_aware=True,
        )
        self._standups = self._client[db_name][standups_collection_name]

        self._standups.create_index([("team_id", 1), ("user_id", 1), ("date", 1)], unique=True)
        self._standups.create_index([("team_id", 1), ("date", 1)])

    def create_standup(
        self,
        *,
        team_id: str,
        user_id: str,
        standup_date: date,
        yesterday_text: str,
        today_text: str,
        blockers_text: str | None,
    ) -> Standup:
        from pymongo.errors import DuplicateKeyError

        now = datetime.now(UTC)
        payload = {
            "team_id": team_id.strip(),
            "user_id": user_id.strip(),
            "date": date_key(standup_date),
            "yesterday_text": yesterday_text,
            "today_text": today_text,
            "blockers_text": blockers_text,
            "created_at": now,
            "updated_at": now,
        }
        try:
            insert_result = self._standups.insert_one(payload)
        except DuplicateKeyError as exc:
            raise DuplicateRecordError("standup_already_exists") from exc
        created = _to_standup(self._standups.find_one({"_id": insert_result.inserted_id}))
        if not created:
            raise RuntimeError("Unable to read created standup.")
        return created

    def get_standup(self, standup_id: str) -> Standup | None:
        object_id = _to_object_id(standup_id)
        if not object_id:
            return None
        return _to_standup(self._standups.find_one({"_id": object_id}))

    def find_standup(self, *, team_id: str, user_id: str, standup_date: date) -> Standup | None:
        record = self._standups.find_one(
            {"team_id": team_id.strip(), "user_id": user_id.strip(), "date": date_key(standup_date)},
        )
        return _to_standup(record)

    def list_by_team_and_date(self, team_id: str, standup_date: date) -> list[Standup]:
        return self.list_by_team_and_date_range(team_id, standup_date, standup_date)

    def list_by_team_and_date_range(self, team_id: str, start_date: date, end_date: date) -> list[Standup]:
        records = self._standups.find(
            {
                "team_id": team_id.strip(),
                "date": {"$gte": date_key(start_date), "$lte": date_key(end_date)},
            },
        ).sort([("date", 1), ("created_at", 1)])
        return [_to_standup(record) for record in records]

    def update_standup(
        self,
        standup_id: str,
        *,
        yesterday_text: str,
        today_text: str,
        blockers_text: str | None,
    ) -> Standup | None:
        from pymongo import ReturnDocument

        object_id = _to_object_id(standup_id)
        if not object_id:
            return None
        record = self._standups.find_one_and_update(
            {"_id": object_id},
            {
                "$set": {
                    "yesterday_text": yesterday_text,
                    "today_text": today_text,
                    "blockers_text": blockers_text,
                    "updated_at": datetime.now(UTC),
                },
            },
            return_document=ReturnDocument.AFTER,
        )
        return _to_standup(record)

    def delete_standup(self, standup_id: str) -> bool:
        object_id = _to_object_id(standup_id)
        if not object_id:
            return False
        return self._standups.delete_one({"_id": object_id}).deleted_count > 0

    def count_daily_standups(self, team_id: str, since: date) -> list[tuple[date, int]]:
        pipeline = [
            {"$match": {"team_id": team_id.strip(), "date": {"$gte": date_key(since)}}},
            {"$group": {"_id": "$date", "count": {"$sum": 1}}},
            {"$sort": {"_id": 1}},
        ]
        return [
            (date.fromisoformat(str(row["_id"])), int(row["count"]))
            for row in self._standups.aggregate(pipeline)
        ]


def _to_object_id(record_id: str) -> Any | None:
    from bson import ObjectId
    from bson.errors import InvalidId

    try:
        return ObjectId(record_id)
    except (InvalidId, TypeError):
        return None


def _to_standup(record: Mapping[str, Any] | None) -> Standup | None:
    if not record:
        return None
    payload = dict(record)
    payload["_id"] = str(record.get("_id", ""))
    return Standup.from_record(payload)


def create_standup_store(settings: Settings) -> StandupStore:
    return _create_standup_store_cached(
        user_data_store=settings.user_data_store,
        mongodb_uri=settings.mongodb_uri,
        mongodb_db_name=settings.mongodb_db_name,
        mongodb_standups_collection=settings.mongodb_standups_collection,
        mongodb_connect_timeout_ms=settings.mongodb_connect_timeout_ms,
    )


@lru_cache
def _create_standup_store_cached(
    *,
    user_data_store: str,
    mongodb_uri: str,
    mongodb_db_name: str,
    mongodb_standups_collection: str,
    mongodb_connect_timeout_ms: int,
) -> StandupStore:
    if user_data_store == "mongodb":
        return MongoStandupStore(
            uri=mongodb_uri,
            db_name=mongodb_db_name,
            standups_collection_name=mongodb_standups_collection,
            connect_timeout_ms=mongodb_connect_timeout_ms,
        )

    return InMemoryStandupStore()


def clear_standup_store_cache() -> None:
    _create_standup_store_cached.cache_clear()
