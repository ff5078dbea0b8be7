from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import UTC, date, datetime
from functools import lru_cache
from threading import Lock
from typing import Any

from app.core.config import Settings
from app.services.standup_models import DuplicateRecordError, StandupSummary, WeeklySummary, date_key


class SummaryStore(ABC):
    @abstractmethod
    def replace_daily_summary(
        self,
        *,
        team_id: str,
        summary_date: date,
        summary_text: str,
        generated_by_ai: bool,
    ) -> StandupSummary:
        """Drop any summary for (team, date) and store this one in a single step."""
        raise NotImplementedError

    @abstractmethod
    def get_daily_summary(self, team_id: str, summary_date: date) -> StandupSummary | None:
        raise NotImplementedError

    @abstractmethod
    def list_daily_summaries(self, team_id: str, start_date: date, end_date: date) -> list[StandupSummary]:
        raise NotImplementedError

    @abstractmethod
    def create_weekly_summary(
        self,
        *,
        team_id: str,
        week_start_date: date,
        week_end_date: date,
        summary_text: str,
        sent_to_owner: bool,
    ) -> WeeklySummary:
        """Insert a weekly digest; raises DuplicateRecordError when the week already has one."""
        raise NotImplementedError

    @abstractmethod
    def mark_weekly_summary_sent(self, summary_id: str) -> WeeklySummary | None:
        raise NotImplementedError

    @abstractmethod
    def get_weekly_summary(self, team_id: str, week_start_date: date) -> WeeklySummary | None:
        raise NotImplementedError

    @abstractmethod
    def list_weekly_summaries(self, team_id: str) -> list[WeeklySummary]:
        """Newest week first."""
        raise NotImplementedError


class InMemorySummaryStore(SummaryStore):
    def __init__(self) -> None:
        self._lock = Lock()
        self._next_daily_id = 1
        self._next_weekly_id = 1
        self._daily_by_key: dict[tuple[str, str], dict[str, Any]] = {}
        self._weekly_by_key: dict[tuple[str, str], dict[str, Any]] = {}

    def replace_daily_summary(
        self,
        *,
        team_id: str,
        summary_date: date,
        summary_text: str,
        generated_by_ai: bool,
    ) -> StandupSummary:
        key = (team_id.strip(), date_key(summary_date))
        with self._lock:
            record = {
                "_id": str(self._next_daily_id),
                "team_id": key[0],
                "date": key[1],
                "summary_text": summary_text,
                "generated_by_ai": generated_by_ai,
                "created_at": datetime.now(UTC),
            }
            self._next_daily_id += 1
            self._daily_by_key[key] = record
        return StandupSummary.from_record(record)

    def get_daily_summary(self, team_id: str, summary_date: date) -> StandupSummary | None:
        record = self._daily_by_key.get((team_id.strip(), date_key(summary_date)))
        if not record:
            return None
        return StandupSummary.from_record(record)

    def list_daily_summaries(self, team_id: str, start_date: date, end_date: date) -> list[StandupSummary]:
        normalized_team_id = team_id.strip()
        start_key = date_key(start_date)
        end_key = date_key(end_date)
        with self._lock:
            records = [
                record
                for (record_team_id, day), record in self._daily_by_key.items()
                if record_team_id == normalized_team_id and start_key <= day <= end_key
            ]
        records.sort(key=lambda record: record["date"])
        return [StandupSummary.from_record(record) for record in records]

    def create_weekly_summary(
        self,
        *,
        team_id: str,
        week_start_date: date,
        week_end_date: date,
        summary_text: str,
        sent_to_owner: bool,
    ) -> WeeklySummary:
        key = (team_id.strip(), date_key(week_start_date))
        with self._lock:
            if key in self._weekly_by_key:
                raise DuplicateRecordError("weekly_summary_already_exists")
            record = {
                "_id": str(self._next_weekly_id),
                "team_id": key[0],
                "week_start_date": key[1],
                "week_end_date": date_key(week_end_date),
                "summary_text": summary_text,
                "sent_to_owner": sent_to_owner,
                "created_at": datetime.now(UTC),
            }
            self._next_weekly_id += 1
            self._weekly_by_key[key] = record
        return WeeklySummary.from_record(record)

    def mark_weekly_summary_sent(self, summary_id: str) -> WeeklySummary | None:
        with self._lock:
            for record in self._weekly_by_key.values():
                if record["_id"] == summary_id.strip():
                    record["sent_to_owner"] = True
                    return WeeklySummary.from_record(record)
        return None

    def get_weekly_summary(self, team_id: str, week_start_date: date) -> WeeklySummary | None:
        record = self._weekly_by_key.get((team_id.strip(), date_key(week_start_date)))
        if not record:
            return None
        return WeeklySummary.from_record(record)

    def list_weekly_summaries(self, team_id: str) -> list[WeeklySummary]:
        normalized_team_id = team_id.strip()
        with self._lock:
            records = [
                record
                for (record_team_id, _), record in self._weekly_by_key.items()
                if record_team_id == normalized_team_id
            ]
        records.sort(key=lambda record: record["week_start_date"], reverse=True)
        return [WeeklySummary.from_record(record) for record in records]


class MongoSummaryStore(SummaryStore):
    def __init__(
        self,
        *,
        uri: str,
        db_name: str,
        daily_collection_name: str,
        weekly_collection_name: str,
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
        self._daily = database[daily_collection_name]
        self._weekly = database[weekly_collection_name]

        self._daily.create_index([("team_id", 1), ("date", 1)], unique=True)
        self._weekly.create_index([("team_id", 1), ("week_start_date", 1)], unique=True)

    def replace_daily_summary(
        self,
        *,
        team_id: str,
        summary_date: date,
        summary_text: str,
        generated_by_ai: bool,
    ) -> StandupSummary:
        from pymongo import ReturnDocument

        query = {"team_id": team_id.strip(), "date": date_key(summary_date)}
        record = self._daily.find_one_and_replace(
            query,
            {
                **query,
                "summary_text": summary_text,
                "generated_by_ai": generated_by_ai,
                "created_at": datetime.now(UTC),
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        summary = _to_daily(record)
        if not summary:
            raise RuntimeError("Unable to read stored summary.")
        return summary

    def get_daily_summary(self, team_id: str, summary_date: date) -> StandupSummary | None:
        return _to_daily(self._daily.find_one({"team_id": team_id.strip(), "date": date_key(summary_date)}))

    def list_daily_summaries(self, team_id: str, start_date: date, end_date: date) -> list[StandupSummary]:
        records = self._daily.find(
            {
                "team_id": team_id.strip(),
                "date": {"$gte": date_key(start_date), "$lte": date_key(end_date)},
            },
        ).sort("date", 1)
        return [_to_daily(record) for record in records]

    def create_weekly_summary(
        self,
        *,
        team_id: str,
        week_start_date: date,
        week_end_date: date,
        summary_text: str,
        sent_to_owner: bool,
    ) -> WeeklySummary:
        from pymongo.errors import DuplicateKeyError

        payload = {
            "team_id": team_id.strip(),
            "week_start_date": date_key(week_start_date),
            "week_end_date": date_key(week_end_date),
            "summary_text": summary_text,
            "sent_to_owner": sent_to_owner,
            "created_at": datetime.now(UTC),
        }
        try:
            insert_result = self._weekly.insert_one(payload)
        except DuplicateKeyError as exc:
            raise DuplicateRecordError("weekly_summary_already_exists") from exc
        created = _to_weekly(self._weekly.find_one({"_id": insert_result.inserted_id}))
        if not created:
            raise RuntimeError("Unable to read created weekly summary.")
        return created

    def mark_weekly_summary_sent(self, summary_id: str) -> WeeklySummary | None:
        from pymongo import ReturnDocument

        object_id = _to_object_id(summary_id)
        if object_id is None:
            return None
        record = self._weekly.find_one_and_update(
            {"_id": object_id},
            {"$set": {"sent_to_owner": True}},
            return_document=ReturnDocument.AFTER,
        )
        return _to_weekly(record)

    def get_weekly_summary(self, team_id: str, week_start_date: date) -> WeeklySummary | None:
        record = self._weekly.find_one(
            {"team_id": team_id.strip(), "week_start_date": date_key(week_start_date)},
        )
        return _to_weekly(record)

    def list_weekly_summaries(self, team_id: str) -> list[WeeklySummary]:
        records = self._weekly.find({"team_id": team_id.strip()}).sort("week_start_date", -1)
        return [_to_weekly(record) for record in records]


def _serialize_record(record: Mapping[str, Any] | None) -> dict[str, Any] | None:
    if not record:
        return None
    payload = dict(record)
    payload["_id"] = str(record.get("_id", ""))
    return payload


def _to_object_id(record_id: str) -> Any | None:
    from bson import ObjectId
    from bson.errors import InvalidId

    try:
        return ObjectId(record_id.strip())
    except (InvalidId, TypeError):
        return None


def _to_daily(record: Mapping[str, Any] | None) -> StandupSummary | None:
    serialized = _serialize_record(record)
    if not serialized:
        return None
    return StandupSummary.from_record(serialized)


def _to_weekly(record: Mapping[str, Any] | None) -> WeeklySummary | None:
    serialized = _serialize_record(record)
    if not serialized:
        return None
    return WeeklySummary.from_record(serialized)


def create_summary_store(settings: Settings) -> SummaryStore:
    return _create_summary_store_cached(
        user_data_store=settings.user_data_store,
        mongodb_uri=settings.mongodb_uri,
        mongodb_db_name=settings.mongodb_db_name,
        mongodb_standup_summaries_collection=settings.mongodb_standup_summaries_collection,
        mongodb_weekly_summaries_collection=settings.mongodb_weekly_summaries_collection,
        mongodb_connect_timeout_ms=settings.mongodb_connect_timeout_ms,
    )


@lru_cache
def _create_summary_store_cached(
    *,
    user_data_store: str,
    mongodb_uri: str,
    mongodb_db_name: str,
    mongodb_standup_summaries_collection: str,
    mongodb_weekly_summaries_collection: str,
    mongodb_connect_timeout_ms: int,
) -> SummaryStore:
    if user_data_store == "mongodb":
        return MongoSummaryStore(
            uri=mongodb_uri,
            db_name=mongodb_db_name,
            daily_collection_name=mongodb_standup_summaries_collection,
            weekly_collection_name=mongodb_weekly_summaries_collection,
            connect_timeout_ms=mongodb_connect_timeout_ms,
        )

    return InMemorySummaryStore()


def clear_summary_store_cache() -> None:
    _create_summary_store_cached.cache_clear()
