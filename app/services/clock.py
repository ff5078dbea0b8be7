from collections.abc import Callable
from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.core.config import Settings

TodayProvider = Callable[[], date]


def local_today(timezone_name: str) -> date:
    try:
        zone = ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError):
        return datetime.now(UTC).date()
    return datetime.now(zone).date()


def today_provider_for(settings: Settings) -> TodayProvider:
    return lambda: local_today(settings.standup_timezone)
