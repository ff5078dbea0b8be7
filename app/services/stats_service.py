from __future__ import annotations

from datetime import timedelta

from app.core.config import Settings, get_settings
from app.schemas.auth import CurrentUserResponse
from app.schemas.stats import HeatmapEntry
from app.services.clock import TodayProvider, today_provider_for
from app.services.standup_store import StandupStore, create_standup_store
from app.services.team_service import TeamService

HEATMAP_WINDOW_DAYS = 365
# Upper bound (inclusive) of each intensity level; anything above the last is level 4.
_LEVEL_THRESHOLDS = (0, 2, 5, 8)


def activity_level(count: int) -> int:
    for level, upper_bound in enumerate(_LEVEL_THRESHOLDS):
        if count <= upper_bound:
            return level
    return len(_LEVEL_THRESHOLDS)


class StatsService:
    def __init__(
        self,
        settings: Settings | None = None,
        *,
        team_service: TeamService | None = None,
        standup_store: StandupStore | None = None,
        today: TodayProvider | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.team_service = team_service or TeamService(self.settings)
        self.standup_store = standup_store or create_standup_store(self.settings)
        self.today = today or today_provider_for(self.settings)

    def heatmap(self, *, current_user: CurrentUserResponse, team_id: str) -> list[HeatmapEntry]:
        team = self.team_service.require_member(team_id, current_user.id)
        since = self.today() - timedelta(days=HEATMAP_WINDOW_DAYS)
        return [
            HeatmapEntry(date=day, count=count, level=activity_level(count))
            for day, count in self.standup_store.count_daily_standups(team.id, since)
            if count > 0
        ]
