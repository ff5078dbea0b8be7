from datetime import date, timedelta

import pytest

from app.core.config import Settings
from app.core.errors import UnauthorizedError
from app.schemas.team import TeamCreateRequest
from app.services.auth_service import to_current_user_response
from app.services.standup_store import InMemoryStandupStore
from app.services.stats_service import StatsService, activity_level
from app.services.team_membership_store import InMemoryTeamMembershipStore
from app.services.team_service import TeamService
from app.services.user_store import InMemoryUserStore

TODAY = date(2024, 3, 14)


@pytest.mark.parametrize(
    ("count", "level"),
    [(0, 0), (1, 1), (2, 1), (3, 2), (5, 2), (6, 3), (8, 3), (9, 4), (40, 4)],
)
def test_activity_level_boundaries(count: int, level: int) -> None:
    assert activity_level(count) == level


def test_heatmap_is_sparse_and_bounded_to_trailing_year() -> None:
    settings = Settings(user_data_store="memory", smtp_host="")
    user_store = InMemoryUserStore()
    standup_store = InMemoryStandupStore()
    team_service = TeamService(settings, user_store=user_store, team_store=InMemoryTeamMembershipStore())
    service = StatsService(settings, team_service=team_service, standup_store=standup_store, today=lambda: TODAY)

    owner = to_current_user_response(user_store.create_user(email="ada@example.com", name="Ada", password_hash="x"))
    outsider = to_current_user_response(user_store.create_user(email="eve@example.com", name="Eve", password_hash="x"))
    team = team_service.create_team(current_user=owner, payload=TeamCreateRequest(name="Platform"))

    def add(day: date, count: int) -> None:
        for index in range(count):
            standup_store.create_standup(
                team_id=team.id,
                user_id=f"user-{index}",
                standup_date=day,
                yesterday_text="y",
                today_text="t",
                blockers_text=None,
            )

    add(TODAY - timedelta(days=400), 3)
    add(TODAY - timedelta(days=365), 2)
    add(TODAY - timedelta(days=10), 9)
    add(TODAY, 5)

    entries = service.heatmap(current_user=owner, team_id=team.id)

    assert [(entry.date, entry.count, entry.level) for entry in entries] == [
        (TODAY - timedelta(days=365), 2, 1),
        (TODAY - timedelta(days=10), 9, 4),
        (TODAY, 5, 2),
    ]
    with pytest.raises(UnauthorizedError):
        service.heatmap(current_user=outsider, team_id=team.id)
