from concurrent.futures import Future, ThreadPoolExecutor
from datetime import date, timedelta

import pytest

from app.core.config import Settings
from app.core.errors import BadRequestError, ConflictError, NotFoundError, UnauthorizedError
from app.schemas.standup import StandupCreateRequest
from app.schemas.team import TeamCreateRequest
from app.services.auth_service import to_current_user_response
from app.services.email_service import EmailDeliveryError, EmailService
from app.services.standup_service import StandupService
from app.services.standup_store import InMemoryStandupStore
from app.services.standup_summary_writer import StandupSummaryWriter
from app.services.summary_store import InMemorySummaryStore
from app.services.team_membership_store import InMemoryTeamMembershipStore
from app.services.team_service import TeamService
from app.services.user_store import InMemoryUserStore
from app.services.weekly_summary_service import WeeklySummaryService


class _Clock:
    def __init__(self, today: date) -> None:
        self.current = today

    def __call__(self) -> date:
        return self.current


class _Mailer:
    def __init__(self, *, delivered: bool = True, error: Exception | None = None) -> None:
        self.delivered = delivered
        self.error = error
        self.sent: list[tuple[str, str, str]] = []

    @property
    def is_configured(self) -> bool:
        return self.delivered

    def send_html(self, to: str, subject: str, html_body: str) -> Future:
        future: Future = Future()
        future.set_result(True)
        return future

    def send_html_and_wait(self, to: str, subject: str, html_body: str) -> bool:
        self.sent.append((to, subject, html_body))
        if self.error is not None:
            raise self.error
        return self.delivered


class _World:
    def __init__(self, mailer: _Mailer) -> None:
        self.clock = _Clock(date(2024, 3, 14))
        self.mailer = mailer
        settings = Settings(user_data_store="memory", gemini_api_key="", smtp_host="")
        self.user_store = InMemoryUserStore()
        standup_store = InMemoryStandupStore()
        self.summary_store = InMemorySummaryStore()
        self.team_service = TeamService(
            settings,
            user_store=self.user_store,
            team_store=InMemoryTeamMembershipStore(),
            email_service=mailer,
        )
        self.standups = StandupService(
            settings,
            team_service=self.team_service,
            standup_store=standup_store,
            user_store=self.user_store,
            today=self.clock,
        )
        self.weekly = WeeklySummaryService(
            settings,
            team_service=self.team_service,
            user_store=self.user_store,
            standup_store=standup_store,
            summary_store=self.summary_store,
            writer=StandupSummaryWriter(settings),
            email_service=mailer,
            today=self.clock,
        )
        self.owner = to_current_user_response(
            self.user_store.create_user(email="ada@example.com", name="Ada", password_hash="unused"),
        )
        self.member = to_current_user_response(
            self.user_store.create_user(email="bob@example.com", name="Bob", password_hash="unused"),
        )
        team = self.team_service.create_team(current_user=self.owner, payload=TeamCreateRequest(name="Platform"))
        self.team_id = team.id
        self.team_service.join_by_code(current_user=self.member, invite_code=team.invite_code)

    def post(self, user, today_text: str) -> None:
        self.standups.submit(
            current_user=user,
            team_id=self.team_id,
            payload=StandupCreateRequest(yesterday_text="Prior work", today_text=today_text),
        )


def test_weekly_summary_covers_seven_days_and_emails_owner() -> None:
    world = _World(_Mailer())
    world.clock.current = date(2024, 3, 7)
    world.post(world.owner, "Too old")
    world.clock.current = date(2024, 3, 8)
    world.post(world.owner, "Start of window")
    world.clock.current = date(2024, 3, 14)
    world.post(world.member, "End of window")

    weekly = world.weekly.generate(current_user=world.owner, team_id=world.team_id)

    assert weekly.week_start_date == date(2024, 3, 8)
    assert weekly.week_end_date == date(2024, 3, 14)
    assert weekly.week_end_date - weekly.week_start_date == timedelta(days=6)
    assert weekly.summary_text.startswith("## 📅 Weekly Summary: 2024-03-08 to 2024-03-14")
    assert "**Total Standups:** 2" in weekly.summary_text
    assert "Start of window" in weekly.summary_text
    assert "Too old" not in weekly.summary_text
    assert weekly.sent_to_owner is True
    assert world.mailer.sent[0][0] == "ada@example.com"


def test_second_weekly_generation_for_same_week_is_conflict() -> None:
    world = _World(_Mailer())
    world.post(world.owner, "Ship billing")
    world.weekly.generate(current_user=world.owner, team_id=world.team_id)

    with pytest.raises(ConflictError):
        world.weekly.generate(current_user=world.owner, team_id=world.team_id)
    assert len(world.summary_store.list_weekly_summaries(world.team_id)) == 1


def test_weekly_generation_is_owner_only() -> None:
    world = _World(_Mailer())
    world.post(world.member, "Write docs")

    with pytest.raises(UnauthorizedError):
        world.weekly.generate(current_user=world.member, team_id=world.team_id)


def test_weekly_generation_without_standups_is_bad_request() -> None:
    world = _World(_Mailer())

    with pytest.raises(BadRequestError):
        world.weekly.generate(current_user=world.owner, team_id=world.team_id)


@pytest.mark.parametrize(
    "mailer",
    [
        _Mailer(delivered=False),
        _Mailer(error=EmailDeliveryError("smtp down")),
    ],
)
def test_email_failure_is_recorded_but_summary_persists(mailer: _Mailer) -> None:
    world = _World(mailer)
    world.post(world.owner, "Ship billing")

    weekly = world.weekly.generate(current_user=world.owner, team_id=world.team_id)

    assert weekly.sent_to_owner is False
    assert world.summary_store.get_weekly_summary(world.team_id, weekly.week_start_date) is not None


def test_list_and_latest_weekly_summaries() -> None:
    world = _World(_Mailer())
    with pytest.raises(NotFoundError):
        world.weekly.get_latest(current_user=world.member, team_id=world.team_id)

    world.post(world.owner, "Week one")
    first = world.weekly.generate(current_user=world.owner, team_id=world.team_id)
    world.clock.current += timedelta(days=7)
    world.post(world.owner, "Week two")
    second = world.weekly.generate(current_user=world.owner, team_id=world.team_id)

    listed = world.weekly.list_summaries(current_user=world.member, team_id=world.team_id)
    assert [entry.id for entry in listed] == [second.id, first.id]
    assert world.weekly.get_latest(current_user=world.member, team_id=world.team_id).id == second.id


class _AcceptingSMTP:
    def __init__(self, host: str, port: int, timeout: float) -> None:
        pass

    def __enter__(self) -> "_AcceptingSMTP":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> bool:
        return False

    def starttls(self) -> None:
        pass

    def send_message(self, message) -> None:
        pass


def test_unaddressable_owner_still_gets_summary_persisted(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("app.services.email_service.smtplib.SMTP", _AcceptingSMTP)
    mailer = EmailService(smtp_host="smtp.example.com", smtp_port=2525, from_email="noreply@example.com")
    world = _World(mailer)
    owner = to_current_user_response(
        world.user_store.create_user(email="ada@ex\nample.com", name="Ada", password_hash="unused"),
    )
    team = world.team_service.create_team(current_user=owner, payload=TeamCreateRequest(name="Docs"))
    world.standups.submit(
        current_user=owner,
        team_id=team.id,
        payload=StandupCreateRequest(yesterday_text="Prior work", today_text="Ship docs"),
    )

    weekly = world.weekly.generate(current_user=owner, team_id=team.id)

    assert weekly.sent_to_owner is False
    assert world.summary_store.get_weekly_summary(team.id, weekly.week_start_date) is not None
    mailer.shutdown()


def test_concurrent_weekly_generation_emails_owner_once() -> None:
    world = _World(_Mailer())
    world.post(world.owner, "Ship billing")

    def attempt() -> str:
        try:
            world.weekly.generate(current_user=world.owner, team_id=world.team_id)
        except ConflictError:
            return "conflict"
        return "created"

    with ThreadPoolExecutor(max_workers=4) as executor:
        outcomes = list(executor.map(lambda _: attempt(), range(4)))

    assert outcomes.count("created") == 1
    assert len(world.mailer.sent) == 1
    stored = world.summary_store.list_weekly_summaries(world.team_id)
    assert len(stored) == 1
    assert stored[0].sent_to_owner is True
