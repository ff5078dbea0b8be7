from concurrent.futures import Future
from datetime import date

import pytest

from app.core.config import Settings
from app.core.errors import BadRequestError, ConflictError, UnauthorizedError
from app.schemas.standup import StandupCreateRequest
from app.schemas.team import TeamCreateRequest
from app.services.auth_service import to_current_user_response
from app.services.email_service import EmailDeliveryError, EmailService
from app.services.reminder_service import ReminderService
from app.services.standup_service import StandupService
from app.services.standup_store import InMemoryStandupStore
from app.services.team_membership_store import InMemoryTeamMembershipStore
from app.services.team_service import TeamService
from app.services.user_store import InMemoryUserStore

TODAY = date(2024, 3, 14)


class _Mailer:
    is_configured = True

    def __init__(self, failing_recipients: set[str] | None = None) -> None:
        self.failing_recipients = failing_recipients or set()
        self.reminded: list[str] = []

    def send_html(self, to: str, subject: str, html_body: str) -> Future:
        future: Future = Future()
        future.set_result(True)
        return future

    def send_html_and_wait(self, to: str, subject: str, html_body: str) -> bool:
        if to in self.failing_recipients:
            raise EmailDeliveryError(f"Failed to send email to {to}")
        self.reminded.append(to)
        return True


class _World:
    def __init__(self, mailer: _Mailer) -> None:
        settings = Settings(user_data_store="memory", smtp_host="", frontend_base_url="https://app.example.com")
        self.mailer = mailer
        self.user_store = InMemoryUserStore()
        standup_store = InMemoryStandupStore()
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
            today=lambda: TODAY,
        )
        self.reminders = ReminderService(
            settings,
            team_service=self.team_service,
            user_store=self.user_store,
            standup_store=standup_store,
            email_service=mailer,
            today=lambda: TODAY,
        )
        self.owner = self.user("Ada", "ada@example.com")
        team = self.team_service.create_team(current_user=self.owner, payload=TeamCreateRequest(name="Platform"))
        self.team_id = team.id
        self.invite_code = team.invite_code

    def user(self, name: str, email: str):
        return to_current_user_response(self.user_store.create_user(email=email, name=name, password_hash="x"))

    def join(self, name: str, email: str):
        user = self.user(name, email)
        self.team_service.join_by_code(current_user=user, invite_code=self.invite_code)
        return user

    def post(self, user) -> None:
        self.standups.submit(
            current_user=user,
            team_id=self.team_id,
            payload=StandupCreateRequest(yesterday_text="y", today_text="t"),
        )


def test_remind_member_sends_one_email() -> None:
    world = _World(_Mailer())
    bob = world.join("Bob", "bob@example.com")

    response = world.reminders.remind_member(current_user=world.owner, team_id=world.team_id, user_id=bob.id)

    assert response.emails_sent == 1
    assert response.message == "Reminder sent to Bob"
    assert world.mailer.reminded == ["bob@example.com"]


def test_remind_member_guards() -> None:
    world = _World(_Mailer())
    bob = world.join("Bob", "bob@example.com")
    pending = world.user("Pat", "pat@example.com")
    world.team_service.invite_member(current_user=world.owner, team_id=world.team_id, email=pending.email)

    with pytest.raises(UnauthorizedError):
        world.reminders.remind_member(current_user=bob, team_id=world.team_id, user_id=world.owner.id)
    with pytest.raises(BadRequestError):
        world.reminders.remind_member(current_user=world.owner, team_id=world.team_id, user_id=pending.id)

    world.post(bob)
    with pytest.raises(ConflictError):
        world.reminders.remind_member(current_user=world.owner, team_id=world.team_id, user_id=bob.id)


def test_remind_all_pending_skips_submitted_and_counts_only_successes() -> None:
    world = _World(_Mailer(failing_recipients={"cy@example.com"}))
    bob = world.join("Bob", "bob@example.com")
    world.join("Cy", "cy@example.com")
    world.join("Di", "di@example.com")
    world.post(world.owner)
    world.post(bob)

    response = world.reminders.remind_all_pending(current_user=world.owner, team_id=world.team_id)

    assert response.emails_sent == 1
    assert response.message == "Reminder sent to 1 team member"
    assert world.mailer.reminded == ["di@example.com"]


def test_remind_all_pending_when_everyone_submitted() -> None:
    world = _World(_Mailer())
    bob = world.join("Bob", "bob@example.com")
    world.post(world.owner)
    world.post(bob)

    response = world.reminders.remind_all_pending(current_user=world.owner, team_id=world.team_id)

    assert response.emails_sent == 0
    assert response.message == "All team members have already submitted their standups"
    assert world.mailer.reminded == []


def test_remind_all_pending_is_owner_only() -> None:
    world = _World(_Mailer())
    bob = world.join("Bob", "bob@example.com")

    with pytest.raises(UnauthorizedError):
        world.reminders.remind_all_pending(current_user=bob, team_id=world.team_id)


class _RecordingSMTP:
    delivered: list[str] = []

    def __init__(self, host: str, port: int, timeout: float) -> None:
        pass

    def __enter__(self) -> "_RecordingSMTP":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> bool:
        return False

    def starttls(self) -> None:
        pass

    def send_message(self, message) -> None:
        _RecordingSMTP.delivered.append(message["To"])


def test_remind_all_pending_survives_unaddressable_member(monkeypatch: pytest.MonkeyPatch) -> None:
    _RecordingSMTP.delivered = []
    monkeypatch.setattr("app.services.email_service.smtplib.SMTP", _RecordingSMTP)
    mailer = EmailService(smtp_host="smtp.example.com", smtp_port=2525, from_email="noreply@example.com")
    world = _World(mailer)
    world.join("Bob", "bob@ex\nample.com")
    world.join("Di", "di@example.com")
    world.post(world.owner)

    response = world.reminders.remind_all_pending(current_user=world.owner, team_id=world.team_id)

    assert response.emails_sent == 1
    assert _RecordingSMTP.delivered == ["di@example.com"]
    mailer.shutdown()


def test_reminders_after_mailer_shutdown_report_nothing_sent() -> None:
    mailer = EmailService(smtp_host="smtp.example.com", smtp_port=2525, from_email="noreply@example.com")
    world = _World(mailer)
    bob = world.join("Bob", "bob@example.com")
    mailer.shutdown()

    single = world.reminders.remind_member(current_user=world.owner, team_id=world.team_id, user_id=bob.id)
    assert single.emails_sent == 0
    assert single.message == "Failed to send reminder to Bob"
    response = world.reminders.remind_all_pending(current_user=world.owner, team_id=world.team_id)
    assert response.emails_sent == 0
