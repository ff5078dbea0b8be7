from concurrent.futures import Future

import pytest

from app.core.config import Settings
from app.core.errors import BadRequestError, ConflictError, NotFoundError, UnauthorizedError
from app.schemas.auth import CurrentUserResponse
from app.schemas.team import TeamCreateRequest, TeamUpdateRequest
from app.services.auth_service import to_current_user_response
from app.services.standup_models import InvitationStatus, TeamRole
from app.services.team_membership_store import InMemoryTeamMembershipStore
from app.services.team_service import TeamService
from app.services.user_store import InMemoryUserStore


class _RecordingMailer:
    is_configured = True

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str]] = []

    def send_html(self, to: str, subject: str, html_body: str) -> Future:
        self.sent.append((to, subject, html_body))
        future: Future = Future()
        future.set_result(True)
        return future


@pytest.fixture
def user_store() -> InMemoryUserStore:
    return InMemoryUserStore()


@pytest.fixture
def team_store() -> InMemoryTeamMembershipStore:
    return InMemoryTeamMembershipStore()


@pytest.fixture
def mailer() -> _RecordingMailer:
    return _RecordingMailer()


@pytest.fixture
def service(
    user_store: InMemoryUserStore,
    team_store: InMemoryTeamMembershipStore,
    mailer: _RecordingMailer,
) -> TeamService:
    return TeamService(
        Settings(user_data_store="memory", frontend_base_url="https://app.example.com"),
        user_store=user_store,
        team_store=team_store,
        email_service=mailer,
    )


def _user(user_store: InMemoryUserStore, name: str, email: str) -> CurrentUserResponse:
    account = user_store.create_user(email=email, name=name, password_hash="unused")
    return to_current_user_response(account)


def _create_team(service: TeamService, owner: CurrentUserResponse, name: str = "Platform") -> str:
    return service.create_team(current_user=owner, payload=TeamCreateRequest(name=name)).id


def test_create_team_makes_owner_accepted_member(service: TeamService, user_store: InMemoryUserStore) -> None:
    owner = _user(user_store, "Ada Owner", "ada@example.com")

    team = service.create_team(
        current_user=owner,
        payload=TeamCreateRequest(name="  Platform  ", description="Core services"),
    )

    assert team.name == "Platform"
    assert team.owner_user_id == owner.id
    assert len(team.invite_code) == 8
    assert team.invite_code.isalnum() and team.invite_code.upper() == team.invite_code
    membership = service.team_store.get_membership(team.id, owner.id)
    assert membership is not None
    assert membership.role == TeamRole.owner
    assert membership.status == InvitationStatus.accepted
    assert service.is_member(team.id, owner.id) is True


def test_create_team_rejects_short_name(service: TeamService, user_store: InMemoryUserStore) -> None:
    owner = _user(user_store, "Ada Owner", "ada@example.com")

    with pytest.raises(BadRequestError):
        service.create_team(current_user=owner, payload=TeamCreateRequest(name=" x "))


def test_invite_accept_and_reject_transitions(
    service: TeamService,
    user_store: InMemoryUserStore,
    mailer: _RecordingMailer,
) -> None:
    owner = _user(user_store, "Ada Owner", "ada@example.com")
    member = _user(user_store, "Bob Member", "bob@example.com")
    team_id = _create_team(service, owner)

    invitation = service.invite_member(current_user=owner, team_id=team_id, email="BOB@example.com")

    assert invitation.status == "PENDING"
    assert invitation.responded_at is None
    assert service.is_member(team_id, member.id) is False
    assert [team.id for team in service.list_my_pending_invitations(member)] == [team_id]
    assert [entry.email for entry in service.list_pending_invitations(current_user=owner, team_id=team_id)] == [
        "bob@example.com",
    ]
    assert mailer.sent and mailer.sent[0][0] == "bob@example.com"
    assert "https://app.example.com/join/" in mailer.sent[0][2]

    rejected = service.reject_invitation(current_user=member, team_id=team_id)
    assert rejected.status == "REJECTED"
    assert rejected.responded_at is not None
    assert service.is_member(team_id, member.id) is False

    with pytest.raises(BadRequestError):
        service.accept_invitation(current_user=member, team_id=team_id)

    reinvited = service.invite_member(current_user=owner, team_id=team_id, email="bob@example.com")
    assert reinvited.status == "PENDING"
    assert reinvited.responded_at is None
    assert reinvited.invited_at >= rejected.invited_at

    accepted = service.accept_invitation(current_user=member, team_id=team_id)
    assert accepted.status == "ACCEPTED"
    assert service.is_member(team_id, member.id) is True
    assert service.list_my_pending_invitations(member) == []


def test_accept_without_invitation_is_bad_request(service: TeamService, user_store: InMemoryUserStore) -> None:
    owner = _user(user_store, "Ada Owner", "ada@example.com")
    stranger = _user(user_store, "Sam Stranger", "sam@example.com")
    team_id = _create_team(service, owner)

    with pytest.raises(BadRequestError):
        service.accept_invitation(current_user=stranger, team_id=team_id)
    with pytest.raises(BadRequestError):
        service.reject_invitation(current_user=stranger, team_id=team_id)


def test_invite_existing_member_is_conflict(service: TeamService, user_store: InMemoryUserStore) -> None:
    owner = _user(user_store, "Ada Owner", "ada@example.com")
    member = _user(user_store, "Bob Member", "bob@example.com")
    team_id = _create_team(service, owner)
    service.invite_member(current_user=owner, team_id=team_id, email=member.email)
    service.accept_invitation(current_user=member, team_id=team_id)

    with pytest.raises(ConflictError):
        service.invite_member(current_user=owner, team_id=team_id, email=member.email)
    with pytest.raises(ConflictError):
        service.invite_member(current_user=owner, team_id=team_id, email=owner.email)


def test_invite_requires_owner_existing_user_and_live_team(
    service: TeamService,
    user_store: InMemoryUserStore,
) -> None:
    owner = _user(user_store, "Ada Owner", "ada@example.com")
    member = _user(user_store, "Bob Member", "bob@example.com")
    _user(user_store, "Cy Other", "cy@example.com")
    team_id = _create_team(service, owner)

    with pytest.raises(UnauthorizedError):
        service.invite_member(current_user=member, team_id=team_id, email="cy@example.com")
    with pytest.raises(NotFoundError):
        service.invite_member(current_user=owner, team_id=team_id, email="nobody@example.com")
    with pytest.raises(BadRequestError):
        service.invite_member(current_user=owner, team_id=team_id, email="cy@example.com", role="ADMIN")

    service.delete_team(current_user=owner, team_id=team_id)
    with pytest.raises(BadRequestError):
        service.invite_member(current_user=owner, team_id=team_id, email="cy@example.com")


def test_remove_member_deletes_row_and_reinvite_starts_pending(
    service: TeamService,
    user_store: InMemoryUserStore,
) -> None:
    owner = _user(user_store, "Ada Owner", "ada@example.com")
    member = _user(user_store, "Bob Member", "bob@example.com")
    team_id = _create_team(service, owner)
    service.invite_member(current_user=owner, team_id=team_id, email=member.email)
    service.accept_invitation(current_user=member, team_id=team_id)

    service.remove_member(current_user=owner, team_id=team_id, user_id=member.id)

    assert service.team_store.get_membership(team_id, member.id) is None
    assert service.is_member(team_id, member.id) is False
    reinvited = service.invite_member(current_user=owner, team_id=team_id, email=member.email)
    assert reinvited.status == "PENDING"


def test_remove_member_guards(service: TeamService, user_store: InMemoryUserStore) -> None:
    owner = _user(user_store, "Ada Owner", "ada@example.com")
    member = _user(user_store, "Bob Member", "bob@example.com")
    team_id = _create_team(service, owner)

    with pytest.raises(BadRequestError):
        service.remove_member(current_user=owner, team_id=team_id, user_id=owner.id)
    with pytest.raises(UnauthorizedError):
        service.remove_member(current_user=member, team_id=team_id, user_id=owner.id)


def test_join_by_code_paths(service: TeamService, user_store: InMemoryUserStore) -> None:
    owner = _user(user_store, "Ada Owner", "ada@example.com")
    joiner = _user(user_store, "Jo Joiner", "jo@example.com")
    invitee = _user(user_store, "Ivy Invitee", "ivy@example.com")
    team = service.create_team(current_user=owner, payload=TeamCreateRequest(name="Platform"))

    joined = service.join_by_code(current_user=joiner, invite_code=f" {team.invite_code.lower()} ")
    assert joined.status == "ACCEPTED"
    assert joined.role == "MEMBER"
    assert service.is_member(team.id, joiner.id) is True

    with pytest.raises(ConflictError):
        service.join_by_code(current_user=joiner, invite_code=team.invite_code)

    service.invite_member(current_user=owner, team_id=team.id, email=invitee.email)
    with pytest.raises(BadRequestError) as excinfo:
        service.join_by_code(current_user=invitee, invite_code=team.invite_code)
    assert not isinstance(excinfo.value, ConflictError)

    service.reject_invitation(current_user=invitee, team_id=team.id)
    rejoined = service.join_by_code(current_user=invitee, invite_code=team.invite_code)
    assert rejoined.status == "ACCEPTED"

    with pytest.raises(NotFoundError):
        service.join_by_code(current_user=invitee, invite_code="NOPE0000")


def test_deleted_team_is_invisible_and_its_code_stays_reserved(
    service: TeamService,
    user_store: InMemoryUserStore,
    team_store: InMemoryTeamMembershipStore,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    owner = _user(user_store, "Ada Owner", "ada@example.com")
    team = service.create_team(current_user=owner, payload=TeamCreateRequest(name="Platform"))
    service.delete_team(current_user=owner, team_id=team.id)

    with pytest.raises(NotFoundError):
        service.get_team(team.id)
    with pytest.raises(NotFoundError):
        service.get_team_by_invite_code(team.invite_code)
    with pytest.raises(NotFoundError):
        service.require_member(team.id, owner.id)
    assert service.list_my_teams(owner) == []

    codes = iter([team.invite_code, "FRESH123"])
    monkeypatch.setattr("app.services.team_membership_store.generate_invite_code", lambda: next(codes))
    replacement = service.create_team(current_user=owner, payload=TeamCreateRequest(name="Platform 2"))
    assert replacement.invite_code == "FRESH123"


def test_update_team_is_owner_only(service: TeamService, user_store: InMemoryUserStore) -> None:
    owner = _user(user_store, "Ada Owner", "ada@example.com")
    member = _user(user_store, "Bob Member", "bob@example.com")
    team_id = _create_team(service, owner)

    updated = service.update_team(
        current_user=owner,
        team_id=team_id,
        payload=TeamUpdateRequest(name="Platform Core", description="APIs"),
    )
    assert updated.name == "Platform Core"
    assert updated.description == "APIs"

    with pytest.raises(UnauthorizedError):
        service.update_team(current_user=member, team_id=team_id, payload=TeamUpdateRequest(name="Hijacked"))

    service.delete_team(current_user=owner, team_id=team_id)
    with pytest.raises(BadRequestError):
        service.update_team(current_user=owner, team_id=team_id, payload=TeamUpdateRequest(name="Revived"))


def test_list_members_requires_membership(service: TeamService, user_store: InMemoryUserStore) -> None:
    owner = _user(user_store, "Ada Owner", "ada@example.com")
    member = _user(user_store, "Bob Member", "bob@example.com")
    team_id = _create_team(service, owner)
    service.invite_member(current_user=owner, team_id=team_id, email=member.email)

    with pytest.raises(UnauthorizedError):
        service.list_members(current_user=member, team_id=team_id)

    service.accept_invitation(current_user=member, team_id=team_id)
    members = service.list_members(current_user=member, team_id=team_id)
    assert sorted((entry.email, entry.role) for entry in members) == [
        ("ada@example.com", "OWNER"),
        ("bob@example.com", "MEMBER"),
    ]
