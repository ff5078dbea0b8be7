import pytest
from fastapi.testclient import TestClient

from app.core.config import get_settings
from app.main import app
from app.services.email_service import clear_email_service_cache
from app.services.team_membership_store import clear_team_membership_store_cache
from app.services.user_store import clear_user_store_cache


@pytest.fixture(autouse=True)
def reset_team_state(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("USER_DATA_STORE", "memory")
    monkeypatch.setenv("SMTP_HOST", "")
    clear_user_store_cache()
    clear_team_membership_store_cache()
    clear_email_service_cache()
    get_settings.cache_clear()
    yield
    clear_user_store_cache()
    clear_team_membership_store_cache()
    clear_email_service_cache()
    get_settings.cache_clear()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def _register_user(
    client: TestClient,
    *,
    full_name: str,
    email: str,
    password: str = "password123",
) -> tuple[dict[str, str], dict[str, object]]:
    register_response = client.post(
        "/api/auth/register",
        json={
            "full_name": full_name,
            "email": email,
            "password": password,
        },
    )
    assert register_response.status_code == 201
    payload = register_response.json()
    return {"Authorization": f"Bearer {payload['access_token']}"}, payload["user"]


def test_team_invitation_lifecycle(client: TestClient) -> None:
    owner_headers, owner_user = _register_user(client, full_name="Owner User", email="owner@example.com")
    member_headers, member_user = _register_user(client, full_name="Member User", email="member@example.com")

    create_response = client.post(
        "/api/teams",
        json={"name": "Equipo Plataforma", "description": "Core APIs"},
        headers=owner_headers,
    )
    assert create_response.status_code == 201
    team = create_response.json()
    team_id = team["id"]
    assert team["owner_user_id"] == owner_user["id"]
    assert len(team["invite_code"]) == 8

    invite_response = client.post(
        f"/api/teams/{team_id}/members",
        json={"email": "MEMBER@example.com"},
        headers=owner_headers,
    )
    assert invite_response.status_code == 201
    assert invite_response.json()["status"] == "PENDING"

    owner_view = client.get(f"/api/teams/{team_id}/invitations", headers=owner_headers)
    assert [entry["email"] for entry in owner_view.json()] == ["member@example.com"]
    assert client.get(f"/api/teams/{team_id}/invitations", headers=member_headers).status_code == 403

    assert client.get(f"/api/teams/{team_id}/members", headers=member_headers).status_code == 403

    accept_response = client.post(f"/api/teams/{team_id}/invitations/accept", headers=member_headers)
    assert accept_response.status_code == 200
    repeat_accept = client.post(f"/api/teams/{team_id}/invitations/accept", headers=member_headers)
    assert repeat_accept.status_code == 400

    my_teams = client.get("/api/v1/teams", headers=member_headers)
    assert [entry["id"] for entry in my_teams.json()] == [team_id]

    members = client.get(f"/api/teams/{team_id}/members", headers=member_headers)
    assert sorted(entry["role"] for entry in members.json()) == ["MEMBER", "OWNER"]

    duplicate_invite = client.post(
        f"/api/teams/{team_id}/members",
        json={"email": "member@example.com"},
        headers=owner_headers,
    )
    assert duplicate_invite.status_code == 409

    remove_response = client.delete(f"/api/teams/{team_id}/members/{member_user['id']}", headers=owner_headers)
    assert remove_response.status_code == 204
    assert client.get("/api/teams", headers=member_headers).json() == []


def test_join_by_code_and_owner_only_mutations(client: TestClient) -> None:
    owner_headers, _ = _register_user(client, full_name="Owner User", email="owner@example.com")
    joiner_headers, _ = _register_user(client, full_name="Joiner User", email="joiner@example.com")
    team = client.post("/api/teams", json={"name": "Platform"}, headers=owner_headers).json()

    preview = client.get(f"/api/teams/join/{team['invite_code'].lower()}", headers=joiner_headers)
    assert preview.status_code == 200
    assert preview.json()["id"] == team["id"]

    join_response = client.post(f"/api/teams/join/{team['invite_code']}", headers=joiner_headers)
    assert join_response.status_code == 200
    assert join_response.json()["status"] == "ACCEPTED"
    rejoin_response = client.post(f"/api/teams/join/{team['invite_code']}", headers=joiner_headers)
    assert rejoin_response.status_code == 409

    forbidden_update = client.put(f"/api/teams/{team['id']}", json={"name": "Renamed"}, headers=joiner_headers)
    assert forbidden_update.status_code == 403
    assert forbidden_update.json()["code"] == "forbidden"

    update_response = client.put(
        f"/api/teams/{team['id']}",
        json={"name": "Renamed", "description": "New scope"},
        headers=owner_headers,
    )
    assert update_response.status_code == 200
    assert update_response.json()["name"] == "Renamed"

    assert client.delete(f"/api/teams/{team['id']}", headers=joiner_headers).status_code == 403


def test_deleted_team_is_not_found_everywhere(client: TestClient) -> None:
    owner_headers, _ = _register_user(client, full_name="Owner User", email="owner@example.com")
    team = client.post("/api/teams", json={"name": "Platform"}, headers=owner_headers).json()

    assert client.delete(f"/api/teams/{team['id']}", headers=owner_headers).status_code == 204

    assert client.get(f"/api/teams/{team['id']}", headers=owner_headers).status_code == 404
    assert client.get(f"/api/teams/join/{team['invite_code']}", headers=owner_headers).status_code == 404
    assert client.get(f"/api/teams/{team['id']}/members", headers=owner_headers).status_code == 404
    assert client.get(f"/api/stats/teams/{team['id']}/heatmap", headers=owner_headers).status_code == 404
    assert client.get("/api/teams", headers=owner_headers).json() == []


def test_team_routes_require_authentication(client: TestClient) -> None:
    assert client.get("/api/teams").status_code == 401
    assert client.post("/api/teams", json={"name": "Platform"}).status_code == 401
