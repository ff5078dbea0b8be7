from fastapi import APIRouter, Depends, Response, status

from app.schemas.auth import CurrentUserResponse
from app.schemas.team import (
    TeamCreateRequest,
    TeamInviteRequest,
    TeamMemberResponse,
    TeamMembershipResponse,
    TeamResponse,
    TeamUpdateRequest,
)
from app.services.auth_service import require_current_user
from app.services.team_service import TeamService

router = APIRouter(prefix="/teams", tags=["teams"])


@router.post("", response_model=TeamResponse, status_code=status.HTTP_201_CREATED)
def create_team(
    payload: TeamCreateRequest,
    current_user: CurrentUserResponse = Depends(require_current_user),
) -> TeamResponse:
    service = TeamService()
    return service.create_team(current_user=current_user, payload=payload)


@router.get("", response_model=list[TeamResponse])
def list_my_teams(
    current_user: CurrentUserResponse = Depends(require_current_user),
) -> list[TeamResponse]:
    service = TeamService()
    return service.list_my_teams(current_user)


@router.get("/invitations/pending", response_model=list[TeamResponse])
def list_my_pending_invitations(
    current_user: CurrentUserResponse = Depends(require_current_user),
) -> list[TeamResponse]:
    service = TeamService()
    return service.list_my_pending_invitations(current_user)


@router.get("/join/{invite_code}", response_model=TeamResponse)
def get_team_by_invite_code(
    invite_code: str,
    current_user: CurrentUserResponse = Depends(require_current_user),
) -> TeamResponse:
    service = TeamService()
    return service.get_team_by_invite_code(invite_code)


@router.post("/join/{invite_code}", response_model=TeamMembershipResponse)
def join_team_by_code(
    invite_code: str,
    current_user: CurrentUserResponse = Depends(require_current_user),
) -> TeamMembershipResponse:
    service = TeamService()
    return service.join_by_code(current_user=current_user, invite_code=invite_code)


@router.get("/{team_id}", response_model=TeamResponse)
def get_team(
    team_id: str,
    current_user: CurrentUserResponse = Depends(require_current_user),
) -> TeamResponse:
    service = TeamService()
    return service.get_team(team_id)


@router.put("/{team_id}", response_model=TeamResponse)
def update_team(
    team_id: str,
    payload: TeamUpdateRequest,
    current_user: CurrentUserResponse = Depends(require_current_user),
) -> TeamResponse:
    service = TeamService()
    return service.update_team(current_user=current_user, team_id=team_id, payload=payload)


@router.delete("/{team_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_team(
    team_id: str,
    current_user: CurrentUserResponse = Depends(require_current_user),
) -> Response:
    service = TeamService()
    service.delete_team(current_user=current_user, team_id=team_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{team_id}/members", response_model=list[TeamMemberResponse])
def list_team_members(
    team_id: str,
    current_user: CurrentUserResponse = Depends(require_current_user),
) -> list[TeamMemberResponse]:
    service = TeamService()
    return service.list_members(current_user=current_user, team_id=team_id)


@router.post(
    "/{team_id}/members",
    response_model=TeamMembershipResponse,
    status_code=status.HTTP_201_CREATED,
)
def invite_team_member(
    team_id: str,
    payload: TeamInviteRequest,
    current_user: CurrentUserResponse = Depends(require_current_user),
) -> TeamMembershipResponse:
    service = TeamService()
    return service.invite_member(
        current_user=current_user,
        team_id=team_id,
        email=payload.email,
        role=payload.role,
    )


@router.delete("/{team_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_team_member(
    team_id: str,
    user_id: str,
    current_user: CurrentUserResponse = Depends(require_current_user),
) -> Response:
    service = TeamService()
    service.remove_member(current_user=current_user, team_id=team_id, user_id=user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{team_id}/invitations", response_model=list[TeamMemberResponse])
def list_team_pending_invitations(
    team_id: str,
    current_user: CurrentUserResponse = Depends(require_current_user),
) -> list[TeamMemberResponse]:
    service = TeamService()
    return service.list_pending_invitations(current_user=current_user, team_id=team_id)


@router.post("/{team_id}/invitations/accept", response_model=TeamMembershipResponse)
def accept_team_invitation(
    team_id: str,
    current_user: CurrentUserResponse = Depends(require_current_user),
) -> TeamMembershipResponse:
    service = TeamService()
    return service.accept_invitation(current_user=current_user, team_id=team_id)


@router.post("/{team_id}/invitations/reject", response_model=TeamMembershipResponse)
def reject_team_invitation(
    team_id: str,
    current_user: CurrentUserResponse = Depends(require_current_user),
) -> TeamMembershipResponse:
    service = TeamService()
    return service.reject_invitation(current_user=current_user, team_id=team_id)
