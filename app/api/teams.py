from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_role
from app.models.user import User
from app.schemas.collaboration import (
    AttachRequest,
    MemberRoleUpdate,
    TeamCreate,
    TeamInvitationRead,
    TeamInviteRequest,
    TeamRead,
    TeamUpdate,
)
from app.schemas.common import MessageResponse
from app.services.team import teams

router = APIRouter(prefix="/teams", tags=["teams"])


@router.get("/my-teams", response_model=list[TeamRead])
def list_my_teams(
    user: User = Depends(require_role("editor")),
    db: Session = Depends(get_db),
):
    return teams.list_mine(db, user)


@router.get(
    "",
    response_model=list[TeamRead],
    dependencies=[Depends(require_role("editor"))],
)
def list_teams(
    search: str | None = None,
    sort_by: str | None = Query(default=None, alias="sortBy"),
    sort_order: str | None = Query(default=None, alias="sortOrder"),
    db: Session = Depends(get_db),
):
    return teams.list_all(
        db, {"search": search, "sort_by": sort_by, "sort_order": sort_order}
    )


@router.post("", response_model=TeamRead, status_code=status.HTTP_201_CREATED)
def create_team(
    payload: TeamCreate,
    user: User = Depends(require_role("editor")),
    db: Session = Depends(get_db),
):
    return teams.create(db, payload, user)


@router.post("/accept/{token}", response_model=TeamRead)
def accept_invitation(
    token: str,
    user: User = Depends(require_role("viewer")),
    db: Session = Depends(get_db),
):
    return teams.accept_invitation(db, token, user)


@router.post("/decline/{token}", response_model=MessageResponse)
def decline_invitation(
    token: str,
    user: User = Depends(require_role("viewer")),
    db: Session = Depends(get_db),
):
    teams.decline_invitation(db, token, user)
    return {"message": "Invitation declined"}


@router.get("/{team_id}", response_model=TeamRead)
def get_team(
    team_id: str,
    user: User = Depends(require_role("viewer")),
    db: Session = Depends(get_db),
):
    return teams.get(db, team_id, user)


@router.put("/{team_id}", response_model=TeamRead)
def update_team(
    team_id: str,
    payload: TeamUpdate,
    user: User = Depends(require_role("editor")),
    db: Session = Depends(get_db),
):
    return teams.update(db, team_id, payload, user)


@router.delete("/{team_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_team(
    team_id: str,
    user: User = Depends(require_role("editor")),
    db: Session = Depends(get_db),
):
    teams.delete(db, team_id, user)


# ------------------------------------------------------------------
# Invitations and members
# ------------------------------------------------------------------


@router.post(
    "/{team_id}/invite",
    response_model=TeamInvitationRead,
    status_code=status.HTTP_201_CREATED,
)
def invite_to_team(
    team_id: str,
    payload: TeamInviteRequest,
    user: User = Depends(require_role("editor")),
    db: Session = Depends(get_db),
):
    return teams.invite(db, team_id, payload, user)


@router.delete("/{team_id}/members/{member_id}", response_model=TeamRead)
def remove_member(
    team_id: str,
    member_id: str,
    user: User = Depends(require_role("viewer")),
    db: Session = Depends(get_db),
):
    return teams.remove_member(db, team_id, member_id, user)


@router.put("/{team_id}/members/{member_id}/role", response_model=TeamRead)
def update_member_role(
    team_id: str,
    member_id: str,
    payload: MemberRoleUpdate,
    user: User = Depends(require_role("editor")),
    db: Session = Depends(get_db),
):
    return teams.update_member_role(db, team_id, member_id, payload.role, user)


# ------------------------------------------------------------------
# Shared documents and books
# ------------------------------------------------------------------


@router.post("/{team_id}/documents", response_model=TeamRead)
def attach_to_team(
    team_id: str,
    payload: AttachRequest,
    user: User = Depends(require_role("editor")),
    db: Session = Depends(get_db),
):
    return teams.attach(
        db, team_id, user, document_id=payload.document_id, book_id=payload.book_id
    )


@router.delete("/{team_id}/documents", response_model=TeamRead)
def detach_from_team(
    team_id: str,
    document_id: str | None = None,
    book_id: str | None = None,
    user: User = Depends(require_role("editor")),
    db: Session = Depends(get_db),
):
    return teams.detach(db, team_id, user, document_id=document_id, book_id=book_id)
