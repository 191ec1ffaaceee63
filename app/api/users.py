from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, read_upload, require_role
from app.errors import validation_error
from app.models.user import User
from app.schemas.common import PagedResponse
from app.schemas.user import UserRead, UserUpdate
from app.services.user import serialize_user, users

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=PagedResponse[UserRead])
def list_users(
    search: str | None = None,
    role: str | None = None,
    sort_by: str | None = Query(default=None, alias="sortBy"),
    sort_order: str | None = Query(default=None, alias="sortOrder"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=100),
    user: User = Depends(require_role("viewer")),
    db: Session = Depends(get_db),
):
    params = {
        "search": search,
        "role": role,
        "sort_by": sort_by,
        "sort_order": sort_order,
    }
    return users.list(db, params, user, page, limit)


@router.get("/{user_id}", response_model=UserRead)
def get_user(
    user_id: str,
    user: User = Depends(require_role("viewer")),
    db: Session = Depends(get_db),
):
    return serialize_user(users.get(db, user_id), user)


@router.put("/{user_id}", response_model=UserRead)
def update_user(
    user_id: str,
    payload: UserUpdate,
    user: User = Depends(require_role("viewer")),
    db: Session = Depends(get_db),
):
    return serialize_user(users.update(db, user_id, payload, user), user)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: str,
    user: User = Depends(require_role("admin")),
    db: Session = Depends(get_db),
):
    users.delete(db, user_id, user)


# ------------------------------------------------------------------
# Profile images
# ------------------------------------------------------------------


def _image(upload: UploadFile | None):
    image = read_upload(upload)
    if image is None:
        raise validation_error("No image uploaded")
    return image


@router.post("/{user_id}/profile-picture", response_model=UserRead)
def upload_profile_picture(
    user_id: str,
    profile_picture: UploadFile = File(..., alias="profilePicture"),
    user: User = Depends(require_role("viewer")),
    db: Session = Depends(get_db),
):
    updated = users.upload_image(db, user_id, _image(profile_picture), "profile", user)
    return serialize_user(updated, user)


@router.delete("/{user_id}/profile-picture", response_model=UserRead)
def delete_profile_picture(
    user_id: str,
    user: User = Depends(require_role("viewer")),
    db: Session = Depends(get_db),
):
    return serialize_user(users.delete_image(db, user_id, "profile", user), user)


@router.post("/{user_id}/background-image", response_model=UserRead)
def upload_background_image(
    user_id: str,
    background_image: UploadFile = File(..., alias="backgroundImage"),
    user: User = Depends(require_role("viewer")),
    db: Session = Depends(get_db),
):
    updated = users.upload_image(
        db, user_id, _image(background_image), "background", user
    )
    return serialize_user(updated, user)


@router.delete("/{user_id}/background-image", response_model=UserRead)
def delete_background_image(
    user_id: str,
    user: User = Depends(require_role("viewer")),
    db: Session = Depends(get_db),
):
    return serialize_user(users.delete_image(db, user_id, "background", user), user)
