from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_role
from app.schemas.common import ListResponse
from app.schemas.docman import CategoryCreate, CategoryRead, CategoryUpdate
from app.services.category import categories

router = APIRouter(prefix="/categories", tags=["categories"])


@router.get(
    "",
    response_model=ListResponse[CategoryRead],
    dependencies=[Depends(require_role("viewer"))],
)
def list_categories(
    category_type: str | None = Query(default=None, alias="type"),
    order_by: str = Query(default="name"),
    order_dir: str = Query(default="asc", pattern="^(asc|desc)$"),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return categories.list_response(
        db, category_type, order_by, order_dir, limit, offset
    )


@router.post(
    "",
    response_model=CategoryRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_role("admin"))],
)
def create_category(payload: CategoryCreate, db: Session = Depends(get_db)):
    return categories.create(db, payload)


@router.get(
    "/{category_id}",
    response_model=CategoryRead,
    dependencies=[Depends(require_role("viewer"))],
)
def get_category(category_id: str, db: Session = Depends(get_db)):
    return categories.get(db, category_id)


@router.put(
    "/{category_id}",
    response_model=CategoryRead,
    dependencies=[Depends(require_role("admin"))],
)
def update_category(
    category_id: str, payload: CategoryUpdate, db: Session = Depends(get_db)
):
    return categories.update(db, category_id, payload)


@router.delete(
    "/{category_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_role("admin"))],
)
def delete_category(category_id: str, db: Session = Depends(get_db)):
    categories.delete(db, category_id)
