from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_role
from app.models.user import User
from app.services import analytics

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("", dependencies=[Depends(require_role("viewer"))])
def get_analytics(db: Session = Depends(get_db)):
    return analytics.get_optimized_analytics(db)


@router.get("/dashboard")
def get_dashboard(
    user: User = Depends(require_role("viewer")),
    db: Session = Depends(get_db),
):
    return analytics.get_user_dashboard_data(db, user)


@router.get("/export", dependencies=[Depends(require_role("viewer"))])
def export_analytics(db: Session = Depends(get_db)):
    return Response(
        content=analytics.export_analytics_csv(db),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="analytics.csv"'},
    )
