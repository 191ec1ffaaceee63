from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_role
from app.models.user import User
from app.schemas.analytics import (
    ChartDataResponse,
    CustomChartCreate,
    CustomChartRead,
    CustomChartUpdate,
)
from app.services.chart import charts

router = APIRouter(prefix="/charts", tags=["charts"])


@router.get("", response_model=list[CustomChartRead])
def list_charts(
    user: User = Depends(require_role("viewer")), db: Session = Depends(get_db)
):
    return charts.list(db, user)


@router.get("/{chart_id}", response_model=CustomChartRead)
def get_chart(
    chart_id: str,
    user: User = Depends(require_role("viewer")),
    db: Session = Depends(get_db),
):
    return charts.get(db, chart_id, user)


@router.get("/{chart_id}/data", response_model=ChartDataResponse)
def get_chart_data(
    chart_id: str,
    user: User = Depends(require_role("viewer")),
    db: Session = Depends(get_db),
):
    return charts.data(db, chart_id, user)


@router.post("", response_model=CustomChartRead, status_code=status.HTTP_201_CREATED)
def create_chart(
    payload: CustomChartCreate,
    user: User = Depends(require_role("editor")),
    db: Session = Depends(get_db),
):
    return charts.create(db, payload, user)


@router.put("/{chart_id}", response_model=CustomChartRead)
def update_chart(
    chart_id: str,
    payload: CustomChartUpdate,
    user: User = Depends(require_role("editor")),
    db: Session = Depends(get_db),
):
    return charts.update(db, chart_id, payload, user)


@router.delete("/{chart_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_chart(
    chart_id: str,
    user: User = Depends(require_role("editor")),
    db: Session = Depends(get_db),
):
    charts.delete(db, chart_id, user)
