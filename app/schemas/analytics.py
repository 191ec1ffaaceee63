from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.docman import ChartDataSource, ChartType


class CustomChartBase(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str = ""
    chart_type: ChartType
    data_source: ChartDataSource
    x_axis_field: str = ""
    y_axis_field: str = ""
    group_by_field: str = ""
    filters: dict[str, Any] = Field(default_factory=dict)
    color_palette: list[str] = Field(default_factory=list)
    is_public: bool = False


class CustomChartCreate(CustomChartBase):
    pass


class CustomChartUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=200)
    description: str | None = None
    chart_type: ChartType | None = None
    data_source: ChartDataSource | None = None
    x_axis_field: str | None = None
    y_axis_field: str | None = None
    group_by_field: str | None = None
    filters: dict[str, Any] | None = None
    color_palette: list[str] | None = None
    is_public: bool | None = None


class CustomChartRead(CustomChartBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    created_by_id: UUID
    created_at: datetime
    updated_at: datetime


class ChartPoint(BaseModel):
    label: str
    value: int


class ChartDataResponse(BaseModel):
    chart_id: UUID
    chart_type: ChartType
    data_source: ChartDataSource
    group_by: str
    data: list[ChartPoint]
