from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from .envelope import RecurringConfigResponse


class SweepItemResponse(BaseModel):
    config_id: str
    user_id: str
    success: bool
    amount: float
    permission_id: str | None = None
    assignment_id: str | None = None
    next_assignment: datetime | None = None
    error: str | None = None


class SweepData(BaseModel):
    processed: int
    successful: int
    errors: list[str]
    results: list[SweepItemResponse]


class SweepResponse(BaseModel):
    success: bool = True
    data: SweepData
    message: str


class RecurringPreviewData(BaseModel):
    total_active: int
    due_count: int
    upcoming_count: int
    due: list[RecurringConfigResponse]
    upcoming: list[RecurringConfigResponse]


class RecurringPreviewResponse(BaseModel):
    success: bool = True
    data: RecurringPreviewData
