from __future__ import annotations

from pydantic import BaseModel

from .envelope import ReceiptResponse


class ReceiptsPaginationResponse(BaseModel):
    limit: int
    offset: int
    total: int
    has_more: bool


class ReceiptsSummaryResponse(BaseModel):
    total_count: int
    total_amount: float
    completed_count: int
    completed_amount: float
    pending_count: int
    pending_amount: float
    failed_count: int


class ListReceiptsResponse(BaseModel):
    success: bool = True
    receipts: list[ReceiptResponse]
    pagination: ReceiptsPaginationResponse
    summary: ReceiptsSummaryResponse
