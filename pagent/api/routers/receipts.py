from __future__ import annotations

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException

from pagent.api.deps import ensure_session_owns, get_current_session, get_list_receipts_use_case
from pagent.api.schemas.envelope import receipt_response
from pagent.api.schemas.receipts import (
    ListReceiptsResponse,
    ReceiptsPaginationResponse,
    ReceiptsSummaryResponse,
)
from pagent.application.dto.receipts import ListReceiptsInput, ReceiptFilters
from pagent.application.dto.siwe import SessionClaims
from pagent.application.use_cases.list_receipts import ListReceiptsUseCase
from pagent.domain.exceptions import ValidationError


router = APIRouter()


@router.get("/receipts", response_model=ListReceiptsResponse)
def list_receipts(
    smart_account: str | None = None,
    status: Literal["pending", "completed", "failed"] | None = None,
    merchant: str | None = None,
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    limit: int | None = None,
    offset: int | None = None,
    session: SessionClaims = Depends(get_current_session),
    use_case: ListReceiptsUseCase = Depends(get_list_receipts_use_case),
):
    ensure_session_owns(session, smart_account)
    try:
        output = use_case.execute(
            ListReceiptsInput(
                user_id=session.user_id,
                filters=ReceiptFilters(
                    status=status,
                    merchant=merchant,
                    from_date=from_date,
                    to_date=to_date,
                ),
                limit=limit,
                offset=offset,
            )
        )
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    pagination = output.pagination
    summary = output.summary
    return ListReceiptsResponse(
        receipts=[receipt_response(r) for r in output.receipts],
        pagination=ReceiptsPaginationResponse(
            limit=pagination.limit,
            offset=pagination.offset,
            total=pagination.total,
            has_more=pagination.has_more,
        ),
        summary=ReceiptsSummaryResponse(
            total_count=summary.total_count,
            total_amount=summary.total_amount,
            completed_count=summary.completed_count,
            completed_amount=summary.completed_amount,
            pending_count=summary.pending_count,
            pending_amount=summary.pending_amount,
            failed_count=summary.failed_count,
        ),
    )
