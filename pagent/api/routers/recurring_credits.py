from __future__ import annotations

from fastapi import APIRouter, Depends

from pagent.api.deps import (
    get_preview_recurring_credits_use_case,
    get_sweep_recurring_credits_use_case,
    require_admin_key,
)
from pagent.api.schemas.envelope import recurring_config_response
from pagent.api.schemas.recurring_credits import (
    RecurringPreviewData,
    RecurringPreviewResponse,
    SweepData,
    SweepItemResponse,
    SweepResponse,
)
from pagent.application.use_cases.common import utcnow
from pagent.application.use_cases.recurring_credits import (
    PreviewRecurringCreditsUseCase,
    SweepRecurringCreditsUseCase,
)


router = APIRouter(dependencies=[Depends(require_admin_key)])


@router.post("/process-recurring-credits", response_model=SweepResponse)
def process_recurring_credits(
    use_case: SweepRecurringCreditsUseCase = Depends(get_sweep_recurring_credits_use_case),
):
    output = use_case.execute(now=utcnow())
    return SweepResponse(
        data=SweepData(
            processed=output.processed,
            successful=output.successful,
            errors=output.errors,
            results=[
                SweepItemResponse(
                    config_id=item.config_id,
                    user_id=item.user_id,
                    success=item.success,
                    amount=item.amount,
                    permission_id=item.permission_id,
                    assignment_id=item.assignment_id,
                    next_assignment=item.next_assignment,
                    error=item.error,
                )
                for item in output.results
            ],
        ),
        message=f"Processed {output.processed} recurring credits, {output.successful} successful.",
    )


@router.get("/process-recurring-credits", response_model=RecurringPreviewResponse)
def preview_recurring_credits(
    use_case: PreviewRecurringCreditsUseCase = Depends(get_preview_recurring_credits_use_case),
):
    output = use_case.execute(now=utcnow())
    return RecurringPreviewResponse(
        data=RecurringPreviewData(
            total_active=output.total_active,
            due_count=output.due_count,
            upcoming_count=output.upcoming_count,
            due=[recurring_config_response(c) for c in output.due],
            upcoming=[recurring_config_response(c) for c in output.upcoming],
        )
    )
