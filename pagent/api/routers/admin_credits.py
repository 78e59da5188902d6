from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from pagent.api.deps import (
    get_assign_credits_use_case,
    get_user_credits_report_use_case,
    require_admin_key,
)
from pagent.api.schemas.admin_credits import (
    AssignCreditsData,
    AssignCreditsRequest,
    AssignCreditsResponse,
    UserCreditsReportData,
    UserCreditsReportResponse,
)
from pagent.api.schemas.envelope import (
    assignment_response,
    permission_response,
    recurring_config_response,
)
from pagent.application.dto.admin_credits import AssignCreditsInput
from pagent.application.use_cases.assign_credits import (
    AssignCreditsUseCase,
    GetUserCreditsReportUseCase,
)
from pagent.domain.exceptions import NoActivePermissionError, UserNotFoundError, ValidationError


router = APIRouter(dependencies=[Depends(require_admin_key)])


@router.post("/admin-credits", response_model=AssignCreditsResponse)
def assign_credits(
    req: AssignCreditsRequest,
    use_case: AssignCreditsUseCase = Depends(get_assign_credits_use_case),
):
    try:
        output = use_case.execute(
            AssignCreditsInput(
                wallet_address=req.user_wallet_address,
                amount=req.amount,
                credit_type=req.credit_type,
                description=req.description,
                period_seconds=req.period_seconds,
            )
        )
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except UserNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except NoActivePermissionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    return AssignCreditsResponse(
        data=AssignCreditsData(
            credit_type=output.credit_type,
            amount=output.amount,
            permission=permission_response(output.permission) if output.permission else None,
            assignment=assignment_response(output.assignment) if output.assignment else None,
            recurring_config=(
                recurring_config_response(output.recurring_config)
                if output.recurring_config
                else None
            ),
        ),
        message=f"Assigned {output.amount} {output.credit_type} credits.",
    )


@router.get("/admin-credits", response_model=UserCreditsReportResponse)
def user_credits_report(
    user_wallet_address: str,
    use_case: GetUserCreditsReportUseCase = Depends(get_user_credits_report_use_case),
):
    try:
        report = use_case.execute(wallet_address=user_wallet_address)
    except UserNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    return UserCreditsReportResponse(
        data=UserCreditsReportData(
            user_id=report.user_id,
            wallet_address=report.wallet_address,
            assignments=[assignment_response(a) for a in report.assignments],
            recurring_configs=[recurring_config_response(c) for c in report.recurring_configs],
        )
    )
