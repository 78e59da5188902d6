from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from pagent.api.deps import (
    get_create_credit_permission_use_case,
    get_current_session,
    get_get_credits_use_case,
)
from pagent.api.schemas.envelope import permission_response, usage_response
from pagent.api.schemas.permissions import (
    CreateCreditPermissionData,
    CreateCreditPermissionRequest,
    CreateCreditPermissionResponse,
    CreditsResponse,
)
from pagent.application.dto.permissions import CreateCreditPermissionInput
from pagent.application.dto.siwe import SessionClaims
from pagent.application.use_cases.credits import CreateCreditPermissionUseCase, GetCreditsUseCase
from pagent.domain.exceptions import ValidationError


router = APIRouter()


@router.get("/credits", response_model=CreditsResponse)
def get_credits(
    session: SessionClaims = Depends(get_current_session),
    use_case: GetCreditsUseCase = Depends(get_get_credits_use_case),
):
    overview = use_case.execute(user_id=session.user_id)
    return CreditsResponse(
        permissions=[permission_response(p) for p in overview.permissions],
        active_permission=(
            permission_response(overview.active_permission) if overview.active_permission else None
        ),
        credit_limit=overview.credit_limit,
        used_amount=overview.used_amount,
        remaining_amount=overview.remaining_amount,
    )


@router.post("/credits", response_model=CreateCreditPermissionResponse, status_code=201)
def create_credit_permission(
    req: CreateCreditPermissionRequest,
    session: SessionClaims = Depends(get_current_session),
    use_case: CreateCreditPermissionUseCase = Depends(get_create_credit_permission_use_case),
):
    try:
        output = use_case.execute(
            CreateCreditPermissionInput(
                user_id=session.user_id,
                token_address=req.token_address,
                cap_amount=req.cap_amount,
                period_seconds=req.period_seconds,
                spender_address=req.spender_address,
                permission_signature=req.permission_signature,
                mode=req.mode,
            )
        )
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    verb = "topped up" if output.mode == "topup" else "set"
    return CreateCreditPermissionResponse(
        data=CreateCreditPermissionData(
            permission=permission_response(output.permission),
            usage=usage_response(output.usage),
            mode=output.mode,
            final_amount=output.permission.cap_amount,
            metadata=output.permission.metadata,
        ),
        message=f"Credits {verb} to {output.permission.cap_amount}.",
    )
