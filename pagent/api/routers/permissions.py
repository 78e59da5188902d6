from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from pagent.api.deps import (
    ensure_session_owns,
    get_create_permission_use_case,
    get_current_session,
    get_list_permissions_use_case,
    get_revoke_permission_use_case,
)
from pagent.api.schemas.envelope import permission_response
from pagent.api.schemas.permissions import (
    CreatePermissionRequest,
    CreatePermissionResponse,
    ListPermissionsResponse,
    RevokePermissionRequest,
    RevokePermissionResponse,
)
from pagent.application.dto.permissions import (
    CreatePermissionInput,
    PermissionTerms,
    RevokePermissionInput,
)
from pagent.application.dto.siwe import SessionClaims
from pagent.application.use_cases.manage_permissions import (
    CreatePermissionUseCase,
    ListPermissionsUseCase,
    RevokePermissionUseCase,
)
from pagent.domain.exceptions import PermissionNotFoundError, UserNotFoundError, ValidationError


router = APIRouter()


@router.post("/permissions", response_model=CreatePermissionResponse, status_code=201)
def create_permission(
    req: CreatePermissionRequest,
    session: SessionClaims = Depends(get_current_session),
    use_case: CreatePermissionUseCase = Depends(get_create_permission_use_case),
):
    ensure_session_owns(session, req.smart_account)
    try:
        output = use_case.execute(
            CreatePermissionInput(
                smart_account=req.smart_account,
                permission=PermissionTerms(
                    token=req.permission.token,
                    cap=req.permission.cap,
                    period=req.permission.period,
                    start=req.permission.start,
                    end=req.permission.end,
                    spender=req.permission.spender,
                ),
                signature=req.signature,
            )
        )
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return CreatePermissionResponse(permission_id=output.permission_id, user_id=output.user_id)


@router.post("/permissions/revoke", response_model=RevokePermissionResponse)
def revoke_permission(
    req: RevokePermissionRequest,
    session: SessionClaims = Depends(get_current_session),
    use_case: RevokePermissionUseCase = Depends(get_revoke_permission_use_case),
):
    ensure_session_owns(session, req.smart_account)
    try:
        permission = use_case.execute(
            RevokePermissionInput(
                smart_account=req.smart_account,
                permission_id=req.permission_id,
            )
        )
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except (PermissionNotFoundError, UserNotFoundError) as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    return RevokePermissionResponse(permission_id=permission.id, message="Permission revoked.")


@router.get("/permissions", response_model=ListPermissionsResponse)
def list_permissions(
    smart_account: str,
    session: SessionClaims = Depends(get_current_session),
    use_case: ListPermissionsUseCase = Depends(get_list_permissions_use_case),
):
    ensure_session_owns(session, smart_account)
    permissions = use_case.execute(smart_account=smart_account)
    return ListPermissionsResponse(permissions=[permission_response(p) for p in permissions])
