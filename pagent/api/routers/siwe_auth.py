from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response

from pagent.api.deps import get_login_siwe_use_case
from pagent.api.schemas.siwe import SiweAuthRequest, SiweAuthResponse, SiweAuthUser
from pagent.application.dto.siwe import LoginSiweInput
from pagent.application.use_cases.login_siwe import LoginSiweUseCase
from pagent.domain.exceptions import (
    MalformedMessageError,
    SiweAuthenticationError,
    UserInactiveError,
    ValidationError,
    WalletAddressConflictError,
)


router = APIRouter()


@router.post("/siwe-auth", response_model=SiweAuthResponse)
def siwe_auth(
    req: SiweAuthRequest,
    response: Response,
    use_case: LoginSiweUseCase = Depends(get_login_siwe_use_case),
):
    try:
        output = use_case.execute(
            LoginSiweInput(
                message=req.message,
                signature=req.signature,
                timestamp=req.timestamp,
                client_info=req.client_info,
            )
        )
    except (MalformedMessageError, ValidationError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except SiweAuthenticationError as exc:
        raise HTTPException(status_code=401, detail=exc.reason) from exc
    except UserInactiveError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    except WalletAddressConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    response.status_code = 201 if output.is_new_user else 200
    return SiweAuthResponse(
        token=output.token,
        expires_at=output.expires_at,
        user=SiweAuthUser(
            id=output.user_id,
            address=output.address,
            is_new_user=output.is_new_user,
        ),
    )
