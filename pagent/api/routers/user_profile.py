from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from pagent.api.deps import (
    get_claim_card_use_case,
    get_current_session,
    get_get_user_profile_use_case,
    get_list_cards_use_case,
    get_update_user_profile_use_case,
)
from pagent.api.schemas.profile import (
    CardResponseData,
    ClaimCardRequest,
    ClaimCardResponse,
    ListCardsResponse,
    UpdateUserProfileRequest,
    UserProfileResponse,
    UserProfileResponseData,
)
from pagent.application.dto.profile import CardOutput, ClaimCardInput, UpdateProfileInput
from pagent.application.dto.siwe import SessionClaims
from pagent.application.use_cases.user_profile import (
    ClaimCardUseCase,
    GetUserProfileUseCase,
    ListCardsUseCase,
    UpdateUserProfileUseCase,
)
from pagent.domain.entities.user import User
from pagent.domain.exceptions import UserNotFoundError, ValidationError, WalletAddressConflictError


router = APIRouter()


def _profile_response(user: User) -> UserProfileResponse:
    return UserProfileResponse(
        data=UserProfileResponseData(
            id=user.id,
            smart_account=user.smart_account,
            eoa_wallet_address=user.eoa_wallet_address,
            card_id=user.card_id,
            is_active=user.is_active,
            metadata=user.metadata,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )
    )


def _card_response(card: CardOutput) -> CardResponseData:
    return CardResponseData(
        card_id=card.card_id,
        user_id=card.user_id,
        initial_limit=card.initial_limit,
        status=card.status,
    )


@router.get("/user-profile", response_model=UserProfileResponse)
def get_user_profile(
    session: SessionClaims = Depends(get_current_session),
    use_case: GetUserProfileUseCase = Depends(get_get_user_profile_use_case),
):
    try:
        user = use_case.execute(user_id=session.user_id)
    except UserNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _profile_response(user)


@router.patch("/user-profile", response_model=UserProfileResponse)
def update_user_profile(
    req: UpdateUserProfileRequest,
    session: SessionClaims = Depends(get_current_session),
    use_case: UpdateUserProfileUseCase = Depends(get_update_user_profile_use_case),
):
    try:
        user = use_case.execute(
            UpdateProfileInput(
                user_id=session.user_id,
                metadata=req.metadata,
                eoa_wallet_address=req.eoa_wallet_address,
            )
        )
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except UserNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except WalletAddressConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _profile_response(user)


@router.get("/cards", response_model=ListCardsResponse)
def list_cards(
    session: SessionClaims = Depends(get_current_session),
    use_case: ListCardsUseCase = Depends(get_list_cards_use_case),
):
    try:
        cards = use_case.execute(user_id=session.user_id)
    except UserNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return ListCardsResponse(cards=[_card_response(card) for card in cards])


@router.post("/cards", response_model=ClaimCardResponse, status_code=201)
def claim_card(
    req: ClaimCardRequest,
    session: SessionClaims = Depends(get_current_session),
    use_case: ClaimCardUseCase = Depends(get_claim_card_use_case),
):
    try:
        card = use_case.execute(ClaimCardInput(user_id=session.user_id, initial_limit=req.initial_limit))
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except UserNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return ClaimCardResponse(data=_card_response(card))
