from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from pagent.api.deps import get_current_session, get_process_cashback_use_case, get_rewards_summary_use_case
from pagent.api.schemas.rewards import (
    CashbackEntryResponse,
    ProcessCashbackData,
    ProcessCashbackRequest,
    ProcessCashbackResponse,
    PromoResponse,
    RewardsData,
    RewardsResponse,
)
from pagent.application.dto.rewards import ProcessCashbackInput
from pagent.application.dto.siwe import SessionClaims
from pagent.application.use_cases.rewards import GetRewardsSummaryUseCase, ProcessCashbackUseCase
from pagent.domain.exceptions import ReceiptNotFoundError, ValidationError


router = APIRouter()


@router.get("/rewards", response_model=RewardsResponse)
def get_rewards(
    session: SessionClaims = Depends(get_current_session),
    use_case: GetRewardsSummaryUseCase = Depends(get_rewards_summary_use_case),
):
    summary = use_case.execute(user_id=session.user_id)
    return RewardsResponse(
        data=RewardsData(
            balance=summary.balance,
            points=summary.points,
            cashback=[
                CashbackEntryResponse(
                    id=entry.id,
                    transaction_id=entry.transaction_id,
                    amount=entry.amount,
                    percentage=entry.percentage,
                    merchant=entry.merchant,
                    earned_at=entry.earned_at,
                    status=entry.status,
                )
                for entry in summary.cashback
            ],
            promos=[
                PromoResponse(
                    id=promo.id,
                    title=promo.title,
                    description=promo.description,
                    reward_type=promo.reward_type,
                    reward_value=promo.reward_value,
                    conditions=promo.conditions,
                    expires_at=promo.expires_at,
                    status=promo.status,
                )
                for promo in summary.promos
            ],
        )
    )


@router.post("/rewards", response_model=ProcessCashbackResponse)
def process_cashback(
    req: ProcessCashbackRequest,
    session: SessionClaims = Depends(get_current_session),
    use_case: ProcessCashbackUseCase = Depends(get_process_cashback_use_case),
):
    try:
        output = use_case.execute(
            ProcessCashbackInput(
                user_id=session.user_id,
                action=req.action,
                transaction_id=req.transaction_id,
                amount=req.amount,
            )
        )
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ReceiptNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    return ProcessCashbackResponse(
        data=ProcessCashbackData(
            transaction_id=output.transaction_id,
            cashback_amount=output.cashback_amount,
            cashback_percentage=output.cashback_percentage,
            processed_at=output.processed_at,
            status=output.status,
        ),
        message="Cashback already credited." if output.already_credited else "Cashback processed successfully.",
    )
