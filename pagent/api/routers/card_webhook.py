from __future__ import annotations

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from pagent.api.deps import get_process_card_webhook_use_case
from pagent.api.schemas.settlement import CardWebhookResponse
from pagent.application.dto.settlement import CardWebhookInput
from pagent.application.use_cases.process_card_webhook import ProcessCardWebhookUseCase
from pagent.domain.exceptions import UserNotFoundError, ValidationError, WebhookSignatureError


router = APIRouter()

_OUTCOME_MESSAGES = {
    "duplicate": "Event already processed.",
    "declined_recorded": "Declined authorization recorded.",
    "completed": "Charge settled.",
    "failed": "Charge failed.",
}


@router.post("/card-webhook", response_model=CardWebhookResponse)
async def card_webhook(
    request: Request,
    x_webhook_signature: str | None = Header(default=None),
    use_case: ProcessCardWebhookUseCase = Depends(get_process_card_webhook_use_case),
):
    payload = await request.body()
    try:
        # Settlement blocks on the store and the relayer.
        outcome = await run_in_threadpool(
            use_case.execute, CardWebhookInput(signature=x_webhook_signature, payload=payload)
        )
    except WebhookSignatureError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except UserNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    return CardWebhookResponse(
        status=outcome.status,
        auth_id=outcome.auth_id,
        receipt_id=outcome.receipt_id,
        tx_hash=outcome.tx_hash,
        reason=outcome.reason,
        message=_OUTCOME_MESSAGES[outcome.status],
    )
