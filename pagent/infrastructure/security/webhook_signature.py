from __future__ import annotations

import hashlib
import hmac
import logging
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from pagent.application.dto.settlement import CardWebhookEvent
from pagent.application.ports.card_webhook_port import CardWebhookVerifierPort
from pagent.domain.exceptions import ValidationError, WebhookSignatureError


logger = logging.getLogger(__name__)

SIGNATURE_PREFIX = "sha256="


class CardWebhookPayload(BaseModel):
    card_id: str = Field(..., min_length=1)
    auth_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    merchant: str = Field(..., min_length=1)
    timestamp: str | int | float
    status: Literal["authorized", "declined"]
    metadata: dict[str, Any] | None = None


class HmacCardWebhookVerifier(CardWebhookVerifierPort):
    def __init__(self, *, webhook_secret: str):
        self._webhook_secret = webhook_secret.encode("utf-8")

    def verify_webhook(self, *, signature: str | None, payload: bytes) -> CardWebhookEvent:
        if not signature:
            raise WebhookSignatureError("Missing webhook signature.")

        presented = signature.strip()
        if presented.lower().startswith(SIGNATURE_PREFIX):
            presented = presented[len(SIGNATURE_PREFIX):]
        expected = hmac.new(self._webhook_secret, payload, hashlib.sha256).hexdigest()
        if not hmac.compare_digest(expected, presented.lower()):
            logger.warning("card_webhook: invalid signature bytes=%s", len(payload))
            raise WebhookSignatureError("Invalid webhook signature.")

        try:
            body = CardWebhookPayload.model_validate_json(payload)
        except PydanticValidationError as exc:
            raise ValidationError(f"Invalid webhook payload: {exc.error_count()} error(s).") from exc

        return CardWebhookEvent(
            card_id=body.card_id,
            auth_id=body.auth_id,
            amount=body.amount,
            merchant=body.merchant,
            timestamp=str(body.timestamp),
            status=body.status,
            metadata=body.metadata or {},
        )
