from __future__ import annotations

import hashlib
import hmac
import json
from decimal import Decimal

import pytest

from pagent.domain.exceptions import ValidationError, WebhookSignatureError
from pagent.infrastructure.security.webhook_signature import HmacCardWebhookVerifier


SECRET = "whsec_test"


def _body(**overrides) -> bytes:
    payload = {
        "card_id": "card_1",
        "auth_id": "auth_1",
        "amount": "12.50",
        "merchant": "Coffee Shop",
        "timestamp": "2025-01-01T10:00:00Z",
        "status": "authorized",
    }
    payload.update(overrides)
    return json.dumps(payload).encode("utf-8")


def _sign(body: bytes) -> str:
    return hmac.new(SECRET.encode("utf-8"), body, hashlib.sha256).hexdigest()


def test_valid_signature_yields_event():
    body = _body(metadata={"mcc": "5814"})

    event = HmacCardWebhookVerifier(webhook_secret=SECRET).verify_webhook(signature=_sign(body), payload=body)

    assert event.card_id == "card_1"
    assert event.amount == Decimal("12.50")
    assert event.status == "authorized"
    assert event.metadata == {"mcc": "5814"}


def test_prefixed_signature_is_accepted():
    body = _body()

    event = HmacCardWebhookVerifier(webhook_secret=SECRET).verify_webhook(
        signature=f"sha256={_sign(body)}", payload=body
    )

    assert event.auth_id == "auth_1"


def test_missing_signature_is_rejected():
    with pytest.raises(WebhookSignatureError):
        HmacCardWebhookVerifier(webhook_secret=SECRET).verify_webhook(signature=None, payload=_body())


def test_signature_over_other_body_is_rejected():
    body = _body()
    with pytest.raises(WebhookSignatureError):
        HmacCardWebhookVerifier(webhook_secret=SECRET).verify_webhook(
            signature=_sign(body), payload=_body(amount="999")
        )


def test_signed_but_invalid_payload_is_validation_error():
    body = _body(amount="-5")
    with pytest.raises(ValidationError):
        HmacCardWebhookVerifier(webhook_secret=SECRET).verify_webhook(signature=_sign(body), payload=body)
