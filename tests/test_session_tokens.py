from __future__ import annotations

import base64
import json
from datetime import datetime, timedelta, timezone

from pagent.infrastructure.security.token_service import JwtSessionTokenService


NOW = datetime(2025, 1, 1, tzinfo=timezone.utc)
WALLET = "0xAbC0000000000000000000000000000000000001"


def _service(**overrides) -> JwtSessionTokenService:
    payload = {"jwt_secret": "test-secret", "issuer": "pagent-credits", "ttl_minutes": 60}
    payload.update(overrides)
    return JwtSessionTokenService(**payload)


def test_issued_token_validates_with_claims():
    service = _service()
    token, expires_at = service.issue_session_token(
        wallet_address=WALLET, user_id="user-1", role="authenticated", now=NOW
    )

    claims = service.validate_session_token(token=token, now=NOW + timedelta(minutes=5))

    assert expires_at == NOW + timedelta(minutes=60)
    assert claims is not None
    assert claims.user_id == "user-1"
    assert claims.wallet_address == WALLET.lower()
    assert claims.role == "authenticated"
    assert claims.expires_at == expires_at


def test_token_is_rejected_at_expiry():
    service = _service()
    token, expires_at = service.issue_session_token(
        wallet_address=WALLET, user_id="user-1", role="authenticated", now=NOW
    )

    assert service.validate_session_token(token=token, now=expires_at) is None


def test_token_signed_with_other_secret_is_rejected():
    token, _ = _service(jwt_secret="other").issue_session_token(
        wallet_address=WALLET, user_id="user-1", role="authenticated", now=NOW
    )

    assert _service().validate_session_token(token=token, now=NOW) is None


def test_token_from_other_issuer_is_rejected():
    token, _ = _service(issuer="someone-else").issue_session_token(
        wallet_address=WALLET, user_id="user-1", role="authenticated", now=NOW
    )

    assert _service().validate_session_token(token=token, now=NOW) is None


def test_tampered_payload_is_rejected():
    service = _service()
    token, _ = service.issue_session_token(
        wallet_address=WALLET, user_id="user-1", role="authenticated", now=NOW
    )
    header, payload, signature = token.split(".")
    claims = json.loads(base64.urlsafe_b64decode(payload + "=" * (-len(payload) % 4)))
    claims["sub"] = "user-2"
    forged = base64.urlsafe_b64encode(json.dumps(claims).encode()).decode().rstrip("=")

    assert service.validate_session_token(token=f"{header}.{forged}.{signature}", now=NOW) is None


def test_padded_segments_are_accepted():
    service = _service()
    token, _ = service.issue_session_token(
        wallet_address=WALLET, user_id="user-1", role="authenticated", now=NOW
    )
    padded = ".".join(part + "=" * (-len(part) % 4) for part in token.split("."))

    claims = service.validate_session_token(token=padded, now=NOW)

    assert claims is not None
    assert claims.user_id == "user-1"


def test_malformed_tokens_are_rejected():
    service = _service()

    assert service.validate_session_token(token="not-a-jwt", now=NOW) is None
    assert service.validate_session_token(token="a..c", now=NOW) is None
