from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import jwt

from pagent.application.dto.siwe import SessionClaims
from pagent.application.ports.session_token_port import SessionTokenPort


logger = logging.getLogger(__name__)

SESSION_ALGORITHM = "HS256"


class JwtSessionTokenService(SessionTokenPort):
    def __init__(
        self,
        *,
        jwt_secret: str,
        issuer: str,
        ttl_minutes: int,
    ):
        self._jwt_secret = jwt_secret
        self._issuer = issuer
        self._ttl_minutes = ttl_minutes

    def issue_session_token(
        self,
        *,
        wallet_address: str,
        user_id: str,
        role: str,
        now: datetime,
    ) -> tuple[str, datetime]:
        exp = now + timedelta(minutes=self._ttl_minutes)
        payload = {
            "wallet_address": wallet_address.lower(),
            "sub": user_id,
            "role": role,
            "iat": int(now.timestamp()),
            "exp": int(exp.timestamp()),
            "iss": self._issuer,
        }
        token = jwt.encode(payload, self._jwt_secret, algorithm=SESSION_ALGORITHM)
        return token, datetime.fromtimestamp(payload["exp"], tz=timezone.utc)

    def validate_session_token(self, *, token: str, now: datetime) -> SessionClaims | None:
        parts = token.strip().split(".")
        if len(parts) != 3 or not all(parts):
            return None
        # Some clients re-pad base64url segments; the signature covers the unpadded form.
        normalized = ".".join(part.rstrip("=") for part in parts)

        try:
            payload = jwt.decode(
                normalized,
                self._jwt_secret,
                algorithms=[SESSION_ALGORITHM],
                issuer=self._issuer,
                options={"verify_exp": False, "require": ["exp", "sub", "iss"]},
            )
        except jwt.PyJWTError as exc:
            logger.info("session_token: rejected error=%s", exc.__class__.__name__)
            return None

        exp = payload.get("exp")
        if not isinstance(exp, (int, float)) or exp <= now.timestamp():
            return None

        user_id = payload.get("sub")
        wallet_address = payload.get("wallet_address")
        if not isinstance(user_id, str) or not user_id:
            return None
        if not isinstance(wallet_address, str) or not wallet_address:
            return None

        return SessionClaims(
            wallet_address=wallet_address,
            user_id=user_id,
            role=str(payload.get("role") or ""),
            expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
        )
