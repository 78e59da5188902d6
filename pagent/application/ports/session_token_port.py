from __future__ import annotations

from datetime import datetime
from typing import Protocol

from pagent.application.dto.siwe import SessionClaims


class SessionTokenPort(Protocol):
    def issue_session_token(
        self,
        *,
        wallet_address: str,
        user_id: str,
        role: str,
        now: datetime,
    ) -> tuple[str, datetime]:
        ...

    def validate_session_token(self, *, token: str, now: datetime) -> SessionClaims | None:
        ...
