from __future__ import annotations

from typing import Protocol

from pagent.application.dto.settlement import CardWebhookEvent


class CardWebhookVerifierPort(Protocol):
    def verify_webhook(self, *, signature: str | None, payload: bytes) -> CardWebhookEvent:
        ...
