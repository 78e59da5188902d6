from __future__ import annotations

import logging
from decimal import Decimal

from pagent.application.dto.settlement import (
    CardWebhookEvent,
    CardWebhookInput,
    CardWebhookOutcome,
    SettlementFailureReason,
    SpendRequest,
)
from pagent.application.ports.card_webhook_port import CardWebhookVerifierPort
from pagent.application.ports.ledger_port import LedgerPort
from pagent.application.ports.spend_executor_port import SpendExecutorPort
from pagent.application.ports.user_directory_port import UserDirectoryPort
from pagent.domain.entities.receipt import Receipt
from pagent.domain.exceptions import ChargeExecutionError, DuplicateEventError, UserNotFoundError

from .common import new_id, utcnow


logger = logging.getLogger(__name__)


class ProcessCardWebhookUseCase:
    """Settles card authorizations against the user's active spend permission.

    Every receipt transition is committed before the next step runs, so a
    crash mid-flow leaves a pending or failed receipt behind rather than
    nothing. A redelivered auth id is a no-op.
    """

    def __init__(
        self,
        *,
        webhook_verifier: CardWebhookVerifierPort,
        user_directory_port: UserDirectoryPort,
        ledger_port: LedgerPort,
        spend_executor: SpendExecutorPort,
    ):
        self._webhook_verifier = webhook_verifier
        self._user_directory_port = user_directory_port
        self._ledger_port = ledger_port
        self._spend_executor = spend_executor

    def execute(self, command: CardWebhookInput) -> CardWebhookOutcome:
        event = self._webhook_verifier.verify_webhook(signature=command.signature, payload=command.payload)
        return self.handle(event)

    def handle(self, event: CardWebhookEvent) -> CardWebhookOutcome:
        user = self._user_directory_port.get_user_by_card_id(card_id=event.card_id)
        if user is None:
            raise UserNotFoundError("No user found for card_id.")

        if self._ledger_port.get_receipt_by_auth_id(auth_id=event.auth_id) is not None:
            return self._duplicate(event)

        metadata = {**event.metadata, "card_timestamp": event.timestamp}
        if event.status == "declined":
            metadata["decline_reason"] = "card_declined"

        try:
            receipt = self._ledger_port.create_receipt(
                receipt_id=new_id(),
                user_id=user.id,
                card_id=event.card_id,
                auth_id=event.auth_id,
                amount=event.amount,
                merchant=event.merchant,
                status="failed" if event.status == "declined" else "pending",
                metadata=metadata,
                created_at=utcnow(),
            )
        except DuplicateEventError:
            return self._duplicate(event)

        if event.status == "declined":
            logger.info("card_webhook: declined recorded auth_id=%s", event.auth_id)
            return CardWebhookOutcome(
                status="declined_recorded",
                auth_id=event.auth_id,
                receipt_id=receipt.id,
            )

        now = utcnow()
        permission = self._ledger_port.get_active_permission(user_id=user.id, now=now)
        if permission is None:
            return self._fail(receipt, reason="NoActivePermission")

        usage = self._ledger_port.get_usage_for_permission(permission_id=permission.id)
        if usage is None:
            usage = self._ledger_port.create_usage(
                usage_id=new_id(),
                user_id=permission.user_id,
                permission_id=permission.id,
                period_start=permission.start_timestamp,
                period_end=permission.end_timestamp,
                total_limit=permission.cap_amount,
                used_amount=Decimal("0"),
                created_at=now,
            )

        # Conditional on the remaining limit; released again if the charge fails.
        reserved = self._ledger_port.reserve_usage(usage_id=usage.id, amount=event.amount, updated_at=now)
        if reserved is None:
            current = self._ledger_port.get_usage_for_permission(permission_id=permission.id) or usage
            return self._fail(
                receipt,
                reason="CreditLimitExceeded",
                extra={
                    "permission_id": permission.id,
                    "available": str(current.total_limit - current.used_amount),
                },
            )

        try:
            result = self._spend_executor.execute_spend(
                request=SpendRequest(
                    permission_id=permission.id,
                    user_id=user.id,
                    token_address=permission.token_address,
                    spender_address=permission.spender_address,
                    permission_signature=permission.permission_signature,
                    amount=event.amount,
                    auth_id=event.auth_id,
                    merchant=event.merchant,
                )
            )
        except ChargeExecutionError as exc:
            self._ledger_port.release_usage(usage_id=usage.id, amount=event.amount, updated_at=utcnow())
            return self._fail(
                receipt,
                reason="ChargeExecutionFailed",
                extra={"permission_id": permission.id, "error": str(exc)},
            )

        completed = self._ledger_port.update_receipt(
            receipt_id=receipt.id,
            status="completed",
            chain_tx=result.tx_hash,
            metadata={
                **receipt.metadata,
                "permission_id": permission.id,
                "gas_used": result.gas_used,
                "block_number": result.block_number,
            },
            updated_at=utcnow(),
        )
        logger.info(
            "card_webhook: charge completed auth_id=%s permission_id=%s tx=%s",
            event.auth_id,
            permission.id,
            result.tx_hash,
        )
        return CardWebhookOutcome(
            status="completed",
            auth_id=event.auth_id,
            receipt_id=completed.id,
            tx_hash=result.tx_hash,
        )

    def _fail(
        self,
        receipt: Receipt,
        *,
        reason: SettlementFailureReason,
        extra: dict | None = None,
    ) -> CardWebhookOutcome:
        self._ledger_port.update_receipt(
            receipt_id=receipt.id,
            status="failed",
            chain_tx=None,
            metadata={**receipt.metadata, **(extra or {}), "failure_reason": reason},
            updated_at=utcnow(),
        )
        logger.warning("card_webhook: charge failed auth_id=%s reason=%s", receipt.auth_id, reason)
        return CardWebhookOutcome(
            status="failed",
            auth_id=receipt.auth_id,
            receipt_id=receipt.id,
            reason=reason,
        )

    @staticmethod
    def _duplicate(event: CardWebhookEvent) -> CardWebhookOutcome:
        logger.info("card_webhook: duplicate auth_id=%s", event.auth_id)
        return CardWebhookOutcome(status="duplicate", auth_id=event.auth_id)
