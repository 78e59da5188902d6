from __future__ import annotations

import logging
from datetime import datetime, timedelta
from decimal import Decimal

from pagent.application.dto.recurring_credits import (
    RecurringPreviewOutput,
    SweepItemResult,
    SweepOutput,
)
from pagent.application.ports.ledger_port import LedgerPort
from pagent.domain.entities.credit import RecurringCreditConfig
from pagent.domain.exceptions import DomainError

from .common import (
    DEFAULT_TOKEN_ADDRESS,
    PLACEHOLDER_PERMISSION_SIGNATURE,
    PLACEHOLDER_SPENDER_ADDRESS,
    new_id,
)


logger = logging.getLogger(__name__)

PREVIEW_DUE_LIMIT = 10
PREVIEW_UPCOMING_LIMIT = 5


class SweepRecurringCreditsUseCase:
    """Grants every due recurring credit config a fresh permission.

    The next assignment is scheduled from the sweep time, so a late sweep
    pushes the following one back by the same delay.
    """

    def __init__(
        self,
        *,
        ledger_port: LedgerPort,
        token_address: str = DEFAULT_TOKEN_ADDRESS,
        spender_address: str = PLACEHOLDER_SPENDER_ADDRESS,
        permission_signature: str = PLACEHOLDER_PERMISSION_SIGNATURE,
    ):
        self._ledger_port = ledger_port
        self._token_address = token_address.lower()
        self._spender_address = spender_address.lower()
        self._permission_signature = permission_signature

    def execute(self, *, now: datetime) -> SweepOutput:
        due = [
            config
            for config in self._ledger_port.list_active_recurring_configs()
            if config.next_assignment <= now
        ]
        results: list[SweepItemResult] = []
        errors: list[str] = []

        for config in due:
            try:
                result = self._ledger_port.execute_in_transaction(
                    lambda ledger, config=config: self._assign(ledger, config, now)
                )
            except Exception as exc:
                logger.exception("recurring_credits: assignment failed config_id=%s", config.id)
                detail = str(exc) if isinstance(exc, DomainError) else "Failed to assign recurring credits."
                errors.append(f"{config.id}: {detail}")
                result = SweepItemResult(
                    config_id=config.id,
                    user_id=config.user_id,
                    success=False,
                    amount=config.amount,
                    error=detail,
                )
            results.append(result)

        successful = sum(1 for result in results if result.success)
        logger.info(
            "recurring_credits: sweep finished processed=%s successful=%s failed=%s",
            len(results),
            successful,
            len(errors),
        )
        return SweepOutput(processed=len(results), successful=successful, errors=errors, results=results)

    def _assign(self, ledger: LedgerPort, config: RecurringCreditConfig, now: datetime) -> SweepItemResult:
        end = now + timedelta(seconds=config.period_seconds)
        ledger.revoke_active_permissions(user_id=config.user_id, revoked_at=now)
        permission = ledger.create_permission(
            permission_id=new_id(),
            user_id=config.user_id,
            token_address=self._token_address,
            cap_amount=config.amount,
            period_seconds=config.period_seconds,
            start_timestamp=now,
            end_timestamp=end,
            spender_address=self._spender_address,
            permission_signature=self._permission_signature,
            metadata={"source": "recurring_credit", "recurring_config_id": config.id},
            created_at=now,
        )
        ledger.create_usage(
            usage_id=new_id(),
            user_id=config.user_id,
            permission_id=permission.id,
            period_start=now,
            period_end=end,
            total_limit=config.amount,
            used_amount=Decimal("0"),
            created_at=now,
        )
        assignment = ledger.create_assignment(
            assignment_id=new_id(),
            user_id=config.user_id,
            amount=config.amount,
            credit_type="recurring",
            assigned_at=now,
            expires_at=end,
            description=f"Recurring credit assignment: {config.description}",
            metadata={
                "recurring_config_id": config.id,
                "permission_id": permission.id,
                "is_recurring": True,
                "period_seconds": config.period_seconds,
            },
        )
        next_assignment = now + timedelta(seconds=config.period_seconds)
        ledger.update_recurring_next_assignment(
            config_id=config.id,
            next_assignment=next_assignment,
            updated_at=now,
        )
        return SweepItemResult(
            config_id=config.id,
            user_id=config.user_id,
            success=True,
            amount=config.amount,
            permission_id=permission.id,
            assignment_id=assignment.id,
            next_assignment=next_assignment,
        )


class PreviewRecurringCreditsUseCase:
    def __init__(self, *, ledger_port: LedgerPort):
        self._ledger_port = ledger_port

    def execute(self, *, now: datetime) -> RecurringPreviewOutput:
        active = sorted(
            self._ledger_port.list_active_recurring_configs(),
            key=lambda config: config.next_assignment,
        )
        due = [config for config in active if config.next_assignment <= now]
        upcoming = [config for config in active if config.next_assignment > now]
        return RecurringPreviewOutput(
            total_active=len(active),
            due_count=len(due),
            upcoming_count=len(upcoming),
            due=due[:PREVIEW_DUE_LIMIT],
            upcoming=upcoming[:PREVIEW_UPCOMING_LIMIT],
        )
