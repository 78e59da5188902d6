from __future__ import annotations

import logging
from datetime import timedelta
from decimal import Decimal

from pagent.application.dto.permissions import (
    CreateCreditPermissionInput,
    CreateCreditPermissionOutput,
    CreditsOverview,
)
from pagent.application.ports.ledger_port import LedgerPort
from pagent.domain.exceptions import ValidationError

from .common import new_id, normalize_address, utcnow


logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class GetCreditsUseCase:
    def __init__(self, *, ledger_port: LedgerPort):
        self._ledger_port = ledger_port

    def execute(self, *, user_id: str) -> CreditsOverview:
        now = utcnow()
        permissions = self._ledger_port.list_permissions(user_id=user_id)
        active = self._ledger_port.get_active_permission(user_id=user_id, now=now)
        usage = None
        if active is not None:
            usage = self._ledger_port.get_usage_for_permission(permission_id=active.id)

        if usage is not None:
            credit_limit = usage.total_limit
            used_amount = usage.used_amount
        elif active is not None:
            credit_limit = active.cap_amount
            used_amount = ZERO
        else:
            credit_limit = ZERO
            used_amount = ZERO

        return CreditsOverview(
            permissions=permissions,
            active_permission=active,
            usage=usage,
            credit_limit=credit_limit,
            used_amount=used_amount,
            remaining_amount=max(credit_limit - used_amount, ZERO),
        )


class CreateCreditPermissionUseCase:
    """Replaces the user's active permission with a freshly signed one.

    ``recurring`` resets the balance to the requested amount. ``topup`` adds the
    requested amount to what is left on the current permission; the new usage
    row starts at zero and the previous usage is kept in metadata.
    """

    def __init__(self, *, ledger_port: LedgerPort):
        self._ledger_port = ledger_port

    def execute(self, command: CreateCreditPermissionInput) -> CreateCreditPermissionOutput:
        missing = [
            name
            for name, value in (
                ("tokenAddress", command.token_address),
                ("capAmount", command.cap_amount),
                ("periodSeconds", command.period_seconds),
                ("spenderAddress", command.spender_address),
                ("permissionSignature", command.permission_signature),
            )
            if value in (None, "")
        ]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        if command.mode not in ("recurring", "topup"):
            raise ValidationError("mode must be 'recurring' or 'topup'.")
        if command.cap_amount <= 0 or command.period_seconds <= 0:
            raise ValidationError("capAmount and periodSeconds must be positive.")

        def _tx(ledger: LedgerPort) -> CreateCreditPermissionOutput:
            now = utcnow()
            current = ledger.get_active_permission(user_id=command.user_id, now=now)
            previous_used = ZERO
            remaining = ZERO
            if current is not None:
                current_usage = ledger.get_usage_for_permission(permission_id=current.id)
                limit = current_usage.total_limit if current_usage else current.cap_amount
                previous_used = current_usage.used_amount if current_usage else ZERO
                remaining = max(limit - previous_used, ZERO)

            cap_amount = command.cap_amount
            if command.mode == "topup":
                cap_amount = remaining + command.cap_amount

            ledger.revoke_active_permissions(user_id=command.user_id, revoked_at=now)
            end = now + timedelta(seconds=command.period_seconds)
            permission = ledger.create_permission(
                permission_id=new_id(),
                user_id=command.user_id,
                token_address=normalize_address(command.token_address),
                cap_amount=cap_amount,
                period_seconds=command.period_seconds,
                start_timestamp=now,
                end_timestamp=end,
                spender_address=normalize_address(command.spender_address),
                permission_signature=command.permission_signature,
                metadata={
                    "mode": command.mode,
                    "original_request_amount": str(command.cap_amount),
                    "previous_used_amount": str(previous_used),
                },
                created_at=now,
            )
            usage = ledger.create_usage(
                usage_id=new_id(),
                user_id=command.user_id,
                permission_id=permission.id,
                period_start=now,
                period_end=end,
                total_limit=cap_amount,
                used_amount=ZERO,
                created_at=now,
            )
            return CreateCreditPermissionOutput(permission=permission, usage=usage, mode=command.mode)

        output = self._ledger_port.execute_in_transaction(_tx)
        logger.info(
            "credits: permission replaced user_id=%s mode=%s cap=%s",
            command.user_id,
            command.mode,
            output.permission.cap_amount,
        )
        return output
