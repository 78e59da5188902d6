from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import text

from pagent.application.dto.receipts import ReceiptFilters
from pagent.application.ports.ledger_port import LedgerPort
from pagent.domain.exceptions import DuplicateEventError, PermissionNotFoundError
from pagent.infrastructure.db.engine import run_in_transaction
from pagent.infrastructure.db.mappers.pagent_mapper import (
    map_row_to_credit_assignment,
    map_row_to_credit_usage,
    map_row_to_permission,
    map_row_to_promo,
    map_row_to_receipt,
    map_row_to_recurring_config,
    map_row_to_reward_balance,
)


PERMISSION_COLUMNS = """
    id, user_id, token_address, cap_amount, period_seconds, start_timestamp, end_timestamp,
    spender_address, permission_signature, status, metadata, created_at, updated_at
"""
USAGE_COLUMNS = """
    id, user_id, permission_id, period_start, period_end, total_limit, used_amount,
    transaction_count, metadata, created_at, updated_at
"""
RECEIPT_COLUMNS = """
    id, user_id, card_id, auth_id, amount, merchant, chain_tx, status, metadata, created_at, updated_at
"""
RECURRING_COLUMNS = """
    id, user_id, amount, period_seconds, next_assignment, status, description, metadata,
    created_at, updated_at
"""
ASSIGNMENT_COLUMNS = """
    id, user_id, amount, credit_type, assigned_at, expires_at, status, description, metadata
"""
REWARD_COLUMNS = """
    user_id, cashback_balance, points_balance, updated_at
"""
PROMO_COLUMNS = """
    id, title, description, reward_type, reward_value, conditions, expires_at, status, priority
"""


def _dump(metadata: dict[str, Any]) -> str:
    return json.dumps(metadata, default=str)


class SqlLedgerRepository(LedgerPort):
    def __init__(self, engine):
        self._engine = engine

    def execute_in_transaction(self, fn):
        return run_in_transaction(self._engine, SqlLedgerRepository, fn)

    def list_permissions(self, *, user_id: str):
        sql = f"""
            SELECT {PERMISSION_COLUMNS}
            FROM public.permissions
            WHERE user_id = CAST(:user_id AS uuid)
            ORDER BY created_at DESC
        """
        with self._engine.connect() as conn:
            rows = conn.execute(text(sql), {"user_id": user_id}).mappings().all()
        return [map_row_to_permission(row) for row in rows]

    def get_permission(self, *, permission_id: str):
        sql = f"""
            SELECT {PERMISSION_COLUMNS}
            FROM public.permissions
            WHERE id = CAST(:permission_id AS uuid)
            LIMIT 1
        """
        with self._engine.connect() as conn:
            row = conn.execute(text(sql), {"permission_id": permission_id}).mappings().first()
        if row is None:
            return None
        return map_row_to_permission(row)

    def get_active_permission(self, *, user_id: str, now: datetime):
        sql = f"""
            SELECT {PERMISSION_COLUMNS}
            FROM public.permissions
            WHERE user_id = CAST(:user_id AS uuid)
              AND status = 'active'
              AND start_timestamp <= :now
              AND end_timestamp >= :now
            ORDER BY created_at DESC
            LIMIT 1
        """
        with self._engine.connect() as conn:
            row = conn.execute(text(sql), {"user_id": user_id, "now": now}).mappings().first()
        if row is None:
            return None
        return map_row_to_permission(row)

    def revoke_active_permissions(self, *, user_id: str, revoked_at: datetime) -> int:
        sql = """
            UPDATE public.permissions
            SET status = 'revoked',
                updated_at = :revoked_at
            WHERE user_id = CAST(:user_id AS uuid)
              AND status = 'active'
        """
        with self._engine.begin() as conn:
            result = conn.execute(text(sql), {"user_id": user_id, "revoked_at": revoked_at})
        return int(result.rowcount or 0)

    def revoke_permission(self, *, permission_id: str, revoked_at: datetime) -> None:
        sql = """
            UPDATE public.permissions
            SET status = 'revoked',
                updated_at = :revoked_at
            WHERE id = CAST(:permission_id AS uuid)
        """
        with self._engine.begin() as conn:
            conn.execute(text(sql), {"permission_id": permission_id, "revoked_at": revoked_at})

    def create_permission(
        self,
        *,
        permission_id: str,
        user_id: str,
        token_address: str,
        cap_amount: Decimal,
        period_seconds: int,
        start_timestamp: datetime,
        end_timestamp: datetime,
        spender_address: str,
        permission_signature: str,
        metadata: dict[str, Any],
        created_at: datetime,
    ):
        sql = f"""
            INSERT INTO public.permissions (
                id, user_id, token_address, cap_amount, period_seconds, start_timestamp,
                end_timestamp, spender_address, permission_signature, status, metadata,
                created_at, updated_at
            ) VALUES (
                CAST(:id AS uuid), CAST(:user_id AS uuid), :token_address, :cap_amount,
                :period_seconds, :start_timestamp, :end_timestamp, :spender_address,
                :permission_signature, 'active', CAST(:metadata AS jsonb), :created_at, :created_at
            )
            RETURNING {PERMISSION_COLUMNS}
        """
        params = {
            "id": permission_id,
            "user_id": user_id,
            "token_address": token_address,
            "cap_amount": cap_amount,
            "period_seconds": period_seconds,
            "start_timestamp": start_timestamp,
            "end_timestamp": end_timestamp,
            "spender_address": spender_address,
            "permission_signature": permission_signature,
            "metadata": _dump(metadata),
            "created_at": created_at,
        }
        with self._engine.begin() as conn:
            row = conn.execute(text(sql), params).mappings().one()
        return map_row_to_permission(row)

    def update_permission_cap(self, *, permission_id: str, cap_amount: Decimal, updated_at: datetime):
        sql = f"""
            UPDATE public.permissions
            SET cap_amount = :cap_amount,
                updated_at = :updated_at
            WHERE id = CAST(:permission_id AS uuid)
            RETURNING {PERMISSION_COLUMNS}
        """
        with self._engine.begin() as conn:
            row = conn.execute(
                text(sql),
                {"permission_id": permission_id, "cap_amount": cap_amount, "updated_at": updated_at},
            ).mappings().first()
        if row is None:
            raise PermissionNotFoundError("Permission not found.")
        return map_row_to_permission(row)

    def get_usage_for_permission(self, *, permission_id: str):
        sql = f"""
            SELECT {USAGE_COLUMNS}
            FROM public.credit_usage
            WHERE permission_id = CAST(:permission_id AS uuid)
            LIMIT 1
        """
        with self._engine.connect() as conn:
            row = conn.execute(text(sql), {"permission_id": permission_id}).mappings().first()
        if row is None:
            return None
        return map_row_to_credit_usage(row)

    def create_usage(
        self,
        *,
        usage_id: str,
        user_id: str,
        permission_id: str,
        period_start: datetime,
        period_end: datetime,
        total_limit: Decimal,
        used_amount: Decimal,
        created_at: datetime,
    ):
        sql = f"""
            INSERT INTO public.credit_usage (
                id, user_id, permission_id, period_start, period_end, total_limit,
                used_amount, transaction_count, metadata, created_at, updated_at
            ) VALUES (
                CAST(:id AS uuid), CAST(:user_id AS uuid), CAST(:permission_id AS uuid),
                :period_start, :period_end, :total_limit, :used_amount, 0, '{{}}'::jsonb,
                :created_at, :created_at
            )
            ON CONFLICT (permission_id) DO UPDATE SET permission_id = EXCLUDED.permission_id
            RETURNING {USAGE_COLUMNS}
        """
        params = {
            "id": usage_id,
            "user_id": user_id,
            "permission_id": permission_id,
            "period_start": period_start,
            "period_end": period_end,
            "total_limit": total_limit,
            "used_amount": used_amount,
            "created_at": created_at,
        }
        with self._engine.begin() as conn:
            row = conn.execute(text(sql), params).mappings().one()
        return map_row_to_credit_usage(row)

    def update_usage_limit(self, *, usage_id: str, total_limit: Decimal, updated_at: datetime):
        sql = f"""
            UPDATE public.credit_usage
            SET total_limit = :total_limit,
                updated_at = :updated_at
            WHERE id = CAST(:usage_id AS uuid)
            RETURNING {USAGE_COLUMNS}
        """
        with self._engine.begin() as conn:
            row = conn.execute(
                text(sql),
                {"usage_id": usage_id, "total_limit": total_limit, "updated_at": updated_at},
            ).mappings().one()
        return map_row_to_credit_usage(row)

    def reserve_usage(self, *, usage_id: str, amount: Decimal, updated_at: datetime):
        sql = f"""
            UPDATE public.credit_usage
            SET used_amount = used_amount + :amount,
                transaction_count = transaction_count + 1,
                updated_at = :updated_at
            WHERE id = CAST(:usage_id AS uuid)
              AND used_amount + :amount <= total_limit
            RETURNING {USAGE_COLUMNS}
        """
        with self._engine.begin() as conn:
            row = conn.execute(
                text(sql),
                {"usage_id": usage_id, "amount": amount, "updated_at": updated_at},
            ).mappings().first()
        if row is None:
            return None
        return map_row_to_credit_usage(row)

    def release_usage(self, *, usage_id: str, amount: Decimal, updated_at: datetime):
        sql = f"""
            UPDATE public.credit_usage
            SET used_amount = GREATEST(used_amount - :amount, 0),
                transaction_count = GREATEST(transaction_count - 1, 0),
                updated_at = :updated_at
            WHERE id = CAST(:usage_id AS uuid)
            RETURNING {USAGE_COLUMNS}
        """
        with self._engine.begin() as conn:
            row = conn.execute(
                text(sql),
                {"usage_id": usage_id, "amount": amount, "updated_at": updated_at},
            ).mappings().one()
        return map_row_to_credit_usage(row)

    def get_receipt_by_auth_id(self, *, auth_id: str):
        sql = f"""
            SELECT {RECEIPT_COLUMNS}
            FROM public.receipts
            WHERE auth_id = :auth_id
            LIMIT 1
        """
        with self._engine.connect() as conn:
            row = conn.execute(text(sql), {"auth_id": auth_id}).mappings().first()
        if row is None:
            return None
        return map_row_to_receipt(row)

    def create_receipt(
        self,
        *,
        receipt_id: str,
        user_id: str,
        card_id: str | None,
        auth_id: str,
        amount: Decimal,
        merchant: str,
        status: str,
        metadata: dict[str, Any],
        created_at: datetime,
    ):
        sql = f"""
            INSERT INTO public.receipts (
                id, user_id, card_id, auth_id, amount, merchant, chain_tx, status, metadata,
                created_at, updated_at
            ) VALUES (
                CAST(:id AS uuid), CAST(:user_id AS uuid), :card_id, :auth_id, :amount, :merchant,
                NULL, :status, CAST(:metadata AS jsonb), :created_at, :created_at
            )
            ON CONFLICT (auth_id) DO NOTHING
            RETURNING {RECEIPT_COLUMNS}
        """
        params = {
            "id": receipt_id,
            "user_id": user_id,
            "card_id": card_id,
            "auth_id": auth_id,
            "amount": amount,
            "merchant": merchant,
            "status": status,
            "metadata": _dump(metadata),
            "created_at": created_at,
        }
        with self._engine.begin() as conn:
            row = conn.execute(text(sql), params).mappings().first()
        if row is None:
            raise DuplicateEventError(f"Receipt already recorded for auth_id {auth_id}.")
        return map_row_to_receipt(row)

    def update_receipt(
        self,
        *,
        receipt_id: str,
        status: str,
        chain_tx: str | None,
        metadata: dict[str, Any],
        updated_at: datetime,
    ):
        sql = f"""
            UPDATE public.receipts
            SET status = :status,
                chain_tx = COALESCE(:chain_tx, chain_tx),
                metadata = CAST(:metadata AS jsonb),
                updated_at = :updated_at
            WHERE id = CAST(:receipt_id AS uuid)
            RETURNING {RECEIPT_COLUMNS}
        """
        params = {
            "receipt_id": receipt_id,
            "status": status,
            "chain_tx": chain_tx,
            "metadata": _dump(metadata),
            "updated_at": updated_at,
        }
        with self._engine.begin() as conn:
            row = conn.execute(text(sql), params).mappings().one()
        return map_row_to_receipt(row)

    def list_receipts(
        self,
        *,
        user_id: str,
        filters: ReceiptFilters,
        limit: int,
        offset: int,
    ):
        where = """
            WHERE user_id = CAST(:user_id AS uuid)
              AND (CAST(:status AS text) IS NULL OR status = CAST(:status AS text))
              AND (CAST(:merchant AS text) IS NULL OR merchant ILIKE '%' || CAST(:merchant AS text) || '%')
              AND (CAST(:from_date AS timestamptz) IS NULL OR created_at >= CAST(:from_date AS timestamptz))
              AND (CAST(:to_date AS timestamptz) IS NULL OR created_at <= CAST(:to_date AS timestamptz))
        """
        params = {
            "user_id": user_id,
            "status": filters.status,
            "merchant": filters.merchant,
            "from_date": filters.from_date,
            "to_date": filters.to_date,
            "limit": limit,
            "offset": offset,
        }
        list_sql = f"""
            SELECT {RECEIPT_COLUMNS}
            FROM public.receipts
            {where}
            ORDER BY created_at DESC
            LIMIT :limit OFFSET :offset
        """
        count_sql = f"SELECT count(*) AS total FROM public.receipts {where}"
        with self._engine.connect() as conn:
            rows = conn.execute(text(list_sql), params).mappings().all()
            total = conn.execute(text(count_sql), params).scalar_one()
        return [map_row_to_receipt(row) for row in rows], int(total)

    def list_receipt_amounts_by_status(self, *, user_id: str):
        sql = """
            SELECT status, amount
            FROM public.receipts
            WHERE user_id = CAST(:user_id AS uuid)
        """
        with self._engine.connect() as conn:
            rows = conn.execute(text(sql), {"user_id": user_id}).mappings().all()
        return [(row["status"], Decimal(str(row["amount"]))) for row in rows]

    def get_user_receipt(self, *, user_id: str, receipt_id: str):
        sql = f"""
            SELECT {RECEIPT_COLUMNS}
            FROM public.receipts
            WHERE id::text = :receipt_id
              AND user_id = CAST(:user_id AS uuid)
            LIMIT 1
        """
        with self._engine.connect() as conn:
            row = conn.execute(text(sql), {"receipt_id": receipt_id, "user_id": user_id}).mappings().first()
        if row is None:
            return None
        return map_row_to_receipt(row)

    def apply_receipt_cashback(
        self,
        *,
        user_id: str,
        receipt_id: str,
        cashback: dict[str, Any],
        updated_at: datetime,
    ):
        sql = f"""
            UPDATE public.receipts
            SET metadata = metadata || jsonb_build_object('cashback', CAST(:cashback AS jsonb)),
                updated_at = :updated_at
            WHERE id::text = :receipt_id
              AND user_id = CAST(:user_id AS uuid)
              AND status = 'completed'
              AND metadata -> 'cashback' IS NULL
            RETURNING {RECEIPT_COLUMNS}
        """
        params = {
            "receipt_id": receipt_id,
            "user_id": user_id,
            "cashback": _dump(cashback),
            "updated_at": updated_at,
        }
        with self._engine.begin() as conn:
            row = conn.execute(text(sql), params).mappings().first()
        if row is None:
            return None
        return map_row_to_receipt(row)

    def credit_reward_balance(self, *, user_id: str, cashback_amount: Decimal, updated_at: datetime):
        sql = f"""
            INSERT INTO public.user_rewards (user_id, cashback_balance, points_balance, updated_at)
            VALUES (CAST(:user_id AS uuid), :cashback_amount, 0, :updated_at)
            ON CONFLICT (user_id) DO UPDATE
            SET cashback_balance = public.user_rewards.cashback_balance + EXCLUDED.cashback_balance,
                updated_at = EXCLUDED.updated_at
            RETURNING {REWARD_COLUMNS}
        """
        params = {"user_id": user_id, "cashback_amount": cashback_amount, "updated_at": updated_at}
        with self._engine.begin() as conn:
            row = conn.execute(text(sql), params).mappings().one()
        return map_row_to_reward_balance(row)

    def get_reward_balance(self, *, user_id: str):
        sql = f"""
            SELECT {REWARD_COLUMNS}
            FROM public.user_rewards
            WHERE user_id = CAST(:user_id AS uuid)
        """
        with self._engine.connect() as conn:
            row = conn.execute(text(sql), {"user_id": user_id}).mappings().first()
        if row is None:
            return None
        return map_row_to_reward_balance(row)

    def list_cashback_receipts(self, *, user_id: str, limit: int):
        sql = f"""
            SELECT {RECEIPT_COLUMNS}
            FROM public.receipts
            WHERE user_id = CAST(:user_id AS uuid)
              AND metadata -> 'cashback' IS NOT NULL
            ORDER BY updated_at DESC
            LIMIT :limit
        """
        with self._engine.connect() as conn:
            rows = conn.execute(text(sql), {"user_id": user_id, "limit": limit}).mappings().all()
        return [map_row_to_receipt(row) for row in rows]

    def list_active_promos(self, *, now: datetime, limit: int):
        sql = f"""
            SELECT {PROMO_COLUMNS}
            FROM public.promos
            WHERE status = 'active'
              AND (expires_at IS NULL OR expires_at > :now)
            ORDER BY priority DESC, created_at DESC
            LIMIT :limit
        """
        with self._engine.connect() as conn:
            rows = conn.execute(text(sql), {"now": now, "limit": limit}).mappings().all()
        return [map_row_to_promo(row) for row in rows]

    def list_active_recurring_configs(self):
        sql = f"""
            SELECT {RECURRING_COLUMNS}
            FROM public.recurring_credits
            WHERE status = 'active'
            ORDER BY next_assignment ASC
        """
        with self._engine.connect() as conn:
            rows = conn.execute(text(sql)).mappings().all()
        return [map_row_to_recurring_config(row) for row in rows]

    def list_recurring_configs_for_user(self, *, user_id: str):
        sql = f"""
            SELECT {RECURRING_COLUMNS}
            FROM public.recurring_credits
            WHERE user_id = CAST(:user_id AS uuid)
            ORDER BY created_at DESC
        """
        with self._engine.connect() as conn:
            rows = conn.execute(text(sql), {"user_id": user_id}).mappings().all()
        return [map_row_to_recurring_config(row) for row in rows]

    def create_recurring_config(
        self,
        *,
        config_id: str,
        user_id: str,
        amount: Decimal,
        period_seconds: int,
        next_assignment: datetime,
        description: str,
        metadata: dict[str, Any],
        created_at: datetime,
    ):
        sql = f"""
            INSERT INTO public.recurring_credits (
                id, user_id, amount, period_seconds, next_assignment, status, description,
                metadata, created_at, updated_at
            ) VALUES (
                CAST(:id AS uuid), CAST(:user_id AS uuid), :amount, :period_seconds,
                :next_assignment, 'active', :description, CAST(:metadata AS jsonb),
                :created_at, :created_at
            )
            RETURNING {RECURRING_COLUMNS}
        """
        params = {
            "id": config_id,
            "user_id": user_id,
            "amount": amount,
            "period_seconds": period_seconds,
            "next_assignment": next_assignment,
            "description": description,
            "metadata": _dump(metadata),
            "created_at": created_at,
        }
        with self._engine.begin() as conn:
            row = conn.execute(text(sql), params).mappings().one()
        return map_row_to_recurring_config(row)

    def update_recurring_next_assignment(
        self, *, config_id: str, next_assignment: datetime, updated_at: datetime
    ) -> None:
        sql = """
            UPDATE public.recurring_credits
            SET next_assignment = :next_assignment,
                updated_at = :updated_at
            WHERE id = CAST(:config_id AS uuid)
        """
        with self._engine.begin() as conn:
            conn.execute(
                text(sql),
                {"config_id": config_id, "next_assignment": next_assignment, "updated_at": updated_at},
            )

    def create_assignment(
        self,
        *,
        assignment_id: str,
        user_id: str,
        amount: Decimal,
        credit_type: str,
        assigned_at: datetime,
        expires_at: datetime | None,
        description: str,
        metadata: dict[str, Any],
    ):
        sql = f"""
            INSERT INTO public.credit_assignments (
                id, user_id, amount, credit_type, assigned_at, expires_at, status,
                description, metadata
            ) VALUES (
                CAST(:id AS uuid), CAST(:user_id AS uuid), :amount, :credit_type, :assigned_at,
                :expires_at, 'active', :description, CAST(:metadata AS jsonb)
            )
            RETURNING {ASSIGNMENT_COLUMNS}
        """
        params = {
            "id": assignment_id,
            "user_id": user_id,
            "amount": amount,
            "credit_type": credit_type,
            "assigned_at": assigned_at,
            "expires_at": expires_at,
            "description": description,
            "metadata": _dump(metadata),
        }
        with self._engine.begin() as conn:
            row = conn.execute(text(sql), params).mappings().one()
        return map_row_to_credit_assignment(row)

    def list_assignments_for_user(self, *, user_id: str):
        sql = f"""
            SELECT {ASSIGNMENT_COLUMNS}
            FROM public.credit_assignments
            WHERE user_id = CAST(:user_id AS uuid)
            ORDER BY assigned_at DESC
        """
        with self._engine.connect() as conn:
            rows = conn.execute(text(sql), {"user_id": user_id}).mappings().all()
        return [map_row_to_credit_assignment(row) for row in rows]
