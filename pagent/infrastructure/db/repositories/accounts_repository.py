from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from pagent.application.ports.user_directory_port import UserDirectoryPort
from pagent.domain.exceptions import UserAlreadyExistsError, UserNotFoundError, WalletAddressConflictError
from pagent.infrastructure.db.engine import run_in_transaction
from pagent.infrastructure.db.mappers.pagent_mapper import map_row_to_user


USER_COLUMNS = """
    id, smart_account, eoa_wallet_address, card_id, is_active, metadata, created_at, updated_at
"""


def _dump(metadata: dict[str, Any]) -> str:
    return json.dumps(metadata, default=str)


class SqlAccountsRepository(UserDirectoryPort):
    def __init__(self, engine):
        self._engine = engine

    def execute_in_transaction(self, fn):
        return run_in_transaction(self._engine, SqlAccountsRepository, fn)

    def find_user_by_addresses(self, *, addresses: list[str]):
        keys = [address.lower() for address in addresses if address]
        if not keys:
            return None
        sql = f"""
            SELECT {USER_COLUMNS}
            FROM public.users
            WHERE lower(smart_account) = ANY(:keys)
               OR lower(eoa_wallet_address) = ANY(:keys)
            ORDER BY created_at ASC
            LIMIT 1
        """
        with self._engine.connect() as conn:
            row = conn.execute(text(sql), {"keys": keys}).mappings().first()
        if row is None:
            return None
        return map_row_to_user(row)

    def get_user_by_id(self, *, user_id: str):
        sql = f"""
            SELECT {USER_COLUMNS}
            FROM public.users
            WHERE id = CAST(:user_id AS uuid)
            LIMIT 1
        """
        with self._engine.connect() as conn:
            row = conn.execute(text(sql), {"user_id": user_id}).mappings().first()
        if row is None:
            return None
        return map_row_to_user(row)

    def get_user_by_card_id(self, *, card_id: str):
        sql = f"""
            SELECT {USER_COLUMNS}
            FROM public.users
            WHERE card_id = :card_id
            LIMIT 1
        """
        with self._engine.connect() as conn:
            row = conn.execute(text(sql), {"card_id": card_id}).mappings().first()
        if row is None:
            return None
        return map_row_to_user(row)

    def create_user(
        self,
        *,
        user_id: str,
        smart_account: str,
        eoa_wallet_address: str | None,
        metadata: dict[str, Any],
        created_at: datetime,
    ):
        sql = f"""
            INSERT INTO public.users (
                id, smart_account, eoa_wallet_address, is_active, metadata, created_at, updated_at
            ) VALUES (
                CAST(:id AS uuid), :smart_account, :eoa_wallet_address, true,
                CAST(:metadata AS jsonb), :created_at, :created_at
            )
            ON CONFLICT DO NOTHING
            RETURNING {USER_COLUMNS}
        """
        params = {
            "id": user_id,
            "smart_account": smart_account.lower(),
            "eoa_wallet_address": eoa_wallet_address.lower() if eoa_wallet_address else None,
            "metadata": _dump(metadata),
            "created_at": created_at,
        }
        with self._engine.begin() as conn:
            row = conn.execute(text(sql), params).mappings().first()
        if row is None:
            raise UserAlreadyExistsError("A user already exists for this address.")
        return map_row_to_user(row)

    def update_user(
        self,
        *,
        user_id: str,
        metadata: dict[str, Any],
        eoa_wallet_address: str | None,
        updated_at: datetime,
    ):
        sql = f"""
            UPDATE public.users
            SET metadata = CAST(:metadata AS jsonb),
                eoa_wallet_address = :eoa_wallet_address,
                updated_at = :updated_at
            WHERE id = CAST(:user_id AS uuid)
            RETURNING {USER_COLUMNS}
        """
        params = {
            "user_id": user_id,
            "metadata": _dump(metadata),
            "eoa_wallet_address": eoa_wallet_address.lower() if eoa_wallet_address else None,
            "updated_at": updated_at,
        }
        try:
            with self._engine.begin() as conn:
                row = conn.execute(text(sql), params).mappings().first()
        except IntegrityError as exc:
            # uq_users_eoa_wallet_address_lower
            raise WalletAddressConflictError("EOA wallet address is linked to another user.") from exc
        if row is None:
            raise UserNotFoundError("User not found.")
        return map_row_to_user(row)

    def assign_card_id(
        self,
        *,
        user_id: str,
        card_id: str,
        metadata: dict[str, Any],
        updated_at: datetime,
    ):
        sql = f"""
            UPDATE public.users
            SET card_id = :card_id,
                metadata = CAST(:metadata AS jsonb),
                updated_at = :updated_at
            WHERE id = CAST(:user_id AS uuid)
            RETURNING {USER_COLUMNS}
        """
        params = {
            "user_id": user_id,
            "card_id": card_id,
            "metadata": _dump(metadata),
            "updated_at": updated_at,
        }
        with self._engine.begin() as conn:
            row = conn.execute(text(sql), params).mappings().first()
        if row is None:
            raise UserNotFoundError("User not found.")
        return map_row_to_user(row)

    def consume_siwe_nonce(self, *, nonce: str, address: str, consumed_at: datetime) -> bool:
        sql = """
            INSERT INTO public.siwe_nonces (nonce, address, consumed_at)
            VALUES (:nonce, :address, :consumed_at)
            ON CONFLICT (nonce) DO NOTHING
            RETURNING nonce
        """
        with self._engine.begin() as conn:
            row = conn.execute(
                text(sql),
                {"nonce": nonce, "address": address.lower(), "consumed_at": consumed_at},
            ).first()
        return row is not None
