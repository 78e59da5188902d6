from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Protocol, TypeVar

from pagent.domain.entities.user import User


TDirectoryResult = TypeVar("TDirectoryResult")


class UserDirectoryPort(Protocol):
    def execute_in_transaction(
        self, fn: Callable[[UserDirectoryPort], TDirectoryResult]
    ) -> TDirectoryResult:
        ...

    def find_user_by_addresses(self, *, addresses: list[str]) -> User | None:
        ...

    def get_user_by_id(self, *, user_id: str) -> User | None:
        ...

    def get_user_by_card_id(self, *, card_id: str) -> User | None:
        ...

    def create_user(
        self,
        *,
        user_id: str,
        smart_account: str,
        eoa_wallet_address: str | None,
        metadata: dict[str, Any],
        created_at: datetime,
    ) -> User:
        """Raises UserAlreadyExistsError when either address is already taken."""
        ...

    def update_user(
        self,
        *,
        user_id: str,
        metadata: dict[str, Any],
        eoa_wallet_address: str | None,
        updated_at: datetime,
    ) -> User:
        """Raises WalletAddressConflictError when the EOA belongs to another user."""
        ...

    def assign_card_id(
        self,
        *,
        user_id: str,
        card_id: str,
        metadata: dict[str, Any],
        updated_at: datetime,
    ) -> User:
        ...

    def consume_siwe_nonce(self, *, nonce: str, address: str, consumed_at: datetime) -> bool:
        """Returns False when the nonce was already used."""
        ...
