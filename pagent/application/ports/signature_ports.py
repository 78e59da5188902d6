from __future__ import annotations

from typing import Protocol


class SignatureRecoveryPort(Protocol):
    def message_hash(self, *, message: str) -> bytes:
        """EIP-191 personal-sign hash of the message text."""
        ...

    def recover_address(self, *, message: str, signature: str) -> str:
        """Raises ValueError when the signature cannot be recovered."""
        ...


class ContractSignaturePort(Protocol):
    def verify_on_chain(
        self,
        *,
        chain_id: int,
        address: str,
        message_hash: bytes,
        signature: str,
    ) -> bool:
        """Raises SignatureVerifierUnavailableError when the chain cannot be queried."""
        ...
