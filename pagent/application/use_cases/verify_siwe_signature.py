from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable

from pagent.application.dto.siwe import SiweVerificationResult
from pagent.application.ports.signature_ports import ContractSignaturePort, SignatureRecoveryPort
from pagent.domain.exceptions import MalformedMessageError, SignatureVerifierUnavailableError
from pagent.domain.services.siwe_message import parse_siwe_message, parse_timestamp


logger = logging.getLogger(__name__)

EOA_SIGNATURE_BYTES = 65


class SiweSignatureVerifier:
    """Checks a SIWE message and its signature.

    Temporal and chain checks run before any signature work. A 65-byte
    signature is first recovered as a plain EOA signature; anything else, or a
    recovered address that does not match, falls back to the on-chain
    contract-wallet check when one is configured.
    """

    def __init__(
        self,
        *,
        signature_recovery: SignatureRecoveryPort,
        contract_signatures: ContractSignaturePort | None,
        allowed_chain_ids: Iterable[int],
        clock_skew_seconds: int = 60,
    ):
        self._signature_recovery = signature_recovery
        self._contract_signatures = contract_signatures
        self._allowed_chain_ids = frozenset(allowed_chain_ids)
        self._clock_skew = timedelta(seconds=clock_skew_seconds)

    def verify(self, *, message: str, signature: str, now: datetime) -> SiweVerificationResult:
        try:
            parsed = parse_siwe_message(message)
            issued_at = parse_timestamp(parsed.issued_at) if parsed.issued_at else None
            not_before = parse_timestamp(parsed.not_before) if parsed.not_before else None
            expiration = parse_timestamp(parsed.expiration_time) if parsed.expiration_time else None
        except MalformedMessageError as exc:
            logger.info("siwe_verify: malformed message error=%s", exc)
            return SiweVerificationResult.failed("MalformedMessage")

        if parsed.chain_id is None or parsed.chain_id not in self._allowed_chain_ids:
            return SiweVerificationResult.failed("UnsupportedChain", parsed)
        if issued_at is not None and issued_at > now + self._clock_skew:
            return SiweVerificationResult.failed("NotYetValid", parsed)
        if not_before is not None and not_before > now:
            return SiweVerificationResult.failed("NotYetValid", parsed)
        if expiration is not None and expiration <= now:
            return SiweVerificationResult.failed("Expired", parsed)

        signature_bytes = _signature_length(signature)
        if signature_bytes is None:
            return SiweVerificationResult.failed("SignatureMismatch", parsed)

        if signature_bytes == EOA_SIGNATURE_BYTES:
            try:
                recovered = self._signature_recovery.recover_address(message=message, signature=signature)
            except ValueError:
                recovered = None
            if recovered is not None and recovered.lower() == parsed.address.lower():
                return SiweVerificationResult(
                    success=True,
                    address=parsed.address,
                    method="eoa",
                    message=parsed,
                )

        if self._contract_signatures is None:
            return SiweVerificationResult.failed("SignatureMismatch", parsed)

        try:
            valid = self._contract_signatures.verify_on_chain(
                chain_id=parsed.chain_id,
                address=parsed.address,
                message_hash=self._signature_recovery.message_hash(message=message),
                signature=signature,
            )
        except SignatureVerifierUnavailableError as exc:
            logger.warning(
                "siwe_verify: contract verifier unavailable chain_id=%s address=%s error=%s",
                parsed.chain_id,
                parsed.address,
                exc,
            )
            return SiweVerificationResult.failed("VerifierUnavailable", parsed)

        if not valid:
            return SiweVerificationResult.failed("SignatureMismatch", parsed)
        return SiweVerificationResult(
            success=True,
            address=parsed.address,
            method="contract",
            message=parsed,
        )


def _signature_length(signature: str) -> int | None:
    raw = signature.strip()
    if raw.startswith("0x") or raw.startswith("0X"):
        raw = raw[2:]
    if not raw or len(raw) % 2:
        return None
    try:
        return len(bytes.fromhex(raw))
    except ValueError:
        return None
