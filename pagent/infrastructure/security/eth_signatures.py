from __future__ import annotations

import logging
from typing import Mapping

from eth_account import Account
from eth_account.messages import defunct_hash_message, encode_defunct
from hexbytes import HexBytes
from web3 import HTTPProvider, Web3
from web3.exceptions import BadFunctionCallOutput, ContractLogicError

from pagent.application.ports.signature_ports import ContractSignaturePort, SignatureRecoveryPort
from pagent.domain.exceptions import SignatureVerifierUnavailableError


logger = logging.getLogger(__name__)

EIP1271_MAGIC_VALUE = HexBytes("0x1626ba7e")

EIP1271_ABI = [
    {
        "inputs": [
            {"name": "_hash", "type": "bytes32"},
            {"name": "_signature", "type": "bytes"},
        ],
        "name": "isValidSignature",
        "outputs": [{"name": "", "type": "bytes4"}],
        "stateMutability": "view",
        "type": "function",
    }
]

# Universal signature validator (ERC-6492); also covers counterfactual smart wallets.
UNIVERSAL_VERIFIER_ABI = [
    {
        "inputs": [
            {"name": "_signer", "type": "address"},
            {"name": "_hash", "type": "bytes32"},
            {"name": "_signature", "type": "bytes"},
        ],
        "name": "isValidSig",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function",
    }
]


class EthSignatureRecoverer(SignatureRecoveryPort):
    def message_hash(self, *, message: str) -> bytes:
        return bytes(defunct_hash_message(text=message))

    def recover_address(self, *, message: str, signature: str) -> str:
        try:
            return Account.recover_message(encode_defunct(text=message), signature=HexBytes(signature))
        except Exception as exc:
            raise ValueError("Signature could not be recovered.") from exc


class Web3ContractSignatureVerifier(ContractSignaturePort):
    def __init__(
        self,
        *,
        rpc_urls: Mapping[int, str],
        timeout_seconds: float,
        universal_verifier_address: str | None = None,
    ):
        self._rpc_urls = dict(rpc_urls)
        self._timeout_seconds = timeout_seconds
        self._universal_verifier_address = universal_verifier_address
        self._clients: dict[int, Web3] = {}

    def verify_on_chain(
        self,
        *,
        chain_id: int,
        address: str,
        message_hash: bytes,
        signature: str,
    ) -> bool:
        web3 = self._client(chain_id)
        signer = Web3.to_checksum_address(address)
        signature_bytes = bytes(HexBytes(signature))

        try:
            if self._universal_verifier_address:
                verifier = web3.eth.contract(
                    address=Web3.to_checksum_address(self._universal_verifier_address),
                    abi=UNIVERSAL_VERIFIER_ABI,
                )
                return bool(
                    verifier.functions.isValidSig(signer, message_hash, signature_bytes).call()
                )

            if not web3.eth.get_code(signer):
                return False
            wallet = web3.eth.contract(address=signer, abi=EIP1271_ABI)
            result = wallet.functions.isValidSignature(message_hash, signature_bytes).call()
            return HexBytes(result) == EIP1271_MAGIC_VALUE
        except ContractLogicError as exc:
            logger.info("eip1271: contract rejected signature chain_id=%s address=%s error=%s", chain_id, signer, exc)
            return False
        except BadFunctionCallOutput:
            return False
        except Exception as exc:
            raise SignatureVerifierUnavailableError(
                f"On-chain signature check failed for chain {chain_id}."
            ) from exc

    def _client(self, chain_id: int) -> Web3:
        if chain_id not in self._clients:
            rpc_url = self._rpc_urls.get(chain_id)
            if not rpc_url:
                raise SignatureVerifierUnavailableError(f"No RPC endpoint configured for chain {chain_id}.")
            self._clients[chain_id] = Web3(
                HTTPProvider(rpc_url, request_kwargs={"timeout": self._timeout_seconds})
            )
        return self._clients[chain_id]
