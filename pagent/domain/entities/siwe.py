from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class SiweMessage:
    domain: str
    address: str
    statement: str | None
    uri: str
    version: str
    chain_id: int | None
    nonce: str
    issued_at: str
    expiration_time: str | None = None
    not_before: str | None = None
    request_id: str | None = None
    resources: tuple[str, ...] = field(default_factory=tuple)
    # Some wallets put a blank line between the preamble and the address.
    blank_line_before_address: bool = False
    # A bare "Resources:" line with no items is still part of the signed text.
    resources_header: bool = False
    trailing_blank_lines: int = 0
