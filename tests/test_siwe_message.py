from __future__ import annotations

from datetime import datetime, timezone

import pytest

from pagent.domain.exceptions import MalformedMessageError
from pagent.domain.services.siwe_message import (
    parse_siwe_message,
    parse_timestamp,
    serialize_siwe_message,
)


ADDRESS = "0x71C7656EC7ab88b098defB751B7401B5f6d8976F"


def _message(statement: str | None = "Sign in to Pagent", *, blank_before_address: bool = False) -> str:
    lines = ["app.pagent.xyz wants you to sign in with your Ethereum account:"]
    if blank_before_address:
        lines.append("")
    lines.extend([ADDRESS, ""])
    if statement is not None:
        lines.append(statement)
    lines.extend(
        [
            "",
            "URI: https://app.pagent.xyz/login",
            "Version: 1",
            "Chain ID: 8453",
            "Nonce: n0nce12345",
            "Issued At: 2025-01-01T00:00:00.000Z",
            "Expiration Time: 2025-01-01T00:10:00.000Z",
            "Resources:",
            "- https://app.pagent.xyz/terms",
            "- ipfs://bafybeigdyrzt",
        ]
    )
    return "\n".join(lines)


def test_parse_reads_every_field():
    parsed = parse_siwe_message(_message())

    assert parsed.domain == "app.pagent.xyz"
    assert parsed.address == ADDRESS
    assert parsed.statement == "Sign in to Pagent"
    assert parsed.uri == "https://app.pagent.xyz/login"
    assert parsed.version == "1"
    assert parsed.chain_id == 8453
    assert parsed.nonce == "n0nce12345"
    assert parsed.issued_at == "2025-01-01T00:00:00.000Z"
    assert parsed.expiration_time == "2025-01-01T00:10:00.000Z"
    assert parsed.not_before is None
    assert parsed.resources == ("https://app.pagent.xyz/terms", "ipfs://bafybeigdyrzt")


@pytest.mark.parametrize(
    "text",
    [
        _message(),
        _message(statement=None),
        _message(blank_before_address=True),
        _message() + "\n",
        _message(statement=None) + "\n\n",
        _message().split("\nResources:")[0] + "\nResources:",
        _message().split("\nResources:")[0] + "\nResources:\n",
        _message().split("\nResources:")[0],
    ],
)
def test_serialize_restores_the_signed_text(text):
    assert serialize_siwe_message(parse_siwe_message(text)) == text


def test_blank_line_before_address_is_remembered():
    parsed = parse_siwe_message(_message(blank_before_address=True))

    assert parsed.blank_line_before_address is True
    assert parsed.address == ADDRESS


def test_missing_statement_parses_as_none():
    assert parse_siwe_message(_message(statement=None)).statement is None


def test_short_message_is_malformed():
    with pytest.raises(MalformedMessageError):
        parse_siwe_message("example.com wants you to sign in with your Ethereum account:\n0xabc")


def test_message_without_address_is_malformed():
    text = _message().replace(ADDRESS, "not-an-address")
    with pytest.raises(MalformedMessageError):
        parse_siwe_message(text)


def test_non_numeric_chain_id_is_malformed():
    text = _message().replace("Chain ID: 8453", "Chain ID: base")
    with pytest.raises(MalformedMessageError):
        parse_siwe_message(text)


def test_parse_timestamp_normalizes_to_utc():
    assert parse_timestamp("2025-01-01T00:00:00Z") == datetime(2025, 1, 1, tzinfo=timezone.utc)
    assert parse_timestamp("2025-01-01T02:00:00+02:00") == datetime(2025, 1, 1, tzinfo=timezone.utc)
    assert parse_timestamp("2025-01-01T00:00:00") == datetime(2025, 1, 1, tzinfo=timezone.utc)


def test_parse_timestamp_rejects_garbage():
    with pytest.raises(MalformedMessageError):
        parse_timestamp("yesterday")


def test_empty_resources_header_and_trailing_newline_are_remembered():
    text = _message().split("\nResources:")[0] + "\nResources:\n"

    parsed = parse_siwe_message(text)

    assert parsed.resources == ()
    assert parsed.resources_header is True
    assert parsed.trailing_blank_lines == 1
    assert parsed.expiration_time == "2025-01-01T00:10:00.000Z"
