from __future__ import annotations

import re
from datetime import datetime, timezone

from pagent.domain.entities.siwe import SiweMessage
from pagent.domain.exceptions import MalformedMessageError


HEADER_SUFFIX = " wants you to sign in with your Ethereum account:"
ADDRESS_PATTERN = re.compile(r"0x[a-fA-F0-9]{40}")
ADDRESS_SCAN_LINES = 5

_FIELD_ORDER = (
    ("URI", "uri"),
    ("Version", "version"),
    ("Chain ID", "chain_id"),
    ("Nonce", "nonce"),
    ("Issued At", "issued_at"),
    ("Expiration Time", "expiration_time"),
    ("Not Before", "not_before"),
    ("Request ID", "request_id"),
)
_FIELD_BY_LABEL = dict(_FIELD_ORDER)


def parse_siwe_message(text: str) -> SiweMessage:
    lines = text.split("\n")
    if len(lines) < 4:
        raise MalformedMessageError(f"Message too short ({len(lines)} lines).")

    domain = _parse_domain(lines[0])
    address, address_index, blank_before = _locate_address(lines)

    field_start = _first_field_index(lines, address_index + 1)
    statement = _parse_statement(lines[address_index + 1 : field_start])
    field_lines = lines[field_start:]
    trailing = _count_trailing_blank_lines(field_lines)
    fields, resources = _parse_fields(field_lines[: len(field_lines) - trailing])

    chain_id = None
    raw_chain_id = fields.get("chain_id")
    if raw_chain_id is not None:
        try:
            chain_id = int(raw_chain_id)
        except ValueError as exc:
            raise MalformedMessageError(f"Invalid Chain ID: {raw_chain_id}") from exc

    return SiweMessage(
        domain=domain,
        address=address,
        statement=statement,
        uri=fields.get("uri", ""),
        version=fields.get("version", ""),
        chain_id=chain_id,
        nonce=fields.get("nonce", ""),
        issued_at=fields.get("issued_at", ""),
        expiration_time=fields.get("expiration_time"),
        not_before=fields.get("not_before"),
        request_id=fields.get("request_id"),
        resources=tuple(resources) if resources is not None else (),
        blank_line_before_address=blank_before,
        resources_header=resources is not None,
        trailing_blank_lines=trailing,
    )


def serialize_siwe_message(message: SiweMessage) -> str:
    lines = [f"{message.domain}{HEADER_SUFFIX}"]
    if message.blank_line_before_address:
        lines.append("")
    lines.append(message.address)
    lines.append("")
    if message.statement is not None:
        lines.append(message.statement)
    lines.append("")

    for label, attr in _FIELD_ORDER:
        value = getattr(message, attr)
        if value is None or value == "":
            continue
        lines.append(f"{label}: {value}")

    if message.resources or message.resources_header:
        lines.append("Resources:")
        lines.extend(f"- {resource}" for resource in message.resources)

    lines.extend([""] * message.trailing_blank_lines)
    return "\n".join(lines)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp as signed by the wallet into an aware UTC datetime."""
    raw = value.strip()
    if raw.endswith("Z") or raw.endswith("z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError as exc:
        raise MalformedMessageError(f"Invalid timestamp: {value}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _parse_domain(header: str) -> str:
    if header.endswith(HEADER_SUFFIX):
        return header[: -len(HEADER_SUFFIX)]
    return header.split(" ", 1)[0].strip()


def _locate_address(lines: list[str]) -> tuple[str, int, bool]:
    if ADDRESS_PATTERN.fullmatch(lines[1].strip()):
        return lines[1].strip(), 1, False
    if lines[1].strip() == "" and ADDRESS_PATTERN.fullmatch(lines[2].strip()):
        return lines[2].strip(), 2, True

    for index, line in enumerate(lines[:ADDRESS_SCAN_LINES]):
        match = ADDRESS_PATTERN.search(line)
        if match:
            return match.group(0), index, False

    raise MalformedMessageError("No wallet address found in message.")


def _first_field_index(lines: list[str], start: int) -> int:
    for index in range(start, len(lines)):
        label, sep, _ = lines[index].partition(": ")
        if sep and label in _FIELD_BY_LABEL:
            return index
        if lines[index] == "Resources:":
            return index
    return len(lines)


def _count_trailing_blank_lines(lines: list[str]) -> int:
    count = 0
    for line in reversed(lines):
        if line != "":
            break
        count += 1
    return count


def _parse_statement(block: list[str]) -> str | None:
    # Canonical layouts: ["", ""] without a statement, ["", statement, ""] with one.
    if len(block) >= 3 and block[0] == "" and block[-1] == "":
        statement = "\n".join(block[1:-1])
        return statement if statement.strip() else None
    text = "\n".join(line for line in block if line.strip())
    return text or None


def _parse_fields(lines: list[str]) -> tuple[dict[str, str], list[str] | None]:
    fields: dict[str, str] = {}
    resources: list[str] | None = None
    for line in lines:
        if line == "Resources:":
            resources = []
            continue
        if resources is not None and line.startswith("- "):
            resources.append(line[2:])
            continue
        label, sep, value = line.partition(": ")
        if sep and label in _FIELD_BY_LABEL:
            fields[_FIELD_BY_LABEL[label]] = value
    return fields, resources
