from __future__ import annotations

import re
import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Tuple

from siwe_auth.core.errors import MalformedMessage


# EIP-4361 message layout:
# [<scheme>://]<domain> wants you to sign in with your Ethereum account:
# <address>
#
# <statement?>
#
# URI: <uri>
# Version: <version>
# Chain ID: <chain_id>
# Nonce: <nonce>
# Issued At: <rfc3339>
# Expiration Time: <rfc3339>    (optional)
# Not Before: <rfc3339>         (optional)
# Request ID: <id>              (optional)
# Resources:                    (optional)
# - <uri>
#
# Without a statement the address is followed by three line feeds.
DOMAIN_PATTERN = r"[^\s/?#]+"
VERSION_PATTERN = r"\S+"
# chain ids are uint256, at most 78 decimal digits
MAX_CHAIN_ID = 2**256 - 1

SIWE_RE = re.compile(
    r"(?:(?P<scheme>[a-zA-Z][a-zA-Z0-9+\-.]*)://)?"
    r"(?P<domain>" + DOMAIN_PATTERN + r") wants you to sign in with your Ethereum account:\n"
    r"(?P<address>0x[a-fA-F0-9]{40})\n\n"
    r"(?:(?P<statement>[^\n]+)\n)?\n"
    r"URI: (?P<uri>\S+)\n"
    r"Version: (?P<version>" + VERSION_PATTERN + r")\n"
    r"Chain ID: (?P<chain_id>[0-9]{1,78})\n"
    r"Nonce: (?P<nonce>[a-zA-Z0-9]{8,})\n"
    r"Issued At: (?P<issued_at>[^\n]+)"
    r"(?:\nExpiration Time: (?P<expiration_time>[^\n]+))?"
    r"(?:\nNot Before: (?P<not_before>[^\n]+))?"
    r"(?:\nRequest ID: (?P<request_id>[^\n]*))?"
    r"(?:\nResources:(?P<resources>(?:\n- [^\n]+)+))?"
)

RFC3339_RE = re.compile(
    r"(?P<base>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<fraction>\d+))?"
    r"(?P<offset>[Zz]|[+-]\d{2}:\d{2})"
)

HEADER_SUFFIX = " wants you to sign in with your Ethereum account:"

NONCE_ALPHABET = string.ascii_letters + string.digits
NONCE_LENGTH = 17  # ~96 bits of entropy


@dataclass(frozen=True)
class SiweMessage:
    domain: str
    address: str
    uri: str
    version: str
    chain_id: int
    nonce: str
    issued_at: str
    statement: Optional[str] = None
    expiration_time: Optional[str] = None
    not_before: Optional[str] = None
    request_id: Optional[str] = None
    resources: Tuple[str, ...] = ()
    scheme: Optional[str] = None

    @property
    def issued_at_datetime(self) -> datetime:
        return parse_timestamp(self.issued_at)

    @property
    def expiration_datetime(self) -> Optional[datetime]:
        return parse_timestamp(self.expiration_time) if self.expiration_time else None

    @property
    def not_before_datetime(self) -> Optional[datetime]:
        return parse_timestamp(self.not_before) if self.not_before else None


def generate_nonce() -> str:
    return "".join(secrets.choice(NONCE_ALPHABET) for _ in range(NONCE_LENGTH))


def format_timestamp(value: datetime) -> str:
    """RFC 3339 in UTC with millisecond precision, e.g. 2024-01-01T00:00:00.000Z."""
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    m = RFC3339_RE.fullmatch(value)
    if not m:
        raise ValueError(f"Invalid RFC 3339 timestamp: {value!r}")

    fraction = (m.group("fraction") or "")[:6].ljust(6, "0")
    offset = m.group("offset")
    if offset in ("Z", "z"):
        offset = "+00:00"
    # raises ValueError on impossible dates such as month 13
    return datetime.fromisoformat(f"{m.group('base')}.{fraction}{offset}")


def prepare_message(msg: SiweMessage) -> str:
    """Render the exact text the wallet signs. Same fields, same bytes."""
    header = f"{msg.domain}{HEADER_SUFFIX}"
    if msg.scheme:
        header = f"{msg.scheme}://{header}"

    lines = [header, msg.address, ""]
    if msg.statement:
        lines += [msg.statement, ""]
    else:
        lines.append("")

    lines += [
        f"URI: {msg.uri}",
        f"Version: {msg.version}",
        f"Chain ID: {msg.chain_id}",
        f"Nonce: {msg.nonce}",
        f"Issued At: {msg.issued_at}",
    ]
    if msg.expiration_time:
        lines.append(f"Expiration Time: {msg.expiration_time}")
    if msg.not_before:
        lines.append(f"Not Before: {msg.not_before}")
    if msg.request_id is not None:
        lines.append(f"Request ID: {msg.request_id}")
    if msg.resources:
        lines.append("Resources:")
        lines += [f"- {resource}" for resource in msg.resources]

    return "\n".join(lines)


def parse_siwe_message(message: str) -> SiweMessage:
    m = SIWE_RE.fullmatch(message)
    if not m:
        raise MalformedMessage("Invalid SIWE message format.")

    for field in ("issued_at", "expiration_time", "not_before"):
        value = m.group(field)
        if value is None:
            continue
        try:
            parse_timestamp(value)
        except ValueError:
            raise MalformedMessage(f"Invalid SIWE message format: malformed {field}.")

    chain_id = int(m.group("chain_id"))
    if chain_id > MAX_CHAIN_ID:
        raise MalformedMessage("Invalid SIWE message format: malformed chain_id.")

    resources = m.group("resources")
    return SiweMessage(
        domain=m.group("domain"),
        address=m.group("address"),
        uri=m.group("uri"),
        version=m.group("version"),
        chain_id=chain_id,
        nonce=m.group("nonce"),
        issued_at=m.group("issued_at"),
        statement=m.group("statement"),
        expiration_time=m.group("expiration_time"),
        not_before=m.group("not_before"),
        request_id=m.group("request_id"),
        resources=tuple(line[2:] for line in resources.split("\n")[1:]) if resources else (),
        scheme=m.group("scheme"),
    )
