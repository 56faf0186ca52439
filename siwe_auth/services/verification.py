"""
Verification: the second half of the SIWE handshake.

Checks run cheapest first. Structural checks never touch the nonce store, and
only a request whose signature verified is allowed to consume a nonce.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from siwe_auth.core.config import SiweOptions
from siwe_auth.core.errors import (
    AddressMismatch,
    AuthError,
    DomainMismatch,
    InternalError,
    InvalidSignature,
    MissingFields,
    NonceInvalidOrExpired,
    NonceStoreError,
    StatementMismatch,
    VersionMismatch,
)
from siwe_auth.core.observability import get_logger, log_auth_failure, short_nonce
from siwe_auth.services.expiry import utc_now
from siwe_auth.services.signature import verify_signature
from siwe_auth.services.siwe import SiweMessage, parse_siwe_message, prepare_message
from siwe_auth.services.siwe_nonce_store import ConsumeResult, NonceStore

logger = get_logger(__name__)


@dataclass
class AuthData:
    message: Optional[str] = None
    signature: Optional[str] = None
    nonce: Optional[str] = None
    address: Optional[str] = None


@dataclass
class VerificationResult:
    address: str
    nonce: str
    message: SiweMessage


class VerificationService:
    def __init__(
        self,
        options: SiweOptions,
        nonce_store: Optional[NonceStore] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        if options.prevent_replay and nonce_store is None:
            raise ValueError("a nonce store is required when prevent_replay is enabled")
        self.options = options
        self.nonce_store = nonce_store
        self.clock = clock

    def verify(self, auth_data: AuthData) -> VerificationResult:
        log = logger.bind(address=auth_data.address, nonce=short_nonce(auth_data.nonce))
        try:
            result = self._verify(auth_data)
        except AuthError as exc:
            log_auth_failure(log, exc)
            raise

        log.info("siwe_verification_succeeded")
        return result

    def _verify(self, auth_data: AuthData) -> VerificationResult:
        if not (auth_data.message and auth_data.signature and auth_data.nonce and auth_data.address):
            raise MissingFields()

        msg = parse_siwe_message(auth_data.message)

        if msg.domain != self.options.domain:
            raise DomainMismatch(f"Invalid domain. Expected: {self.options.domain}, Got: {msg.domain}")
        if msg.statement != self.options.statement:
            raise StatementMismatch()
        if msg.version != self.options.version:
            raise VersionMismatch(f"Invalid version. Expected: {self.options.version}, Got: {msg.version}")

        if msg.address.lower() != auth_data.address.lower():
            raise AddressMismatch()

        now = self.clock()
        self._check_freshness(msg, auth_data.nonce, now)

        if not verify_signature(prepare_message(msg), auth_data.signature, auth_data.address):
            raise InvalidSignature()

        if self.options.prevent_replay:
            self._consume_nonce(auth_data.nonce, now)

        return VerificationResult(address=msg.address, nonce=msg.nonce, message=msg)

    def _check_freshness(self, msg: SiweMessage, nonce: str, now: datetime) -> None:
        if msg.nonce != nonce:
            raise NonceInvalidOrExpired("Message expired or nonce invalid: nonce mismatch.")

        expires_at = msg.expiration_datetime
        if expires_at is not None and expires_at <= now:
            raise NonceInvalidOrExpired("Message expired or nonce invalid: message expired.")

        not_before = msg.not_before_datetime
        if not_before is not None and not_before > now:
            raise NonceInvalidOrExpired("Message expired or nonce invalid: message not yet valid.")

    def _consume_nonce(self, nonce: str, now: datetime) -> None:
        try:
            outcome = self.nonce_store.consume_if_valid(nonce, now)
        except NonceStoreError as exc:
            raise InternalError(f"Authentication failed: {exc.message}") from exc

        if outcome is ConsumeResult.CONSUMED:
            return

        self._discard_stale_nonce(nonce)
        raise NonceInvalidOrExpired(f"Message expired or nonce invalid: nonce {outcome.value}.")

    def _discard_stale_nonce(self, nonce: str) -> None:
        try:
            self.nonce_store.delete(nonce)
        except NonceStoreError as exc:
            logger.warning("siwe_stale_nonce_cleanup_failed", nonce=short_nonce(nonce), error=exc.message)
