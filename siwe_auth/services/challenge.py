"""
Challenge issuance: the first half of the SIWE handshake.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from web3 import Web3

from siwe_auth.core.config import SiweOptions
from siwe_auth.core.errors import ChallengePersistenceFailed, InvalidRequest, NonceStoreError
from siwe_auth.core.observability import get_logger, short_nonce
from siwe_auth.services.expiry import get_expiration_time, utc_now
from siwe_auth.services.siwe import MAX_CHAIN_ID, SiweMessage, format_timestamp, generate_nonce, prepare_message
from siwe_auth.services.siwe_nonce_store import NonceStore

logger = get_logger(__name__)

RESPONSE_TYPE_MESSAGE = "message"
RESPONSE_TYPE_NONCE_EXPIRATION = "nonce-expiration"
RESPONSE_TYPES = (RESPONSE_TYPE_MESSAGE, RESPONSE_TYPE_NONCE_EXPIRATION)


@dataclass
class ChallengeRequest:
    response_type: str
    address: Optional[str] = None
    uri: Optional[str] = None
    chain_id: Optional[int] = None


@dataclass
class ChallengeResult:
    nonce: str
    expiration_time: datetime
    message: Optional[str] = None

    def to_response(self) -> dict:
        if self.message is not None:
            return {"message": self.message, "nonce": self.nonce}
        return {"nonce": self.nonce, "expirationTime": format_timestamp(self.expiration_time)}


def validate_challenge_request(request: ChallengeRequest) -> None:
    if request.response_type not in RESPONSE_TYPES:
        raise InvalidRequest(f"Unknown responseType {request.response_type!r}.")

    if request.response_type != RESPONSE_TYPE_MESSAGE:
        return

    chain_id = request.chain_id
    # bool is an int subclass; True is not a chain id
    if not isinstance(chain_id, int) or isinstance(chain_id, bool) or chain_id <= 0 or chain_id > MAX_CHAIN_ID:
        raise InvalidRequest("Invalid chainId provided for challenge.")
    if not isinstance(request.address, str) or not Web3.is_address(request.address):
        raise InvalidRequest("Invalid Ethereum address provided for challenge.")
    if not isinstance(request.uri, str) or not request.uri.strip():
        raise InvalidRequest("Valid URI is required for challenge.")


class ChallengeService:
    """Generates nonces, persists them when replay prevention is on, builds the SIWE text."""

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

    def issue(self, request: ChallengeRequest) -> ChallengeResult:
        validate_challenge_request(request)

        now = self.clock()
        nonce = generate_nonce()
        expiration_time = get_expiration_time(now, self.options.message_validity)
        log = logger.bind(response_type=request.response_type, nonce=short_nonce(nonce))

        message = None
        if request.response_type == RESPONSE_TYPE_MESSAGE:
            message = prepare_message(
                SiweMessage(
                    domain=self.options.domain,
                    address=Web3.to_checksum_address(request.address),
                    statement=self.options.statement,
                    uri=request.uri,
                    version=self.options.version,
                    chain_id=request.chain_id,
                    nonce=nonce,
                    issued_at=format_timestamp(now),
                    expiration_time=format_timestamp(expiration_time),
                )
            )

        if self.options.prevent_replay:
            try:
                self.nonce_store.put(nonce, expiration_time)
            except NonceStoreError as exc:
                log.error("siwe_challenge_persist_failed", code=ChallengePersistenceFailed.code, error=str(exc))
                raise ChallengePersistenceFailed() from exc

        log.info("siwe_challenge_issued", expires_at=format_timestamp(expiration_time))
        return ChallengeResult(nonce=nonce, expiration_time=expiration_time, message=message)
