import secrets
from functools import lru_cache
from typing import Optional

import redis
from fastapi import Depends, Header, HTTPException

from siwe_auth.core.config import SiweOptions, get_settings
from siwe_auth.db.session import get_session_factory
from siwe_auth.services.challenge import ChallengeService
from siwe_auth.services.siwe_nonce_store import NonceStore, RedisNonceStore, SqlNonceStore
from siwe_auth.services.verification import VerificationService


@lru_cache
def get_siwe_options() -> SiweOptions:
    return get_settings().siwe_options()


@lru_cache
def get_nonce_store() -> NonceStore:
    settings = get_settings()
    if settings.nonce_backend == "redis":
        client = redis.Redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_timeout=settings.redis_socket_timeout_seconds,
        )
        return RedisNonceStore(client)
    return SqlNonceStore(get_session_factory())


def _store_if_needed(options: SiweOptions) -> Optional[NonceStore]:
    return get_nonce_store() if options.prevent_replay else None


def get_challenge_service() -> ChallengeService:
    options = get_siwe_options()
    return ChallengeService(options, _store_if_needed(options))


def get_verification_service() -> VerificationService:
    options = get_siwe_options()
    return VerificationService(options, _store_if_needed(options))


def get_admin_token() -> Optional[str]:
    return get_settings().siwe_admin_token


def require_admin(
    x_admin_token: Optional[str] = Header(default=None),
    expected: Optional[str] = Depends(get_admin_token),
) -> None:
    if not expected or not x_admin_token or not secrets.compare_digest(x_admin_token.encode(), expected.encode()):
        raise HTTPException(status_code=403, detail={"code": "FORBIDDEN", "message": "Admin token required."})
