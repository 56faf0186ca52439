"""
Nonce stores for SIWE replay prevention.

A nonce is claimable while a record for it exists and has not expired.
Consumption is a single atomic backend operation so that, of any number of
concurrent verifications racing on one nonce, exactly one wins.
"""
from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from datetime import datetime, timezone

import redis
from sqlalchemy import delete, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from siwe_auth.core.errors import NonceStoreError
from siwe_auth.core.observability import get_logger, short_nonce
from siwe_auth.models.nonce import Nonce

logger = get_logger(__name__)


class ConsumeResult(str, enum.Enum):
    CONSUMED = "consumed"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class NonceStore(ABC):
    """Durable record of issued nonces. All failures raise NonceStoreError."""

    @abstractmethod
    def put(self, nonce: str, expiration_time: datetime) -> None:
        """Store ``nonce`` until ``expiration_time``, replacing any existing record."""

    @abstractmethod
    def consume_if_valid(self, nonce: str, now: datetime) -> ConsumeResult:
        """Atomically delete ``nonce`` if it exists and expires after ``now``."""

    @abstractmethod
    def delete(self, nonce: str) -> bool:
        """Remove any record for ``nonce``. True if something was deleted."""

    @abstractmethod
    def delete_expired_before(self, now: datetime) -> int:
        """Bulk-delete records whose expiration is before ``now``; returns the count."""

    @abstractmethod
    def ping(self) -> None:
        """Round-trip to the backend, raising NonceStoreError if it is unreachable."""


class SqlNonceStore(NonceStore):
    """Nonce table in a relational database, one short transaction per call."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def put(self, nonce: str, expiration_time: datetime) -> None:
        try:
            with self._session_factory() as session, session.begin():
                session.execute(delete(Nonce).where(Nonce.nonce == nonce))
                session.add(Nonce(nonce=nonce, expiration_time=_utc(expiration_time)))
        except SQLAlchemyError as exc:
            raise NonceStoreError(f"Failed to save nonce: {exc}") from exc

    def consume_if_valid(self, nonce: str, now: datetime) -> ConsumeResult:
        now = _utc(now)
        try:
            with self._session_factory() as session, session.begin():
                # conditional delete: the row count decides the winner, no read-then-delete window
                result = session.execute(
                    delete(Nonce)
                    .where(Nonce.nonce == nonce, Nonce.expiration_time > now)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 1:
                    return ConsumeResult.CONSUMED

                stale = session.scalar(select(Nonce.id).where(Nonce.nonce == nonce))
        except SQLAlchemyError as exc:
            raise NonceStoreError(f"Failed to consume nonce: {exc}") from exc

        return ConsumeResult.EXPIRED if stale is not None else ConsumeResult.NOT_FOUND

    def delete(self, nonce: str) -> bool:
        try:
            with self._session_factory() as session, session.begin():
                result = session.execute(
                    delete(Nonce).where(Nonce.nonce == nonce).execution_options(synchronize_session=False)
                )
                return result.rowcount > 0
        except SQLAlchemyError as exc:
            raise NonceStoreError(f"Failed to delete nonce: {exc}") from exc

    def delete_expired_before(self, now: datetime) -> int:
        try:
            with self._session_factory() as session, session.begin():
                result = session.execute(
                    delete(Nonce)
                    .where(Nonce.expiration_time < _utc(now))
                    .execution_options(synchronize_session=False)
                )
                return result.rowcount or 0
        except SQLAlchemyError as exc:
            raise NonceStoreError(f"Failed to clean up nonces: {exc}") from exc

    def ping(self) -> None:
        try:
            with self._session_factory() as session:
                session.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            raise NonceStoreError(f"Nonce database unreachable: {exc}") from exc


def _epoch_ms(value: datetime) -> int:
    return int(_utc(value).timestamp() * 1000)


class RedisNonceStore(NonceStore):
    """Nonces as Redis keys holding their expiry (epoch ms) with a matching TTL.

    A sorted set scored by expiry indexes the keys so expired entries can be
    swept by range.
    """

    def __init__(self, client: redis.Redis, prefix: str = "siwe:nonce:"):
        self._r = client
        self._prefix = prefix
        self._index = f"{prefix}expirations"

    def nonce_key(self, nonce: str) -> str:
        return f"{self._prefix}{nonce}"

    def put(self, nonce: str, expiration_time: datetime) -> None:
        expires_ms = _epoch_ms(expiration_time)
        ttl_ms = max(1, expires_ms - _epoch_ms(datetime.now(timezone.utc)))
        try:
            pipe = self._r.pipeline(transaction=True)
            pipe.set(self.nonce_key(nonce), str(expires_ms), px=ttl_ms)
            pipe.zadd(self._index, {nonce: expires_ms})
            pipe.execute()
        except redis.RedisError as exc:
            raise NonceStoreError(f"Failed to save nonce: {exc}") from exc

    def consume_if_valid(self, nonce: str, now: datetime) -> ConsumeResult:
        try:
            pipe = self._r.pipeline(transaction=True)
            pipe.getdel(self.nonce_key(nonce))
            pipe.zrem(self._index, nonce)
            value, _ = pipe.execute()
        except redis.RedisError as exc:
            raise NonceStoreError(f"Failed to consume nonce: {exc}") from exc

        if value is None:
            return ConsumeResult.NOT_FOUND
        if int(value) <= _epoch_ms(now):
            return ConsumeResult.EXPIRED
        return ConsumeResult.CONSUMED

    def delete(self, nonce: str) -> bool:
        try:
            pipe = self._r.pipeline(transaction=True)
            pipe.delete(self.nonce_key(nonce))
            pipe.zrem(self._index, nonce)
            deleted, _ = pipe.execute()
        except redis.RedisError as exc:
            raise NonceStoreError(f"Failed to delete nonce: {exc}") from exc
        return bool(deleted)

    def delete_expired_before(self, now: datetime) -> int:
        try:
            expired = self._r.zrangebyscore(self._index, "-inf", f"({_epoch_ms(now)}")
            if not expired:
                return 0
            pipe = self._r.pipeline(transaction=True)
            pipe.delete(*[self.nonce_key(n) for n in expired])
            pipe.zrem(self._index, *expired)
            _, removed = pipe.execute()
        except redis.RedisError as exc:
            raise NonceStoreError(f"Failed to clean up nonces: {exc}") from exc

        logger.debug("siwe_redis_nonces_swept", removed=removed, sample=short_nonce(expired[0]))
        return int(removed)

    def ping(self) -> None:
        try:
            self._r.ping()
        except redis.RedisError as exc:
            raise NonceStoreError(f"Nonce redis unreachable: {exc}") from exc
