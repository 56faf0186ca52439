from __future__ import annotations

from datetime import datetime
from typing import Optional

from siwe_auth.core.observability import get_logger
from siwe_auth.services.expiry import utc_now
from siwe_auth.services.siwe_nonce_store import NonceStore

logger = get_logger(__name__)


def cleanup_nonce_table(store: NonceStore, now: Optional[datetime] = None) -> int:
    """Delete every nonce that expired before ``now``. Returns how many went."""
    now = now or utc_now()
    logger.info("siwe_nonce_cleanup_started", before=now.isoformat())

    removed = store.delete_expired_before(now)

    if removed == 0:
        logger.info("siwe_nonce_cleanup_nothing_to_do")
    else:
        logger.info("siwe_nonce_cleanup_finished", removed=removed)
    return removed
