from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def get_expiration_time(now: datetime, validity: timedelta) -> datetime:
    """Absolute expiry for something created at ``now`` that lives for ``validity``."""
    if validity <= timedelta(0):
        raise ValueError("validity must be a positive duration")
    return now + validity
