import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct

# Add the parent directory to the path so we can import siwe_auth modules
sys.path.insert(0, str(Path(__file__).parent.parent))

os.environ.setdefault("SIWE_DOMAIN", "app.example")
os.environ.setdefault("SIWE_STATEMENT", "Sign in")

from siwe_auth.core.config import SiweOptions
from siwe_auth.db.init_db import setup_nonce_table
from siwe_auth.db.session import make_engine, make_session_factory
from siwe_auth.services.siwe_nonce_store import SqlNonceStore

TEST_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe512961708279f8d5e7f5e8b2e4e8b7"
OTHER_PRIVATE_KEY = "0x5c0883a69102937d6231471b5dbb6204fe512961708279f8d5e7f5e8b2e4e8b8"

NOW = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock the services can be pinned to."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def sign(account, message: str) -> str:
    signed = account.sign_message(encode_defunct(text=message))
    return "0x" + bytes(signed.signature).hex()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def account():
    return Account.from_key(TEST_PRIVATE_KEY)


@pytest.fixture
def other_account():
    return Account.from_key(OTHER_PRIVATE_KEY)


@pytest.fixture
def options():
    return SiweOptions(
        domain="app.example",
        statement="Sign in",
        version="1",
        prevent_replay=True,
        message_validity=timedelta(minutes=5),
    )


@pytest.fixture
def engine(tmp_path):
    # file-backed so worker threads (TestClient, concurrency tests) share the data
    engine = make_engine(f"sqlite+pysqlite:///{tmp_path / 'nonces.db'}")
    setup_nonce_table(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def sql_store(session_factory):
    return SqlNonceStore(session_factory)
