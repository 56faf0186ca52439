"""
Tests for the SIWE verification state machine
"""
from datetime import timedelta
from unittest.mock import Mock, patch

import pytest

from conftest import NOW, sign
from siwe_auth.core.errors import (
    AddressMismatch,
    DomainMismatch,
    InternalError,
    InvalidSignature,
    MalformedMessage,
    MissingFields,
    NonceInvalidOrExpired,
    NonceStoreError,
    StatementMismatch,
    VersionMismatch,
)
from siwe_auth.services.challenge import ChallengeRequest, ChallengeService
from siwe_auth.services.siwe import format_timestamp, generate_nonce, parse_siwe_message, prepare_message
from siwe_auth.services.siwe_nonce_store import ConsumeResult
from siwe_auth.services.verification import AuthData, VerificationService


def build_message(account, nonce, **overrides) -> str:
    msg = parse_siwe_message(
        "app.example wants you to sign in with your Ethereum account:\n"
        f"{account.address}\n\n"
        "Sign in\n\n"
        "URI: https://app.example/login\n"
        "Version: 1\n"
        "Chain ID: 1\n"
        f"Nonce: {nonce}\n"
        f"Issued At: {format_timestamp(NOW)}\n"
        f"Expiration Time: {format_timestamp(NOW + timedelta(minutes=5))}"
    )
    if overrides:
        fields = {**msg.__dict__, **overrides}
        msg = type(msg)(**fields)
    return prepare_message(msg)


def signed_auth_data(account, nonce, signer=None, **overrides) -> AuthData:
    message = build_message(account, nonce, **overrides)
    return AuthData(
        message=message,
        signature=sign(signer or account, message),
        nonce=nonce,
        address=account.address,
    )


@pytest.fixture
def store():
    store = Mock()
    store.consume_if_valid.return_value = ConsumeResult.CONSUMED
    return store


@pytest.fixture
def verifier(options, store, clock):
    return VerificationService(options, store, clock=clock)


class TestVerificationSuccess:
    def test_valid_response_consumes_nonce(self, verifier, store, account, clock):
        nonce = generate_nonce()

        result = verifier.verify(signed_auth_data(account, nonce))

        assert result.address == account.address
        assert result.nonce == nonce
        store.consume_if_valid.assert_called_once_with(nonce, clock.now)

    def test_address_match_is_case_insensitive(self, verifier, account):
        auth_data = signed_auth_data(account, generate_nonce())
        auth_data.address = auth_data.address.lower()

        assert verifier.verify(auth_data).address == account.address


class TestVerificationFailures:
    @pytest.mark.parametrize("missing", ["message", "signature", "nonce", "address"])
    def test_missing_fields(self, verifier, store, account, missing):
        auth_data = signed_auth_data(account, generate_nonce())
        setattr(auth_data, missing, "")

        with pytest.raises(MissingFields):
            verifier.verify(auth_data)
        store.consume_if_valid.assert_not_called()

    def test_malformed_message(self, verifier, store, account):
        auth_data = AuthData(message="hello", signature="0x00", nonce="abcdefgh", address=account.address)

        with pytest.raises(MalformedMessage):
            verifier.verify(auth_data)
        store.consume_if_valid.assert_not_called()

    def test_oversized_chain_id_is_malformed(self, verifier, store, account):
        message = build_message(account, generate_nonce()).replace("Chain ID: 1", "Chain ID: " + "9" * 5000)
        auth_data = AuthData(message=message, signature="0x00", nonce="abcdefgh", address=account.address)

        with pytest.raises(MalformedMessage):
            verifier.verify(auth_data)
        store.consume_if_valid.assert_not_called()

    @pytest.mark.parametrize(
        "overrides, error",
        [
            ({"domain": "evil.example"}, DomainMismatch),
            ({"statement": "Sign in please"}, StatementMismatch),
            ({"statement": None}, StatementMismatch),
            ({"version": "2"}, VersionMismatch),
        ],
    )
    def test_static_field_mismatch(self, verifier, store, account, overrides, error):
        auth_data = signed_auth_data(account, generate_nonce(), **overrides)

        with pytest.raises(error):
            verifier.verify(auth_data)
        store.consume_if_valid.assert_not_called()
        store.delete.assert_not_called()

    def test_static_fields_checked_in_order(self, verifier, account):
        auth_data = signed_auth_data(account, generate_nonce(), domain="evil.example", version="2")

        with pytest.raises(DomainMismatch):
            verifier.verify(auth_data)

    def test_address_mismatch(self, verifier, store, account, other_account):
        auth_data = signed_auth_data(account, generate_nonce())
        auth_data.address = other_account.address

        with pytest.raises(AddressMismatch):
            verifier.verify(auth_data)
        store.consume_if_valid.assert_not_called()

    def test_domain_mismatch_reported_before_bad_signature(self, verifier, account):
        auth_data = signed_auth_data(account, generate_nonce(), domain="evil.example")
        auth_data.signature = "0x" + "00" * 65

        with patch("siwe_auth.services.verification.verify_signature") as mock_verify:
            with pytest.raises(DomainMismatch):
                verifier.verify(auth_data)
        mock_verify.assert_not_called()

    def test_invalid_signature_does_not_touch_store(self, verifier, store, account, other_account):
        auth_data = signed_auth_data(account, generate_nonce(), signer=other_account)

        with pytest.raises(InvalidSignature):
            verifier.verify(auth_data)
        store.consume_if_valid.assert_not_called()
        store.delete.assert_not_called()

    def test_nonce_in_message_must_match_auth_data(self, verifier, store, account):
        auth_data = signed_auth_data(account, generate_nonce())
        auth_data.nonce = generate_nonce()

        with pytest.raises(NonceInvalidOrExpired):
            verifier.verify(auth_data)
        store.consume_if_valid.assert_not_called()

    def test_expired_message(self, verifier, store, account, clock):
        auth_data = signed_auth_data(account, generate_nonce())
        clock.advance(minutes=5)

        with pytest.raises(NonceInvalidOrExpired):
            verifier.verify(auth_data)
        store.consume_if_valid.assert_not_called()

    def test_not_before_in_future(self, verifier, account):
        auth_data = signed_auth_data(
            account, generate_nonce(), not_before=format_timestamp(NOW + timedelta(minutes=1))
        )

        with pytest.raises(NonceInvalidOrExpired):
            verifier.verify(auth_data)

    @pytest.mark.parametrize("outcome", [ConsumeResult.NOT_FOUND, ConsumeResult.EXPIRED])
    def test_unclaimable_nonce_is_discarded(self, verifier, store, account, outcome):
        nonce = generate_nonce()
        store.consume_if_valid.return_value = outcome

        with pytest.raises(NonceInvalidOrExpired):
            verifier.verify(signed_auth_data(account, nonce))
        store.delete.assert_called_once_with(nonce)

    def test_stale_cleanup_failure_keeps_primary_error(self, verifier, store, account):
        store.consume_if_valid.return_value = ConsumeResult.EXPIRED
        store.delete.side_effect = NonceStoreError("connection reset")

        with pytest.raises(NonceInvalidOrExpired):
            verifier.verify(signed_auth_data(account, generate_nonce()))

    def test_store_failure_is_internal_error(self, verifier, store, account):
        store.consume_if_valid.side_effect = NonceStoreError("timeout")

        with pytest.raises(InternalError) as exc_info:
            verifier.verify(signed_auth_data(account, generate_nonce()))

        assert exc_info.value.retryable is True
        store.delete.assert_not_called()


class TestReplayScenarios:
    def test_issue_verify_then_replay(self, options, sql_store, clock, account):
        challenges = ChallengeService(options, sql_store, clock=clock)
        verifier = VerificationService(options, sql_store, clock=clock)

        challenge = challenges.issue(
            ChallengeRequest(
                response_type="message",
                address=account.address.lower(),
                uri="https://app.example/login",
                chain_id=1,
            )
        )
        assert challenge.nonce in challenge.message
        assert account.address in challenge.message
        assert challenge.message.startswith("app.example wants you to sign in")

        auth_data = AuthData(
            message=challenge.message,
            signature=sign(account, challenge.message),
            nonce=challenge.nonce,
            address=account.address,
        )
        clock.advance(seconds=30)

        assert verifier.verify(auth_data).nonce == challenge.nonce
        with pytest.raises(NonceInvalidOrExpired):
            verifier.verify(auth_data)

    def test_verifying_after_nonce_expiry_never_succeeds(self, options, sql_store, clock, account):
        challenges = ChallengeService(options, sql_store, clock=clock)
        verifier = VerificationService(options, sql_store, clock=clock)

        challenge = challenges.issue(ChallengeRequest(response_type="nonce-expiration"))
        # message signed with a later expiry than the stored nonce
        auth_data = signed_auth_data(
            account, challenge.nonce, expiration_time=format_timestamp(NOW + timedelta(hours=1))
        )
        clock.advance(minutes=6)

        with pytest.raises(NonceInvalidOrExpired):
            verifier.verify(auth_data)

    def test_replay_prevention_disabled_allows_reuse(self, options, clock, account):
        no_replay = options.model_copy(update={"prevent_replay": False})
        verifier = VerificationService(no_replay, None, clock=clock)
        auth_data = signed_auth_data(account, generate_nonce())

        assert verifier.verify(auth_data).address == account.address
        assert verifier.verify(auth_data).address == account.address
