"""
SIWE authentication errors.

Every failure the challenge/verify flow can produce maps to exactly one class
here. The HTTP layer translates these into status codes; nothing below it
knows about HTTP.
"""
from __future__ import annotations


class SiweAuthError(Exception):
    """Base class for everything raised by the SIWE core."""

    code = "SIWE_ERROR"
    retryable = False
    default_message = "SIWE authentication error."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class ConfigurationError(SiweAuthError):
    """Adapter options are missing or invalid. Fatal at startup."""

    code = "CONFIGURATION_ERROR"
    default_message = "Invalid SIWE adapter configuration."


class NonceStoreError(SiweAuthError):
    """The nonce backend failed (connection, timeout, constraint...)."""

    code = "STORAGE_ERROR"
    retryable = True
    default_message = "Nonce storage failure."


class InvalidRequest(SiweAuthError):
    code = "INVALID_REQUEST"
    default_message = "Invalid challenge request."


class ChallengePersistenceFailed(SiweAuthError):
    code = "CHALLENGE_PERSISTENCE_FAILED"
    retryable = True
    default_message = "Failed to save nonce for challenge."


class AuthError(SiweAuthError):
    """Verification failed. Terminal unless ``retryable`` says otherwise."""

    code = "AUTH_ERROR"
    default_message = "Authentication failed."


class MissingFields(AuthError):
    code = "MISSING_FIELDS"
    default_message = "Missing required fields in authData (message, signature, nonce, address)."


class MalformedMessage(AuthError):
    code = "MALFORMED_MESSAGE"
    default_message = "Invalid SIWE message format."


class DomainMismatch(AuthError):
    code = "DOMAIN_MISMATCH"
    default_message = "Invalid domain."


class StatementMismatch(AuthError):
    code = "STATEMENT_MISMATCH"
    default_message = "Invalid statement."


class VersionMismatch(AuthError):
    code = "VERSION_MISMATCH"
    default_message = "Invalid version."


class AddressMismatch(AuthError):
    code = "ADDRESS_MISMATCH"
    default_message = "Address mismatch."


class InvalidSignature(AuthError):
    code = "INVALID_SIGNATURE"
    default_message = "Invalid signature."


class NonceInvalidOrExpired(AuthError):
    code = "NONCE_INVALID_OR_EXPIRED"
    default_message = "Message expired or nonce invalid."


class InternalError(AuthError):
    code = "INTERNAL_ERROR"
    retryable = True
    default_message = "Authentication failed: internal error."
