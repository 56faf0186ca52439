from .siwe import (
    SiweChallengeRequest,
    SiweChallengeResponse,
    SiweVerifyRequest,
    SiweVerifyResponse,
    NonceCleanupResponse,
)

__all__ = [
    "SiweChallengeRequest",
    "SiweChallengeResponse",
    "SiweVerifyRequest",
    "SiweVerifyResponse",
    "NonceCleanupResponse",
]
