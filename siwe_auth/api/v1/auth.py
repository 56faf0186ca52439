from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from siwe_auth.core.deps import (
    get_challenge_service,
    get_nonce_store,
    get_verification_service,
    require_admin,
)
from siwe_auth.core.errors import (
    ChallengePersistenceFailed,
    InternalError,
    InvalidRequest,
    MalformedMessage,
    MissingFields,
    NonceStoreError,
    SiweAuthError,
)
from siwe_auth.schemas.siwe import (
    NonceCleanupResponse,
    SiweChallengeRequest,
    SiweChallengeResponse,
    SiweVerifyRequest,
    SiweVerifyResponse,
)
from siwe_auth.services.challenge import ChallengeRequest, ChallengeService
from siwe_auth.services.cleanup import cleanup_nonce_table
from siwe_auth.services.siwe_nonce_store import NonceStore
from siwe_auth.services.verification import AuthData, VerificationService

router = APIRouter()

BAD_REQUEST_ERRORS = (InvalidRequest, MissingFields, MalformedMessage)
UNAVAILABLE_ERRORS = (ChallengePersistenceFailed, InternalError, NonceStoreError)


def to_http_exception(exc: SiweAuthError) -> HTTPException:
    if isinstance(exc, BAD_REQUEST_ERRORS):
        status_code = 400
    elif isinstance(exc, UNAVAILABLE_ERRORS):
        status_code = 503
    else:
        status_code = 401
    return HTTPException(status_code=status_code, detail={"code": exc.code, "message": exc.message})


# -----------------------------
# SIWE (EIP-4361) AUTH
# -----------------------------

@router.post(
    "/auth/siwe/challenge",
    response_model=SiweChallengeResponse,
    response_model_exclude_none=True,
    response_model_by_alias=True,
)
def siwe_challenge(payload: SiweChallengeRequest, service: ChallengeService = Depends(get_challenge_service)):
    request = ChallengeRequest(
        response_type=payload.response_type,
        address=payload.address,
        uri=payload.uri,
        chain_id=payload.chain_id,
    )
    try:
        result = service.issue(request)
    except SiweAuthError as exc:
        raise to_http_exception(exc)

    return result.to_response()


@router.post("/auth/siwe/verify", response_model=SiweVerifyResponse)
def siwe_verify(payload: SiweVerifyRequest, service: VerificationService = Depends(get_verification_service)):
    auth_data = AuthData(
        message=payload.message,
        signature=payload.signature,
        nonce=payload.nonce,
        address=payload.address,
    )
    try:
        result = service.verify(auth_data)
    except SiweAuthError as exc:
        raise to_http_exception(exc)

    return SiweVerifyResponse(address=result.address, nonce=result.nonce)


@router.post(
    "/auth/siwe/cleanup",
    response_model=NonceCleanupResponse,
    dependencies=[Depends(require_admin)],
)
def siwe_cleanup(store: NonceStore = Depends(get_nonce_store)):
    try:
        removed = cleanup_nonce_table(store)
    except NonceStoreError as exc:
        raise to_http_exception(exc)

    return NonceCleanupResponse(removed=removed)
