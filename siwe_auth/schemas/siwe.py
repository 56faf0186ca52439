from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class SiweChallengeRequest(BaseModel):
    # raw JSON values; the challenge service validates and reports InvalidRequest
    model_config = ConfigDict(populate_by_name=True)

    response_type: Any = Field(default=None, alias="responseType")
    address: Any = None
    uri: Any = None
    chain_id: Any = Field(default=None, alias="chainId")


class SiweChallengeResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    nonce: str
    expiration_time: Optional[str] = Field(default=None, alias="expirationTime")
    message: Optional[str] = None


class SiweVerifyRequest(BaseModel):
    message: Optional[str] = None
    signature: Optional[str] = None
    nonce: Optional[str] = None
    address: Optional[str] = None


class SiweVerifyResponse(BaseModel):
    ok: bool = True
    address: str
    nonce: str


class NonceCleanupResponse(BaseModel):
    removed: int
