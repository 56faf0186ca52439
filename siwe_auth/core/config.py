from __future__ import annotations

import re
from datetime import timedelta
from functools import lru_cache
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from siwe_auth.core.errors import ConfigurationError
from siwe_auth.services.siwe import DOMAIN_PATTERN, VERSION_PATTERN


class SiweOptions(BaseModel):
    """Read-only SIWE adapter options. Built once at startup."""

    model_config = ConfigDict(frozen=True)

    domain: StrictStr = Field(..., min_length=1)
    statement: StrictStr = Field(..., min_length=1)
    version: StrictStr = Field(..., min_length=1)
    prevent_replay: StrictBool
    message_validity: timedelta

    @field_validator("domain", "statement", "version")
    @classmethod
    def single_line(cls, value: str) -> str:
        # each of these ends up on its own line of the signed message
        if "\n" in value or "\r" in value:
            raise ValueError("must be a single line")
        return value

    @field_validator("domain")
    @classmethod
    def domain_is_authority(cls, value: str) -> str:
        # host[:port] only, as the message header carries it
        if not re.fullmatch(DOMAIN_PATTERN, value):
            raise ValueError("must be a host[:port] without scheme, path or whitespace")
        return value

    @field_validator("version")
    @classmethod
    def version_is_token(cls, value: str) -> str:
        if not re.fullmatch(VERSION_PATTERN, value):
            raise ValueError("must not contain whitespace")
        return value

    @field_validator("message_validity")
    @classmethod
    def positive_validity(cls, value: timedelta) -> timedelta:
        if value <= timedelta(0):
            raise ValueError("must be a positive duration")
        return value


def load_siwe_options(**values) -> SiweOptions:
    try:
        return SiweOptions(**values)
    except ValidationError as exc:
        raise ConfigurationError(f"SIWE Adapter: invalid options: {exc}") from exc


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Nonce storage
    nonce_backend: Literal["sql", "redis"] = "sql"
    database_url: str = "sqlite:///./siwe_auth.db"
    redis_url: str = "redis://localhost:6379/0"
    redis_socket_timeout_seconds: float = 2.0

    # SIWE
    siwe_domain: str
    siwe_statement: str
    siwe_version: str = "1"
    siwe_prevent_replay: bool = True
    siwe_message_validity_seconds: int = 300

    # shared secret for maintenance routes; unset disables them
    siwe_admin_token: Optional[str] = None

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    def siwe_options(self) -> SiweOptions:
        return load_siwe_options(
            domain=self.siwe_domain,
            statement=self.siwe_statement,
            version=self.siwe_version,
            prevent_replay=self.siwe_prevent_replay,
            message_validity=timedelta(seconds=self.siwe_message_validity_seconds),
        )


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid settings: {exc}") from exc
