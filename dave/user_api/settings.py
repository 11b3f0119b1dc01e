"""Service configuration loaded from DAVE_* environment variables."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_USERNAME_CLAIM = "preferred_username"
DEFAULT_EMAIL_CLAIM = "email"
DEFAULT_EMAIL_VERIFIED_CLAIM = "email_verified"
DEFAULT_NAME_CLAIM = "name"


class DaveSettings(BaseSettings):
    """Dave user API settings.

    All fields are read from environment variables with the ``DAVE_`` prefix.
    For example, ``DAVE_LOG_LEVEL=DEBUG`` maps to ``log_level``.

    AWS credentials are **not** managed here -- boto3 resolves them through
    its own provider chain (env vars, shared config, instance metadata).
    """

    model_config = SettingsConfigDict(
        env_prefix="DAVE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- Logging ---------------------------------------------------------------
    log_level: str = "INFO"

    # -- Server ----------------------------------------------------------------
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8443

    # -- AWS -------------------------------------------------------------------
    aws_region: str | None = None
    """Region for every client.  Falls back to the boto3 default chain."""

    # -- Workspace store -------------------------------------------------------
    workspace_store: Literal["dynamodb", "memory"] = "dynamodb"
    workspace_table: str = "workspaces"
    dynamodb_endpoint: str | None = None
    """Optional endpoint override (DynamoDB Local, LocalStack)."""

    # -- Auth ------------------------------------------------------------------
    auth_domain: str = ""
    """Identity provider domain without scheme, e.g. ``example.eu.auth0.com``."""

    auth_audience: str = ""
    auth_client_id: str = ""
    auth_redirect_uri: str = "http://localhost:8080/callback"
    auth_scopes: list[str] = Field(default_factory=lambda: ["openid", "profile", "email"])
    username_claim: str = DEFAULT_USERNAME_CLAIM
    email_claim: str = DEFAULT_EMAIL_CLAIM
    email_verified_claim: str = DEFAULT_EMAIL_VERIFIED_CLAIM
    name_claim: str = DEFAULT_NAME_CLAIM

    # -- Network ---------------------------------------------------------------
    vpc_name: str = "workspace-vpc"
    vpc_cidr_block: str = "10.0.0.0/16"
    subnet_cidr_block: str = "10.0.0.0/20"

    # -- Workspaces ------------------------------------------------------------
    user_data_template: str = "workspace-user-data.sh.j2"
    default_page_size: int = Field(20, ge=1)
    max_page_size: int = Field(100, ge=1)

    @field_validator("auth_domain")
    @classmethod
    def _strip_scheme(cls, value: str) -> str:
        value = value.removeprefix("https://").removeprefix("http://")
        return value.rstrip("/")


@lru_cache(maxsize=1)
def get_settings() -> DaveSettings:
    """Return a cached settings instance.

    Reads from environment variables and ``.env`` on first call, then returns
    the same object.  Call ``get_settings.cache_clear()`` in tests to force a
    re-read after overriding env vars.
    """
    return DaveSettings()
