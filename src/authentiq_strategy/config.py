# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/authentiq_strategy

"""
Configuration for the authentiq-strategy package.
"""

import re
from typing import Annotated, Any

from pydantic import Field, SecretStr, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

AUTHENTIQ_AUTHORIZATION_URL = "https://connect.authentiq.io/authorize"
AUTHENTIQ_TOKEN_URL = "https://connect.authentiq.io/token"
AUTHENTIQ_USERINFO_URL = "https://connect.authentiq.io/userinfo"
AUTHENTIQ_ISSUER = "https://connect.authentiq.io/"

OPENID_SCOPE = "openid"


class AuthentiqConfig(BaseSettings):
    """
    Configuration settings for the Authentiq strategy.

    Immutable once constructed. Required fields are validated eagerly so a
    misconfigured strategy fails at startup rather than during a request.

    Attributes:
        client_id (str): The OAuth2 client ID. Also the expected ID token audience.
        client_secret (SecretStr): The OAuth2 client secret. Used as the HS256 key by default.
        callback_url (str): The redirect URI registered with the provider.
        scope (list[str]): Requested scopes, deduplicated, always including "openid".
        issuer (str): The expected ID token issuer.
        algorithms (list[str]): Allowed ID token signing algorithms.
        clock_tolerance (int): Accepted clock skew in seconds.
        verification_key (SecretStr | None): Key overriding client_secret for signature checks.
    """

    model_config = SettingsConfigDict(
        env_prefix="AUTHENTIQ_",
        case_sensitive=False,
        frozen=True,
    )

    client_id: str = Field(..., min_length=1)
    client_secret: SecretStr
    callback_url: str = Field(..., min_length=1)
    # Must precede the URL fields so their validators can read it
    unsafe_local_dev: bool = False
    scope: Annotated[list[str], NoDecode] = Field(default_factory=lambda: [OPENID_SCOPE])
    scope_separator: str = " "
    authorization_url: str = AUTHENTIQ_AUTHORIZATION_URL
    token_url: str = AUTHENTIQ_TOKEN_URL
    user_profile_url: str = AUTHENTIQ_USERINFO_URL
    issuer: str = AUTHENTIQ_ISSUER
    algorithms: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["HS256"])
    clock_tolerance: int = Field(default=0, ge=0)
    verification_key: SecretStr | None = None
    http_timeout: float = Field(default=10.0, gt=0, description="Timeout in seconds for all IdP network operations.")
    max_response_bytes: int = Field(default=1_000_000, gt=0)
    pii_salt: SecretStr = SecretStr("authentiq-unsafe-default-salt")

    @property
    def audience(self) -> str:
        """The expected ID token audience, which is always the client ID."""
        return self.client_id

    @field_validator("client_secret")
    @classmethod
    def require_secret(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value():
            raise ValueError("client_secret must not be empty")
        return v

    @field_validator("scope", mode="before")
    @classmethod
    def normalize_scope(cls, v: Any) -> list[str]:
        """
        Accepts a list or a whitespace/comma separated string.
        Deduplicates while preserving order and appends "openid" if missing.

        Args:
            v: The raw scope value.

        Returns:
            The normalized scope list.
        """
        if v is None:
            v = []
        if isinstance(v, str):
            v = re.split(r"[\s,]+", v)
        if not isinstance(v, (list, tuple)):
            raise ValueError("scope must be a string or a list of strings")

        scopes: list[str] = []
        for item in v:
            item = str(item).strip()
            if item and item not in scopes:
                scopes.append(item)

        if OPENID_SCOPE not in scopes:
            scopes.append(OPENID_SCOPE)
        return scopes

    @field_validator("algorithms", mode="before")
    @classmethod
    def normalize_algorithms(cls, v: Any) -> list[str]:
        if isinstance(v, str):
            v = re.split(r"[\s,]+", v)
        if not isinstance(v, (list, tuple)):
            raise ValueError("algorithms must be a string or a list of strings")
        algorithms = [str(alg).strip() for alg in v if str(alg).strip()]
        if not algorithms:
            raise ValueError("At least one signing algorithm must be allowed")
        if any(alg.lower() == "none" for alg in algorithms):
            raise ValueError("Unsigned tokens ('none' algorithm) are not accepted")
        return algorithms

    @field_validator("authorization_url", "token_url", "user_profile_url", "issuer", mode="after")
    @classmethod
    def validate_https(cls, v: str, info: ValidationInfo) -> str:
        """
        Ensures that endpoint URLs use HTTPS, unless strictly opted out for local dev.
        """
        if v.startswith("http://") and not info.data.get("unsafe_local_dev", False):
            raise ValueError("HTTPS is required for production. Set 'unsafe_local_dev=True' only for local testing.")
        if not v.startswith(("https://", "http://")):
            raise ValueError(f"Invalid URL: {v!r}")
        return v

    def signing_key(self) -> bytes:
        """
        Returns the key material used to verify ID token signatures.
        """
        secret = self.verification_key or self.client_secret
        return secret.get_secret_value().encode("utf-8")
