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
Data models for the authentiq-strategy package.
"""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

PROVIDER_NAME = "authentiq"


class AttemptState(StrEnum):
    START = "start"
    EXCHANGING = "exchanging"
    VERIFYING = "verifying"
    FETCHING_USER_INFO = "fetching_user_info"
    NORMALIZING = "normalizing"
    DONE = "done"
    FAILED = "failed"


class TokenBundle(BaseModel):
    """
    Tokens returned by a single code exchange.

    Attributes:
        access_token (str): The access token issued by the authorization server.
        id_token (str | None): The compact-serialized ID token, if issued.
        refresh_token (str | None): The refresh token, if issued.
        params (dict[str, Any]): The remaining raw token response parameters.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str = Field(..., min_length=1)
    id_token: str | None = None
    refresh_token: str | None = None
    params: dict[str, Any] = Field(default_factory=dict)

    @field_validator("id_token")
    @classmethod
    def ensure_compact_jws(cls, v: str | None) -> str | None:
        """Rejects ID tokens that are not three dot-separated segments."""
        if v is None:
            return v
        parts = v.split(".")
        if len(parts) != 3 or not all(parts[:2]):
            raise ValueError("id_token is not a compact-serialized JWS")
        return v

    @property
    def has_id_token(self) -> bool:
        return self.id_token is not None

    def __repr__(self) -> str:
        # Credentials MUST NOT appear in __repr__
        return (
            f"TokenBundle(access_token='<REDACTED>', "
            f"id_token={'<REDACTED>' if self.id_token else None!r}, "
            f"refresh_token={'<REDACTED>' if self.refresh_token else None!r}, "
            f"params={sorted(self.params)!r})"
        )

    def __str__(self) -> str:
        return self.__repr__()


class ProfileRecord(BaseModel):
    """
    Normalized identity produced by a successful authentication attempt.

    This model is frozen (immutable); it is owned by the caller once returned.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        json_schema_extra={
            "example": {
                "id": "JKDRAJ4MVUOD2WPJ",
                "provider": PROVIDER_NAME,
                "name": "Alice",
                "email": "alice@example.com",
            }
        },
    )

    id: str = Field(..., description="The subject identifier ('sub').")
    provider: str = Field(default=PROVIDER_NAME, description="The identity provider tag.")
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    raw: str = Field(default="", description="The JSON text the claims were decoded from.")
    claims: dict[str, Any] = Field(default_factory=dict, description="The decoded claims, unmodified.")

    def to_dict(self) -> dict[str, Any]:
        """
        Returns the identity fields, omitting those the provider did not supply.
        """
        return self.model_dump(exclude_none=True, exclude={"raw", "claims"})

    def __repr__(self) -> str:
        # PII fields MUST be redacted in __repr__
        present = sorted(k for k in ("name", "email", "phone", "address") if getattr(self, k) is not None)
        return f"ProfileRecord(id='<REDACTED>', provider={self.provider!r}, fields={present!r})"

    def __str__(self) -> str:
        return self.__repr__()
