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
Profile normalization: maps raw provider claims to a minimal, stable identity.
"""

import json
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from authentiq_strategy.exceptions import MissingSubjectError, ProfileParseError


class RawProfileClaims(BaseModel):
    """
    Internal model over the claims the normalizer reads.
    Unknown claims are ignored; they stay available in the caller's raw claims.

    Attributes:
        sub (Any): The subject identifier.
        name (str | None): The user's full name.
        email (str | None): The user's shared email.
        phone_number (str | None): The user's shared phone number.
        address (str | None): The formatted form of the address claim.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    sub: Any = None
    name: str | None = None
    email: str | None = None
    phone_number: str | None = None
    address: str | None = None

    @field_validator("address", mode="before")
    @classmethod
    def flatten_address(cls, v: Any) -> str | None:
        """Keeps only the 'formatted' member of a structured address."""
        if isinstance(v, Mapping):
            formatted = v.get("formatted")
            return str(formatted) if formatted else None
        return None


def parse_profile(data: Mapping[str, Any] | str | bytes) -> dict[str, Any]:
    """
    Builds the normalized profile fields from a claims object or its JSON text.

    Only `id` is always present; `name`, `email`, `phone` and `address` are
    included when the claims supply them.

    Args:
        data: The decoded claims, or a JSON document encoding them.

    Returns:
        dict[str, Any]: The profile fields.

    Raises:
        ProfileParseError: If the input is not a JSON object, or a profile claim is not a string.
        MissingSubjectError: If there is no subject claim.
    """
    if isinstance(data, (str, bytes, bytearray)):
        try:
            data = json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ProfileParseError("Failed to parse user profile") from e

    if not isinstance(data, Mapping):
        raise ProfileParseError(f"Claims must be a JSON object, got {type(data).__name__}")

    try:
        raw = RawProfileClaims.model_validate(dict(data))
    except ValidationError as e:
        raise ProfileParseError(f"Invalid profile claims: {e.error_count()} error(s)") from e

    if raw.sub is None or raw.sub == "":
        raise MissingSubjectError("Claims do not contain a subject ('sub')")

    profile: dict[str, Any] = {"id": str(raw.sub)}
    if raw.name:
        profile["name"] = raw.name
    if raw.address:
        profile["address"] = raw.address
    if raw.email:
        profile["email"] = raw.email
    if raw.phone_number:
        profile["phone"] = raw.phone_number
    return profile
