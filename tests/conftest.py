# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/authentiq_strategy

import time
from typing import Any
from unittest.mock import AsyncMock, Mock

import pytest
from authlib.jose import jwt
from pydantic import SecretStr

from authentiq_strategy.config import AuthentiqConfig

CLIENT_ID = "client-123"
CLIENT_SECRET = "s3cr3t-value-long-enough-for-hs256-0123456789"
CALLBACK_URL = "https://app.example.com/auth/authentiq/callback"
ISSUER = "https://connect.authentiq.io/"


def make_id_token(
    claims: dict[str, Any] | None = None,
    key: str = CLIENT_SECRET,
    alg: str = "HS256",
    **overrides: Any,
) -> str:
    """Mints a signed ID token with sensible defaults for every required claim."""
    now = int(time.time())
    payload: dict[str, Any] = {
        "iss": ISSUER,
        "aud": CLIENT_ID,
        "sub": "42",
        "iat": now,
        "exp": now + 600,
    }
    payload.update(claims or {})
    payload.update(overrides)
    token = jwt.encode({"alg": alg}, payload, key)
    return token.decode("utf-8")


@pytest.fixture
def config() -> AuthentiqConfig:
    return AuthentiqConfig(
        client_id=CLIENT_ID,
        client_secret=SecretStr(CLIENT_SECRET),
        callback_url=CALLBACK_URL,
        scope=["aq:name", "email"],
    )


@pytest.fixture
def transport() -> Mock:
    mock = Mock()
    mock.exchange_code = AsyncMock()
    mock.authenticated_get = AsyncMock()
    return mock
