# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/authentiq_strategy

import json
from unittest.mock import Mock

import pytest

from authentiq_strategy.exceptions import (
    ExchangeError,
    MissingTokenError,
    RequestTimeoutError,
    TokenVerificationError,
    TransportError,
)
from authentiq_strategy.token_exchange import TokenExchange

from .conftest import make_id_token


@pytest.fixture
def exchange(transport: Mock) -> TokenExchange:
    return TokenExchange(transport)


@pytest.mark.asyncio
async def test_access_token_only(exchange: TokenExchange, transport: Mock) -> None:
    transport.exchange_code.return_value = {"access_token": "AT2", "token_type": "Bearer"}

    tokens = await exchange.exchange("code-1", {"extra": "1"})

    assert tokens.access_token == "AT2"
    assert tokens.id_token is None
    assert not tokens.has_id_token
    assert tokens.params["token_type"] == "Bearer"
    transport.exchange_code.assert_awaited_once_with("code-1", {"extra": "1"})


@pytest.mark.asyncio
async def test_id_token_is_kept(exchange: TokenExchange, transport: Mock) -> None:
    id_token = make_id_token()
    transport.exchange_code.return_value = {
        "access_token": "AT1",
        "id_token": id_token,
        "refresh_token": "RT1",
        "expires_in": 3600,
    }

    tokens = await exchange.exchange("code-1")

    assert tokens.id_token == id_token
    assert tokens.refresh_token == "RT1"
    assert "refresh_token" not in tokens.params
    assert tokens.params["expires_in"] == 3600


@pytest.mark.asyncio
async def test_missing_access_token(exchange: TokenExchange, transport: Mock) -> None:
    transport.exchange_code.return_value = {}

    with pytest.raises(MissingTokenError) as exc_info:
        await exchange.exchange("code-1")

    assert exc_info.value.status_code == 400
    assert exc_info.value.data == "{}"


@pytest.mark.asyncio
async def test_error_payload_with_success_status(exchange: TokenExchange, transport: Mock) -> None:
    transport.exchange_code.return_value = {"error": "invalid_grant"}

    with pytest.raises(MissingTokenError) as exc_info:
        await exchange.exchange("code-1")

    assert json.loads(exc_info.value.data) == {"error": "invalid_grant"}


@pytest.mark.asyncio
async def test_transport_failure_becomes_exchange_error(exchange: TokenExchange, transport: Mock) -> None:
    body = json.dumps({"error": "invalid_grant", "error_description": "Code already used"})
    cause = TransportError("POST failed", status_code=400, data=body)
    transport.exchange_code.side_effect = cause

    with pytest.raises(ExchangeError, match="Code already used") as exc_info:
        await exchange.exchange("code-1")

    err = exc_info.value
    assert err.status_code == 400
    assert err.data == body
    assert err.error == "invalid_grant"
    assert err.error_description == "Code already used"
    assert err.__cause__ is cause
    transport.exchange_code.assert_awaited_once()


@pytest.mark.asyncio
async def test_non_json_error_body(exchange: TokenExchange, transport: Mock) -> None:
    transport.exchange_code.side_effect = TransportError("boom", status_code=502, data="<html>Bad gateway</html>")

    with pytest.raises(ExchangeError) as exc_info:
        await exchange.exchange("code-1")

    assert exc_info.value.error is None
    assert exc_info.value.data == "<html>Bad gateway</html>"


@pytest.mark.asyncio
async def test_timeout_propagates(exchange: TokenExchange, transport: Mock) -> None:
    transport.exchange_code.side_effect = RequestTimeoutError("timed out")

    with pytest.raises(RequestTimeoutError):
        await exchange.exchange("code-1")


@pytest.mark.asyncio
async def test_malformed_id_token(exchange: TokenExchange, transport: Mock) -> None:
    transport.exchange_code.return_value = {"access_token": "AT1", "id_token": "garbage"}

    with pytest.raises(TokenVerificationError, match="Malformed ID token"):
        await exchange.exchange("code-1")


@pytest.mark.asyncio
@pytest.mark.parametrize("code", ["", "   "])
async def test_empty_code_rejected(exchange: TokenExchange, transport: Mock, code: str) -> None:
    with pytest.raises(ValueError):
        await exchange.exchange(code)
    transport.exchange_code.assert_not_awaited()
