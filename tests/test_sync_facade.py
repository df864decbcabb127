# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/authentiq_strategy

from unittest.mock import AsyncMock, Mock, patch

import pytest

from authentiq_strategy.config import AuthentiqConfig
from authentiq_strategy.exceptions import MissingTokenError
from authentiq_strategy.models import ProfileRecord
from authentiq_strategy.strategy import AuthenticationAttempt, AuthentiqStrategy


def test_sync_facade_context_manager(config: AuthentiqConfig) -> None:
    with patch("authentiq_strategy.strategy.AuthentiqStrategyAsync") as MockAsync:
        mock_instance = MockAsync.return_value
        mock_instance.__aexit__ = AsyncMock()

        with AuthentiqStrategy(config) as strategy:
            assert strategy._async == mock_instance

        mock_instance.__aexit__.assert_awaited_once()


def test_sync_facade_methods(config: AuthentiqConfig) -> None:
    with patch("authentiq_strategy.strategy.AuthentiqStrategyAsync") as MockAsync:
        mock_instance = MockAsync.return_value
        mock_instance.__aexit__ = AsyncMock()
        mock_profile = Mock(spec=ProfileRecord)
        mock_attempt = Mock(spec=AuthenticationAttempt)
        mock_instance.authenticate = AsyncMock(return_value=mock_profile)
        mock_instance.run_attempt = AsyncMock(return_value=mock_attempt)
        mock_instance.authorization_url = Mock(return_value="https://connect.authentiq.io/authorize?x=1")

        with AuthentiqStrategy(config) as strategy:
            assert strategy.authenticate("code", {"a": 1}) == mock_profile
            mock_instance.authenticate.assert_awaited_with("code", {"a": 1})

            assert strategy.run_attempt("code") == mock_attempt
            mock_instance.run_attempt.assert_awaited_with("code", None)

            assert strategy.authorization_url("state") == "https://connect.authentiq.io/authorize?x=1"


def test_sync_facade_end_to_end(config: AuthentiqConfig, transport: Mock) -> None:
    transport.exchange_code.return_value = {"access_token": "AT2"}
    transport.authenticated_get.return_value = '{"sub": "7", "email": "x@y.z"}'

    with AuthentiqStrategy(config, transport=transport) as strategy:
        profile = strategy.authenticate("code")

    assert profile.to_dict() == {"id": "7", "email": "x@y.z", "provider": "authentiq"}


def test_sync_facade_raises_typed_errors(config: AuthentiqConfig, transport: Mock) -> None:
    transport.exchange_code.return_value = {}

    with AuthentiqStrategy(config, transport=transport) as strategy, pytest.raises(MissingTokenError):
        strategy.authenticate("code")
