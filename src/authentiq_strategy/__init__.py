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
OAuth 2.0 / OpenID Connect authentication strategy for Authentiq: exchanges an
authorization code, verifies the ID token (or fetches user-info) and returns a
normalized profile.
"""

__version__ = "0.1.0"
__author__ = "Gowtham A Rao"
__email__ = "gowtham.rao@coreason.ai"

from .config import AuthentiqConfig
from .exceptions import (
    APIError,
    AuthentiqStrategyError,
    ExchangeError,
    MissingTokenError,
    ProfileFetchError,
    ProfileParseError,
    TokenVerificationError,
)
from .models import AttemptState, ProfileRecord, TokenBundle
from .profile import parse_profile
from .strategy import AuthenticationAttempt, AuthentiqStrategy, AuthentiqStrategyAsync
from .validator import IDTokenVerifier

__all__ = [
    "APIError",
    "AttemptState",
    "AuthenticationAttempt",
    "AuthentiqConfig",
    "AuthentiqStrategy",
    "AuthentiqStrategyAsync",
    "AuthentiqStrategyError",
    "ExchangeError",
    "IDTokenVerifier",
    "MissingTokenError",
    "ProfileFetchError",
    "ProfileParseError",
    "ProfileRecord",
    "TokenBundle",
    "TokenVerificationError",
    "parse_profile",
]
