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
Custom exceptions for the authentiq-strategy package.

Every failure of an authentication attempt is raised as one of these, with the
underlying cause chained via ``raise ... from``.
"""


class AuthentiqStrategyError(Exception):
    """Base exception for all authentiq-strategy errors."""


class TransportError(AuthentiqStrategyError):
    """
    Raised by the transport when a request fails.

    Attributes:
        status_code: The HTTP status returned by the provider, if any.
        data: The provider response body, verbatim, if any.
    """

    def __init__(self, message: str, status_code: int | None = None, data: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.data = data


class OversizedResponseError(TransportError):
    """Raised when an HTTP response is too large."""


class RequestTimeoutError(AuthentiqStrategyError):
    """Raised when a network operation times out."""


class ExchangeError(AuthentiqStrategyError):
    """
    Raised when the authorization code exchange fails at the transport or provider.

    When the provider returned an RFC 6749 error document, ``error``,
    ``error_description`` and ``error_uri`` are populated from it.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        data: str | None = None,
        error: str | None = None,
        error_description: str | None = None,
        error_uri: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.data = data
        self.error = error
        self.error_description = error_description
        self.error_uri = error_uri


class MissingTokenError(AuthentiqStrategyError):
    """Raised when the provider answered the exchange without an access token."""

    def __init__(self, data: str, status_code: int = 400) -> None:
        super().__init__(f"Token response did not contain an access token: {data}")
        self.status_code = status_code
        self.data = data


class TokenVerificationError(AuthentiqStrategyError):
    """
    Raised when the ID token is invalid (bad signature, expired, wrong audience, etc.).
    Never triggers the user-info fallback.
    """


class SignatureVerificationError(TokenVerificationError):
    """Raised when the token's signature cannot be verified."""


class TokenExpiredError(TokenVerificationError):
    """Raised when the provided token has expired."""


class InvalidAudienceError(TokenVerificationError):
    """Raised when the token's audience does not match the client ID."""


class InvalidIssuerError(TokenVerificationError):
    """Raised when the token's issuer does not match the configured issuer."""


class ProfileFetchError(AuthentiqStrategyError):
    """Raised when the user-info endpoint could not be fetched."""


class APIError(ProfileFetchError):
    """Raised when the provider returned a structured error message."""

    def __init__(self, message: str, status: int = 500) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


class ProfileParseError(AuthentiqStrategyError):
    """Raised when the claims document is not a JSON object."""


class MissingSubjectError(ProfileParseError):
    """Raised when the claims carry no subject identifier."""


class InvalidTransitionError(AuthentiqStrategyError):
    """Raised when an authentication attempt is driven into an illegal state."""


class AttemptCancelledError(AuthentiqStrategyError):
    """Recorded on an attempt whose enclosing task was cancelled."""
