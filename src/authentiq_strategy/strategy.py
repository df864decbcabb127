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
Strategy orchestrator: composes the code exchange, ID token verification or
user-info fallback, and profile normalization into one authentication attempt.
"""

import json
from collections.abc import Callable, Mapping
from contextlib import ExitStack
from typing import Any

import anyio
import httpx
from anyio.from_thread import start_blocking_portal
from opentelemetry import trace
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.trace import Status, StatusCode

from authentiq_strategy.config import AuthentiqConfig
from authentiq_strategy.exceptions import (
    AttemptCancelledError,
    AuthentiqStrategyError,
    InvalidTransitionError,
)
from authentiq_strategy.models import PROVIDER_NAME, AttemptState, ProfileRecord, TokenBundle
from authentiq_strategy.profile import parse_profile
from authentiq_strategy.token_exchange import TokenExchange
from authentiq_strategy.transport import HTTPXTransport, TransportProtocol
from authentiq_strategy.userinfo import UserInfoFetcher
from authentiq_strategy.utils.logger import logger
from authentiq_strategy.validator import IDTokenVerifier

tracer = trace.get_tracer(__name__)

ParamsHook = Callable[[Mapping[str, Any]], Mapping[str, Any]]

_TRANSITIONS: dict[AttemptState, frozenset[AttemptState]] = {
    AttemptState.START: frozenset({AttemptState.EXCHANGING, AttemptState.FAILED}),
    AttemptState.EXCHANGING: frozenset(
        {AttemptState.VERIFYING, AttemptState.FETCHING_USER_INFO, AttemptState.FAILED}
    ),
    AttemptState.VERIFYING: frozenset({AttemptState.NORMALIZING, AttemptState.FAILED}),
    AttemptState.FETCHING_USER_INFO: frozenset({AttemptState.NORMALIZING, AttemptState.FAILED}),
    AttemptState.NORMALIZING: frozenset({AttemptState.DONE, AttemptState.FAILED}),
    AttemptState.DONE: frozenset(),
    AttemptState.FAILED: frozenset(),
}


class AuthenticationAttempt:
    """
    Record of a single authentication attempt.

    Attributes:
        state (AttemptState): The current state.
        history (list[AttemptState]): Every state visited, in order.
        tokens (TokenBundle | None): The exchanged tokens.
        claims (dict[str, Any] | None): The verified or fetched claims.
        profile (ProfileRecord | None): The result, once `DONE`.
        error (AuthentiqStrategyError | None): The failure, once `FAILED`.
    """

    def __init__(self) -> None:
        self.state = AttemptState.START
        self.history: list[AttemptState] = [AttemptState.START]
        self.tokens: TokenBundle | None = None
        self.claims: dict[str, Any] | None = None
        self.profile: ProfileRecord | None = None
        self.error: AuthentiqStrategyError | None = None

    def advance(self, state: AttemptState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise InvalidTransitionError(f"Cannot move from {self.state} to {state}")
        self.state = state
        self.history.append(state)

    def fail(self, error: AuthentiqStrategyError) -> None:
        self.advance(AttemptState.FAILED)
        self.error = error

    @property
    def succeeded(self) -> bool:
        return self.state is AttemptState.DONE


class AuthentiqStrategyAsync:
    """
    Async Authentiq authentication strategy (The Core).
    Handles resources via async context manager.
    """

    name = PROVIDER_NAME

    def __init__(
        self,
        config: AuthentiqConfig,
        client: httpx.AsyncClient | None = None,
        transport: TransportProtocol | None = None,
        verifier: IDTokenVerifier | None = None,
        authorization_params: ParamsHook | None = None,
        token_params: ParamsHook | None = None,
    ) -> None:
        """
        Initialize the strategy.

        Args:
            config: The configuration object.
            client: External async client (optional). Ignored when `transport` is given.
            transport: Network capability (optional). Defaults to `HTTPXTransport`.
            verifier: ID token verifier (optional). Defaults to one built from `config`.
            authorization_params: Hook returning extra authorization request parameters.
            token_params: Hook returning extra token request parameters.
        """
        self.config = config
        self._internal_client = False
        self._client: httpx.AsyncClient | None = None

        if transport is None:
            self._internal_client = client is None
            self._client = client or httpx.AsyncClient(timeout=self.config.http_timeout)
            # Instrument the client for distributed tracing
            HTTPXClientInstrumentor().instrument_client(self._client)
            transport = HTTPXTransport(
                client=self._client,
                token_url=self.config.token_url,
                client_id=self.config.client_id,
                client_secret=self.config.client_secret,
                redirect_uri=self.config.callback_url,
                max_response_bytes=self.config.max_response_bytes,
            )

        self.transport = transport
        self.token_exchange = TokenExchange(transport)
        self.userinfo = UserInfoFetcher(transport, self.config.user_profile_url)
        self.verifier = verifier or IDTokenVerifier(
            key=self.config.signing_key(),
            audience=self.config.audience,
            issuer=self.config.issuer,
            allowed_algorithms=self.config.algorithms,
            leeway=self.config.clock_tolerance,
            pii_salt=self.config.pii_salt,
        )
        self._authorization_params = authorization_params
        self._token_params = token_params

    async def __aenter__(self) -> "AuthentiqStrategyAsync":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._internal_client and self._client is not None:
            await self._client.aclose()

    def authorization_params(self, options: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """
        Return extra parameters to be included in the authorization request.

        Defaults to none; supply the `authorization_params` hook to add provider-specific ones.
        """
        if self._authorization_params is None:
            return {}
        return dict(self._authorization_params(options or {}))

    def token_params(self, options: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """
        Return extra parameters to be included in the token request.

        Defaults to none; supply the `token_params` hook to add provider-specific ones.
        """
        if self._token_params is None:
            return {}
        return dict(self._token_params(options or {}))

    def authorization_url(self, state: str | None = None, options: Mapping[str, Any] | None = None) -> str:
        """
        Builds the URL the user agent is redirected to for authorization.

        Args:
            state: Opaque anti-CSRF value echoed back by the provider.
            options: Passed to `authorization_params`.

        Returns:
            str: The authorization URL.
        """
        params: dict[str, Any] = {
            "response_type": "code",
            "client_id": self.config.client_id,
            "redirect_uri": self.config.callback_url,
            "scope": self.config.scope_separator.join(self.config.scope),
        }
        if state:
            params["state"] = state
        params.update(self.authorization_params(options))
        return str(httpx.URL(self.config.authorization_url).copy_merge_params(params))

    async def run_attempt(
        self,
        code: str,
        options: Mapping[str, Any] | None = None,
        attempt: AuthenticationAttempt | None = None,
    ) -> AuthenticationAttempt:
        """
        Runs one authentication attempt to completion.

        Failures are recorded on the returned attempt rather than raised.
        Cancellation of the enclosing task is recorded, then re-raised.

        Args:
            code: The authorization code from the provider callback.
            options: Passed to `token_params`.
            attempt: Record to populate (optional). A fresh one is created otherwise.

        Returns:
            AuthenticationAttempt: The attempt, in state `DONE` or `FAILED`.

        Raises:
            ValueError: If the code is empty, or `attempt` has already started.
        """
        if not isinstance(code, str) or not code.strip():
            raise ValueError("Authorization code must be a non-empty string.")

        if attempt is None:
            attempt = AuthenticationAttempt()
        elif attempt.state is not AttemptState.START:
            raise ValueError(f"Attempt has already started (state: {attempt.state})")

        with tracer.start_as_current_span("authenticate") as span:
            try:
                attempt.advance(AttemptState.EXCHANGING)
                tokens = await self.token_exchange.exchange(code, self.token_params(options))
                attempt.tokens = tokens

                if tokens.id_token is not None:
                    # A token that fails verification is never replaced by user-info
                    attempt.advance(AttemptState.VERIFYING)
                    claims = self.verifier.verify(tokens.id_token)
                    raw = json.dumps(claims)
                else:
                    attempt.advance(AttemptState.FETCHING_USER_INFO)
                    claims, raw = await self.userinfo.fetch(tokens.access_token)
                attempt.claims = claims

                attempt.advance(AttemptState.NORMALIZING)
                fields = parse_profile(claims)
                attempt.profile = ProfileRecord(**fields, provider=self.name, raw=raw, claims=claims)
                attempt.advance(AttemptState.DONE)

                span.set_attribute("authentiq.path", attempt.history[2].value)
                span.set_status(Status(StatusCode.OK))

            except anyio.get_cancelled_exc_class():
                attempt.fail(AttemptCancelledError(f"Attempt cancelled while {attempt.state}"))
                span.set_status(Status(StatusCode.ERROR, "cancelled"))
                raise
            except AuthentiqStrategyError as e:
                logger.info(f"Authentication failed while {attempt.state}: {type(e).__name__}")
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                attempt.fail(e)
            except Exception as e:
                logger.exception("Unexpected error during authentication")
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                wrapped = AuthentiqStrategyError(f"Unexpected error during authentication: {e}")
                wrapped.__cause__ = e
                attempt.fail(wrapped)

        return attempt

    async def authenticate(self, code: str, options: Mapping[str, Any] | None = None) -> ProfileRecord:
        """
        Authenticates the user behind an authorization code.

        Args:
            code: The authorization code from the provider callback.
            options: Passed to `token_params`.

        Returns:
            ProfileRecord: The normalized identity.

        Raises:
            ExchangeError: If the code exchange failed.
            MissingTokenError: If the provider returned no access token.
            TokenVerificationError: If the ID token is invalid.
            ProfileFetchError: If the user-info request failed (`APIError` when the provider explained why).
            ProfileParseError: If the claims could not be decoded or carry no subject.
            RequestTimeoutError: If a network operation timed out.
        """
        attempt = await self.run_attempt(code, options)
        if attempt.error is not None:
            raise attempt.error
        if attempt.profile is None:  # pragma: no cover
            raise AuthentiqStrategyError("Authentication finished without a profile")
        return attempt.profile


class AuthentiqStrategy:
    """
    Sync facade over `AuthentiqStrategyAsync`.

    Runs the async core on a dedicated event loop thread. Use as a context
    manager or call `close()` when done.
    """

    def __init__(self, config: AuthentiqConfig, **kwargs: Any) -> None:
        self._exit_stack = ExitStack()
        self._portal = self._exit_stack.enter_context(start_blocking_portal())
        self._async = AuthentiqStrategyAsync(config, **kwargs)

    def __enter__(self) -> "AuthentiqStrategy":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def close(self) -> None:
        try:
            self._portal.call(self._async.__aexit__, None, None, None)
        finally:
            self._exit_stack.close()

    def authorization_url(self, state: str | None = None, options: Mapping[str, Any] | None = None) -> str:
        return self._async.authorization_url(state, options)

    def authenticate(self, code: str, options: Mapping[str, Any] | None = None) -> ProfileRecord:
        return self._portal.call(self._async.authenticate, code, options)

    def run_attempt(self, code: str, options: Mapping[str, Any] | None = None) -> AuthenticationAttempt:
        return self._portal.call(self._async.run_attempt, code, options)
