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
HTTP transport used to talk to the provider's token and user-info endpoints.
"""

import json
from typing import Any, Protocol
from urllib.parse import parse_qsl

import httpx
from pydantic import SecretStr

from authentiq_strategy.exceptions import OversizedResponseError, RequestTimeoutError, TransportError
from authentiq_strategy.utils.logger import logger


class TransportProtocol(Protocol):
    """
    The network capability consumed by the strategy.

    Implementations must raise `TransportError` with the provider body verbatim on failure.
    They must not retry: authorization codes are single-use.
    """

    async def exchange_code(self, code: str, params: dict[str, Any]) -> dict[str, Any]:
        """Exchanges an authorization code and returns the token response parameters."""
        ...

    async def authenticated_get(self, url: str, access_token: str) -> str:
        """Performs a GET with a bearer access token and returns the body text."""
        ...


def parse_token_response(body: str) -> dict[str, Any]:
    """
    Parses a token endpoint response.

    Most providers answer with JSON, some with a form-encoded body.

    Args:
        body: The response body.

    Returns:
        dict[str, Any]: The token response parameters.
    """
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        return dict(parse_qsl(body, keep_blank_values=True))
    if not isinstance(data, dict):
        raise TransportError("Token endpoint returned a non-object response", data=body)
    return data


class HTTPXTransport:
    """
    `TransportProtocol` implementation on top of `httpx.AsyncClient`.

    Attributes:
        token_url (str): The provider token endpoint.
        client_id (str): The OAuth2 client ID.
        redirect_uri (str): The callback URL sent with the exchange.
        max_response_bytes (int): Upper bound on any response body.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        token_url: str,
        client_id: str,
        client_secret: SecretStr,
        redirect_uri: str,
        max_response_bytes: int = 1_000_000,
    ) -> None:
        self.client = client
        self.token_url = token_url
        self.client_id = client_id
        self._client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.max_response_bytes = max_response_bytes

    async def _send(self, method: str, url: str, **kwargs: Any) -> str:
        """
        Sends a request, reading the body with a size limit.

        Raises:
            TransportError: On network failure or a status >= 400.
            OversizedResponseError: If the body exceeds `max_response_bytes`.
            RequestTimeoutError: If the request times out.
        """
        try:
            async with self.client.stream(method, url, **kwargs) as response:
                content_length = response.headers.get("Content-Length")
                if content_length and content_length.isdigit() and int(content_length) > self.max_response_bytes:
                    raise OversizedResponseError(f"Response from {url} too large", status_code=response.status_code)

                content = bytearray()
                async for chunk in response.aiter_bytes():
                    content.extend(chunk)
                    if len(content) > self.max_response_bytes:
                        raise OversizedResponseError(
                            f"Response from {url} too large", status_code=response.status_code
                        )

                body = content.decode(response.charset_encoding or "utf-8", errors="replace")
                if response.status_code >= 400:
                    logger.debug(f"{method} {url} failed with status {response.status_code}")
                    raise TransportError(
                        f"{method} {url} failed with status {response.status_code}",
                        status_code=response.status_code,
                        data=body,
                    )
                return body
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(f"{method} {url} timed out") from e
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {url} failed: {e}") from e

    async def exchange_code(self, code: str, params: dict[str, Any]) -> dict[str, Any]:
        data = {
            **params,
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
            "client_id": self.client_id,
            "client_secret": self._client_secret.get_secret_value(),
        }
        body = await self._send(
            "POST",
            self.token_url,
            data=data,
            headers={"Accept": "application/json"},
        )
        return parse_token_response(body)

    async def authenticated_get(self, url: str, access_token: str) -> str:
        return await self._send(
            "GET",
            url,
            headers={"Authorization": f"Bearer {access_token}", "Accept": "application/json"},
        )
