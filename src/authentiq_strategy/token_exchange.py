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
TokenExchange component wrapping the authorization code exchange.
"""

import json
from typing import Any

from pydantic import ValidationError

from authentiq_strategy.exceptions import ExchangeError, MissingTokenError, TokenVerificationError, TransportError
from authentiq_strategy.models import TokenBundle
from authentiq_strategy.transport import TransportProtocol
from authentiq_strategy.utils.logger import logger


def _parse_error_document(data: str | None) -> dict[str, str | None]:
    """Extracts the RFC 6749 section 5.2 fields from an error body, if it is one."""
    if not data:
        return {}
    try:
        doc = json.loads(data)
    except json.JSONDecodeError:
        return {}
    if not isinstance(doc, dict) or "error" not in doc:
        return {}
    return {
        "error": doc.get("error"),
        "error_description": doc.get("error_description"),
        "error_uri": doc.get("error_uri"),
    }


class TokenExchange:
    """
    Exchanges an authorization code for a `TokenBundle`.

    Tolerates providers that omit optional fields, and rejects responses that
    report success without an access token.
    """

    def __init__(self, transport: TransportProtocol) -> None:
        self.transport = transport

    async def exchange(self, code: str, params: dict[str, Any] | None = None) -> TokenBundle:
        """
        Exchanges the code. Never retries.

        Args:
            code: The single-use authorization code.
            params: Extra token request parameters.

        Returns:
            TokenBundle: The tokens. `id_token` is set whenever the provider returned one.

        Raises:
            ValueError: If the code is empty.
            ExchangeError: If the transport or provider failed.
            MissingTokenError: If the response carried no access token.
            TokenVerificationError: If the returned ID token is not a compact JWS.
            RequestTimeoutError: If the exchange timed out.
        """
        if not isinstance(code, str) or not code.strip():
            raise ValueError("Authorization code must be a non-empty string.")

        try:
            response = await self.transport.exchange_code(code, dict(params or {}))
        except TransportError as e:
            error_doc = _parse_error_document(e.data)
            message = "Failed to obtain access token"
            if error_doc.get("error_description") or error_doc.get("error"):
                message = f"{message}: {error_doc.get('error_description') or error_doc.get('error')}"
            raise ExchangeError(message, status_code=e.status_code, data=e.data, **error_doc) from e

        params_out = dict(response)
        access_token = params_out.get("access_token")
        refresh_token = params_out.pop("refresh_token", None)

        if not access_token:
            logger.warning("Token endpoint answered without an access token")
            raise MissingTokenError(json.dumps(params_out))

        try:
            tokens = TokenBundle(
                access_token=str(access_token),
                id_token=params_out.get("id_token") or None,
                refresh_token=refresh_token or None,
                params=params_out,
            )
        except ValidationError as e:
            raise TokenVerificationError(f"Malformed ID token: {e}") from e

        logger.debug(f"Code exchanged (id_token={'yes' if tokens.has_id_token else 'no'})")
        return tokens
