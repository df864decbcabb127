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
UserInfoFetcher component, the fallback used when no ID token was issued.
"""

import json
from typing import Any

from authentiq_strategy.exceptions import APIError, ProfileFetchError, ProfileParseError, TransportError
from authentiq_strategy.transport import TransportProtocol
from authentiq_strategy.utils.logger import logger


def _provider_message(data: str | None) -> str | None:
    if not data:
        return None
    try:
        doc = json.loads(data)
    except json.JSONDecodeError:
        return None
    if isinstance(doc, dict) and doc.get("message"):
        return str(doc["message"])
    return None


class UserInfoFetcher:
    """
    Retrieves the claims document from the user-info endpoint with a bearer access token.
    """

    def __init__(self, transport: TransportProtocol, user_profile_url: str) -> None:
        self.transport = transport
        self.user_profile_url = user_profile_url

    async def fetch(self, access_token: str) -> tuple[dict[str, Any], str]:
        """
        Fetches and decodes the user-info document.

        Args:
            access_token: The access token from the code exchange.

        Returns:
            tuple[dict[str, Any], str]: The claims and the raw body they were decoded from.

        Raises:
            APIError: If the provider answered with a structured error message.
            ProfileFetchError: For any other transport failure.
            ProfileParseError: If the body is not a JSON object.
            RequestTimeoutError: If the request timed out.
        """
        try:
            body = await self.transport.authenticated_get(self.user_profile_url, access_token)
        except TransportError as e:
            message = _provider_message(e.data)
            if message:
                # Server-side fault unless the provider said otherwise
                status = e.status_code if e.status_code and e.status_code >= 400 else 500
                raise APIError(message, status=status) from e
            logger.warning(f"User-info request failed: {e}")
            raise ProfileFetchError("Failed to fetch user profile") from e

        try:
            claims = json.loads(body)
        except json.JSONDecodeError as e:
            raise ProfileParseError("Failed to parse user profile") from e

        if not isinstance(claims, dict):
            raise ProfileParseError("Failed to parse user profile: expected a JSON object")

        return claims, body
