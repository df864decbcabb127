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
IDTokenVerifier component for validating ID token signatures and claims.
"""

from typing import Any, cast

from authlib.jose import JsonWebToken
from authlib.jose.errors import (
    BadSignatureError,
    ExpiredTokenError,
    InvalidClaimError,
    JoseError,
    MissingClaimError,
)
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from pydantic import SecretStr

from authentiq_strategy.exceptions import (
    InvalidAudienceError,
    InvalidIssuerError,
    SignatureVerificationError,
    TokenExpiredError,
    TokenVerificationError,
)
from authentiq_strategy.utils.logger import anonymize, logger

tracer = trace.get_tracer(__name__)


class IDTokenVerifier:
    """
    Verifies compact-serialized ID tokens locally. No network access.

    Attributes:
        audience (str): The expected audience claim (the client ID).
        issuer (str): The expected issuer claim.
        allowed_algorithms (list[str]): Signing algorithms accepted in the token header.
        leeway (int): Accepted clock skew in seconds.
    """

    def __init__(
        self,
        key: Any,
        audience: str,
        issuer: str,
        allowed_algorithms: list[str],
        leeway: int = 0,
        pii_salt: SecretStr | None = None,
    ) -> None:
        """
        Initialize the IDTokenVerifier.

        Args:
            key: The verification key: a shared secret for HMAC algorithms, a PEM
                public key or a JWK set for asymmetric ones.
            audience: The expected audience (aud) claim.
            issuer: The expected issuer (iss) claim.
            allowed_algorithms: List of allowed JWT signing algorithms. REQUIRED.
            leeway: Acceptable clock skew in seconds. Defaults to 0.
            pii_salt: Salt for anonymizing the subject in logs.
        """
        self._key = key
        self.audience = audience
        self.issuer = issuer
        self.allowed_algorithms = allowed_algorithms
        self.leeway = leeway
        self.pii_salt = pii_salt or SecretStr("")
        # A dedicated JsonWebToken instance rejects algorithms outside the allow-list
        self.jwt = JsonWebToken(self.allowed_algorithms)
        self.claims_options = {
            "exp": {"essential": True},
            "nbf": {"essential": False},
            "aud": {"essential": True, "value": self.audience},
            "iss": {"essential": True, "value": self.issuer},
        }

    def verify(self, token: str) -> dict[str, Any]:
        """
        Validates the ID token signature and claims.

        Emits an OpenTelemetry span `verify_id_token`.

        Args:
            token: The compact-serialized ID token.

        Returns:
            dict[str, Any]: The verified claims.

        Raises:
            TokenExpiredError: If the token has expired.
            InvalidAudienceError: If the audience is not the client ID.
            InvalidIssuerError: If the issuer is not the configured issuer.
            SignatureVerificationError: If the signature is invalid.
            TokenVerificationError: If the token is malformed or otherwise invalid.
        """
        with tracer.start_as_current_span("verify_id_token") as span:
            token = token.strip()

            try:
                jwt_any = cast("Any", self.jwt)
                claims = jwt_any.decode(token, self._key, claims_options=self.claims_options)
                claims.validate(leeway=self.leeway)
                payload = dict(claims)

                user_hash = anonymize(str(payload.get("sub", "unknown")), self.pii_salt)
                logger.info(f"ID token verified for user {user_hash}")
                span.set_attribute("enduser.id", user_hash)
                span.set_status(Status(StatusCode.OK))
                return payload

            except ExpiredTokenError as e:
                logger.warning("Verification failed: Token expired")
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                raise TokenExpiredError(f"Token has expired: {e}") from e
            except InvalidClaimError as e:
                logger.warning(f"Verification failed: {e}")
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                if "aud" in str(e):
                    raise InvalidAudienceError(f"Invalid audience: {e}") from e
                if "iss" in str(e):
                    raise InvalidIssuerError(f"Invalid issuer: {e}") from e
                raise TokenVerificationError(f"Invalid claim: {e}") from e
            except MissingClaimError as e:
                logger.warning(f"Verification failed: {e}")
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                raise TokenVerificationError(f"Missing claim: {e}") from e
            except BadSignatureError as e:
                logger.error("Verification failed: Bad signature")
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                raise SignatureVerificationError(f"Invalid signature: {e}") from e
            except JoseError as e:
                logger.error(f"Verification failed: {e}")
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                raise TokenVerificationError(f"Token verification failed: {e}") from e
            except (ValueError, TypeError) as e:
                # Authlib raises these for undecodable segments or unusable keys
                logger.error(f"Verification failed: {e}")
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                raise TokenVerificationError(f"Token verification failed: {e}") from e
