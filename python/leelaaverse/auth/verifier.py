"""Token verification implementations.

Provides:
- TokenVerifier: Protocol for token verification
- JwtSecretVerifier: Verifier for HMAC-signed bearer tokens
"""

from typing import Any, Protocol
from uuid import UUID

import jwt
from jwt.exceptions import (
    DecodeError,
    ExpiredSignatureError,
    InvalidSignatureError,
    InvalidTokenError,
)

from leelaaverse.errors import ApiError, ApiErrorCode
from leelaaverse.logging import get_logger

logger = get_logger(__name__)

# Clock skew allowance in seconds
CLOCK_SKEW_SECONDS = 60


class TokenVerifier(Protocol):
    """Protocol for token verification.

    Implementations must verify JWT tokens and return decoded claims.
    """

    def verify(self, token: str) -> dict[str, Any]:
        """Verify token and return decoded claims.

        Raises:
            ApiError(E_UNAUTHENTICATED): Token is invalid, expired, or malformed.
        """
        ...


def user_id_from_claims(payload: dict[str, Any]) -> UUID:
    """Extract the user id from decoded claims.

    Tokens carry the user id in ``sub``; tokens minted by the legacy auth service put
    it in ``id`` instead.

    Raises:
        ApiError(E_UNAUTHENTICATED): Neither claim holds a UUID.
    """
    raw = payload.get("sub") or payload.get("id")
    if not raw:
        logger.warning("auth_failure", reason="missing_sub")
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token: missing sub")
    try:
        return UUID(str(raw))
    except (ValueError, TypeError) as e:
        logger.warning("auth_failure", reason="invalid_sub")
        raise ApiError(
            ApiErrorCode.E_UNAUTHENTICATED, "Invalid token: sub is not a valid UUID"
        ) from e


class JwtSecretVerifier:
    """Verifies bearer tokens signed with a shared secret.

    Validates:
    - Signature with the configured secret and algorithm
    - exp (when present) with ±60s clock skew
    - sub (or id) must be a valid UUID
    """

    def __init__(self, secret: str, algorithm: str = "HS256"):
        self.secret = secret
        self.algorithm = algorithm

    def verify(self, token: str) -> dict[str, Any]:
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                leeway=CLOCK_SKEW_SECONDS,
                options={"verify_aud": False},
            )
        except ExpiredSignatureError as e:
            logger.warning("auth_failure", reason="expired_token")
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Token expired") from e
        except InvalidSignatureError as e:
            logger.warning("auth_failure", reason="invalid_signature")
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token signature") from e
        except DecodeError as e:
            logger.warning("auth_failure", reason="decode_error", error=str(e))
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token format") from e
        except InvalidTokenError as e:
            logger.warning("auth_failure", reason="invalid_token", error=str(e))
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Invalid token") from e

        user_id_from_claims(payload)
        return payload
