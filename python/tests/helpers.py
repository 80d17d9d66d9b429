"""Test helpers for authentication and common test operations.

Provides:
- Token minting for test authentication
- Header generation for test requests
"""

import time
from uuid import UUID, uuid4

import jwt

TEST_JWT_SECRET = "test-secret"
DEFAULT_EXPIRES_IN = 3600  # 1 hour


def mint_test_token(
    user_id: UUID | str,
    expires_in: int = DEFAULT_EXPIRES_IN,
    secret: str = TEST_JWT_SECRET,
    claim: str = "sub",
    **extra_claims,
) -> str:
    """Mint a signed HS256 test token.

    Args:
        user_id: The user ID placed in ``claim``.
        expires_in: Token validity in seconds from now.
        secret: Signing secret; anything but TEST_JWT_SECRET yields a bad signature.
        claim: Claim carrying the user ID (``sub``, or ``id`` for legacy tokens).
        **extra_claims: Additional claims to include in the token.
    """
    now = int(time.time())
    payload = {claim: str(user_id), "iat": now, "exp": now + expires_in, **extra_claims}
    return jwt.encode(payload, secret, algorithm="HS256")


def mint_expired_token(user_id: UUID | str) -> str:
    """Mint a token that expired 1 hour ago."""
    return mint_test_token(user_id, expires_in=-3600)


def auth_headers(user_id: UUID | str, **token_kwargs) -> dict[str, str]:
    """Return headers dict with valid Authorization for the given user."""
    return {"Authorization": f"Bearer {mint_test_token(user_id, **token_kwargs)}"}


def create_test_user_id() -> UUID:
    return uuid4()
