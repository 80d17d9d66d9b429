"""Authentication module.

This module provides:
- Token verification (shared-secret JWT verifier)
- Auth middleware for FastAPI
- Request state with viewer identity
"""

from leelaaverse.auth.middleware import AuthMiddleware, Viewer, get_optional_viewer, get_viewer
from leelaaverse.auth.verifier import JwtSecretVerifier, TokenVerifier

__all__ = [
    "AuthMiddleware",
    "Viewer",
    "get_viewer",
    "get_optional_viewer",
    "JwtSecretVerifier",
    "TokenVerifier",
]
