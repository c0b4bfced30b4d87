"""Authentication and authorization module.

This module provides:
- Token verification (Supabase JWKS verifier)
- Auth middleware for FastAPI
- The consent-gated authorization gate

Note: Test-only verifiers are in tests/support/mock_verifier.py
"""

from tandem.auth.middleware import AuthMiddleware, Viewer, get_viewer
from tandem.auth.verifier import SupabaseJwksVerifier, TokenVerifier

__all__ = [
    "AuthMiddleware",
    "Viewer",
    "get_viewer",
    "SupabaseJwksVerifier",
    "TokenVerifier",
]
