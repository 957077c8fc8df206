"""Authentication module."""

from matriz.auth.dependencies import (
    Auth,
    AuthContext,
    RequireFunctions,
    authenticate,
    get_auth_context,
    require_scope,
)
from matriz.auth.keys import api_key_id, extract_api_key, generate_api_key

__all__ = [
    "Auth",
    "AuthContext",
    "RequireFunctions",
    "api_key_id",
    "authenticate",
    "extract_api_key",
    "generate_api_key",
    "get_auth_context",
    "require_scope",
]
