"""FastAPI authentication dependencies."""

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from matriz.auth.keys import api_key_id, extract_api_key, keys_match
from matriz.config import Settings, get_settings

# Scope definitions
SCOPES = {
    "functions:invoke",
    "webhooks:read",
    "webhooks:write",
    "credentials:read",
    "credentials:write",
    "logs:read",
    "admin",
}

ANON_SCOPES = {"functions:invoke"}


@dataclass
class AuthContext:
    """Authentication context for the current request."""

    role: str  # "service_role" or "anon"
    key_id: str | None
    scopes: set[str]

    @property
    def is_service(self) -> bool:
        return self.role == "service_role"

    def has_scope(self, scope: str) -> bool:
        """Check if the context has a specific scope."""
        if "admin" in self.scopes:
            return True
        return scope in self.scopes

    def require_scope(self, scope: str) -> None:
        """Require a specific scope, raising HTTPException if not present."""
        if not self.has_scope(scope):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing required scope: {scope}",
            )


def authenticate(key: str | None, settings: Settings) -> AuthContext:
    """Map a presented key to an auth context.

    Raises:
        HTTPException: 401 if the key is missing or unknown
    """
    if not key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key required",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    if keys_match(key, settings.service_role_key.get_secret_value()):
        return AuthContext(role="service_role", key_id=api_key_id(key), scopes=set(SCOPES))

    if settings.anon_key is not None and keys_match(key, settings.anon_key.get_secret_value()):
        return AuthContext(role="anon", key_id=api_key_id(key), scopes=set(ANON_SCOPES))

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid API key",
        headers={"WWW-Authenticate": "ApiKey"},
    )


async def get_auth_context(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> AuthContext:
    """Get the authentication context for the current request."""
    return authenticate(extract_api_key(request.headers), settings)


# Type alias for dependency injection
Auth = Annotated[AuthContext, Depends(get_auth_context)]


def require_scope(scope: str):
    """Factory for dependencies that authenticate and check one scope."""

    async def dependency(auth: Auth) -> AuthContext:
        auth.require_scope(scope)
        return auth

    return dependency


# Pre-configured dependencies
RequireFunctions = Depends(require_scope("functions:invoke"))
