"""JWT bearer-token authentication middleware (PyJWT)."""

from .context import JWT_CLAIMS_KEY, get_jwt_claims, with_jwt_claims
from .errors import (
    ERR_JWT_EXPIRED,
    ERR_JWT_INVALID,
    ERR_JWT_INVALID_FORMAT,
    ERR_JWT_INVALID_SIGNATURE,
    ERR_JWT_INVALID_SIGNING_METHOD,
    ERR_JWT_MISSING,
)
from .middleware import JWTAuthMiddleware, Options, auth_middleware

__all__ = [
    "JWT_CLAIMS_KEY",
    "get_jwt_claims",
    "with_jwt_claims",
    "ERR_JWT_EXPIRED",
    "ERR_JWT_INVALID",
    "ERR_JWT_INVALID_FORMAT",
    "ERR_JWT_INVALID_SIGNATURE",
    "ERR_JWT_INVALID_SIGNING_METHOD",
    "ERR_JWT_MISSING",
    "JWTAuthMiddleware",
    "Options",
    "auth_middleware",
]
