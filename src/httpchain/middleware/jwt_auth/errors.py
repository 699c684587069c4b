"""Authentication failures reported by the JWT middleware, all tagged 401."""

from http import HTTPStatus

from ...errors import sentinel


ERR_JWT_EXPIRED = sentinel(HTTPStatus.UNAUTHORIZED, "JWT token has expired")
ERR_JWT_INVALID = sentinel(HTTPStatus.UNAUTHORIZED, "Invalid JWT token")
ERR_JWT_INVALID_FORMAT = sentinel(HTTPStatus.UNAUTHORIZED, "Invalid JWT format")
ERR_JWT_INVALID_SIGNATURE = sentinel(HTTPStatus.UNAUTHORIZED, "JWT signature is invalid")
ERR_JWT_INVALID_SIGNING_METHOD = sentinel(HTTPStatus.UNAUTHORIZED, "Invalid JWT signing method")
ERR_JWT_MISSING = sentinel(HTTPStatus.UNAUTHORIZED, "JWT token is missing")
