"""
=============================================================================
JWT AUTHENTICATION MIDDLEWARE
=============================================================================

Validates a bearer token with PyJWT and stores its claims on the request.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   header = get_header(req)          "" ──► ERR_JWT_MISSING          │
    │        │                                                             │
    │        ▼                                                             │
    │   "Bearer <token>"?                 no ──► ERR_JWT_INVALID_FORMAT   │
    │        │                                                             │
    │        ▼                                                             │
    │   jwt.decode(token, key, algorithms)                                 │
    │        │  ExpiredSignatureError     ──► ERR_JWT_EXPIRED             │
    │        │  InvalidSignatureError     ──► ERR_JWT_INVALID_SIGNATURE   │
    │        │  InvalidAlgorithmError     ──► ERR_JWT_INVALID_SIGNING_... │
    │        │  anything else             ──► ERR_JWT_INVALID             │
    │        ▼                                                             │
    │   claims |= get_claims(req)                                          │
    │   set_context(req, claims)                                           │
    │   next()                                                             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Every failure is a 401 tagged error, so without a dedicated error handler
the fallback answers with the error's own message.

=============================================================================
USAGE
=============================================================================

    auth = auth_middleware(Options(key="s3cret"))

    router.use(auth)

    # per-route: wrap the handler yourself
    chain = MiddlewareChain().use(auth)
    router.get("/me", chain.wrap(me_handler))

=============================================================================
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Sequence, Union
import logging

import jwt

from ...http.request import Request
from ...http.response import Response
from ..base import Middleware, Next
from .context import with_jwt_claims
from .errors import (
    ERR_JWT_EXPIRED,
    ERR_JWT_INVALID,
    ERR_JWT_INVALID_FORMAT,
    ERR_JWT_INVALID_SIGNATURE,
    ERR_JWT_INVALID_SIGNING_METHOD,
    ERR_JWT_MISSING,
)


logger = logging.getLogger(__name__)


BEARER_PREFIX = "Bearer "

Key = Union[str, bytes, Any]
KeyFunc = Callable[[Dict[str, Any], Dict[str, Any]], Key]


def default_get_header(req: Request) -> str:
    return req.get_header("Authorization")


@dataclass
class Options:
    """
    JWT middleware configuration.

    Attributes:
        key:         Verification key, or a callable
                     (header, unverified_claims) → key for key rotation /
                     multi-tenant setups. Raise jwt.InvalidAlgorithmError
                     from it to reject a signing method.
        algorithms:  Accepted signing algorithms.
        get_header:  Where the "Bearer ..." value comes from.
        get_claims:  Extra claims merged over the token's claims; return
                     None for none.
        set_context: Stores the final claims on the request.
    """

    key: Optional[Union[Key, KeyFunc]] = None
    algorithms: Sequence[str] = ("HS256",)
    get_header: Optional[Callable[[Request], str]] = None
    get_claims: Optional[Callable[[Request], Optional[Dict[str, Any]]]] = None
    set_context: Optional[Callable[[Request, Dict[str, Any]], None]] = None


class JWTAuthMiddleware(Middleware):
    """Middleware form of `auth_middleware`; see the module docstring."""

    def __init__(self, options: Options):
        self.options = options
        self.get_header = options.get_header or default_get_header
        self.get_claims = options.get_claims or (lambda req: None)
        self.set_context = options.set_context or with_jwt_claims

    def __call__(self, req: Request, res: Response, next: Next) -> Optional[Exception]:
        auth_header = self.get_header(req)
        if not auth_header:
            return ERR_JWT_MISSING

        if not auth_header.startswith(BEARER_PREFIX):
            return ERR_JWT_INVALID_FORMAT

        token = auth_header[len(BEARER_PREFIX):]

        try:
            claims = self._decode(token)
        except jwt.ExpiredSignatureError:
            return ERR_JWT_EXPIRED
        except jwt.InvalidSignatureError:
            return ERR_JWT_INVALID_SIGNATURE
        except jwt.InvalidAlgorithmError:
            return ERR_JWT_INVALID_SIGNING_METHOD
        except jwt.InvalidTokenError as e:
            logger.debug(f"rejected JWT: {type(e).__name__}: {e}")
            return ERR_JWT_INVALID

        extra = self.get_claims(req)
        if extra:
            claims.update(extra)

        self.set_context(req, claims)
        next()
        return None

    def _decode(self, token: str) -> Dict[str, Any]:
        key = self._resolve_key(token)
        if key is None:
            raise jwt.InvalidTokenError("no verification key configured")
        return jwt.decode(token, key, algorithms=list(self.options.algorithms))

    def _resolve_key(self, token: str) -> Optional[Key]:
        key = self.options.key
        if not callable(key):
            return key

        header = jwt.get_unverified_header(token)
        unverified = jwt.decode(token, options={"verify_signature": False})
        try:
            return key(header, unverified)
        except jwt.PyJWTError:
            raise
        except Exception as e:
            raise jwt.InvalidTokenError(f"key lookup failed: {e}") from e

    @property
    def name(self) -> str:
        return "JWTAuthMiddleware"


def auth_middleware(options: Options) -> JWTAuthMiddleware:
    """Build a middleware that requires a valid bearer JWT."""
    return JWTAuthMiddleware(options)
