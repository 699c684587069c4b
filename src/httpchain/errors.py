"""
=============================================================================
ERROR TAXONOMY
=============================================================================

Errors that flow through the request pipeline come in two flavours:

    TAGGED   HTTPError carries an HTTP status code and a message, and may
             wrap an underlying cause. Error handlers match on it.

    OPAQUE   Any other Exception. The fallback error handler answers
             these with "500 internal server error".

=============================================================================
CATEGORIES BY IDENTITY
=============================================================================

A category is a module-level HTTPError instance (a sentinel). Membership
is decided by walking the wrap chain and comparing with `is`, never by
comparing messages:

    ┌──────────────────────────┐
    │ HTTPError(401, cause=●)  │──┐
    └──────────────────────────┘  │   is_error(err, ERR_UNAUTHORIZED)
                                  ▼          → True
                         ┌──────────────────────────┐
                         │ ERR_UNAUTHORIZED  (●)    │
                         └──────────────────────────┘

Sentinels are built with `sentinel()` and are usually handed to the error
chain as values (returned, or passed to Router.handle_error). Raising one
works too: the middleware chain calls `release_shared()` on whatever it
catches, which strips the traceback, `__cause__` and `__context__` that
`raise` attached to the shared instance.

=============================================================================
"""

from http import HTTPStatus
from typing import Optional, Type, TypeVar, Union


E = TypeVar("E", bound=BaseException)


class HTTPError(Exception):
    """
    An error tagged with an HTTP status code.

    Args:
        code: HTTP status code the fallback handler will answer with.
        error: Either an exception to wrap (its text becomes the message),
               a message string, or None for the standard reason phrase.

    Example:
        HTTPError(400, "Registration's format incorrect.")
        HTTPError(500, ValueError("boom"))      # wraps the ValueError
        HTTPError(401, ERR_UNAUTHORIZED)        # member of a category
    """

    def __init__(self, code: int, error: Union[BaseException, str, None] = None):
        if isinstance(error, BaseException):
            cause: Optional[BaseException] = error
            message = str(error)
        elif error is None:
            cause = None
            message = _reason_phrase(code)
        else:
            cause = None
            message = error

        super().__init__(message)
        self.code = int(code)
        self.message = message
        self.cause = cause
        self.shared = False

    def unwrap(self) -> Optional[BaseException]:
        """Return the wrapped error, if any."""
        return self.cause

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"HTTPError({self.code}, {self.message!r})"


class MiddlewareError(RuntimeError):
    """A middleware broke the chain contract (e.g. called next() twice)."""


class NoDecoderError(Exception):
    """parse_body_into() was called but no body parser installed a decoder."""

    def __init__(self, content_type: str):
        super().__init__(f"body parser not set, content type: {content_type}")
        self.content_type = content_type


class UnsupportedContentTypeError(Exception):
    """No encoder in the decorator chain claimed the response Content-Type."""

    def __init__(self, content_type: str):
        super().__init__(f"unsupported Content-Type: {content_type}")
        self.content_type = content_type


# =============================================================================
# BUILT-IN CATEGORIES
# =============================================================================
# The router raises the first two itself; ERR_UNAUTHORIZED is what auth
# middlewares return when no credentials were presented.

def sentinel(code: int, message: str) -> HTTPError:
    """Create a category error, compared by identity and shared across requests."""
    err = HTTPError(code, message)
    err.shared = True
    return err


ERR_NOT_FOUND = sentinel(HTTPStatus.NOT_FOUND, "404 page not found")
ERR_METHOD_NOT_ALLOWED = sentinel(HTTPStatus.METHOD_NOT_ALLOWED, "405 method not allowed")
ERR_UNAUTHORIZED = sentinel(HTTPStatus.UNAUTHORIZED, "401 unauthorized")


# =============================================================================
# WRAP-CHAIN INSPECTION
# =============================================================================

def _next_in_chain(err: BaseException) -> Optional[BaseException]:
    cause = getattr(err, "cause", None)
    if isinstance(cause, BaseException):
        return cause
    return err.__cause__


def iter_chain(err: Optional[BaseException]):
    """
    Yield `err` and every error it wraps, outermost first.

    Follows `HTTPError.cause` first and falls back to `__cause__`, so both
    explicit wrapping and `raise ... from ...` are understood. Cycles are
    cut off.
    """
    seen = set()
    while err is not None and id(err) not in seen:
        seen.add(id(err))
        yield err
        err = _next_in_chain(err)


def is_error(err: Optional[BaseException], target: BaseException) -> bool:
    """Report whether `target` (by identity) appears in err's wrap chain."""
    return any(e is target for e in iter_chain(err))


def as_error(err: Optional[BaseException], cls: Type[E]) -> Optional[E]:
    """Return the first error in the wrap chain that is an instance of `cls`."""
    for e in iter_chain(err):
        if isinstance(e, cls):
            return e
    return None


def release_shared(err: Optional[BaseException]) -> Optional[BaseException]:
    """
    Clear per-raise state from every sentinel in err's wrap chain.

    Returns `err` itself, so callers can use it inline.
    """
    for e in list(iter_chain(err)):
        if getattr(e, "shared", False):
            e.__traceback__ = None
            e.__cause__ = None
            e.__context__ = None
    return err


def _reason_phrase(code: int) -> str:
    try:
        return HTTPStatus(code).phrase
    except ValueError:
        return f"HTTP {code}"
