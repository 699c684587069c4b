"""
=============================================================================
ERROR HANDLER CHAIN
=============================================================================

When routing fails or the pipeline returns an error, the router hands the
error to an ordered list of error handlers:

    ErrorHandler  (err, req, res, forward) -> None

Each handler either writes a response and returns, or calls forward(err)
(with the same error or a replacement) to pass it on.

=============================================================================
ORDER
=============================================================================

register() PREPENDS, so the newest handler runs first. The router
registers four defaults at construction, which leaves them running last:

    ┌──────────────┐   ┌────────────────────┐   ┌──────────┐   ┌──────────────┐   ┌──────────┐
    │ user handlers│──►│ MethodNotAllowed   │──►│ NotFound │──►│ Unauthorized │──►│ Fallback │
    └──────────────┘   └────────────────────┘   └──────────┘   └──────────────┘   └──────────┘
                                                                                       │
                                                                          always terminal

Forwarding past the last handler produces a plain 500 with the error
message, like net/http's Error helper.

=============================================================================
DEFAULT BODIES (text/plain; charset=utf-8)
=============================================================================

    404   Cannot find the path "<raw URL path>"
    405   Method "<METHOD>" is not allowed on path "<normalized path>"
    401   401 unauthorized
    500   500 internal server error        (untagged errors)
    xxx   <message>                         (tagged errors, their own code)

=============================================================================
"""

from http import HTTPStatus
from typing import Callable, List, Optional
import logging

from .errors import (
    ERR_METHOD_NOT_ALLOWED,
    ERR_NOT_FOUND,
    ERR_UNAUTHORIZED,
    HTTPError,
    as_error,
    is_error,
)
from .http.request import Request
from .http.response import Response


logger = logging.getLogger(__name__)


PLAIN_TEXT = "text/plain; charset=utf-8"

Forward = Callable[[BaseException], None]
ErrorHandler = Callable[[BaseException, Request, Response, Forward], None]


def normalize_path(path: str) -> str:
    """
    Strip leading and trailing "/"; the empty result becomes "/".

        normalize_path("/users/")  → "users"
        normalize_path("///")      → "/"
    """
    stripped = path.strip("/")
    return stripped if stripped else "/"


def write_plain(res: Response, status: int, body: str) -> None:
    """Write a text/plain response. Headers go first; they freeze on write_status."""
    res.set_header("Content-Type", PLAIN_TEXT)
    res.write_status(status)
    res.write(body)


# =============================================================================
# DEFAULT HANDLERS
# =============================================================================

def default_method_not_allowed_handler(
    err: BaseException, req: Request, res: Response, forward: Forward
) -> None:
    tagged = as_error(err, HTTPError)
    if tagged is not None and is_error(tagged, ERR_METHOD_NOT_ALLOWED):
        path = normalize_path(req.path)
        write_plain(res, tagged.code, f'Method "{req.method}" is not allowed on path "{path}"')
        return
    forward(err)


def default_not_found_handler(
    err: BaseException, req: Request, res: Response, forward: Forward
) -> None:
    tagged = as_error(err, HTTPError)
    if tagged is not None and is_error(tagged, ERR_NOT_FOUND):
        write_plain(res, tagged.code, f'Cannot find the path "{req.path}"')
        return
    forward(err)


def default_unauthorized_handler(
    err: BaseException, req: Request, res: Response, forward: Forward
) -> None:
    tagged = as_error(err, HTTPError)
    if tagged is not None and is_error(tagged, ERR_UNAUTHORIZED):
        write_plain(res, tagged.code, "401 unauthorized")
        return
    forward(err)


def default_fallback_handler(
    err: BaseException, req: Request, res: Response, forward: Forward
) -> None:
    """Answer any error. Tagged errors keep their code and message."""
    tagged = as_error(err, HTTPError)
    if tagged is not None:
        write_plain(res, tagged.code, tagged.message)
        return

    logger.error(f"unhandled error on {req.method} {req.path}: {type(err).__name__}: {err}")
    write_plain(res, HTTPStatus.INTERNAL_SERVER_ERROR, "500 internal server error")


# =============================================================================
# CHAIN
# =============================================================================

class ErrorHandlerChain:
    """
    Ordered error handlers, walked by index.

    Usage:
        chain = ErrorHandlerChain()
        chain.register(default_fallback_handler)
        chain.register(json_not_found)       # runs before the fallback
        chain.handle(err, req, res)
    """

    def __init__(self):
        self._handlers: List[ErrorHandler] = []

    def register(self, handler: ErrorHandler) -> ErrorHandler:
        """Prepend `handler`; returns it so this can be used as a decorator."""
        if not callable(handler):
            raise TypeError(f"error handler must be callable, got {type(handler).__name__}")
        self._handlers.insert(0, handler)
        return handler

    def handle(self, err: BaseException, req: Request, res: Response) -> None:
        """Walk the chain starting at the first handler."""
        self._walk(0, err, req, res)

    def _walk(self, index: int, err: BaseException, req: Request, res: Response) -> None:
        if index >= len(self._handlers):
            self._past_end(err, res)
            return

        handler = self._handlers[index]

        def forward(next_err: Optional[BaseException] = None) -> None:
            self._walk(index + 1, next_err if next_err is not None else err, req, res)

        handler(err, req, res, forward)

    @staticmethod
    def _past_end(err: BaseException, res: Response) -> None:
        logger.error(f"error forwarded past the last error handler: {err}")
        res.set_header("Content-Type", PLAIN_TEXT)
        res.set_header("X-Content-Type-Options", "nosniff")
        res.write_status(HTTPStatus.INTERNAL_SERVER_ERROR)
        res.write(f"{err}\n")

    def __len__(self) -> int:
        return len(self._handlers)

    def __iter__(self):
        return iter(self._handlers)
