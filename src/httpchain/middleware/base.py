"""
=============================================================================
BASE MIDDLEWARE INTERFACE
=============================================================================

Defines the middleware contract and the chain that composes middlewares
around a terminal handler (Chain of Responsibility).

    Handler     (req, res)        -> error or None
    Middleware  (req, res, next)  -> error or None
    next        ()                -> downstream error or None

An "error" may be returned or raised; the chain treats both the same.

=============================================================================
COMPOSITION
=============================================================================

Middlewares registered as m1, m2, m3 around handler H become:

        m1( m2( m3( H ) ) )

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   Request ──────────────────────────────────────────────►           │
    │                                                                      │
    │   ┌──────────┐    ┌──────────┐    ┌──────────┐    ┌──────────┐     │
    │   │    m1    │───►│    m2    │───►│    m3    │───►│    H     │     │
    │   └──────────┘    └──────────┘    └──────────┘    └──────────┘     │
    │        ▲               ▲               ▲               │            │
    │        └───────────────┴───────────────┴── error ──────┘            │
    │                                                                      │
    │   ◄────────────────────────────────────────────────── result        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
RESULT OF A MIDDLEWARE
=============================================================================

    own error (returned or raised)       → that error
    else, next() ran and returned error  → the downstream error
    else                                 → None

A middleware that never calls next() short-circuits: the handler does
not run. Calling next() twice raises MiddlewareError inside the
middleware.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional, Union
import logging

from ..errors import MiddlewareError, release_shared
from ..http.request import Request
from ..http.response import Response


logger = logging.getLogger(__name__)


Next = Callable[[], Optional[Exception]]
Handler = Callable[[Request, Response], Optional[Exception]]
MiddlewareFunc = Callable[[Request, Response, Next], Optional[Exception]]


class Middleware(ABC):
    """
    Abstract base class for middleware.

    =========================================================================
    MIDDLEWARE ANATOMY
    =========================================================================

        class RequireAPIKey(Middleware):
            def __call__(self, req, res, next):
                if not req.get_header("X-API-Key"):
                    return ERR_UNAUTHORIZED     # short-circuit

                err = next()                    # run the rest
                res.set_header("X-Checked", "1")
                return err

    Plain functions with the same signature are accepted wherever a
    Middleware is.

    =========================================================================
    """

    @abstractmethod
    def __call__(self, req: Request, res: Response, next: Next) -> Optional[Exception]:
        """
        Process the request.

        Args:
            req: The request wrapper.
            res: The response wrapper.
            next: Runs the remainder of the pipeline; returns its error.

        Returns:
            An error to hand to the error chain, or None.
        """
        pass

    @property
    def name(self) -> str:
        """Get the middleware name for logging."""
        return self.__class__.__name__


class FunctionMiddleware(Middleware):
    """
    Wraps a plain function as middleware.

    Usage:
        def add_header(req, res, next):
            res.set_header("X-Custom", "value")
            return next()

        router.use(FunctionMiddleware(add_header, name="add_header"))
    """

    def __init__(self, func: MiddlewareFunc, name: Optional[str] = None):
        self._func = func
        self._name = name or getattr(func, "__name__", type(func).__name__)

    def __call__(self, req: Request, res: Response, next: Next) -> Optional[Exception]:
        return self._func(req, res, next)

    @property
    def name(self) -> str:
        return self._name


def function_middleware(func: MiddlewareFunc) -> FunctionMiddleware:
    """
    Decorator to create middleware from a function.

    Usage:
        @function_middleware
        def require_json(req, res, next):
            if not req.get_header("Content-Type").startswith("application/json"):
                return HTTPError(415, "JSON only")
            return next()
    """
    return FunctionMiddleware(func)


def middleware_name(middleware: Any) -> str:
    name = getattr(middleware, "name", None)
    if isinstance(name, str):
        return name
    return getattr(middleware, "__name__", type(middleware).__name__)


def _capture(call: Callable[[], Any]) -> Optional[Exception]:
    """Run `call`, turning a raised Exception into a returned one."""
    try:
        result = call()
    except Exception as e:
        return release_shared(e)
    if isinstance(result, Exception):
        return result
    return None


class MiddlewareChain:
    """
    Ordered list of middlewares composed around a terminal handler.

    =========================================================================
    USAGE
    =========================================================================

        chain = MiddlewareChain()
        chain.use(LoggingMiddleware(), json_body_parser, json_body_encoder)

        pipeline = chain.wrap(register_handler)
        err = pipeline(req, res)        # never raises an Exception

    =========================================================================
    """

    def __init__(self):
        self._middleware: List[Union[Middleware, MiddlewareFunc]] = []

    def add(self, middleware: Union[Middleware, MiddlewareFunc]) -> "MiddlewareChain":
        """
        Append a middleware. Registration order is execution order.

        Returns:
            Self for method chaining
        """
        if not callable(middleware):
            raise TypeError(f"middleware must be callable, got {type(middleware).__name__}")
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware_name(middleware)}")
        return self

    def use(self, *middleware: Union[Middleware, MiddlewareFunc]) -> "MiddlewareChain":
        """Append several middlewares at once."""
        for mw in middleware:
            self.add(mw)
        return self

    def wrap(self, handler: Handler) -> Handler:
        """
        Compose every middleware around `handler`.

        =====================================================================
        HOW WRAPPING WORKS
        =====================================================================

        Given [m1, m2, m3] and H:

            current = H
            current = m3 around current
            current = m2 around current
            current = m1 around current

        Wrapping in REVERSE keeps the first-registered middleware
        outermost.

        =====================================================================

        Returns:
            A handler that runs the whole pipeline and returns its error.
            Exceptions raised anywhere inside are returned, not raised.
        """
        def terminal(req: Request, res: Response) -> Optional[Exception]:
            return _capture(lambda: handler(req, res))

        current: Handler = terminal
        for middleware in reversed(self._middleware):
            current = self._create_wrapped_handler(middleware, current)
        return current

    def _create_wrapped_handler(
        self,
        middleware: Union[Middleware, MiddlewareFunc],
        next_handler: Handler,
    ) -> Handler:
        name = middleware_name(middleware)

        def wrapped(req: Request, res: Response) -> Optional[Exception]:
            called = False
            downstream: Optional[Exception] = None

            def next_() -> Optional[Exception]:
                nonlocal called, downstream
                if called:
                    raise MiddlewareError(f"middleware {name!r} called next() more than once")
                called = True
                downstream = next_handler(req, res)
                return downstream

            own = _capture(lambda: middleware(req, res, next_))
            return own if own is not None else downstream

        return wrapped

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self):
        return iter(self._middleware)
