"""
=============================================================================
HTTP ROUTER
=============================================================================

Maps (normalized path, method) to a handler, runs the middleware chain
around it, and feeds any resulting error into the error handler chain.

=============================================================================
ROUTE TABLE
=============================================================================

Paths are matched EXACTLY after normalization (surrounding "/" stripped,
empty becomes "/"):

    registered           stored as     matches requests for
    ──────────────────   ───────────   ────────────────────────────
    "/users"             "users"       /users   /users/   users
    "/"  or  ""          "/"           /   (and //, ///)
    "/api/v1/users/"     "api/v1/users"

    routes = {
        "users": {"GET": list_users, "POST": create_user},
        "/":     {"GET": index},
    }

Registering the same (path, method) twice replaces the earlier handler.

=============================================================================
DISPATCH
=============================================================================

    serve(raw_request, writer)
        │
        ├── wrap into Request / Response
        ├── path = normalize_path(request path)
        │
        ├── path not in table ─────────────► handle_error(ERR_NOT_FOUND)
        ├── method not in table[path] ─────► handle_error(ERR_METHOD_NOT_ALLOWED)
        │
        └── pipeline = m1(m2(...mk(handler)))
            err = pipeline(req, res)
            err is not None ───────────────► handle_error(err)

Not-found and method-not-allowed are raised BEFORE any middleware runs.

=============================================================================
USAGE
=============================================================================

    router = Router()
    router.use(LoggingMiddleware(), json_body_parser, json_body_encoder)

    @router.post("/register")
    def register(req, res):
        form = req.parse_body_into(RegisterForm)
        res.encode(users.register(form))

    @router.register_error_handler
    def json_not_found(err, req, res, forward):
        if not is_error(err, ERR_NOT_FOUND):
            return forward(err)
        ...

    HTTPServer(router, config).run()

Registration must be finished before the server starts; the route table,
middleware list and error handlers are read-only while serving.

=============================================================================
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Union
import logging

from .errors import ERR_METHOD_NOT_ALLOWED, ERR_NOT_FOUND
from .error_handler import (
    ErrorHandler,
    ErrorHandlerChain,
    default_fallback_handler,
    default_method_not_allowed_handler,
    default_not_found_handler,
    default_unauthorized_handler,
    normalize_path,
)
from .http.request import Request
from .http.response import Response
from .http.transport import HTTPRequest, ResponseWriter
from .middleware.base import Handler, Middleware, MiddlewareChain, MiddlewareFunc


logger = logging.getLogger(__name__)


__all__ = ["Route", "Router", "normalize_path", "wrap_handler"]


TransportHandler = Callable[[HTTPRequest, ResponseWriter], None]


@dataclass
class Route:
    """A registered (normalized path, method) → handler binding."""

    path: str
    method: str
    handler: Handler


def wrap_handler(func: TransportHandler) -> Handler:
    """
    Adapt a transport-level function `(HTTPRequest, ResponseWriter)` into
    a pipeline Handler that never reports an error.
    """
    def handler(req: Request, res: Response) -> None:
        func(req.raw, res.writer)
        return None
    handler.__name__ = getattr(func, "__name__", "wrapped_handler")
    return handler


class Router:
    """
    Exact-match HTTP router with middleware and error handler chains.

    The constructor registers the default error handlers so that, at run
    time, they execute after every user handler in this order:
    MethodNotAllowed, NotFound, Unauthorized, Fallback.
    """

    def __init__(self):
        self._routes: Dict[str, Dict[str, Handler]] = {}
        self._middleware = MiddlewareChain()
        self._error_handlers = ErrorHandlerChain()

        self._error_handlers.register(default_fallback_handler)
        self._error_handlers.register(default_unauthorized_handler)
        self._error_handlers.register(default_not_found_handler)
        self._error_handlers.register(default_method_not_allowed_handler)

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def handle(self, path: str, method: str, handler: Handler) -> Handler:
        """
        Register `handler` for `method` on `path`.

        Args:
            path: Route path; normalized before storing.
            method: HTTP method, compared byte-exactly with the request's.
            handler: `(req, res) -> error or None`.

        Returns:
            The handler, unchanged.
        """
        if not callable(handler):
            raise TypeError(f"handler must be callable, got {type(handler).__name__}")

        key = normalize_path(path)
        methods = self._routes.setdefault(key, {})
        if method in methods:
            logger.debug(f"Replacing handler for {method} {key}")
        methods[method] = handler
        return handler

    def route(
        self,
        path: str,
        method: str,
        handler: Optional[Handler] = None,
    ) -> Union[Handler, Callable[[Handler], Handler]]:
        """
        Register a route directly, or return a decorator that does.

        Usage:
            router.route("/users", "GET", list_users)

            @router.route("/users", "GET")
            def list_users(req, res):
                ...
        """
        if handler is not None:
            return self.handle(path, method, handler)

        def decorator(func: Handler) -> Handler:
            return self.handle(path, method, func)
        return decorator

    def get(self, path: str, handler: Optional[Handler] = None):
        """Register a GET route."""
        return self.route(path, "GET", handler)

    def post(self, path: str, handler: Optional[Handler] = None):
        """Register a POST route."""
        return self.route(path, "POST", handler)

    def put(self, path: str, handler: Optional[Handler] = None):
        return self.route(path, "PUT", handler)

    def delete(self, path: str, handler: Optional[Handler] = None):
        return self.route(path, "DELETE", handler)

    def patch(self, path: str, handler: Optional[Handler] = None):
        return self.route(path, "PATCH", handler)

    def head(self, path: str, handler: Optional[Handler] = None):
        return self.route(path, "HEAD", handler)

    def options(self, path: str, handler: Optional[Handler] = None):
        return self.route(path, "OPTIONS", handler)

    def use(self, *middleware: Union[Middleware, MiddlewareFunc]) -> "Router":
        """Append middlewares; registration order is execution order."""
        self._middleware.use(*middleware)
        return self

    def register_error_handler(self, handler: ErrorHandler) -> ErrorHandler:
        """
        Register an error handler that runs before every earlier one
        (and always before the defaults). Usable as a decorator.
        """
        return self._error_handlers.register(handler)

    # =========================================================================
    # DISPATCH
    # =========================================================================

    def handle_error(self, err: BaseException, req: Request, res: Response) -> None:
        """Walk the error handler chain for `err`."""
        self._error_handlers.handle(err, req, res)

    def serve(self, raw: HTTPRequest, writer: ResponseWriter) -> None:
        """
        Entry point: route one transport request and write its response.

        Args:
            raw: The transport-level request.
            writer: The transport-level response sink.
        """
        req = Request(raw)
        res = Response(writer)

        path = normalize_path(req.path)
        methods = self._routes.get(path)

        if methods is None:
            self.handle_error(ERR_NOT_FOUND, req, res)
            return

        handler = methods.get(req.method)
        if handler is None:
            self.handle_error(ERR_METHOD_NOT_ALLOWED, req, res)
            return

        pipeline = self._middleware.wrap(handler)
        err = pipeline(req, res)
        if err is not None:
            self.handle_error(err, req, res)

    __call__ = serve

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    def routes(self) -> List[Route]:
        """Every registered route, grouped by path in registration order."""
        return [
            Route(path=path, method=method, handler=handler)
            for path, methods in self._routes.items()
            for method, handler in methods.items()
        ]

    def methods_for(self, path: str) -> List[str]:
        """Methods registered for `path` (normalized first), sorted."""
        return sorted(self._routes.get(normalize_path(path), {}))

    @property
    def middleware(self) -> MiddlewareChain:
        return self._middleware

    @property
    def error_handlers(self) -> ErrorHandlerChain:
        return self._error_handlers
