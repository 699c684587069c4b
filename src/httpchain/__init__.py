"""
=============================================================================
HTTPCHAIN - Composable HTTP Application Framework
=============================================================================

A small framework organized around three chains:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   1. ROUTER              exact-match (path, method) → handler        │
    │                                                                      │
    │   2. MIDDLEWARE CHAIN    m1(m2(...mk(handler)))                      │
    │                          each may prepare, short-circuit or wrap     │
    │                                                                      │
    │   3. ERROR CHAIN         user handlers, then MethodNotAllowed,       │
    │                          NotFound, Unauthorized, Fallback            │
    │                                                                      │
    │   plus pluggable body decoding (Request.set_decoder) and encoding    │
    │   (Response.use_encoder_decorator) selected by Content-Type.         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
QUICK START
=============================================================================

    from httpchain import Router, HTTPServer, HTTPError
    from httpchain.middleware import json_body_parser, json_body_encoder

    router = Router()
    router.use(json_body_parser, json_body_encoder)

    @router.post("/echo")
    def echo(req, res):
        payload = req.parse_body_into(dict)
        if "message" not in payload:
            return HTTPError(400, "message is required")
        res.encode(payload)

    HTTPServer(router).run()

=============================================================================
"""

__version__ = "1.0.0"

from .errors import (
    ERR_METHOD_NOT_ALLOWED,
    ERR_NOT_FOUND,
    ERR_UNAUTHORIZED,
    HTTPError,
    MiddlewareError,
    NoDecoderError,
    UnsupportedContentTypeError,
    as_error,
    is_error,
    sentinel,
)
from .http import Request, Response, ResponseRecorder, new_request
from .router import Router, normalize_path
from .config import ServerConfig
from .server import HTTPServer

__all__ = [
    "ERR_METHOD_NOT_ALLOWED",
    "ERR_NOT_FOUND",
    "ERR_UNAUTHORIZED",
    "HTTPError",
    "MiddlewareError",
    "NoDecoderError",
    "UnsupportedContentTypeError",
    "as_error",
    "is_error",
    "sentinel",
    "Request",
    "Response",
    "ResponseRecorder",
    "new_request",
    "Router",
    "normalize_path",
    "ServerConfig",
    "HTTPServer",
    "__version__",
]
