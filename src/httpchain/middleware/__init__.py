"""
=============================================================================
MIDDLEWARE
=============================================================================

Middleware is code that runs between routing and the handler. Each one
may prepare the request (install a decoder, attach context values),
prepare the response (install an encoder decorator, set headers), stop
the pipeline with an error, or call next() to continue.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   Router.serve()                                                     │
    │        │                                                             │
    │        ▼                                                             │
    │   ┌───────────────────┐                                              │
    │   │ LoggingMiddleware │ ──► request id, access log                   │
    │   └────────┬──────────┘                                              │
    │            ▼                                                         │
    │   ┌───────────────────┐                                              │
    │   │ json_body_parser  │ ──► req.set_decoder(json_decoder)            │
    │   └────────┬──────────┘                                              │
    │            ▼                                                         │
    │   ┌───────────────────┐                                              │
    │   │ json_body_encoder │ ──► res.use_encoder_decorator(...)           │
    │   └────────┬──────────┘                                              │
    │            ▼                                                         │
    │   ┌───────────────────┐                                              │
    │   │ JWTAuthMiddleware │ ──► may return a 401 tagged error            │
    │   └────────┬──────────┘                                              │
    │            ▼                                                         │
    │        handler                                                       │
    │            │                                                         │
    │            ▼                                                         │
    │   error (if any) flows back up and into the error handler chain     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .base import (
    FunctionMiddleware,
    Handler,
    Middleware,
    MiddlewareChain,
    Next,
    function_middleware,
)
from .body_encoder import (
    json_body_encoder,
    json_encoder_decorator,
    xml_body_encoder,
    xml_encoder_decorator,
)
from .body_parser import json_body_parser, xml_body_parser
from .logging import LoggingMiddleware, get_request_id

__all__ = [
    "FunctionMiddleware",
    "Handler",
    "Middleware",
    "MiddlewareChain",
    "Next",
    "function_middleware",
    "json_body_encoder",
    "json_encoder_decorator",
    "xml_body_encoder",
    "xml_encoder_decorator",
    "json_body_parser",
    "xml_body_parser",
    "LoggingMiddleware",
    "get_request_id",
]
