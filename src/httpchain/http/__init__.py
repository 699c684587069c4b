"""HTTP primitives: headers, transport request/response, and the pipeline wrappers."""

from .headers import Headers
from .transport import (
    HTTPParseError,
    HTTPRequest,
    RequestParser,
    ResponseRecorder,
    ResponseWriter,
    format_http_date,
    new_request,
    parse_request,
)
from .request import Request
from .response import Response

__all__ = [
    "Headers",
    "HTTPParseError",
    "HTTPRequest",
    "RequestParser",
    "ResponseRecorder",
    "ResponseWriter",
    "format_http_date",
    "new_request",
    "parse_request",
    "Request",
    "Response",
]
