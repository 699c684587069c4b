"""
=============================================================================
TRANSPORT PRIMITIVES
=============================================================================

The router never talks to sockets. It receives a transport-level request
and a response sink, wraps them (see request.py / response.py) and runs
the pipeline. This module defines those transport objects:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   raw bytes ──► RequestParser ──► HTTPRequest ─┐                    │
    │                                                 ├──► Router.serve() │
    │                 ResponseRecorder (sink) ───────┘         │          │
    │                        │                                 │          │
    │                        ◄──────── status/headers/body ────┘          │
    │                        │                                             │
    │                 to_bytes() ──► socket                               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Tests build requests with `new_request()` and inspect a ResponseRecorder
directly, without any networking.

=============================================================================
BODY IS A STREAM
=============================================================================

HTTPRequest.body is a binary file-like object, read once by whichever
decoder a body-parser middleware installed. Nothing rewinds it.

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import format_datetime
from http import HTTPStatus
from io import BytesIO
from typing import Any, BinaryIO, Dict, Optional, Protocol, Union
from urllib.parse import parse_qs, unquote, urlsplit
import logging
import re

from .headers import Headers, HeaderInput


logger = logging.getLogger(__name__)


class HTTPParseError(Exception):
    """
    Raised when raw request bytes cannot be parsed.

    Carries the status code the server should answer with:

        400 Bad Request                - malformed syntax
        413 Payload Too Large          - request exceeds the size limit
        501 Not Implemented            - unknown method
        505 HTTP Version Not Supported - unknown HTTP version
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


# =============================================================================
# REQUEST
# =============================================================================

@dataclass
class HTTPRequest:
    """
    A request as delivered by the transport.

    Attributes:
        method:         Request method, already uppercase ("GET").
        target:         Raw request-target ("/users?page=1").
        path:           URL path, percent-decoded but NOT normalized.
                        The 404 body quotes this value verbatim.
        query:          Raw query string without "?".
        query_params:   Parsed query string, name → list of values.
        version:        "HTTP/1.1" or "HTTP/1.0".
        headers:        Case-insensitive header map.
        body:           Single-pass binary stream.
        context:        Ambient key/value bag middlewares may extend.
        client_address: (ip, port) of the peer.
    """

    method: str
    target: str = "/"
    path: str = "/"
    query: str = ""
    query_params: Dict[str, list] = field(default_factory=dict)
    version: str = "HTTP/1.1"
    headers: Headers = field(default_factory=Headers)
    body: BinaryIO = field(default_factory=BytesIO)
    context: Dict[str, Any] = field(default_factory=dict)
    client_address: tuple = ("", 0)

    @property
    def url(self) -> str:
        """The request-target as received (path plus query)."""
        return self.target

    @property
    def content_type(self) -> str:
        """Media type of the body without parameters, lowercased."""
        return self.headers.get("Content-Type", "").split(";")[0].strip().lower()

    @property
    def content_length(self) -> int:
        try:
            return int(self.headers.get("Content-Length", "0") or 0)
        except ValueError:
            return 0

    @property
    def is_keep_alive(self) -> bool:
        """
        HTTP/1.1 keeps the connection unless "Connection: close" is sent;
        HTTP/1.0 closes unless "Connection: keep-alive" is sent.
        """
        connection = self.headers.get("Connection", "").lower()
        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        values = self.query_params.get(name, [])
        return values[0] if values else default


def split_target(target: str) -> tuple:
    """
    Split a request-target into (decoded path, raw query).

    Origin-form targets ("/users?page=2", "//users//") are split on "?"
    only; a leading "//" is part of the path, not an authority. Absolute
    form ("http://host/users") keeps just its path and query.
    """
    if "://" in target.split("?", 1)[0]:
        parts = urlsplit(target)
        path, query = parts.path, parts.query
    else:
        path, _, query = target.partition("?")
        query = query.partition("#")[0]
        path = path.partition("#")[0]
    return unquote(path) or "/", query


def new_request(
    method: str,
    target: str,
    body: Union[bytes, str, BinaryIO, None] = None,
    headers: HeaderInput = None,
    client_address: tuple = ("192.0.2.1", 1234),
) -> HTTPRequest:
    """
    Build an HTTPRequest without a socket, for tests and embedding.

    Example:
        req = new_request("POST", "/register", b'{"username": "jd"}',
                          {"Content-Type": "application/json"})
    """
    if body is None:
        stream: BinaryIO = BytesIO()
        length = 0
    elif isinstance(body, (bytes, str)):
        raw = body.encode("utf-8") if isinstance(body, str) else body
        stream = BytesIO(raw)
        length = len(raw)
    else:
        stream = body
        length = -1

    hdrs = headers.copy() if isinstance(headers, Headers) else Headers(headers)
    if length > 0 and "Content-Length" not in hdrs:
        hdrs.set("Content-Length", str(length))

    path, query = split_target(target)
    return HTTPRequest(
        method=method,
        target=target,
        path=path,
        query=query,
        query_params=parse_qs(query, keep_blank_values=True),
        headers=hdrs,
        body=stream,
        client_address=client_address,
    )


# =============================================================================
# RESPONSE SINK
# =============================================================================

class ResponseWriter(Protocol):
    """What the router needs from the transport to produce a response."""

    headers: Headers

    def write_header(self, status: int) -> None:
        ...

    def write(self, data: bytes) -> int:
        ...


class ResponseRecorder:
    """
    In-memory ResponseWriter.

    The server serializes it once the pipeline returns; tests assert on it
    directly:

        rec = ResponseRecorder()
        router.serve(new_request("GET", "/missing"), rec)
        assert rec.status == 404
        assert rec.text == 'Cannot find the path "/missing"'
    """

    def __init__(self):
        self.status: int = HTTPStatus.OK
        self.headers = Headers()
        self.wrote_header = False
        self._body = bytearray()

    def write_header(self, status: int) -> None:
        if self.wrote_header:
            logger.warning(f"superfluous write_header({status}); status already {self.status}")
            return
        self.status = int(status)
        self.wrote_header = True

    def write(self, data: bytes) -> int:
        if not self.wrote_header:
            self.write_header(HTTPStatus.OK)
        self._body.extend(data)
        return len(data)

    @property
    def body(self) -> bytes:
        return bytes(self._body)

    @property
    def text(self) -> str:
        return self._body.decode("utf-8")

    def to_bytes(self, server_name: str = "httpchain", include_body: bool = True) -> bytes:
        """
        Serialize as an HTTP/1.1 response.

            HTTP/1.1 200 OK\\r\\n
            Content-Type: application/json\\r\\n
            Content-Length: 27\\r\\n        ← added when missing
            Date: Wed, 01 Jan 2026 ...\\r\\n ← added when missing
            Server: httpchain\\r\\n          ← added when missing
            \\r\\n
            {"message": "Hello"}
        """
        headers = self.headers.copy()
        if "Content-Length" not in headers:
            headers.set("Content-Length", str(len(self._body)))
        if "Date" not in headers:
            headers.set("Date", format_http_date(datetime.now(timezone.utc)))
        if "Server" not in headers:
            headers.set("Server", server_name)

        try:
            phrase = HTTPStatus(self.status).phrase
        except ValueError:
            phrase = ""

        lines = [f"HTTP/1.1 {self.status} {phrase}".rstrip()]
        lines.extend(f"{name}: {value}" for name, value in headers.raw_items())
        head = ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1")
        return head + (bytes(self._body) if include_body else b"")


def format_http_date(dt: datetime) -> str:
    """Format a UTC datetime as an RFC 7231 HTTP-date."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return format_datetime(dt.astimezone(timezone.utc), usegmt=True)


# =============================================================================
# PARSER
# =============================================================================

class RequestParser:
    """
    Parses raw HTTP/1.x request bytes into HTTPRequest objects.

        1. Size check                      → 413
        2. Split header block from body    → 400 if no CRLFCRLF
        3. Request line                    → 400 / 501 / 505
        4. Header lines (folded lines joined, repeats kept)
        5. Body sliced to Content-Length   → 400 if short
    """

    VALID_METHODS = {
        "GET", "POST", "PUT", "DELETE", "PATCH",
        "HEAD", "OPTIONS", "TRACE", "CONNECT",
    }

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 10 * 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(self, data: bytes, client_address: tuple = ("", 0)) -> HTTPRequest:
        """
        Parse one complete request.

        Args:
            data: Raw bytes of exactly one request (headers and body).
            client_address: Peer (ip, port), kept for logging.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(f"Request too large: {len(data)} bytes", status_code=413)

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("latin-1")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, target, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        try:
            content_length = int(headers.get("Content-Length", "0") or 0)
        except ValueError:
            raise HTTPParseError("Invalid Content-Length")
        if content_length < 0:
            raise HTTPParseError("Invalid Content-Length")
        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        path, query = split_target(target)
        return HTTPRequest(
            method=method,
            target=target,
            path=path,
            query=query,
            query_params=parse_qs(query, keep_blank_values=True),
            version=version,
            headers=headers,
            body=BytesIO(body[:content_length]),
            client_address=client_address,
        )

    def _parse_request_line(self, line: str) -> tuple:
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, target, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}", status_code=501)

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(f"Unsupported HTTP version: {version}", status_code=505)

        return method, target, version

    def _parse_headers(self, lines: list) -> Headers:
        headers = Headers()
        last_name: Optional[str] = None

        for line in lines:
            if not line:
                continue

            # Obsolete line folding: continuation of the previous value
            if line[0] in (" ", "\t"):
                if last_name is not None:
                    values = headers.values_of(last_name)
                    values[-1] = values[-1] + " " + line.strip()
                    headers.delete(last_name)
                    for value in values:
                        headers.add(last_name, value)
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue  # lenient: skip malformed lines

            name, value = match.groups()
            last_name = name.strip()
            headers.add(last_name, value.strip())

        return headers


def parse_request(
    data: bytes,
    client_address: tuple = ("", 0),
    max_size: int = 10 * 1024 * 1024,
) -> HTTPRequest:
    """Parse `data` with a one-off RequestParser."""
    return RequestParser(max_request_size=max_size).parse(data, client_address)
