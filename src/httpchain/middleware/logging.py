"""
=============================================================================
ACCESS LOGGING MIDDLEWARE
=============================================================================

Logs one line per request on the "httpchain.access" logger.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   request id ──► X-Request-ID header + context["request_id"]        │
    │        │                                                             │
    │        ▼                                                             │
    │   start timer ──► next() ──► stop timer                              │
    │                                │                                     │
    │                                ▼                                     │
    │                 status = written status                              │
    │                        or the error's HTTP code                      │
    │                        or 500 for an untagged error                  │
    │                                │                                     │
    │                                ▼                                     │
    │                          emit log line                               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The request id header is set BEFORE next() runs, since headers are frozen
once the status line has been written. The downstream error is returned
untouched.

Text format (Apache-like):

    192.0.2.1 - - [19/Oct/2026:10:00:00 +0000] "POST /register" 200 48 1.21ms rid=3f2a9c1e

=============================================================================
"""

from dataclasses import asdict, dataclass
from http import HTTPStatus
from typing import Optional
import json
import logging
import time
import uuid

from ..errors import HTTPError, as_error
from ..http.request import Request
from ..http.response import Response
from .base import Middleware, Next


logger = logging.getLogger("httpchain.access")


REQUEST_ID_KEY = "request_id"


@dataclass
class RequestLog:
    """One access line. `to_dict` feeds the JSON format, `to_text` the Apache-like one."""

    request_id: str
    method: str
    path: str
    query: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str
    error: str = ""

    def to_dict(self) -> dict:
        fields = asdict(self)
        fields["duration_ms"] = round(self.duration_ms, 2)
        return fields

    def to_text(self) -> str:
        line = (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms rid={self.request_id}'
        )
        if self.error:
            line += f' error="{self.error}"'
        return line


class LoggingMiddleware(Middleware):
    """
    Access log for every request that passes through the chain.

    Register it first so it sees every request, including the ones that
    later middlewares reject:

        router.use(LoggingMiddleware(), json_body_parser, json_body_encoder)
        router.use(LoggingMiddleware(log_format="json"))
        router.use(LoggingMiddleware(skip_paths=["/health"]))

    Args:
        log_format: "text" (Apache-like) or "json".
        include_request_id: Set X-Request-ID on the response.
        log_level: Level used for access lines.
        skip_paths: Raw paths that are not logged (e.g. health probes).
    """

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[list] = None,
    ):
        if log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json', got {log_format!r}")
        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = set(skip_paths or [])

    def __call__(self, req: Request, res: Response, next: Next) -> Optional[Exception]:
        request_id = req.get_header("X-Request-ID") or uuid.uuid4().hex[:8]
        req.context_set(REQUEST_ID_KEY, request_id)
        if self.include_request_id:
            res.set_header("X-Request-ID", request_id)

        start_time = time.perf_counter()
        err = next()
        duration_ms = (time.perf_counter() - start_time) * 1000

        if req.path in self.skip_paths:
            return err

        entry = RequestLog(
            request_id=request_id,
            method=req.method,
            path=req.path,
            query=req.raw.query,
            client_ip=str(req.client_address[0]) or "-",
            user_agent=req.get_header("User-Agent") or "-",
            status_code=self._status_of(res, err),
            content_length=res.bytes_written,
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
            error=str(err) if err is not None else "",
        )

        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            logger.log(self.log_level, entry.to_text())

        return err

    @staticmethod
    def _status_of(res: Response, err: Optional[Exception]) -> int:
        # Errors are answered by the error chain after this middleware returns
        if err is not None:
            tagged = as_error(err, HTTPError)
            return tagged.code if tagged is not None else int(HTTPStatus.INTERNAL_SERVER_ERROR)
        return res.status if res.status is not None else int(HTTPStatus.OK)


def get_request_id(req: Request) -> str:
    """Request id stored by LoggingMiddleware, or "" when it did not run."""
    return req.context_get(REQUEST_ID_KEY, "")
