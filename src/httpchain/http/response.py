"""
=============================================================================
RESPONSE WRAPPER
=============================================================================

Handlers write through a `Response`, which wraps the transport's
ResponseWriter and carries a stack of encoder decorators.

=============================================================================
STATUS AND HEADERS
=============================================================================

    set_header(...)  ──►  write_status(201)  ──►  write(b"...")
         │                      │                      │
     mutable until        at most once;           implies 200 if
     status is sent       extra calls are         no status yet
                          logged and ignored

=============================================================================
ENCODER DECORATOR CHAIN
=============================================================================

Every call to use_encoder_decorator(d) wraps the current encoder, so the
most recently installed decorator is OUTERMOST:

    use_encoder_decorator(d1)
    use_encoder_decorator(d2)

    encode(value) ──► d2(d1(base))(res, value)

    ┌────────────────────────────────────────────────────────────────┐
    │ d2: Content-Type is mine? ── yes ──► serialize                 │
    │        │ no                                                    │
    │        ▼                                                       │
    │ d1: Content-Type is mine? ── yes ──► serialize                 │
    │        │ no                                                    │
    │        ▼                                                       │
    │ base: raise HTTPError(500, "unsupported Content-Type: ...")    │
    └────────────────────────────────────────────────────────────────┘

For a content type both decorators claim, the later one wins.

=============================================================================
"""

from http import HTTPStatus
from typing import Any, Optional, Union
import logging

from ..errors import HTTPError, UnsupportedContentTypeError
from ..codec import Encoder, EncoderDecorator
from .headers import Headers
from .transport import ResponseWriter


logger = logging.getLogger(__name__)


def unsupported_content_type_encoder(sink: ResponseWriter, value: Any) -> None:
    """Terminal encoder: nothing claimed the response Content-Type."""
    content_type = sink.headers.get("Content-Type")
    raise HTTPError(HTTPStatus.INTERNAL_SERVER_ERROR, UnsupportedContentTypeError(content_type))


class Response:
    """
    Per-request wrapper around the transport's ResponseWriter.

    Args:
        writer: The transport-level response sink.
    """

    def __init__(self, writer: ResponseWriter):
        self.writer = writer
        self._status: Optional[int] = None
        self._bytes_written = 0
        self._encoder: Encoder = unsupported_content_type_encoder

    # =========================================================================
    # HEADERS
    # =========================================================================

    @property
    def headers(self) -> Headers:
        return self.writer.headers

    def set_header(self, name: str, value: str) -> "Response":
        """
        Set a response header, replacing earlier values.

        Ignored (with a warning) once the status line has been written.
        """
        if self.written:
            logger.warning(f"set_header({name!r}) after status {self._status} was written; ignored")
            return self
        self.writer.headers.set(name, value)
        return self

    def get_header(self, name: str) -> str:
        return self.writer.headers.get(name, "")

    # =========================================================================
    # STATUS AND BODY
    # =========================================================================

    def write_status(self, status: int) -> None:
        """Send the status code. Only the first call has any effect."""
        if self._status is not None:
            logger.warning(f"superfluous write_status({int(status)}); status already {self._status}")
            return
        self._status = int(status)
        self.writer.write_header(self._status)

    # Lets a Response stand in wherever a ResponseWriter is expected
    write_header = write_status

    def write(self, data: Union[bytes, str]) -> int:
        """Write body bytes, sending 200 first if no status was written."""
        if self._status is None:
            self.write_status(HTTPStatus.OK)
        if isinstance(data, str):
            data = data.encode("utf-8")
        count = self.writer.write(data)
        self._bytes_written += count
        return count

    @property
    def status(self) -> Optional[int]:
        """The status written so far, or None."""
        return self._status

    @property
    def written(self) -> bool:
        return self._status is not None

    @property
    def bytes_written(self) -> int:
        return self._bytes_written

    # =========================================================================
    # ENCODING
    # =========================================================================

    def use_encoder_decorator(self, decorator: EncoderDecorator) -> None:
        """Wrap the current encoder; the newest decorator runs first."""
        self._encoder = decorator(self._encoder)

    def encode(self, value: Any) -> None:
        """
        Serialize `value` into the body with the effective encoder.

        Raises:
            HTTPError: 500 when no decorator handles the Content-Type, or
                       whatever the selected encoder raises.
        """
        self._encoder(self, value)

    def __repr__(self) -> str:
        return f"Response(status={self._status})"
