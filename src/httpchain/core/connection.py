"""
=============================================================================
CLIENT CONNECTION
=============================================================================

One accepted TCP socket. Frames complete requests out of the byte stream,
sends serialized responses and closes cleanly.

    NEW ──► READING ──► PROCESSING ──► WRITING ──► KEEP_ALIVE ──┐
                ▲                                               │
                └───────────────────────────────────────────────┘
                                      │ close()
                                      ▼
                               CLOSING ──► CLOSED

Framing needs only the header terminator and Content-Length:

    ┌──────────────── buffer ────────────────────────────────────────┐
    │ GET / HTTP/1.1\\r\\n...\\r\\n\\r\\n  body (Content-Length)  │ next... │
    └────────────────────────────────────────────────────────────────┘
      ◄──────────────── one request ───────────────────────►

Bytes past the current request (a pipelined follow-up) stay buffered for
the next read_request().

=============================================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional
import logging
import re
import socket
import uuid

from ..http.transport import HTTPParseError


logger = logging.getLogger(__name__)


HEADER_TERMINATOR = b"\r\n\r\n"

_CONTENT_LENGTH = re.compile(rb"^content-length:[ \t]*(\d+)[ \t]*\r?$", re.IGNORECASE | re.MULTILINE)


class ConnectionState(Enum):
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


class _PeerClosed(Exception):
    pass


@dataclass
class Connection:
    """
    A client connection.

    Attributes:
        socket: The accepted client socket.
        address: Peer (ip, port).
        id: Short identifier used in log lines.
        requests_handled: Requests framed on this connection so far.
        timeout: Read timeout while waiting for the first request.
        keep_alive_timeout: Read timeout while idle between requests.
        max_request_size: Largest request (headers and body) accepted.
    """

    socket: socket.socket
    address: tuple

    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    state: ConnectionState = ConnectionState.NEW
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 10 * 1024 * 1024

    _pending: bytearray = field(default_factory=bytearray, repr=False)

    def __post_init__(self):
        self.socket.settimeout(self.timeout)

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Frame the next request from the socket.

        Returns:
            The raw request bytes, or None when the peer closed the
            connection or stayed idle past keep_alive_timeout.

        Raises:
            TimeoutError: The first request did not arrive in time.
            HTTPParseError: 413 when the request exceeds max_request_size.
        """
        self.state = ConnectionState.READING
        idle_wait = self.keep_alive_timeout if self.requests_handled else self.timeout
        self.socket.settimeout(idle_wait)

        try:
            self._fill_until(lambda: HEADER_TERMINATOR in self._pending)
            body_start = self._pending.index(HEADER_TERMINATOR) + len(HEADER_TERMINATOR)
            total = body_start + self._declared_length(bytes(self._pending[:body_start]))
            self.socket.settimeout(self.timeout)
            try:
                self._fill_until(lambda: len(self._pending) >= total)
            except _PeerClosed:
                # Short body: let the parser report it
                total = len(self._pending)
        except _PeerClosed:
            return None
        except socket.timeout:
            if self.requests_handled:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")
        finally:
            self.socket.settimeout(self.timeout)

        self.requests_handled += 1
        self.state = ConnectionState.PROCESSING
        return self._take(total)

    def _fill_until(self, done: Callable[[], bool]) -> None:
        while not done():
            chunk = self._recv()
            if not chunk:
                raise _PeerClosed()
            self._pending.extend(chunk)
            if len(self._pending) > self.max_request_size:
                size = len(self._pending)
                self._pending.clear()
                raise HTTPParseError(f"Request too large: {size} bytes", status_code=413)

    def _take(self, count: int) -> bytes:
        data = bytes(self._pending[:count])
        del self._pending[:count]
        return data

    def _recv(self) -> bytes:
        try:
            return self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return b""

    @staticmethod
    def _declared_length(head: bytes) -> int:
        match = _CONTENT_LENGTH.search(head)
        return int(match.group(1)) if match else 0

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """Send all of `data`. Returns False if the peer is gone."""
        self.state = ConnectionState.WRITING
        try:
            self.socket.sendall(data)
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False
        return True

    def set_keep_alive(self) -> None:
        self.state = ConnectionState.KEEP_ALIVE

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self) -> None:
        """Half-close, drain what the peer still sends, then release the socket."""
        if self.state is ConnectionState.CLOSED:
            return
        self.state = ConnectionState.CLOSING

        for step in (self._half_close, self._drain, self.socket.close):
            try:
                step()
            except OSError:
                pass  # peer already gone

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Closed after {self.requests_handled} requests")

    def _half_close(self) -> None:
        self.socket.shutdown(socket.SHUT_WR)

    def _drain(self) -> None:
        self.socket.settimeout(0.5)
        while self.socket.recv(1024):
            pass

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
