"""
=============================================================================
HTTP SERVER
=============================================================================

A small threaded HTTP/1.1 server that feeds requests into a Router.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   SocketServer (accept loop, main thread)                            │
    │        │ Connection                                                  │
    │        ▼                                                             │
    │   ThreadPoolExecutor (max_workers)                                   │
    │        │                                                             │
    │        ▼  per connection, in a worker:                               │
    │   ┌───────────────────────────────────────────────────────────────┐  │
    │   │ read_request ─► RequestParser ─► router.serve(req, recorder)  │  │
    │   │      ▲                                        │               │  │
    │   │      └──── keep-alive ◄── send recorder.to_bytes()            │  │
    │   └───────────────────────────────────────────────────────────────┘  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

All registration on the router (routes, middlewares, error handlers) has
to be finished before run(); the worker threads only read it.

=============================================================================
USAGE
=============================================================================

    router = Router()
    router.use(LoggingMiddleware(), json_body_parser, json_body_encoder)

    @router.get("/hello")
    def hello(req, res):
        res.encode({"message": "Hello"})

    HTTPServer(router, ServerConfig(port=3000)).run()

=============================================================================
"""

from concurrent.futures import ThreadPoolExecutor
from http import HTTPStatus
from typing import Optional, Tuple
import logging
import threading

from .config import ServerConfig
from .core import Connection, SocketServer
from .http.transport import HTTPParseError, RequestParser, ResponseRecorder
from .router import Router


logger = logging.getLogger(__name__)


class HTTPServer:
    """
    Threaded HTTP/1.1 server for a Router.

    Args:
        router: The application.
        config: Server configuration; validated immediately.
    """

    def __init__(self, router: Router, config: Optional[ServerConfig] = None):
        self.router = router
        self.config = config or ServerConfig()
        self.config.validate()

        self._socket_server = SocketServer(self.config)
        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self._executor: Optional[ThreadPoolExecutor] = None
        # Connections admitted beyond this are answered 503
        self._slots = threading.BoundedSemaphore(self.config.max_workers + self.config.backlog)
        self._running = False

    @property
    def address(self) -> Tuple[str, int]:
        return self._socket_server.address

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        return self._socket_server.wait_until_ready(timeout)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self) -> None:
        """Serve until shutdown() or SIGINT/SIGTERM (blocking)."""
        self._setup_logging()
        self._running = True
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.max_workers,
            thread_name_prefix="httpchain-worker",
        )

        routes = ", ".join(f"{r.method} {r.path}" for r in self.router.routes())
        logger.info(f"Starting {self.config.server_name} on {self.config.host}:{self.config.port}")
        logger.debug(f"Routes: {routes or '(none)'}")

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def shutdown(self) -> None:
        """Ask run() to return. Safe from any thread."""
        self._socket_server.shutdown()

    def _setup_logging(self) -> None:
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("httpchain").setLevel(level)

    def _shutdown(self) -> None:
        logger.info("Shutting down server...")
        self._running = False
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        logger.info("Server stopped")

    # =========================================================================
    # CONNECTIONS
    # =========================================================================

    def _handle_connection(self, conn: Connection) -> None:
        if not self._slots.acquire(blocking=False):
            logger.warning(f"[{conn.id}] Server overloaded, rejecting connection")
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")
            conn.close()
            return

        try:
            self._executor.submit(self._process_connection, conn)
        except RuntimeError:
            # executor already shut down
            self._slots.release()
            conn.close()

    def _process_connection(self, conn: Connection) -> None:
        """
        Keep-alive loop for one connection (worker thread).

            read ─► parse ─► router.serve ─► send ─► keep-alive? ─► read ...
        """
        try:
            with conn:
                while self._running:
                    if not self._serve_one(conn):
                        break
                    conn.set_keep_alive()
        finally:
            self._slots.release()

    def _serve_one(self, conn: Connection) -> bool:
        """Handle one request. Returns True to keep the connection open."""
        try:
            raw = conn.read_request()
        except TimeoutError:
            self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
            return False
        except HTTPParseError as e:
            self._send_error(conn, e.status_code, str(e))
            return False

        if raw is None:
            return False

        try:
            request = self._parser.parse(raw, conn.address)
        except HTTPParseError as e:
            self._send_error(conn, e.status_code, str(e))
            return False

        recorder = ResponseRecorder()
        try:
            self.router.serve(request, recorder)
        except Exception as e:
            # Error handlers themselves failed; nothing left to delegate to
            logger.exception(f"[{conn.id}] Unhandled error serving {request.method} {request.path}: {e}")
            recorder = ResponseRecorder()
            recorder.headers.set("Content-Type", "text/plain; charset=utf-8")
            recorder.write_header(HTTPStatus.INTERNAL_SERVER_ERROR)
            recorder.write(b"500 internal server error")

        keep_alive = request.is_keep_alive and self.config.keep_alive
        if keep_alive:
            if "Connection" not in recorder.headers:
                recorder.headers.set("Connection", "keep-alive")
            if "Keep-Alive" not in recorder.headers:
                recorder.headers.set("Keep-Alive", f"timeout={int(self.config.keep_alive_timeout)}")
        else:
            recorder.headers.set("Connection", "close")

        data = recorder.to_bytes(self.config.server_name, include_body=request.method != "HEAD")
        if not conn.send_response(data):
            return False

        return keep_alive and recorder.headers.get("Connection").lower() != "close"

    def _send_error(self, conn: Connection, status: int, message: str) -> None:
        """Plain-text error for failures before routing (parse errors, timeouts)."""
        recorder = ResponseRecorder()
        recorder.headers.set("Content-Type", "text/plain; charset=utf-8")
        recorder.headers.set("Connection", "close")
        recorder.write_header(status)
        recorder.write(message.encode("utf-8"))
        conn.send_response(recorder.to_bytes(self.config.server_name))
