"""
=============================================================================
TCP SOCKET SERVER
=============================================================================

Owns the listening socket and the accept loop. Every accepted socket is
wrapped in a Connection and handed to a callback; the HTTP layer decides
what to do with it.

    start(on_connection)
        ├──► _listen()           SO_REUSEADDR, TCP_NODELAY, bind, listen
        ├──► _install_signals()  SIGTERM / SIGINT → shutdown() (main thread only)
        └──► accept until shutdown(), 1s poll so the stop flag is noticed

Port 0 asks the OS for a free port; `address` reports the real one once
the socket is bound.

=============================================================================
"""

from typing import Callable, Dict, Optional, Tuple
import logging
import signal
import socket
import threading

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


ACCEPT_POLL_SECONDS = 1.0

ConnectionCallback = Callable[[Connection], None]


class SocketServer:
    """
    Accept loop for the HTTP server.

    Usage:
        server = SocketServer(config)
        server.start(lambda conn: pool.submit(serve, conn))   # blocks
    """

    def __init__(self, config: ServerConfig):
        self.config = config
        self._listener: Optional[socket.socket] = None
        self._bound: Tuple[str, int] = (config.host, config.port)
        self._listening = threading.Event()
        self._stop = threading.Event()
        self._previous_signals: Dict[int, object] = {}

    @property
    def address(self) -> Tuple[str, int]:
        """The bound (ip, port); the real port once port 0 was bound."""
        return self._bound

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self, on_connection: ConnectionCallback) -> None:
        """
        Bind, listen and accept until shutdown().

        Args:
            on_connection: Called on the accept thread with every new
                           Connection; hand the work off quickly.

        Raises:
            OSError: The address could not be bound.
        """
        self._stop.clear()
        self._listener = self._listen()
        self._install_signals()
        self._listening.set()
        logger.info(f"Server listening on {self._bound[0]}:{self._bound[1]}")

        try:
            while not self._stop.is_set():
                accepted = self._accept()
                if accepted is not None:
                    on_connection(accepted)
        finally:
            self._close()

    def shutdown(self) -> None:
        """Stop the accept loop. Idempotent, callable from any thread."""
        if not self._stop.is_set():
            logger.info("Shutting down socket server...")
        self._stop.set()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is listening. Returns False on timeout."""
        return self._listening.wait(timeout)

    # =========================================================================
    # SOCKET
    # =========================================================================

    def _listen(self) -> socket.socket:
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        listener.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        listener.settimeout(ACCEPT_POLL_SECONDS)

        target = (self.config.host, self.config.port)
        try:
            listener.bind(target)
        except OSError as e:
            logger.error(f"Cannot bind {target[0]}:{target[1]}: {e}")
            listener.close()
            raise

        listener.listen(self.config.backlog)
        self._bound = listener.getsockname()[:2]
        return listener

    def _accept(self) -> Optional[Connection]:
        try:
            client, peer = self._listener.accept()
        except socket.timeout:
            return None
        except OSError as e:
            if not self._stop.is_set():
                logger.error(f"Accept failed: {e}")
            self._stop.set()
            return None

        logger.debug(f"Accepted {peer[0]}:{peer[1]}")
        return Connection(
            socket=client,
            address=peer,
            buffer_size=self.config.buffer_size,
            timeout=self.config.timeout,
            keep_alive_timeout=self.config.keep_alive_timeout,
            max_request_size=self.config.max_request_size,
        )

    def _close(self) -> None:
        self._restore_signals()
        if self._listener is not None:
            try:
                self._listener.close()
            except OSError:
                pass
            self._listener = None
        self._listening.clear()
        logger.info("Socket server stopped")

    # =========================================================================
    # SIGNALS
    # =========================================================================

    def _install_signals(self) -> None:
        # signal.signal() raises ValueError outside the main thread
        if threading.current_thread() is not threading.main_thread():
            return

        def on_signal(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}, shutting down")
            self.shutdown()

        for sig in (signal.SIGTERM, signal.SIGINT):
            self._previous_signals[sig] = signal.signal(sig, on_signal)

    def _restore_signals(self) -> None:
        while self._previous_signals:
            sig, handler = self._previous_signals.popitem()
            signal.signal(sig, handler)
