"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Settings for the bundled HTTP server. Defaults suit local development;
production deployments usually override them from the environment:

    HTTPCHAIN_PORT=3000 HTTPCHAIN_LOG_LEVEL=DEBUG python -m httpchain

The router itself takes no configuration.

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ServerConfig:
    """
    Configuration for the HTTP server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK      host, port, backlog, buffer_size, timeout
    HTTP         keep_alive, keep_alive_timeout, max_request_size
    THREADING    max_workers
    LOGGING      log_level, log_format
    IDENTITY     server_name

    =========================================================================
    """

    host: str = "127.0.0.1"
    """Address to bind. "0.0.0.0" listens on every interface."""

    port: int = 8080

    backlog: int = 128
    """Maximum number of queued connections."""

    buffer_size: int = 8192
    """Socket receive buffer size in bytes."""

    timeout: Optional[float] = 30.0
    """Socket timeout in seconds. None blocks forever."""

    keep_alive: bool = True
    """Serve several requests on one TCP connection."""

    keep_alive_timeout: float = 5.0
    """Idle time after which a kept-alive connection is closed."""

    max_request_size: int = 10 * 1024 * 1024
    """Largest accepted request (headers and body), in bytes."""

    max_workers: int = 16
    """Size of the worker thread pool handling connections."""

    log_level: str = "INFO"

    log_format: str = "text"
    """Access log format: "text" or "json"."""

    server_name: str = "httpchain/1.0"
    """Value of the Server response header."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        HTTPCHAIN_HOST              Server host (default: 127.0.0.1)
        HTTPCHAIN_PORT              Server port (default: 8080)
        HTTPCHAIN_WORKERS           Worker threads (default: 16)
        HTTPCHAIN_TIMEOUT           Socket timeout in seconds (default: 30)
        HTTPCHAIN_KEEP_ALIVE        "0"/"false" disables keep-alive
        HTTPCHAIN_MAX_REQUEST_SIZE  Bytes (default: 10 MB)
        HTTPCHAIN_LOG_LEVEL         Logging level (default: INFO)
        HTTPCHAIN_LOG_FORMAT        text or json (default: text)

        =====================================================================
        """
        return cls(
            host=os.getenv("HTTPCHAIN_HOST", "127.0.0.1"),
            port=int(os.getenv("HTTPCHAIN_PORT", "8080")),
            max_workers=int(os.getenv("HTTPCHAIN_WORKERS", "16")),
            timeout=float(os.getenv("HTTPCHAIN_TIMEOUT", "30")),
            keep_alive=os.getenv("HTTPCHAIN_KEEP_ALIVE", "1").lower() not in ("0", "false", "no"),
            max_request_size=int(os.getenv("HTTPCHAIN_MAX_REQUEST_SIZE", str(10 * 1024 * 1024))),
            log_level=os.getenv("HTTPCHAIN_LOG_LEVEL", "INFO").upper(),
            log_format=os.getenv("HTTPCHAIN_LOG_FORMAT", "text"),
        )

    def validate(self) -> None:
        """Fail fast on values the server cannot run with."""
        # 0 asks the OS for a free port
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.max_workers < 1:
            raise ValueError("max_workers must be >= 1")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.keep_alive_timeout <= 0:
            raise ValueError("keep_alive_timeout must be > 0")

        if self.max_request_size < 1:
            raise ValueError("max_request_size must be >= 1")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {self.log_level}")

        if self.log_format not in ("text", "json"):
            raise ValueError(f"Invalid log_format: {self.log_format}. Must be 'text' or 'json'.")
