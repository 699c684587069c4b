"""
pytest configuration and fixtures.
"""

import http.client
import threading
import time
from typing import Callable, Generator

import jwt
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from httpchain import HTTPServer, Router, ServerConfig
from httpchain.http import ResponseRecorder, new_request


# 64 bytes, long enough for HS512 as well
JWT_SECRET = "auth-secret-key-" + "0" * 48


@pytest.fixture
def router() -> Router:
    """A fresh router with only the default error handlers."""
    return Router()


@pytest.fixture
def serve(router: Router) -> Callable[..., ResponseRecorder]:
    """
    Run one request through the `router` fixture and return the recorder.

        rec = serve("GET", "/test")
    """
    def _serve(method: str, target: str, body=None, headers=None) -> ResponseRecorder:
        rec = ResponseRecorder()
        router.serve(new_request(method, target, body, headers), rec)
        return rec

    return _serve


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with JSON body."""
    body = b'{"username": "John Doe", "email": "jd@example.com", "password": "abc"}'
    return (
        b"POST /register HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        b"\r\n"
    ) + body


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /api/users?page=1&limit=10 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def jwt_secret() -> str:
    return JWT_SECRET


@pytest.fixture
def make_token() -> Callable[..., str]:
    """
    Sign a token for tests.

        make_token()                          # valid for an hour
        make_token(expires_in=-3600)          # already expired
        make_token(key="other", algorithm="HS512")
    """
    def _make(sub: str = "user123", expires_in: int = 3600,
              key: str = JWT_SECRET, algorithm: str = "HS256", **claims) -> str:
        now = int(time.time())
        payload = {"sub": sub, "iat": now, "exp": now + expires_in, **claims}
        return jwt.encode(payload, key, algorithm=algorithm)

    return _make


class LiveServer:
    """Runs an HTTPServer in a background thread on an OS-assigned port."""

    def __init__(self, server: HTTPServer):
        self.server = server
        self._thread: threading.Thread = None

    def start(self) -> None:
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()
        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self) -> None:
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)

    @property
    def port(self) -> int:
        return self.server.address[1]

    def request(self, method: str, path: str, body=None, headers=None) -> http.client.HTTPResponse:
        """Send one request; the returned response has its body already read."""
        conn = http.client.HTTPConnection("127.0.0.1", self.port, timeout=5.0)
        try:
            conn.request(method, path, body=body, headers=headers or {})
            response = conn.getresponse()
            response.data = response.read()
            return response
        finally:
            conn.close()


@pytest.fixture
def live_server() -> Generator[Callable[[Router], LiveServer], None, None]:
    """
    Factory that starts a server for a router and stops it after the test.

        server = live_server(router)
        resp = server.request("GET", "/test")
    """
    started = []

    def _start(app: Router) -> LiveServer:
        config = ServerConfig(
            host="127.0.0.1",
            port=0,  # Let OS pick a free port
            max_workers=4,
            timeout=5.0,
            keep_alive=False,
            log_level="WARNING",
        )
        live = LiveServer(HTTPServer(app, config))
        live.start()
        started.append(live)
        return live

    yield _start

    for live in started:
        live.stop()
