"""
End-to-end tests over real sockets: HTTPServer in a background thread,
http.client on the other side.
"""

import json
import socket

import pytest

from httpchain import HTTPServer, ServerConfig
from httpchain.__main__ import build_app


@pytest.fixture
def demo(live_server):
    return live_server(build_app(ServerConfig(), jwt_secret=""))


class TestLiveServer:
    def test_health(self, demo):
        resp = demo.request("GET", "/health")

        assert resp.status == 200
        assert resp.getheader("Content-Type") == "application/json"
        assert resp.getheader("Server") == "httpchain/1.0"
        assert resp.getheader("Connection") == "close"
        assert json.loads(resp.data)["status"] == "healthy"

    def test_echo_json(self, demo):
        resp = demo.request("POST", "/echo", body=b'{"message": "hi"}',
                            headers={"Content-Type": "application/json"})

        assert resp.status == 200
        assert json.loads(resp.data) == {"message": "hi"}
        assert resp.getheader("X-Request-ID")

    def test_echo_xml(self, demo):
        resp = demo.request("POST", "/echo", body=b"<msg><text>hi</text></msg>",
                            headers={"Content-Type": "application/xml", "Accept": "application/xml"})

        assert resp.status == 200
        assert resp.getheader("Content-Type") == "application/xml"
        assert b"<text>hi</text>" in resp.data

    def test_not_found(self, demo):
        resp = demo.request("GET", "/missing/")

        assert resp.status == 404
        assert resp.data == b'Cannot find the path "/missing/"'

    def test_head_has_no_body(self, demo):
        resp = demo.request("HEAD", "/health")

        assert resp.status == 405
        assert resp.data == b""

    def test_whoami_without_secret(self, demo):
        resp = demo.request("GET", "/whoami")

        assert resp.status == 401
        assert resp.data == b"401 unauthorized"

    def test_malformed_request(self, demo):
        with socket.create_connection(("127.0.0.1", demo.port), timeout=5.0) as sock:
            sock.sendall(b"BREW /pot HTTP/1.1\r\n\r\n")
            data = sock.recv(4096)

        assert data.startswith(b"HTTP/1.1 501 Not Implemented\r\n")

    def test_port_zero_resolves(self, demo):
        assert demo.port != 0


class TestProtectedLiveServer:
    def test_whoami(self, live_server, jwt_secret, make_token):
        server = live_server(build_app(ServerConfig(), jwt_secret=jwt_secret))

        resp = server.request("GET", "/whoami",
                              headers={"Authorization": f"Bearer {make_token(sub='jd')}"})

        assert resp.status == 200
        assert json.loads(resp.data)["claims"]["sub"] == "jd"

        resp = server.request("GET", "/whoami")
        assert (resp.status, resp.data) == (401, b"JWT token is missing")


def test_invalid_config_rejected():
    with pytest.raises(ValueError):
        HTTPServer(build_app(ServerConfig()), ServerConfig(port=70000))
