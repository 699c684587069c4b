"""
Unit tests for the access logging middleware.
"""

import json
import logging

import pytest

from httpchain.errors import ERR_UNAUTHORIZED, HTTPError
from httpchain.http import Request, Response, ResponseRecorder, new_request
from httpchain.middleware import LoggingMiddleware, MiddlewareChain, get_request_id


def run(middleware, handler, headers=None, target="/users"):
    rec = ResponseRecorder()
    req = Request(new_request("GET", target, headers=headers))
    err = MiddlewareChain().use(middleware).wrap(handler)(req, Response(rec))
    return req, rec, err


def access_records(caplog):
    return [r for r in caplog.records if r.name == "httpchain.access"]


@pytest.fixture
def access_log(caplog):
    caplog.set_level(logging.INFO, logger="httpchain.access")
    return caplog


class TestLoggingMiddleware:
    """Tests for LoggingMiddleware."""

    def test_text_line(self, access_log):
        def handler(req, res):
            res.write_status(201)
            res.write(b"done")

        run(LoggingMiddleware(), handler, headers={"User-Agent": "pytest"})

        (record,) = access_records(access_log)
        assert record.name == "httpchain.access"
        assert '"GET /users" 201 4 ' in record.getMessage()

    def test_json_line(self, access_log):
        run(LoggingMiddleware(log_format="json"), lambda req, res: None,
            headers={"X-Request-ID": "abc123"}, target="/users?page=2")

        entry = json.loads(access_records(access_log)[0].getMessage())
        assert entry["request_id"] == "abc123"
        assert entry["path"] == "/users"
        assert entry["query"] == "page=2"
        assert entry["status_code"] == 200
        assert entry["client_ip"] == "192.0.2.1"

    def test_request_id_header_and_context(self):
        req, rec, _ = run(LoggingMiddleware(), lambda req, res: None)

        request_id = rec.headers.get("X-Request-ID")
        assert len(request_id) == 8
        assert get_request_id(req) == request_id

    def test_incoming_request_id_reused(self):
        req, rec, _ = run(LoggingMiddleware(), lambda req, res: None,
                          headers={"X-Request-ID": "from-proxy"})

        assert rec.headers.get("X-Request-ID") == "from-proxy"

    def test_request_id_header_optional(self):
        req, rec, _ = run(LoggingMiddleware(include_request_id=False), lambda req, res: None)

        assert "X-Request-ID" not in rec.headers
        assert get_request_id(req) != ""

    def test_error_is_returned_and_logged_with_its_code(self, access_log):
        boom = HTTPError(401, ERR_UNAUTHORIZED)

        _, _, err = run(LoggingMiddleware(log_format="json"), lambda req, res: boom)

        entry = json.loads(access_records(access_log)[0].getMessage())
        assert err is boom
        assert entry["status_code"] == 401
        assert entry["error"] == "401 unauthorized"

    def test_untagged_error_logged_as_500(self, access_log):
        def handler(req, res):
            raise RuntimeError("db down")

        _, _, err = run(LoggingMiddleware(log_format="json"), handler)

        assert isinstance(err, RuntimeError)
        assert json.loads(access_records(access_log)[0].getMessage())["status_code"] == 500

    def test_skip_paths(self, access_log):
        run(LoggingMiddleware(skip_paths=["/health/live"]), lambda req, res: None,
            target="/health/live")

        assert access_records(access_log) == []

    def test_custom_level(self, caplog):
        caplog.set_level(logging.DEBUG, logger="httpchain.access")

        run(LoggingMiddleware(log_level=logging.DEBUG), lambda req, res: None)

        assert access_records(caplog)[0].levelno == logging.DEBUG

    def test_rejects_unknown_format(self):
        with pytest.raises(ValueError):
            LoggingMiddleware(log_format="xml")

    def test_request_id_without_middleware(self):
        assert get_request_id(Request(new_request("GET", "/"))) == ""
