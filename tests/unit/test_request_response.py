"""
Unit tests for the Request / Response pipeline wrappers.
"""

from dataclasses import dataclass

import pytest

from httpchain.codec import json_decoder
from httpchain.errors import HTTPError, NoDecoderError, UnsupportedContentTypeError, as_error
from httpchain.http import Request, Response, ResponseRecorder, new_request
from httpchain.middleware.body_encoder import (
    content_type_encoder_decorator,
    json_encoder_decorator,
    xml_encoder_decorator,
)


@dataclass
class LoginRequest:
    email: str = ""
    password: str = ""


def make_request(body=None, content_type: str = "application/json") -> Request:
    """Helper to create a wrapped request for testing."""
    return Request(new_request("POST", "/login", body, {"Content-Type": content_type}))


class TestRequest:
    """Tests for the Request wrapper."""

    def test_parse_without_decoder(self):
        req = make_request(b"{}", content_type="text/csv")

        with pytest.raises(NoDecoderError) as exc_info:
            req.parse_body_into(LoginRequest)

        assert str(exc_info.value) == "body parser not set, content type: text/csv"

    def test_parse_with_decoder(self):
        req = make_request(b'{"email": "a@b.c", "password": "pw"}')
        req.set_decoder(json_decoder)

        assert req.decoder is json_decoder
        assert req.parse_body_into(LoginRequest) == LoginRequest("a@b.c", "pw")

    def test_decode_failure_is_tagged_400(self):
        req = make_request(b"{broken")
        req.set_decoder(json_decoder)

        with pytest.raises(HTTPError) as exc_info:
            req.parse_body_into(LoginRequest)

        assert exc_info.value.code == 400
        assert exc_info.value.message.startswith("invalid JSON body")

    def test_decoder_error_passes_through(self):
        def failing(stream, target):
            raise RuntimeError("disk on fire")

        req = make_request(b"{}")
        req.set_decoder(failing)

        with pytest.raises(RuntimeError):
            req.parse_body_into(None)

    def test_set_decoder_replaces(self):
        req = make_request(b"{}")
        req.set_decoder(lambda stream, target: "first")
        req.set_decoder(lambda stream, target: "second")

        assert req.parse_body_into() == "second"

    def test_headers_and_context(self):
        req = Request(new_request("GET", "/users?id=3", headers={"X-Token": "t"}))
        req.context_set("user", "jd")

        assert req.get_header("x-token") == "t"
        assert req.get_header("missing") == ""
        assert req.context_get("user") == "jd"
        assert req.context_get("missing", 0) == 0
        assert req.get_query("id") == "3"

        req.with_context({"fresh": True})
        assert req.context == {"fresh": True}
        assert req.raw.context == {"fresh": True}

    def test_pass_through(self):
        raw = new_request("DELETE", "/users/7/?force=1")
        req = Request(raw)

        assert req.method == "DELETE"
        assert req.url == "/users/7/?force=1"
        assert req.path == "/users/7/"
        assert req.body is raw.body
        assert req.client_address == ("192.0.2.1", 1234)


class TestResponse:
    """Tests for the Response wrapper."""

    def test_write_implies_200(self):
        rec = ResponseRecorder()
        res = Response(rec)

        assert res.status is None
        res.write("hello")

        assert res.status == 200
        assert rec.status == 200
        assert res.bytes_written == 5
        assert rec.text == "hello"

    def test_status_written_once(self):
        rec = ResponseRecorder()
        res = Response(rec)
        res.write_status(201)
        res.write_status(500)

        assert res.status == 201
        assert rec.status == 201

    def test_headers_frozen_after_status(self):
        rec = ResponseRecorder()
        res = Response(rec)
        res.set_header("X-Before", "1").set_header("X-Other", "2")
        res.write_status(204)
        res.set_header("X-After", "3")

        assert res.get_header("X-Before") == "1"
        assert "X-After" not in rec.headers

    def test_encode_without_decorator(self):
        res = Response(ResponseRecorder())
        res.set_header("Content-Type", "text/html")

        with pytest.raises(HTTPError) as exc_info:
            res.encode({"a": 1})

        assert exc_info.value.code == 500
        assert as_error(exc_info.value.cause, UnsupportedContentTypeError) is not None
        assert exc_info.value.message == "unsupported Content-Type: text/html"

    def test_decorator_selects_by_content_type(self):
        rec = ResponseRecorder()
        res = Response(rec)
        res.use_encoder_decorator(json_encoder_decorator)
        res.use_encoder_decorator(xml_encoder_decorator)
        res.set_header("Content-Type", "application/json; charset=utf-8")

        res.encode({"id": 1})

        assert rec.text == '{"id": 1}\n'

    def test_later_decorator_wins(self):
        rec = ResponseRecorder()
        res = Response(rec)
        first = content_type_encoder_decorator("text/plain", lambda sink, v: sink.write(b"first"))
        second = content_type_encoder_decorator("text/plain", lambda sink, v: sink.write(b"second"))
        res.use_encoder_decorator(first)
        res.use_encoder_decorator(second)
        res.set_header("Content-Type", "text/plain")

        res.encode("x")

        assert rec.text == "second"

    def test_unclaimed_type_falls_through_to_base(self):
        res = Response(ResponseRecorder())
        res.use_encoder_decorator(json_encoder_decorator)
        res.set_header("Content-Type", "application/xml")

        with pytest.raises(HTTPError):
            res.encode({})
