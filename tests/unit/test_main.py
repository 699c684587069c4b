"""
Unit tests for the command-line entry point.
"""

import json

import pytest

from httpchain import __version__
from httpchain.__main__ import build_app, main
from httpchain.config import ServerConfig
from httpchain.http import ResponseRecorder, new_request


def test_version(capsys):
    with pytest.raises(SystemExit) as exc_info:
        main(["--version"])

    assert exc_info.value.code == 0
    assert __version__ in capsys.readouterr().out


def test_invalid_port_exits_with_error(capsys):
    assert main(["--port", "70000"]) == 1
    assert "Invalid port" in capsys.readouterr().err


def test_unknown_log_level_rejected():
    with pytest.raises(SystemExit):
        main(["--log-level", "CHATTY"])


def test_build_app_routes():
    app = build_app(ServerConfig())

    assert {(r.path, r.method) for r in app.routes()} == {
        ("health", "GET"),
        ("health/live", "GET"),
        ("health/ready", "GET"),
        ("echo", "POST"),
        ("whoami", "GET"),
    }


def test_build_app_echo():
    rec = ResponseRecorder()
    build_app(ServerConfig()).serve(
        new_request("POST", "/echo", b'{"a": [1, 2]}', {"Content-Type": "application/json"}),
        rec,
    )

    assert rec.status == 200
    assert json.loads(rec.text) == {"a": [1, 2]}
