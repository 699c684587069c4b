"""
Unit tests for the JWT bearer-token middleware.
"""

import jwt
import pytest

from httpchain.errors import is_error
from httpchain.http import Request, Response, ResponseRecorder, new_request
from httpchain.middleware import MiddlewareChain
from httpchain.middleware.jwt_auth import (
    ERR_JWT_EXPIRED,
    ERR_JWT_INVALID,
    ERR_JWT_INVALID_FORMAT,
    ERR_JWT_INVALID_SIGNATURE,
    ERR_JWT_INVALID_SIGNING_METHOD,
    ERR_JWT_MISSING,
    JWT_CLAIMS_KEY,
    JWTAuthMiddleware,
    Options,
    auth_middleware,
    get_jwt_claims,
    with_jwt_claims,
)


def authenticate(options: Options, headers=None):
    """
    Run the middleware in front of a handler that records the claims it
    sees. Returns (error, claims-or-None, handler-ran).
    """
    seen = {}

    def handler(req, res):
        seen["claims"] = get_jwt_claims(req)

    req = Request(new_request("GET", "/query", headers=headers))
    err = MiddlewareChain().use(auth_middleware(options)).wrap(handler)(req, Response(ResponseRecorder()))
    return err, seen.get("claims"), "claims" in seen


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


class TestJWTAuthMiddleware:
    """Tests for JWTAuthMiddleware."""

    def test_valid_token(self, jwt_secret, make_token):
        err, claims, ran = authenticate(Options(key=jwt_secret), bearer(make_token()))

        assert err is None
        assert ran
        assert claims["sub"] == "user123"

    def test_missing_header(self, jwt_secret):
        err, _, ran = authenticate(Options(key=jwt_secret))

        assert err is ERR_JWT_MISSING
        assert not ran

    def test_not_bearer(self, jwt_secret):
        err, _, _ = authenticate(Options(key=jwt_secret), {"Authorization": "invalid-token"})

        assert err is ERR_JWT_INVALID_FORMAT

    def test_expired(self, jwt_secret, make_token):
        err, _, _ = authenticate(Options(key=jwt_secret), bearer(make_token(expires_in=-3600)))

        assert err is ERR_JWT_EXPIRED

    def test_bad_signature(self, jwt_secret, make_token):
        token = make_token(key="different-secret-key-" + "1" * 43)

        err, _, _ = authenticate(Options(key=jwt_secret), bearer(token))

        assert err is ERR_JWT_INVALID_SIGNATURE

    def test_disallowed_algorithm(self, jwt_secret, make_token):
        token = make_token(algorithm="HS512")

        err, _, _ = authenticate(Options(key=jwt_secret, algorithms=("HS256",)), bearer(token))

        assert err is ERR_JWT_INVALID_SIGNING_METHOD

    def test_malformed(self, jwt_secret):
        token = "eyJhbGciOiJIUzI1NiIsInR5cCI.this-is-invalid.and-incomplete"

        err, _, _ = authenticate(Options(key=jwt_secret), bearer(token))

        assert err is ERR_JWT_INVALID

    def test_no_key_configured(self, make_token):
        err, _, _ = authenticate(Options(), bearer(make_token()))

        assert err is ERR_JWT_INVALID

    def test_all_failures_are_401(self):
        for sentinel in (ERR_JWT_EXPIRED, ERR_JWT_INVALID, ERR_JWT_INVALID_FORMAT,
                         ERR_JWT_INVALID_SIGNATURE, ERR_JWT_INVALID_SIGNING_METHOD, ERR_JWT_MISSING):
            assert sentinel.code == 401

    def test_key_callable(self, jwt_secret, make_token):
        calls = []

        def keyfunc(header, claims):
            calls.append((header["alg"], claims["sub"]))
            return jwt_secret

        err, claims, _ = authenticate(Options(key=keyfunc), bearer(make_token(sub="kid-user")))

        assert err is None
        assert calls == [("HS256", "kid-user")]
        assert claims["sub"] == "kid-user"

    def test_key_callable_rejects_method(self, make_token):
        def keyfunc(header, claims):
            raise jwt.InvalidAlgorithmError("HMAC only")

        err, _, _ = authenticate(Options(key=keyfunc), bearer(make_token()))

        assert err is ERR_JWT_INVALID_SIGNING_METHOD

    def test_key_callable_failure(self, make_token):
        def keyfunc(header, claims):
            raise LookupError("unknown tenant")

        err, _, _ = authenticate(Options(key=keyfunc), bearer(make_token()))

        assert err is ERR_JWT_INVALID

    def test_custom_header_and_extra_claims(self, jwt_secret, make_token):
        options = Options(
            key=jwt_secret,
            get_header=lambda req: req.get_header("X-Auth"),
            get_claims=lambda req: {"tenant": req.get_query("tenant") or "default", "sub": "override"},
        )

        err, claims, _ = authenticate(options, {"X-Auth": f"Bearer {make_token()}"})

        assert err is None
        assert claims["tenant"] == "default"
        assert claims["sub"] == "override"

    def test_custom_set_context(self, jwt_secret, make_token):
        stored = {}
        options = Options(key=jwt_secret, set_context=lambda req, claims: stored.update(claims))

        err, claims, _ = authenticate(options, bearer(make_token()))

        assert err is None
        assert stored["sub"] == "user123"
        assert claims is None

    def test_class_form(self, jwt_secret):
        mw = JWTAuthMiddleware(Options(key=jwt_secret))

        assert mw.name == "JWTAuthMiddleware"


class TestClaimsContext:
    """Tests for with_jwt_claims / get_jwt_claims."""

    def test_round_trip(self):
        req = Request(new_request("GET", "/"))
        with_jwt_claims(req, {"sub": "jd"})

        assert get_jwt_claims(req) == {"sub": "jd"}
        assert req.context_get(JWT_CLAIMS_KEY) == {"sub": "jd"}

    def test_absent_or_wrong_type(self):
        req = Request(new_request("GET", "/"))

        assert get_jwt_claims(req) is None
        req.context_set(JWT_CLAIMS_KEY, "not claims")
        assert get_jwt_claims(req) is None

    def test_sentinels_are_distinct_categories(self):
        assert not is_error(ERR_JWT_EXPIRED, ERR_JWT_INVALID)
