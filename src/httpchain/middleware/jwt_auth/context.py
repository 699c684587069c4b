"""
Claim storage on the request's ambient context.

The middleware stores validated claims with `with_jwt_claims`; handlers
read them back with `get_jwt_claims`:

    @router.get("/me")
    def me(req, res):
        claims = get_jwt_claims(req)
        if claims is None:
            return ERR_UNAUTHORIZED
        res.encode({"user": claims["sub"]})
"""

from typing import Any, Dict, Optional

from ...http.request import Request


JWT_CLAIMS_KEY = "jwt_claims"


def with_jwt_claims(req: Request, claims: Dict[str, Any]) -> None:
    req.context_set(JWT_CLAIMS_KEY, claims)


def get_jwt_claims(req: Request) -> Optional[Dict[str, Any]]:
    """Claims stored by the JWT middleware, or None."""
    claims = req.context_get(JWT_CLAIMS_KEY)
    return claims if isinstance(claims, dict) else None
