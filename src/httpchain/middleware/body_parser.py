"""
Body parser middlewares.

Each one inspects the request Content-Type and, on a match, installs the
corresponding decoder so that handlers can call `req.parse_body_into()`.
They never fail and never short-circuit.

    router.use(json_body_parser, xml_body_parser)

    @router.post("/register")
    def register(req, res):
        form = req.parse_body_into(RegisterForm)
"""

from typing import Optional

from ..codec import json_decoder, xml_decoder
from ..http.request import Request
from ..http.response import Response
from .base import Next


def _content_type(req: Request) -> str:
    return req.get_header("Content-Type").strip().lower()


def json_body_parser(req: Request, res: Response, next: Next) -> Optional[Exception]:
    """Install the JSON decoder for `application/json` bodies."""
    if _content_type(req).startswith("application/json"):
        req.set_decoder(json_decoder)
    next()
    return None


def xml_body_parser(req: Request, res: Response, next: Next) -> Optional[Exception]:
    """Install the XML decoder for `application/xml` bodies."""
    if _content_type(req).startswith("application/xml"):
        req.set_decoder(xml_decoder)
    next()
    return None
