"""
=============================================================================
BODY ENCODER MIDDLEWARES
=============================================================================

Each middleware does two things as one unit:

    1. picks a default response Content-Type from the Accept header
    2. installs an encoder decorator that serializes that Content-Type

    ┌──────────────────────┬──────────────────────────────┬──────────────────┐
    │ middleware           │ Accept                       │ Content-Type set │
    ├──────────────────────┼──────────────────────────────┼──────────────────┤
    │ json_body_encoder    │ "", "*/*", application/json… │ application/json │
    │ xml_body_encoder     │ application/xml…             │ application/xml  │
    └──────────────────────┴──────────────────────────────┴──────────────────┘

The decorator is installed regardless of Accept, so a handler may still
choose the type itself with res.set_header("Content-Type", ...).

A decorator claims a response when the media type of its Content-Type
(parameters such as "; charset=utf-8" ignored, case-insensitive) equals
the type it serializes. Anything else is delegated inward.

=============================================================================
"""

from typing import Any, Optional

from ..codec import Encoder, EncoderDecorator, json_encoder, xml_encoder
from ..http.request import Request
from ..http.response import Response
from ..http.transport import ResponseWriter
from .base import Next


JSON_CONTENT_TYPE = "application/json"
XML_CONTENT_TYPE = "application/xml"


def media_type(content_type: str) -> str:
    """Strip parameters and lowercase: "Application/JSON; charset=utf-8" → "application/json"."""
    return content_type.split(";", 1)[0].strip().lower()


def content_type_encoder_decorator(content_type: str, encoder: Encoder) -> EncoderDecorator:
    """
    Build a decorator that serializes with `encoder` when the response
    Content-Type is `content_type`, and delegates otherwise.
    """
    wanted = media_type(content_type)

    def decorator(next_encoder: Encoder) -> Encoder:
        def encode(sink: ResponseWriter, value: Any) -> None:
            if media_type(sink.headers.get("Content-Type")) == wanted:
                encoder(sink, value)
            else:
                next_encoder(sink, value)
        return encode

    return decorator


json_encoder_decorator = content_type_encoder_decorator(JSON_CONTENT_TYPE, json_encoder)
xml_encoder_decorator = content_type_encoder_decorator(XML_CONTENT_TYPE, xml_encoder)


def _accept(req: Request) -> str:
    return req.get_header("Accept").strip().lower()


def json_body_encoder(req: Request, res: Response, next: Next) -> Optional[Exception]:
    """Encode responses as JSON; default Content-Type for JSON-or-anything clients."""
    res.use_encoder_decorator(json_encoder_decorator)
    accept = _accept(req)
    if accept in ("", "*/*") or accept.startswith(JSON_CONTENT_TYPE):
        res.set_header("Content-Type", JSON_CONTENT_TYPE)
    next()
    return None


def xml_body_encoder(req: Request, res: Response, next: Next) -> Optional[Exception]:
    """Encode responses as XML; default Content-Type for XML clients."""
    res.use_encoder_decorator(xml_encoder_decorator)
    if _accept(req).startswith(XML_CONTENT_TYPE):
        res.set_header("Content-Type", XML_CONTENT_TYPE)
    next()
    return None
