"""
=============================================================================
REQUEST WRAPPER
=============================================================================

Handlers and middlewares see a `Request`, not the transport's HTTPRequest.
The wrapper adds two things on top of the transport fields:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   Request                                                            │
    │   ├── raw: HTTPRequest       method, url, path, headers, body ...   │
    │   ├── decoder: Decoder?      installed by a body-parser middleware  │
    │   └── context (on raw)       ambient key/value bag                   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
DECODER SELECTION
=============================================================================

    json_body_parser ──► Content-Type starts with application/json?
                               │ yes
                               ▼
                         req.set_decoder(json_decoder)
                               │
    handler ──► req.parse_body_into(User) ──► json_decoder(req.body, User)

If no middleware installed a decoder, parse_body_into() raises
NoDecoderError. Decode failures are tagged 400 so the fallback error
handler answers "Bad Request" with the decoder's message.

=============================================================================
"""

from typing import Any, BinaryIO, Dict, Mapping, Optional

from ..errors import HTTPError, NoDecoderError
from ..codec import Decoder, DecodeError
from .headers import Headers
from .transport import HTTPRequest


class Request:
    """
    Per-request wrapper handed to middlewares and handlers.

    Args:
        raw: The transport-level request.
    """

    def __init__(self, raw: HTTPRequest):
        self.raw = raw
        self._decoder: Optional[Decoder] = None

    # =========================================================================
    # BODY DECODING
    # =========================================================================

    def set_decoder(self, decoder: Decoder) -> None:
        """Install the decoder used by parse_body_into(). Replaces any previous one."""
        self._decoder = decoder

    @property
    def decoder(self) -> Optional[Decoder]:
        return self._decoder

    def parse_body_into(self, target: Any = None) -> Any:
        """
        Decode the request body with the installed decoder.

        Args:
            target: Dataclass type, dataclass instance, dict, or None.
                    See httpchain.codec for the binding rules.

        Returns:
            The decoded value (a new instance when `target` is a type).

        Raises:
            NoDecoderError: No body parser installed a decoder.
            HTTPError: 400, wrapping the DecodeError, when the body is
                       malformed.
        """
        if self._decoder is None:
            raise NoDecoderError(self.raw.headers.get("Content-Type"))

        try:
            return self._decoder(self.raw.body, target)
        except DecodeError as e:
            raise HTTPError(400, e) from e

    # =========================================================================
    # HEADERS AND CONTEXT
    # =========================================================================

    def get_header(self, name: str) -> str:
        """First value of header `name`, or "" when absent."""
        return self.raw.headers.get(name, "")

    def context_get(self, key: str, default: Any = None) -> Any:
        return self.raw.context.get(key, default)

    def context_set(self, key: str, value: Any) -> None:
        self.raw.context[key] = value

    def with_context(self, context: Mapping[str, Any]) -> None:
        """Replace the ambient context with a copy of `context`."""
        self.raw.context = dict(context)

    @property
    def context(self) -> Dict[str, Any]:
        return self.raw.context

    # =========================================================================
    # PASS-THROUGH
    # =========================================================================

    @property
    def method(self) -> str:
        return self.raw.method

    @property
    def url(self) -> str:
        return self.raw.url

    @property
    def path(self) -> str:
        """Raw URL path, not normalized."""
        return self.raw.path

    @property
    def query_params(self) -> Dict[str, list]:
        return self.raw.query_params

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.raw.get_query(name, default)

    @property
    def headers(self) -> Headers:
        return self.raw.headers

    @property
    def body(self) -> BinaryIO:
        return self.raw.body

    @property
    def client_address(self) -> tuple:
        return self.raw.client_address

    def __repr__(self) -> str:
        return f"Request({self.method} {self.url})"
