"""
=============================================================================
BODY CODECS
=============================================================================

The pipeline never serializes anything itself. It consumes three shapes
of callable:

    Decoder           (stream, target) -> value      raise on failure
    Encoder           (sink, value)    -> None       raise on failure
    EncoderDecorator  Encoder          -> Encoder

This module ships the concrete JSON and XML implementations that the
body parser / body encoder middlewares install.

=============================================================================
TARGET BINDING
=============================================================================

A decoder fills `target`, which may be:

    a dataclass or BaseModel TYPE      → a new validated instance
                                         (unknown keys ignored)
    a dataclass or BaseModel INSTANCE  → body fields validated and assigned
                                         in place, instance returned
    a dict INSTANCE                    → updated in place, dict returned
    None or dict                       → the raw decoded mapping

Validation goes through pydantic in lax mode, so XML text ("7", "true")
binds to int and bool fields, Optional and nested types are honoured, and
a ValidationError surfaces as DecodeError.

=============================================================================
"""

from dataclasses import fields, is_dataclass, asdict
from functools import lru_cache
from typing import TYPE_CHECKING, Any, BinaryIO, Callable, Dict, Optional
import json
import re
import xml.etree.ElementTree as ET

from pydantic import BaseModel, TypeAdapter, ValidationError

if TYPE_CHECKING:
    from .http.transport import ResponseWriter


Decoder = Callable[[BinaryIO, Any], Any]
Encoder = Callable[["ResponseWriter", Any], None]
EncoderDecorator = Callable[[Encoder], Encoder]


class DecodeError(ValueError):
    """The request body could not be decoded into the requested target."""


# =============================================================================
# PLAIN DATA
# =============================================================================

def to_plain(value: Any) -> Any:
    """
    Convert `value` into JSON-compatible plain data.

    Dataclasses and pydantic models become dicts, objects exposing
    `to_dict()` are asked for one, containers are converted recursively.
    """
    if isinstance(value, BaseModel):
        return to_plain(value.model_dump())
    if is_dataclass(value) and not isinstance(value, type):
        return {k: to_plain(v) for k, v in asdict(value).items()}
    if hasattr(value, "to_dict") and callable(value.to_dict):
        return to_plain(value.to_dict())
    if isinstance(value, dict):
        return {str(k): to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_plain(v) for v in value]
    return value


@lru_cache(maxsize=None)
def _adapter(kind: type) -> TypeAdapter:
    return TypeAdapter(kind)


def _validate(kind: type, data: Dict[str, Any]) -> Any:
    try:
        return _adapter(kind).validate_python(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or kind.__name__}: {err['msg']}"
            for err in e.errors()
        )
        raise DecodeError(f"invalid {kind.__name__}: {problems}") from e


def _is_model(target: Any) -> bool:
    kind = target if isinstance(target, type) else type(target)
    return is_dataclass(kind) or issubclass(kind, BaseModel)


def _bind(data: Any, target: Any) -> Any:
    if target is None or target is dict:
        return data

    if not isinstance(data, dict):
        raise DecodeError(f"expected an object, got {type(data).__name__}")

    if isinstance(target, dict):
        target.update(data)
        return target

    if not _is_model(target):
        raise DecodeError(f"cannot decode into {type(target).__name__}")

    if isinstance(target, type):
        return _validate(target, data)

    # Instance: validate the merged state, then copy over only what the body set
    if isinstance(target, BaseModel):
        current = {name: getattr(target, name) for name in type(target).model_fields}
    else:
        current = {f.name: getattr(target, f.name) for f in fields(target) if f.init}
    given = [name for name in data if name in current]
    fresh = _validate(type(target), {**current, **data})
    for name in given:
        setattr(target, name, getattr(fresh, name))
    return target


# =============================================================================
# JSON
# =============================================================================

def json_decoder(stream: BinaryIO, target: Any = None) -> Any:
    """Decode a JSON document from `stream` into `target`."""
    raw = stream.read()
    try:
        data = json.loads(raw.decode("utf-8") if isinstance(raw, bytes) else raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DecodeError(f"invalid JSON body: {e}") from e
    return _bind(data, target)


def json_encoder(sink: "ResponseWriter", value: Any) -> None:
    """Write `value` as a JSON document followed by a newline."""
    body = json.dumps(to_plain(value)) + "\n"
    sink.write(body.encode("utf-8"))


# =============================================================================
# XML
# =============================================================================

def _element_to_value(element: ET.Element) -> Any:
    children = list(element)
    if not children:
        return (element.text or "").strip()

    result: Dict[str, Any] = {}
    for child in children:
        value = _element_to_value(child)
        if child.tag in result:
            existing = result[child.tag]
            if not isinstance(existing, list):
                result[child.tag] = [existing]
            result[child.tag].append(value)
        else:
            result[child.tag] = value
    return result


_XML_NAME_INVALID = re.compile(r"[^\w.-]")


def xml_name(key: Any) -> str:
    """
    Turn a mapping key into a well-formed element name.

        "full name" → "full_name"      "1st" → "_1st"
    """
    name = _XML_NAME_INVALID.sub("_", str(key)) or "_"
    if not (name[0].isalpha() or name[0] == "_"):
        name = "_" + name
    return name


def _value_to_element(tag: str, value: Any) -> ET.Element:
    element = ET.Element(xml_name(tag))
    if isinstance(value, dict):
        for key, child in value.items():
            if isinstance(child, list):
                for item in child:
                    element.append(_value_to_element(key, item))
            else:
                element.append(_value_to_element(key, child))
    elif isinstance(value, list):
        for item in value:
            element.append(_value_to_element("item", item))
    elif value is None:
        pass
    elif isinstance(value, bool):
        element.text = "true" if value else "false"
    else:
        element.text = str(value)
    return element


def xml_decoder(stream: BinaryIO, target: Any = None) -> Any:
    """
    Decode an XML document from `stream` into `target`.

    The root element's children become the mapping's keys:

        <user><username>jd</username><age>30</age></user>
            → {"username": "jd", "age": "30"}
    """
    raw = stream.read()
    try:
        root = ET.fromstring(raw)
    except ET.ParseError as e:
        raise DecodeError(f"invalid XML body: {e}") from e

    data = _element_to_value(root)
    if not isinstance(data, dict):
        data = {}
    return _bind(data, target)


def xml_encoder(sink: "ResponseWriter", value: Any, root: Optional[str] = None) -> None:
    """
    Write `value` as an XML document.

    The root element is named after the dataclass (lowercased), or
    "response" for plain data.
    """
    if root is None:
        if isinstance(value, BaseModel) or (is_dataclass(value) and not isinstance(value, type)):
            root = type(value).__name__.lower()
        else:
            root = "response"

    element = _value_to_element(root, to_plain(value))
    body = ET.tostring(element, encoding="unicode")
    sink.write(('<?xml version="1.0" encoding="UTF-8"?>\n' + body).encode("utf-8"))
