"""
Request decoding and output-format negotiation for the HTTP transport.

- negotiate_mimetype: Accept header -> response media type (or None -> 406).
- read_request: JSON or YAML body -> validated pydantic model.
"""

import json
from typing import Any, TypeVar

import yaml
from pydantic import BaseModel, ValidationError
from starlette.requests import Request

DEFAULT_MIMETYPE = "application/json"
LDJSON_MIMETYPE = "application/x-ldjson"

# Response media type -> encoder name (see engines.encoders.ENCODERS)
MIMETYPE_FORMATS: dict[str, str] = {
    "*/*": "json",
    "text/csv": "csv",
    "application/json": "json",
    LDJSON_MIMETYPE: "ldjson",
}

YAML_CONTENT_TYPES = frozenset({"application/x-yaml", "application/yaml", "text/yaml"})

ModelT = TypeVar("ModelT", bound=BaseModel)


class RequestDecodeError(ValueError):
    """Raised when the request body cannot be decoded or validated."""

    pass


def parse_media_type(value: str) -> tuple[str, dict[str, str]]:
    """
    Split ``type/subtype; k=v; ...`` into a lowercased media type and its parameters.

    Raises ValueError when there is no ``type/subtype`` or a parameter has no ``=``.
    """
    head, *rest = value.split(";")
    mediatype = head.strip().lower()
    major, slash, minor = mediatype.partition("/")
    if not slash or not major or not minor:
        raise ValueError(f"invalid media type: {value!r}")
    params: dict[str, str] = {}
    for item in rest:
        if not item.strip():
            continue
        k, eq, v = item.partition("=")
        if not eq:
            raise ValueError(f"invalid media type parameter: {item!r}")
        params[k.strip().lower()] = v.strip().strip('"')
    return mediatype, params


def parse_mimetype(mediatype: str, params: dict[str, str] | None = None) -> str | None:
    """
    Map one parsed media type to the response media type, or None if unsupported.

    ``application/json; boundary=NL`` selects line-delimited JSON.
    """
    params = params or {}
    if mediatype == "application/json":
        if params.get("boundary") == "NL":
            return LDJSON_MIMETYPE
        return mediatype
    if mediatype == "*/*":
        return DEFAULT_MIMETYPE
    if mediatype in MIMETYPE_FORMATS:
        return mediatype
    return None


def negotiate_mimetype(accept: str | None) -> str | None:
    """
    Pick the response media type for an Accept header.

    No header (or an empty one) -> application/json. Otherwise the supported
    entry with the highest q wins, earlier entries first on ties. None when
    nothing acceptable is offered.
    """
    if accept is None or not accept.strip():
        return DEFAULT_MIMETYPE

    candidates: list[tuple[float, int, str]] = []
    for index, item in enumerate(accept.split(",")):
        try:
            mediatype, params = parse_media_type(item)
        except ValueError:
            continue
        try:
            q = float(params.pop("q", "1"))
        except ValueError:
            q = 0.0
        if q <= 0:
            continue
        resolved = parse_mimetype(mediatype, params)
        if resolved:
            candidates.append((-q, index, resolved))

    if not candidates:
        return None
    return min(candidates)[2]


def format_for(mimetype: str) -> str:
    """Encoder name for a negotiated media type."""
    return MIMETYPE_FORMATS[mimetype]


def _decode_body(raw: bytes, content_type: str) -> Any:
    if content_type in YAML_CONTENT_TYPES:
        try:
            return yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise RequestDecodeError(f"could not decode YAML: {e}") from e
    try:
        return json.loads(raw)
    except ValueError as e:
        raise RequestDecodeError(f"could not decode JSON: {e}") from e


async def read_request(request: Request, model: type[ModelT]) -> ModelT:
    """
    Read the body as JSON (default) or YAML (by Content-Type) and validate it as *model*.

    Raises RequestDecodeError on malformed bodies or failed validation.
    """
    ct = (request.headers.get("content-type") or "").split(";")[0].strip().lower()
    raw = await request.body()
    data = _decode_body(raw, ct)
    if not isinstance(data, dict):
        raise RequestDecodeError("request body must be an object")
    try:
        return model.model_validate(data)
    except ValidationError as e:
        messages = []
        for err in e.errors():
            loc = ".".join(str(part) for part in err.get("loc", []))
            msg = err.get("msg", "Invalid value")
            messages.append(f"{loc}: {msg}" if loc else msg)
        raise RequestDecodeError("; ".join(messages)) from e
