"""Conversion between structured JSON values and CloudPlugs wire payloads.

Query parameters, header maps and request bodies are all supplied as
JSON-compatible values (``None``, ``bool``, ``int``, ``float``, ``str``,
lists and string-keyed dicts). Dict insertion order is preserved on the
wire.
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from typing import Any, TypeAlias

from .errors import CloudPlugsDecodeError, CloudPlugsEncodeError, ErrorCode
from .protocol import (
    KEY_AUTH,
    KEY_BODY,
    KEY_ERR,
    KEY_ID,
    escape_segment,
    has_forbidden_chars,
    header_line,
)

JsonValue: TypeAlias = (
    None | bool | int | float | str | list["JsonValue"] | dict[str, "JsonValue"]
)

_JSON_TRUE = "true"
_JSON_FALSE = "false"

# Largest float magnitude whose integral values are all exactly representable
_EXACT_FLOAT_INT = 2**53


def format_number(value: int | float) -> str:
    """Render a number compactly: integral values carry no decimal point."""
    if isinstance(value, int):
        return str(value)
    if value.is_integer() and abs(value) < _EXACT_FLOAT_INT:
        return str(int(value))
    return repr(value)


def _encode_query_value(value: Any) -> str:
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return _JSON_TRUE if value else _JSON_FALSE
    if isinstance(value, str):
        return escape_segment(value)
    if isinstance(value, int):
        return format_number(value)
    if isinstance(value, float) and math.isfinite(value):
        return format_number(value)
    raise CloudPlugsEncodeError(
        f"Unsupported query value type: {type(value).__name__}",
        code=ErrorCode.QUERY_INVALID_TYPE,
    )


def encode_query(query: Any) -> str:
    """Encode a mapping as ``key=value&...`` with escaped keys and values.

    Raises:
        CloudPlugsEncodeError: QUERY_NOT_AN_OBJECT when ``query`` is not a
            mapping, QUERY_INVALID_TYPE when a key or value has an
            unsupported type.
    """
    if not isinstance(query, Mapping):
        raise CloudPlugsEncodeError(code=ErrorCode.QUERY_NOT_AN_OBJECT)

    pairs: list[str] = []
    for key, value in query.items():
        if not isinstance(key, str):
            raise CloudPlugsEncodeError(
                f"Query keys must be strings, got {type(key).__name__}",
                code=ErrorCode.QUERY_INVALID_TYPE,
            )
        pairs.append(f"{escape_segment(key)}={_encode_query_value(value)}")
    return "&".join(pairs)


def encode_headers(headers: Any) -> list[str]:
    """Encode a string-valued mapping as ``key: value`` header lines.

    Nothing is returned unless every entry is a string free of CR, LF and
    NUL.
    """
    if not isinstance(headers, Mapping):
        raise CloudPlugsEncodeError(
            "Headers must be a mapping", code=ErrorCode.HEADERS_MUST_BE_STRING
        )
    lines: list[str] = []
    for key, value in headers.items():
        if not isinstance(key, str) or not isinstance(value, str):
            raise CloudPlugsEncodeError(
                f"Header {key!r} must map to a string",
                code=ErrorCode.HEADERS_MUST_BE_STRING,
            )
        if has_forbidden_chars(key) or has_forbidden_chars(value):
            raise CloudPlugsEncodeError(
                f"Header {key!r} contains CR, LF or NUL",
                code=ErrorCode.HEADERS_MUST_BE_STRING,
            )
        lines.append(header_line(key, value))
    return lines


def encode_body(body: JsonValue) -> bytes:
    """Serialize any JSON value to UTF-8 bytes."""
    try:
        return json.dumps(body, allow_nan=False, ensure_ascii=False).encode("utf-8")
    except (TypeError, ValueError, RecursionError) as err:
        raise CloudPlugsEncodeError(str(err), code=ErrorCode.JSON_ENCODE) from err


def decode_response(raw: bytes) -> JsonValue:
    """Decode a response body.

    An empty body decodes to ``None``. A body that is not valid JSON raises
    CloudPlugsDecodeError whose ``payload`` carries the parser message under
    ``err`` and the raw text under ``body``.
    """
    if not raw:
        return None
    try:
        result: JsonValue = json.loads(raw)
    except ValueError as err:
        text = raw.decode("utf-8", errors="replace")
        raise CloudPlugsDecodeError(str(err), {KEY_ERR: str(err), KEY_BODY: text}) from err
    return result


def extract_credentials(data: JsonValue) -> tuple[str, str] | None:
    """Return ``(id, auth)`` when an enrollment response carries both as strings."""
    if not isinstance(data, dict):
        return None
    plug_id = data.get(KEY_ID)
    auth = data.get(KEY_AUTH)
    if isinstance(plug_id, str) and plug_id and isinstance(auth, str) and auth:
        return plug_id, auth
    return None
