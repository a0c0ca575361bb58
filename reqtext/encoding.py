"""Percent-encoding helpers and JSON-to-form flattening."""

from __future__ import annotations

import json
import re
from decimal import Decimal
from typing import Any, Iterable, Iterator
from urllib.parse import quote

# Characters encodeURIComponent leaves alone beyond quote()'s defaults
_COMPONENT_SAFE = "!*'()"

# Characters encodeURI leaves alone beyond quote()'s defaults
_URI_SAFE = ";,/?:@&=+$#!*'()"

# Runs of characters that are not URL-safe, and "%" signs that do not
# start a valid escape sequence
_UNSAFE_URL_CHARS = re.compile(
    r"(?:[^\x21\x25\x26-\x3B\x3D\x3F-\x5B\x5D\x5F\x61-\x7A\x7E]"
    r"|%(?:[^0-9A-Fa-f]|[0-9A-Fa-f][^0-9A-Fa-f]|$))+"
)

_SURROGATE = re.compile("[\ud800-\udfff]")

_EXPONENT_PADDING = re.compile(r"e([+-])0+(?=\d)")

KeyPath = tuple[str, ...]


def encode_uri_component(value: str) -> str:
    """Escape everything except ``A-Z a-z 0-9 - _ . ! ~ * ' ( )``."""
    return quote(value, safe=_COMPONENT_SAFE)


def encode_url(value: str) -> str:
    """Escape unsafe characters, keeping delimiters and valid escapes.

    ``&``, ``=`` and the other URL delimiters pass through unchanged, as do
    well-formed ``%XX`` sequences. A ``%`` that is not followed by two hex
    digits is escaped to ``%25``.
    """
    value = _SURROGATE.sub("\ufffd", value)
    return _UNSAFE_URL_CHARS.sub(
        lambda m: quote(m.group(0), safe=_URI_SAFE), value
    )


def encode_form_pairs(body: str) -> str:
    """Percent-encode each ``name=value`` pair of a form body separately.

    The value keeps any further ``=`` characters; a pair without ``=``
    gets an empty value.
    """
    encoded = []
    for pair in body.split("&"):
        name, _, value = pair.partition("=")
        encoded.append(
            f"{encode_uri_component(name)}={encode_uri_component(value)}"
        )
    return "&".join(encoded)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Invalid JSON constant: {name}")


def load_json(text: str) -> Any:
    """Parse strict JSON (``NaN`` and ``Infinity`` are rejected)."""
    return json.loads(text, parse_constant=_reject_constant)


def flatten_json(value: Any, keys: KeyPath = ()) -> Iterator[tuple[KeyPath, Any]]:
    """Yield ``(key_path, scalar)`` pairs for a parsed JSON value.

    Objects extend the path with each key, arrays with an empty segment.
    """
    if isinstance(value, dict):
        for key, inner in value.items():
            yield from flatten_json(inner, keys + (key,))
    elif isinstance(value, list):
        for item in value:
            yield from flatten_json(item, keys + ("",))
    else:
        yield keys, value


def _format_number(value: float) -> str:
    """Format a float with the shortest digits, exponent outside [1e-6, 1e21)."""
    magnitude = abs(value)
    if value == 0 or 1e-6 <= magnitude < 1e21:
        if value.is_integer():
            return str(int(value))
        return format(Decimal(repr(value)), "f")
    # repr() already uses an exponent here; drop its zero padding (1e-07)
    return _EXPONENT_PADDING.sub(r"e\1", repr(value))


def stringify_scalar(value: Any) -> str:
    """Render a JSON scalar as text, using JSON spellings for literals."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return _format_number(value)
    return str(value)


def render_form_pairs(pairs: Iterable[tuple[KeyPath, Any]]) -> str:
    """Render flattened pairs as ``base[key][]=value`` form parameters."""
    rendered = []
    for keys, value in pairs:
        name = "".join(keys[:1]) + "".join(f"[{key}]" for key in keys[1:])
        rendered.append(
            f"{encode_uri_component(name)}="
            f"{encode_uri_component(stringify_scalar(value))}"
        )
    return "&".join(rendered)
