"""Decoding of JavaScript literal syntax into Python values."""

from __future__ import annotations

import json
import math
from typing import Any

_SIMPLE_ESCAPES: dict[str, str] = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
}
_LINE_TERMINATORS = frozenset("\n\u2028\u2029")


def decode_escapes(raw: str) -> str:
    """Decode the body of a string or template chunk (no delimiters).

    Raises:
        ValueError: On malformed ``\\x`` or ``\\u`` escapes.
    """
    out: list[str] = []
    i = 0
    n = len(raw)
    while i < n:
        ch = raw[i]
        if ch != "\\":
            out.append(ch)
            i += 1
            continue
        i += 1
        if i >= n:
            msg = "dangling backslash"
            raise ValueError(msg)
        esc = raw[i]
        if esc == "x":
            out.append(chr(_hex(raw[i + 1 : i + 3], 2)))
            i += 3
        elif esc == "u" and raw[i + 1 : i + 2] == "{":
            end = raw.find("}", i)
            if end == -1:
                msg = "unterminated \\u{...} escape"
                raise ValueError(msg)
            out.append(chr(_hex(raw[i + 2 : end], None)))
            i = end + 1
        elif esc == "u":
            out.append(chr(_hex(raw[i + 1 : i + 5], 4)))
            i += 5
        elif esc == "\r":
            # Line continuation; swallow an optional following \n.
            i += 2 if raw[i + 1 : i + 2] == "\n" else 1
        elif esc in _LINE_TERMINATORS:
            i += 1
        else:
            out.append(_SIMPLE_ESCAPES.get(esc, esc))
            i += 1
    decoded = "".join(out)
    try:
        # Recombine surrogate pairs written as two \u escapes.
        return decoded.encode("utf-16", "surrogatepass").decode("utf-16")
    except UnicodeDecodeError:
        return decoded


def _hex(digits: str, width: int | None) -> int:
    if not digits or (width is not None and len(digits) != width):
        msg = f"malformed escape sequence: \\{digits}"
        raise ValueError(msg)
    try:
        value = int(digits, 16)
    except ValueError:
        msg = f"malformed escape sequence: \\{digits}"
        raise ValueError(msg) from None
    if value > 0x10FFFF:
        msg = f"code point out of range: {digits}"
        raise ValueError(msg)
    return value


def parse_number(source: str) -> int | float:
    """Parse a numeric literal: decimal, hex, octal, binary, separators, BigInt."""
    t = source.replace("_", "")
    if t.endswith("n"):
        t = t[:-1]
    lower = t.lower()
    for prefix, base in (("0x", 16), ("0o", 8), ("0b", 2)):
        if lower.startswith(prefix):
            return int(t[2:], base)
    if len(t) > 1 and t[0] == "0" and t.isdigit():
        # Legacy octal (0755) unless it contains 8 or 9.
        return int(t, 8) if set(t) <= set("01234567") else int(t, 10)
    if any(c in lower for c in ".e"):
        value = float(t)
        return int(value) if value.is_integer() else value
    return int(t)


def js_string(value: Any) -> str:
    """String conversion as performed by template substitution and ``+``."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if value.is_integer():
            return str(int(value))
        return repr(value)
    return str(value)


def is_json_value(value: Any) -> bool:
    if value is None or isinstance(value, str | bool | int | float):
        return True
    if isinstance(value, list):
        return all(is_json_value(item) for item in value)
    if isinstance(value, dict):
        return all(isinstance(k, str) and is_json_value(v) for k, v in value.items())
    return False


def json_stringify(value: Any, indent: int | str | None = None) -> str:
    """Mirror ``JSON.stringify(value, null, indent)`` for literal data."""
    if isinstance(indent, int) and not isinstance(indent, bool):
        indent = min(indent, 10) or None
    elif isinstance(indent, str):
        indent = indent[:10] or None
    else:
        indent = None
    if indent is None:
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return json.dumps(value, ensure_ascii=False, indent=indent, separators=(",", ": "))
