"""Canonical serialization of signable message fields.

The widget signs with ``JSON.stringify``, so the canonical form here is the
same byte string ``JSON.stringify`` produces for the same value:

- compact separators, no whitespace
- UTF-8 with non-ASCII characters left unescaped
- object keys in insertion order (top-level order is fixed by the contract
  models, nested objects keep the order they were received in)
- numbers written the way JavaScript prints them: ``1.0`` -> ``1``,
  ``5e-05`` -> ``0.00005``, ``1.5e16`` -> ``15000000000000000``,
  ``1e21`` -> ``1e+21``
- NaN and Infinity written as ``null``

Keys are NOT sorted. Sorting would break compatibility with the widget.
"""

import json
import math
from typing import Any, Mapping


def canonicalize(payload: Mapping[str, Any]) -> str:
    """Return the canonical JSON string for a signable payload.

    Raises:
        ValueError: If the payload holds a value JSON cannot represent
    """
    return _encode(payload)


def _encode(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return format_number(value)
    if isinstance(value, Mapping):
        items = ",".join(f"{_encode(str(k))}:{_encode(v)}" for k, v in value.items())
        return "{" + items + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_encode(v) for v in value) + "]"
    raise ValueError(f"Cannot canonicalize type: {type(value).__name__}")


def format_number(value: float) -> str:
    """Format a float as JavaScript's Number.prototype.toString does."""
    if not math.isfinite(value):
        return "null"
    if value == 0:
        return "0"

    sign = "-" if value < 0 else ""
    # repr gives the shortest round-trip digits, the same digits JavaScript picks
    mantissa, _, exponent = repr(abs(value)).partition("e")
    int_part, _, frac_part = mantissa.partition(".")
    digits = int_part + frac_part
    # value == 0.<digits> * 10**point
    point = len(int_part) + int(exponent or 0)

    stripped = digits.lstrip("0")
    point -= len(digits) - len(stripped)
    digits = stripped.rstrip("0")
    k = len(digits)

    if k <= point <= 21:
        text = digits + "0" * (point - k)
    elif 0 < point <= 21:
        text = f"{digits[:point]}.{digits[point:]}"
    elif -6 < point <= 0:
        text = "0." + "0" * -point + digits
    else:
        e = point - 1
        e_text = f"e+{e}" if e >= 0 else f"e-{-e}"
        text = digits + e_text if k == 1 else f"{digits[0]}.{digits[1:]}{e_text}"

    return sign + text
