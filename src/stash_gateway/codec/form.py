"""
application/x-www-form-urlencoded codec.

Encoding follows the rule Payfast signs against: percent-escape everything
outside the ``encodeURIComponent`` unreserved set, uppercase hex digits,
and render spaces as ``+``. Decoding reverses ``+`` before percent-decoding.

Pair order is significant: signatures are computed by walking fields in
a fixed or received order, so parsing never reorders or de-duplicates.
"""

from typing import Iterable, Mapping, Union
from urllib.parse import quote, unquote

FormPair = tuple[str, str]
FormValue = Union[str, int, float, bool, None]

# Characters encodeURIComponent leaves untouched, beyond alphanumerics and "_.-~".
_SAFE_CHARS = "!*'()"


def to_form_string(value: FormValue) -> str:
    """Render a scalar the way provider payloads expect it."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def encode_form_value(value: str) -> str:
    """Percent-encode a value with uppercase hex and ``+`` for spaces."""
    return quote(value, safe=_SAFE_CHARS).replace("%20", "+")


def decode_form_component(value: str) -> str:
    """Decode a single form component (``+`` means space)."""
    return unquote(value.replace("+", " "))


def parse_form_encoded(raw: str) -> list[FormPair]:
    """Split a form body into decoded ``(key, value)`` pairs, in order."""
    if not raw:
        return []

    pairs: list[FormPair] = []
    for segment in raw.split("&"):
        if not segment:
            continue
        key, _, value = segment.partition("=")
        pairs.append((decode_form_component(key), decode_form_component(value)))
    return pairs


def parse_form_body(raw: Union[bytes, str, None]) -> list[FormPair]:
    """Like :func:`parse_form_encoded`, accepting a raw UTF-8 request body."""
    if raw is None:
        return []
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    return parse_form_encoded(raw)


def build_form_encoded(fields: Union[Mapping[str, FormValue], Iterable[tuple[str, FormValue]]]) -> str:
    """Encode a mapping or pair sequence; ``None`` values are skipped."""
    items = fields.items() if isinstance(fields, Mapping) else fields
    return "&".join(
        f"{encode_form_value(key)}={encode_form_value(to_form_string(value))}"
        for key, value in items
        if value is not None
    )


def pairs_to_dict(pairs: Iterable[FormPair]) -> dict[str, str]:
    """Collapse pairs into a dict; a repeated key keeps its last value."""
    return {key: value for key, value in pairs}
