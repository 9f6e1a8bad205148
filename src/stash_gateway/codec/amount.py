"""
Major/minor currency unit conversion.

Callers hand us money as decimal strings ("25.00"), numbers, or Decimals in
major units, while Paystack's API wants integer minor units (cents). All
conversions funnel through here so the factor-of-100 rules, scientific
notation, trailing zeros and oversized values are handled in one place.

Results larger than 2**53 - 1 are rejected: provider APIs parse JSON
numbers as IEEE doubles and would silently lose precision above that.
"""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Union

from stash_gateway.common.exceptions import InvalidAmountError

AmountValue = Union[str, int, float, Decimal]

DEFAULT_EXPONENT = 2
MAX_SAFE_INTEGER = 2**53 - 1

CURRENCY_EXPONENTS: dict[str, int] = {
    "ZAR": 2,
    "USD": 2,
    "EUR": 2,
    "GBP": 2,
    "NGN": 2,
    "KES": 2,
    "GHS": 2,
}

DECIMAL_PATTERN = re.compile(r"^[0-9]+(\.[0-9]+)?$")
INTEGER_PATTERN = re.compile(r"^[0-9]+$")


def resolve_exponent(currency: Optional[str] = None) -> int:
    if not currency:
        return DEFAULT_EXPONENT
    return CURRENCY_EXPONENTS.get(currency.upper(), DEFAULT_EXPONENT)


def _raw_string(value: AmountValue) -> str:
    # bool is an int subclass; True must not become 1 cent.
    if isinstance(value, bool) or not isinstance(value, (str, int, float, Decimal)):
        raise InvalidAmountError()
    raw = value.strip() if isinstance(value, str) else str(value)
    if not raw:
        raise InvalidAmountError()
    return raw


def _expand_scientific(raw: str, exponent: Optional[int]) -> str:
    try:
        numeric = Decimal(raw)
    except InvalidOperation as exc:
        raise InvalidAmountError() from exc
    if not numeric.is_finite():
        raise InvalidAmountError()
    if exponent is None:
        return format(numeric.normalize(), "f")
    try:
        quantized = numeric.quantize(Decimal(1).scaleb(-exponent), rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise InvalidAmountError("Amount is too large") from exc
    return format(quantized, "f")


def _normalize(value: AmountValue, exponent: Optional[int] = None) -> str:
    raw = _raw_string(value)
    if "e" in raw or "E" in raw:
        raw = _expand_scientific(raw, exponent)
    if raw.startswith("-"):
        raise InvalidAmountError()
    return raw


def _ensure_safe_integer(value: int) -> int:
    if value > MAX_SAFE_INTEGER:
        raise InvalidAmountError("Amount is too large")
    return value


def parse_minor_units(amount: AmountValue) -> int:
    """Accept an amount that is already an integer count of minor units."""
    raw = _normalize(amount)
    if "." in raw:
        raise InvalidAmountError("Amount in minor units must be an integer")
    if not INTEGER_PATTERN.match(raw):
        raise InvalidAmountError()
    return _ensure_safe_integer(int(raw))


def to_minor_units(amount: AmountValue, currency: Optional[str] = None) -> int:
    """Convert a major-unit amount to integer minor units.

    >>> to_minor_units("25.00", "ZAR")
    2500
    """
    exponent = resolve_exponent(currency)
    raw = _normalize(amount, exponent)
    if not DECIMAL_PATTERN.match(raw):
        raise InvalidAmountError()

    whole, _, fraction = raw.partition(".")
    if len(fraction) > exponent:
        raise InvalidAmountError("Amount has too many decimal places")

    minor = int(whole or "0") * 10**exponent + int(fraction.ljust(exponent, "0") or "0")
    return _ensure_safe_integer(minor)


def from_minor_units(amount: AmountValue, currency: Optional[str] = None) -> Decimal:
    """Convert integer minor units back to a major-unit Decimal."""
    exponent = resolve_exponent(currency)
    minor = parse_minor_units(amount)
    return Decimal(minor).scaleb(-exponent)


def resolve_major_amount(
    amount: AmountValue,
    amount_unit: str = "major",
    currency: Optional[str] = None,
) -> Decimal:
    """Return the amount in major units, whichever unit the caller used."""
    if amount_unit == "minor":
        return from_minor_units(amount, currency)
    raw = _normalize(amount)
    if not DECIMAL_PATTERN.match(raw):
        raise InvalidAmountError()
    return Decimal(raw)


def format_major_amount(amount: AmountValue, places: int = 2) -> str:
    """Render a major-unit amount with a fixed number of decimals ("25.00")."""
    value = amount if isinstance(amount, Decimal) else resolve_major_amount(amount)
    if not value.is_finite() or value < 0:
        raise InvalidAmountError()
    return format(value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP), "f")


def parse_major_units(value: object) -> Optional[Decimal]:
    """Lenient parse of a notification amount ("200.00"); None if unusable."""
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    return parsed if parsed.is_finite() else None
