"""Normalization of monetary amounts coming off the wire.

The backend sends amounts either as JSON numbers or as locale text such as
``"1,234.50"``. Every boundary that reads an amount goes through this module.
"""

from decimal import Decimal, InvalidOperation

ZERO = Decimal("0")

# Thousands separators used by the backend's locale formatting
GROUPING_SEPARATORS = (",",)

# Amounts beyond 10**18 (or below 10**-18) are not real order values and would
# overflow the decimal context once summed
MAX_ADJUSTED_EXPONENT = 18


def _in_range(value: Decimal) -> bool:
    if not value.is_finite():
        return False
    return value.is_zero() or abs(value.adjusted()) <= MAX_ADJUSTED_EXPONENT


def try_parse_amount(value: object) -> Decimal | None:
    """Return ``value`` as a ``Decimal`` or ``None`` if it is not a usable amount.

    Text is stripped of grouping separators and surrounding whitespace before
    parsing. Negative values are preserved; infinities, NaN and absurd
    magnitudes are rejected.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if _in_range(value) else None
    if isinstance(value, int):
        value = Decimal(value)
        return value if _in_range(value) else None
    if isinstance(value, float):
        # str() keeps the shortest repr, so 0.1 stays 0.1 instead of the binary expansion
        value = str(value)
    if not isinstance(value, str):
        return None

    text = value
    for separator in GROUPING_SEPARATORS:
        text = text.replace(separator, "")
    text = text.strip()
    if not text:
        return None

    try:
        parsed = Decimal(text)
    except InvalidOperation:
        return None
    return parsed if _in_range(parsed) else None


def parse_amount(value: object) -> Decimal:
    """Like :func:`try_parse_amount` but substitutes ``0`` for unparseable input."""
    parsed = try_parse_amount(value)
    return ZERO if parsed is None else parsed
