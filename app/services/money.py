"""Currency normalization and minor-unit conversion.

Amounts are handled as strings (or ``Decimal``), never floats, so a price of
"95.5" JOD is always 95500 fils. The minor-unit table is deliberately closed:
supporting another 3-decimal currency is a code change.
"""
import re
from decimal import Decimal

_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")
_MAJOR_RE = re.compile(r"^(-)?(\d+)(?:\.(\d+))?$")
_MINOR_RE = re.compile(r"^-?\d+$")

# Currencies whose minor unit is not 1/100
_EXPONENTS = {"JOD": 3}
DEFAULT_EXPONENT = 2


class MoneyError(ValueError):
    pass


def normalize_currency(code) -> str | None:
    if not code:
        return None
    c = str(code).strip().upper()
    if not _CURRENCY_RE.match(c):
        return None
    return c


def minor_unit_exponent(currency) -> int | None:
    c = normalize_currency(currency)
    if not c:
        return None
    return _EXPONENTS.get(c, DEFAULT_EXPONENT)


def minor_unit_multiplier(currency) -> int | None:
    exp = minor_unit_exponent(currency)
    if exp is None:
        return None
    return 10 ** exp


def to_minor_units(amount_major, currency) -> str:
    """'95.5' JOD -> '95500'. Extra fraction digits are truncated, not rounded."""
    exp = minor_unit_exponent(currency)
    if exp is None:
        raise MoneyError(f"Invalid currency for to_minor_units(): {currency!r}")

    raw = str(amount_major).strip()
    if not raw:
        raise MoneyError("Invalid amount for to_minor_units(): empty")
    m = _MAJOR_RE.match(raw)
    if not m:
        raise MoneyError(f"Invalid amount format for to_minor_units(): {raw!r}")

    sign, whole, frac_raw = m.group(1), m.group(2), m.group(3) or ""
    frac = (frac_raw + "0" * exp)[:exp]
    minor = (whole + frac).lstrip("0") or "0"
    if sign and minor != "0":
        return "-" + minor
    return minor


def minor_to_major_display(amount_minor, currency, display_decimals: int = 2) -> str | None:
    """Display-only rendering; the minor-unit integer stays the source of truth."""
    exp = minor_unit_exponent(currency)
    if exp is None:
        return None
    raw = str(amount_minor).strip()
    if not _MINOR_RE.match(raw):
        return None

    sign = "-" if raw.startswith("-") else ""
    digits = raw[1:] if sign else raw
    padded = digits.rjust(exp + 1, "0")
    whole, frac = padded[:-exp], padded[-exp:]

    places = max(0, display_decimals)
    frac_display = frac[:places].ljust(places, "0")
    if not frac_display:
        return f"{sign}{whole}"
    return f"{sign}{whole}.{frac_display}"


def minor_to_major(amount_minor, currency) -> Decimal:
    mult = minor_unit_multiplier(currency)
    if mult is None:
        raise MoneyError(f"Invalid currency: {currency!r}")
    raw = str(amount_minor).strip()
    if not _MINOR_RE.match(raw):
        raise MoneyError(f"Invalid minor amount: {raw!r}")
    return Decimal(raw) / Decimal(mult)
