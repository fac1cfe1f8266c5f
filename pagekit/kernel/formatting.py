"""
PageKit Kernel — Value formatting

Locale-aware number formatting for KPI values and table cells.
Only the locales the product ships are supported; anything else falls
back to pt-BR.
"""

from __future__ import annotations

import json
import math
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

# locale → (group separator, decimal separator, currency prefix)
LOCALES: dict[str, tuple[str, str, str]] = {
    "pt-BR": (".", ",", "R$"),
    "en-US": (",", ".", "$"),
    "es-ES": (".", ",", "€"),
}

DEFAULT_LOCALE = "pt-BR"
NUMBER_MAX_FRACTION_DIGITS = 3


def _locale(locale: str | None) -> tuple[str, str, str]:
    return LOCALES.get(locale or DEFAULT_LOCALE, LOCALES[DEFAULT_LOCALE])


def _to_decimal(value: Any) -> Decimal | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
        return None
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return number if number.is_finite() else None


def group_number(
    value: Decimal,
    locale: str | None = None,
    min_fraction: int = 0,
    max_fraction: int = NUMBER_MAX_FRACTION_DIGITS,
) -> str:
    """
    Render a Decimal with locale separators, rounded half-up to max_fraction
    digits and padded to min_fraction digits.
    """
    group_sep, decimal_sep, _ = _locale(locale)
    quantum = Decimal(1).scaleb(-max_fraction)
    rounded = value.quantize(quantum, rounding=ROUND_HALF_UP)
    negative = rounded < 0
    text = f"{abs(rounded):f}"
    whole, _, fraction = text.partition(".")
    fraction = fraction.rstrip("0")
    if len(fraction) < min_fraction:
        fraction = fraction.ljust(min_fraction, "0")

    groups = []
    while len(whole) > 3:
        groups.insert(0, whole[-3:])
        whole = whole[:-3]
    groups.insert(0, whole)
    result = group_sep.join(groups)
    if fraction:
        result = f"{result}{decimal_sep}{fraction}"
    if negative:
        result = f"-{result}"
    return result


def format_kpi_value(value: Any, fmt: str = "number", locale: str | None = None) -> str:
    """
    Format a KPI scalar.

    number   → locale grouping, up to 3 fraction digits ("1.234,5")
    currency → locale currency with 2 fraction digits ("R$ 1.234,50")
    percent  → one fraction digit and a % sign ("12.5%")

    Non-numeric values are shown as is; None becomes "-".
    """
    if value is None:
        return "-"
    number = _to_decimal(value)
    if number is None:
        return str(value)

    if fmt == "currency":
        _, _, symbol = _locale(locale)
        return f"{symbol} {group_number(number, locale, min_fraction=2, max_fraction=2)}"
    if fmt == "percent":
        rounded = number.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
        return f"{rounded:f}%"
    return group_number(number, locale)


def format_cell(value: Any, locale: str | None = None) -> str:
    """Table cell text. Numbers get locale grouping; nested values are JSON-ish."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        number = _to_decimal(value)
        return group_number(number, locale) if number is not None else str(value)
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def parse_amount(text: Any) -> Decimal | None:
    """
    Parse a user-typed money amount into a Decimal rounded to cents.

    Accepts "1234.56", "1.234,56", "1234,56" and plain numbers. Returns
    None when nothing numeric can be read.
    """
    if text is None or isinstance(text, bool):
        return None
    if isinstance(text, (int, float, Decimal)):
        number = _to_decimal(text)
    else:
        raw = str(text).strip().replace("R$", "").replace(" ", "")
        if not raw:
            return None
        if "," in raw:
            # comma is the decimal separator; dots are grouping
            raw = raw.replace(".", "").replace(",", ".")
        number = _to_decimal(raw)
    if number is None or not number.is_finite():
        return None
    return number.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
