"""
Date and currency formatting for the sheet.

Dates are displayed as DD/MM (the year is always dropped) and amounts in
Brazilian reais. Amount strings may use either a comma or a dot as the
decimal separator; ``parse_amount`` is the single place that coerces them.
"""

import re
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Optional, Union

NOT_AVAILABLE = "N/A"
CURRENCY_PREFIX = "R$"
DEFAULT_SLUG = "planilha"

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
BR_DATE_RE = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{4})$")
NUMBER_PREFIX_RE = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")

MONTH_LENGTHS = [31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31]

# Amounts beyond the double range cannot be read, as in the browser
MAX_AMOUNT_EXPONENT = 308

Amount = Union[str, int, float, Decimal, None]


def _to_int(part: str) -> Optional[int]:
    part = part.strip()
    return int(part) if part.isdecimal() else None


def _day_month(year: Optional[int], month: Optional[int], day: Optional[int]) -> Optional[str]:
    if year is None or month is None or day is None:
        return None
    try:
        parsed = date(year, month, day)
    except ValueError:
        return None
    return f"{parsed.day:02d}/{parsed.month:02d}"


def format_date(value: Optional[str]) -> str:
    """
    Normalize a date string to DD/MM.

    Accepts YYYY-MM-DD (date inputs), DD/MM/YYYY and DD/MM (already
    abbreviated, returned as is). Blank input yields "N/A"; anything that
    cannot be parsed is returned unchanged.
    """
    if not value:
        return NOT_AVAILABLE

    if "-" in value:
        parts = value.split("-")
        if len(parts) != 3:
            return value
        year, month, day = (_to_int(p) for p in parts)
        return _day_month(year, month, day) or value

    if "/" in value:
        parts = value.split("/")
        if len(parts) == 2:
            return value
        if len(parts) == 3:
            day, month, year = (_to_int(p) for p in parts)
            return _day_month(year, month, day) or value

    return value


def is_leap_year(year: int) -> bool:
    return year % 400 == 0 or (year % 100 != 0 and year % 4 == 0)


def is_valid_date_string(value: Optional[str]) -> bool:
    """
    Check a full date string (YYYY-MM-DD or D/M/YYYY).

    The abbreviated DD/MM form is rejected even though ``format_date``
    accepts it.
    """
    if not value:
        return False

    if ISO_DATE_RE.match(value):
        year, month, day = (int(p) for p in value.split("-"))
        try:
            date(year, month, day)
        except ValueError:
            return False
        return True

    match = BR_DATE_RE.match(value)
    if not match:
        return False

    day, month, year = (int(g) for g in match.groups())
    if year < 1000 or year > 3000 or month == 0 or month > 12:
        return False

    month_length = MONTH_LENGTHS[month - 1]
    if month == 2 and is_leap_year(year):
        month_length = 29
    return 0 < day <= month_length


def parse_amount(value: Amount) -> Optional[Decimal]:
    """
    Parse a locale-flexible amount.

    The first comma is treated as the decimal separator and the leading
    numeric part of the string is used ("12abc" -> 12). Returns None when
    no number can be read.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        amount = value if value.is_finite() else None
    elif isinstance(value, int):
        amount = Decimal(value)
    elif isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return None
        amount = Decimal(str(value))
    else:
        match = NUMBER_PREFIX_RE.match(str(value).replace(",", ".", 1))
        if not match:
            return None
        try:
            amount = Decimal(match.group(1))
        except InvalidOperation:
            return None

    if amount is None or (amount and amount.adjusted() > MAX_AMOUNT_EXPONENT):
        return None
    return amount


def format_currency(value: Amount) -> str:
    """
    Render an amount as BRL, e.g. ``R$ 1.234,56``.

    Empty input renders as zero and unparseable input as "N/A". Display
    only; stored totals are never rewritten.
    """
    if value is None or value == "":
        return f"{CURRENCY_PREFIX} 0,00"

    amount = parse_amount(value)
    if amount is None:
        return NOT_AVAILABLE

    # Room for every integer digit plus the cents
    with localcontext() as ctx:
        ctx.prec = max(28, amount.adjusted() + 3)
        cents = amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        sign = "-" if cents < 0 else ""
        grouped = f"{abs(cents):,.2f}"
    # 1,234.56 -> 1.234,56
    grouped = grouped.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{sign}{CURRENCY_PREFIX} {grouped}"


def slugify_title(title: Optional[str]) -> str:
    """File-name stem for exports: lowercase, whitespace runs as underscores."""
    slug = re.sub(r"\s+", "_", (title or "").lower())
    return slug or DEFAULT_SLUG
