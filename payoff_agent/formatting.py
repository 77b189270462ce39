from __future__ import annotations

from datetime import date
from decimal import ROUND_HALF_UP, Decimal


MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


def format_currency(amount: float) -> str:
    """整数美元、千分位、四舍五入（例如 1500.99 -> $1,501，-1000 -> -$1,000）。"""
    whole = Decimal(str(abs(amount))).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    sign = "-" if amount < 0 and whole != 0 else ""
    return f"{sign}${whole:,}"


def format_date(value: date) -> str:
    # 美式长日期，例如 December 25, 2024
    return f"{MONTH_NAMES[value.month - 1]} {value.day}, {value.year}"


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"


def format_duration(months: int) -> str:
    """月数 -> "2 years and 3 months" / "1 year" / "5 months"。"""
    years, rest = divmod(max(months, 0), 12)
    if years == 0:
        return _plural(rest, "month")
    text = _plural(years, "year")
    if rest:
        text += f" and {_plural(rest, 'month')}"
    return text
