"""
Period keys.

A review cycle is identified by a short string: "Q3 2025" in quarter mode,
"M7 2025" in month mode. Which one is used is a deployment setting
(`APP_PERIOD_MODE`); stored reviews simply carry whatever key was current
when they were written.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Literal

from review_portal.errors import ValidationFailed

PeriodMode = Literal["quarter", "month"]

_PERIOD_RE = re.compile(r"^(?P<kind>[QM])(?P<index>\d{1,2}) (?P<year>\d{4})$")


def quarter_of(month: int) -> int:
    if month <= 3:
        return 1
    if month <= 6:
        return 2
    if month <= 9:
        return 3
    return 4


def period_for(day: date, mode: PeriodMode = "quarter") -> str:
    if mode == "month":
        return f"M{day.month} {day.year}"
    return f"Q{quarter_of(day.month)} {day.year}"


def current_period(mode: PeriodMode = "quarter", today: date | None = None) -> str:
    return period_for(today or date.today(), mode)


def _months_back(day: date, months: int) -> date:
    total = day.year * 12 + (day.month - 1) - months
    return date(total // 12, total % 12 + 1, 1)


def recent_periods(mode: PeriodMode = "quarter", count: int = 4, today: date | None = None) -> list[str]:
    """Return the last `count` period keys, oldest first, ending with the current one."""

    today = today or date.today()
    step = 1 if mode == "month" else 3
    return [period_for(_months_back(today, i * step), mode) for i in range(count - 1, -1, -1)]


def parse_period(key: str) -> tuple[str, int, int]:
    """Split "Q3 2025" into ("Q", 3, 2025). Raises ValidationFailed on junk."""

    match = _PERIOD_RE.match(key.strip())
    if match is None:
        raise ValidationFailed(f"Invalid period {key!r}. Expected e.g. 'Q1 2025' or 'M1 2025'.")

    kind = match.group("kind")
    index = int(match.group("index"))
    year = int(match.group("year"))
    upper = 4 if kind == "Q" else 12
    if not 1 <= index <= upper:
        raise ValidationFailed(f"Invalid period {key!r}: {kind}{index} is out of range.")
    return kind, index, year


def normalize_period(key: str | None, mode: PeriodMode = "quarter", today: date | None = None) -> str:
    """Validate an optional user-supplied period, defaulting to the current one."""

    if key is None or not key.strip():
        return current_period(mode, today)
    kind, index, year = parse_period(key)
    return f"{kind}{index} {year}"
