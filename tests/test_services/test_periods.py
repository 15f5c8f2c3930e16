"""Period keys: derivation from dates, recent windows, parsing."""
from __future__ import annotations

from datetime import date

import pytest

from review_portal.errors import ValidationFailed
from review_portal.services.periods import (
    current_period,
    normalize_period,
    parse_period,
    period_for,
    quarter_of,
    recent_periods,
)


@pytest.mark.parametrize(
    ("month", "quarter"),
    [(1, 1), (3, 1), (4, 2), (6, 2), (7, 3), (9, 3), (10, 4), (12, 4)],
)
def test_quarter_boundaries(month, quarter):
    assert quarter_of(month) == quarter


def test_period_for_quarter_and_month_modes():
    day = date(2025, 8, 14)
    assert period_for(day) == "Q3 2025"
    assert period_for(day, "month") == "M8 2025"


def test_current_period_uses_given_day():
    assert current_period("quarter", date(2024, 2, 29)) == "Q1 2024"


def test_recent_periods_quarter_mode_crosses_year_boundary():
    assert recent_periods("quarter", 4, date(2025, 2, 10)) == ["Q2 2024", "Q3 2024", "Q4 2024", "Q1 2025"]


def test_recent_periods_month_mode():
    assert recent_periods("month", 3, date(2025, 1, 31)) == ["M11 2024", "M12 2024", "M1 2025"]


def test_parse_period_returns_parts():
    assert parse_period("Q4 2025") == ("Q", 4, 2025)
    assert parse_period(" M12 2023 ") == ("M", 12, 2023)


@pytest.mark.parametrize("key", ["Q5 2025", "M13 2025", "Q0 2025", "2025 Q1", "Q1-2025", ""])
def test_parse_period_rejects_malformed_keys(key):
    with pytest.raises(ValidationFailed):
        parse_period(key)


def test_normalize_period_defaults_to_current():
    assert normalize_period(None, "quarter", date(2025, 11, 2)) == "Q4 2025"
    assert normalize_period("  ", "month", date(2025, 11, 2)) == "M11 2025"
    assert normalize_period("Q01 2025") == "Q1 2025"
