"""CSV export content."""
from __future__ import annotations

import csv
import io
from datetime import date, datetime

import pytest

from review_portal.models import UserRole
from review_portal.services import exports


@pytest.fixture
def data(factory):
    eng = factory.department("Engineering")
    ops = factory.department("Operations")
    hod = factory.hod("Hana Head", "HOD1", department=eng, heads=[eng])
    alice = factory.user("Alice \"Ace\" Smith", "EMP1", department=eng)
    olga = factory.user("Olga", "EMP2", department=ops)
    factory.user("Idle Ivan", "EMP3", department=eng)
    factory.user("Gone Gary", "EMP4", department=eng, is_active=False)
    return {"eng": eng, "ops": ops, "hod": hod, "alice": alice, "olga": olga}


def _rows(text):
    return list(csv.reader(io.StringIO(text)))


def test_reviews_csv_has_plain_header_and_quoted_rows(factory, data):
    factory.review(
        data["alice"],
        data["hod"],
        "Q3 2025",
        overall_score=4.5,
        comments='Said "ship it"\nand shipped it.',
        created_at=datetime(2025, 8, 14, 9, 30),
    )

    text = exports.reviews_csv(exports.query_reviews(factory.db, "Q3 2025"))
    lines = text.splitlines()

    assert lines[0] == ",".join(exports.REVIEW_COLUMNS)
    assert len(lines) == 2
    assert lines[1] == (
        '"Alice ""Ace"" Smith","EMP1","emp1@example.com","Engineering","Q3 2025","4.5",'
        '"Hana Head","2025-08-14","Said ""ship it"" and shipped it."'
    )


def test_reviews_csv_row_count_matches_filter(factory, data):
    factory.review(data["alice"], data["hod"], "Q3 2025", overall_score=5)
    factory.review(data["olga"], data["hod"], "Q3 2025", overall_score=3)
    factory.review(data["olga"], data["hod"], "Q2 2025", score=4)
    factory.review(data["alice"], data["alice"], "Q3 2025", overall_score=6)

    assert len(exports.query_reviews(factory.db)) == 3
    assert len(exports.query_reviews(factory.db, "Q3 2025")) == 2
    assert len(exports.query_reviews(factory.db, "Q3 2025", [data["ops"].id])) == 1

    rows = _rows(exports.reviews_csv(exports.query_reviews(factory.db, "Q2 2025")))
    assert rows[1][5] == "4"


def test_reviews_csv_marks_missing_values(factory, data):
    drifter = factory.user("Drifter", "EMP9")
    factory.review(drifter, data["hod"], "Q3 2025", comments="No department on file.")

    rows = _rows(exports.reviews_csv(exports.query_reviews(factory.db, "Q3 2025")))

    assert rows[1][3] == "Unknown"
    assert rows[1][5] == "N/A"


def test_performance_rows_cover_active_people_in_scope(factory, data):
    factory.review(data["alice"], data["hod"], "Q3 2025", overall_score=5)
    factory.review(data["alice"], data["olga"], "Q3 2025", overall_score=4)

    rows = exports.performance_rows(factory.db, "Q3 2025", [data["eng"].id])
    by_id = {row.employee_id: row for row in rows}

    assert set(by_id) == {"HOD1", "EMP1", "EMP3"}
    assert by_id["EMP1"].avg_score == "4.50"
    assert by_id["EMP1"].review_count == 2
    assert by_id["EMP1"].performance_level == "Effective Performance"
    assert by_id["EMP3"].avg_score == "N/A"
    assert by_id["EMP3"].performance_level == "Ineffective Performance"
    assert by_id["HOD1"].role == UserRole.HOD.value.upper()


def test_performance_csv_header_and_period(factory, data):
    rows = exports.performance_rows(factory.db, "Q3 2025")

    parsed = _rows(exports.performance_csv(rows))

    assert parsed[0] == list(exports.PERFORMANCE_COLUMNS)
    assert len(parsed) == 1 + 4
    assert {row[-1] for row in parsed[1:]} == {"Q3 2025"}


def test_export_filename():
    today = date(2025, 8, 14)
    assert exports.export_filename("reviews_export", today=today) == "reviews_export_2025-08-14.csv"
    assert (
        exports.export_filename("performance_summary", "Q3 2025", today)
        == "performance_summary_Q3_2025_2025-08-14.csv"
    )
