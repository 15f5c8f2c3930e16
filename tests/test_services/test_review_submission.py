"""Review submission rules, duplicates and self-assessments."""
from __future__ import annotations

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from review_portal.errors import DuplicateSubmission, NotAuthorized, NotFound, ValidationFailed
from review_portal.models import AssessmentType, InputType, Review
from review_portal.schemas.reviews import AnswerIn
from review_portal.services import reviews


@pytest.fixture
def team(factory):
    eng = factory.department("Engineering")
    sales = factory.department("Sales")
    hod = factory.hod("Hana Head", "HOD1", department=eng, heads=[eng])
    other_hod = factory.hod("Sam Sales", "HOD2", department=sales, heads=[sales])
    alice = factory.user("Alice", "EMP1", department=eng)
    sven = factory.user("Sven", "EMP2", department=sales)
    q1 = factory.question("Delivers on time", hod)
    q2 = factory.question("Communicates clearly", hod)
    return {"eng": eng, "sales": sales, "hod": hod, "other_hod": other_hod, "alice": alice, "sven": sven, "q": [q1, q2]}


def _answers(team, *ratings):
    return [AnswerIn(question=q.id, rating=r) for q, r in zip(team["q"], ratings)]


def _count(db):
    return db.scalar(select(func.count(Review.id)))


def test_overall_score_is_rounded_mean():
    answers = [AnswerIn(question=1, rating=5), AnswerIn(question=2, rating=4), AnswerIn(question=3, rating=4)]
    assert reviews.overall_score(answers) == 4.33
    assert reviews.overall_score([]) is None


def test_submit_review_stores_answers_and_score(factory, team):
    review = reviews.submit_review(
        factory.db, team["hod"], team["alice"].id, _answers(team, 5, 4), "Great quarter overall.", "Q3 2025"
    )

    assert review.overall_score == 4.5
    assert review.department_id == team["eng"].id
    assert review.is_self_assessment is False
    assert [a.rating for a in review.answers] == [5, 4]


def test_second_submission_for_same_period_is_rejected(factory, team):
    reviews.submit_review(factory.db, team["hod"], team["alice"].id, _answers(team, 5, 4), "First opinion.", "Q3 2025")

    with pytest.raises(DuplicateSubmission) as exc_info:
        reviews.submit_review(
            factory.db, team["hod"], team["alice"].id, _answers(team, 1, 1), "Second opinion.", "Q3 2025"
        )

    assert exc_info.value.status_code == 409
    assert exc_info.value.message == reviews.DUPLICATE_REVIEW_MESSAGE
    assert _count(factory.db) == 1


def test_unique_key_rejects_duplicate_that_slips_past_the_lookup(factory, team, monkeypatch):
    reviews.submit_review(factory.db, team["hod"], team["alice"].id, _answers(team, 5, 4), "First opinion.", "Q3 2025")
    monkeypatch.setattr(reviews, "find_review", lambda *args: None)

    with pytest.raises(DuplicateSubmission) as exc_info:
        reviews.submit_review(
            factory.db, team["hod"], team["alice"].id, _answers(team, 1, 1), "Concurrent opinion.", "Q3 2025"
        )

    assert exc_info.value.status_code == 409
    assert _count(factory.db) == 1


def test_other_integrity_errors_are_not_reported_as_duplicates(factory, team, monkeypatch):
    def failing_commit():
        raise IntegrityError("INSERT INTO review_answers", {}, Exception("FOREIGN KEY constraint failed"))

    monkeypatch.setattr(factory.db, "commit", failing_commit)

    with pytest.raises(IntegrityError):
        reviews.submit_review(
            factory.db, team["hod"], team["alice"].id, _answers(team, 5, 4), "Long enough comment.", "Q3 2025"
        )

    monkeypatch.undo()
    assert _count(factory.db) == 0


@pytest.mark.parametrize("kind", ["missing", "inactive", "self"])
def test_answers_must_reference_active_review_questions(factory, team, kind):
    if kind == "missing":
        question_id = 99999
    elif kind == "inactive":
        question = factory.question("Retired question", team["hod"])
        question.is_active = False
        factory.db.commit()
        question_id = question.id
    else:
        question_id = factory.question("What went well?", team["hod"], assessment_type=AssessmentType.SELF).id

    with pytest.raises(ValidationFailed):
        reviews.submit_review(
            factory.db,
            team["hod"],
            team["alice"].id,
            [AnswerIn(question=question_id, rating=6)],
            "Long enough comment.",
            "Q3 2025",
        )

    assert _count(factory.db) == 0


def test_self_assessment_rejects_review_questions(factory, team):
    with pytest.raises(ValidationFailed):
        reviews.save_self_assessment(
            factory.db, team["alice"], [AnswerIn(question=team["q"][0].id, rating=6)], "My own view", "Q3 2025"
        )

    assert _count(factory.db) == 0


def test_same_employee_may_be_reviewed_in_another_period_or_by_another_reviewer(factory, team):
    reviews.submit_review(factory.db, team["hod"], team["alice"].id, _answers(team, 5, 4), "First quarter.", "Q2 2025")
    reviews.submit_review(factory.db, team["hod"], team["alice"].id, _answers(team, 5, 4), "Next quarter.", "Q3 2025")
    # HODs can be reviewed across departments.
    reviews.submit_review(
        factory.db, team["hod"], team["other_hod"].id, _answers(team, 3, 3), "Cross-team review.", "Q3 2025"
    )

    assert _count(factory.db) == 3


def test_short_comments_are_rejected(factory, team):
    with pytest.raises(ValidationFailed):
        reviews.submit_review(factory.db, team["hod"], team["alice"].id, _answers(team, 5), "  too short ", "Q3 2025")
    assert _count(factory.db) == 0


def test_unknown_employee_is_not_found(factory, team):
    with pytest.raises(NotFound):
        reviews.submit_review(factory.db, team["hod"], 9999, [], "Long enough comment.", "Q3 2025")


def test_employee_outside_scope_cannot_be_reviewed(factory, team):
    with pytest.raises(NotAuthorized):
        reviews.submit_review(factory.db, team["hod"], team["sven"].id, [], "Long enough comment.", "Q3 2025")
    assert _count(factory.db) == 0


def test_reviewer_cannot_review_themselves(factory, team):
    with pytest.raises(ValidationFailed):
        reviews.submit_review(factory.db, team["hod"], team["hod"].id, [], "Long enough comment.", "Q3 2025")


def test_self_assessment_is_upserted(factory, team):
    q_text = factory.question(
        "What went well?", team["hod"], assessment_type=AssessmentType.SELF, input_type=InputType.TEXT
    )
    alice = team["alice"]

    reviews.save_self_assessment(
        factory.db, alice, [AnswerIn(question=q_text.id, responseText="Shipped v2")], "Good quarter", "Q3 2025"
    )
    reviews.save_self_assessment(
        factory.db, alice, [AnswerIn(question=q_text.id, responseText="Shipped v2 and v3")], "Great quarter", "Q3 2025"
    )

    saved = reviews.get_self_assessment(factory.db, alice.id, "Q3 2025")
    assert _count(factory.db) == 1
    assert saved.is_self_assessment is True
    assert saved.reviewer_id == alice.id
    assert saved.comments == "Great quarter"
    assert [a.response_text for a in saved.answers] == ["Shipped v2 and v3"]


def test_self_assessment_requires_comments(factory, team):
    with pytest.raises(ValidationFailed):
        reviews.save_self_assessment(factory.db, team["alice"], [], "   ", "Q3 2025")


def test_self_assessment_does_not_block_managerial_review(factory, team):
    reviews.save_self_assessment(factory.db, team["alice"], [], "My own view", "Q3 2025")
    reviews.submit_review(factory.db, team["hod"], team["alice"].id, _answers(team, 4, 4), "Manager view here.", "Q3 2025")

    assert _count(factory.db) == 2


def test_view_self_assessment_checks_scope(factory, team):
    reviews.save_self_assessment(factory.db, team["sven"], [], "Sales went fine", "Q3 2025")

    with pytest.raises(NotAuthorized):
        reviews.view_self_assessment(factory.db, team["hod"], team["sven"].id, "Q3 2025")

    payload = reviews.view_self_assessment(factory.db, team["other_hod"], team["sven"].id, "Q3 2025")
    assert payload.employee_id == "EMP2"
    assert payload.department == "Sales"
    assert payload.comments == "Sales went fine"


def test_view_self_assessment_missing_period(factory, team):
    with pytest.raises(NotFound):
        reviews.view_self_assessment(factory.db, team["hod"], team["alice"].id, "Q1 2020")
