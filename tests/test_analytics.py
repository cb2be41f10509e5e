import csv
import io
from datetime import datetime, timedelta

import pytest

from conftest import mcq
from quizly.core.exceptions import NotFoundError
from quizly.models import Test, TestAttempt
from quizly.models.user import ROLE_FACULTY
from quizly.services.analytics import AnalyticsService, badges_for, bucket_label, percentage


QUESTIONS = [mcq("Q1", answer="A"), mcq("Q2", answer="B"), mcq("Q3", answer="C"), mcq("Q4", answer="D")]


@pytest.fixture
def midterm(db, faculty):
    midterm = Test(
        owner_id=faculty.id,
        title="Midterm",
        duration_minutes=10,
        questions=QUESTIONS,
        form_fields_mode="custom",
        custom_fields=[{"label": "Roll No", "required": True}],
    )
    db.add(midterm)
    db.commit()
    return midterm


@pytest.fixture
def record(db, midterm):
    offset = {"n": 0}

    def _record(student, answers, violations=0, name="Ravi", **custom):
        offset["n"] += 1
        attempt = TestAttempt(
            test_id=midterm.id,
            student_id=student.id,
            test_title=midterm.title,
            student_info={
                "name": name,
                "registration_number": f"REG{offset['n']}",
                "branch": "CSE",
                "section": "A",
                "custom_data": custom,
            },
            score=sum(1 for q, a in zip(QUESTIONS, answers) if a == q["correct_option"]),
            total_questions=len(QUESTIONS),
            answers=answers,
            questions=QUESTIONS,
            violation_count=violations,
            disqualified=violations >= 3,
            submitted_at=datetime.utcnow() + timedelta(seconds=offset["n"]),
        )
        db.add(attempt)
        db.commit()
        return attempt

    return _record


def test_helpers():
    assert percentage(3, 4) == 75.0
    assert percentage(1, 3) == 33.33
    assert percentage(0, 0) == 0.0
    assert bucket_label(0.0) == "0-25"
    assert bucket_label(50.0) == "50-75"
    assert bucket_label(100.0) == "75-100"


def test_report_statistics(db, faculty, midterm, make_user, record):
    students = [make_user(f"S{i}") for i in range(3)]
    record(students[0], ["A", "B", "C", "D"])
    record(students[1], ["A", "B", None, None], violations=1)
    record(students[2], ["B", None, None, None], violations=3)

    report = AnalyticsService(db).test_report(faculty, midterm.id)

    assert report["attempt_count"] == 3
    assert report["mean_score"] == 2.0
    assert report["median_score"] == 2.0
    assert (report["highest_score"], report["lowest_score"]) == (4, 0)
    assert report["score_distribution"] == {"0-25": 1, "25-50": 0, "50-75": 1, "75-100": 1}
    assert report["violation_distribution"] == {"0": 1, "1": 1, "3": 1}
    first, third = report["questions"][0], report["questions"][2]
    assert first["correct_count"] == 2
    assert first["correct_rate"] == round(2 / 3, 4)
    assert third["unanswered_count"] == 2


def test_report_without_attempts(db, faculty, midterm):
    report = AnalyticsService(db).test_report(faculty, midterm.id)
    assert report["attempt_count"] == 0
    assert report["mean_score"] == 0.0
    assert report["questions"][0]["correct_rate"] == 0.0


def test_report_is_owner_only(db, midterm, make_user):
    other = make_user("Other Prof", role=ROLE_FACULTY)
    with pytest.raises(NotFoundError):
        AnalyticsService(db).test_report(other, midterm.id)


def test_csv_export(db, faculty, midterm, make_user, record):
    record(make_user("S1"), ["A", "B", "C", None], name="Asha", **{"Roll No": "7"})

    content = AnalyticsService(db).export_csv(faculty, midterm.id)

    rows = list(csv.reader(io.StringIO(content)))
    assert rows[0] == ["Registration Number", "Name", "Branch", "Section", "Roll No", "Score", "Percentage"]
    assert rows[1] == ["REG1", "Asha", "CSE", "A", "7", "3 / 4", "75.00%"]
    assert content.startswith('"Registration Number",')


def test_history_and_review(db, faculty, midterm, make_user, record):
    student = make_user("S1")
    older = record(student, ["A", None, None, None])
    newer = record(student, ["A", "B", "C", "D"])
    service = AnalyticsService(db)

    assert [a.id for a in service.history(student)] == [newer.id, older.id]

    review = service.attempt_review(student, older.id)
    assert review["score"] == 1
    assert review["percentage"] == 25.0
    assert review["questions"][0]["is_correct"] is True
    assert review["questions"][1]["selected"] is None
    assert review["questions"][1]["correct_option"] == "B"

    # the owning faculty can also review it, nobody else
    assert service.attempt_review(faculty, older.id)["id"] == str(older.id)
    with pytest.raises(NotFoundError):
        service.attempt_review(make_user("S2"), older.id)


def test_dashboard_and_badges(db, faculty, midterm, make_user, make_draft):
    followers = [make_user(f"Follower {i}") for i in range(10)]
    for follower in followers:
        follower.following.add(faculty)
    db.commit()
    make_draft(faculty)

    dashboard = AnalyticsService(db).dashboard(faculty)

    assert dashboard["published_tests"] == 1
    assert dashboard["drafts"] == 1
    assert dashboard["total_questions"] == 4
    assert dashboard["followers"] == 10
    assert dashboard["pending_follow_requests"] == 0
    assert "Trustee" in dashboard["badges"]
    assert "Rising Star" in dashboard["badges"]


def test_badge_thresholds(make_user):
    professor = make_user("Prof", role=ROLE_FACULTY, verified=False, college_name="MIT")
    assert badges_for(professor, 0, 0) == ["Qualified"]
    assert badges_for(professor, 50, 5) == ["Influencer", "Prolific", "Qualified"]
