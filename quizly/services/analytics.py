"""Per-test statistics, student history and the faculty dashboard."""
import csv
import io
import logging
import statistics
import uuid
from collections import Counter
from typing import Dict, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from quizly.core.exceptions import NotFoundError
from quizly.models import (
    FollowRequest,
    QuestionSet,
    Test,
    TestAttempt,
    User,
    ViolationAlert,
    student_follows,
)
from quizly.models import follow_request as request_model
from quizly.models import violation_alert as alert_model

logger = logging.getLogger(__name__)

SCORE_BUCKETS = ((0, 25), (25, 50), (50, 75), (75, 100))


def percentage(score: int, total: int) -> float:
    return round(score / total * 100, 2) if total else 0.0


def bucket_label(pct: float) -> str:
    for low, high in SCORE_BUCKETS:
        if pct < high:
            return f"{low}-{high}"
    low, high = SCORE_BUCKETS[-1]
    return f"{low}-{high}"


class AnalyticsService:
    def __init__(self, db: Session):
        self.db = db

    # --- faculty side -----------------------------------------------------

    def _owned_test(self, faculty: User, test_id: uuid.UUID) -> Test:
        test = self.db.query(Test).filter(Test.id == test_id, Test.owner_id == faculty.id).first()
        if not test:
            raise NotFoundError("Test not found")
        return test

    def attempts_for_test(self, faculty: User, test_id: uuid.UUID) -> List[TestAttempt]:
        test = self._owned_test(faculty, test_id)
        return self.db.query(TestAttempt).filter(
            TestAttempt.test_id == test.id
        ).order_by(TestAttempt.submitted_at).all()

    def test_report(self, faculty: User, test_id: uuid.UUID) -> Dict:
        """Aggregate statistics over every recorded attempt of a test."""
        test = self._owned_test(faculty, test_id)
        attempts = self.attempts_for_test(faculty, test_id)
        questions = test.questions or []
        total = len(questions)

        scores = [a.score for a in attempts]
        percentages = [percentage(a.score, a.total_questions) for a in attempts]

        per_question = []
        for index, question in enumerate(questions):
            answered = [a.answers[index] if index < len(a.answers) else None for a in attempts]
            correct = sum(1 for ans in answered if ans is not None and ans == question["correct_option"])
            per_question.append({
                "index": index,
                "question_text": question["question_text"],
                "correct_count": correct,
                "unanswered_count": sum(1 for ans in answered if ans is None),
                "correct_rate": round(correct / len(attempts), 4) if attempts else 0.0,
            })

        distribution = Counter(bucket_label(p) for p in percentages)

        return {
            "test_id": str(test.id),
            "title": test.title,
            "total_questions": total,
            "attempt_count": len(attempts),
            "mean_score": round(statistics.fmean(scores), 2) if scores else 0.0,
            "median_score": float(statistics.median(scores)) if scores else 0.0,
            "highest_score": max(scores) if scores else 0,
            "lowest_score": min(scores) if scores else 0,
            "mean_percentage": round(statistics.fmean(percentages), 2) if percentages else 0.0,
            "score_distribution": {
                f"{low}-{high}": distribution.get(f"{low}-{high}", 0) for low, high in SCORE_BUCKETS
            },
            "violation_distribution": {
                str(count): n for count, n in sorted(Counter(a.violation_count for a in attempts).items())
            },
            "disqualified_count": len(test.disqualified_students),
            "questions": per_question,
        }

    def export_csv(self, faculty: User, test_id: uuid.UUID) -> str:
        """Attempts as CSV: one row per attempt, custom field columns included."""
        test = self._owned_test(faculty, test_id)
        attempts = self.attempts_for_test(faculty, test_id)
        labels = [f["label"] for f in (test.custom_fields or [])]

        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(["Registration Number", "Name", "Branch", "Section", *labels, "Score", "Percentage"])
        for attempt in attempts:
            info = attempt.student_info or {}
            custom = info.get("custom_data") or {}
            writer.writerow([
                info.get("registration_number", ""),
                info.get("name", ""),
                info.get("branch", ""),
                info.get("section", ""),
                *[custom.get(label, "") for label in labels],
                f"{attempt.score} / {attempt.total_questions}",
                f"{percentage(attempt.score, attempt.total_questions):.2f}%",
            ])
        return buffer.getvalue()

    def dashboard(self, faculty: User) -> Dict:
        tests = self.db.query(Test).filter(Test.owner_id == faculty.id).all()
        draft_count = self.db.query(func.count(QuestionSet.id)).filter(
            QuestionSet.owner_id == faculty.id
        ).scalar()
        follower_count = self.db.query(func.count()).select_from(student_follows).filter(
            student_follows.c.faculty_id == faculty.id
        ).scalar()
        pending_requests = self.db.query(func.count(FollowRequest.id)).filter(
            FollowRequest.faculty_id == faculty.id,
            FollowRequest.status == request_model.STATUS_PENDING,
        ).scalar()
        pending_alerts = self.db.query(func.count(ViolationAlert.id)).filter(
            ViolationAlert.faculty_id == faculty.id,
            ViolationAlert.status == alert_model.STATUS_PENDING,
        ).scalar()

        return {
            "published_tests": len(tests),
            "drafts": draft_count,
            "total_questions": sum(len(t.questions or []) for t in tests),
            "followers": follower_count,
            "pending_follow_requests": pending_requests,
            "pending_violation_alerts": pending_alerts,
            "badges": badges_for(faculty, follower_count, len(tests)),
        }

    # --- student side -----------------------------------------------------

    def history(self, student: User) -> List[TestAttempt]:
        return self.db.query(TestAttempt).filter(
            TestAttempt.student_id == student.id
        ).order_by(TestAttempt.submitted_at.desc()).all()

    def attempt_review(self, user: User, attempt_id: uuid.UUID) -> Dict:
        """Result with per-question review; visible to the student and the test owner."""
        attempt = self.db.get(TestAttempt, attempt_id)
        if attempt is None:
            raise NotFoundError("Attempt not found")
        if attempt.student_id != user.id:
            test = self.db.get(Test, attempt.test_id) if attempt.test_id else None
            if test is None or test.owner_id != user.id:
                raise NotFoundError("Attempt not found")

        review = []
        for index, question in enumerate(attempt.questions or []):
            selected = attempt.answers[index] if index < len(attempt.answers) else None
            review.append({
                "index": index,
                "question_text": question["question_text"],
                "options": question["options"],
                "selected": selected,
                "correct_option": question["correct_option"],
                "is_correct": selected is not None and selected == question["correct_option"],
                "explanation": question.get("explanation", ""),
            })
        return {
            "id": str(attempt.id),
            "test_id": str(attempt.test_id) if attempt.test_id else None,
            "test_title": attempt.test_title,
            "score": attempt.score,
            "total_questions": attempt.total_questions,
            "percentage": percentage(attempt.score, attempt.total_questions),
            "violation_count": attempt.violation_count,
            "disqualified": attempt.disqualified,
            "submitted_at": attempt.submitted_at.isoformat(),
            "questions": review,
        }


def badges_for(faculty: User, follower_count: int, test_count: int) -> List[str]:
    badges = []
    if faculty.is_id_verified:
        badges.append("Trustee")
    if 10 <= follower_count < 50:
        badges.append("Rising Star")
    if follower_count >= 50:
        badges.append("Influencer")
    if test_count >= 5:
        badges.append("Prolific")
    if faculty.is_faculty and faculty.college_name:
        badges.append("Qualified")
    return badges
