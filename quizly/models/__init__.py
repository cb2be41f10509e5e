"""Database models."""
from quizly.models.user import User, RoleCounter, student_follows, faculty_connections
from quizly.models.question_set import QuestionSet
from quizly.models.published_test import Test, test_disqualifications
from quizly.models.notification import Notification
from quizly.models.follow_request import FollowRequest, ConnectionRequest
from quizly.models.chat_message import ChatMessage
from quizly.models.violation_alert import ViolationAlert
from quizly.models.attempt import TestAttempt

__all__ = [
    "User",
    "RoleCounter",
    "QuestionSet",
    "Test",
    "Notification",
    "FollowRequest",
    "ConnectionRequest",
    "ChatMessage",
    "ViolationAlert",
    "TestAttempt",
    "student_follows",
    "faculty_connections",
    "test_disqualifications",
]
