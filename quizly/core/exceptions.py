"""Domain errors raised by the service layer.

Routes never build HTTP errors for these by hand; the handlers registered in
``quizly.main`` turn them into ``{"detail": ..., "code": ...}`` responses.
"""
from fastapi import status


class QuizlyError(Exception):
    """Base class for all expected, user-facing failures."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(QuizlyError):
    """Referenced entity is missing or not visible to the caller."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class ValidationError(QuizlyError):
    """Malformed input: empty title, non-positive duration, duplicate options."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "validation_error"


class DisqualifiedError(QuizlyError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "disqualified"


class DuplicateRequestError(QuizlyError):
    status_code = status.HTTP_409_CONFLICT
    code = "duplicate_request"


class InvalidOperationError(QuizlyError):
    status_code = status.HTTP_409_CONFLICT
    code = "invalid_operation"


class GenerationError(QuizlyError):
    """Question-generation service failed or returned an unusable payload."""

    status_code = status.HTTP_502_BAD_GATEWAY
    code = "generation_error"


class PermissionDeniedError(QuizlyError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "permission_denied"
