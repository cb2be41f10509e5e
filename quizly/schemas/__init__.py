"""Schemas shared between routes and services."""
from quizly.schemas.mcq import (
    MCQ,
    OPTION_COUNT,
    CustomField,
    Difficulty,
    StudentInfo,
    Taxonomy,
    parse_mcqs,
)

__all__ = [
    "MCQ",
    "OPTION_COUNT",
    "CustomField",
    "Difficulty",
    "StudentInfo",
    "Taxonomy",
    "parse_mcqs",
]
