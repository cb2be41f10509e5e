"""MCQ and student-info schemas."""
from enum import Enum
from typing import Dict, List, Optional

import pydantic
from pydantic import BaseModel, Field, field_validator, model_validator

from quizly.core.exceptions import ValidationError

OPTION_COUNT = 4


class Difficulty(str, Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"
    EXPERT = "Expert"


class Taxonomy(str, Enum):
    """Bloom's taxonomy levels."""

    REMEMBERING = "Remembering"
    UNDERSTANDING = "Understanding"
    APPLYING = "Applying"
    ANALYZING = "Analyzing"
    EVALUATING = "Evaluating"
    CREATING = "Creating"


class MCQ(BaseModel):
    """Multiple-choice question with exactly four unique options."""

    model_config = pydantic.ConfigDict(frozen=True)

    question_text: str
    options: List[str]
    correct_option: str
    explanation: str = ""

    @field_validator("question_text")
    @classmethod
    def question_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("question text must not be empty")
        return value

    @field_validator("options")
    @classmethod
    def four_unique_options(cls, value: List[str]) -> List[str]:
        cleaned = [option.strip() for option in value]
        if len(cleaned) != OPTION_COUNT:
            raise ValueError(f"exactly {OPTION_COUNT} options are required")
        if any(not option for option in cleaned):
            raise ValueError("options must not be empty")
        if len(set(cleaned)) != len(cleaned):
            raise ValueError("options must be unique")
        return cleaned

    @field_validator("correct_option")
    @classmethod
    def strip_answer(cls, value: str) -> str:
        return value.strip()

    @model_validator(mode="after")
    def answer_is_an_option(self) -> "MCQ":
        if self.correct_option not in self.options:
            raise ValueError("correct option must be one of the options")
        return self

    def is_correct(self, selected: Optional[str]) -> bool:
        return selected is not None and selected == self.correct_option


def parse_mcqs(items: List[dict]) -> List[MCQ]:
    """Validate raw question dicts, raising ``ValidationError`` naming the first bad item."""
    questions = []
    for index, item in enumerate(items, 1):
        try:
            questions.append(MCQ.model_validate(item))
        except pydantic.ValidationError as e:
            reason = e.errors()[0].get("msg", "invalid question")
            raise ValidationError(f"Question #{index} is invalid: {reason}")
    return questions


class CustomField(BaseModel):
    label: str = Field(min_length=1, max_length=100)
    required: bool = True


class StudentInfo(BaseModel):
    """Details a student fills in before the test starts."""

    name: str = Field(min_length=1, max_length=100)
    registration_number: str = ""
    branch: str = ""
    section: str = ""
    custom_data: Dict[str, str] = Field(default_factory=dict)
