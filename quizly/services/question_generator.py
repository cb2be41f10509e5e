"""OpenAI-compatible LLM service for MCQ generation."""
import json
import logging
from dataclasses import dataclass
from typing import List, Optional

import pydantic
from openai import OpenAI, OpenAIError

from quizly.core.config import settings
from quizly.core.exceptions import GenerationError
from quizly.schemas.mcq import MCQ, OPTION_COUNT, Difficulty, Taxonomy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageInput:
    mime_type: str
    data: str  # base64


@dataclass(frozen=True)
class GenerationRequest:
    topic: str = ""
    difficulty: Difficulty = Difficulty.MEDIUM
    taxonomy: Taxonomy = Taxonomy.UNDERSTANDING
    count: int = 5
    study_material: str = ""
    image: Optional[ImageInput] = None

    @property
    def clamped_count(self) -> int:
        return max(1, min(settings.MAX_GENERATED_QUESTIONS, self.count))


class QuestionGenerator:
    """Service for generating validated MCQs through the chat completions API."""

    def __init__(self, client: Optional[OpenAI] = None):
        """Initialize the client from settings unless one is injected."""
        self.client = client or OpenAI(
            api_key=settings.OPENAI_API_KEY,
            base_url=settings.OPENAI_BASE_URL,
        )
        self.model = settings.OPENAI_MODEL

    def generate(self, request: GenerationRequest) -> List[MCQ]:
        """
        Generate exactly ``request.clamped_count`` MCQs.

        Args:
            request: topic, difficulty, taxonomy level, count and optional
                study material or image to ground the questions in

        Returns:
            List of validated MCQ objects, in the order the model produced them

        Raises:
            GenerationError: the provider failed, the payload was not JSON,
                the count differs from the request, or an item is malformed.
                Nothing is retried.
        """
        count = request.clamped_count
        messages = [
            {"role": "system", "content": self._build_system_prompt()},
            {"role": "user", "content": self._build_user_content(request, count)},
        ]

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=0.7,
                response_format={"type": "json_object"},
            )
            content = response.choices[0].message.content
        except (OpenAIError, IndexError, AttributeError) as e:
            logger.error("Question generation request failed: %s", e)
            raise GenerationError("The question generator is unavailable. Please try again.")

        return self.parse_response(content, count)

    def parse_response(self, content: Optional[str], count: int) -> List[MCQ]:
        """Parse and validate the raw model output."""
        if not content:
            raise GenerationError("The question generator returned an empty response.")
        try:
            payload = json.loads(content)
        except json.JSONDecodeError:
            raise GenerationError("The question generator returned invalid JSON. Please try again.")

        items = payload.get("questions") if isinstance(payload, dict) else payload
        if not isinstance(items, list):
            raise GenerationError("The question generator response did not contain a list of questions.")
        if len(items) != count:
            raise GenerationError(
                f"The question generator returned {len(items)} questions instead of {count}."
            )

        questions = []
        for index, item in enumerate(items, 1):
            questions.append(self._to_mcq(item, index))
        return questions

    def _to_mcq(self, item, index: int) -> MCQ:
        if not isinstance(item, dict):
            raise GenerationError(f"Question #{index} from the generator is not an object.")
        question = item.get("question")
        answer = item.get("answer") or item.get("correctAnswer")
        explanation = item.get("explanation")
        for value in (question, answer, explanation):
            if not isinstance(value, str) or not value.strip():
                raise GenerationError(
                    f"Question #{index} from the generator is missing required fields or has non-text values."
                )
        explanation = explanation.strip()
        try:
            return MCQ(
                question_text=question,
                options=item.get("options") or [],
                correct_option=answer,
                explanation=explanation,
            )
        except pydantic.ValidationError:
            raise GenerationError(f"Question #{index} from the generator has invalid options or answer.")

    def _build_system_prompt(self) -> str:
        """Build the system prompt for MCQ generation."""
        return f"""You are Quizly AI, an expert author of multiple-choice questions.
ALWAYS return only valid JSON (no explanation, no extra text).

Output format:
{{
  "questions": [
    {{
      "question": "string",
      "options": ["opt1", "opt2", "opt3", "opt4"],
      "answer": "one of the options exactly",
      "explanation": "short reason"
    }}
  ]
}}

Rules:
- Each question has exactly {OPTION_COUNT} unique options
- The answer must match one of the options exactly
- The explanation is at most 30 words"""

    def _build_user_prompt(self, request: GenerationRequest, count: int) -> str:
        """Build the user prompt with inputs and requirements."""
        has_content = bool(request.study_material) or request.image is not None
        source = "the provided image" if request.image else "the provided study material"

        prompt = f"""Inputs:
- topic: "{request.topic}"
- difficulty: "{request.difficulty.value}"
- taxonomy: "{request.taxonomy.value}"
- questions: {count}
- image provided: {request.image is not None}
"""
        if request.study_material:
            prompt += f"\nSTUDY MATERIAL:\n{request.study_material}\n"

        if has_content:
            prompt += f"\nGenerate the MCQs ONLY from {source}."
        elif request.topic:
            prompt += "\nGenerate the MCQs from general knowledge of the topic."
        else:
            prompt += f"\nGenerate {count} general Computer Science MCQs."

        prompt += f"\nOutput EXACTLY {count} questions (no fewer, no more)."
        return prompt

    def _build_user_content(self, request: GenerationRequest, count: int):
        text = self._build_user_prompt(request, count)
        if request.image is None:
            return text
        return [
            {"type": "text", "text": text},
            {
                "type": "image_url",
                "image_url": {"url": f"data:{request.image.mime_type};base64,{request.image.data}"},
            },
        ]
