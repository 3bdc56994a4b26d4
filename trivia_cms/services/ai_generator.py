import json
import logging
import re
import time
from typing import Any, Dict, Iterable, List, Optional

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.prompts import PromptTemplate
from langchain_google_genai import ChatGoogleGenerativeAI
from pydantic import BaseModel, Field

from trivia_cms.core import config
from trivia_cms.models import QuizCategory, QuizDifficulty, QuizInput, SimilarityMatch
from trivia_cms.services.similarity import score_against_all
from trivia_cms.services.validators import validate_raw_quiz

logger = logging.getLogger(__name__)

MIN_COUNT = 1
MAX_COUNT = 20

_FENCE_REGEX = re.compile(r"```(?:json)?\s*\n?")


class GenerationError(RuntimeError):
    """The AI model failed or returned something that is not a JSON array."""


QUIZ_GENERATION_PROMPT = PromptTemplate(
    input_variables=["category", "difficulty", "count"],
    template=(
        "You are creating quiz questions about Japan for English-speaking tourists visiting Japan.\n\n"
        "Generate {count} UNIQUE and DIVERSE multiple-choice quiz questions with the following criteria:\n"
        "- Category: {category}\n"
        "- Difficulty: {difficulty}\n"
        "- Language: English\n"
        "- Format: 4 options per question\n\n"
        "DIVERSITY REQUIREMENTS:\n"
        "- Cover different aspects within the {category} category (origins, modern usage, regional differences)\n"
        "- Include both well-known and lesser-known facts\n"
        "- Avoid repetitive question patterns\n\n"
        "CONTENT GUIDELINES:\n"
        "- Avoid any content that could be considered racist, discriminatory, or culturally insensitive\n"
        "- Ensure accuracy of information\n\n"
        "Each explanation must be 2-3 complete sentences: why the answer is correct, plus an interesting fact.\n\n"
        "Return ONLY a valid JSON array with this exact structure (no markdown, no commentary):\n"
        "[\n"
        "  {{\n"
        '    "question": "Question text here?",\n'
        '    "options": ["Option 1", "Option 2", "Option 3", "Option 4"],\n'
        '    "correct_answer": 0,\n'
        '    "explanation": "Why this is correct. Additional context.",\n'
        '    "difficulty": "{difficulty}",\n'
        '    "category": "{category}",\n'
        '    "tags": ["tag1", "tag2"]\n'
        "  }}\n"
        "]\n\n"
        "correct_answer must be the index (0-3) of the correct option."
    ),
)


class GeneratedQuizReview(BaseModel):
    """A generated item as presented for review before it is saved."""

    raw: Dict[str, Any] = Field(default_factory=dict)
    quiz: Optional[QuizInput] = None
    errors: List[str] = Field(default_factory=list)
    similar: SimilarityMatch = Field(default_factory=lambda: SimilarityMatch(is_match=False))

    @property
    def can_save(self) -> bool:
        return self.quiz is not None and not self.errors


def _get_model() -> BaseChatModel:
    """Create the Gemini chat model used for quiz generation."""
    if not config.GOOGLE_API_KEY:
        raise GenerationError("GOOGLE_API_KEY environment variable is not set.")
    return ChatGoogleGenerativeAI(
        model=config.GEMINI_MODEL,
        temperature=config.GEMINI_TEMPERATURE,
        google_api_key=config.GOOGLE_API_KEY,
    )


def _is_rate_limited(exc: Exception) -> bool:
    msg = str(exc).lower()
    return "resource_exhausted" in msg or "429" in msg or "quota" in msg or "rate limit" in msg


# PUBLIC_INTERFACE
def parse_generated_quizzes(text: str) -> List[Dict[str, Any]]:
    """
    Extract the JSON array of quiz items from a model response.

    Markdown code fences around the payload are removed. Items are returned
    as untrusted dicts; see review_generated for validation.

    Raises:
        GenerationError: if the response is empty, not JSON, or not an array.
    """
    cleaned = (text or "").strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE_REGEX.sub("", cleaned).strip()
    if not cleaned:
        raise GenerationError("Model returned an empty response")
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise GenerationError(f"Model response is not valid JSON: {e}") from e
    if not isinstance(data, list):
        raise GenerationError("Response is not an array")
    return data


# PUBLIC_INTERFACE
def review_generated(items: Iterable[Any], existing: Iterable[Any]) -> List[GeneratedQuizReview]:
    """
    Validate generated items and flag near-duplicates before saving.

    Each item is checked against the stored questions and against earlier
    valid items of the same batch.
    """
    pool = list(existing)
    reviews = []
    for index, raw in enumerate(items):
        quiz, result = validate_raw_quiz(raw)
        review = GeneratedQuizReview(
            raw=raw if isinstance(raw, dict) else {},
            quiz=quiz,
            errors=result.errors,
        )
        if quiz is not None:
            review.similar = score_against_all(quiz.question, pool)
            if result.is_valid:
                pool.append({"id": f"generated-{index}", "question": quiz.question})
        reviews.append(review)
    return reviews


class QuizGenerator:
    """Generates quiz items with a chat model."""

    # PUBLIC_INTERFACE
    def __init__(self, model: Optional[BaseChatModel] = None, max_retries: int = 3) -> None:
        self._model = model
        self.max_retries = max_retries

    @property
    def model(self) -> BaseChatModel:
        if self._model is None:
            self._model = _get_model()
        return self._model

    def _invoke(self, inputs: Dict[str, Any]) -> str:
        chain = QUIZ_GENERATION_PROMPT | self.model
        last_exc: Optional[Exception] = None
        for attempt in range(self.max_retries):
            try:
                response = chain.invoke(inputs)
            except Exception as e:
                last_exc = e
                if _is_rate_limited(e) and attempt < self.max_retries - 1:
                    delay = (2 ** attempt) * 5
                    logger.warning("Generation rate limited, retrying in %ss", delay)
                    time.sleep(delay)
                    continue
                raise GenerationError("Failed to generate quizzes with AI") from e
            content = response.content
            if isinstance(content, list):
                content = "".join(part if isinstance(part, str) else part.get("text", "") for part in content)
            return content
        raise GenerationError("Failed to generate quizzes with AI") from last_exc

    # PUBLIC_INTERFACE
    def generate(self, category: QuizCategory, difficulty: QuizDifficulty, count: int) -> List[Dict[str, Any]]:
        """
        Ask the model for `count` quiz items.

        Returns:
            list[dict]: Raw, unvalidated items.

        Raises:
            ValueError: if count is outside 1..20.
            GenerationError: if the model call fails or returns malformed output.
        """
        if count < MIN_COUNT or count > MAX_COUNT:
            raise ValueError(f"Count must be between {MIN_COUNT} and {MAX_COUNT}")

        logger.info("Generating %d %s quizzes (%s)", count, category.value, difficulty.value)
        text = self._invoke({"category": category.value, "difficulty": difficulty.value, "count": count})
        items = parse_generated_quizzes(text)
        logger.info("Model returned %d items", len(items))
        return items
