import json
import logging
from random import Random
from typing import Iterable, List, Optional

from pydantic import ValidationError

from trivia_cms.models import ExportedQuiz, QuestionCountOption, QuizCategory, QuizDifficulty

logger = logging.getLogger(__name__)


class QuizBank:
    """Read-only dataset of exported (approved) quizzes used for quiz taking."""

    # PUBLIC_INTERFACE
    def __init__(self, quizzes: Iterable[ExportedQuiz]) -> None:
        self.quizzes: List[ExportedQuiz] = list(quizzes)

    # PUBLIC_INTERFACE
    @classmethod
    def from_file(cls, path: str) -> "QuizBank":
        """
        Load an export file. Malformed items are skipped; an unreadable file
        yields an empty bank.
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Failed to load quiz bank from %s: %s", path, e)
            return cls([])

        if not isinstance(data, list):
            logger.warning("Quiz bank %s is not a JSON array", path)
            return cls([])

        quizzes = []
        for raw in data:
            try:
                quizzes.append(ExportedQuiz.model_validate(raw))
            except ValidationError as e:
                logger.warning("Skipping malformed quiz in bank: %s", e)
        return cls(quizzes)

    def __len__(self) -> int:
        return len(self.quizzes)

    # PUBLIC_INTERFACE
    def find(self, quiz_id: str) -> Optional[ExportedQuiz]:
        return next((q for q in self.quizzes if q.id == quiz_id), None)

    # PUBLIC_INTERFACE
    def by_category(self, category: QuizCategory) -> List[ExportedQuiz]:
        return [q for q in self.quizzes if q.category == category]

    # PUBLIC_INTERFACE
    def by_difficulty(self, difficulty: QuizDifficulty) -> List[ExportedQuiz]:
        return [q for q in self.quizzes if q.difficulty == difficulty]

    # PUBLIC_INTERFACE
    def categories(self) -> List[QuizCategory]:
        """Categories that have at least one quiz, in first-seen order."""
        seen: List[QuizCategory] = []
        for q in self.quizzes:
            if q.category not in seen:
                seen.append(q.category)
        return seen

    # PUBLIC_INTERFACE
    def sample(self, count: int, rng: Optional[Random] = None) -> List[ExportedQuiz]:
        """Up to `count` quizzes in random order."""
        rng = rng or Random()
        shuffled = self.quizzes[:]
        rng.shuffle(shuffled)
        return shuffled[:max(count, 0)]

    # PUBLIC_INTERFACE
    def pick(
        self,
        category: Optional[QuizCategory],
        count: QuestionCountOption,
        rng: Optional[Random] = None,
    ) -> List[ExportedQuiz]:
        """
        Questions for one session: shuffled quizzes of `category` (all
        categories when None), limited to `count` unless count is "all".
        """
        rng = rng or Random()
        pool = self.by_category(category) if category is not None else self.quizzes[:]
        rng.shuffle(pool)
        if count == "all":
            return pool
        return pool[:count]
