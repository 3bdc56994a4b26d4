from enum import Enum
from typing import Dict, List, Literal, NamedTuple, Optional, Union

from pydantic import BaseModel, Field, computed_field, model_validator


class QuizCategory(str, Enum):
    """The eight fixed quiz categories."""

    CULTURE = "culture"
    FOOD = "food"
    HISTORY = "history"
    GEOGRAPHY = "geography"
    LANGUAGE = "language"
    TRADITION = "tradition"
    POP_CULTURE = "pop-culture"
    ETIQUETTE = "etiquette"

    @property
    def info(self) -> "CategoryInfo":
        return _CATEGORY_INFO[self]


class QuizDifficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class ReviewStatus(str, Enum):
    """Editorial state of a quiz record. New records always start as DRAFT."""

    DRAFT = "draft"
    REVIEWING = "reviewing"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def info(self) -> "StatusInfo":
        return _STATUS_INFO[self]


class CategoryInfo(NamedTuple):
    label: str
    emoji: str
    description: str


class StatusInfo(NamedTuple):
    label: str
    emoji: str


_CATEGORY_INFO: Dict[QuizCategory, CategoryInfo] = {
    QuizCategory.CULTURE: CategoryInfo("Culture", "🎎", "Traditions, festivals, and customs"),
    QuizCategory.FOOD: CategoryInfo("Food", "🍣", "Cuisine, ingredients, and dining"),
    QuizCategory.HISTORY: CategoryInfo("History", "🏯", "Historical events and periods"),
    QuizCategory.GEOGRAPHY: CategoryInfo("Geography", "🗾", "Places, landmarks, and regions"),
    QuizCategory.LANGUAGE: CategoryInfo("Language", "🈴", "Japanese language and writing"),
    QuizCategory.TRADITION: CategoryInfo("Tradition", "⛩️", "Traditional arts and practices"),
    QuizCategory.POP_CULTURE: CategoryInfo("Pop Culture", "🎌", "Anime, manga, and modern culture"),
    QuizCategory.ETIQUETTE: CategoryInfo("Etiquette", "🙏", "Manners and social customs"),
}

_STATUS_INFO: Dict[ReviewStatus, StatusInfo] = {
    ReviewStatus.DRAFT: StatusInfo("Draft", "📝"),
    ReviewStatus.REVIEWING: StatusInfo("In review", "🔍"),
    ReviewStatus.APPROVED: StatusInfo("Approved", "✅"),
    ReviewStatus.REJECTED: StatusInfo("Rejected", "❌"),
}


# PUBLIC_INTERFACE
class QuizInput(BaseModel):
    """Author-supplied content of a quiz item (ids, status and timestamps are assigned on create)."""

    question: str = Field(..., description="Question prompt text.")
    options: List[str] = Field(..., description="Exactly 4 answer options.")
    correct_answer: int = Field(..., description="0-based index of the correct option.")
    explanation: Optional[str] = Field(default=None, description="Shown after answering.")
    difficulty: QuizDifficulty
    category: QuizCategory
    tags: List[str] = Field(default_factory=list)


# PUBLIC_INTERFACE
class Quiz(QuizInput):
    """A persisted quiz record."""

    id: str
    review_status: ReviewStatus = ReviewStatus.DRAFT
    review_notes: Optional[str] = None
    has_similar: Optional[bool] = None
    created_at: str
    updated_at: str


# PUBLIC_INTERFACE
class QuizPatch(BaseModel):
    """
    Field-level update of a quiz's content.

    Only fields explicitly present in the request are applied; review status
    is changed through a review action, never through a patch.
    """

    question: Optional[str] = None
    options: Optional[List[str]] = None
    correct_answer: Optional[int] = None
    explanation: Optional[str] = None
    difficulty: Optional[QuizDifficulty] = None
    category: Optional[QuizCategory] = None
    tags: Optional[List[str]] = None

    def changes(self) -> Dict:
        return self.model_dump(exclude_unset=True)


class QuizFilter(BaseModel):
    category: Optional[QuizCategory] = None
    difficulty: Optional[QuizDifficulty] = None
    review_status: Optional[ReviewStatus] = None
    search_query: Optional[str] = None

    def matches(self, quiz: Quiz) -> bool:
        if self.category is not None and quiz.category != self.category:
            return False
        if self.difficulty is not None and quiz.difficulty != self.difficulty:
            return False
        if self.review_status is not None and quiz.review_status != self.review_status:
            return False
        if self.search_query:
            needle = self.search_query.strip().lower()
            haystack = " ".join([quiz.question, *quiz.options, *quiz.tags]).lower()
            if needle not in haystack:
                return False
        return True


class ExportedQuiz(BaseModel):
    """Client-facing form of an approved quiz (no review metadata)."""

    id: str
    question: str
    options: List[str]
    correct_answer: int
    explanation: Optional[str] = None
    difficulty: QuizDifficulty
    category: QuizCategory
    tags: List[str] = Field(default_factory=list)


class ValidationResult(BaseModel):
    is_valid: bool
    errors: List[str] = Field(default_factory=list)


class SimilarityMatch(BaseModel):
    """First existing question at or above the similarity threshold, if any."""

    is_match: bool
    matched_id: Optional[str] = None
    matched_text: Optional[str] = None
    percentage: Optional[int] = None


# PUBLIC_INTERFACE
class QuestionOutcome(BaseModel):
    """How a single question went in a completed quiz session."""

    question_id: str
    question: str
    options: List[str]
    user_answer: Optional[int] = Field(default=None, description="None when the question was skipped.")
    correct_answer: int
    explanation: Optional[str] = None

    @computed_field
    @property
    def is_correct(self) -> bool:
        return self.user_answer is not None and self.user_answer == self.correct_answer


# PUBLIC_INTERFACE
class HistoryEntry(BaseModel):
    """Per-session summary used for statistics."""

    id: str
    category: QuizCategory
    score: int
    total: int
    skipped: int
    date: str
    percentage: int

    @model_validator(mode="after")
    def _check_counts(self) -> "HistoryEntry":
        if self.total <= 0:
            raise ValueError("total must be positive")
        if not (0 <= self.score <= self.total and 0 <= self.skipped <= self.total):
            raise ValueError("score and skipped must be within 0..total")
        if self.score + self.skipped > self.total:
            raise ValueError("score + skipped must not exceed total")
        return self

    @property
    def incorrect(self) -> int:
        return self.total - self.score - self.skipped


# PUBLIC_INTERFACE
class QuizReview(HistoryEntry):
    """Per-session record of every question's outcome, for post-quiz review."""

    questions: List[QuestionOutcome] = Field(default_factory=list)


class CategoryStats(BaseModel):
    quizzes: int = 0
    correct: int = 0
    total: int = 0
    percentage: int = 0


class QuizStatistics(BaseModel):
    total_quizzes: int = 0
    total_correct: int = 0
    total_questions: int = 0
    average_percentage: int = 0
    by_category: Dict[QuizCategory, CategoryStats] = Field(default_factory=dict)


QuestionCountOption = Union[Literal[5, 10, 20], Literal["all"]]


class Settings(BaseModel):
    default_question_count: QuestionCountOption = 10
