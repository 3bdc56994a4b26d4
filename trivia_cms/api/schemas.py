from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from trivia_cms.models import (
    QuestionCountOption,
    QuestionOutcome,
    QuizCategory,
    QuizDifficulty,
    QuizInput,
    ReviewStatus,
    SimilarityMatch,
)


# PUBLIC_INTERFACE
class ReviewIn(BaseModel):
    """Review decision for a quiz."""
    status: ReviewStatus = Field(..., description="New review status.")
    notes: Optional[str] = Field(default=None, description="Reviewer notes; left unchanged when omitted.")


# PUBLIC_INTERFACE
class SimilarityIn(BaseModel):
    """Question text to check against the stored quizzes."""
    question: str = Field(..., description="Candidate question text.")
    exclude_id: Optional[str] = Field(default=None, description="Quiz id to ignore (the quiz being edited).")


# PUBLIC_INTERFACE
class GenerateIn(BaseModel):
    """Parameters for AI quiz generation."""
    category: QuizCategory
    difficulty: QuizDifficulty
    count: int = Field(default=10, description="Number of quizzes to generate (1-20).")


# PUBLIC_INTERFACE
class GeneratedItemOut(BaseModel):
    """A generated quiz with its validation errors and nearest stored duplicate."""
    raw: Dict[str, Any] = Field(default_factory=dict, description="Item exactly as returned by the model.")
    quiz: Optional[QuizInput] = Field(default=None, description="Parsed quiz when the item's shape is usable.")
    errors: List[str] = Field(default_factory=list)
    similar: SimilarityMatch
    can_save: bool


# PUBLIC_INTERFACE
class SessionIn(BaseModel):
    """A completed quiz-taking session."""
    category: QuizCategory
    score: int = Field(..., description="Number of correct answers.")
    total: int = Field(..., description="Number of questions asked.")
    skipped: int = Field(default=0, description="Number of skipped questions.")
    questions: List[QuestionOutcome] = Field(default_factory=list, description="Per-question outcomes.")


# PUBLIC_INTERFACE
class SessionStartIn(BaseModel):
    """Question selection for a new quiz-taking session."""
    category: Optional[QuizCategory] = Field(default=None, description="Category to draw from; all categories when omitted.")
    count: Optional[QuestionCountOption] = Field(
        default=None, description='5, 10, 20 or "all"; the stored default question count when omitted.'
    )


# PUBLIC_INTERFACE
class SessionCompleteIn(BaseModel):
    """Answers for the questions handed out by /sessions/start."""
    category: QuizCategory
    question_ids: List[str] = Field(..., description="Ids of the questions asked, in order.")
    answers: List[Optional[int]] = Field(..., description="Chosen option index per question; null when skipped.")
