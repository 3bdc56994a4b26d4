"""
Quiz session aggregation.

A completed session produces two records that are stored separately: a
Review (every question's outcome, for the post-quiz review screen) and a
History entry (counts only, for statistics). Both lists are kept
most-recent-first and capped at MAX_SESSIONS entries; the oldest entry is
dropped on overflow. Statistics are never stored; they are folded from the
History list on demand.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel, ValidationError

from trivia_cms.models import (
    CategoryStats,
    HistoryEntry,
    QuestionOutcome,
    QuizCategory,
    QuizReview,
    QuizStatistics,
)
from trivia_cms.storage.device_store import DeviceStore

logger = logging.getLogger(__name__)

REVIEW_KEY = "quiz_reviews"
HISTORY_KEY = "quiz_history"
MAX_SESSIONS = 100

T = TypeVar("T", bound=BaseModel)


class InvalidSessionError(ValueError):
    """Session counts violate 0 <= score, skipped and score + skipped <= total, total > 0."""


# PUBLIC_INTERFACE
def percentage(part: int, whole: int) -> int:
    """round(100 * part / whole) rounding halves up; 0 when whole is 0."""
    if whole <= 0:
        return 0
    return (200 * part + whole) // (2 * whole)


# PUBLIC_INTERFACE
def check_session_counts(score: int, total: int, skipped: int) -> None:
    if total <= 0:
        raise InvalidSessionError("A quiz session must contain at least one question")
    if not 0 <= score <= total:
        raise InvalidSessionError(f"score must be within 0..{total}, got {score}")
    if not 0 <= skipped <= total:
        raise InvalidSessionError(f"skipped must be within 0..{total}, got {skipped}")
    if score + skipped > total:
        raise InvalidSessionError(f"score + skipped ({score + skipped}) exceeds total ({total})")


# PUBLIC_INTERFACE
def check_outcomes(score: int, total: int, skipped: int, outcomes: Sequence[QuestionOutcome]) -> None:
    """Per-question outcomes, when given, must account for every count."""
    if not outcomes:
        return
    if len(outcomes) != total:
        raise InvalidSessionError(f"Got {len(outcomes)} question outcomes for a {total}-question session")
    correct = sum(1 for o in outcomes if o.is_correct)
    if correct != score:
        raise InvalidSessionError(f"score is {score} but {correct} outcomes are correct")
    unanswered = sum(1 for o in outcomes if o.user_answer is None)
    if unanswered != skipped:
        raise InvalidSessionError(f"skipped is {skipped} but {unanswered} outcomes are unanswered")


# PUBLIC_INTERFACE
def compute_statistics(entries: Iterable[HistoryEntry]) -> QuizStatistics:
    """
    Fold history entries into overall and per-category statistics.

    The fold is order-independent. An empty history yields the all-zero
    statistics object.
    """
    stats = QuizStatistics()
    for entry in entries:
        stats.total_quizzes += 1
        stats.total_correct += entry.score
        stats.total_questions += entry.total

        bucket = stats.by_category.setdefault(entry.category, CategoryStats())
        bucket.quizzes += 1
        bucket.correct += entry.score
        bucket.total += entry.total

    stats.average_percentage = percentage(stats.total_correct, stats.total_questions)
    for bucket in stats.by_category.values():
        bucket.percentage = percentage(bucket.correct, bucket.total)
    return stats


# PUBLIC_INTERFACE
def build_outcomes(questions: Sequence[Any], answers: Sequence[Optional[int]]) -> List[QuestionOutcome]:
    """
    Pair each asked question with the user's answer (None = skipped).

    `questions` are quiz models or dicts exposing id, question, options,
    correct_answer and optionally explanation.
    """
    if len(questions) != len(answers):
        raise InvalidSessionError(
            f"Got {len(answers)} answers for {len(questions)} questions"
        )
    outcomes = []
    for question, answer in zip(questions, answers):
        data = question if isinstance(question, dict) else question.model_dump()
        outcomes.append(
            QuestionOutcome(
                question_id=str(data["id"]),
                question=data["question"],
                options=list(data["options"]),
                user_answer=answer,
                correct_answer=data["correct_answer"],
                explanation=data.get("explanation"),
            )
        )
    return outcomes


def _prepend(record: BaseModel) -> Callable[[List[Any]], List[Any]]:
    def apply(items: List[Any]) -> List[Any]:
        return [record.model_dump(mode="json"), *items][:MAX_SESSIONS]

    return apply


class SessionRecorder:
    """
    Records completed quiz sessions and answers review/statistics queries.

    Reads always come from the device store, so every query reflects the
    latest persisted state. Storage failures are logged and never raised to
    the quiz-taking flow.
    """

    # PUBLIC_INTERFACE
    def __init__(self, store: DeviceStore) -> None:
        self.store = store
        self._last_id = 0

    def _next_id(self) -> str:
        latest = self._last_id
        for entries in (self.store.get_all(HISTORY_KEY), self.store.get_all(REVIEW_KEY)):
            if entries and isinstance(entries[0], dict):
                try:
                    latest = max(latest, int(entries[0].get("id", 0)))
                except (TypeError, ValueError):
                    pass
        self._last_id = max(int(time.time() * 1000), latest + 1)
        return str(self._last_id)

    def _load(self, key: str, model: Type[T]) -> List[T]:
        records = []
        for raw in self.store.get_all(key):
            try:
                records.append(model.model_validate(raw))
            except ValidationError as e:
                logger.warning("Skipping malformed %s entry: %s", key, e)
        return records

    # PUBLIC_INTERFACE
    def record_session(
        self,
        category: QuizCategory,
        score: int,
        total: int,
        skipped: int,
        outcomes: Sequence[QuestionOutcome],
    ) -> QuizReview:
        """
        Persist a finished session as a Review and a History entry.

        Raises:
            InvalidSessionError: if the counts are inconsistent, total is 0,
                or non-empty outcomes disagree with the counts.

        Returns:
            QuizReview: the record that was stored.
        """
        check_session_counts(score, total, skipped)
        check_outcomes(score, total, skipped, outcomes)

        review = QuizReview(
            id=self._next_id(),
            category=category,
            date=datetime.now(timezone.utc).isoformat(),
            score=score,
            total=total,
            skipped=skipped,
            percentage=percentage(score, total),
            questions=list(outcomes),
        )
        entry = HistoryEntry.model_validate(review.model_dump(exclude={"questions"}))

        with self.store.lock(REVIEW_KEY), self.store.lock(HISTORY_KEY):
            try:
                previous_reviews = self.store.update(REVIEW_KEY, _prepend(review))
            except OSError as e:
                logger.error("Failed to save quiz review %s: %s", review.id, e)
                return review

            try:
                self.store.update(HISTORY_KEY, _prepend(entry))
            except OSError as e:
                logger.error("Failed to save quiz history %s: %s; rolling back review", entry.id, e)
                try:
                    self.store.set_all(REVIEW_KEY, previous_reviews)
                except OSError as rollback_error:
                    logger.error("Failed to roll back quiz review %s: %s", review.id, rollback_error)

        logger.info(
            "Recorded %s session %s: %d/%d (%d skipped)", category.value, review.id, score, total, skipped
        )
        return review

    # PUBLIC_INTERFACE
    def complete_session(
        self, category: QuizCategory, questions: Sequence[Any], answers: Sequence[Optional[int]]
    ) -> QuizReview:
        """Score the answers to `questions` and record the session."""
        outcomes = build_outcomes(questions, answers)
        score = sum(1 for o in outcomes if o.is_correct)
        skipped = sum(1 for o in outcomes if o.user_answer is None)
        return self.record_session(category, score, len(outcomes), skipped, outcomes)

    # PUBLIC_INTERFACE
    def reviews(self) -> List[QuizReview]:
        return self._load(REVIEW_KEY, QuizReview)

    # PUBLIC_INTERFACE
    def review_by_id(self, review_id: str) -> Optional[QuizReview]:
        return next((r for r in self.reviews() if r.id == review_id), None)

    # PUBLIC_INTERFACE
    def history(self) -> List[HistoryEntry]:
        """History entries, most recent first."""
        return self._load(HISTORY_KEY, HistoryEntry)

    # PUBLIC_INTERFACE
    def recent_sessions(self, n: int = 5) -> List[HistoryEntry]:
        """The `n` most recent history entries (fewer if the history is shorter)."""
        if n <= 0:
            return []
        return self.history()[:n]

    # PUBLIC_INTERFACE
    def statistics(self) -> QuizStatistics:
        return compute_statistics(self.history())

    # PUBLIC_INTERFACE
    def clear_reviews(self) -> None:
        try:
            self.store.remove(REVIEW_KEY)
        except OSError as e:
            logger.error("Failed to clear quiz reviews: %s", e)

    # PUBLIC_INTERFACE
    def clear_history(self) -> None:
        try:
            self.store.remove(HISTORY_KEY)
        except OSError as e:
            logger.error("Failed to clear statistics: %s", e)
