import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from pydantic import ValidationError

from trivia_cms.models import (
    ExportedQuiz,
    Quiz,
    QuizFilter,
    QuizInput,
    QuizPatch,
    ReviewStatus,
    SimilarityMatch,
    ValidationResult,
)
from trivia_cms.services.similarity import is_duplicate, score_against_all
from trivia_cms.services.validators import check_exact_duplicate, validate_quiz_input
from trivia_cms.storage.json_store import QuizJsonStore

logger = logging.getLogger(__name__)

DUPLICATE_QUESTION_ERROR = "A quiz with the same question already exists"


class QuizNotFoundError(LookupError):
    """Raised when an operation targets a quiz id that is not stored."""

    def __init__(self, quiz_id: str) -> None:
        super().__init__(f"Quiz not found: {quiz_id}")
        self.quiz_id = quiz_id


class _Rejected(Exception):
    def __init__(self, result: ValidationResult) -> None:
        super().__init__("; ".join(result.errors))
        self.result = result


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_record(quiz_id: str, raw: Dict) -> Quiz:
    """A stored record that fails validation reads as missing."""
    try:
        return Quiz.model_validate(raw)
    except ValidationError as e:
        logger.warning("Stored quiz %s is malformed: %s", quiz_id, e)
        raise QuizNotFoundError(quiz_id)


def _parse_records(records: List[Dict]) -> List[Quiz]:
    quizzes = []
    for raw in records:
        try:
            quizzes.append(Quiz.model_validate(raw))
        except ValidationError as e:
            logger.warning("Skipping malformed quiz record %r: %s", raw.get("id") if isinstance(raw, dict) else raw, e)
    return quizzes


class QuizCatalog:
    """
    Authoring operations over the quiz record store.

    Validation failures are returned as a ValidationResult next to a None quiz,
    never raised. Unknown ids raise QuizNotFoundError.
    """

    # PUBLIC_INTERFACE
    def __init__(self, store: QuizJsonStore) -> None:
        self.store = store

    # PUBLIC_INTERFACE
    def list(self, quiz_filter: Optional[QuizFilter] = None) -> List[Quiz]:
        """All quizzes in insertion order, optionally filtered."""
        quizzes = _parse_records(self.store.list_quizzes())
        if quiz_filter is None:
            return quizzes
        return [q for q in quizzes if quiz_filter.matches(q)]

    # PUBLIC_INTERFACE
    def get(self, quiz_id: str) -> Quiz:
        raw = self.store.get_quiz(quiz_id)
        if raw is None:
            raise QuizNotFoundError(quiz_id)
        return _parse_record(quiz_id, raw)

    # PUBLIC_INTERFACE
    def create(self, quiz_input: QuizInput) -> Tuple[Optional[Quiz], ValidationResult]:
        """
        Validate and persist a new quiz as a draft.

        The new record's has_similar flag tells whether any stored question is
        a near-duplicate of it. A question identical to a stored one (ignoring
        case and padding) is rejected.
        """
        result = validate_quiz_input(quiz_input)
        if not result.is_valid:
            return None, result

        try:
            with self.store.transaction() as records:
                quiz = self._new_draft(quiz_input, records)
                records.append(quiz.model_dump(mode="json"))
        except _Rejected as rejected:
            return None, rejected.result

        logger.info("Created quiz %s (similar=%s)", quiz.id, quiz.has_similar)
        return quiz, result

    def _new_draft(self, quiz_input: QuizInput, records: List[Dict]) -> Quiz:
        existing = _parse_records(records)
        if check_exact_duplicate(quiz_input, existing):
            raise _Rejected(ValidationResult(is_valid=False, errors=[DUPLICATE_QUESTION_ERROR]))
        now = _now()
        return Quiz(
            **quiz_input.model_dump(),
            id=str(uuid.uuid4()),
            review_status=ReviewStatus.DRAFT,
            has_similar=is_duplicate(quiz_input.question, existing),
            created_at=now,
            updated_at=now,
        )

    # PUBLIC_INTERFACE
    def update(self, quiz_id: str, patch: QuizPatch) -> Tuple[Optional[Quiz], ValidationResult]:
        """
        Apply a field-level patch to a stored quiz.

        The merged record is re-validated and its similarity flag recomputed
        against every other stored question. Nothing is written when the
        merged record is invalid.
        """
        changes = patch.changes()
        try:
            with self.store.transaction() as records:
                index = next(
                    (i for i, r in enumerate(records) if isinstance(r, dict) and str(r.get("id")) == quiz_id),
                    None,
                )
                if index is None:
                    raise QuizNotFoundError(quiz_id)

                try:
                    merged = Quiz.model_validate({**records[index], **changes})
                except ValidationError as e:
                    raise _Rejected(
                        ValidationResult(is_valid=False, errors=[err["msg"] for err in e.errors()])
                    )
                result = validate_quiz_input(merged)
                if not result.is_valid:
                    raise _Rejected(result)

                merged.has_similar = is_duplicate(merged.question, _parse_records(records), exclude_id=quiz_id)
                merged.updated_at = _now()
                records[index] = merged.model_dump(mode="json")
        except _Rejected as rejected:
            return None, rejected.result

        logger.info("Updated quiz %s fields=%s", quiz_id, sorted(changes))
        return merged, result

    # PUBLIC_INTERFACE
    def review(self, quiz_id: str, status: ReviewStatus, notes: Optional[str] = None) -> Quiz:
        """Record an explicit review decision (status and optional notes)."""

        def apply(current: Dict) -> Dict:
            quiz = _parse_record(quiz_id, current)
            quiz.review_status = status
            if notes is not None:
                quiz.review_notes = notes
            quiz.updated_at = _now()
            return quiz.model_dump(mode="json")

        updated = self.store.update_quiz(quiz_id, apply)
        if updated is None:
            raise QuizNotFoundError(quiz_id)
        logger.info("Quiz %s reviewed: %s", quiz_id, status.value)
        return Quiz.model_validate(updated)

    # PUBLIC_INTERFACE
    def delete(self, quiz_id: str) -> bool:
        deleted = self.store.delete_quiz(quiz_id)
        if deleted:
            logger.info("Deleted quiz %s", quiz_id)
        return deleted

    # PUBLIC_INTERFACE
    def check_similarity(self, question: str, exclude_id: Optional[str] = None) -> SimilarityMatch:
        return score_against_all(question, self.list(), exclude_id=exclude_id)

    # PUBLIC_INTERFACE
    def status_counts(self) -> Dict[str, int]:
        """Dashboard counters: total plus one entry per review status."""
        quizzes = self.list()
        counts = {"total": len(quizzes)}
        for status in ReviewStatus:
            counts[status.value] = sum(1 for q in quizzes if q.review_status == status)
        return counts

    # PUBLIC_INTERFACE
    def export_approved(self) -> List[ExportedQuiz]:
        """Approved quizzes in the client-facing shape (review metadata removed)."""
        return [
            ExportedQuiz.model_validate(q.model_dump(include=set(ExportedQuiz.model_fields)))
            for q in self.list()
            if q.review_status == ReviewStatus.APPROVED
        ]
