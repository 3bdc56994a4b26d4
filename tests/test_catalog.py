"""Tests for quiz authoring operations."""

import pytest

from trivia_cms.models import QuizCategory, QuizFilter, QuizPatch, ReviewStatus
from trivia_cms.services.catalog import DUPLICATE_QUESTION_ERROR, QuizCatalog, QuizNotFoundError


@pytest.fixture
def catalog(quiz_store):
    return QuizCatalog(quiz_store)


class TestCreate:
    def test_new_quiz_is_a_draft(self, catalog, quiz_input):
        quiz, result = catalog.create(quiz_input())
        assert result.is_valid
        assert quiz.review_status == ReviewStatus.DRAFT
        assert quiz.has_similar is False
        assert quiz.created_at == quiz.updated_at
        assert catalog.get(quiz.id).question == "What is the capital of Japan?"

    def test_flags_similar_question(self, catalog, quiz_input):
        catalog.create(quiz_input(question="What is the capital city of Japan?"))
        quiz, _ = catalog.create(quiz_input())
        assert quiz.has_similar is True

    def test_invalid_input_is_not_stored(self, catalog, quiz_input):
        quiz, result = catalog.create(quiz_input(options=["Tokyo", "Tokyo", "Kyoto", "Nagoya"]))
        assert quiz is None
        assert result.errors == ["Options contain duplicates"]
        assert catalog.list() == []

    def test_malformed_records_are_skipped(self, catalog, quiz_store, quiz_input):
        quiz_store.add_quiz({"id": "broken"})
        catalog.create(quiz_input())
        assert len(catalog.list()) == 1

    def test_exact_duplicate_is_rejected(self, catalog, quiz_input):
        catalog.create(quiz_input())
        quiz, result = catalog.create(quiz_input(question="  what is the CAPITAL of Japan? "))
        assert quiz is None
        assert result.errors == [DUPLICATE_QUESTION_ERROR]
        assert len(catalog.list()) == 1


class TestMalformedStoredRecord:
    @pytest.fixture
    def broken_id(self, quiz_store):
        quiz_store.add_quiz({"id": "x", "question": "half written"})
        return "x"

    def test_get_reads_as_missing(self, catalog, broken_id):
        assert catalog.list() == []
        with pytest.raises(QuizNotFoundError):
            catalog.get(broken_id)

    def test_review_reads_as_missing_and_writes_nothing(self, catalog, quiz_store, broken_id):
        with pytest.raises(QuizNotFoundError):
            catalog.review(broken_id, ReviewStatus.APPROVED)
        assert quiz_store.get_quiz(broken_id) == {"id": "x", "question": "half written"}


class TestUpdate:
    def test_patch_changes_only_named_fields(self, catalog, quiz_input):
        quiz, _ = catalog.create(quiz_input())
        updated, result = catalog.update(quiz.id, QuizPatch(explanation="Edo was renamed Tokyo in 1868."))
        assert result.is_valid
        assert updated.explanation == "Edo was renamed Tokyo in 1868."
        assert updated.question == quiz.question
        assert updated.options == quiz.options
        assert updated.review_status == ReviewStatus.DRAFT
        assert catalog.get(quiz.id).explanation == "Edo was renamed Tokyo in 1868."

    def test_does_not_match_itself(self, catalog, quiz_input):
        quiz, _ = catalog.create(quiz_input())
        updated, _ = catalog.update(quiz.id, QuizPatch(question="What is the capital of Japan today?"))
        assert updated.has_similar is False

    def test_similarity_recomputed_against_others(self, catalog, quiz_input):
        catalog.create(quiz_input(question="Which castle is the largest in Japan?"))
        quiz, _ = catalog.create(quiz_input(question="Which mountain is the tallest peak?"))
        assert quiz.has_similar is False
        updated, _ = catalog.update(quiz.id, QuizPatch(question="Which castle is the largest in Japan?"))
        assert updated.has_similar is True

    def test_invalid_patch_is_rejected(self, catalog, quiz_input):
        quiz, _ = catalog.create(quiz_input())
        updated, result = catalog.update(quiz.id, QuizPatch(correct_answer=7))
        assert updated is None
        assert result.errors == ["Correct answer index must be between 0 and 3"]
        assert catalog.get(quiz.id).correct_answer == 0

    def test_clearing_required_field_is_rejected(self, catalog, quiz_input):
        quiz, _ = catalog.create(quiz_input())
        updated, result = catalog.update(quiz.id, QuizPatch(difficulty=None))
        assert updated is None
        assert not result.is_valid

    def test_unknown_id(self, catalog):
        with pytest.raises(QuizNotFoundError):
            catalog.update("missing", QuizPatch(question="Anything at all?"))


class TestReviewAndDelete:
    def test_review_sets_status_and_notes(self, catalog, quiz_input):
        quiz, _ = catalog.create(quiz_input())
        reviewed = catalog.review(quiz.id, ReviewStatus.APPROVED, notes="Checked")
        assert reviewed.review_status == ReviewStatus.APPROVED
        assert reviewed.review_notes == "Checked"
        # Notes are kept when omitted
        again = catalog.review(quiz.id, ReviewStatus.REVIEWING)
        assert again.review_notes == "Checked"

    def test_review_unknown_id(self, catalog):
        with pytest.raises(QuizNotFoundError):
            catalog.review("missing", ReviewStatus.APPROVED)

    def test_delete(self, catalog, quiz_input):
        quiz, _ = catalog.create(quiz_input())
        assert catalog.delete(quiz.id) is True
        assert catalog.delete(quiz.id) is False
        with pytest.raises(QuizNotFoundError):
            catalog.get(quiz.id)


class TestQueries:
    def test_filter(self, catalog, quiz_input):
        geo, _ = catalog.create(quiz_input())
        food, _ = catalog.create(quiz_input(question="Which fish is used for katsuobushi?", category="food",
                                            options=["Bonito", "Tuna", "Salmon", "Mackerel"]))
        catalog.review(food.id, ReviewStatus.APPROVED)

        assert [q.id for q in catalog.list(QuizFilter(category=QuizCategory.FOOD))] == [food.id]
        assert [q.id for q in catalog.list(QuizFilter(review_status=ReviewStatus.DRAFT))] == [geo.id]
        assert [q.id for q in catalog.list(QuizFilter(search_query="BONITO"))] == [food.id]

    def test_status_counts(self, catalog, quiz_input):
        quiz, _ = catalog.create(quiz_input())
        catalog.create(quiz_input(question="Which island is the largest in Japan?"))
        catalog.review(quiz.id, ReviewStatus.REVIEWING)
        assert catalog.status_counts() == {
            "total": 2,
            "draft": 1,
            "reviewing": 1,
            "approved": 0,
            "rejected": 0,
        }

    def test_export_only_approved(self, catalog, quiz_input):
        approved, _ = catalog.create(quiz_input())
        catalog.create(quiz_input(question="Which island is the largest in Japan?"))
        catalog.review(approved.id, ReviewStatus.APPROVED, notes="ok")

        exported = catalog.export_approved()
        assert [q.id for q in exported] == [approved.id]
        dumped = exported[0].model_dump()
        assert "review_status" not in dumped
        assert "review_notes" not in dumped
        assert dumped["correct_answer"] == 0

    def test_check_similarity(self, catalog, quiz_input):
        quiz, _ = catalog.create(quiz_input(question="What is the capital city of Japan?"))
        match = catalog.check_similarity("What is the capital of Japan?")
        assert match.is_match and match.matched_id == quiz.id and match.percentage == 75
        assert catalog.check_similarity("What is the capital of Japan?", exclude_id=quiz.id).is_match is False


class TestCategoryInfo:
    def test_every_category_has_display_info(self):
        for category in QuizCategory:
            assert category.info.label
            assert category.info.emoji

    def test_every_status_has_display_info(self):
        for status in ReviewStatus:
            assert status.info.label
