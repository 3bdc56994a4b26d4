"""
Near-duplicate detection for quiz questions.

Questions are compared with a bag-of-words containment ratio over
normalized tokens. The ratio is asymmetric: every occurrence of a candidate
token counts, so repeated words on the candidate side can push the score up
while the same words repeated on the other side only grow the denominator.

The first existing question at or above the threshold is reported, in the
collection's own order. This is not necessarily the most similar one.
"""

import math
import re
from typing import Any, Iterable, List, Optional, Tuple

from trivia_cms.models import SimilarityMatch

SIMILARITY_THRESHOLD = 0.6
MIN_TOKEN_LENGTH = 4

_NON_WORD_REGEX = re.compile(r"[^\w\s]")


def normalize(text: str) -> List[str]:
    """Lower-case, strip punctuation, split on whitespace and drop tokens of 3 chars or fewer."""
    cleaned = _NON_WORD_REGEX.sub("", (text or "").lower())
    return [w for w in cleaned.split() if len(w) >= MIN_TOKEN_LENGTH]


# PUBLIC_INTERFACE
def similarity(candidate: str, existing: str) -> float:
    """
    Containment ratio of `candidate` tokens found in `existing`.

    Returns:
        float: matches / max(len(candidate tokens), len(existing tokens)),
               or 0.0 if either side has no tokens.
    """
    words_a = normalize(candidate)
    words_b = normalize(existing)
    if not words_a or not words_b:
        return 0.0
    pool = set(words_b)
    common = sum(1 for w in words_a if w in pool)
    return common / max(len(words_a), len(words_b))


def _record_fields(record: Any) -> Tuple[Optional[str], str]:
    if isinstance(record, dict):
        return record.get("id"), record.get("question") or ""
    return getattr(record, "id", None), getattr(record, "question", "") or ""


# PUBLIC_INTERFACE
def score_against_all(
    candidate: str, existing: Iterable[Any], exclude_id: Optional[str] = None
) -> SimilarityMatch:
    """
    Find the first existing question similar to `candidate`.

    Args:
        candidate: Question text being checked.
        existing: Records (models or dicts) exposing `id` and `question`.
        exclude_id: Id to skip, so a record being edited does not match itself.

    Returns:
        SimilarityMatch: is_match plus the matched id, text and rounded percentage.
    """
    for record in existing:
        record_id, text = _record_fields(record)
        if exclude_id and record_id == exclude_id:
            continue
        score = similarity(candidate, text)
        if score >= SIMILARITY_THRESHOLD:
            return SimilarityMatch(
                is_match=True,
                matched_id=record_id,
                matched_text=text,
                percentage=math.floor(score * 100 + 0.5),
            )
    return SimilarityMatch(is_match=False)


# PUBLIC_INTERFACE
def is_duplicate(candidate: str, existing: Iterable[Any], exclude_id: Optional[str] = None) -> bool:
    """True iff some non-excluded existing question meets the similarity threshold."""
    return score_against_all(candidate, existing, exclude_id=exclude_id).is_match
