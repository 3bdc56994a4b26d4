from typing import Any, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from trivia_cms.models import QuizInput, ValidationResult

MAX_QUESTION_LENGTH = 200
MAX_OPTION_LENGTH = 100
OPTION_COUNT = 4

# Basic list only; a production deployment needs a far more thorough one.
SENSITIVE_KEYWORDS = [
    "racist", "racial slur",
    "religious hatred",
    "explicit sexual",
    "violence", "killing",
    "差別", "暴力", "殺",
]


def _result(errors: List[str]) -> ValidationResult:
    return ValidationResult(is_valid=not errors, errors=errors)


# PUBLIC_INTERFACE
def validate_question(question: str) -> ValidationResult:
    """Question text must be non-blank and at most 200 characters."""
    errors: List[str] = []
    question = question or ""
    if not question.strip():
        errors.append("Question text is empty")
    if len(question) > MAX_QUESTION_LENGTH:
        errors.append(f"Question text is too long ({MAX_QUESTION_LENGTH} characters max)")
    return _result(errors)


# PUBLIC_INTERFACE
def validate_options(options: List[str]) -> ValidationResult:
    """Exactly 4 non-empty options of at most 100 characters, distinct ignoring case and padding."""
    errors: List[str] = []
    if len(options) != OPTION_COUNT:
        errors.append(f"Exactly {OPTION_COUNT} options are required")

    for index, option in enumerate(options, start=1):
        if not option or not option.strip():
            errors.append(f"Option {index} is empty")
        if option and len(option) > MAX_OPTION_LENGTH:
            errors.append(f"Option {index} is too long ({MAX_OPTION_LENGTH} characters max)")

    unique_options = {(o or "").strip().lower() for o in options}
    if len(unique_options) != len(options):
        errors.append("Options contain duplicates")

    return _result(errors)


# PUBLIC_INTERFACE
def check_sensitive_content(text: str) -> ValidationResult:
    """Flag every sensitive keyword contained in `text` (case-insensitive)."""
    lower_text = (text or "").lower()
    errors = [
        f"Contains a sensitive keyword: {keyword}"
        for keyword in SENSITIVE_KEYWORDS
        if keyword.lower() in lower_text
    ]
    return _result(errors)


# PUBLIC_INTERFACE
def validate_quiz_input(quiz: QuizInput) -> ValidationResult:
    """
    Validate a whole quiz input, collecting every violation in one pass.

    Covers question text, options, the correct answer index and a sensitive
    keyword scan over question, options and explanation.
    """
    errors: List[str] = []
    errors.extend(validate_question(quiz.question).errors)
    errors.extend(validate_options(quiz.options).errors)

    if quiz.correct_answer < 0 or quiz.correct_answer > OPTION_COUNT - 1:
        errors.append(f"Correct answer index must be between 0 and {OPTION_COUNT - 1}")

    combined = f"{quiz.question} {' '.join(quiz.options)} {quiz.explanation or ''}"
    errors.extend(check_sensitive_content(combined).errors)

    return _result(errors)


def _format_pydantic_errors(exc: ValidationError) -> List[str]:
    messages = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ())) or "quiz"
        messages.append(f"{field}: {err.get('msg', 'invalid value')}")
    return messages


# PUBLIC_INTERFACE
def validate_raw_quiz(data: Any) -> Tuple[Optional[QuizInput], ValidationResult]:
    """
    Validate an untrusted payload (AI output, imported JSON) as a quiz input.

    Returns:
        (QuizInput | None, ValidationResult): the parsed input when its shape is
        usable, and all validation errors found.
    """
    if not isinstance(data, dict):
        return None, _result(["Quiz item must be an object"])
    try:
        quiz = QuizInput.model_validate(data)
    except ValidationError as e:
        return None, _result(_format_pydantic_errors(e))
    return quiz, validate_quiz_input(quiz)


# PUBLIC_INTERFACE
def check_exact_duplicate(quiz: QuizInput, existing: Iterable[Any]) -> bool:
    """True if an existing record has the same question text, ignoring case and padding."""
    new_question = quiz.question.strip().lower()
    for record in existing:
        text = record.get("question", "") if isinstance(record, dict) else getattr(record, "question", "")
        if (text or "").strip().lower() == new_question:
            return True
    return False
