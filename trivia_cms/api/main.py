import logging
from functools import lru_cache
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from trivia_cms.api.schemas import (
    GenerateIn,
    GeneratedItemOut,
    ReviewIn,
    SessionCompleteIn,
    SessionIn,
    SessionStartIn,
    SimilarityIn,
)
from trivia_cms.core import config
from trivia_cms.models import (
    ExportedQuiz,
    HistoryEntry,
    Quiz,
    QuizDifficulty,
    QuizCategory,
    QuizFilter,
    QuizInput,
    QuizPatch,
    QuizReview,
    QuizStatistics,
    ReviewStatus,
    Settings,
    SimilarityMatch,
    ValidationResult,
)
from trivia_cms.services.ai_generator import GenerationError, QuizGenerator, review_generated
from trivia_cms.services.catalog import QuizCatalog, QuizNotFoundError
from trivia_cms.services.quiz_bank import QuizBank
from trivia_cms.services.sessions import InvalidSessionError, SessionRecorder
from trivia_cms.services.settings import SettingsService
from trivia_cms.storage.device_store import DeviceStore
from trivia_cms.storage.json_store import QuizJsonStore

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "System", "description": "System and service endpoints"},
    {"name": "Quizzes", "description": "Quiz authoring, review and export"},
    {"name": "Generation", "description": "AI quiz generation with review before save"},
    {"name": "Sessions", "description": "Quiz-taking reviews, history and statistics"},
]

app = FastAPI(
    title="Trivia Quiz CMS",
    description="Content service for trivia quizzes: authoring, duplicate detection, AI generation and play statistics.",
    version="0.1.0",
    openapi_tags=openapi_tags,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache(maxsize=1)
def _get_store_singleton() -> QuizJsonStore:
    """Cached quiz store. Uses QUIZ_DATA_FILE if set, otherwise './data/quizzes.json'."""
    return QuizJsonStore(path=config.quiz_data_file())


@lru_cache(maxsize=1)
def _get_device_store_singleton() -> DeviceStore:
    """Cached device store. Uses DEVICE_DATA_DIR if set, otherwise './data/device'."""
    return DeviceStore(directory=config.device_data_dir())


@lru_cache(maxsize=1)
def _get_recorder_singleton() -> SessionRecorder:
    return SessionRecorder(_get_device_store_singleton())


# PUBLIC_INTERFACE
def reset_singletons() -> None:
    """Drop cached stores so the next request re-reads the configured paths."""
    _get_store_singleton.cache_clear()
    _get_device_store_singleton.cache_clear()
    _get_recorder_singleton.cache_clear()


# PUBLIC_INTERFACE
def get_store() -> QuizJsonStore:
    return _get_store_singleton()


# PUBLIC_INTERFACE
def get_catalog() -> QuizCatalog:
    return QuizCatalog(_get_store_singleton())


# PUBLIC_INTERFACE
def get_recorder() -> SessionRecorder:
    return _get_recorder_singleton()


# PUBLIC_INTERFACE
def get_settings_service() -> SettingsService:
    return SettingsService(_get_device_store_singleton())


# PUBLIC_INTERFACE
def get_generator() -> QuizGenerator:
    return QuizGenerator()


# PUBLIC_INTERFACE
def get_quiz_bank(catalog: QuizCatalog = Depends(get_catalog)) -> QuizBank:
    """Playable questions: the approved quizzes, as exported."""
    return QuizBank(catalog.export_approved())


def _validation_failed(result: ValidationResult) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"error": "Validation failed", "details": result.errors},
    )


@app.exception_handler(QuizNotFoundError)
async def _quiz_not_found(request: Request, exc: QuizNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": "Quiz not found"})


@app.exception_handler(InvalidSessionError)
async def _invalid_session(request: Request, exc: InvalidSessionError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


@app.exception_handler(GenerationError)
async def _generation_failed(request: Request, exc: GenerationError) -> JSONResponse:
    logger.error("Generation error: %s", exc)
    return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content={"detail": "Failed to generate quizzes"})


@app.get("/", summary="Health Check", tags=["System"])
def health_check():
    """
    Health check endpoint.

    Returns:
        JSON payload with a 'Healthy' message and the data locations in use.
    """
    store = get_store()
    # Load ensures the data file exists with the default structure
    _ = store.load_all()
    return {
        "message": "Healthy",
        "data_file": store.path,
        "device_dir": _get_device_store_singleton().directory,
    }


@app.get(
    "/quizzes",
    response_model=List[Quiz],
    summary="List quizzes",
    description="Returns stored quizzes in insertion order, optionally filtered.",
    tags=["Quizzes"],
)
def list_quizzes(
    category: Optional[QuizCategory] = None,
    difficulty: Optional[QuizDifficulty] = None,
    review_status: Optional[ReviewStatus] = None,
    q: Optional[str] = None,
    catalog: QuizCatalog = Depends(get_catalog),
) -> List[Quiz]:
    quiz_filter = QuizFilter(
        category=category, difficulty=difficulty, review_status=review_status, search_query=q
    )
    return catalog.list(quiz_filter)


@app.get("/quizzes/stats", summary="Quiz counts by review status", tags=["Quizzes"])
def quiz_stats(catalog: QuizCatalog = Depends(get_catalog)) -> Dict[str, int]:
    return catalog.status_counts()


@app.post(
    "/quizzes",
    response_model=Quiz,
    status_code=status.HTTP_201_CREATED,
    summary="Create quiz",
    description="Validates and stores a new draft quiz, flagging near-duplicates of stored questions.",
    tags=["Quizzes"],
)
def create_quiz(quiz_in: QuizInput, catalog: QuizCatalog = Depends(get_catalog)) -> Quiz:
    quiz, result = catalog.create(quiz_in)
    if quiz is None:
        raise _validation_failed(result)
    return quiz


@app.post(
    "/quizzes/similarity",
    response_model=SimilarityMatch,
    summary="Check similarity",
    description="Reports the first stored question at or above the 60% similarity threshold.",
    tags=["Quizzes"],
)
def check_similarity(payload: SimilarityIn, catalog: QuizCatalog = Depends(get_catalog)) -> SimilarityMatch:
    return catalog.check_similarity(payload.question, exclude_id=payload.exclude_id)


@app.get("/quizzes/{quiz_id}", response_model=Quiz, summary="Get quiz by id", tags=["Quizzes"])
def get_quiz(quiz_id: str, catalog: QuizCatalog = Depends(get_catalog)) -> Quiz:
    """
    Retrieve a single quiz by identifier.

    Raises:
        HTTPException 404 if the quiz is not found.
    """
    return catalog.get(quiz_id)


@app.put("/quizzes/{quiz_id}", response_model=Quiz, summary="Update quiz content", tags=["Quizzes"])
def update_quiz(quiz_id: str, patch: QuizPatch, catalog: QuizCatalog = Depends(get_catalog)) -> Quiz:
    """
    Apply the fields present in the body to the stored quiz.

    The merged quiz is validated as a whole; on failure nothing is stored
    and every error is returned.
    """
    quiz, result = catalog.update(quiz_id, patch)
    if quiz is None:
        raise _validation_failed(result)
    return quiz


@app.post("/quizzes/{quiz_id}/review", response_model=Quiz, summary="Review quiz", tags=["Quizzes"])
def review_quiz(quiz_id: str, review: ReviewIn, catalog: QuizCatalog = Depends(get_catalog)) -> Quiz:
    return catalog.review(quiz_id, review.status, review.notes)


@app.delete("/quizzes/{quiz_id}", summary="Delete quiz", tags=["Quizzes"])
def delete_quiz(quiz_id: str, catalog: QuizCatalog = Depends(get_catalog)):
    if not catalog.delete(quiz_id):
        raise HTTPException(status_code=404, detail="Quiz not found")
    return {"message": "Quiz deleted successfully"}


@app.get("/export", summary="Export approved quizzes", tags=["Quizzes"])
def export_quizzes(catalog: QuizCatalog = Depends(get_catalog)) -> JSONResponse:
    """Approved quizzes as a downloadable JSON file, without review metadata."""
    exported = [q.model_dump(mode="json") for q in catalog.export_approved()]
    return JSONResponse(
        content=exported,
        headers={"Content-Disposition": 'attachment; filename="quizzes.json"'},
    )


@app.post(
    "/generate",
    response_model=List[GeneratedItemOut],
    summary="Generate quizzes with AI",
    description="Generates quiz candidates, validates them and flags near-duplicates. Nothing is saved.",
    tags=["Generation"],
)
def generate_quizzes(
    params: GenerateIn,
    catalog: QuizCatalog = Depends(get_catalog),
    generator: QuizGenerator = Depends(get_generator),
) -> List[GeneratedItemOut]:
    try:
        items = generator.generate(params.category, params.difficulty, params.count)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    reviews = review_generated(items, catalog.list())
    return [
        GeneratedItemOut(raw=r.raw, quiz=r.quiz, errors=r.errors, similar=r.similar, can_save=r.can_save)
        for r in reviews
    ]


@app.post(
    "/sessions",
    response_model=QuizReview,
    status_code=status.HTTP_201_CREATED,
    summary="Record a completed quiz session",
    tags=["Sessions"],
)
def record_session(session: SessionIn, recorder: SessionRecorder = Depends(get_recorder)) -> QuizReview:
    return recorder.record_session(
        session.category, session.score, session.total, session.skipped, session.questions
    )


@app.post(
    "/sessions/start",
    response_model=List[ExportedQuiz],
    summary="Pick questions for a quiz session",
    description='Shuffled approved quizzes of the category, limited to the requested or default count ("all" for every one).',
    tags=["Sessions"],
)
def start_session(
    params: SessionStartIn,
    bank: QuizBank = Depends(get_quiz_bank),
    settings_service: SettingsService = Depends(get_settings_service),
) -> List[ExportedQuiz]:
    count = params.count if params.count is not None else settings_service.default_question_count()
    return bank.pick(params.category, count)


@app.post(
    "/sessions/complete",
    response_model=QuizReview,
    status_code=status.HTTP_201_CREATED,
    summary="Score answers and record the session",
    tags=["Sessions"],
)
def complete_session(
    session: SessionCompleteIn,
    bank: QuizBank = Depends(get_quiz_bank),
    recorder: SessionRecorder = Depends(get_recorder),
) -> QuizReview:
    questions = []
    for quiz_id in session.question_ids:
        quiz = bank.find(quiz_id)
        if quiz is None:
            raise InvalidSessionError(f"Unknown question id: {quiz_id}")
        questions.append(quiz)
    return recorder.complete_session(session.category, questions, session.answers)


@app.get("/sessions/recent", response_model=List[HistoryEntry], summary="Most recent sessions", tags=["Sessions"])
def recent_sessions(limit: int = 5, recorder: SessionRecorder = Depends(get_recorder)) -> List[HistoryEntry]:
    return recorder.recent_sessions(limit)


@app.get("/reviews", response_model=List[QuizReview], summary="Session reviews", tags=["Sessions"])
def list_reviews(recorder: SessionRecorder = Depends(get_recorder)) -> List[QuizReview]:
    return recorder.reviews()


@app.get("/reviews/{review_id}", response_model=QuizReview, summary="Session review by id", tags=["Sessions"])
def get_review(review_id: str, recorder: SessionRecorder = Depends(get_recorder)) -> QuizReview:
    review = recorder.review_by_id(review_id)
    if review is None:
        raise HTTPException(status_code=404, detail="Review not found")
    return review


@app.delete("/reviews", summary="Clear session reviews", tags=["Sessions"])
def clear_reviews(recorder: SessionRecorder = Depends(get_recorder)):
    recorder.clear_reviews()
    return {"message": "Reviews cleared"}


@app.get("/statistics", response_model=QuizStatistics, summary="Aggregated statistics", tags=["Sessions"])
def get_statistics(recorder: SessionRecorder = Depends(get_recorder)) -> QuizStatistics:
    return recorder.statistics()


@app.delete("/statistics", summary="Clear quiz history", tags=["Sessions"])
def clear_statistics(recorder: SessionRecorder = Depends(get_recorder)):
    recorder.clear_history()
    return {"message": "Statistics cleared"}


@app.get("/settings", response_model=Settings, summary="Get settings", tags=["System"])
def get_settings(service: SettingsService = Depends(get_settings_service)) -> Settings:
    return service.load()


@app.put("/settings", response_model=Settings, summary="Update settings", tags=["System"])
def update_settings(settings: Settings, service: SettingsService = Depends(get_settings_service)) -> Settings:
    if not service.save(settings):
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Failed to save settings")
    return settings
