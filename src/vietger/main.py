import logging
import os
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from logging.handlers import RotatingFileHandler
from typing import Optional

import uvicorn
from fastapi import (
    Cookie,
    Depends,
    FastAPI,
    Form,
    Query,
    Request,
    Response,
)
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from redis import RedisError

from .config import settings
from .models import (
    AnswerRecord,
    Direction,
    QuizStage,
    SessionData,
    WordAction,
    WordFilter,
)
from .progress import ProgressTracker
from .quiz import QuizSession, QuizStageError, parse_custom_size
from .storage import StringListStore, get_redis, redis_client
from .vocabulary import VocabularyStore, group_by_category

# --- Logging Setup ---
logger = logging.getLogger("vietger")
logger.setLevel(logging.INFO)

if not os.path.exists(settings.LOG_DIR):
    os.makedirs(settings.LOG_DIR)
log_path = os.path.join(settings.LOG_DIR, settings.LOG_FILE)
file_handler = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=3)
file_handler.setFormatter(
    logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
)
logger.addHandler(file_handler)


vocab_store = VocabularyStore(settings.VOCAB_FILE)
tracker = ProgressTracker(StringListStore(redis_client), settings.PROGRESS_KEY)


# --- Lifecycle ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    tracker.load()
    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    debug=settings.DEBUG,
    lifespan=lifespan,
)


@app.exception_handler(QuizStageError)
async def quiz_stage_error_handler(request: Request, exc: QuizStageError):
    return JSONResponse({"error": str(exc)}, status_code=400)


@app.exception_handler(RedisError)
async def redis_error_handler(request: Request, exc: RedisError):
    logger.error(f"Storage unavailable for {request.url.path}", exc_info=exc)
    return JSONResponse({"error": "Storage unavailable"}, status_code=503)


# --- Dependencies ---
def get_vocabulary() -> VocabularyStore:
    return vocab_store


def get_tracker() -> ProgressTracker:
    return tracker


def get_session_id(
    session_id: Optional[str] = Cookie(None, alias=settings.SESSION_COOKIE_NAME),
) -> Optional[str]:
    return session_id


def get_active_session(
    session_id: str = Depends(get_session_id),
    redis=Depends(get_redis),
) -> Optional[SessionData]:
    if not session_id:
        return None

    session_data = redis.get(session_id)
    if not session_data:
        return None

    try:
        session = SessionData.model_validate_json(session_data)
    except ValidationError:
        logger.warning(f"Discarding unreadable session {session_id}")
        redis.delete(session_id)
        return None

    if datetime.now() - session.created_at > timedelta(
        minutes=settings.SESSION_TIMEOUT_MINUTES
    ):
        redis.delete(session_id)
        return None
    return session


def get_quiz(
    session_data: SessionData = Depends(get_active_session),
    vocabulary: VocabularyStore = Depends(get_vocabulary),
    progress: ProgressTracker = Depends(get_tracker),
) -> Optional[QuizSession]:
    if not session_data:
        return None
    return QuizSession(session_data, vocabulary, progress)


def save_session(redis, session_id: str, session_data: SessionData):
    redis.set(
        session_id,
        session_data.model_dump_json(),
        ex=timedelta(minutes=settings.SESSION_TIMEOUT_MINUTES),
    )


def session_expired():
    return JSONResponse({"error": "Session invalid"}, status_code=401)


# --- Routes: progress & word list ---
@app.get("/api/stats")
def get_stats(
    vocabulary: VocabularyStore = Depends(get_vocabulary),
    progress: ProgressTracker = Depends(get_tracker),
):
    return progress.stats(vocabulary.list_all())


@app.get("/api/categories")
def get_categories(vocabulary: VocabularyStore = Depends(get_vocabulary)):
    return vocabulary.get_categories()


@app.get("/api/words")
def list_words(
    word_filter: WordFilter = Query(WordFilter.ALL, alias="filter"),
    search: str = "",
    vocabulary: VocabularyStore = Depends(get_vocabulary),
    progress: ProgressTracker = Depends(get_tracker),
):
    words = progress.filter_words(vocabulary.list_all(), word_filter, search)
    return [
        {
            "category": group.category,
            "title": group.title,
            "words": [
                {**w.model_dump(), "learned": progress.is_learned(w.id)}
                for w in group.words
            ],
        }
        for group in group_by_category(words)
    ]


@app.post("/api/words/{word_id:path}/{action}")
def update_word(
    word_id: str,
    action: WordAction,
    vocabulary: VocabularyStore = Depends(get_vocabulary),
    progress: ProgressTracker = Depends(get_tracker),
):
    if vocabulary.get(word_id) is None:
        return JSONResponse({"error": "Unknown word"}, status_code=404)

    if action is WordAction.LEARN:
        progress.mark_learned(word_id)
    elif action is WordAction.UNLEARN:
        progress.mark_unlearned(word_id)
    else:
        progress.toggle_learned(word_id)
    return {"id": word_id, "learned": progress.is_learned(word_id)}


@app.post("/api/progress/reset")
def reset_progress(progress: ProgressTracker = Depends(get_tracker)):
    progress.reset_all()
    logger.info("All progress reset")
    return {"status": "success"}


# --- Routes: quiz ---
@app.get("/api/quiz")
def get_quiz_state(quiz: QuizSession = Depends(get_quiz)):
    if not quiz:
        return session_expired()

    data = quiz.data
    state = {
        "stage": data.stage,
        "direction": data.direction,
        "direction_label": data.direction.label if data.direction else None,
        "preset_sizes": settings.PRESET_SIZES,
        "total_questions": len(data.sample_ids),
    }
    word = quiz.current_word()
    if word is not None:
        state.update(
            {
                "word_id": word.id,
                "prompt": quiz.current_prompt(),
                "current_index": data.cursor,
                "is_learned": quiz.is_current_learned(),
            }
        )
    return state


@app.post("/api/quiz/direction")
def choose_direction(
    response: Response,
    direction: Direction = Form(...),
    session_id: Optional[str] = Depends(get_session_id),
    quiz: Optional[QuizSession] = Depends(get_quiz),
    vocabulary: VocabularyStore = Depends(get_vocabulary),
    progress: ProgressTracker = Depends(get_tracker),
    redis=Depends(get_redis),
):
    if not quiz:
        session_id = str(uuid.uuid4())
        quiz = QuizSession(SessionData(), vocabulary, progress)
    elif quiz.stage not in (QuizStage.PICK_DIRECTION, QuizStage.PICK_SIZE):
        quiz.restart()

    quiz.choose_direction(direction)
    save_session(redis, session_id, quiz.data)
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=session_id,
        httponly=True,
        samesite="Lax",
    )
    return {"stage": quiz.stage, "direction": direction}


@app.post("/api/quiz/back")
def go_back(
    session_id: str = Depends(get_session_id),
    quiz: QuizSession = Depends(get_quiz),
    redis=Depends(get_redis),
):
    if not quiz:
        return session_expired()
    quiz.back()
    save_session(redis, session_id, quiz.data)
    return {"stage": quiz.stage}


@app.post("/api/quiz/start")
def start_quiz(
    size: Optional[str] = Form(None),
    session_id: str = Depends(get_session_id),
    quiz: QuizSession = Depends(get_quiz),
    redis=Depends(get_redis),
):
    if not quiz:
        return session_expired()
    requested = settings.DEFAULT_SIZE if size is None else parse_custom_size(size)
    if requested is None:
        return JSONResponse({"error": "Invalid size"}, status_code=400)

    quiz.start_session(requested)
    save_session(redis, session_id, quiz.data)
    logger.info(f"Session {session_id}: {len(quiz.data.sample_ids)} questions")
    return {"stage": quiz.stage, "total_questions": len(quiz.data.sample_ids)}


@app.post("/api/quiz/answer", response_model=AnswerRecord)
def submit_answer(
    answer: str = Form(""),
    session_id: str = Depends(get_session_id),
    quiz: QuizSession = Depends(get_quiz),
    redis=Depends(get_redis),
):
    if not quiz:
        return session_expired()
    word = quiz.current_word()
    if word is None:
        return JSONResponse({"error": "No current question"}, status_code=400)

    prompt = quiz.current_prompt()
    is_correct = quiz.check_answer(answer)
    if is_correct:
        save_session(redis, session_id, quiz.data)

    return AnswerRecord(
        word_id=word.id,
        prompt=prompt,
        user_answer=answer,
        is_correct=is_correct,
        acceptable_answers=quiz.acceptable_answers(),
    )


@app.post("/api/quiz/reveal")
def reveal_answers(quiz: QuizSession = Depends(get_quiz)):
    if not quiz:
        return session_expired()
    answers = quiz.acceptable_answers()
    if not answers:
        return JSONResponse({"error": "No current question"}, status_code=400)
    return {"answers": answers, "text": " / ".join(answers)}


@app.post("/api/quiz/mark-learned")
def mark_current_learned(
    session_id: str = Depends(get_session_id),
    quiz: QuizSession = Depends(get_quiz),
    redis=Depends(get_redis),
):
    if not quiz:
        return session_expired()
    if not quiz.mark_current_learned():
        return JSONResponse({"error": "No current question"}, status_code=400)
    save_session(redis, session_id, quiz.data)
    return {"status": "success"}


@app.post("/api/quiz/next")
def next_question(
    session_id: str = Depends(get_session_id),
    quiz: QuizSession = Depends(get_quiz),
    redis=Depends(get_redis),
):
    if not quiz:
        return session_expired()
    quiz.advance()
    save_session(redis, session_id, quiz.data)
    return {"stage": quiz.stage, "current_index": quiz.data.cursor}


@app.get("/api/quiz/summary")
def get_summary(quiz: QuizSession = Depends(get_quiz)):
    if not quiz:
        return session_expired()
    if quiz.stage is not QuizStage.SUMMARY:
        return JSONResponse({"error": "Quiz not finished"}, status_code=400)
    return quiz.summary()


@app.post("/api/quiz/reset")
def reset_quiz(
    response: Response,
    session_id: str = Depends(get_session_id),
    redis=Depends(get_redis),
):
    if session_id:
        redis.delete(session_id)
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return {"status": "success"}


def run():
    uvicorn.run("vietger.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)


if __name__ == "__main__":
    run()
