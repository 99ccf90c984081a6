"""
FastAPI Application for the AlphaLight study backend
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from config import settings
from errors import GenerationFailed, InvalidInput, MalformedStructuredResponse, QueryInFlight
from generation import GeminiGenerator
from segments import render_html
from session import StudySession
from state import MODES, SUBJECTS, Mode, Subject

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

ERROR_NOTICE = (
    "The AI study assistant encountered an error. "
    "Please check your connection or try again later."
)

# ============================================================================
# PYDANTIC MODELS
# ============================================================================

class StudyRequest(BaseModel):
    topic: str = Field(...)
    mode: str = Field(default="explain")
    subject: str = Field(default="General")

class AnswerRequest(BaseModel):
    option_index: int = Field(..., ge=0)

class HealthResponse(BaseModel):
    status: str
    version: str = "0.1.0"
    environment: str

class OptionsResponse(BaseModel):
    modes: list[str]
    subjects: list[str]

class OptionView(BaseModel):
    index: int
    html: str
    status: str  # idle | correct | incorrect | dimmed

class QuestionView(BaseModel):
    index: int
    question_html: str
    options: list[OptionView]
    hint: str
    answered: bool
    selected: Optional[int] = None
    explanation_html: Optional[str] = None  # Only once answered

class ScoreView(BaseModel):
    correct: int
    answered: int
    total: int

class ResultView(BaseModel):
    title: str
    mode: Mode
    subject: Subject
    created_at: datetime
    content_html: str
    questions: Optional[list[QuestionView]] = None
    score: Optional[ScoreView] = None

class HistoryEntry(BaseModel):
    index: int
    title: str
    mode: Mode
    subject: Subject
    created_at: datetime
    current: bool

# ============================================================================
# LIFECYCLE & APP
# ============================================================================

study_session: Optional[StudySession] = None

@asynccontextmanager
async def lifespan(app: FastAPI):
    global study_session
    logger.info("Starting up AlphaLight study backend...")
    study_session = StudySession(GeminiGenerator())
    logger.info(
        f"Study session ready (explain={settings.explain_model}, text={settings.text_model}, "
        f"history={settings.history_capacity})"
    )

    yield

    logger.info("Shutting down...")
    study_session.abandon()

app = FastAPI(
    title="AlphaLight Study API",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_session() -> StudySession:
    if study_session is None:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, "Study session not initialized")
    return study_session


def build_result_view(session: StudySession) -> Optional[ResultView]:
    result = session.current
    if result is None:
        return None

    view = ResultView(
        title=result.title,
        mode=result.mode,
        subject=result.subject,
        created_at=result.created_at,
        content_html=render_html(result.content),
    )
    if result.mode != "practice":
        return view

    quiz = session.quiz
    questions = []
    for q_idx, question in enumerate(result.question_list):
        answer = quiz.answer_for(q_idx)
        questions.append(QuestionView(
            index=q_idx,
            question_html=render_html(question.question),
            options=[
                OptionView(index=o_idx, html=render_html(option), status=quiz.option_status(q_idx, o_idx))
                for o_idx, option in enumerate(question.options)
            ],
            hint=question.hint,
            answered=answer is not None,
            selected=answer.selected if answer else None,
            explanation_html=render_html(question.explanation) if answer else None,
        ))

    correct, answered = quiz.score()
    view.questions = questions
    view.score = ScoreView(correct=correct, answered=answered, total=len(questions))
    return view

# ============================================================================
# ENDPOINTS
# ============================================================================

@app.get("/health", response_model=HealthResponse)
async def health_check():
    return HealthResponse(status="healthy", environment=settings.environment)

@app.get("/v1/options", response_model=OptionsResponse)
async def get_options():
    return OptionsResponse(modes=list(MODES), subjects=list(SUBJECTS))

@app.post("/v1/study", response_model=ResultView)
async def study(request: StudyRequest):
    session = get_session()
    logger.info(f"[Study] Mode: {request.mode}, Subject: {request.subject}")

    try:
        result = await session.submit(request.topic, request.mode, request.subject)
    except InvalidInput as e:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, str(e))
    except QueryInFlight as e:
        logger.warning(f"[Study] Rejected: {e}")
        raise HTTPException(status.HTTP_409_CONFLICT, str(e))
    except (GenerationFailed, MalformedStructuredResponse) as e:
        logger.error(f"[Study] Error: {e}", exc_info=True)
        raise HTTPException(status.HTTP_502_BAD_GATEWAY, ERROR_NOTICE)

    if result is None:
        raise HTTPException(status.HTTP_409_CONFLICT, "The session changed before the response arrived")
    return build_result_view(session)

@app.get("/v1/current", response_model=Optional[ResultView])
async def get_current():
    return build_result_view(get_session())

@app.delete("/v1/current", status_code=status.HTTP_204_NO_CONTENT)
async def clear_current():
    get_session().clear_current()

@app.get("/v1/history", response_model=List[HistoryEntry])
async def get_history():
    session = get_session()
    return [
        HistoryEntry(
            index=i,
            title=entry.title,
            mode=entry.mode,
            subject=entry.subject,
            created_at=entry.created_at,
            current=entry is session.current,
        )
        for i, entry in enumerate(session.history.list())
    ]

@app.post("/v1/history/{index}/select", response_model=ResultView)
async def select_history(index: int):
    session = get_session()
    try:
        session.select_history(index)
    except InvalidInput as e:
        raise HTTPException(status.HTTP_404_NOT_FOUND, str(e))
    return build_result_view(session)

@app.post("/v1/quiz/{question_index}/answer", response_model=ResultView)
async def answer_question(question_index: int, request: AnswerRequest):
    session = get_session()
    try:
        session.answer(question_index, request.option_index)
    except InvalidInput as e:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, str(e))
    return build_result_view(session)

@app.post("/v1/session/reset", status_code=status.HTTP_204_NO_CONTENT)
async def reset_session():
    get_session().abandon()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=settings.backend_port, reload=True)
