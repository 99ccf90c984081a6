"""
In-memory study session: quiz progress, bounded history and the controller
that ties a query to its result.

The controller is single-flight: while one generation call is outstanding,
further submissions are rejected. Every submission carries a sequence token;
a response whose token is no longer current (the session was abandoned in the
meantime) is discarded instead of committed.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple

from config import settings
from errors import GenerationFailed, InvalidInput, QueryInFlight
from generation import Generator
from query_builder import build_request, select_model
from response_parser import parse_response
from state import Answered, Mode, PracticeQuestion, QuizProgress, StudyResult, Subject

logger = logging.getLogger(__name__)


class QuizState:
    """
    Per-question answer tracking for the currently displayed result.

    Each question moves unanswered -> answered(option) exactly once; later
    selections for an answered question are ignored.
    """

    def __init__(self, questions: Sequence[PracticeQuestion] = ()):
        self.questions: Tuple[PracticeQuestion, ...] = tuple(questions)
        self._progress: QuizProgress = {}

    @property
    def progress(self) -> QuizProgress:
        return dict(self._progress)

    def reset(self) -> QuizProgress:
        self._progress = {}
        return self.progress

    def select(self, question_index: int, option_index: int) -> QuizProgress:
        if not 0 <= question_index < len(self.questions):
            raise InvalidInput(f"No question at index {question_index}")
        options = self.questions[question_index].options
        if not 0 <= option_index < len(options):
            raise InvalidInput(f"Question {question_index} has no option {option_index}")

        if question_index in self._progress:
            logger.debug(f"[Quiz] Question {question_index} already answered, ignoring selection")
            return self.progress

        self._progress[question_index] = Answered(option_index)
        return self.progress

    def answer_for(self, question_index: int) -> Optional[Answered]:
        return self._progress.get(question_index)

    def is_revealed(self, question_index: int) -> bool:
        return question_index in self._progress

    def option_status(self, question_index: int, option_index: int) -> str:
        """One of idle, correct, incorrect, dimmed."""
        answer = self._progress.get(question_index)
        if answer is None:
            return "idle"
        if option_index == self.questions[question_index].correct_answer:
            return "correct"
        if option_index == answer.selected:
            return "incorrect"
        return "dimmed"

    def score(self) -> Tuple[int, int]:
        """Returns (correct, answered)."""
        correct = sum(
            1 for index, answer in self._progress.items()
            if answer.selected == self.questions[index].correct_answer
        )
        return correct, len(self._progress)


@dataclass(frozen=True)
class HistoryStore:
    """Most-recent-first results, truncated to capacity on every push."""
    capacity: int = 15
    entries: Tuple[StudyResult, ...] = ()

    def push(self, result: StudyResult) -> "HistoryStore":
        return replace(self, entries=((result,) + self.entries)[:self.capacity])

    def __len__(self) -> int:
        return len(self.entries)

    def __getitem__(self, index: int) -> StudyResult:
        return self.entries[index]

    def list(self) -> List[StudyResult]:
        return list(self.entries)


class StudySession:
    """
    Owns the current result, history and quiz state for one user.

    Keys:
    - _sequence  → bumped by every submission and by abandon()
    - _inflight  → sequence token of the outstanding call, None when idle
    """

    def __init__(
        self,
        generator: Generator,
        history_capacity: Optional[int] = None,
        timeout_s: Optional[float] = None
    ):
        self.generator = generator
        self.history_capacity = history_capacity or settings.history_capacity
        self.timeout_s = timeout_s if timeout_s is not None else settings.generation_timeout_s
        self.history = HistoryStore(self.history_capacity)
        self.current: Optional[StudyResult] = None
        self.quiz = QuizState()
        self._sequence = 0
        self._inflight: Optional[int] = None

    @property
    def busy(self) -> bool:
        return self._inflight is not None

    async def _generate(self, contract, model: str) -> Optional[str]:
        try:
            call = self.generator(contract, model)
            if self.timeout_s:
                return await asyncio.wait_for(call, self.timeout_s)
            return await call
        except GenerationFailed:
            raise
        except asyncio.TimeoutError as e:
            raise GenerationFailed(f"Generation timed out after {self.timeout_s}s") from e
        except Exception as e:
            raise GenerationFailed(str(e)) from e

    async def submit(self, topic: str, mode: Mode, subject: Subject) -> Optional[StudyResult]:
        """
        Run one query end to end.

        Returns the committed result, or None when the response arrived after
        the session moved on.

        Raises:
            InvalidInput: before any external call.
            QueryInFlight: another query is outstanding.
            GenerationFailed / MalformedStructuredResponse: nothing is committed.
        """
        contract = build_request(topic, mode, subject)
        if self.busy:
            raise QueryInFlight("A study query is already in progress")

        self._sequence += 1
        token = self._sequence
        self._inflight = token
        model = select_model(mode)
        logger.info(f"[Study] Query #{token}: mode={mode}, subject={subject}, model={model}")

        try:
            raw = await self._generate(contract, model)
            result = parse_response(raw, mode, subject, fallback_title=topic)
        finally:
            # abandon() may have handed the gate to a newer query
            if self._inflight == token:
                self._inflight = None

        if token != self._sequence:
            logger.warning(f"[Study] Discarding stale response for query #{token}")
            return None

        self.history = self.history.push(result)
        self._show(result)
        logger.info(f"[Study] Query #{token} committed: {result.title!r} ({len(self.history)} in history)")
        return result

    def _show(self, result: Optional[StudyResult]) -> None:
        self.current = result
        self.quiz = QuizState((result.questions or ()) if result else ())

    def select_history(self, index: int) -> StudyResult:
        """Reselecting always clears quiz progress, even for the current result."""
        if not 0 <= index < len(self.history):
            raise InvalidInput(f"No history entry at index {index}")
        result = self.history[index]
        self._show(result)
        return result

    def clear_current(self) -> None:
        self._show(None)

    def answer(self, question_index: int, option_index: int) -> QuizProgress:
        if self.current is None or self.current.mode != "practice":
            raise InvalidInput("No practice questions are displayed")
        return self.quiz.select(question_index, option_index)

    def abandon(self) -> None:
        """Forget everything; a response still in flight will be discarded."""
        self._sequence += 1
        self._inflight = None
        self.history = HistoryStore(self.history_capacity)
        self._show(None)
        logger.info("[Study] Session abandoned")
