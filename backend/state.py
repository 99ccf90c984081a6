"""
Study State Definition for the AlphaLight study backend.

This module defines the value types shared by the segmentation pipeline, the
query/response contract and the session controller. Everything here is
immutable once constructed.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import ClassVar, Dict, List, Literal, Optional, Tuple, Union, get_args

from pydantic import BaseModel, ConfigDict, Field, StrictInt, model_validator


Mode = Literal["explain", "summarize", "practice"]
Subject = Literal["General", "Mathematics", "Science", "History", "Literature", "Computer Science"]

MODES: Tuple[str, ...] = get_args(Mode)
SUBJECTS: Tuple[str, ...] = get_args(Subject)


# ============================================================================
# SEGMENTS
# ============================================================================

@dataclass(frozen=True)
class TextSegment:
    """Plain text with formatting markers already stripped."""
    content: str
    kind: ClassVar[str] = "text"

    def source(self) -> str:
        return self.content


@dataclass(frozen=True)
class InlineMath:
    notation: str
    kind: ClassVar[str] = "inlineMath"

    def source(self) -> str:
        return f"${self.notation}$"


@dataclass(frozen=True)
class BlockMath:
    notation: str
    kind: ClassVar[str] = "blockMath"

    def source(self) -> str:
        return f"$${self.notation}$$"


Segment = Union[TextSegment, InlineMath, BlockMath]


# ============================================================================
# STUDY RESULTS
# ============================================================================

class PracticeQuestion(BaseModel):
    """A multiple-choice question with its answer key."""
    model_config = ConfigDict(frozen=True)

    question: str
    options: Tuple[str, ...] = Field(..., min_length=2)
    correct_answer: StrictInt = Field(..., alias="correctAnswer")
    explanation: str
    hint: str

    @model_validator(mode="after")
    def check_answer_in_range(self) -> "PracticeQuestion":
        if not 0 <= self.correct_answer < len(self.options):
            raise ValueError(
                f"correctAnswer {self.correct_answer} is outside 0..{len(self.options) - 1}"
            )
        return self


class StudyResult(BaseModel):
    """
    The validated outcome of one completed query.

    Practice results always carry a non-empty question list; explain and
    summarize results never carry one.
    """
    model_config = ConfigDict(frozen=True)

    title: str
    content: str
    mode: Mode
    subject: Subject
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    questions: Optional[Tuple[PracticeQuestion, ...]] = None

    @model_validator(mode="after")
    def check_questions_match_mode(self) -> "StudyResult":
        if self.mode == "practice":
            if not self.questions:
                raise ValueError("practice results need at least one question")
        elif self.questions is not None:
            raise ValueError(f"{self.mode} results cannot carry questions")
        return self

    @property
    def question_list(self) -> List[PracticeQuestion]:
        return list(self.questions or ())


# ============================================================================
# QUIZ PROGRESS
# ============================================================================

@dataclass(frozen=True)
class Answered:
    """Terminal state of a question: the option the user picked."""
    selected: int


# Missing key means unanswered; a question is revealed iff it is answered.
QuizProgress = Dict[int, Answered]
