"""
Response decoding for the generation capability.

Free-text modes are wrapped as-is. Practice mode is decoded into a
PracticePayload whose every required field is validated before a StudyResult
is built; anything else is a MalformedStructuredResponse.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from errors import EmptyResponse, MalformedStructuredResponse
from state import Mode, PracticeQuestion, StudyResult, Subject

logger = logging.getLogger(__name__)

DEFAULT_PRACTICE_TITLE = "Practice Questions"


class PracticePayload(BaseModel):
    """Structured output for practice mode."""
    title: Optional[str] = None
    content: Optional[str] = None
    questions: List[PracticeQuestion] = Field(..., min_length=1)


@dataclass(frozen=True)
class SchemaError:
    reason: str


DecodeOutcome = Union[PracticePayload, SchemaError]


def fix_backslashes(s: str) -> str:
    """
    Escape LaTeX backslashes that are not valid JSON escapes.

    \\b \\f \\n \\r \\t followed by a lowercase letter are LaTeX commands (\\frac, \\times,
    \\nabla), not control characters, so they are escaped too.
    """
    result = []
    i = 0
    while i < len(s):
        if s[i] == '\\' and i + 1 < len(s):
            next_char = s[i + 1]
            after = s[i + 2] if i + 2 < len(s) else ''
            if next_char in '"\\/':
                keep = True
            elif next_char == 'u':
                keep = re.fullmatch(r'[0-9a-fA-F]{4}', s[i + 2:i + 6]) is not None
            elif next_char in 'bfnrt':
                keep = not after.islower()
            else:
                keep = False

            if keep:
                result.append(s[i:i + 2])
                i += 2
            else:
                result.append('\\\\')
                i += 1
        else:
            result.append(s[i])
            i += 1
    return ''.join(result)


def extract_json_object(text: str) -> Optional[str]:
    """Returns the first balanced {...} span, skipping code fences or chatter around it."""
    start_idx = text.find('{')
    if start_idx == -1:
        return None

    brace_count = 0
    for i, char in enumerate(text[start_idx:], start_idx):
        if char == '{':
            brace_count += 1
        elif char == '}':
            brace_count -= 1
            if brace_count == 0:
                return text[start_idx:i + 1]
    return None


def load_json(raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        candidate = extract_json_object(raw)
        if candidate is None:
            raise
        logger.warning("[ResponseParser] Strict JSON decode failed, retrying with repaired payload")
        return json.loads(fix_backslashes(candidate))


def _describe(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc']) or 'payload'}: {err['msg']}"
        for err in error.errors()
    )


def decode_practice_payload(raw: str) -> DecodeOutcome:
    try:
        data = load_json(raw)
    except json.JSONDecodeError as e:
        return SchemaError(f"invalid JSON: {e}")

    if not isinstance(data, dict):
        return SchemaError(f"expected a JSON object, got {type(data).__name__}")

    try:
        return PracticePayload.model_validate(data)
    except ValidationError as e:
        return SchemaError(_describe(e))


def parse_response(
    raw: Optional[str],
    mode: Mode,
    subject: Subject,
    fallback_title: str
) -> StudyResult:
    """
    Build a StudyResult from the raw model output.

    Raises:
        EmptyResponse: raw is None or empty.
        MalformedStructuredResponse: practice payload failed decoding or validation.
    """
    if not raw:
        raise EmptyResponse("Empty response from AI.")

    if mode != "practice":
        return StudyResult(title=fallback_title, content=raw, mode=mode, subject=subject)

    outcome = decode_practice_payload(raw)
    if isinstance(outcome, SchemaError):
        logger.warning(f"[ResponseParser] Rejected practice payload: {outcome.reason}")
        raise MalformedStructuredResponse(outcome.reason)

    return StudyResult(
        title=outcome.title or DEFAULT_PRACTICE_TITLE,
        content=outcome.content or "",
        mode="practice",
        subject=subject,
        questions=tuple(outcome.questions),
    )
