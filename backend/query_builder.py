"""
Request contract construction.

Turns (topic, mode, subject) into the instruction/schema bundle sent to the
generation capability. Only practice mode asks for structured JSON output;
only explain mode asks for an extended reasoning budget.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from config import settings
from errors import InvalidInput
from state import MODES, SUBJECTS, Mode, Subject


SYSTEM_INSTRUCTIONS = """You are an expert AI tutor specialized in {subject}. Provide direct, helpful responses for the user's query.

Rules for your response:
1. DO NOT introduce yourself or say "I am AlphaLight" or "As an AI tutor...".
2. DO NOT use boilerplate greetings or conclusions.
3. Start immediately with the content (explanation, summary, or questions).
4. Use LaTeX for math/formulas ($ for inline, $$ for block).
5. Avoid Markdown characters like * or # in your final text.
6. If in practice mode, provide high-quality educational questions."""


PRACTICE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "title": {"type": "string"},
        "content": {"type": "string"},
        "questions": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "question": {"type": "string"},
                    "options": {"type": "array", "items": {"type": "string"}},
                    "correctAnswer": {"type": "integer"},
                    "explanation": {"type": "string"},
                    "hint": {"type": "string"},
                },
                "required": ["question", "options", "correctAnswer", "explanation", "hint"],
            },
        },
    },
    "required": ["title", "content", "questions"],
}


@dataclass(frozen=True)
class RequestContract:
    """Everything the generation capability needs for one query."""
    instructions: str
    prompt: str
    expects_structured_output: bool
    output_schema: Optional[Dict[str, Any]]
    extended_reasoning: bool


def validate_query(topic: str, mode: str, subject: str) -> str:
    """Returns the stripped topic or raises InvalidInput."""
    if not topic or not topic.strip():
        raise InvalidInput("Topic must not be empty")
    if mode not in MODES:
        raise InvalidInput(f"Unknown mode {mode!r}; expected one of {', '.join(MODES)}")
    if subject not in SUBJECTS:
        raise InvalidInput(f"Unknown subject {subject!r}; expected one of {', '.join(SUBJECTS)}")
    return topic.strip()


def build_request(topic: str, mode: Mode, subject: Subject) -> RequestContract:
    validate_query(topic, mode, subject)
    structured = mode == "practice"
    return RequestContract(
        instructions=SYSTEM_INSTRUCTIONS.format(subject=subject),
        prompt=f"Topic: {topic}. Mode: {mode}.",
        expects_structured_output=structured,
        output_schema=PRACTICE_SCHEMA if structured else None,
        extended_reasoning=mode == "explain",
    )


def select_model(mode: Mode) -> str:
    """Explain mode goes to the higher-capability model, everything else to the fast one."""
    return settings.explain_model if mode == "explain" else settings.text_model
