"""
Shared fixtures: canned practice payloads and a scripted stand-in for Gemini.
"""

import asyncio
import json
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(__file__))

from state import PracticeQuestion, StudyResult


def _question(n: int) -> dict:
    return {
        "question": f"What is ${n} + {n}$?",
        "options": [str(n), str(2 * n), str(3 * n)],
        "correctAnswer": 1,
        "explanation": f"Adding $ {n} $ to itself doubles it.",
        "hint": "Think about doubling.",
    }


@pytest.fixture
def practice_data():
    """Dict form of a valid three-question practice payload."""
    return {
        "title": "Doubling Drill",
        "content": "Warm up with $$x + x = 2x$$ before the questions.",
        "questions": [_question(n) for n in (1, 2, 3)],
    }


@pytest.fixture
def practice_json(practice_data):
    return json.dumps(practice_data)


@pytest.fixture
def practice_result(practice_data):
    return StudyResult(
        title=practice_data["title"],
        content=practice_data["content"],
        mode="practice",
        subject="Mathematics",
        questions=tuple(PracticeQuestion.model_validate(q) for q in practice_data["questions"]),
    )


class FakeGenerator:
    """
    Replays scripted responses in order. An Exception entry is raised instead
    of returned; an asyncio.Event entry blocks until set and then yields the
    next entry.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    async def __call__(self, contract, model):
        self.calls.append((contract, model))
        response = self.responses.pop(0)
        if isinstance(response, asyncio.Event):
            await response.wait()
            response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def make_generator():
    return FakeGenerator
