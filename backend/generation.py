"""
Generation capability backed by Google Gemini.

The study core only sees the Generator protocol: a coroutine taking a request
contract and a model name and returning raw text (JSON text when the contract
expects structured output). Every failure collapses to GenerationFailed.
"""

import logging
from typing import Any, Dict, Optional, Protocol

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI

from config import settings
from errors import GenerationFailed
from query_builder import RequestContract

logger = logging.getLogger(__name__)


class Generator(Protocol):
    async def __call__(self, contract: RequestContract, model: str) -> Optional[str]:
        ...


def _message_text(content: Any) -> str:
    """Flattens AIMessage content, which thinking models may return as a list of parts."""
    if isinstance(content, str):
        return content
    parts = []
    for part in content or []:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            parts.append(part.get("text", ""))
    return "".join(parts)


class GeminiGenerator:
    """Calls Gemini through langchain-google-genai, one client per request."""

    def __init__(self, api_key: Optional[str] = None, thinking_budget: Optional[int] = None):
        self.api_key = api_key or settings.google_api_key
        self.thinking_budget = thinking_budget if thinking_budget is not None else settings.thinking_budget

    def _client(self, contract: RequestContract, model: str) -> ChatGoogleGenerativeAI:
        options: Dict[str, Any] = {}
        if contract.extended_reasoning:
            options["thinking_budget"] = self.thinking_budget
        if contract.expects_structured_output:
            options["response_mime_type"] = "application/json"
            options["response_schema"] = contract.output_schema

        return ChatGoogleGenerativeAI(
            model=model,
            google_api_key=self.api_key,
            **options
        )

    async def __call__(self, contract: RequestContract, model: str) -> Optional[str]:
        logger.info(
            f"[Generation] Sending request to model: {model} "
            f"(structured={contract.expects_structured_output}, reasoning={contract.extended_reasoning})"
        )
        try:
            llm = self._client(contract, model)
            result = await llm.ainvoke([
                SystemMessage(content=contract.instructions),
                HumanMessage(content=contract.prompt)
            ])
        except Exception as e:
            logger.error(f"[Generation] Error: {e}", exc_info=True)
            raise GenerationFailed(str(e)) from e

        text = _message_text(result.content)
        logger.info(f"[Generation] Received {len(text)} characters from {model}")
        return text
