"""LLM access via LiteLLM: structured JSON generation with token accounting."""

import json
import logging
import os
import re
from dataclasses import dataclass
from typing import Any

import litellm
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_litellm import ChatLiteLLM

from app.config import settings

logger = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


class AIServiceError(Exception):
    """The model could not be reached or returned unusable output."""


@dataclass
class LLMResult:
    data: dict[str, Any]
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    estimated_cost: float = 0.0


def _export_api_keys() -> None:
    # LiteLLM reads provider keys from the environment
    if settings.anthropic_api_key:
        os.environ["ANTHROPIC_API_KEY"] = settings.anthropic_api_key
    if settings.gemini_api_key:
        os.environ["GEMINI_API_KEY"] = settings.gemini_api_key
    if settings.openai_api_key:
        os.environ["OPENAI_API_KEY"] = settings.openai_api_key


def get_llm() -> BaseChatModel:
    """FastAPI dependency: the chat model used for narratives.

    Create LLM via LiteLLM (supports Claude, Gemini, GPT via unified API).
    """
    _export_api_keys()
    return ChatLiteLLM(
        model=settings.default_llm_model,
        temperature=settings.narrative_temperature,
        max_tokens=settings.narrative_max_tokens,
    )


def extract_json(text: str) -> dict[str, Any]:
    """Pull the first JSON object out of a model reply (tolerates code fences and prose).

    Raises:
        AIServiceError: no JSON object could be parsed.
    """
    match = _JSON_OBJECT.search(text or "")
    if match is None:
        raise AIServiceError("No JSON found in model response")
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise AIServiceError(f"Malformed JSON in model response: {e}") from e
    if not isinstance(parsed, dict):
        raise AIServiceError("Model response JSON is not an object")
    return parsed


def estimate_cost(model: str, input_tokens: int, output_tokens: int) -> float:
    """USD cost from LiteLLM's price table; 0.0 for models it does not know."""
    try:
        prompt_cost, completion_cost = litellm.cost_per_token(
            model=model,
            prompt_tokens=input_tokens,
            completion_tokens=output_tokens,
        )
    except Exception:
        logger.debug("No LiteLLM pricing for model %s", model)
        return 0.0
    return round(prompt_cost + completion_cost, 6)


def _content_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(part.get("text", "") if isinstance(part, dict) else str(part) for part in content)
    return str(content)


async def generate_json(llm: BaseChatModel, system_prompt: str, user_prompt: str) -> LLMResult:
    """Ask ``llm`` for a JSON object and return it with token usage.

    Raises:
        AIServiceError: the call failed or the reply was not a JSON object.
    """
    try:
        msg = await llm.ainvoke([SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)])
    except Exception as e:
        logger.error("LLM call failed: %s", e)
        raise AIServiceError("LLM call failed") from e

    data = extract_json(_content_text(msg.content))

    # Extract token usage from AIMessage response metadata
    usage_meta = (msg.response_metadata or {}).get("token_usage") or {}
    input_tokens = int(usage_meta.get("prompt_tokens", 0) or 0)
    output_tokens = int(usage_meta.get("completion_tokens", 0) or 0)
    model = getattr(llm, "model", None) or settings.default_llm_model

    return LLMResult(
        data=data,
        model=model,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        estimated_cost=estimate_cost(model, input_tokens, output_tokens),
    )
