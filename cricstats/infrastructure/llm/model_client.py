"""
Language-model collaborator.

A thin, stateless wrapper over a LangChain chat model: one instance is built
at process start and shared by every pipeline run. Retries and the response
timeout are delegated to the underlying client configuration.
"""

import json
import re
from typing import Any, Dict, Optional

import structlog
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage

from cricstats.domain.errors import GenerationFailure, MalformedModelOutput

logger = structlog.get_logger(__name__)

_CODE_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)


def parse_json_object(text: Optional[str], *, step: Optional[str] = None) -> Dict[str, Any]:
    """Parse a model reply that should contain a single JSON object.

    Markdown code fences are stripped first. If the remaining text is not valid
    JSON, the outermost ``{...}`` span is tried before giving up.

    Raises:
        MalformedModelOutput: if no JSON object can be recovered
    """

    if not text or not text.strip():
        raise MalformedModelOutput("Model returned an empty reply", raw=text, step=step)

    cleaned = _CODE_FENCE.sub("", text).strip()
    candidates = [cleaned]
    start, end = cleaned.find("{"), cleaned.rfind("}")
    if 0 <= start < end and (start, end) != (0, len(cleaned) - 1):
        candidates.append(cleaned[start:end + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed

    logger.error("Failed to parse JSON from model", step=step, reply=text[:500])
    raise MalformedModelOutput("Model reply is not a JSON object", raw=text, step=step)


class ModelClient:
    """Stateless ``invoke(system_instruction, user_text) -> text`` collaborator"""

    def __init__(self, chat_model: BaseChatModel):
        self.chat_model = chat_model

    @classmethod
    def from_settings(cls, settings) -> "ModelClient":
        from langchain_openai import ChatOpenAI

        if not settings.api_key:
            logger.error("OPENROUTER_API_KEY/OPENAI_API_KEY is not defined")

        chat_model = ChatOpenAI(
            api_key=settings.api_key or "missing-api-key",
            model=settings.model_name,
            base_url=settings.model_base_url,
            temperature=settings.temperature,
            max_retries=settings.max_retries,
            timeout=settings.timeout,
            max_tokens=settings.max_tokens,
        )
        return cls(chat_model)

    async def invoke(self, system_instruction: str, user_text: str) -> str:
        """Send one system + human message pair and return the reply text

        Raises:
            GenerationFailure: if the model call fails after the client's own retries
        """

        try:
            response = await self.chat_model.ainvoke([
                SystemMessage(content=system_instruction),
                HumanMessage(content=user_text),
            ])
        except Exception as e:
            logger.error("Model invocation failed", error=str(e))
            raise GenerationFailure(f"Model invocation failed: {e}") from e

        content = response.content
        if isinstance(content, list):
            # Some providers return content blocks instead of a plain string
            content = "".join(
                block.get("text", "") if isinstance(block, dict) else str(block)
                for block in content
            )
        return str(content).strip()
