import json
from typing import Any, Dict

import structlog

from cricstats.domain.errors import GenerationFailure
from cricstats.domain.models.session_state import SessionState
from cricstats.domain.orchestration.prompts import (
    GREETING_INSTRUCTION,
    MULTIPLE_RECORDS_INSTRUCTION,
    NO_DATA_ANSWER,
    REFUSAL_ANSWER,
    SINGLE_RECORD_INSTRUCTION,
)
from cricstats.infrastructure.llm.model_client import ModelClient

from .base_step import PipelineStep, StepResult

logger = structlog.get_logger(__name__)


def _display_record(record: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in record.items() if key not in ("_id", "__v")}


class AnswerRendererStep(PipelineStep):
    """Turns the classification outcome or retrieved records into the user-facing answer"""

    name = "format_answer"
    label = "Answer Formatter"
    final_label = "Final Response"

    def __init__(self, model: ModelClient):
        self.model = model

    async def run(self, state: SessionState) -> StepResult:
        if state.get("is_greeting"):
            answer = await self._generate(GREETING_INSTRUCTION, state["question"])
            return StepResult(self.label, {"answer_text": answer})

        if not state.get("is_on_topic"):
            return StepResult(self.final_label, {"answer_text": REFUSAL_ANSWER})

        records = state.get("retrieved_records") or []
        if not records:
            return StepResult(self.final_label, {"answer_text": NO_DATA_ANSWER})

        logger.info("Formatting answer", results=len(records))
        if len(records) == 1:
            instruction = SINGLE_RECORD_INSTRUCTION.format(
                record=json.dumps(_display_record(records[0]), default=str)
            )
        else:
            collection = state.get("selected_collection")
            instruction = MULTIPLE_RECORDS_INSTRUCTION.format(
                count=len(records),
                collection=getattr(collection, "value", collection) or "player",
            )

        answer = await self._generate(instruction, state["question"])
        return StepResult(self.label, {"answer_text": answer})

    async def _generate(self, instruction: str, question: str) -> str:
        try:
            answer = await self.model.invoke(instruction, question)
        except GenerationFailure as e:
            e.step = self.label
            raise
        if not answer:
            raise GenerationFailure("Model returned an empty answer", step=self.label)
        return answer
