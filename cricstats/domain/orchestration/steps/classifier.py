import structlog

from cricstats.domain.errors import MalformedModelOutput
from cricstats.domain.models.session_state import SessionState
from cricstats.domain.orchestration.prompts import CLASSIFIER_INSTRUCTION
from cricstats.infrastructure.llm.model_client import ModelClient, parse_json_object

from .base_step import PipelineStep, StepResult

logger = structlog.get_logger(__name__)


class ClassifierStep(PipelineStep):
    """Labels the question as greeting and/or cricket-related"""

    name = "check_relevancy"
    label = "Relevancy Checker"

    def __init__(self, model: ModelClient):
        self.model = model

    async def run(self, state: SessionState) -> StepResult:
        reply = await self.model.invoke(CLASSIFIER_INSTRUCTION, state["question"])
        result = parse_json_object(reply, step=self.label)

        is_on_topic = result.get("isCricketRelated", result.get("isOnTopic"))
        is_greeting = result.get("isGreeting")
        if not isinstance(is_on_topic, bool) or not isinstance(is_greeting, bool):
            raise MalformedModelOutput(
                "Classifier reply is missing isCricketRelated/isGreeting booleans",
                raw=reply,
                step=self.label,
            )

        logger.info(
            "Question classified",
            is_greeting=is_greeting,
            is_on_topic=is_on_topic,
            reason=result.get("reason"),
        )
        return StepResult(self.label, {"is_greeting": is_greeting, "is_on_topic": is_on_topic})
