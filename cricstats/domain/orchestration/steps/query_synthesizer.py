import structlog
from pydantic import ValidationError

from cricstats.domain.catalog.field_catalog import FieldCatalog
from cricstats.domain.errors import MalformedModelOutput
from cricstats.domain.models.session_state import CollectionName, SessionState, StructuredQuery
from cricstats.domain.orchestration.prompts import QUERY_SYNTHESIZER_INSTRUCTION
from cricstats.infrastructure.llm.model_client import ModelClient, parse_json_object

from .base_step import PipelineStep, StepResult

logger = structlog.get_logger(__name__)


class QuerySynthesizerStep(PipelineStep):
    """Translates the question and memory context into a structured find query"""

    name = "generate_query"
    label = "Query Generator"

    def __init__(self, model: ModelClient, catalog: FieldCatalog):
        self.model = model
        self.catalog = catalog

    def should_run(self, state: SessionState) -> bool:
        return not state.get("is_greeting") and bool(state.get("is_on_topic"))

    async def build_instruction(self, state: SessionState) -> str:
        fields = await self.catalog.all_fields()
        return QUERY_SYNTHESIZER_INSTRUCTION.format(
            test_fields=", ".join(fields[CollectionName.TEST]),
            odi_fields=", ".join(fields[CollectionName.ODI]),
            t20_fields=", ".join(fields[CollectionName.T20]),
            summary=state.get("memory_summary") or "None",
            history=state.get("memory_history") or "None",
        )

    async def run(self, state: SessionState) -> StepResult:
        instruction = await self.build_instruction(state)
        reply = await self.model.invoke(instruction, state["question"])
        result = parse_json_object(reply, step=self.label)

        try:
            collection = CollectionName.parse(result.get("format"))
        except ValueError:
            raise MalformedModelOutput(
                f"Unknown collection in model reply: {result.get('format')!r}",
                raw=reply,
                step=self.label,
            )

        raw_query = result.get("query")
        if not isinstance(raw_query, dict):
            raise MalformedModelOutput("Model reply has no query object", raw=reply, step=self.label)
        try:
            query = StructuredQuery(**raw_query)
        except (ValidationError, TypeError) as e:
            raise MalformedModelOutput(f"Invalid query in model reply: {e}", raw=reply, step=self.label)

        logger.info("Query generated", collection=collection.value, query=query.model_dump())
        return StepResult(self.label, {
            "selected_collection": collection,
            "structured_query": query.model_dump(),
        })
