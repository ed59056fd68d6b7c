import structlog

from cricstats.domain.errors import MemoryDegraded
from cricstats.domain.memory.conversation_memory import ConversationMemory
from cricstats.domain.models.session_state import SessionState
from cricstats.infrastructure.observability.logging import metrics

from .base_step import PipelineStep, StepResult

logger = structlog.get_logger(__name__)


class MemoryWriterStep(PipelineStep):
    """Persists the finished turn and compacts memory; never fails the run"""

    name = "save_memory"
    label = "Memory Writer"
    failed_label = "Memory Writer (Failed)"

    def __init__(self, memory: ConversationMemory):
        self.memory = memory

    def should_run(self, state: SessionState) -> bool:
        return bool(state.get("user_id")) and bool(state.get("answer_text"))

    async def run(self, state: SessionState) -> StepResult:
        try:
            compacted = await self.memory.record_turn(
                user_id=state["user_id"],
                session_id=state.get("session_id"),
                question=state["question"],
                answer=state["answer_text"],
                records=state.get("retrieved_records"),
            )
        except Exception as e:
            degraded = MemoryDegraded(f"Memory write failed: {e}", step=self.label)
            logger.warning(
                "Answer delivered without persisting memory",
                error=degraded.message,
                error_type=degraded.error_type,
            )
            metrics.increment_counter("memory.degraded", tags={"operation": "write"})
            return StepResult(self.failed_label)

        if compacted:
            metrics.increment_counter("memory.compactions")
        return StepResult(self.label)
