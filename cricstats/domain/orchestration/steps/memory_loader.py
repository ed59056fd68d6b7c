import structlog

from cricstats.domain.errors import MemoryDegraded
from cricstats.domain.memory.conversation_memory import ConversationMemory
from cricstats.domain.models.session_state import SessionState
from cricstats.infrastructure.observability.logging import metrics

from .base_step import PipelineStep, StepResult

logger = structlog.get_logger(__name__)


class MemoryLoaderStep(PipelineStep):
    """Loads the running summary and recent session history; degrades to empty memory"""

    name = "load_memory"
    label = "Memory Retriever"
    failed_label = "Memory Retriever (Failed)"

    def __init__(self, memory: ConversationMemory):
        self.memory = memory

    async def run(self, state: SessionState) -> StepResult:
        try:
            context = await self.memory.load_context(state.get("user_id"), state.get("session_id"))
        except Exception as e:
            degraded = MemoryDegraded(f"Memory load failed: {e}", step=self.label)
            logger.warning(
                "Continuing without memory",
                error=degraded.message,
                error_type=degraded.error_type,
            )
            metrics.increment_counter("memory.degraded", tags={"operation": "load"})
            return StepResult(self.failed_label, {"memory_summary": "", "memory_history": ""})

        return StepResult(self.label, {
            "memory_summary": context.summary,
            "memory_history": context.history,
        })
