import asyncio
import time
import uuid
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

import structlog
from langgraph.graph import StateGraph, START, END

from cricstats.domain.catalog.field_catalog import FieldCatalog
from cricstats.domain.errors import AgentError, InputValidationError
from cricstats.domain.memory.conversation_memory import ConversationMemory
from cricstats.domain.models.session_state import SessionSnapshot, SessionState
from cricstats.domain.orchestration.steps.answer_renderer import AnswerRendererStep
from cricstats.domain.orchestration.steps.base_step import PipelineStep
from cricstats.domain.orchestration.steps.classifier import ClassifierStep
from cricstats.domain.orchestration.steps.memory_loader import MemoryLoaderStep
from cricstats.domain.orchestration.steps.memory_writer import MemoryWriterStep
from cricstats.domain.orchestration.steps.query_executor import QueryExecutorStep
from cricstats.domain.orchestration.steps.query_synthesizer import QuerySynthesizerStep
from cricstats.infrastructure.llm.model_client import ModelClient
from cricstats.infrastructure.observability.logging import agent_logger, metrics
from cricstats.infrastructure.persistence.document_store import DocumentStore

logger = structlog.get_logger(__name__)

STEP_LOG_KEY = "executed_steps"
RUN_CONTEXT_KEYS = ("run_id", "session_id", "user_id")


class PipelineEngine:
    """Runs the question pipeline as a linear LangGraph workflow.

    Every step becomes one graph node. The node wrapper evaluates the step's
    precondition, records either the step label or its skip label in the
    append-only step log, and drops ``None`` values so a field that was set is
    never cleared. ``run`` yields one snapshot per completed node.
    """

    def __init__(self, steps: List[PipelineStep], snapshot_delay_ms: int = 0):
        if not steps:
            raise ValueError("Pipeline needs at least one step")
        self.steps = steps
        self.snapshot_delay_ms = snapshot_delay_ms
        self.workflow = self._create_workflow()
        logger.debug("Pipeline built", steps=[step.get_info() for step in steps])

    def _create_workflow(self):
        """Create the linear step graph"""

        workflow = StateGraph(SessionState)

        for step in self.steps:
            workflow.add_node(step.name, self._as_node(step))

        workflow.add_edge(START, self.steps[0].name)
        for current, following in zip(self.steps, self.steps[1:]):
            workflow.add_edge(current.name, following.name)
        workflow.add_edge(self.steps[-1].name, END)

        return workflow.compile()

    def _as_node(self, step: PipelineStep) -> Callable:
        async def node(state: SessionState) -> Dict[str, Any]:
            if not step.should_run(state):
                label = step.skipped_label()
                agent_logger.log_step_event(step.name, label, state.get("session_id"), skipped=True)
                return {STEP_LOG_KEY: [label]}

            started = time.perf_counter()
            result = await step.run(state)
            duration_ms = (time.perf_counter() - started) * 1000

            metrics.record_latency(f"step.{step.name}", duration_ms)
            agent_logger.log_step_event(step.name, result.label, state.get("session_id"), duration_ms=duration_ms)

            updates = {
                key: value
                for key, value in result.updates.items()
                if value is not None and key != STEP_LOG_KEY
            }
            updates[STEP_LOG_KEY] = [result.label]
            return updates

        node.__name__ = step.name
        return node

    @staticmethod
    def _merge(state: Dict[str, Any], update: Dict[str, Any]) -> None:
        for key, value in update.items():
            if key == STEP_LOG_KEY:
                state[key] = state.get(key, []) + list(value)
            elif value is not None:
                state[key] = value

    async def run(
        self,
        question: Any,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> AsyncIterator[SessionSnapshot]:
        """Process one question, yielding a snapshot after every step.

        A blank or non-string question yields a single error snapshot and no
        step runs. A fatal step error ends the sequence with an error snapshot.
        Closing the iterator or cancelling the consuming task cancels the
        pending step.
        """

        # Bound for the whole run so step, memory and metric events carry them
        structlog.contextvars.bind_contextvars(run_id=uuid.uuid4().hex, session_id=session_id, user_id=user_id)
        try:
            error = self._validate_question(question)
            if error is not None:
                logger.warning("Rejected request", error=error.message)
                yield SessionSnapshot(
                    user_id=user_id,
                    session_id=session_id,
                    error=error.message,
                    error_type=error.error_type,
                )
                return

            state: Dict[str, Any] = {"question": question.strip(), "retrieved_records": [], STEP_LOG_KEY: []}
            if user_id:
                state["user_id"] = user_id
            if session_id:
                state["session_id"] = session_id

            metrics.increment_counter("runs.started")
            logger.info("Pipeline run started", question=state["question"][:200])

            stream = self.workflow.astream(dict(state), stream_mode="updates")
            previous = START
            try:
                async for chunk in stream:
                    for node_name, update in chunk.items():
                        update = update or {}
                        self._merge(state, update)
                        agent_logger.log_workflow_transition(
                            session_id,
                            previous,
                            node_name,
                            {"executed_steps": state[STEP_LOG_KEY]},
                        )
                        previous = node_name
                        labels = update.get(STEP_LOG_KEY) or [None]
                        yield SessionSnapshot.from_state(state, step=labels[-1])

                    if self.snapshot_delay_ms:
                        await asyncio.sleep(self.snapshot_delay_ms / 1000)
            except AgentError as e:
                metrics.increment_counter("runs.failed", tags={"error_type": e.error_type})
                logger.error("Pipeline run failed", error=e.message, error_type=e.error_type, step=e.step)
                yield SessionSnapshot.from_state(state, error=e.message, error_type=e.error_type)
                return
            except Exception as e:
                metrics.increment_counter("runs.failed", tags={"error_type": type(e).__name__})
                logger.exception("Unexpected pipeline failure")
                yield SessionSnapshot.from_state(state, error=str(e) or type(e).__name__, error_type=type(e).__name__)
                return
            finally:
                await stream.aclose()

            metrics.increment_counter("runs.completed")
            logger.info("Pipeline run completed", executed_steps=state[STEP_LOG_KEY])
        finally:
            structlog.contextvars.unbind_contextvars(*RUN_CONTEXT_KEYS)

    @staticmethod
    def _validate_question(question: Any) -> Optional[InputValidationError]:
        if question is not None and not isinstance(question, str):
            return InputValidationError("Question must be a string")
        if not question or not question.strip():
            return InputValidationError("Question is required")
        return None


def build_pipeline(
    model: ModelClient,
    store: DocumentStore,
    memory: ConversationMemory,
    catalog: FieldCatalog,
    default_query_limit: int = 10,
    snapshot_delay_ms: int = 0,
) -> PipelineEngine:
    """Assemble the standard six-step question pipeline"""

    return PipelineEngine(
        steps=[
            ClassifierStep(model),
            MemoryLoaderStep(memory),
            QuerySynthesizerStep(model, catalog),
            QueryExecutorStep(store, default_limit=default_query_limit),
            AnswerRendererStep(model),
            MemoryWriterStep(memory),
        ],
        snapshot_delay_ms=snapshot_delay_ms,
    )
