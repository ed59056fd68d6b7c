import structlog

from cricstats.domain.errors import RetrievalFailure
from cricstats.domain.models.session_state import CollectionName, SessionState, StructuredQuery
from cricstats.infrastructure.persistence.document_store import DocumentStore

from .base_step import PipelineStep, StepResult

logger = structlog.get_logger(__name__)


class QueryExecutorStep(PipelineStep):
    """Runs the structured query against the selected record collection"""

    name = "execute_query"
    label = "Query Executor"

    def __init__(self, store: DocumentStore, default_limit: int = 10):
        self.store = store
        self.default_limit = default_limit

    def should_run(self, state: SessionState) -> bool:
        return (
            not state.get("is_greeting")
            and bool(state.get("is_on_topic"))
            and bool(state.get("structured_query"))
        )

    async def run(self, state: SessionState) -> StepResult:
        collection = CollectionName.parse(state["selected_collection"])
        query = StructuredQuery(**state["structured_query"])
        limit = query.limit or self.default_limit

        try:
            records = await self.store.collection(collection.value).find(
                query.filter,
                sort=query.sort,
                limit=limit,
            )
        except Exception as e:
            logger.error("Query execution failed", collection=collection.value, error=str(e))
            raise RetrievalFailure(f"Query against '{collection.value}' failed: {e}", step=self.label) from e

        logger.info("Query executed", collection=collection.value, results=len(records))
        return StepResult(self.label, {"retrieved_records": records})
