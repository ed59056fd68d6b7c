from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from cricstats.application.websocket.connection_manager import ConnectionManager
from cricstats.domain.catalog.field_catalog import FieldCatalog
from cricstats.domain.memory.conversation_memory import ConversationMemory
from cricstats.domain.orchestration.core.pipeline_engine import PipelineEngine, build_pipeline
from cricstats.domain.streaming.streaming_handler import StreamingHandler
from cricstats.infrastructure.config.settings import Settings
from cricstats.infrastructure.llm.model_client import ModelClient
from cricstats.infrastructure.persistence import DocumentStore, build_document_store


@dataclass
class AgentContainer:
    """Process-wide collaborators, built once and shared by every request"""
    settings: Settings
    store: DocumentStore
    model: ModelClient
    memory: ConversationMemory
    catalog: FieldCatalog
    engine: PipelineEngine
    connection_manager: ConnectionManager
    streaming_handler: StreamingHandler

    @classmethod
    def build(
        cls,
        settings: Settings,
        store: Optional[DocumentStore] = None,
        model: Optional[ModelClient] = None,
    ) -> "AgentContainer":
        store = store or build_document_store(settings.mongodb_uri, settings.mongodb_database)
        model = model or ModelClient.from_settings(settings)
        memory = ConversationMemory(
            store,
            model,
            history_window=settings.history_window,
            compaction_threshold=settings.compaction_threshold,
            compaction_keep=settings.compaction_keep,
        )
        catalog = FieldCatalog(store, ttl=settings.field_catalog_ttl)
        engine = build_pipeline(
            model,
            store,
            memory,
            catalog,
            default_query_limit=settings.default_query_limit,
            snapshot_delay_ms=settings.snapshot_delay_ms,
        )
        connection_manager = ConnectionManager()
        return cls(
            settings=settings,
            store=store,
            model=model,
            memory=memory,
            catalog=catalog,
            engine=engine,
            connection_manager=connection_manager,
            streaming_handler=StreamingHandler(engine, connection_manager),
        )


def get_container(request: Request) -> AgentContainer:
    return request.app.state.container
