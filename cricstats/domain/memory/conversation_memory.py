"""
Conversation memory: persisted turns plus one running summary per user.

Storage stays bounded: after every recorded turn the user's total turn count is
checked, and once it reaches the compaction threshold all of the user's turns
are folded into the running summary and every turn except the most recent few
is deleted. Compaction is per user, across all of that user's sessions.
"""

from typing import Any, Dict, Iterable, List, Optional

import structlog

from cricstats.domain.models.conversation import (
    ConversationTurn,
    MemoryContext,
    SessionInfo,
    SessionSummary,
    utcnow,
)
from cricstats.domain.orchestration.prompts import COMPACTION_INSTRUCTION
from cricstats.infrastructure.llm.model_client import ModelClient
from cricstats.infrastructure.observability.logging import agent_logger
from cricstats.infrastructure.persistence.document_store import DocumentStore

logger = structlog.get_logger(__name__)

TURNS_COLLECTION = "conversations"
SUMMARIES_COLLECTION = "summaries"

# Newest first; _id breaks ties between turns created in the same instant
NEWEST_FIRST = [("created_at", -1), ("_id", -1)]
OLDEST_FIRST = [("created_at", 1), ("_id", 1)]


def render_transcript(turns: Iterable[ConversationTurn]) -> str:
    """Alternating ``User:`` / ``Assistant:`` lines, in the order given"""

    lines = []
    for turn in turns:
        lines.append(f"User: {turn.question}")
        lines.append(f"Assistant: {turn.answer}")
    return "\n".join(lines)


class ConversationMemory:
    """Reads, writes and compacts conversation turns in the record store"""

    def __init__(
        self,
        store: DocumentStore,
        model: ModelClient,
        history_window: int = 10,
        compaction_threshold: int = 10,
        compaction_keep: int = 3,
    ):
        self.turns = store.collection(TURNS_COLLECTION)
        self.summaries = store.collection(SUMMARIES_COLLECTION)
        self.model = model
        self.history_window = history_window
        self.compaction_threshold = compaction_threshold
        self.compaction_keep = compaction_keep

    async def load_context(self, user_id: Optional[str], session_id: Optional[str]) -> MemoryContext:
        """Running summary for the user and the recent turns of the session"""

        summary = await self.get_summary(user_id) if user_id else None
        recent = await self.recent_turns(session_id) if session_id else []
        return MemoryContext(
            summary=summary.summary if summary else "",
            history=render_transcript(recent),
        )

    async def get_summary(self, user_id: str) -> Optional[SessionSummary]:
        document = await self.summaries.find_one({"user_id": user_id})
        if not document:
            return None
        return SessionSummary(**document)

    async def save_summary(self, user_id: str, summary: str) -> SessionSummary:
        """Create the user's summary or overwrite the existing one"""

        document = await self.summaries.find_one_and_upsert(
            {"user_id": user_id},
            {"summary": summary, "updated_at": utcnow()},
        )
        return SessionSummary(**document)

    async def recent_turns(self, session_id: str, limit: Optional[int] = None) -> List[ConversationTurn]:
        """The latest turns of a session, oldest first"""

        documents = await self.turns.find(
            {"session_id": session_id},
            sort=NEWEST_FIRST,
            limit=limit or self.history_window,
        )
        return [ConversationTurn(**document) for document in reversed(documents)]

    async def count_turns(self, user_id: str) -> int:
        return await self.turns.count_documents({"user_id": user_id})

    async def append_turn(self, turn: ConversationTurn) -> Any:
        return await self.turns.insert_one(turn.to_document())

    async def record_turn(
        self,
        user_id: str,
        session_id: Optional[str],
        question: str,
        answer: str,
        records: Optional[List[Dict[str, Any]]] = None,
    ) -> bool:
        """Persist a turn and compact the user's memory if it grew too large.

        Returns True when a compaction ran.
        """

        await self.append_turn(ConversationTurn(
            user_id=user_id,
            session_id=session_id,
            question=question,
            answer=answer,
            records=records or None,
        ))

        count = await self.count_turns(user_id)
        agent_logger.log_memory_event(user_id, "turn_recorded", {"session_id": session_id, "turn_count": count})
        if count < self.compaction_threshold:
            return False

        await self.compact(user_id)
        return True

    async def compact(self, user_id: str) -> SessionSummary:
        """Fold all of the user's turns into the summary, then prune to the newest few"""

        documents = await self.turns.find({"user_id": user_id}, sort=OLDEST_FIRST)
        transcript = render_transcript(ConversationTurn(**document) for document in documents)

        existing = await self.get_summary(user_id)
        instruction = COMPACTION_INSTRUCTION.format(summary=existing.summary if existing else "None")
        summary_text = await self.model.invoke(instruction, transcript)
        summary = await self.save_summary(user_id, summary_text)

        keep = await self.turns.find({"user_id": user_id}, sort=NEWEST_FIRST, limit=self.compaction_keep)
        keep_ids = [document["_id"] for document in keep]
        deleted = await self.turns.delete_many({"user_id": user_id, "_id": {"$nin": keep_ids}})

        agent_logger.log_memory_event(
            user_id,
            "compacted",
            {"summarized_turns": len(documents), "deleted_turns": deleted, "kept_turns": len(keep_ids)},
        )
        return summary

    async def list_sessions(self, user_id: str) -> List[SessionInfo]:
        """Sessions of a user that still have stored turns, most recently active first"""

        documents = await self.turns.find({"user_id": user_id}, sort=OLDEST_FIRST)
        sessions: Dict[Optional[str], SessionInfo] = {}
        for document in documents:
            turn = ConversationTurn(**document)
            info = sessions.get(turn.session_id)
            if info is None:
                sessions[turn.session_id] = SessionInfo(
                    session_id=turn.session_id,
                    turn_count=1,
                    first_question=turn.question,
                    last_activity=turn.created_at,
                )
            else:
                sessions[turn.session_id] = info.model_copy(update={
                    "turn_count": info.turn_count + 1,
                    "last_activity": turn.created_at,
                })
        return sorted(sessions.values(), key=lambda info: info.last_activity, reverse=True)

    async def session_history(self, user_id: str, session_id: str) -> List[ConversationTurn]:
        documents = await self.turns.find({"user_id": user_id, "session_id": session_id}, sort=OLDEST_FIRST)
        return [ConversationTurn(**document) for document in documents]

    async def delete_session(self, user_id: str, session_id: str) -> int:
        deleted = await self.turns.delete_many({"user_id": user_id, "session_id": session_id})
        agent_logger.log_memory_event(user_id, "session_deleted", {"session_id": session_id, "deleted_turns": deleted})
        return deleted
