from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConversationTurn(BaseModel):
    """One completed question/answer exchange"""
    id: Optional[Any] = Field(None, alias="_id", description="Store-assigned identifier")
    user_id: str
    session_id: Optional[str] = None
    question: str
    answer: str
    records: Optional[List[Dict[str, Any]]] = Field(None, description="Records retrieved for this turn")
    created_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(populate_by_name=True)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"id"})


class SessionSummary(BaseModel):
    """Running summary of a user's compacted conversation turns"""
    user_id: str
    summary: str
    updated_at: datetime = Field(default_factory=utcnow)


class SessionInfo(BaseModel):
    """Session listing entry"""
    session_id: Optional[str]
    turn_count: int
    first_question: str
    last_activity: datetime


class MemoryContext(BaseModel):
    """What the memory loader hands to the query synthesizer"""
    summary: str = ""
    history: str = ""
