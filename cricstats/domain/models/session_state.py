import operator
from typing import Annotated, Any, Dict, List, Optional, TypedDict
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from enum import Enum


class CollectionName(str, Enum):
    """Record collections the query synthesizer can target"""
    TEST = "test"
    ODI = "odi"
    T20 = "t20"

    @classmethod
    def parse(cls, value: Any) -> "CollectionName":
        """Accept ``"ODI"``, ``"t20"``, ``" Test "``; raise ValueError otherwise"""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Not a collection name: {value!r}")
        return cls(value.strip().lower())


class StructuredQuery(BaseModel):
    """Filter + sort + limit triple produced by the query synthesizer"""
    filter: Dict[str, Any] = Field(default_factory=dict)
    sort: Dict[str, Any] = Field(default_factory=dict)
    limit: Optional[int] = Field(None, ge=0, description="Falls back to the executor default when missing or zero")

    @field_validator("filter", "sort", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return {} if value is None else value


class SessionState(TypedDict, total=False):
    """State threaded through one pipeline run.

    ``executed_steps`` is reduced with list concatenation so the graph, not the
    steps, owns the append. Every other key is written at most once per run.
    """
    question: str
    user_id: Optional[str]
    session_id: Optional[str]
    is_on_topic: bool
    is_greeting: bool
    memory_summary: str
    memory_history: str
    selected_collection: CollectionName
    structured_query: Dict[str, Any]
    retrieved_records: List[Dict[str, Any]]
    answer_text: str
    executed_steps: Annotated[List[str], operator.add]


class SessionSnapshot(BaseModel):
    """Immutable projection of SessionState emitted to the caller after a step"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    question: Optional[str] = None
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    is_on_topic: Optional[bool] = None
    is_greeting: Optional[bool] = None
    selected_collection: Optional[CollectionName] = None
    structured_query: Optional[Dict[str, Any]] = None
    retrieved_records: List[Dict[str, Any]] = Field(default_factory=list)
    answer_text: Optional[str] = None
    executed_steps: List[str] = Field(default_factory=list)
    step: Optional[str] = Field(None, description="Label recorded by the step that produced this snapshot")
    error: Optional[str] = None
    error_type: Optional[str] = None

    @classmethod
    def from_state(cls, state: Dict[str, Any], **extra: Any) -> "SessionSnapshot":
        fields = {key: state[key] for key in cls.model_fields if key in state}
        fields.update(extra)
        return cls(**fields)

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_payload(self) -> Dict[str, Any]:
        """JSON-ready dict with camelCase keys and unset fields omitted"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
