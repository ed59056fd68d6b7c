"""
Shared fixtures: an in-memory record store seeded with a few players per
format, and a scripted model that replays canned replies in call order.
"""

import json
from typing import Callable, List, Optional, Tuple

import pytest

from cricstats.domain.catalog.field_catalog import FieldCatalog
from cricstats.domain.memory.conversation_memory import ConversationMemory
from cricstats.domain.orchestration.core.pipeline_engine import build_pipeline
from cricstats.infrastructure.llm.model_client import ModelClient
from cricstats.infrastructure.persistence import InMemoryDocumentStore


TEST_PLAYERS = [
    {"Player": "V Kohli (INDIA)", "Span": "2011-2025", "Mat": 123, "Runs": 9230, "HS": "254*", "Avg": 46.85, "100": 30},
    {"Player": "SR Tendulkar (INDIA)", "Span": "1989-2013", "Mat": 200, "Runs": 15921, "HS": "248*", "Avg": 53.78, "100": 51},
    {"Player": "JE Root (ENG)", "Span": "2012-2025", "Mat": 153, "Runs": 13006, "HS": "262", "Avg": 50.8, "100": 36},
]

ODI_PLAYERS = [
    {"Player": "SR Tendulkar (INDIA)", "Runs": 18426, "Avg": 44.83, "SR": 86.23, "100": 49},
    {"Player": "KC Sangakkara (Asia/ICC/SL)", "Runs": 14234, "Avg": 41.98, "SR": 78.86, "100": 25},
    {"Player": "RT Ponting (AUS/ICC)", "Runs": 13704, "Avg": 42.03, "SR": 80.39, "100": 30},
    {"Player": "V Kohli (INDIA)", "Runs": 14181, "Avg": 57.88, "SR": 93.34, "100": 51},
    {"Player": "ST Jayasuriya (Asia/SL)", "Runs": 13430, "Avg": 32.36, "SR": 91.2, "100": 28},
    {"Player": "DPMD Jayawardene (Asia/SL)", "Runs": 12650, "Avg": 33.37, "SR": 78.96, "100": 19},
    {"Player": "Inzamam-ul-Haq (Asia/PAK)", "Runs": 11739, "Avg": 39.52, "SR": 74.24, "100": 10},
]

T20_PLAYERS = [
    {"Player": "RG Sharma (INDIA)", "Runs": 4231, "Avg": 32.05, "SR": 140.89, "100": 5},
    {"Player": "Babar Azam (PAK)", "Runs": 4223, "Avg": 39.83, "SR": 129.22, "100": 3},
]


class ScriptedModel(ModelClient):
    """Model double returning canned replies in order and recording every call"""

    def __init__(self, replies: Optional[List] = None, responder: Optional[Callable] = None):
        self.replies = list(replies or [])
        self.responder = responder
        self.calls: List[Tuple[str, str]] = []

    def script(self, *replies) -> "ScriptedModel":
        self.replies.extend(replies)
        return self

    async def invoke(self, system_instruction: str, user_text: str) -> str:
        self.calls.append((system_instruction, user_text))
        if self.responder is not None:
            return await self.responder(system_instruction, user_text)
        if not self.replies:
            raise AssertionError(f"Unexpected model call: {system_instruction[:60]!r}")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def classifier_reply(is_greeting: bool = False, is_on_topic: bool = True) -> str:
    return json.dumps({"isCricketRelated": is_on_topic, "isGreeting": is_greeting, "reason": "test"})


def query_reply(fmt: str, filter=None, sort=None, limit=10) -> str:
    body = {"format": fmt, "query": {"filter": filter or {}, "sort": sort or {}, "limit": limit}}
    return "```json\n" + json.dumps(body) + "\n```"


async def collect(snapshots) -> list:
    return [snapshot async for snapshot in snapshots]


@pytest.fixture
def store():
    return InMemoryDocumentStore({
        "test": TEST_PLAYERS,
        "odi": ODI_PLAYERS,
        "t20": T20_PLAYERS,
    })


@pytest.fixture
def model():
    return ScriptedModel()


@pytest.fixture
def memory(store, model):
    return ConversationMemory(store, model, history_window=10, compaction_threshold=10, compaction_keep=3)


@pytest.fixture
def catalog(store):
    return FieldCatalog(store, ttl=300)


@pytest.fixture
def engine(model, store, memory, catalog):
    return build_pipeline(model, store, memory, catalog)
