"""
Tests for conversation memory: context loading, turn recording and compaction.
"""

from datetime import datetime, timedelta, timezone

import pytest

from cricstats.domain.memory.conversation_memory import ConversationMemory, render_transcript
from cricstats.domain.models.conversation import ConversationTurn


START = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


async def add_turns(memory, count, user_id="u1", session_id="s1", offset=0):
    for index in range(offset, offset + count):
        await memory.append_turn(ConversationTurn(
            user_id=user_id,
            session_id=session_id,
            question=f"q{index}",
            answer=f"a{index}",
            created_at=START + timedelta(minutes=index),
        ))


class TestLoadContext:

    @pytest.mark.asyncio
    async def test_empty_memory(self, memory):
        context = await memory.load_context("u1", "s1")

        assert context.summary == ""
        assert context.history == ""

    @pytest.mark.asyncio
    async def test_missing_ids_load_nothing(self, memory):
        await add_turns(memory, 2)
        await memory.save_summary("u1", "Likes Test cricket.")

        context = await memory.load_context(None, None)

        assert context.summary == ""
        assert context.history == ""

    @pytest.mark.asyncio
    async def test_history_is_oldest_first(self, memory):
        await add_turns(memory, 2)

        context = await memory.load_context("u1", "s1")

        assert context.history == "User: q0\nAssistant: a0\nUser: q1\nAssistant: a1"

    @pytest.mark.asyncio
    async def test_history_window_keeps_latest_turns(self, store, model):
        memory = ConversationMemory(store, model, history_window=2, compaction_threshold=100)
        await add_turns(memory, 5)

        context = await memory.load_context("u1", "s1")

        assert context.history == "User: q3\nAssistant: a3\nUser: q4\nAssistant: a4"

    @pytest.mark.asyncio
    async def test_history_is_scoped_to_session(self, memory):
        await add_turns(memory, 1, session_id="s1")
        await add_turns(memory, 1, session_id="s2", offset=1)

        context = await memory.load_context("u1", "s2")

        assert context.history == "User: q1\nAssistant: a1"

    @pytest.mark.asyncio
    async def test_loading_is_idempotent(self, memory):
        await add_turns(memory, 3)
        await memory.save_summary("u1", "Asked about Kohli.")

        first = await memory.load_context("u1", "s1")
        second = await memory.load_context("u1", "s1")

        assert first == second
        assert await memory.count_turns("u1") == 3


class TestSummary:

    @pytest.mark.asyncio
    async def test_round_trip(self, memory):
        await memory.save_summary("u1", "Asked about Root.")

        summary = await memory.get_summary("u1")

        assert summary.summary == "Asked about Root."
        assert summary.user_id == "u1"

    @pytest.mark.asyncio
    async def test_overwrite_keeps_single_document(self, memory, store):
        await memory.save_summary("u1", "first")
        await memory.save_summary("u1", "second")

        assert (await memory.get_summary("u1")).summary == "second"
        assert await store.collection("summaries").count_documents({"user_id": "u1"}) == 1

    @pytest.mark.asyncio
    async def test_missing_summary(self, memory):
        assert await memory.get_summary("nobody") is None


class TestCompaction:

    @pytest.mark.asyncio
    async def test_below_threshold_does_not_compact(self, memory, model):
        await add_turns(memory, 3)

        compacted = await memory.record_turn("u1", "s1", "q3", "a3")

        assert compacted is False
        assert await memory.count_turns("u1") == 4
        assert model.calls == []

    @pytest.mark.asyncio
    async def test_reaching_threshold_compacts_to_newest_three(self, memory, model):
        await add_turns(memory, 9)
        model.script("User explored batting records.")

        compacted = await memory.record_turn("u1", "s1", "q9", "a9")

        assert compacted is True
        remaining = await memory.session_history("u1", "s1")
        assert [turn.question for turn in remaining] == ["q7", "q8", "q9"]
        assert (await memory.get_summary("u1")).summary == "User explored batting records."

    @pytest.mark.asyncio
    async def test_first_compaction_uses_none_as_previous_summary(self, memory, model):
        await add_turns(memory, 9)
        model.script("summary")

        await memory.record_turn("u1", "s1", "q9", "a9")

        instruction, transcript = model.calls[0]
        assert "None" in instruction
        assert transcript.startswith("User: q0\nAssistant: a0")
        assert transcript.endswith("User: q9\nAssistant: a9")

    @pytest.mark.asyncio
    async def test_previous_summary_is_folded_in(self, memory, model):
        await memory.save_summary("u1", "Earlier: asked about Bradman.")
        await add_turns(memory, 9)
        model.script("Asked about Bradman and nine more players.")

        await memory.record_turn("u1", "s1", "q9", "a9")

        instruction, _ = model.calls[0]
        assert "Earlier: asked about Bradman." in instruction

    @pytest.mark.asyncio
    async def test_compaction_spans_sessions(self, memory, model):
        await add_turns(memory, 5, session_id="s1")
        await add_turns(memory, 4, session_id="s2", offset=5)
        model.script("Mixed sessions summary.")

        await memory.record_turn("u1", "s2", "q9", "a9")

        assert await memory.count_turns("u1") == 3
        assert await memory.session_history("u1", "s1") == []
        assert [turn.question for turn in await memory.session_history("u1", "s2")] == ["q7", "q8", "q9"]

    @pytest.mark.asyncio
    async def test_other_users_are_untouched(self, memory, model):
        await add_turns(memory, 4, user_id="u2", session_id="other")
        await add_turns(memory, 9)
        model.script("summary")

        await memory.record_turn("u1", "s1", "q9", "a9")

        assert await memory.count_turns("u2") == 4
        assert await memory.get_summary("u2") is None

    @pytest.mark.asyncio
    async def test_failed_summary_keeps_turns(self, memory, model):
        await add_turns(memory, 9)
        model.script(RuntimeError("model down"))

        with pytest.raises(RuntimeError):
            await memory.record_turn("u1", "s1", "q9", "a9")

        assert await memory.count_turns("u1") == 10
        assert await memory.get_summary("u1") is None


class TestSessions:

    @pytest.mark.asyncio
    async def test_list_sessions_most_recent_first(self, memory):
        await add_turns(memory, 2, session_id="s1")
        await add_turns(memory, 1, session_id="s2", offset=2)

        sessions = await memory.list_sessions("u1")

        assert [info.session_id for info in sessions] == ["s2", "s1"]
        assert sessions[1].turn_count == 2
        assert sessions[1].first_question == "q0"
        assert sessions[1].last_activity == START + timedelta(minutes=1)

    @pytest.mark.asyncio
    async def test_session_history_and_delete(self, memory):
        await add_turns(memory, 2, session_id="s1")
        await add_turns(memory, 1, session_id="s2", offset=2)

        deleted = await memory.delete_session("u1", "s1")

        assert deleted == 2
        assert await memory.session_history("u1", "s1") == []
        assert len(await memory.session_history("u1", "s2")) == 1

    @pytest.mark.asyncio
    async def test_records_are_stored_with_turn(self, memory):
        records = [{"Player": "JE Root (ENG)", "Runs": 13006}]

        await memory.record_turn("u1", "s1", "Root runs?", "13006", records)

        (turn,) = await memory.session_history("u1", "s1")
        assert turn.records == records
        assert turn.id is not None


def test_render_transcript():
    turns = [ConversationTurn(user_id="u", session_id="s", question="Hi", answer="Hello")]

    assert render_transcript(turns) == "User: Hi\nAssistant: Hello"
    assert render_transcript([]) == ""
