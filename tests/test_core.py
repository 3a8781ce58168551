"""
Core building block tests: session state, messages, streams, instruction
rendering and context construction.
"""

import pytest

from tandem.core.context import ContextConstructor
from tandem.core.errors import InstructionRenderError
from tandem.core.invocation import InvocationContext, RunContext
from tandem.core.models import Message, ToolCallRequest, TranscriptEntry, merge_chunks, USER, SYSTEM
from tandem.core.state import SessionState
from tandem.core.stream import MessageStream, StreamConsumedError


async def chunks(*texts, fail_after=None):
    for i, text in enumerate(texts):
        if fail_after is not None and i == fail_after:
            raise RuntimeError("connection dropped")
        yield Message.assistant(text)


# =============================================================================
# SESSION STATE
# =============================================================================

class TestSessionState:

    def test_lookup_distinguishes_missing_from_none(self):
        state = SessionState({"empty": None})
        assert state.lookup("empty") == (None, True)
        assert state.lookup("missing") == (None, False)
        assert state.get("missing", "fallback") == "fallback"

    def test_last_write_wins(self):
        state = SessionState()
        state.set("plan", "v1")
        state.set("plan", "v2")
        assert state.get("plan") == "v2"
        assert len(state) == 1
        assert "plan" in state

    def test_snapshot_is_a_copy(self):
        state = SessionState({"a": 1})
        snap = state.snapshot()
        snap["a"] = 2
        assert state.get("a") == 1

    @pytest.mark.parametrize("key", ["", None, 3])
    def test_invalid_keys(self, key):
        with pytest.raises(ValueError):
            SessionState().set(key, "x")


# =============================================================================
# MESSAGES
# =============================================================================

class TestMessages:

    def test_unknown_role_rejected(self):
        with pytest.raises(ValueError, match="Unknown message role"):
            Message(role="robot", content="beep")

    def test_tool_message_needs_call_id(self):
        with pytest.raises(ValueError):
            Message(role="tool", content="42")

    def test_dict_conversion_keeps_tool_calls(self):
        original = Message.assistant(
            "thinking", [ToolCallRequest(id="c1", name="lookup", arguments='{"k": 1}')], name="A"
        )
        entry = TranscriptEntry("A", original)
        assert TranscriptEntry.from_dict(entry.to_dict()) == entry

    def test_merge_chunks_concatenates_content_and_call_fragments(self):
        merged = merge_chunks([
            Message.assistant("Hel"),
            Message.assistant("lo", [ToolCallRequest(id="c1", name="lookup", arguments='{"k"')]),
            Message.assistant("", [ToolCallRequest(id="c1", name="lookup", arguments=': 1}')]),
            Message.assistant("", [ToolCallRequest(id="c2", name="other", arguments="{}")]),
        ])
        assert merged.content == "Hello"
        assert [c.id for c in merged.tool_calls] == ["c1", "c2"]
        assert merged.tool_calls[0].arguments == '{"k": 1}'


# =============================================================================
# MESSAGE STREAM
# =============================================================================

class TestMessageStream:

    @pytest.mark.asyncio
    async def test_single_consumer(self):
        stream = MessageStream(chunks("a", "b"))
        assert [c.content async for c in stream] == ["a", "b"]
        with pytest.raises(StreamConsumedError):
            async for _ in stream:
                pass

    @pytest.mark.asyncio
    async def test_collect_after_partial_read(self):
        stream = MessageStream(chunks("one ", "two ", "three"))
        reader = stream.__aiter__()
        first = await reader.__anext__()
        assert first.content == "one "
        merged = await stream.collect()
        assert merged.content == "one two three"

    @pytest.mark.asyncio
    async def test_close_ends_consumer_view_only(self):
        stream = MessageStream(chunks("a", "b", "c"))
        seen = []
        async for chunk in stream:
            seen.append(chunk.content)
            stream.close()
        assert seen == ["a"]
        assert stream.closed
        assert (await stream.collect()).content == "abc"

    @pytest.mark.asyncio
    async def test_source_error_reaches_both_sides(self):
        stream = MessageStream(chunks("a", "b", fail_after=1))
        with pytest.raises(RuntimeError, match="connection dropped"):
            async for _ in stream:
                pass
        with pytest.raises(RuntimeError, match="connection dropped"):
            await stream.collect()


# =============================================================================
# INSTRUCTIONS & CONTEXT
# =============================================================================

class TestContextConstructor:

    def test_placeholders_filled_from_state(self):
        ctx = ContextConstructor("Writer", instruction="Write about {topic} for {audience}.")
        rendered = ctx.render_instruction(SessionState({"topic": "rust", "audience": "kids"}))
        assert rendered == "Write about rust for kids."

    def test_missing_key_is_an_error(self):
        ctx = ContextConstructor("Writer", instruction="Improve this: {draft}")
        with pytest.raises(InstructionRenderError, match="draft") as info:
            ctx.render_instruction(SessionState())
        assert info.value.agent_name == "Writer"

    def test_extra_sections_appended(self):
        ctx = ContextConstructor("Router", instruction="Route.", extra_sections=["## AGENTS"])
        assert ctx.render_instruction(SessionState()) == "Route.\n\n## AGENTS"

    def test_instruction_file(self, tmp_path):
        path = tmp_path / "writer.md"
        path.write_text("You write about {topic}.", encoding="utf-8")
        ctx = ContextConstructor("Writer", instruction_file=str(path))
        assert ctx.render_instruction(SessionState({"topic": "go"})) == "You write about go."

    def test_missing_instruction_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ContextConstructor("Writer", instruction_file=str(tmp_path / "nope.md"))

    def test_other_agents_rewritten_as_context(self):
        transcript = [
            TranscriptEntry("", Message.user("compare rust and go")),
            TranscriptEntry("Researcher", Message.assistant(
                "", [ToolCallRequest(id="c1", name="search", arguments='{"q": "rust"}')], name="Researcher"
            )),
            TranscriptEntry("Researcher", Message.tool("rust is fast", "c1", name="search")),
            TranscriptEntry("Researcher", Message.assistant("Rust is fast.", name="Researcher")),
            TranscriptEntry("Writer", Message.assistant("My earlier draft", name="Writer")),
        ]
        messages = ContextConstructor("Writer").build("Be brief.", transcript)

        assert messages[0].role == SYSTEM
        assert messages[1].content == "compare rust and go"
        assert all(m.role == USER for m in messages[1:4])
        assert messages[2].content == (
            'For context: [Researcher] called tool: `search` with arguments: {"q": "rust"}.'
        )
        assert messages[3].content == "For context: [Researcher] `search` tool returned result: rust is fast."
        assert messages[4].content == "For context: [Researcher] said: Rust is fast."
        assert messages[5].content == "My earlier draft"
        assert messages[5].role == "assistant"


# =============================================================================
# INVOCATION CURSOR
# =============================================================================

class TestInvocationContext:

    def test_positions_are_keyed_by_path(self):
        root = InvocationContext(run=RunContext(), state=SessionState()).for_agent("Root")
        child = root.for_agent("Loop")
        child.set_position(iteration=2, index=0)
        root.set_position(index=1)

        assert root.positions == {"Root": {"index": 1}, "Root/Loop": {"iteration": 2, "index": 0}}
        root.clear_positions("Loop")
        assert root.positions == {"Root": {"index": 1}}

    def test_branch_copies_transcript_only(self):
        root = InvocationContext(run=RunContext(), state=SessionState())
        branch = root.branch()
        branch.record("A", Message.assistant("hi"))
        branch.state.set("k", "v")
        assert root.transcript == []
        assert root.state.get("k") == "v"

    def test_branch_restores_its_own_history(self):
        root = InvocationContext(run=RunContext(), state=SessionState())
        root.record("", Message.user("go"))
        branch = root.branch([TranscriptEntry("A1", Message.assistant("a1 facts"))])
        assert [e.message.content for e in branch.transcript] == ["go", "a1 facts"]
        assert len(root.transcript) == 1
