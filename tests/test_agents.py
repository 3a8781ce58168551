"""
Agent composition tests: ChatModelAgent, SequentialAgent and LoopAgent,
driven through the Runner.
"""

import pytest

from conftest import ScriptedModel, call, tool_reply, drain
from tandem import (
    BaseAgent, ChatModelAgent, LoopAgent, Runner, SequentialAgent,
    InstructionRenderError, InferenceError, exit_loop_tool, exit_tool,
)
from tandem.core.models import Message


class Approver(BaseAgent):
    """Writes state["approved"] on its n-th run."""

    def __init__(self, name: str, approve_on: int):
        super().__init__(name, "Approves drafts")
        self.approve_on = approve_on
        self.runs = 0

    async def _run(self, invocation):
        self.runs += 1
        if self.runs >= self.approve_on:
            invocation.state.set("approved", True)
        yield self.event(invocation, message=Message.assistant(f"review {self.runs}", name=self.name))


def errors(events):
    return [e for e in events if e.error is not None]


# =============================================================================
# CHAT MODEL AGENT
# =============================================================================

class TestChatModelAgent:

    @pytest.mark.asyncio
    async def test_output_key_receives_final_answer(self):
        agent = ChatModelAgent(
            name="Analyzer", model=ScriptedModel(["needs auth and caching"]),
            instruction="Extract the requirements.", output_key="analysis",
        )
        result = await Runner(agent).invoke([Message.user("build me an API")])

        assert result.success
        assert result.status == "completed"
        assert result.output.content == "needs auth and caching"
        assert result.state["analysis"] == "needs auth and caching"

    @pytest.mark.asyncio
    async def test_events_carry_agent_and_path(self):
        agent = ChatModelAgent(name="Solo", model=ScriptedModel(["hi"]))
        events = await drain(Runner(agent).query("hello"))
        assert len(events) == 1
        assert events[0].agent_name == "Solo"
        assert events[0].run_path == ("Solo",)
        assert events[0].message.content == "hi"

    @pytest.mark.asyncio
    async def test_exit_tool_answer_becomes_output(self):
        model = ScriptedModel([tool_reply(call("exit", {"final_answer": "Paris"}))])
        agent = ChatModelAgent(
            name="Geo", model=model, tools=[exit_tool()], output_key="capital",
        )
        result = await Runner(agent).invoke([Message.user("capital of France?")])

        assert [e.message.role for e in result.events] == ["assistant", "tool", "assistant"]
        assert result.output.content == "Paris"
        assert result.state["capital"] == "Paris"

    @pytest.mark.asyncio
    async def test_missing_instruction_key_fails_run(self):
        model = ScriptedModel(["never"])
        agent = ChatModelAgent(name="Critic", model=model, instruction="Review: {draft}")
        events = await drain(Runner(agent).query("go"))

        assert len(events) == 1
        assert isinstance(events[0].error, InstructionRenderError)
        assert model.call_count == 0

    def test_invalid_construction(self):
        with pytest.raises(ValueError):
            ChatModelAgent(name="", model=ScriptedModel())
        with pytest.raises(ValueError):
            ChatModelAgent(name="a/b", model=ScriptedModel())
        with pytest.raises(ValueError):
            ChatModelAgent(name="A", model=ScriptedModel(), max_iterations=0)


# =============================================================================
# SEQUENTIAL
# =============================================================================

class TestSequentialAgent:

    @pytest.mark.asyncio
    async def test_later_agent_reads_earlier_output(self):
        analyzer_model = ScriptedModel(["needs auth"])
        generator_model = ScriptedModel(["use OAuth"])
        workflow = SequentialAgent(
            name="AnalysisWorkflow",
            sub_agents=[
                ChatModelAgent(
                    name="Analyzer", model=analyzer_model,
                    instruction="Analyze the request.", output_key="analysis",
                ),
                ChatModelAgent(
                    name="SolutionGenerator", model=generator_model,
                    instruction="Propose a solution for: {analysis}", output_key="solution",
                ),
            ],
        )
        result = await Runner(workflow).invoke([Message.user("secure my API")])

        system = generator_model.calls[0][0]
        assert system.content == "Propose a solution for: needs auth"
        assert generator_model.calls[0][-1].content == "For context: [Analyzer] said: needs auth."
        assert [e.agent_name for e in result.events] == ["Analyzer", "SolutionGenerator"]
        assert result.events[1].run_path == ("AnalysisWorkflow", "SolutionGenerator")
        assert result.state == {"analysis": "needs auth", "solution": "use OAuth"}

    @pytest.mark.asyncio
    async def test_failure_stops_the_sequence(self):
        third = ScriptedModel(["never"])
        workflow = SequentialAgent(
            name="Pipeline",
            sub_agents=[
                ChatModelAgent(name="First", model=ScriptedModel(["ok"])),
                ChatModelAgent(name="Second", model=ScriptedModel([InferenceError("provider down")])),
                ChatModelAgent(name="Third", model=third),
            ],
        )
        events = await drain(Runner(workflow).query("go"))

        assert len(errors(events)) == 1
        assert events[-1].error is not None
        assert events[-1].agent_name == "Second"
        assert third.call_count == 0

    @pytest.mark.asyncio
    async def test_exit_loop_outside_loop_stops_sequence(self):
        second = ScriptedModel(["never"])
        workflow = SequentialAgent(
            name="Pipeline",
            sub_agents=[
                ChatModelAgent(
                    name="Gate", model=ScriptedModel([tool_reply(call("exit_loop"))]),
                    tools=[exit_loop_tool()],
                ),
                ChatModelAgent(name="After", model=second),
            ],
        )
        events = await drain(Runner(workflow).query("go"))

        assert not errors(events)
        assert events[-1].action.exit_loop
        assert second.call_count == 0

    def test_sub_agent_validation(self):
        a = ChatModelAgent(name="A", model=ScriptedModel())
        with pytest.raises(ValueError, match="Duplicate"):
            SequentialAgent(name="S", sub_agents=[a, ChatModelAgent(name="A", model=ScriptedModel())])
        with pytest.raises(ValueError):
            SequentialAgent(name="S", sub_agents=[])
        with pytest.raises(TypeError):
            SequentialAgent(name="S", sub_agents=[a, "B"])


# =============================================================================
# LOOP
# =============================================================================

class TestLoopAgent:

    @pytest.mark.asyncio
    async def test_runs_exactly_max_iterations(self):
        model = ScriptedModel(["v1", "v2", "v3"])
        loop = LoopAgent(
            name="Refine",
            sub_agents=[ChatModelAgent(name="Writer", model=model, output_key="draft")],
            max_iterations=3,
        )
        result = await Runner(loop).invoke([Message.user("write a haiku")])

        assert model.call_count == 3
        assert result.success
        assert result.state["draft"] == "v3"
        # Each iteration sees the earlier drafts
        assert [m.content for m in model.calls[2][1:]] == ["v1", "v2"]

    @pytest.mark.asyncio
    async def test_exit_loop_stops_loop_only(self):
        writer = ScriptedModel(["draft 1", "draft 2", "draft 3"])
        critic = ScriptedModel(["too long", tool_reply(call("exit_loop", {"reason": "good"}))])
        summary = ScriptedModel(["final: draft 2"])
        workflow = SequentialAgent(
            name="Workflow",
            sub_agents=[
                LoopAgent(
                    name="Reflection",
                    sub_agents=[
                        ChatModelAgent(name="Writer", model=writer, output_key="draft"),
                        ChatModelAgent(
                            name="Critic", model=critic, instruction="Critique: {draft}",
                            tools=[exit_loop_tool()],
                        ),
                    ],
                    max_iterations=5,
                ),
                ChatModelAgent(name="Summary", model=summary),
            ],
        )
        events = await drain(Runner(workflow).query("write"))

        assert not errors(events)
        assert writer.call_count == 2
        assert critic.call_count == 2
        assert summary.call_count == 1
        exits = [e for e in events if e.action and e.action.exit_loop]
        assert len(exits) == 1 and exits[0].action.handled
        assert critic.calls[1][0].content == "Critique: draft 2"

    @pytest.mark.asyncio
    async def test_stop_key_ends_loop(self):
        writer = ScriptedModel(["a", "b", "c"])
        approver = Approver("Approver", approve_on=2)
        loop = LoopAgent(
            name="Review",
            sub_agents=[ChatModelAgent(name="Writer", model=writer), approver],
            max_iterations=10,
            stop_key="approved",
        )
        result = await Runner(loop).invoke([Message.user("go")])

        assert result.success
        assert writer.call_count == 2
        assert approver.runs == 2
        assert result.state["approved"] is True

    @pytest.mark.asyncio
    async def test_iteration_failure_propagates(self):
        model = ScriptedModel(["v1", InferenceError("boom")])
        loop = LoopAgent(
            name="Refine",
            sub_agents=[ChatModelAgent(name="Writer", model=model)],
            max_iterations=3,
        )
        result = await Runner(loop).invoke([Message.user("go")])
        assert not result.success
        assert result.status == "error"
        assert isinstance(result.error, InferenceError)
        assert model.call_count == 2

    @pytest.mark.parametrize("bound", [0, -1, None])
    def test_requires_positive_bound(self, bound):
        with pytest.raises(ValueError, match="max_iterations"):
            LoopAgent(
                name="L",
                sub_agents=[ChatModelAgent(name="A", model=ScriptedModel())],
                max_iterations=bound,
            )
