# builtin.py - Control-flow tools provided by Tandem
#
#   - exit_tool():       lets an agent state its final answer explicitly
#   - exit_loop_tool():  lets a sub-agent stop the enclosing LoopAgent
#   - transfer_tool():   the pseudo-tool a TransferAgent uses to hand off

from typing import Literal

from pydantic import Field, create_model

from .base import Tool, tool, SIGNAL_EXIT_LOOP, SIGNAL_TRANSFER

EXIT_TOOL_NAME = "exit"
EXIT_LOOP_TOOL_NAME = "exit_loop"
TRANSFER_TOOL_NAME = "transfer_to_agent"


def exit_tool(name: str = EXIT_TOOL_NAME) -> Tool:
    """A tool whose argument becomes the agent's final answer."""

    @tool(
        "Call this tool with your final answer once the task is complete.",
        name=name,
        return_directly=True,
    )
    def finish(final_answer: str) -> str:
        return final_answer

    return finish


def exit_loop_tool() -> Tool:
    """A tool that ends the enclosing LoopAgent after the current sub-agent."""

    @tool(
        "Stop iterating. Call this when the current result needs no further refinement.",
        name=EXIT_LOOP_TOOL_NAME,
        return_directly=True,
    )
    def exit_loop(reason: str = "") -> str:
        return f"exiting loop: {reason}" if reason else "exiting loop"

    exit_loop.signal = SIGNAL_EXIT_LOOP
    return exit_loop


def transfer_tool(agents: dict[str, str]) -> Tool:
    """
    Build the transfer pseudo-tool for a closed set of agents.

    Args:
        agents: agent name -> description. The agent_name argument is
            constrained to exactly these names.
    """
    if not agents:
        raise ValueError("transfer_tool needs at least one target agent.")

    names = tuple(agents)
    args_model = create_model(
        "TransferToAgentArgs",
        agent_name=(
            Literal[names],
            Field(description="Name of the agent to hand the conversation to."),
        ),
    )

    def transfer(agent_name: str) -> str:
        return f"successfully transferred to agent [{agent_name}]"

    return Tool(
        name=TRANSFER_TOOL_NAME,
        description="Transfer the conversation to another agent better suited to answer.",
        fn=transfer,
        args_model=args_model,
        return_directly=True,
        signal=SIGNAL_TRANSFER,
    )
