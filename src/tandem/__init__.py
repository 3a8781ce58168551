# Tandem - Composable Multi-Agent Runtime
#
# A small runtime for composing LLM agents:
#   ChatModelAgent (ReAct loop), SequentialAgent, ParallelAgent, LoopAgent,
#   TransferAgent (model-decided handoff), driven by a Runner that streams
#   events and checkpoints runs for resumption.

from .agents import (
    BaseAgent, ChatModelAgent, TransferAgent,
    SequentialAgent, ParallelAgent, LoopAgent,
)
from .core import (
    Message, ToolCallRequest, SessionState, Event, AgentAction,
    MessageStream, RunContext,
    TandemError, InferenceError, InferenceTimeoutError, AuthenticationError,
    RateLimitError, MalformedResponseError, ToolNotFound, MaxIterationsExceeded,
    CancellationError, InstructionRenderError, AgentNotFound, CheckpointError,
)
from .tools import tool, BaseTool, exit_tool, exit_loop_tool
from .llm import ChatModel, LLMConfig, OpenAIAdapter, AnthropicAdapter
from .storage import CheckpointStore, InMemoryCheckpointStore, FileCheckpointStore
from .runner import Runner, RunResult

__version__ = "0.1.0"

__all__ = [
    # Runner
    "Runner", "RunResult",
    # Agents
    "BaseAgent", "ChatModelAgent", "TransferAgent",
    "SequentialAgent", "ParallelAgent", "LoopAgent",
    # Data
    "Message", "ToolCallRequest", "SessionState", "Event", "AgentAction",
    "MessageStream", "RunContext",
    # Errors
    "TandemError", "InferenceError", "InferenceTimeoutError", "AuthenticationError",
    "RateLimitError", "MalformedResponseError", "ToolNotFound", "MaxIterationsExceeded",
    "CancellationError", "InstructionRenderError", "AgentNotFound", "CheckpointError",
    # Tools
    "tool", "BaseTool", "exit_tool", "exit_loop_tool",
    # LLM
    "ChatModel", "LLMConfig", "OpenAIAdapter", "AnthropicAdapter",
    # Storage
    "CheckpointStore", "InMemoryCheckpointStore", "FileCheckpointStore",
]
