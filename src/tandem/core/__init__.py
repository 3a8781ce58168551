# __init__.py - Core package
from .models import (
    Message, ToolCallRequest, ToolDescriptor, TranscriptEntry,
    SYSTEM, USER, ASSISTANT, TOOL,
)
from .errors import (
    TandemError, InferenceError, InferenceTimeoutError, AuthenticationError,
    RateLimitError, MalformedResponseError, ToolNotFound, ToolArgumentsError,
    ToolExecutionError, MaxIterationsExceeded, CancellationError,
    InstructionRenderError, AgentNotFound, CheckpointError,
)
from .state import SessionState
from .stream import MessageStream, StreamConsumedError
from .events import Event, AgentAction
from .invocation import RunContext, InvocationContext
from .context import ContextConstructor
from .loop import ReasoningLoop, LoopState, LoopResult

__all__ = [
    "Message", "ToolCallRequest", "ToolDescriptor", "TranscriptEntry",
    "SYSTEM", "USER", "ASSISTANT", "TOOL",
    "TandemError", "InferenceError", "InferenceTimeoutError", "AuthenticationError",
    "RateLimitError", "MalformedResponseError", "ToolNotFound", "ToolArgumentsError",
    "ToolExecutionError", "MaxIterationsExceeded", "CancellationError",
    "InstructionRenderError", "AgentNotFound", "CheckpointError",
    "SessionState", "MessageStream", "StreamConsumedError",
    "Event", "AgentAction", "RunContext", "InvocationContext",
    "ContextConstructor", "ReasoningLoop", "LoopState", "LoopResult",
]
