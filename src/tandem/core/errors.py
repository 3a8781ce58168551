# errors.py - Tandem exception hierarchy
#
# Tool-level failures (ToolArgumentsError, ToolExecutionError) are recovered
# by the dispatcher and fed back to the model as tool messages. Everything
# else propagates to the Runner, which ends the event stream with exactly
# one error event.

from typing import Optional


class TandemError(Exception):
    """Base class for all runtime errors raised by Tandem."""

    def __init__(self, message: str, agent_name: Optional[str] = None):
        super().__init__(message)
        self.agent_name = agent_name


# ---- Inference ----

class InferenceError(TandemError):
    """A model call failed (provider error, timeout, malformed response)."""

    kind = "other"

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
        agent_name: Optional[str] = None,
    ):
        super().__init__(message, agent_name=agent_name)
        self.provider = provider
        self.status_code = status_code


class InferenceTimeoutError(InferenceError):
    kind = "timeout"


class AuthenticationError(InferenceError):
    kind = "auth"


class RateLimitError(InferenceError):
    kind = "rate_limit"


class MalformedResponseError(InferenceError):
    kind = "malformed_response"


# ---- Tools ----

class ToolNotFound(TandemError):
    def __init__(self, tool_name: str, available: list[str]):
        listing = ", ".join(available) if available else "(none)"
        super().__init__(f"Unknown tool '{tool_name}'. Available: {listing}")
        self.tool_name = tool_name
        self.available = list(available)


class ToolArgumentsError(TandemError):
    """The model sent arguments that do not match the tool's schema."""

    def __init__(self, tool_name: str, details: list[dict]):
        super().__init__(f"Invalid arguments for tool '{tool_name}'")
        self.tool_name = tool_name
        self.details = details


class ToolExecutionError(TandemError):
    def __init__(self, tool_name: str, cause: BaseException):
        super().__init__(f"Tool '{tool_name}' failed: {type(cause).__name__}: {cause}")
        self.tool_name = tool_name
        self.cause = cause


# ---- Control flow ----

class MaxIterationsExceeded(TandemError):
    def __init__(self, agent_name: str, limit: int):
        super().__init__(
            f"Agent '{agent_name}' exceeded its iteration limit ({limit})",
            agent_name=agent_name,
        )
        self.limit = limit


class CancellationError(TandemError):
    def __init__(self, reason: str = "run cancelled"):
        super().__init__(reason)
        self.reason = reason


class InstructionRenderError(TandemError):
    """An instruction template is invalid or references a missing state key."""


class AgentNotFound(TandemError):
    def __init__(self, agent_name: str, available: list[str]):
        super().__init__(
            f"Unknown agent '{agent_name}'. Available: {', '.join(available)}"
        )
        self.available = list(available)


class CheckpointError(TandemError):
    """A checkpoint could not be encoded, decoded or applied."""
