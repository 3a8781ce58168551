# base.py - Tool Definition System
#
# Provides:
#   - @tool decorator: wraps plain functions into Tool
#   - Tool: uniform internal representation (descriptor + JSON invocation)
#   - BaseTool: abstract class for class-based tools
#
# Argument schemas are pydantic models, inferred from the function
# signature. A function taking a single pydantic model parameter uses
# that model directly.

import asyncio
import inspect
import json
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from pydantic import BaseModel, ValidationError, create_model

from ..core.errors import ToolArgumentsError, ToolExecutionError
from ..core.models import ToolDescriptor

# Signals a return_directly tool can carry. The agent acts on them after
# the reasoning loop ends.
SIGNAL_EXIT_LOOP = "exit_loop"
SIGNAL_TRANSFER = "transfer"


class Tool:
    """
    Uniform internal representation of a tool.
    Created by the @tool decorator or from a BaseTool.

    return_directly: calling this tool ends the reasoning loop, with the
        tool output as the final answer.
    """

    def __init__(
        self,
        name: str,
        description: str,
        fn: Callable,
        args_model: type[BaseModel],
        model_param: Optional[str] = None,
        return_directly: bool = False,
        signal: Optional[str] = None,
    ):
        if not name:
            raise ValueError("Tool name cannot be empty.")
        self.name = name
        self.description = description
        self.fn = fn
        self.args_model = args_model
        self.model_param = model_param
        self.return_directly = return_directly
        self.signal = signal
        self.is_async = inspect.iscoroutinefunction(fn)

    @property
    def descriptor(self) -> ToolDescriptor:
        schema = self.args_model.model_json_schema()
        schema.pop("title", None)
        return ToolDescriptor(
            name=self.name,
            description=self.description,
            parameters=schema,
        )

    def parse_arguments(self, arguments: str) -> BaseModel:
        """Parse the model's JSON arguments. Raises ToolArgumentsError."""
        try:
            raw = json.loads(arguments) if arguments and arguments.strip() else {}
        except json.JSONDecodeError as e:
            raise ToolArgumentsError(
                self.name, [{"type": "json_invalid", "msg": str(e)}]
            )
        if not isinstance(raw, dict):
            raise ToolArgumentsError(
                self.name,
                [{"type": "object_type", "msg": "Arguments must be a JSON object"}],
            )
        try:
            return self.args_model.model_validate(raw)
        except ValidationError as e:
            raise ToolArgumentsError(
                self.name, e.errors(include_url=False, include_context=False)
            )

    async def invoke(self, arguments: str) -> str:
        """
        Run the tool with JSON arguments and return its output as text.

        Raises:
            ToolArgumentsError: arguments do not match the schema
            ToolExecutionError: the tool itself raised
        """
        parsed = self.parse_arguments(arguments)
        if self.model_param:
            kwargs = {self.model_param: parsed}
        else:
            kwargs = {name: getattr(parsed, name) for name in type(parsed).model_fields}

        try:
            if self.is_async:
                result = await self.fn(**kwargs)
            else:
                result = await asyncio.to_thread(self.fn, **kwargs)
        except Exception as e:
            raise ToolExecutionError(self.name, e) from e
        return _to_text(result)

    def __repr__(self) -> str:
        return f"Tool({self.name!r})"


def _to_text(result: Any) -> str:
    if isinstance(result, str):
        return result
    if isinstance(result, BaseModel):
        return result.model_dump_json()
    return json.dumps(result, ensure_ascii=False, default=str)


def _infer_args(fn: Callable, name: str) -> tuple[type[BaseModel], Optional[str]]:
    """Build the argument model from a function's signature and type hints."""
    sig = inspect.signature(fn)
    hints = inspect.get_annotations(fn, eval_str=True)
    params = [p for p in sig.parameters.values() if p.name != "self"]

    if len(params) == 1:
        hint = hints.get(params[0].name)
        if inspect.isclass(hint) and issubclass(hint, BaseModel):
            return hint, params[0].name

    fields: dict[str, Any] = {}
    for param in params:
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        hint = hints.get(param.name, Any)
        default = ... if param.default is inspect.Parameter.empty else param.default
        fields[param.name] = (hint, default)

    model_name = "".join(part.capitalize() for part in name.split("_")) + "Args"
    return create_model(model_name, **fields), None


def tool(
    description: str = "",
    name: Optional[str] = None,
    return_directly: bool = False,
):
    """
    Decorator that wraps a plain function into a Tool.

    Description priority:
        1. Explicit description parameter (if provided)
        2. Function's docstring
        3. Raises ValueError (no description = model can't understand the tool)

    Usage:
        @tool()
        def get_weather(city: str) -> dict:
            \"\"\"Return the current weather for a city.\"\"\"
            ...

        class TimeParams(BaseModel):
            format: str = "datetime"

        @tool("Return the current time")
        async def get_current_time(params: TimeParams) -> str:
            ...
    """

    def decorator(fn: Callable) -> Tool:
        tool_name = name or fn.__name__
        resolved = description or inspect.getdoc(fn) or ""
        if not resolved:
            raise ValueError(
                f"Tool '{tool_name}' has no description. "
                f"Add a docstring or pass description to @tool()."
            )
        args_model, model_param = _infer_args(fn, tool_name)
        return Tool(
            name=tool_name,
            description=resolved,
            fn=fn,
            args_model=args_model,
            model_param=model_param,
            return_directly=return_directly,
        )

    return decorator


class BaseTool(ABC):
    """
    Abstract base for class-based tools.

    Usage:
        class DatabaseTool(BaseTool):
            name = "query_db"
            description = "Run a read-only SQL query"

            def __init__(self, conn):
                self.conn = conn

            async def execute(self, query: str) -> str:
                return await self.conn.fetch(query)

        agent = ChatModelAgent(..., tools=[DatabaseTool(conn)])
    """
    name: str = ""
    description: str = ""
    return_directly: bool = False

    @abstractmethod
    async def execute(self, **kwargs) -> Any:
        """Execute the tool. Must be implemented by subclasses."""
        ...

    def to_tool(self) -> Tool:
        """Convert to Tool for catalog registration."""
        if not self.description:
            raise ValueError(f"Tool '{self.name}' has no description.")
        args_model, model_param = _infer_args(self.execute, self.name)
        return Tool(
            name=self.name,
            description=self.description,
            fn=self.execute,
            args_model=args_model,
            model_param=model_param,
            return_directly=self.return_directly,
        )
