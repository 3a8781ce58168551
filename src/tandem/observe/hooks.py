# hooks.py - Event Hook System
#
# Allows developers to plug into run lifecycle events.
#
# Usage:
#   runner = Runner(agent=...)
#
#   @runner.on("tool_called")
#   async def log_tool(data):
#       print(f"{data['agent']} called {data['tool']}")

import asyncio
import inspect
import logging
from typing import Any, Callable, Coroutine

logger = logging.getLogger(__name__)

# Type alias for hook callbacks
HookCallback = Callable[[dict[str, Any]], Coroutine[Any, Any, None]]


class HookManager:
    """
    Event system for run lifecycle hooks.

    Supported events:
        - run_start:        Runner starts or resumes a run
        - run_end:          Event stream finished (data has "status")
        - agent_start:      An agent begins
        - agent_end:        An agent finished without error
        - model_call:       Before each model inference
        - tool_called:      After each tool dispatch
        - checkpoint_saved: After a checkpoint is written
        - error:            A run terminated with an error
    """

    VALID_EVENTS = {
        "run_start", "run_end", "agent_start", "agent_end",
        "model_call", "tool_called", "checkpoint_saved", "error",
    }

    def __init__(self):
        self._hooks: dict[str, list[HookCallback]] = {
            event: [] for event in self.VALID_EVENTS
        }

    def on(self, event: str) -> Callable:
        """
        Decorator to register an event hook.

        Usage:
            @hooks.on("agent_end")
            async def my_handler(data):
                print(data)
        """
        self._validate(event)

        def decorator(fn: HookCallback) -> HookCallback:
            self._hooks[event].append(fn)
            return fn

        return decorator

    def register(self, event: str, callback: HookCallback) -> None:
        """Register a hook callback programmatically."""
        self._validate(event)
        self._hooks[event].append(callback)

    def _validate(self, event: str) -> None:
        if event not in self.VALID_EVENTS:
            raise ValueError(
                f"Unknown event '{event}'. "
                f"Valid events: {', '.join(sorted(self.VALID_EVENTS))}"
            )

    @staticmethod
    async def _call(callback: Callable, data: dict[str, Any]) -> None:
        # Plain functions are accepted too; only awaitables are awaited
        result = callback(data)
        if inspect.isawaitable(result):
            await result

    async def emit(self, event: str, data: dict[str, Any]) -> None:
        """
        Emit an event, calling all registered hooks.
        Hooks are called concurrently. Errors in hooks are logged
        and do NOT affect the run.
        """
        callbacks = self._hooks.get(event)
        if not callbacks:
            return

        results = await asyncio.gather(
            *(self._call(cb, data) for cb in callbacks),
            return_exceptions=True
        )

        for result in results:
            if isinstance(result, Exception):
                logger.warning(
                    "Hook error on '%s': %s: %s",
                    event, type(result).__name__, result,
                )
