# workflow.py - Static composition agents
#
#   - SequentialAgent: sub-agents in declared order, fail fast
#   - ParallelAgent:   sub-agents concurrently, shared session state
#   - LoopAgent:       the sub-agent list repeated up to max_iterations
#
# Composites record their control position in the invocation's cursor and
# request a checkpoint after each step, so a resumed run continues where
# the previous one stopped.

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, replace
from typing import AsyncIterator, Iterable, Optional

from .base import BaseAgent, unique_agents
from ..core.events import Event
from ..core.invocation import InvocationContext
from ..core.models import TranscriptEntry

logger = logging.getLogger(__name__)


def _exit_requested(event: Event) -> bool:
    return bool(event.action and event.action.exit_loop and not event.action.handled)


class SequentialAgent(BaseAgent):
    """
    Runs sub-agents one after another. Each sees the transcript and session
    writes of the ones before it.

    Usage:
        workflow = SequentialAgent(
            name="AnalysisWorkflow",
            sub_agents=[analyzer, solution_generator],
        )
    """

    def __init__(self, name: str, sub_agents: Iterable[BaseAgent], description: str = ""):
        super().__init__(name, description)
        self._sub_agents = unique_agents(sub_agents, name)

    @property
    def sub_agents(self) -> tuple[BaseAgent, ...]:
        return self._sub_agents

    async def _run(self, invocation: InvocationContext) -> AsyncIterator[Event]:
        start = invocation.position().get("index", 0)
        for index in range(start, len(self._sub_agents)):
            invocation.run.check()
            agent = self._sub_agents[index]
            exited = False
            async for event in agent.run(invocation):
                exited = exited or _exit_requested(event)
                yield event

            invocation.clear_positions(agent.name)
            invocation.set_position(index=index + 1)
            await invocation.checkpoint()
            if exited:
                logger.debug("[%s] stopping after %s: loop exit requested", self.name, agent.name)
                return


@dataclass
class _BranchDone:
    agent: BaseAgent
    invocation: InvocationContext


@dataclass
class _BranchFailed:
    agent: BaseAgent
    error: Exception


class ParallelAgent(BaseAgent):
    """
    Runs sub-agents concurrently against the same input and session state.

    Each sub-agent should write a distinct output_key. Colliding writes race
    and the last one wins; a warning is logged at construction.

    Usage:
        collect = ParallelAgent(
            name="DataCollection",
            sub_agents=[tech_agent, market_agent, risk_agent],
        )
    """

    def __init__(self, name: str, sub_agents: Iterable[BaseAgent], description: str = ""):
        super().__init__(name, description)
        self._sub_agents = unique_agents(sub_agents, name)

        keys = Counter(
            getattr(a, "output_key", None) for a in self._sub_agents
        )
        for key, count in keys.items():
            if key and count > 1:
                logger.warning(
                    "ParallelAgent '%s': %d sub-agents write output_key '%s'; "
                    "the last writer wins.", name, count, key,
                )

    @property
    def sub_agents(self) -> tuple[BaseAgent, ...]:
        return self._sub_agents

    def _has_cursor(self, invocation: InvocationContext, name: str) -> bool:
        prefix = f"{invocation.key}/{name}"
        return any(key == prefix or key.startswith(prefix + "/") for key in invocation.positions)

    async def _run(self, invocation: InvocationContext) -> AsyncIterator[Event]:
        position = invocation.position()
        completed = list(position.get("completed", []))
        saved = position.get("branches", {})
        pending = [a for a in self._sub_agents if a.name not in completed]
        if not pending:
            return

        # One slot: a branch only produces its next event once the consumer
        # has taken the previous one.
        queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        base_length = len(invocation.transcript)
        running: dict[str, InvocationContext] = {}

        async def save() -> None:
            # A nested cursor is only valid together with the branch history
            # it was reached with; branches without one restart from scratch.
            invocation.set_position(
                completed=list(completed),
                branches={
                    name: [entry.to_dict() for entry in branch.transcript[base_length:]]
                    for name, branch in running.items()
                    if self._has_cursor(invocation, name)
                },
            )
            await invocation.checkpoint()

        async def run_branch(agent: BaseAgent, branch: InvocationContext) -> None:
            try:
                async for event in agent.run(branch):
                    await queue.put(event)
            except Exception as e:
                await queue.put(_BranchFailed(agent, e))
                return
            await queue.put(_BranchDone(agent, branch))

        for agent in pending:
            restored = [TranscriptEntry.from_dict(item) for item in saved.get(agent.name, [])]
            if restored:
                logger.debug("[%s] restoring %d message(s) of branch %s", self.name, len(restored), agent.name)
            running[agent.name] = replace(invocation.branch(restored), checkpointer=save)

        tasks = [
            asyncio.create_task(
                run_branch(agent, running[agent.name]), name=f"{invocation.key}/{agent.name}"
            )
            for agent in pending
        ]
        remaining = len(tasks)
        try:
            while remaining:
                item = await queue.get()
                if isinstance(item, _BranchFailed):
                    logger.debug("[%s] branch %s failed: %s", self.name, item.agent.name, item.error)
                    raise item.error
                if isinstance(item, _BranchDone):
                    remaining -= 1
                    invocation.transcript.extend(item.invocation.transcript[base_length:])
                    invocation.clear_positions(item.agent.name)
                    del running[item.agent.name]
                    completed.append(item.agent.name)
                    await save()
                    continue
                yield item
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)


class LoopAgent(BaseAgent):
    """
    Re-runs its sub-agents, in order, up to max_iterations times.

    There is no convergence test. The loop ends early only when a sub-agent
    calls the exit_loop tool, or when stop_key is set to a truthy value in
    session state.

    Usage:
        reflection = LoopAgent(
            name="ReflectionAgent",
            sub_agents=[main_agent, critique_agent],
            max_iterations=5,
        )
    """

    def __init__(
        self,
        name: str,
        sub_agents: Iterable[BaseAgent],
        max_iterations: int,
        description: str = "",
        stop_key: Optional[str] = None,
    ):
        super().__init__(name, description)
        if not isinstance(max_iterations, int) or max_iterations < 1:
            raise ValueError(
                f"LoopAgent '{name}' requires max_iterations >= 1, got {max_iterations!r}."
            )
        self._sub_agents = unique_agents(sub_agents, name)
        self.max_iterations = max_iterations
        self.stop_key = stop_key

    @property
    def sub_agents(self) -> tuple[BaseAgent, ...]:
        return self._sub_agents

    def _stop_requested(self, invocation: InvocationContext) -> bool:
        return bool(self.stop_key and invocation.state.get(self.stop_key))

    async def _run(self, invocation: InvocationContext) -> AsyncIterator[Event]:
        position = invocation.position()
        iteration = position.get("iteration", 0)
        start = position.get("index", 0)

        while iteration < self.max_iterations:
            logger.debug("[%s] iteration %d/%d", self.name, iteration + 1, self.max_iterations)
            stop = False
            for index in range(start, len(self._sub_agents)):
                invocation.run.check()
                agent = self._sub_agents[index]
                async for event in agent.run(invocation):
                    if _exit_requested(event):
                        event.action.handled = True
                        stop = True
                    yield event

                invocation.clear_positions(agent.name)
                stop = stop or self._stop_requested(invocation)
                if stop:
                    break
                if index + 1 < len(self._sub_agents):
                    invocation.set_position(iteration=iteration, index=index + 1)
                    await invocation.checkpoint()

            start = 0
            iteration += 1
            invocation.set_position(iteration=self.max_iterations if stop else iteration, index=0)
            await invocation.checkpoint()
            if stop:
                logger.debug("[%s] stopped early after %d iteration(s)", self.name, iteration)
                return
