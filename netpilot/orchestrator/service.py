"""
Orchestrator: dispatches agents for a subject and keeps their history.

Behavioral Contract:
- No telemetry means no agents run and an empty result, never an error
- Eligible agents are enabled and accept the context; they run in
  descending priority, registration order breaking ties, capped at max_agents
- Agents in one batch run sequentially; later agents see earlier outcomes
- A failing agent yields a FAILED outcome and never stops its siblings
- Batches for different subjects run concurrently; batches for the same
  subject are serialized
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Set, Tuple

from netpilot.agents.base import Agent
from netpilot.collaborators.contracts import TelemetryProvider
from netpilot.logs import get_logger
from netpilot.models.agent import AgentDescriptor, AgentOutcome, ExecutionContext
from netpilot.models.config import OrchestratorConfig
from netpilot.models.telemetry import TelemetrySnapshot
from netpilot.orchestrator.history import HistoryStore
from netpilot.orchestrator.registry import AgentRegistry


class Orchestrator:
    def __init__(
        self,
        registry: AgentRegistry,
        telemetry: TelemetryProvider,
        history: Optional[HistoryStore] = None,
        config: Optional[OrchestratorConfig] = None,
    ):
        self.registry = registry
        self.telemetry = telemetry
        self.history = history or HistoryStore()
        self.config = config or OrchestratorConfig()
        self.logger = get_logger("orchestrator")
        self._subject_locks: Dict[str, asyncio.Lock] = {}
        self._watched: Set[str] = set()
        self._last_run: Dict[Tuple[str, str], datetime] = {}
        self._cycle_count = 0
        self._running = False

    # --- Registry passthrough ---

    def register(self, agent: Agent) -> AgentDescriptor:
        return self.registry.register(agent)

    def list_agents(self) -> List[AgentDescriptor]:
        return self.registry.list_agents()

    def get_agent(self, agent_id: str) -> AgentDescriptor:
        return self.registry.get(agent_id)

    def set_enabled(self, agent_id: str, enabled: bool) -> AgentDescriptor:
        descriptor = self.registry.set_enabled(agent_id, enabled)
        self.logger.info("agent_toggled", agent_id=agent_id, enabled=enabled)
        return descriptor

    def get_history(self, subject_id: str) -> List[AgentOutcome]:
        return self.history.get_history(subject_id)

    # --- Dispatch ---

    async def execute_for_subject(
        self, subject_id: str, due_only: bool = False
    ) -> List[AgentOutcome]:
        """
        Run one batch for a subject. With due_only, agents whose execution
        interval has not elapsed for this subject are skipped.
        """
        if not self.config.agents_enabled:
            self.logger.info("agents_disabled", subject_id=subject_id)
            return []

        async with self._lock_for(subject_id):
            snapshot = await self._collect(subject_id)
            if snapshot is None:
                return []

            context = ExecutionContext(subject_id, snapshot)
            selected = self._select(context, due_only)
            outcomes = []
            for descriptor, agent in selected:
                outcome = await self._run_agent(descriptor, agent, context)
                context.record(outcome)
                outcomes.append(outcome)
                self._last_run[(subject_id, descriptor.id)] = outcome.executed_at

            self.history.append(subject_id, outcomes)
            self.logger.info(
                "batch_completed",
                subject_id=subject_id,
                agents=[o.agent_id for o in outcomes],
                failures=sum(1 for o in outcomes if not o.success),
            )
            return outcomes

    async def execute_agent(self, agent_id: str, subject_id: str) -> Optional[AgentOutcome]:
        """
        Run a single agent for a subject, whether or not it is enabled.
        Returns None when there is no telemetry or the agent declines.
        """
        agent = self.registry.get_agent(agent_id)
        descriptor = self.registry.get(agent_id)

        async with self._lock_for(subject_id):
            snapshot = await self._collect(subject_id)
            if snapshot is None:
                return None
            context = ExecutionContext(subject_id, snapshot)
            if not self._accepts(agent, context):
                return None
            outcome = await self._run_agent(descriptor, agent, context)
            self._last_run[(subject_id, agent_id)] = outcome.executed_at
            self.history.append(subject_id, [outcome])
            return outcome

    async def execute_for_subjects(self, subject_ids: List[str], due_only: bool = False) -> Dict[str, List[AgentOutcome]]:
        """Run batches for several subjects concurrently."""
        results = await asyncio.gather(
            *(self.execute_for_subject(s, due_only=due_only) for s in subject_ids),
            return_exceptions=True,
        )
        batches = {}
        for subject_id, result in zip(subject_ids, results):
            if isinstance(result, BaseException):
                self.logger.error("batch_failed", subject_id=subject_id, error=str(result))
                batches[subject_id] = []
            else:
                batches[subject_id] = result
        return batches

    def _lock_for(self, subject_id: str) -> asyncio.Lock:
        if not self.config.serialize_subject_ticks:
            return asyncio.Lock()
        return self._subject_locks.setdefault(subject_id, asyncio.Lock())

    async def _collect(self, subject_id: str) -> Optional[TelemetrySnapshot]:
        try:
            snapshot = await self.telemetry.collect(subject_id)
        except Exception as e:
            self.logger.warning("telemetry_failed", subject_id=subject_id, error=str(e))
            return None
        if snapshot is None or snapshot.is_empty():
            self.logger.info("telemetry_unavailable", subject_id=subject_id)
            return None
        return snapshot

    def _select(
        self, context: ExecutionContext, due_only: bool
    ) -> List[Tuple[AgentDescriptor, Agent]]:
        eligible = [
            (descriptor, agent)
            for descriptor, agent in self.registry.snapshot()
            if descriptor.enabled
            and (not due_only or self._is_due(context.subject_id, descriptor))
            and self._accepts(agent, context)
        ]
        # sorted() is stable, so registration order breaks priority ties
        eligible = sorted(eligible, key=lambda entry: entry[0].priority, reverse=True)
        return eligible[: self.config.max_agents]

    def _accepts(self, agent: Agent, context: ExecutionContext) -> bool:
        try:
            return bool(agent.should_execute(context))
        except Exception as e:
            self.logger.warning(
                "should_execute_failed",
                agent_id=agent.agent_id,
                subject_id=context.subject_id,
                error=str(e),
            )
            return False

    def _is_due(self, subject_id: str, descriptor: AgentDescriptor) -> bool:
        last = self._last_run.get((subject_id, descriptor.id))
        if last is None:
            return True
        elapsed = datetime.now(timezone.utc) - last
        return elapsed >= timedelta(seconds=descriptor.execution_interval_seconds)

    async def _run_agent(
        self, descriptor: AgentDescriptor, agent: Agent, context: ExecutionContext
    ) -> AgentOutcome:
        try:
            outcome = await agent.execute(context)
        except Exception as e:
            self.logger.exception(
                "agent_failed", agent_id=descriptor.id, subject_id=context.subject_id
            )
            return AgentOutcome.failed(
                agent_id=descriptor.id,
                subject_id=context.subject_id,
                error=f"{type(e).__name__}: {e}",
            )
        if not isinstance(outcome, AgentOutcome):
            return AgentOutcome.failed(
                agent_id=descriptor.id,
                subject_id=context.subject_id,
                error=f"Agent returned {type(outcome).__name__} instead of an outcome",
            )
        return outcome

    # --- Scheduler ---

    def watch(self, subject_id: str) -> None:
        self._watched.add(subject_id)

    def unwatch(self, subject_id: str) -> bool:
        if subject_id in self._watched:
            self._watched.discard(subject_id)
            return True
        return False

    @property
    def watched_subjects(self) -> List[str]:
        return sorted(self._watched)

    @property
    def cycle_count(self) -> int:
        return self._cycle_count

    @property
    def is_running(self) -> bool:
        return self._running

    async def run_once(self) -> Dict[str, List[AgentOutcome]]:
        """One scheduler cycle over all watched subjects."""
        self._cycle_count += 1
        return await self.execute_for_subjects(self.watched_subjects, due_only=True)

    async def run_async(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Run scheduler cycles until stop_event is set."""
        self._running = True
        if stop_event is None:
            stop_event = asyncio.Event()

        try:
            while not stop_event.is_set():
                await self.run_once()
                try:
                    await asyncio.wait_for(
                        stop_event.wait(),
                        timeout=self.config.execution_interval_seconds,
                    )
                except asyncio.TimeoutError:
                    continue
        finally:
            self._running = False
