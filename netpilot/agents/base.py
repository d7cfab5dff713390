"""
Agent contract.

Behavioral Contract:
- should_execute(context) is true only when the telemetry parts the agent
  needs are present
- execute(context) never raises; failures come back as a FAILED outcome
- Every side effect is awaited before the outcome is built, so no returned
  ActionProposal is ever still PENDING
- Agents hold no admin state; enabled/priority live in the registry
"""

from typing import Any, Awaitable, Callable, Dict, List, Protocol, Tuple

from netpilot.collaborators.contracts import CallResult
from netpilot.logs import get_logger
from netpilot.models.agent import (
    ActionProposal,
    ActionStatus,
    AgentDescriptor,
    AgentOutcome,
    ExecutionContext,
)


class Agent(Protocol):
    """Capability every registered agent implements."""

    @property
    def agent_id(self) -> str: ...

    def descriptor(self) -> AgentDescriptor: ...

    def should_execute(self, context: ExecutionContext) -> bool: ...

    async def execute(self, context: ExecutionContext) -> AgentOutcome: ...


class PolicyAgent:
    """
    Shared plumbing for the built-in agents. Subclasses set the class
    attributes and implement run(); execute() guards the boundary.
    """

    agent_id: str = ""
    name: str = ""
    description: str = ""
    default_priority: int = 0
    execution_interval_seconds: int = 30
    required_telemetry: Tuple[str, ...] = ()

    def __init__(self):
        self.logger = get_logger("agent").bind(agent=self.agent_id)

    def descriptor(self) -> AgentDescriptor:
        return AgentDescriptor(
            id=self.agent_id,
            name=self.name,
            description=self.description,
            priority=self.default_priority,
            execution_interval_seconds=self.execution_interval_seconds,
        )

    def should_execute(self, context: ExecutionContext) -> bool:
        return context.telemetry.has_parts(*self.required_telemetry)

    async def execute(self, context: ExecutionContext) -> AgentOutcome:
        try:
            return await self.run(context)
        except Exception as e:
            self.logger.exception(
                "agent_failed", subject_id=context.subject_id, error=str(e)
            )
            return AgentOutcome.failed(
                agent_id=self.agent_id,
                subject_id=context.subject_id,
                error=f"{type(e).__name__}: {e}",
                message=f"{self.name} failed: {e}",
            )

    async def run(self, context: ExecutionContext) -> AgentOutcome:
        raise NotImplementedError

    def outcome(self, context: ExecutionContext, **fields: Any) -> AgentOutcome:
        return AgentOutcome(agent_id=self.agent_id, subject_id=context.subject_id, **fields)

    async def perform(
        self,
        action: ActionProposal,
        call: Callable[[], Awaitable[CallResult]],
    ) -> ActionProposal:
        """Await a side effect and return the action completed with its result."""
        result = await call()
        if not result.ok:
            self.logger.warning(
                "action_failed",
                action=action.type,
                target=action.target,
                error=result.error,
                attempts=result.attempts,
            )
        return action.complete(result.ok, result=result.data, error=result.error)


def all_succeeded(actions: List[ActionProposal]) -> bool:
    return all(a.status == ActionStatus.SUCCESS for a in actions)


def failed_errors(actions: List[ActionProposal]) -> List[str]:
    return [f"{a.type}: {a.error}" for a in actions if a.status == ActionStatus.FAILED]


def merge_metrics(*parts: Dict[str, Any]) -> Dict[str, Any]:
    merged: Dict[str, Any] = {}
    for part in parts:
        merged.update({k: v for k, v in part.items() if v is not None})
    return merged
