"""Agent descriptors, action proposals and outcomes."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from netpilot.errors import PipelineStateError
from netpilot.models.telemetry import TelemetrySnapshot


def clamp_confidence(value: float) -> float:
    """Clamp a confidence score into [0.0, 1.0]."""
    return round(max(0.0, min(1.0, float(value))), 4)


class AgentDescriptor(BaseModel):
    """Registration-time description of an agent plus its admin settings."""

    id: str
    name: str
    description: str = ""
    priority: int = 0                       # Higher runs first
    enabled: bool = True
    execution_interval_seconds: int = Field(ge=1, default=30)


class ActionStatus(str, Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class ActionProposal(BaseModel):
    """
    A side effect an agent or rule group wants performed.

    Proposals start PENDING and are completed exactly once; completion
    returns a new proposal rather than mutating this one.
    """

    model_config = ConfigDict(frozen=True)

    type: str                               # e.g., "QOS_ADJUSTMENT"
    target: str                             # Collaborator that performs it
    reason: str = ""
    status: ActionStatus = ActionStatus.PENDING
    parameters: Dict[str, Any] = {}
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    def complete(
        self,
        success: bool,
        result: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ) -> "ActionProposal":
        if self.status != ActionStatus.PENDING:
            raise PipelineStateError(
                f"Action {self.type} already completed with status {self.status.value}"
            )
        return self.model_copy(update={
            "status": ActionStatus.SUCCESS if success else ActionStatus.FAILED,
            "result": result,
            "error": None if success else (error or "unknown error"),
        })


class AgentOutcome(BaseModel):
    """Immutable result of one agent run."""

    model_config = ConfigDict(frozen=True)

    agent_id: str
    subject_id: str
    success: bool
    confidence: float = Field(ge=0, le=1, default=0.0)
    message: str = ""
    actions: List[ActionProposal] = []
    recommendations: List[str] = []
    metrics: Dict[str, Any] = {}
    metadata: Dict[str, Any] = {}
    error: Optional[str] = None
    executed_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp(cls, value: float) -> float:
        return clamp_confidence(value)

    @classmethod
    def failed(
        cls, agent_id: str, subject_id: str, error: str, message: str = ""
    ) -> "AgentOutcome":
        return cls(
            agent_id=agent_id,
            subject_id=subject_id,
            success=False,
            confidence=0.0,
            message=message or f"Agent {agent_id} failed",
            error=error,
        )


class ExecutionContext:
    """
    Per-batch context shared by the agents dispatched for one subject.

    Prior results only ever contain outcomes of agents that already ran
    in this batch.
    """

    def __init__(self, subject_id: str, telemetry: TelemetrySnapshot):
        self.subject_id = subject_id
        self.telemetry = telemetry
        self.created_at = datetime.now(timezone.utc)
        self._prior_results: Dict[str, AgentOutcome] = {}

    @property
    def prior_results(self) -> Dict[str, AgentOutcome]:
        return dict(self._prior_results)

    def prior_result(self, agent_id: str) -> Optional[AgentOutcome]:
        return self._prior_results.get(agent_id)

    def record(self, outcome: AgentOutcome) -> None:
        self._prior_results[outcome.agent_id] = outcome
