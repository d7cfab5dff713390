"""
Outbound collaborator contracts.

Pipeline collaborators return their typed snapshot or raise an
UpstreamError; the emergency pipeline turns a raise into a halted stage.
Agent side effects go through an ActionGateway, whose calls never raise
and report a CallResult instead.
"""

from typing import Any, Dict, Optional, Protocol

from pydantic import BaseModel

from netpilot.models.emergency import (
    DecisionOutcome,
    MonitoringHandle,
    MonitoringMetrics,
    NetworkState,
    OrchestrationResult,
    ResponderRole,
    TrustValidation,
)
from netpilot.models.telemetry import TelemetrySnapshot


class CallResult(BaseModel):
    """Success-or-failure of one side-effecting collaborator call."""

    ok: bool
    service: str
    data: Dict[str, Any] = {}
    error: Optional[str] = None
    error_kind: Optional[str] = None        # "transient" | "permanent" | "internal"
    status_code: Optional[int] = None
    attempts: int = 1

    @classmethod
    def success(cls, service: str, data: Optional[Dict[str, Any]] = None, attempts: int = 1) -> "CallResult":
        return cls(ok=True, service=service, data=data or {}, attempts=attempts)

    @classmethod
    def failure(
        cls,
        service: str,
        error: str,
        error_kind: str,
        status_code: Optional[int] = None,
        attempts: int = 1,
    ) -> "CallResult":
        return cls(
            ok=False,
            service=service,
            error=error,
            error_kind=error_kind,
            status_code=status_code,
            attempts=attempts,
        )


class TelemetryProvider(Protocol):
    async def collect(self, subject_id: str) -> Optional[TelemetrySnapshot]:
        """Latest snapshot, or None when no telemetry could be collected."""
        ...


class ActionGateway(Protocol):
    async def request_qos(self, subject_id: str, parameters: Dict[str, Any]) -> CallResult:
        ...

    async def verify_location(self, subject_id: str, parameters: Dict[str, Any]) -> CallResult:
        ...

    async def check_device_status(self, subject_id: str) -> CallResult:
        ...

    async def check_device_swap(self, subject_id: str, parameters: Dict[str, Any]) -> CallResult:
        ...


class TrustValidator(Protocol):
    async def validate(
        self, subject_id: str, device_id: Optional[str], expected_role: ResponderRole
    ) -> TrustValidation:
        ...


class NetworkStateAssessor(Protocol):
    async def assess(self, latitude: Optional[float], longitude: Optional[float]) -> NetworkState:
        ...


class NetworkOrchestrator(Protocol):
    async def execute_guaranteed_connectivity(self, decision: DecisionOutcome) -> OrchestrationResult:
        ...

    async def rollback(self, orchestration_id: str) -> OrchestrationResult:
        ...


class MonitoringFeed(Protocol):
    async def start(self, emergency_id: str, qos_session_id: str) -> MonitoringHandle:
        ...

    async def tick(self, handle: MonitoringHandle) -> MonitoringMetrics:
        ...

    async def stop(self, handle: MonitoringHandle) -> None:
        ...
