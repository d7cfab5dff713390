"""netpilot data models."""

from netpilot.models.agent import (
    ActionProposal,
    ActionStatus,
    AgentDescriptor,
    AgentOutcome,
    ExecutionContext,
    clamp_confidence,
)
from netpilot.models.config import (
    ClientConfig,
    DecisionConfig,
    EmergencyConfig,
    OrchestratorConfig,
)
from netpilot.models.decision import CombinationStrategy, DecisionResult
from netpilot.models.emergency import (
    ConnectionStatus,
    CongestionLevel,
    DecisionOutcome,
    DecisionStatus,
    EmergencyContext,
    EmergencyLocation,
    EmergencySeverity,
    EmergencyStage,
    EmergencyStatus,
    EmergencyTickResult,
    EmergencyTrack,
    EmergencyType,
    ExecutionStatus,
    MonitoringHandle,
    MonitoringMetrics,
    NetworkSlice,
    NetworkState,
    OrchestrationResult,
    QoSCapacityStatus,
    ResponderRole,
    TrustStatus,
    TrustValidation,
)
from netpilot.models.telemetry import (
    ConnectivityMetrics,
    DeviceState,
    DeviceStatus,
    LocationData,
    QoSMetrics,
    TelemetrySnapshot,
)

__all__ = [
    "ActionProposal",
    "ActionStatus",
    "AgentDescriptor",
    "AgentOutcome",
    "ClientConfig",
    "CombinationStrategy",
    "ConnectionStatus",
    "ConnectivityMetrics",
    "CongestionLevel",
    "DecisionConfig",
    "DecisionOutcome",
    "DecisionResult",
    "DecisionStatus",
    "DeviceState",
    "DeviceStatus",
    "EmergencyConfig",
    "EmergencyContext",
    "EmergencyLocation",
    "EmergencySeverity",
    "EmergencyStage",
    "EmergencyStatus",
    "EmergencyTickResult",
    "EmergencyTrack",
    "EmergencyType",
    "ExecutionContext",
    "ExecutionStatus",
    "LocationData",
    "MonitoringHandle",
    "MonitoringMetrics",
    "NetworkSlice",
    "NetworkState",
    "OrchestrationResult",
    "OrchestratorConfig",
    "QoSCapacityStatus",
    "QoSMetrics",
    "ResponderRole",
    "TelemetrySnapshot",
    "TrustStatus",
    "TrustValidation",
    "clamp_confidence",
]
