"""Emergency contexts and the collaborator snapshots consumed by the pipeline."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


def _now() -> datetime:
    return datetime.now(timezone.utc)


class EmergencyType(str, Enum):
    SOS_BUTTON = "SOS_BUTTON"
    GEOFENCE = "GEOFENCE"
    EXTERNAL_EVENT = "EXTERNAL_EVENT"
    MANUAL_TRIGGER = "MANUAL_TRIGGER"


class EmergencySeverity(str, Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class ResponderRole(str, Enum):
    AMBULANCE = "AMBULANCE"
    POLICE = "POLICE"
    FIRE = "FIRE"
    HOSPITAL = "HOSPITAL"
    EMERGENCY_COMMAND = "EMERGENCY_COMMAND"
    OTHER = "OTHER"


class EmergencyStatus(str, Enum):
    ACTIVE = "ACTIVE"
    RESOLVED = "RESOLVED"
    CANCELLED = "CANCELLED"


class EmergencyStage(str, Enum):
    """Furthest pipeline stage reached by the latest tick."""

    DETECTED = "DETECTED"
    TRUST_VALIDATING = "TRUST_VALIDATING"
    TRUST_FAILED = "TRUST_FAILED"
    NETWORK_ASSESSING = "NETWORK_ASSESSING"
    DECIDING = "DECIDING"
    DENIED = "DENIED"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    ORCHESTRATING = "ORCHESTRATING"
    MONITORING = "MONITORING"
    RESOLVED = "RESOLVED"
    CANCELLED = "CANCELLED"


class EmergencyLocation(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    accuracy: Optional[float] = None


class EmergencyContext(BaseModel):
    """A tracked emergency. Status only ever moves from ACTIVE to a terminal value."""

    id: str
    subject_id: str
    device_id: Optional[str] = None
    emergency_type: EmergencyType
    severity: EmergencySeverity
    role: ResponderRole = ResponderRole.OTHER
    location: Optional[EmergencyLocation] = None
    status: EmergencyStatus = EmergencyStatus.ACTIVE
    source_ref: Optional[str] = None        # Geofence id or external event id
    description: str = ""
    detected_at: datetime = Field(default_factory=_now)
    resolved_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == EmergencyStatus.ACTIVE


# --- Collaborator snapshots ---

class TrustStatus(str, Enum):
    TRUSTED = "TRUSTED"
    UNTRUSTED = "UNTRUSTED"
    SUSPICIOUS = "SUSPICIOUS"
    PENDING = "PENDING"


class TrustValidation(BaseModel):
    subject_id: str
    device_id: Optional[str] = None
    status: TrustStatus
    trust_score: float = Field(ge=0, le=1)
    reason: str = ""
    validated_at: datetime = Field(default_factory=_now)

    @property
    def is_trusted(self) -> bool:
        return self.status == TrustStatus.TRUSTED


class CongestionLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class QoSCapacityStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    LIMITED = "LIMITED"
    UNAVAILABLE = "UNAVAILABLE"


class NetworkSlice(BaseModel):
    slice_id: str
    slice_type: str                         # e.g., "URLLC", "eMBB"
    capacity: float = Field(ge=0, le=1)


class NetworkState(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    congestion_level: CongestionLevel
    qos_capacity_status: QoSCapacityStatus
    available_slices: List[NetworkSlice] = []
    assessed_at: datetime = Field(default_factory=_now)


class DecisionStatus(str, Enum):
    APPROVED = "APPROVED"
    DENIED = "DENIED"
    PENDING = "PENDING"
    REQUIRES_MANUAL_REVIEW = "REQUIRES_MANUAL_REVIEW"


class DecisionOutcome(BaseModel):
    emergency_id: str
    subject_id: str
    status: DecisionStatus
    confidence_score: float = Field(ge=0, le=1)
    explanation: str
    orchestration_eligible: bool = False
    factors: Dict[str, float] = {}
    decided_at: datetime = Field(default_factory=_now)


class ExecutionStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    IN_PROGRESS = "IN_PROGRESS"
    ROLLED_BACK = "ROLLED_BACK"


class OrchestrationResult(BaseModel):
    orchestration_id: str
    status: ExecutionStatus
    qos_session_id: Optional[str] = None
    slice_id: Optional[str] = None
    error: Optional[str] = None
    completed_at: datetime = Field(default_factory=_now)

    @property
    def succeeded(self) -> bool:
        return self.status == ExecutionStatus.SUCCESS and self.qos_session_id is not None


class ConnectionStatus(str, Enum):
    CONNECTED = "CONNECTED"
    DEGRADED = "DEGRADED"
    DISCONNECTED = "DISCONNECTED"
    UNKNOWN = "UNKNOWN"


class MonitoringMetrics(BaseModel):
    emergency_id: str
    qos_session_id: str
    latency_ms: float = 10.0
    jitter_ms: float = 2.0
    packet_loss_percent: float = 0.0
    throughput_mbps: float = 100.0
    health_score: float = Field(ge=0, le=1, default=0.95)
    connection_status: ConnectionStatus = ConnectionStatus.CONNECTED
    remediation_required: bool = False
    sampled_at: datetime = Field(default_factory=_now)


class MonitoringHandle(BaseModel):
    subscription_id: str
    emergency_id: str
    qos_session_id: str
    started_at: datetime = Field(default_factory=_now)


class EmergencyTrack(BaseModel):
    """Pipeline bookkeeping for one emergency."""

    emergency_id: str
    stage: EmergencyStage = EmergencyStage.DETECTED
    tick_count: int = 0
    last_trust: Optional[TrustValidation] = None
    last_network: Optional[NetworkState] = None
    last_decision: Optional[DecisionOutcome] = None
    orchestration: Optional[OrchestrationResult] = None
    monitoring: Optional[MonitoringHandle] = None
    last_metrics: Optional[MonitoringMetrics] = None
    remediation_count: int = 0
    last_error: Optional[str] = None
    updated_at: datetime = Field(default_factory=_now)


class EmergencyTickResult(BaseModel):
    """What one pipeline tick did for one emergency."""

    emergency_id: str
    subject_id: str
    stage: EmergencyStage
    halted: bool = False
    message: str = ""
    decision: Optional[DecisionOutcome] = None
    orchestration: Optional[OrchestrationResult] = None
    metrics: Optional[MonitoringMetrics] = None
    remediation_triggered: bool = False
    details: Dict[str, Any] = {}
