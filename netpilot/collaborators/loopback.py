"""
In-process collaborators.

Used by the default application wiring when no service endpoints are
configured. They keep enough state to behave consistently across calls
(sessions can be rolled back, monitoring samples can be degraded).
"""

from typing import Any, Dict, List, Optional
from uuid import uuid4

from netpilot.collaborators.contracts import CallResult
from netpilot.logs import get_logger
from netpilot.models.emergency import (
    CongestionLevel,
    DecisionOutcome,
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

logger = get_logger("loopback")


class LoopbackActionGateway:
    """Accepts every side effect and records it."""

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []

    def _accept(self, service: str, operation: str, subject_id: str, parameters: Dict[str, Any]) -> CallResult:
        self.calls.append({
            "service": service,
            "operation": operation,
            "subject_id": subject_id,
            "parameters": dict(parameters),
        })
        return CallResult.success(service, {
            "operation": operation,
            "subject_id": subject_id,
            "reference": f"{operation}_{uuid4().hex[:12]}",
            **parameters,
        })

    async def request_qos(self, subject_id: str, parameters: Dict[str, Any]) -> CallResult:
        return self._accept("connectivity-service", "qos_request", subject_id, parameters)

    async def verify_location(self, subject_id: str, parameters: Dict[str, Any]) -> CallResult:
        result = self._accept("location-service", "location_verify", subject_id, parameters)
        return result.model_copy(update={"data": {**result.data, "verified": True}})

    async def check_device_status(self, subject_id: str) -> CallResult:
        result = self._accept("device-management-service", "device_status", subject_id, {})
        return result.model_copy(update={"data": {**result.data, "status": "ACTIVE"}})

    async def check_device_swap(self, subject_id: str, parameters: Dict[str, Any]) -> CallResult:
        result = self._accept("device-management-service", "swap_check", subject_id, parameters)
        return result.model_copy(update={"data": {**result.data, "swapped": False}})


class DeviceTrustValidator:
    """
    Scores 0.9 when a device id is presented and 0.5 otherwise; TRUSTED
    at 0.8 and above. A device that does not match the one registered
    for the subject is SUSPICIOUS.
    """

    def __init__(self, registered_devices: Optional[Dict[str, str]] = None, trusted_threshold: float = 0.8):
        self.registered_devices = dict(registered_devices or {})
        self.trusted_threshold = trusted_threshold

    def register_device(self, subject_id: str, device_id: str) -> None:
        self.registered_devices[subject_id] = device_id

    async def validate(
        self, subject_id: str, device_id: Optional[str], expected_role: ResponderRole
    ) -> TrustValidation:
        registered = self.registered_devices.get(subject_id)
        if registered is not None and device_id is not None and registered != device_id:
            return TrustValidation(
                subject_id=subject_id,
                device_id=device_id,
                status=TrustStatus.SUSPICIOUS,
                trust_score=0.2,
                reason=f"Device {device_id} is not registered to {subject_id}",
            )

        score = 0.9 if device_id else 0.5
        status = TrustStatus.TRUSTED if score >= self.trusted_threshold else TrustStatus.UNTRUSTED
        return TrustValidation(
            subject_id=subject_id,
            device_id=device_id,
            status=status,
            trust_score=score,
            reason=f"Validated for role {expected_role.value}",
        )


class StaticNetworkAssessor:
    def __init__(
        self,
        congestion: CongestionLevel = CongestionLevel.LOW,
        capacity: QoSCapacityStatus = QoSCapacityStatus.AVAILABLE,
        slices: Optional[List[NetworkSlice]] = None,
    ):
        self.congestion = congestion
        self.capacity = capacity
        self.slices = slices if slices is not None else [
            NetworkSlice(slice_id="slice_emergency_urllc", slice_type="URLLC", capacity=0.8),
        ]

    async def assess(self, latitude: Optional[float], longitude: Optional[float]) -> NetworkState:
        return NetworkState(
            latitude=latitude,
            longitude=longitude,
            congestion_level=self.congestion,
            qos_capacity_status=self.capacity,
            available_slices=list(self.slices),
        )


class LoopbackNetworkOrchestrator:
    """Grants a QoS session per decision and remembers it for rollback."""

    def __init__(self, slice_id: str = "slice_emergency_urllc"):
        self.slice_id = slice_id
        self.sessions: Dict[str, OrchestrationResult] = {}

    async def execute_guaranteed_connectivity(self, decision: DecisionOutcome) -> OrchestrationResult:
        result = OrchestrationResult(
            orchestration_id=f"orch_{uuid4().hex[:12]}",
            status=ExecutionStatus.SUCCESS,
            qos_session_id=f"qos_{uuid4().hex[:12]}",
            slice_id=self.slice_id,
        )
        self.sessions[result.orchestration_id] = result
        logger.info(
            "guaranteed_connectivity_granted",
            emergency_id=decision.emergency_id,
            orchestration_id=result.orchestration_id,
        )
        return result

    async def rollback(self, orchestration_id: str) -> OrchestrationResult:
        session = self.sessions.get(orchestration_id)
        if session is None:
            return OrchestrationResult(
                orchestration_id=orchestration_id,
                status=ExecutionStatus.FAILED,
                error=f"Unknown orchestration {orchestration_id}",
            )
        rolled_back = session.model_copy(update={"status": ExecutionStatus.ROLLED_BACK})
        self.sessions[orchestration_id] = rolled_back
        return rolled_back


class SimulatedMonitoringFeed:
    """Nominal metrics unless a degraded sample was queued for the emergency."""

    def __init__(self):
        self.subscriptions: Dict[str, MonitoringHandle] = {}
        self._queued: Dict[str, List[Dict[str, Any]]] = {}

    def queue_sample(self, emergency_id: str, **overrides: Any) -> None:
        self._queued.setdefault(emergency_id, []).append(overrides)

    async def start(self, emergency_id: str, qos_session_id: str) -> MonitoringHandle:
        handle = MonitoringHandle(
            subscription_id=f"mon_{uuid4().hex[:12]}",
            emergency_id=emergency_id,
            qos_session_id=qos_session_id,
        )
        self.subscriptions[handle.subscription_id] = handle
        return handle

    async def tick(self, handle: MonitoringHandle) -> MonitoringMetrics:
        queued = self._queued.get(handle.emergency_id)
        overrides = queued.pop(0) if queued else {}
        return MonitoringMetrics(
            emergency_id=handle.emergency_id,
            qos_session_id=handle.qos_session_id,
            **overrides,
        )

    async def stop(self, handle: MonitoringHandle) -> None:
        self.subscriptions.pop(handle.subscription_id, None)
