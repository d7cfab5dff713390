"""Emergency connectivity agent: the routine batch's entry point into the emergency pipeline."""

from typing import Optional

from netpilot.agents.base import PolicyAgent
from netpilot.emergency.pipeline import EmergencyPipeline
from netpilot.models.agent import ActionProposal, AgentOutcome, ExecutionContext
from netpilot.models.config import EmergencyConfig
from netpilot.models.emergency import (
    EmergencyContext,
    EmergencyLocation,
    EmergencyStage,
    EmergencyTickResult,
)
from netpilot.models.telemetry import TelemetrySnapshot


def connectivity_critical(snapshot: TelemetrySnapshot) -> bool:
    c = snapshot.connectivity
    if c is None:
        return False
    return (
        c.is_connected is False
        or (c.signal_strength is not None and c.signal_strength < 30)
        or (c.latency is not None and c.latency > 100)
    )


class EmergencyConnectivityAgent(PolicyAgent):
    agent_id = "emergency-connectivity-agent"
    name = "Emergency Connectivity Agent"
    description = "Guarantees connectivity for subjects in an emergency"
    default_priority = 10
    execution_interval_seconds = 10
    required_telemetry = ("connectivity",)

    def __init__(self, pipeline: EmergencyPipeline, config: Optional[EmergencyConfig] = None):
        super().__init__()
        self.pipeline = pipeline
        self.config = config or pipeline.config

    async def run(self, context: ExecutionContext) -> AgentOutcome:
        active = self.pipeline.store.active_for_subject(context.subject_id)
        if active:
            emergency = active[0]
        elif self.config.auto_detect and connectivity_critical(context.telemetry):
            emergency = self._detect(context)
        else:
            return self.outcome(
                context,
                success=True,
                confidence=0.85,
                message="No emergency detected; monitoring connectivity",
                metrics={"active_emergencies": 0},
            )

        tick = await self.pipeline.tick(emergency.id)
        return self._from_tick(context, emergency, tick)

    def _detect(self, context: ExecutionContext) -> EmergencyContext:
        snapshot = context.telemetry
        location = None
        loc = snapshot.location
        if loc is not None and loc.latitude is not None and loc.longitude is not None:
            location = EmergencyLocation(
                latitude=loc.latitude, longitude=loc.longitude, accuracy=loc.accuracy
            )
        device_id = None
        if snapshot.device_status is not None:
            device_id = snapshot.device_status.device_id or snapshot.device_status.imei
        return self.pipeline.store.detect_sos(
            context.subject_id, device_id=device_id, location=location
        )

    def _from_tick(
        self, context: ExecutionContext, emergency: EmergencyContext, tick: EmergencyTickResult
    ) -> AgentOutcome:
        metadata = {
            "emergency_id": emergency.id,
            "emergency_type": emergency.emergency_type.value,
            "severity": emergency.severity.value,
            "stage": tick.stage.value,
        }
        if tick.decision is not None:
            metadata["decision_status"] = tick.decision.status.value

        if tick.stage == EmergencyStage.TRUST_FAILED:
            return self.outcome(
                context,
                success=False,
                confidence=0.3,
                message="Emergency detected but device trust validation failed",
                recommendations=["Providing limited connectivity until the device is trusted"],
                metadata=metadata,
                error="Device trust validation failed",
            )

        actions = []
        if tick.orchestration is not None and tick.decision is not None:
            granted = ActionProposal(
                type="GUARANTEED_CONNECTIVITY",
                target="network-orchestration-service",
                reason=tick.decision.explanation,
                parameters={"emergency_id": emergency.id},
            )
            actions.append(granted.complete(
                tick.orchestration.succeeded,
                result={
                    "orchestration_id": tick.orchestration.orchestration_id,
                    "qos_session_id": tick.orchestration.qos_session_id,
                    "slice_id": tick.orchestration.slice_id,
                },
                error=tick.orchestration.error,
            ))

        metrics = {}
        if tick.metrics is not None:
            metrics = {
                "latency_ms": tick.metrics.latency_ms,
                "jitter_ms": tick.metrics.jitter_ms,
                "packet_loss_percent": tick.metrics.packet_loss_percent,
                "health_score": tick.metrics.health_score,
            }
        recommendations = []
        if tick.remediation_triggered:
            recommendations.append("Remediation triggered: " + tick.message)

        confidence = tick.decision.confidence_score if tick.decision else 0.85
        return self.outcome(
            context,
            success=not tick.halted or tick.stage in (
                EmergencyStage.DENIED, EmergencyStage.PENDING
            ),
            confidence=confidence,
            message=tick.message,
            actions=actions,
            recommendations=recommendations,
            metrics=metrics,
            metadata=metadata,
            error=tick.details.get("error"),
        )
