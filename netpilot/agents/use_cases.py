"""
Use-case agents: healthcare, smart city, public safety, transportation,
and the read-only network monitor.
"""

from typing import List

from netpilot.agents.base import PolicyAgent, all_succeeded, failed_errors
from netpilot.collaborators.contracts import ActionGateway
from netpilot.models.agent import ActionProposal, AgentOutcome, ExecutionContext
from netpilot.models.telemetry import ConnectivityMetrics


def _disconnected(c: ConnectivityMetrics) -> bool:
    # Unknown connection state counts as disconnected
    return c.is_connected is not True


def _signal_below(c: ConnectivityMetrics, limit: int) -> bool:
    return c.signal_strength is not None and c.signal_strength < limit


def _latency_above(c: ConnectivityMetrics, limit: int) -> bool:
    return c.latency is not None and c.latency > limit


class QoSUseCaseAgent(PolicyAgent):
    """A use case that boosts QoS when its connectivity trigger fires."""

    required_telemetry = ("connectivity",)
    action_type: str = ""
    qos_parameters: dict = {}
    action_confidence: float = 0.9
    use_case: str = ""
    healthy_label: str = "HEALTHY"
    attention_label: str = "NEEDS_ATTENTION"

    def __init__(self, gateway: ActionGateway):
        super().__init__()
        self.gateway = gateway

    def needs_qos(self, c: ConnectivityMetrics) -> bool:
        raise NotImplementedError

    async def side_checks(self, context: ExecutionContext) -> List[ActionProposal]:
        return []

    async def run(self, context: ExecutionContext) -> AgentOutcome:
        c = context.telemetry.connectivity
        metrics = {
            "signal_strength": c.signal_strength,
            "latency": c.latency,
            "is_connected": c.is_connected,
        }
        metadata = {"use_case": self.use_case}

        if not self.needs_qos(c):
            metrics["health_status"] = self.healthy_label
            return self.outcome(
                context,
                success=True,
                confidence=self.action_confidence,
                message=f"{self.name}: connectivity is sufficient",
                actions=await self.side_checks(context),
                metrics=metrics,
                metadata=metadata,
            )

        action = ActionProposal(
            type=self.action_type,
            target="connectivity-service",
            reason=f"{self.use_case} connectivity below requirements",
            parameters=dict(self.qos_parameters),
        )
        actions = [
            await self.perform(
                action,
                lambda: self.gateway.request_qos(context.subject_id, action.parameters),
            )
        ]
        actions.extend(await self.side_checks(context))
        metrics["health_status"] = self.attention_label

        errors = failed_errors(actions)
        success = all_succeeded(actions)
        return self.outcome(
            context,
            success=success,
            confidence=self.action_confidence,
            message=(
                f"{self.name}: QoS boost applied"
                if success else f"{self.name}: QoS boost incomplete"
            ),
            actions=actions,
            recommendations=[f"Prioritize {self.use_case} traffic for {context.subject_id}"],
            metrics=metrics,
            metadata=metadata,
            error="; ".join(errors) if errors else None,
        )


class HealthcareMonitoringAgent(QoSUseCaseAgent):
    agent_id = "healthcare-monitoring-agent"
    name = "Healthcare Monitoring Agent"
    description = "Keeps medical devices on low-latency connectivity"
    default_priority = 9
    execution_interval_seconds = 15
    action_type = "HEALTHCARE_QOS"
    qos_parameters = {"priority": 1, "latency": 30, "bandwidth": 50.0}
    use_case = "HEALTHCARE"
    healthy_label = "OPTIMAL"
    attention_label = "NEEDS_OPTIMIZATION"

    def needs_qos(self, c):
        return _disconnected(c) or _latency_above(c, 50) or _signal_below(c, 60)

    async def side_checks(self, context):
        checks = []
        if context.telemetry.device_status is not None:
            status = ActionProposal(
                type="DEVICE_STATUS_CHECK",
                target="device-management-service",
                reason="Confirm medical device is reachable",
            )
            checks.append(await self.perform(
                status, lambda: self.gateway.check_device_status(context.subject_id)
            ))
        if context.telemetry.location is not None:
            verify = ActionProposal(
                type="LOCATION_VERIFY",
                target="location-service",
                reason="Confirm patient location",
                parameters={"max_age": 60},
            )
            checks.append(await self.perform(
                verify, lambda: self.gateway.verify_location(context.subject_id, verify.parameters)
            ))
        return checks


class SmartCityAgent(QoSUseCaseAgent):
    agent_id = "smart-city-agent"
    name = "Smart City Agent"
    description = "Keeps city infrastructure sensors connected"
    default_priority = 9
    execution_interval_seconds = 20
    action_type = "QOS_BOOST"
    qos_parameters = {"priority": 1, "bandwidth": 100.0}
    use_case = "SMART_CITY"

    def needs_qos(self, c):
        return _disconnected(c) or _signal_below(c, 50)


class PublicSafetyAgent(QoSUseCaseAgent):
    agent_id = "public-safety-agent"
    name = "Public Safety Agent"
    description = "Prioritizes public safety responders"
    default_priority = 8
    execution_interval_seconds = 20
    action_type = "PUBLIC_SAFETY_QOS"
    qos_parameters = {"priority": 1, "bandwidth": 50.0}
    use_case = "PUBLIC_SAFETY"

    def needs_qos(self, c):
        return _disconnected(c) or _signal_below(c, 50)


class TransportationAgent(QoSUseCaseAgent):
    agent_id = "transportation-agent"
    name = "Transportation Agent"
    description = "Restores connectivity for vehicles and transit"
    default_priority = 7
    execution_interval_seconds = 30
    action_type = "TRANSPORTATION_QOS"
    qos_parameters = {"priority": 2, "bandwidth": 25.0}
    action_confidence = 0.85
    use_case = "TRANSPORTATION"

    def needs_qos(self, c):
        return _disconnected(c)


class NetworkMonitoringAgent(PolicyAgent):
    """Read-only anomaly scan over the whole snapshot."""

    agent_id = "network-monitoring-agent"
    name = "Network Monitoring Agent"
    description = "Reports connectivity, location and device anomalies"
    default_priority = 7
    execution_interval_seconds = 10
    required_telemetry = ("connectivity",)

    async def run(self, context: ExecutionContext) -> AgentOutcome:
        snapshot = context.telemetry
        c = snapshot.connectivity
        anomalies = []
        if _signal_below(c, 30):
            anomalies.append(f"Critical signal strength: {c.signal_strength}")
        if _latency_above(c, 200):
            anomalies.append(f"Critical latency: {c.latency}ms")
        if c.throughput is not None and c.throughput < 5:
            anomalies.append(f"Critical throughput: {c.throughput}Mbps")
        if _disconnected(c):
            anomalies.append("Device is disconnected")
        loc = snapshot.location
        if loc is not None and loc.accuracy is not None and loc.accuracy > 200:
            anomalies.append(f"Location accuracy degraded: {loc.accuracy}m")
        dev = snapshot.device_status
        if dev is not None and dev.is_active is False:
            anomalies.append("Device is inactive")

        return self.outcome(
            context,
            success=True,
            confidence=0.8 if anomalies else 1.0,
            message=(
                f"{len(anomalies)} network anomalies detected"
                if anomalies else "Network is healthy"
            ),
            recommendations=anomalies,
            metrics={
                "anomaly_count": len(anomalies),
                "signal_strength": c.signal_strength,
                "latency": c.latency,
                "network_type": c.network_type,
            },
        )
