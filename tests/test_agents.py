"""Tests for the built-in agents."""

import pytest
from pydantic import ValidationError as ModelValidationError

from netpilot.agents.catalog import default_agents
from netpilot.agents.emergency import EmergencyConnectivityAgent
from netpilot.agents.rule_based import (
    DeviceManagementAgent,
    LocationVerificationAgent,
    QoSOptimizationAgent,
)
from netpilot.agents.use_cases import (
    HealthcareMonitoringAgent,
    NetworkMonitoringAgent,
    PublicSafetyAgent,
    SmartCityAgent,
    TransportationAgent,
)
from netpilot.collaborators.contracts import CallResult
from netpilot.collaborators.loopback import (
    DeviceTrustValidator,
    LoopbackActionGateway,
    LoopbackNetworkOrchestrator,
    SimulatedMonitoringFeed,
    StaticNetworkAssessor,
)
from netpilot.decision.engine import DecisionEngine
from netpilot.emergency.pipeline import EmergencyPipeline
from netpilot.emergency.store import EmergencyStore
from netpilot.errors import PipelineStateError
from netpilot.models.agent import ActionProposal, ActionStatus, ExecutionContext
from netpilot.models.config import EmergencyConfig
from netpilot.models.emergency import EmergencyStage, EmergencyStatus
from netpilot.models.telemetry import (
    ConnectivityMetrics,
    DeviceStatus,
    LocationData,
    QoSMetrics,
    TelemetrySnapshot,
)

SUBJECT = "+33600000001"


def _make_context(
    signal=80, latency=20, throughput=50.0, connected=True, qos_profile="QOS_E",
    location=None, device=None, with_qos=True,
) -> ExecutionContext:
    snapshot = TelemetrySnapshot(
        subject_id=SUBJECT,
        connectivity=ConnectivityMetrics(
            signal_strength=signal, latency=latency, throughput=throughput,
            is_connected=connected, network_type="5G",
        ),
        qos=QoSMetrics(qos_profile=qos_profile) if with_qos else None,
        location=location,
        device_status=device,
    )
    return ExecutionContext(SUBJECT, snapshot)


class FailingGateway(LoopbackActionGateway):
    async def request_qos(self, subject_id, parameters):
        return CallResult.failure(
            "connectivity-service", "connectivity-service returned 503",
            error_kind="transient", status_code=503, attempts=3,
        )


class ExplodingGateway(LoopbackActionGateway):
    async def request_qos(self, subject_id, parameters):
        raise RuntimeError("gateway bug")


def _make_pipeline(trust=None) -> EmergencyPipeline:
    return EmergencyPipeline(
        store=EmergencyStore(),
        trust_validator=trust or DeviceTrustValidator(),
        network_assessor=StaticNetworkAssessor(),
        orchestrator=LoopbackNetworkOrchestrator(),
        monitoring_feed=SimulatedMonitoringFeed(),
    )


class TestActionProposal:
    def test_completes_once(self):
        """Completing returns a copy and a second completion is rejected."""
        action = ActionProposal(type="QOS_ADJUSTMENT", target="connectivity-service")
        done = action.complete(True, result={"session_id": "qos_1"})
        assert action.status == ActionStatus.PENDING
        assert done.status == ActionStatus.SUCCESS
        with pytest.raises(PipelineStateError):
            done.complete(False, error="again")

    def test_failure_carries_error(self):
        """A failed completion always has an error message."""
        action = ActionProposal(type="QOS_ADJUSTMENT", target="connectivity-service")
        done = action.complete(False)
        assert done.status == ActionStatus.FAILED
        assert done.error


class TestQoSOptimizationAgent:
    def setup_method(self):
        self.gateway = LoopbackActionGateway()
        self.agent = QoSOptimizationAgent(DecisionEngine(), self.gateway)

    def test_requires_connectivity_and_qos(self):
        """The QoS agent only runs with connectivity and QoS telemetry."""
        assert self.agent.should_execute(_make_context()) is True
        assert self.agent.should_execute(_make_context(with_qos=False)) is False

    @pytest.mark.asyncio
    async def test_acts_and_awaits_result(self):
        """Adverse telemetry produces a completed QoS request."""
        context = _make_context(signal=40, latency=150, throughput=5.0, qos_profile="DEFAULT")
        outcome = await self.agent.execute(context)

        assert outcome.success is True
        assert outcome.confidence == pytest.approx(1.0)
        assert len(outcome.actions) == 1
        assert outcome.actions[0].status == ActionStatus.SUCCESS
        assert outcome.actions[0].result["operation"] == "qos_request"
        assert len(self.gateway.calls) == 1
        assert self.gateway.calls[0]["parameters"]["bandwidth"] == 100.0

    @pytest.mark.asyncio
    async def test_idle_when_healthy(self):
        """Healthy telemetry performs no side effect."""
        outcome = await self.agent.execute(_make_context())
        assert outcome.success is True
        assert outcome.actions == []
        assert self.gateway.calls == []

    @pytest.mark.asyncio
    async def test_failed_request_is_reported(self):
        """A failed gateway call fails the action and the outcome."""
        agent = QoSOptimizationAgent(DecisionEngine(), FailingGateway())
        context = _make_context(signal=40, latency=150, throughput=5.0, qos_profile="DEFAULT")
        outcome = await agent.execute(context)

        assert outcome.success is False
        assert outcome.actions[0].status == ActionStatus.FAILED
        assert "503" in outcome.actions[0].error
        assert "503" in outcome.error

    @pytest.mark.asyncio
    async def test_internal_error_becomes_failed_outcome(self):
        """An exception inside the agent comes back as a failed outcome."""
        agent = QoSOptimizationAgent(DecisionEngine(), ExplodingGateway())
        context = _make_context(signal=40, latency=150, throughput=5.0, qos_profile="DEFAULT")
        outcome = await agent.execute(context)

        assert outcome.success is False
        assert "gateway bug" in outcome.error

    @pytest.mark.asyncio
    async def test_missing_rule_group_fails_the_agent(self):
        """An engine without the agent's rule group fails the run."""
        agent = QoSOptimizationAgent(DecisionEngine(groups={}), LoopbackActionGateway())
        outcome = await agent.execute(_make_context())

        assert outcome.success is False
        assert outcome.error.startswith("InternalAgentError")

    @pytest.mark.asyncio
    async def test_outcome_is_immutable(self):
        """Outcomes cannot be modified after they are returned."""
        outcome = await self.agent.execute(_make_context())
        with pytest.raises(ModelValidationError):
            outcome.success = False


class TestLocationAndDeviceAgents:
    @pytest.mark.asyncio
    async def test_stale_location_is_verified(self):
        """A stale location triggers a verification."""
        gateway = LoopbackActionGateway()
        agent = LocationVerificationAgent(DecisionEngine(), gateway)
        context = _make_context(location=LocationData(latitude=1.0, longitude=2.0, max_age=300))

        assert agent.should_execute(context) is True
        outcome = await agent.execute(context)

        assert outcome.confidence == pytest.approx(0.8)
        assert outcome.actions[0].type == "LOCATION_VERIFY"
        assert outcome.actions[0].status == ActionStatus.SUCCESS

    def test_location_agent_needs_location(self):
        """No location telemetry means the agent declines."""
        agent = LocationVerificationAgent(DecisionEngine(), LoopbackActionGateway())
        assert agent.should_execute(_make_context()) is False

    @pytest.mark.asyncio
    async def test_inactive_device_checks_swap(self):
        """An inactive device triggers a swap check."""
        gateway = LoopbackActionGateway()
        agent = DeviceManagementAgent(DecisionEngine(), gateway)
        context = _make_context(device=DeviceStatus(device_id="dev_1", is_active=False))

        outcome = await agent.execute(context)

        assert outcome.confidence == pytest.approx(0.9)
        assert outcome.actions[0].type == "DEVICE_SWAP"
        assert gateway.calls[0]["operation"] == "swap_check"


class TestUseCaseAgents:
    @pytest.mark.asyncio
    async def test_healthcare_optimizes_high_latency(self):
        """High latency boosts QoS and runs the side checks."""
        gateway = LoopbackActionGateway()
        agent = HealthcareMonitoringAgent(gateway)
        context = _make_context(
            latency=80,
            device=DeviceStatus(device_id="dev_1", is_active=True),
            location=LocationData(latitude=1.0, longitude=2.0),
        )

        outcome = await agent.execute(context)

        assert outcome.confidence == pytest.approx(0.9)
        assert [a.type for a in outcome.actions] == [
            "HEALTHCARE_QOS", "DEVICE_STATUS_CHECK", "LOCATION_VERIFY",
        ]
        assert outcome.actions[0].parameters == {"priority": 1, "latency": 30, "bandwidth": 50.0}
        assert outcome.metrics["health_status"] == "NEEDS_OPTIMIZATION"

    @pytest.mark.asyncio
    async def test_healthcare_optimal(self):
        """Good connectivity is reported as optimal."""
        outcome = await HealthcareMonitoringAgent(LoopbackActionGateway()).execute(
            _make_context(signal=90, latency=20)
        )
        assert outcome.metrics["health_status"] == "OPTIMAL"
        assert outcome.confidence == pytest.approx(0.9)
        assert outcome.actions == []

    @pytest.mark.asyncio
    async def test_healthy_branch_keeps_agent_confidence(self):
        """Use-case agents report their own confidence when idle."""
        smart_city = await SmartCityAgent(LoopbackActionGateway()).execute(_make_context())
        transport = await TransportationAgent(LoopbackActionGateway()).execute(_make_context())
        assert smart_city.actions == []
        assert smart_city.confidence == pytest.approx(0.9)
        assert transport.actions == []
        assert transport.confidence == pytest.approx(0.85)

    @pytest.mark.asyncio
    async def test_unknown_connection_state_counts_as_disconnected(self):
        """A missing is_connected triggers the boost."""
        gateway = LoopbackActionGateway()
        outcome = await TransportationAgent(gateway).execute(_make_context(connected=None))
        assert outcome.actions[0].type == "TRANSPORTATION_QOS"
        assert outcome.actions[0].status == ActionStatus.SUCCESS
        assert len(gateway.calls) == 1

    @pytest.mark.asyncio
    async def test_public_safety_metadata(self):
        """Public safety boosts carry their use case."""
        outcome = await PublicSafetyAgent(LoopbackActionGateway()).execute(_make_context(signal=20))
        assert outcome.metadata["use_case"] == "PUBLIC_SAFETY"
        assert outcome.actions[0].parameters["bandwidth"] == 50.0

    @pytest.mark.asyncio
    async def test_transportation_only_acts_when_disconnected(self):
        """Weak signal alone does not trigger transportation."""
        agent = TransportationAgent(LoopbackActionGateway())
        idle = await agent.execute(_make_context(signal=10))
        acting = await agent.execute(_make_context(connected=False))
        assert idle.actions == []
        assert acting.confidence == pytest.approx(0.85)
        assert acting.actions[0].parameters == {"priority": 2, "bandwidth": 25.0}

    @pytest.mark.asyncio
    async def test_network_monitoring_anomalies(self):
        """Each anomaly is counted and lowers confidence."""
        agent = NetworkMonitoringAgent()
        clean = await agent.execute(_make_context())
        noisy = await agent.execute(_make_context(signal=10, latency=300, throughput=1.0))
        assert clean.confidence == 1.0
        assert noisy.confidence == pytest.approx(0.8)
        assert noisy.metrics["anomaly_count"] == 3


class TestEmergencyConnectivityAgent:
    @pytest.mark.asyncio
    async def test_monitoring_only_when_connectivity_is_fine(self):
        """No emergency and fine connectivity means monitoring only."""
        agent = EmergencyConnectivityAgent(_make_pipeline())
        outcome = await agent.execute(_make_context())
        assert outcome.success is True
        assert outcome.confidence == pytest.approx(0.85)
        assert outcome.actions == []

    @pytest.mark.asyncio
    async def test_critical_connectivity_is_orchestrated(self):
        """Critical connectivity raises an SOS and orchestrates it."""
        pipeline = _make_pipeline()
        agent = EmergencyConnectivityAgent(pipeline)
        context = _make_context(
            connected=False,
            device=DeviceStatus(device_id="dev_1", is_active=True),
            location=LocationData(latitude=48.85, longitude=2.35),
        )

        outcome = await agent.execute(context)

        assert outcome.success is True
        assert outcome.metadata["stage"] == EmergencyStage.MONITORING.value
        assert outcome.actions[0].type == "GUARANTEED_CONNECTIVITY"
        assert outcome.actions[0].target == "network-orchestration-service"
        assert outcome.actions[0].status == ActionStatus.SUCCESS
        active = pipeline.store.active_for_subject(SUBJECT)
        assert len(active) == 1

    @pytest.mark.asyncio
    async def test_untrusted_device_gets_limited_connectivity(self):
        """Trust failure keeps the emergency active with limited connectivity."""
        pipeline = _make_pipeline()
        agent = EmergencyConnectivityAgent(pipeline)
        # No device id, so the reference validator scores 0.5
        outcome = await agent.execute(_make_context(connected=False))

        assert outcome.success is False
        assert outcome.confidence == pytest.approx(0.3)
        assert outcome.message == "Emergency detected but device trust validation failed"
        active = pipeline.store.active_for_subject(SUBJECT)
        assert active[0].status == EmergencyStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_existing_emergency_is_ticked(self):
        """An active emergency is ticked instead of detecting a new one."""
        pipeline = _make_pipeline()
        emergency = pipeline.store.detect_geofence(SUBJECT, "zone_1", device_id="dev_1")
        agent = EmergencyConnectivityAgent(pipeline)

        outcome = await agent.execute(_make_context())

        assert outcome.metadata["emergency_id"] == emergency.id
        assert outcome.metadata["decision_status"] == "PENDING"

    @pytest.mark.asyncio
    async def test_auto_detect_off(self):
        """Auto-detection can be switched off."""
        pipeline = _make_pipeline()
        agent = EmergencyConnectivityAgent(pipeline, EmergencyConfig(auto_detect=False))
        outcome = await agent.execute(_make_context(connected=False))
        assert outcome.confidence == pytest.approx(0.85)
        assert pipeline.store.active_for_subject(SUBJECT) == []


class TestCatalog:
    def test_default_agents_have_unique_ids_and_priorities(self):
        """The catalog builds all nine agents with their settings."""
        agents = default_agents(DecisionEngine(), LoopbackActionGateway(), _make_pipeline())
        descriptors = [a.descriptor() for a in agents]
        assert len({d.id for d in descriptors}) == 9
        by_id = {d.id: d for d in descriptors}
        assert by_id["emergency-connectivity-agent"].priority == 10
        assert by_id["device-management-agent"].priority == 5
        assert by_id["location-verification-agent"].execution_interval_seconds == 60
