"""Tests for core models, the telemetry store and settings."""

import pytest

from netpilot.models.agent import AgentOutcome, ExecutionContext, clamp_confidence
from netpilot.models.emergency import EmergencyContext, EmergencySeverity, EmergencyType
from netpilot.models.telemetry import ConnectivityMetrics, TelemetrySnapshot
from netpilot.settings import Settings
from netpilot.telemetry.store import TelemetryStore


class TestAgentOutcome:
    def test_confidence_is_clamped(self):
        """Confidence is clamped into [0, 1]."""
        high = AgentOutcome(agent_id="a", subject_id="s", success=True, confidence=1.7)
        low = AgentOutcome(agent_id="a", subject_id="s", success=True, confidence=-0.2)
        assert high.confidence == 1.0
        assert low.confidence == 0.0

    def test_clamp_rounds(self):
        """Clamped confidence is rounded."""
        assert clamp_confidence(0.1 + 0.2) == 0.3

    def test_failed_factory(self):
        """Failed outcomes carry the error and no actions."""
        outcome = AgentOutcome.failed("a", "s", "boom")
        assert outcome.success is False
        assert outcome.confidence == 0.0
        assert outcome.error == "boom"
        assert outcome.actions == []


class TestExecutionContext:
    def test_prior_results_are_a_copy(self):
        """Callers cannot modify recorded prior results."""
        snapshot = TelemetrySnapshot(subject_id="s", connectivity=ConnectivityMetrics(latency=10))
        context = ExecutionContext("s", snapshot)
        context.record(AgentOutcome(agent_id="a", subject_id="s", success=True))

        prior = context.prior_results
        prior.clear()

        assert context.prior_result("a") is not None
        assert context.prior_result("b") is None


class TestTelemetrySnapshot:
    def test_empty(self):
        """A snapshot with no parts is empty."""
        assert TelemetrySnapshot(subject_id="s").is_empty() is True

    def test_has_parts(self):
        """has_parts requires every named part."""
        snapshot = TelemetrySnapshot(subject_id="s", connectivity=ConnectivityMetrics())
        assert snapshot.has_parts("connectivity") is True
        assert snapshot.has_parts("connectivity", "qos") is False


class TestTelemetryStore:
    @pytest.mark.asyncio
    async def test_collect_latest(self):
        """The latest ingested snapshot wins."""
        store = TelemetryStore()
        store.ingest(TelemetrySnapshot(subject_id="s", connectivity=ConnectivityMetrics(latency=10)))
        store.ingest(TelemetrySnapshot(subject_id="s", connectivity=ConnectivityMetrics(latency=90)))

        snapshot = await store.collect("s")

        assert snapshot.connectivity.latency == 90
        assert store.subjects() == ["s"]

    @pytest.mark.asyncio
    async def test_empty_snapshot_is_unavailable(self):
        """Empty or missing snapshots are unavailable."""
        store = TelemetryStore()
        store.ingest(TelemetrySnapshot(subject_id="s"))
        assert await store.collect("s") is None
        assert await store.collect("other") is None

    def test_remove(self):
        """Removing reports whether a snapshot existed."""
        store = TelemetryStore()
        store.ingest(TelemetrySnapshot(subject_id="s"))
        assert store.remove("s") is True
        assert store.remove("s") is False


class TestEmergencyContext:
    def test_new_context_is_active(self):
        """New emergencies start ACTIVE."""
        context = EmergencyContext(
            id="emg_1",
            subject_id="s",
            emergency_type=EmergencyType.SOS_BUTTON,
            severity=EmergencySeverity.CRITICAL,
        )
        assert context.is_active is True


class TestSettings:
    def test_builds_component_configs(self):
        """Settings feed every component config."""
        settings = Settings(
            confidence_threshold=0.6,
            max_concurrent_agents=4,
            service_retry_attempts=5,
            emergency_auto_detect=False,
        )
        assert settings.decision_config().confidence_threshold == 0.6
        assert settings.orchestrator_config().max_agents == 4
        assert settings.client_config().retry_attempts == 5
        assert settings.emergency_config().auto_detect is False

    def test_reads_environment(self, monkeypatch):
        """Settings read NETPILOT_ variables."""
        monkeypatch.setenv("NETPILOT_CONFIDENCE_THRESHOLD", "0.55")
        assert Settings().confidence_threshold == 0.55
