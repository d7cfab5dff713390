"""
Emergency Lifecycle Pipeline: drives an ACTIVE emergency toward guaranteed
connectivity, one tick at a time.

Stages per tick:
  1. Trust validation (every tick, never cached). Anything but TRUSTED
     halts the tick with limited connectivity.
  2. Network-state assessment at the emergency's location.
  3. Decision: severity + trust + network, classified APPROVED / PENDING /
     DENIED. Only an eligible APPROVED decision continues.
  4. Orchestration of guaranteed QoS. Failure leaves no partial state.
  5. Monitoring of the granted session; a threshold breach triggers
     remediation (rollback, then re-orchestration on a later tick).

Behavioral Contract:
- A collaborator failure halts only the current stage; the emergency stays
  ACTIVE and the next tick retries
- Ticks for one emergency never overlap
- Resolve/cancel release the granted session and stop monitoring
"""

import asyncio
from datetime import datetime, timezone
from typing import Dict, List, Optional

from netpilot.collaborators.contracts import (
    MonitoringFeed,
    NetworkOrchestrator,
    NetworkStateAssessor,
    TrustValidator,
)
from netpilot.decision.emergency_policy import EmergencyDecisionPolicy
from netpilot.emergency.store import EmergencyStore
from netpilot.logs import get_logger
from netpilot.models.config import EmergencyConfig
from netpilot.models.emergency import (
    DecisionStatus,
    EmergencyContext,
    EmergencyStage,
    EmergencyStatus,
    EmergencyTickResult,
    EmergencyTrack,
    ExecutionStatus,
    MonitoringMetrics,
)

_DECISION_STAGES = {
    DecisionStatus.APPROVED: EmergencyStage.APPROVED,
    DecisionStatus.PENDING: EmergencyStage.PENDING,
    DecisionStatus.DENIED: EmergencyStage.DENIED,
    DecisionStatus.REQUIRES_MANUAL_REVIEW: EmergencyStage.PENDING,
}


class EmergencyPipeline:
    def __init__(
        self,
        store: EmergencyStore,
        trust_validator: TrustValidator,
        network_assessor: NetworkStateAssessor,
        orchestrator: NetworkOrchestrator,
        monitoring_feed: MonitoringFeed,
        config: Optional[EmergencyConfig] = None,
        policy: Optional[EmergencyDecisionPolicy] = None,
    ):
        self.store = store
        self.trust_validator = trust_validator
        self.network_assessor = network_assessor
        self.orchestrator = orchestrator
        self.monitoring_feed = monitoring_feed
        self.config = config or EmergencyConfig()
        self.policy = policy or EmergencyDecisionPolicy(self.config)
        self.logger = get_logger("emergency_pipeline")
        self._tracks: Dict[str, EmergencyTrack] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def get_track(self, emergency_id: str) -> EmergencyTrack:
        """Pipeline state for an emergency. Raises EmergencyNotFoundError."""
        self.store.get(emergency_id)
        return self._tracks.setdefault(emergency_id, EmergencyTrack(emergency_id=emergency_id))

    def _lock_for(self, emergency_id: str) -> asyncio.Lock:
        return self._locks.setdefault(emergency_id, asyncio.Lock())

    # --- Tick ---

    async def tick(self, emergency_id: str) -> EmergencyTickResult:
        self.store.get(emergency_id)
        async with self._lock_for(emergency_id):
            context = self.store.get(emergency_id)
            track = self.get_track(emergency_id)
            if not context.is_active:
                return self._result(
                    context, track, halted=True,
                    message=f"Emergency is {context.status.value}",
                )
            track.tick_count += 1
            track.last_error = None
            result = await self._advance(context, track)
            track.updated_at = datetime.now(timezone.utc)
            return result

    async def _advance(self, context: EmergencyContext, track: EmergencyTrack) -> EmergencyTickResult:
        log = self.logger.bind(emergency_id=context.id, subject_id=context.subject_id)

        # 1. Trust validation
        track.stage = EmergencyStage.TRUST_VALIDATING
        try:
            trust = await self.trust_validator.validate(
                context.subject_id, context.device_id, context.role
            )
        except Exception as e:
            return self._halt(context, track, log, "trust_validation_unavailable", e)
        track.last_trust = trust
        if not trust.is_trusted:
            track.stage = EmergencyStage.TRUST_FAILED
            log.warning(
                "emergency_trust_failed",
                trust_status=trust.status.value,
                trust_score=trust.trust_score,
            )
            return self._result(
                context, track, halted=True,
                message="Limited connectivity: device trust validation failed",
                details={
                    "connectivity": "LIMITED",
                    "trust_status": trust.status.value,
                    "trust_score": trust.trust_score,
                },
            )

        if track.orchestration is not None:
            return await self._monitor(context, track, log)

        # 2. Network-state assessment
        track.stage = EmergencyStage.NETWORK_ASSESSING
        location = context.location
        try:
            network = await self.network_assessor.assess(
                location.latitude if location else None,
                location.longitude if location else None,
            )
        except Exception as e:
            return self._halt(context, track, log, "network_assessment_unavailable", e)
        track.last_network = network

        # 3. Decision
        track.stage = EmergencyStage.DECIDING
        decision = self.policy.decide(context, trust, network)
        track.last_decision = decision
        track.stage = _DECISION_STAGES[decision.status]
        log.info(
            "emergency_decided",
            status=decision.status.value,
            confidence=decision.confidence_score,
            eligible=decision.orchestration_eligible,
        )
        if not decision.orchestration_eligible:
            return self._result(
                context, track, halted=True,
                message=decision.explanation,
                decision=decision,
            )

        # 4. Orchestration
        track.stage = EmergencyStage.ORCHESTRATING
        try:
            orchestration = await self.orchestrator.execute_guaranteed_connectivity(decision)
        except Exception as e:
            track.stage = EmergencyStage.APPROVED
            return self._halt(context, track, log, "orchestration_unavailable", e, decision=decision)
        if not orchestration.succeeded:
            track.stage = EmergencyStage.APPROVED
            track.last_error = orchestration.error or f"Orchestration {orchestration.status.value}"
            log.warning("emergency_orchestration_failed", error=track.last_error)
            return self._result(
                context, track, halted=True,
                message="Guaranteed connectivity could not be established",
                decision=decision,
                orchestration=orchestration,
            )

        track.orchestration = orchestration
        log.info(
            "emergency_orchestrated",
            orchestration_id=orchestration.orchestration_id,
            qos_session_id=orchestration.qos_session_id,
            slice_id=orchestration.slice_id,
        )

        # 5. Monitoring
        return await self._monitor(context, track, log, decision=decision)

    async def _monitor(self, context, track, log, decision=None) -> EmergencyTickResult:
        track.stage = EmergencyStage.MONITORING
        orchestration = track.orchestration

        if track.monitoring is None:
            try:
                track.monitoring = await self.monitoring_feed.start(
                    context.id, orchestration.qos_session_id
                )
            except Exception as e:
                return self._halt(
                    context, track, log, "monitoring_start_failed", e,
                    decision=decision, orchestration=orchestration,
                )

        try:
            metrics = await self.monitoring_feed.tick(track.monitoring)
        except Exception as e:
            return self._halt(
                context, track, log, "monitoring_sample_failed", e,
                decision=decision, orchestration=orchestration,
            )
        track.last_metrics = metrics

        breaches = self.threshold_breaches(metrics)
        if not breaches:
            return self._result(
                context, track,
                message="Guaranteed connectivity active",
                decision=decision,
                orchestration=orchestration,
                metrics=metrics,
            )

        log.warning("emergency_remediation_triggered", breaches=breaches)
        remediated = await self._remediate(context, track, log)
        return self._result(
            context, track,
            message="Connectivity degraded: " + "; ".join(breaches),
            decision=decision,
            orchestration=orchestration,
            metrics=metrics,
            remediation_triggered=True,
            details={"breaches": breaches, "rolled_back": remediated},
        )

    def threshold_breaches(self, metrics: MonitoringMetrics) -> List[str]:
        breaches = []
        if metrics.latency_ms > self.config.latency_threshold_ms:
            breaches.append(f"latency {metrics.latency_ms}ms")
        if metrics.packet_loss_percent > self.config.packet_loss_threshold_percent:
            breaches.append(f"packet loss {metrics.packet_loss_percent}%")
        if metrics.jitter_ms > self.config.jitter_threshold_ms:
            breaches.append(f"jitter {metrics.jitter_ms}ms")
        if not breaches and metrics.remediation_required:
            breaches.append("feed requested remediation")
        return breaches

    async def _remediate(self, context, track, log) -> bool:
        """Roll the granted session back so a later tick can re-orchestrate."""
        track.remediation_count += 1
        if not self.config.rollback_on_remediation:
            return False
        rolled_back = await self._release(track, log)
        if rolled_back:
            track.stage = EmergencyStage.DETECTED
        return rolled_back

    async def _release(self, track: EmergencyTrack, log) -> bool:
        """Stop monitoring and roll back the orchestration. Failures are logged."""
        if track.monitoring is not None:
            try:
                await self.monitoring_feed.stop(track.monitoring)
                track.monitoring = None
            except Exception as e:
                log.error("monitoring_stop_failed", error=str(e))
                track.last_error = str(e)

        if track.orchestration is None:
            return True
        try:
            rollback = await self.orchestrator.rollback(track.orchestration.orchestration_id)
        except Exception as e:
            log.error("rollback_failed", error=str(e))
            track.last_error = str(e)
            return False
        if rollback.status != ExecutionStatus.ROLLED_BACK:
            track.last_error = rollback.error or f"Rollback {rollback.status.value}"
            log.error("rollback_failed", error=track.last_error)
            return False

        log.info("emergency_rolled_back", orchestration_id=rollback.orchestration_id)
        track.orchestration = None
        track.monitoring = None
        return True

    # --- Operator actions ---

    async def resolve(self, emergency_id: str) -> EmergencyContext:
        return await self._close(emergency_id, EmergencyStatus.RESOLVED)

    async def cancel(self, emergency_id: str, reason: str = "") -> EmergencyContext:
        return await self._close(emergency_id, EmergencyStatus.CANCELLED, reason)

    async def _close(
        self, emergency_id: str, status: EmergencyStatus, reason: str = ""
    ) -> EmergencyContext:
        self.store.get(emergency_id)
        async with self._lock_for(emergency_id):
            was_active = self.store.get(emergency_id).is_active
            if status == EmergencyStatus.RESOLVED:
                context = self.store.resolve(emergency_id)
            else:
                context = self.store.cancel(emergency_id, reason)
            if was_active:
                track = self.get_track(emergency_id)
                await self._release(track, self.logger.bind(emergency_id=emergency_id))
                track.stage = (
                    EmergencyStage.RESOLVED
                    if status == EmergencyStatus.RESOLVED
                    else EmergencyStage.CANCELLED
                )
                track.updated_at = datetime.now(timezone.utc)
            return context

    # --- Helpers ---

    def _halt(self, context, track, log, event: str, error: Exception, **fields) -> EmergencyTickResult:
        track.last_error = f"{type(error).__name__}: {error}"
        log.warning(event, stage=track.stage.value, error=track.last_error)
        return self._result(
            context, track, halted=True,
            message=f"Stage {track.stage.value} failed: {error}",
            details={"error": track.last_error},
            **fields,
        )

    def _result(self, context: EmergencyContext, track: EmergencyTrack, **fields) -> EmergencyTickResult:
        return EmergencyTickResult(
            emergency_id=context.id,
            subject_id=context.subject_id,
            stage=track.stage,
            **fields,
        )
