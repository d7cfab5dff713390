"""
Emergency decision policy.

Confidence is the capped sum of three weighted factors:

  severity   CRITICAL 0.4, HIGH 0.3, MEDIUM 0.2, LOW 0.1
  trust      0.3 when TRUSTED, otherwise trust_score * 0.3
  network    0.3 when QoS capacity is AVAILABLE, otherwise 0.1

The score is classified APPROVED / PENDING / DENIED for audit. Orchestration
additionally requires the approval threshold to be met by the score itself.
"""

from typing import Optional

from netpilot.models.agent import clamp_confidence
from netpilot.models.config import EmergencyConfig
from netpilot.models.emergency import (
    DecisionOutcome,
    DecisionStatus,
    EmergencyContext,
    EmergencySeverity,
    NetworkState,
    QoSCapacityStatus,
    TrustStatus,
    TrustValidation,
)

SEVERITY_WEIGHTS = {
    EmergencySeverity.CRITICAL: 0.4,
    EmergencySeverity.HIGH: 0.3,
    EmergencySeverity.MEDIUM: 0.2,
    EmergencySeverity.LOW: 0.1,
}

TRUST_WEIGHT = 0.3
NETWORK_AVAILABLE_WEIGHT = 0.3
NETWORK_CONSTRAINED_WEIGHT = 0.1


def trust_factor(trust: TrustValidation) -> float:
    if trust.status == TrustStatus.TRUSTED:
        return TRUST_WEIGHT
    return trust.trust_score * TRUST_WEIGHT


def network_factor(network: NetworkState) -> float:
    if network.qos_capacity_status == QoSCapacityStatus.AVAILABLE:
        return NETWORK_AVAILABLE_WEIGHT
    return NETWORK_CONSTRAINED_WEIGHT


class EmergencyDecisionPolicy:
    def __init__(self, config: Optional[EmergencyConfig] = None):
        self.config = config or EmergencyConfig()

    def classify(self, score: float) -> DecisionStatus:
        if score >= self.config.approval_threshold:
            return DecisionStatus.APPROVED
        if score >= self.config.pending_threshold:
            return DecisionStatus.PENDING
        return DecisionStatus.DENIED

    def decide(
        self,
        context: EmergencyContext,
        trust: TrustValidation,
        network: NetworkState,
    ) -> DecisionOutcome:
        factors = {
            "severity": SEVERITY_WEIGHTS[context.severity],
            "trust": trust_factor(trust),
            "network": network_factor(network),
        }
        score = clamp_confidence(sum(factors.values()))
        status = self.classify(score)
        eligible = (
            status == DecisionStatus.APPROVED
            and score >= self.config.approval_threshold
        )
        return DecisionOutcome(
            emergency_id=context.id,
            subject_id=context.subject_id,
            status=status,
            confidence_score=score,
            explanation=f"Decision: {status.value} (Confidence: {score:.2f})",
            orchestration_eligible=eligible,
            factors=factors,
        )
