"""
Decision Engine: turns a telemetry snapshot into confidence and proposed actions.

Each rule group scans a snapshot for independent pieces of evidence. The
group's CombinationStrategy decides how the weights of the predicates that
fired are folded into one confidence score:

  ADDITIVE  each fired predicate adds its weight (QoS requirement)
  MAXIMUM   the strongest fired predicate wins (location, device swap)

Behavioral Contract:
- Pure and stateless: evaluating never mutates the snapshot or the engine
- Missing telemetry fields are absent evidence, never an error
- should_act is always confidence >= threshold
- Actions are only emitted when should_act is true
"""

from typing import Callable, Dict, List, Optional

from netpilot.models.agent import ActionProposal, clamp_confidence
from netpilot.models.config import DecisionConfig
from netpilot.models.decision import CombinationStrategy, DecisionResult
from netpilot.models.telemetry import DeviceState, TelemetrySnapshot

QOS_REQUIREMENT = "qos_requirement"
LOCATION_VERIFICATION = "location_verification"
DEVICE_SWAP = "device_swap"


class Rule:
    """One evidence predicate with the weight it contributes when true."""

    def __init__(
        self,
        name: str,
        predicate: Callable[[TelemetrySnapshot], bool],
        weight: float,
        reason: str,
    ):
        self.name = name
        self.predicate = predicate
        self.weight = weight
        self.reason = reason


ActionBuilder = Callable[[TelemetrySnapshot, List[str], str], List[ActionProposal]]


class RuleGroup:
    """A named set of rules folded with one combination strategy."""

    def __init__(
        self,
        name: str,
        strategy: CombinationStrategy,
        rules: List[Rule],
        build_actions: ActionBuilder,
    ):
        self.name = name
        self.strategy = strategy
        self.rules = rules
        self.build_actions = build_actions

    def score(self, snapshot: TelemetrySnapshot) -> tuple:
        """Return (confidence, fired rule names, reasons)."""
        fired = [rule for rule in self.rules if rule.predicate(snapshot)]
        if not fired:
            return 0.0, [], []

        if self.strategy == CombinationStrategy.ADDITIVE:
            confidence = sum(rule.weight for rule in fired)
        else:
            confidence = max(rule.weight for rule in fired)

        return (
            clamp_confidence(confidence),
            [rule.name for rule in fired],
            [rule.reason for rule in fired],
        )

    def evaluate(self, snapshot: TelemetrySnapshot, threshold: float) -> DecisionResult:
        confidence, fired, reasons = self.score(snapshot)
        should_act = confidence >= threshold
        reason = " ".join(reasons)
        actions = self.build_actions(snapshot, fired, reason) if should_act else []
        return DecisionResult(
            group=self.name,
            should_act=should_act,
            confidence=confidence,
            reason=reason,
            fired_rules=fired,
            actions=actions,
        )


# --- Evidence predicates ---

def _signal_below(limit: int) -> Callable[[TelemetrySnapshot], bool]:
    def check(snapshot: TelemetrySnapshot) -> bool:
        c = snapshot.connectivity
        return c is not None and c.signal_strength is not None and c.signal_strength < limit
    return check


def _latency_above(limit: int) -> Callable[[TelemetrySnapshot], bool]:
    def check(snapshot: TelemetrySnapshot) -> bool:
        c = snapshot.connectivity
        return c is not None and c.latency is not None and c.latency > limit
    return check


def _throughput_below(limit: float) -> Callable[[TelemetrySnapshot], bool]:
    def check(snapshot: TelemetrySnapshot) -> bool:
        c = snapshot.connectivity
        return c is not None and c.throughput is not None and c.throughput < limit
    return check


def _default_qos_profile(snapshot: TelemetrySnapshot) -> bool:
    return snapshot.qos is not None and snapshot.qos.qos_profile == "DEFAULT"


def _location_stale(snapshot: TelemetrySnapshot) -> bool:
    loc = snapshot.location
    return loc is not None and loc.max_age is not None and loc.max_age > 120


def _location_inaccurate(snapshot: TelemetrySnapshot) -> bool:
    loc = snapshot.location
    return loc is not None and loc.accuracy is not None and loc.accuracy > 100


def _device_inactive(snapshot: TelemetrySnapshot) -> bool:
    dev = snapshot.device_status
    return dev is not None and dev.is_active is False


def _device_faulted(snapshot: TelemetrySnapshot) -> bool:
    dev = snapshot.device_status
    return dev is not None and dev.status in (DeviceState.ERROR, DeviceState.UNKNOWN)


# --- Action builders ---

def _qos_actions(
    snapshot: TelemetrySnapshot, fired: List[str], reason: str
) -> List[ActionProposal]:
    parameters: Dict[str, object] = {}
    if "low_signal" in fired:
        parameters["priority"] = 1
        parameters["bandwidth"] = 100.0
    if "high_latency" in fired:
        parameters["latency"] = 50
    return [
        ActionProposal(
            type="QOS_ADJUSTMENT",
            target="connectivity-service",
            reason=reason,
            parameters=parameters,
        )
    ]


def _location_actions(
    snapshot: TelemetrySnapshot, fired: List[str], reason: str
) -> List[ActionProposal]:
    max_age = snapshot.location.max_age if snapshot.location else None
    return [
        ActionProposal(
            type="LOCATION_VERIFY",
            target="location-service",
            reason=reason,
            parameters={"max_age": max_age if max_age is not None else 60},
        )
    ]


def _device_actions(
    snapshot: TelemetrySnapshot, fired: List[str], reason: str
) -> List[ActionProposal]:
    return [
        ActionProposal(
            type="DEVICE_SWAP",
            target="device-management-service",
            reason=reason,
            parameters={"max_age": 240},
        )
    ]


def default_rule_groups() -> Dict[str, RuleGroup]:
    """The built-in rule groups keyed by name."""
    return {
        QOS_REQUIREMENT: RuleGroup(
            name=QOS_REQUIREMENT,
            strategy=CombinationStrategy.ADDITIVE,
            rules=[
                Rule("low_signal", _signal_below(50), 0.3, "Low signal strength detected."),
                Rule("high_latency", _latency_above(100), 0.3, "High latency detected."),
                Rule("low_throughput", _throughput_below(10), 0.2, "Low throughput detected."),
                Rule("default_profile", _default_qos_profile, 0.2, "Using default QoS profile."),
            ],
            build_actions=_qos_actions,
        ),
        LOCATION_VERIFICATION: RuleGroup(
            name=LOCATION_VERIFICATION,
            strategy=CombinationStrategy.MAXIMUM,
            rules=[
                Rule("stale_location", _location_stale, 0.8,
                     "Location data is stale, verification needed."),
                Rule("low_accuracy", _location_inaccurate, 0.7,
                     "Low location accuracy detected."),
            ],
            build_actions=_location_actions,
        ),
        DEVICE_SWAP: RuleGroup(
            name=DEVICE_SWAP,
            strategy=CombinationStrategy.MAXIMUM,
            rules=[
                Rule("device_inactive", _device_inactive, 0.9,
                     "Device is inactive, swap may be needed."),
                Rule("device_faulted", _device_faulted, 0.8,
                     "Device is in error/unknown state."),
            ],
            build_actions=_device_actions,
        ),
    }


class DecisionEngine:
    """Evaluates telemetry against the registered rule groups."""

    def __init__(
        self,
        config: Optional[DecisionConfig] = None,
        groups: Optional[Dict[str, RuleGroup]] = None,
    ):
        self.config = config or DecisionConfig()
        self._groups = groups if groups is not None else default_rule_groups()

    @property
    def threshold(self) -> float:
        return self.config.confidence_threshold

    @property
    def group_names(self) -> List[str]:
        return list(self._groups)

    def evaluate(self, group: str, snapshot: TelemetrySnapshot) -> DecisionResult:
        rule_group = self._groups.get(group)
        if rule_group is None:
            raise KeyError(f"Unknown rule group: {group}")
        return rule_group.evaluate(snapshot, self.threshold)

    def evaluate_all(self, snapshot: TelemetrySnapshot) -> Dict[str, DecisionResult]:
        return {
            name: group.evaluate(snapshot, self.threshold)
            for name, group in self._groups.items()
        }

    def analyze_qos_requirements(self, snapshot: TelemetrySnapshot) -> DecisionResult:
        return self.evaluate(QOS_REQUIREMENT, snapshot)

    def analyze_location_verification(self, snapshot: TelemetrySnapshot) -> DecisionResult:
        return self.evaluate(LOCATION_VERIFICATION, snapshot)

    def analyze_device_swap(self, snapshot: TelemetrySnapshot) -> DecisionResult:
        return self.evaluate(DEVICE_SWAP, snapshot)
