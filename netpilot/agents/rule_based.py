"""Agents driven directly by a Decision Engine rule group."""

from typing import Awaitable, Callable, Dict, List

from netpilot.agents.base import PolicyAgent, all_succeeded, failed_errors, merge_metrics
from netpilot.collaborators.contracts import ActionGateway, CallResult
from netpilot.decision.engine import (
    DEVICE_SWAP,
    LOCATION_VERIFICATION,
    QOS_REQUIREMENT,
    DecisionEngine,
)
from netpilot.errors import InternalAgentError
from netpilot.models.agent import ActionProposal, AgentOutcome, ExecutionContext


class RuleGroupAgent(PolicyAgent):
    """Evaluates one rule group and performs its actions when it says to act."""

    rule_group: str = ""
    idle_message: str = ""

    def __init__(self, engine: DecisionEngine, gateway: ActionGateway):
        super().__init__()
        self.engine = engine
        self.gateway = gateway

    def dispatch(
        self, context: ExecutionContext, action: ActionProposal
    ) -> Callable[[], Awaitable[CallResult]]:
        raise NotImplementedError

    def telemetry_metrics(self, context: ExecutionContext) -> Dict[str, object]:
        return {}

    async def run(self, context: ExecutionContext) -> AgentOutcome:
        try:
            decision = self.engine.evaluate(self.rule_group, context.telemetry)
        except KeyError as e:
            raise InternalAgentError(f"Rule group {self.rule_group} is not configured") from e
        metrics = merge_metrics(
            {"confidence": decision.confidence, "threshold": self.engine.threshold},
            self.telemetry_metrics(context),
        )

        if not decision.should_act:
            return self.outcome(
                context,
                success=True,
                confidence=decision.confidence,
                message=self.idle_message,
                recommendations=[decision.reason] if decision.reason else [],
                metrics=metrics,
                metadata={"rule_group": self.rule_group, "fired_rules": decision.fired_rules},
            )

        completed: List[ActionProposal] = []
        for action in decision.actions:
            completed.append(await self.perform(action, self.dispatch(context, action)))

        errors = failed_errors(completed)
        success = all_succeeded(completed)
        return self.outcome(
            context,
            success=success,
            confidence=decision.confidence,
            message=decision.reason if success else f"{self.name} actions failed",
            actions=completed,
            recommendations=[decision.reason],
            metrics=metrics,
            metadata={"rule_group": self.rule_group, "fired_rules": decision.fired_rules},
            error="; ".join(errors) if errors else None,
        )


class QoSOptimizationAgent(RuleGroupAgent):
    agent_id = "qos-optimization-agent"
    name = "QoS Optimization Agent"
    description = "Requests QoS changes when connectivity degrades"
    default_priority = 8
    execution_interval_seconds = 30
    required_telemetry = ("connectivity", "qos")
    rule_group = QOS_REQUIREMENT
    idle_message = "QoS is within acceptable limits"

    def dispatch(self, context, action):
        return lambda: self.gateway.request_qos(context.subject_id, action.parameters)

    def telemetry_metrics(self, context):
        c = context.telemetry.connectivity
        return {
            "signal_strength": c.signal_strength,
            "latency": c.latency,
            "throughput": c.throughput,
            "qos_profile": context.telemetry.qos.qos_profile,
        }


class LocationVerificationAgent(RuleGroupAgent):
    agent_id = "location-verification-agent"
    name = "Location Verification Agent"
    description = "Verifies location when it is stale or inaccurate"
    default_priority = 6
    execution_interval_seconds = 60
    required_telemetry = ("location",)
    rule_group = LOCATION_VERIFICATION
    idle_message = "Location data is fresh and accurate"

    def dispatch(self, context, action):
        return lambda: self.gateway.verify_location(context.subject_id, action.parameters)

    def telemetry_metrics(self, context):
        loc = context.telemetry.location
        return {"accuracy": loc.accuracy, "max_age": loc.max_age}


class DeviceManagementAgent(RuleGroupAgent):
    agent_id = "device-management-agent"
    name = "Device Management Agent"
    description = "Checks for device swaps when a device is inactive or faulted"
    default_priority = 5
    execution_interval_seconds = 120
    required_telemetry = ("device_status",)
    rule_group = DEVICE_SWAP
    idle_message = "Device is healthy"

    def dispatch(self, context, action):
        return lambda: self.gateway.check_device_swap(context.subject_id, action.parameters)

    def telemetry_metrics(self, context):
        dev = context.telemetry.device_status
        return {
            "device_status": dev.status.value if dev.status else None,
            "is_active": dev.is_active,
        }
