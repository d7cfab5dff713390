"""The built-in agent set."""

from typing import List

from netpilot.agents.base import PolicyAgent
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
from netpilot.collaborators.contracts import ActionGateway
from netpilot.decision.engine import DecisionEngine
from netpilot.emergency.pipeline import EmergencyPipeline


def default_agents(
    engine: DecisionEngine,
    gateway: ActionGateway,
    pipeline: EmergencyPipeline,
) -> List[PolicyAgent]:
    return [
        EmergencyConnectivityAgent(pipeline),
        HealthcareMonitoringAgent(gateway),
        SmartCityAgent(gateway),
        QoSOptimizationAgent(engine, gateway),
        PublicSafetyAgent(gateway),
        TransportationAgent(gateway),
        NetworkMonitoringAgent(),
        LocationVerificationAgent(engine, gateway),
        DeviceManagementAgent(engine, gateway),
    ]
