"""
Agent Registry: registered agents plus their admin settings.

The set of agents only grows. Enabled/priority live in a small table
guarded by a lock; dispatch reads one consistent snapshot per batch, so an
admin toggle during a batch takes effect from the next batch.
"""

import threading
from typing import Dict, List, Tuple

from netpilot.agents.base import Agent
from netpilot.errors import AgentNotFoundError, ValidationError
from netpilot.models.agent import AgentDescriptor


class _Settings:
    __slots__ = ("enabled", "priority")

    def __init__(self, enabled: bool, priority: int):
        self.enabled = enabled
        self.priority = priority


class AgentRegistry:
    def __init__(self):
        self._agents: Dict[str, Agent] = {}
        self._descriptors: Dict[str, AgentDescriptor] = {}
        self._settings: Dict[str, _Settings] = {}
        self._lock = threading.Lock()

    def register(self, agent: Agent) -> AgentDescriptor:
        descriptor = agent.descriptor()
        with self._lock:
            if descriptor.id in self._agents:
                raise ValidationError(f"Agent {descriptor.id} is already registered")
            self._agents[descriptor.id] = agent
            self._descriptors[descriptor.id] = descriptor
            self._settings[descriptor.id] = _Settings(descriptor.enabled, descriptor.priority)
        return descriptor

    def __contains__(self, agent_id: str) -> bool:
        with self._lock:
            return agent_id in self._agents

    def __len__(self) -> int:
        with self._lock:
            return len(self._agents)

    def _describe(self, agent_id: str) -> AgentDescriptor:
        settings = self._settings[agent_id]
        return self._descriptors[agent_id].model_copy(update={
            "enabled": settings.enabled,
            "priority": settings.priority,
        })

    def list_agents(self) -> List[AgentDescriptor]:
        """Descriptors in registration order."""
        with self._lock:
            return [self._describe(agent_id) for agent_id in self._agents]

    def get(self, agent_id: str) -> AgentDescriptor:
        with self._lock:
            if agent_id not in self._agents:
                raise AgentNotFoundError(agent_id)
            return self._describe(agent_id)

    def get_agent(self, agent_id: str) -> Agent:
        with self._lock:
            agent = self._agents.get(agent_id)
        if agent is None:
            raise AgentNotFoundError(agent_id)
        return agent

    def set_enabled(self, agent_id: str, enabled: bool) -> AgentDescriptor:
        with self._lock:
            settings = self._settings.get(agent_id)
            if settings is None:
                raise AgentNotFoundError(agent_id)
            settings.enabled = enabled
            return self._describe(agent_id)

    def snapshot(self) -> List[Tuple[AgentDescriptor, Agent]]:
        """A consistent (descriptor, agent) view in registration order."""
        with self._lock:
            return [
                (self._describe(agent_id), agent)
                for agent_id, agent in self._agents.items()
            ]
