"""
Error taxonomy.

- ValidationError: malformed or missing input, surfaced immediately.
- UpstreamTransientError: timeout, transport failure or 5xx. Retried.
- UpstreamPermanentError: 4xx or an undecodable body. Never retried.
- InternalAgentError: raised inside an agent, downgraded to a FAILED outcome.
- PipelineStateError: unknown emergency or invalid lifecycle transition.
"""

from typing import Optional


class NetpilotError(Exception):
    """Base class for all netpilot errors."""
    pass


class ValidationError(NetpilotError):
    """Raised when input is malformed or a required field is missing."""
    pass


class UpstreamError(NetpilotError):
    """Raised when a collaborator call fails."""

    retryable = False

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.service = service
        self.status_code = status_code


class UpstreamTransientError(UpstreamError):
    retryable = True


class UpstreamPermanentError(UpstreamError):
    retryable = False


class InternalAgentError(NetpilotError):
    """Raised by an agent when it cannot complete its own logic."""
    pass


class AgentNotFoundError(NetpilotError):
    def __init__(self, agent_id: str):
        super().__init__(f"Agent {agent_id} not found")
        self.agent_id = agent_id


class PipelineStateError(NetpilotError):
    """Raised when an emergency lifecycle operation cannot be applied."""
    pass


class EmergencyNotFoundError(PipelineStateError):
    def __init__(self, emergency_id: str):
        super().__init__(f"Emergency {emergency_id} not found")
        self.emergency_id = emergency_id


class InvalidTransitionError(PipelineStateError):
    pass
