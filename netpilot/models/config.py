"""Component configuration."""

from typing import Optional

from pydantic import BaseModel, Field


class OrchestratorConfig(BaseModel):
    """Configuration for agent dispatch and the scheduler loop."""

    agents_enabled: bool = True
    max_agents: int = Field(ge=1, default=10)
    execution_interval_seconds: int = 30
    serialize_subject_ticks: bool = True


class DecisionConfig(BaseModel):
    confidence_threshold: float = Field(ge=0, le=1, default=0.7)


class EmergencyConfig(BaseModel):
    """Emergency approval thresholds and monitoring limits."""

    approval_threshold: float = 0.95
    pending_threshold: float = 0.8
    latency_threshold_ms: float = 100.0
    packet_loss_threshold_percent: float = 5.0
    jitter_threshold_ms: float = 20.0
    auto_detect: bool = True
    rollback_on_remediation: bool = True


class ClientConfig(BaseModel):
    """Timeouts, retry policy and endpoints for collaborator services."""

    timeout_seconds: float = 30.0
    retry_attempts: int = Field(ge=0, default=3)           # Retries after the first call
    retry_delay_seconds: float = 2.0
    connectivity_service_url: Optional[str] = None
    location_service_url: Optional[str] = None
    device_service_url: Optional[str] = None
