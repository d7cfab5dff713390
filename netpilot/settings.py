"""
netpilot settings, loaded from the environment (prefix NETPILOT_) or a .env file.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from netpilot.models.config import (
    ClientConfig,
    DecisionConfig,
    EmergencyConfig,
    OrchestratorConfig,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="NETPILOT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ===== Logging =====
    log_level: str = "INFO"
    log_json: bool = True

    # ===== Orchestrator =====
    agents_enabled: bool = True
    max_concurrent_agents: int = 10
    execution_interval_seconds: int = 30
    scheduler_enabled: bool = False

    # ===== Decision Engine =====
    confidence_threshold: float = 0.7

    # ===== Emergency pipeline =====
    emergency_approval_threshold: float = 0.95
    emergency_pending_threshold: float = 0.8
    emergency_auto_detect: bool = True

    # ===== Collaborators =====
    service_timeout_seconds: float = 30.0
    service_retry_attempts: int = 3
    service_retry_delay_seconds: float = 2.0
    connectivity_service_url: Optional[str] = None
    location_service_url: Optional[str] = None
    device_service_url: Optional[str] = None

    def orchestrator_config(self) -> OrchestratorConfig:
        return OrchestratorConfig(
            agents_enabled=self.agents_enabled,
            max_agents=self.max_concurrent_agents,
            execution_interval_seconds=self.execution_interval_seconds,
        )

    def decision_config(self) -> DecisionConfig:
        return DecisionConfig(confidence_threshold=self.confidence_threshold)

    def emergency_config(self) -> EmergencyConfig:
        return EmergencyConfig(
            approval_threshold=self.emergency_approval_threshold,
            pending_threshold=self.emergency_pending_threshold,
            auto_detect=self.emergency_auto_detect,
        )

    def client_config(self) -> ClientConfig:
        return ClientConfig(
            timeout_seconds=self.service_timeout_seconds,
            retry_attempts=self.service_retry_attempts,
            retry_delay_seconds=self.service_retry_delay_seconds,
            connectivity_service_url=self.connectivity_service_url,
            location_service_url=self.location_service_url,
            device_service_url=self.device_service_url,
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
