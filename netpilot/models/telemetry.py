"""Telemetry snapshot: point-in-time view of a managed subject."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class DeviceState(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    ERROR = "ERROR"
    UNKNOWN = "UNKNOWN"


class LocationData(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    accuracy: Optional[float] = None        # metres
    location_type: Optional[str] = None     # e.g., "GPS", "CELL_ID"
    max_age: Optional[int] = None           # seconds


class DeviceStatus(BaseModel):
    device_id: Optional[str] = None
    imei: Optional[str] = None
    sim_card_number: Optional[str] = None
    status: Optional[DeviceState] = None
    device_type: Optional[str] = None
    is_active: Optional[bool] = None


class ConnectivityMetrics(BaseModel):
    status: Optional[str] = None
    signal_strength: Optional[int] = None   # 0-100
    network_type: Optional[str] = None      # e.g., "5G", "LTE"
    latency: Optional[int] = None           # milliseconds
    throughput: Optional[float] = None      # Mbps
    is_connected: Optional[bool] = None


class QoSMetrics(BaseModel):
    qos_profile: Optional[str] = None       # e.g., "DEFAULT", "QOS_E"
    priority: Optional[int] = None
    bandwidth: Optional[float] = None
    latency: Optional[int] = None
    is_guaranteed: Optional[bool] = None


class TelemetrySnapshot(BaseModel):
    """
    Telemetry for one subject. Every part is optional; agents decide
    which parts they need before running.
    """

    model_config = ConfigDict(frozen=True)

    subject_id: str
    location: Optional[LocationData] = None
    device_status: Optional[DeviceStatus] = None
    connectivity: Optional[ConnectivityMetrics] = None
    qos: Optional[QoSMetrics] = None
    collected_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def is_empty(self) -> bool:
        """True when no telemetry part was collected."""
        return all(
            part is None
            for part in (self.location, self.device_status, self.connectivity, self.qos)
        )

    def has_parts(self, *names: str) -> bool:
        """True when every named part is present."""
        return all(getattr(self, name, None) is not None for name in names)
