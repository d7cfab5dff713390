"""HTTP-backed telemetry provider and action gateway."""

import asyncio
from typing import Any, Dict, Optional, Type

from pydantic import BaseModel
from pydantic import ValidationError as ModelValidationError

from netpilot.collaborators.client import ServiceClient
from netpilot.collaborators.contracts import CallResult
from netpilot.errors import UpstreamError, ValidationError
from netpilot.logs import get_logger
from netpilot.models.config import ClientConfig
from netpilot.models.telemetry import (
    ConnectivityMetrics,
    DeviceStatus,
    LocationData,
    QoSMetrics,
    TelemetrySnapshot,
)

logger = get_logger("http_collaborators")


class HttpTelemetryProvider:
    """
    Collects the four telemetry parts concurrently. A part whose call fails
    is left empty; the snapshot is unavailable only when every part fails.
    """

    def __init__(
        self,
        connectivity: ServiceClient,
        location: ServiceClient,
        device: ServiceClient,
    ):
        self.connectivity = connectivity
        self.location = location
        self.device = device

    async def aclose(self) -> None:
        """Close the underlying service clients."""
        for client in (self.connectivity, self.location, self.device):
            await client.aclose()

    async def collect(self, subject_id: str) -> Optional[TelemetrySnapshot]:
        location, device_status, connectivity, qos = await asyncio.gather(
            self._part(self.location, f"/location/{subject_id}", LocationData),
            self._part(self.device, f"/devices/{subject_id}/status", DeviceStatus),
            self._part(self.connectivity, f"/connectivity/{subject_id}", ConnectivityMetrics),
            self._part(self.connectivity, f"/qos/{subject_id}", QoSMetrics),
        )
        snapshot = TelemetrySnapshot(
            subject_id=subject_id,
            location=location,
            device_status=device_status,
            connectivity=connectivity,
            qos=qos,
        )
        if snapshot.is_empty():
            logger.warning("telemetry_unavailable", subject_id=subject_id)
            return None
        return snapshot

    async def _part(
        self, client: ServiceClient, path: str, model: Type[BaseModel]
    ) -> Optional[BaseModel]:
        try:
            data = await client.request("GET", path)
            return model.model_validate(data)
        except (UpstreamError, ModelValidationError) as e:
            logger.warning("telemetry_part_failed", path=path, error=str(e))
            return None


class HttpActionGateway:
    def __init__(
        self,
        connectivity: ServiceClient,
        location: ServiceClient,
        device: ServiceClient,
    ):
        self.connectivity = connectivity
        self.location = location
        self.device = device

    async def request_qos(self, subject_id: str, parameters: Dict[str, Any]) -> CallResult:
        return await self.connectivity.call("POST", f"/qos/{subject_id}", json=parameters)

    async def verify_location(self, subject_id: str, parameters: Dict[str, Any]) -> CallResult:
        return await self.location.call(
            "POST", f"/location/{subject_id}/verify", json=parameters
        )

    async def check_device_status(self, subject_id: str) -> CallResult:
        return await self.device.call("GET", f"/devices/{subject_id}/status")

    async def check_device_swap(self, subject_id: str, parameters: Dict[str, Any]) -> CallResult:
        return await self.device.call(
            "POST", f"/devices/{subject_id}/swap-check", json=parameters
        )


def build_http_collaborators(config: ClientConfig) -> tuple:
    """Build (telemetry provider, action gateway) from configured service URLs."""
    missing = [
        name for name, url in (
            ("connectivity_service_url", config.connectivity_service_url),
            ("location_service_url", config.location_service_url),
            ("device_service_url", config.device_service_url),
        )
        if not url
    ]
    if missing:
        raise ValidationError(f"Missing service URLs: {', '.join(missing)}")

    connectivity = ServiceClient("connectivity-service", config.connectivity_service_url, config)
    location = ServiceClient("location-service", config.location_service_url, config)
    device = ServiceClient("device-management-service", config.device_service_url, config)
    return (
        HttpTelemetryProvider(connectivity, location, device),
        HttpActionGateway(connectivity, location, device),
    )
