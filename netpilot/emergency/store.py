"""
Emergency Store: lifecycle of emergency contexts.

Behavioral Contract:
- Contexts are created on detection and never deleted
- Status moves one way, from ACTIVE to RESOLVED or CANCELLED
- Repeating the transition a context already made leaves it untouched
  (resolved_at is set once)
- Resolving a cancelled emergency, or cancelling a resolved one, is an
  InvalidTransitionError; an unknown id is an EmergencyNotFoundError
"""

import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional
from uuid import uuid4

from netpilot.errors import EmergencyNotFoundError, InvalidTransitionError
from netpilot.logs import get_logger
from netpilot.models.emergency import (
    EmergencyContext,
    EmergencyLocation,
    EmergencySeverity,
    EmergencyStatus,
    EmergencyType,
    ResponderRole,
)

logger = get_logger("emergency_store")


class EmergencyStore:
    def __init__(self):
        self._contexts: Dict[str, EmergencyContext] = {}
        self._lock = threading.Lock()

    # --- Detection ---

    def create(
        self,
        subject_id: str,
        emergency_type: EmergencyType,
        severity: EmergencySeverity,
        device_id: Optional[str] = None,
        role: ResponderRole = ResponderRole.OTHER,
        location: Optional[EmergencyLocation] = None,
        source_ref: Optional[str] = None,
        description: str = "",
    ) -> EmergencyContext:
        context = EmergencyContext(
            id=f"emg_{uuid4().hex[:12]}",
            subject_id=subject_id,
            device_id=device_id,
            emergency_type=emergency_type,
            severity=severity,
            role=role,
            location=location,
            source_ref=source_ref,
            description=description,
        )
        with self._lock:
            self._contexts[context.id] = context
        logger.info(
            "emergency_detected",
            emergency_id=context.id,
            subject_id=subject_id,
            emergency_type=emergency_type.value,
            severity=severity.value,
        )
        return context

    def detect_sos(
        self,
        subject_id: str,
        device_id: Optional[str] = None,
        location: Optional[EmergencyLocation] = None,
        role: ResponderRole = ResponderRole.OTHER,
    ) -> EmergencyContext:
        return self.create(
            subject_id,
            EmergencyType.SOS_BUTTON,
            EmergencySeverity.CRITICAL,
            device_id=device_id,
            role=role,
            location=location,
            description="SOS button pressed",
        )

    def detect_geofence(
        self,
        subject_id: str,
        geofence_id: str,
        device_id: Optional[str] = None,
        location: Optional[EmergencyLocation] = None,
        role: ResponderRole = ResponderRole.OTHER,
    ) -> EmergencyContext:
        return self.create(
            subject_id,
            EmergencyType.GEOFENCE,
            EmergencySeverity.HIGH,
            device_id=device_id,
            role=role,
            location=location,
            source_ref=geofence_id,
            description=f"Geofence {geofence_id} breached",
        )

    def detect_external(
        self,
        subject_id: str,
        event_id: str,
        severity: EmergencySeverity,
        device_id: Optional[str] = None,
        location: Optional[EmergencyLocation] = None,
        role: ResponderRole = ResponderRole.OTHER,
        description: str = "",
    ) -> EmergencyContext:
        return self.create(
            subject_id,
            EmergencyType.EXTERNAL_EVENT,
            severity,
            device_id=device_id,
            role=role,
            location=location,
            source_ref=event_id,
            description=description or f"External event {event_id}",
        )

    def trigger_manual(
        self,
        subject_id: str,
        severity: EmergencySeverity,
        role: ResponderRole,
        device_id: Optional[str] = None,
        location: Optional[EmergencyLocation] = None,
        description: str = "",
    ) -> EmergencyContext:
        return self.create(
            subject_id,
            EmergencyType.MANUAL_TRIGGER,
            severity,
            device_id=device_id,
            role=role,
            location=location,
            description=description or "Manually triggered",
        )

    # --- Queries ---

    def get(self, emergency_id: str) -> EmergencyContext:
        with self._lock:
            context = self._contexts.get(emergency_id)
        if context is None:
            raise EmergencyNotFoundError(emergency_id)
        return context

    def active_for_subject(self, subject_id: str) -> List[EmergencyContext]:
        """Active emergencies for a subject, oldest first."""
        with self._lock:
            return [
                c for c in self._contexts.values()
                if c.subject_id == subject_id and c.is_active
            ]

    def list_emergencies(self, status: Optional[EmergencyStatus] = None) -> List[EmergencyContext]:
        with self._lock:
            return [
                c for c in self._contexts.values()
                if status is None or c.status == status
            ]

    # --- Terminal transitions ---

    def resolve(self, emergency_id: str) -> EmergencyContext:
        return self._terminate(emergency_id, EmergencyStatus.RESOLVED)

    def cancel(self, emergency_id: str, reason: str = "") -> EmergencyContext:
        return self._terminate(emergency_id, EmergencyStatus.CANCELLED, reason)

    def _terminate(
        self, emergency_id: str, target: EmergencyStatus, reason: str = ""
    ) -> EmergencyContext:
        with self._lock:
            context = self._contexts.get(emergency_id)
            if context is None:
                raise EmergencyNotFoundError(emergency_id)
            if context.status == target:
                return context
            if not context.is_active:
                raise InvalidTransitionError(
                    f"Emergency {emergency_id} is already {context.status.value}; "
                    f"cannot move to {target.value}"
                )
            updated = context.model_copy(update={
                "status": target,
                "resolved_at": datetime.now(timezone.utc),
                "cancellation_reason": (reason or None) if target == EmergencyStatus.CANCELLED else None,
            })
            self._contexts[emergency_id] = updated

        logger.info(
            "emergency_closed",
            emergency_id=emergency_id,
            status=target.value,
            reason=reason or None,
        )
        return updated
