"""
Telemetry Store: latest known snapshot per subject.

Updated by: ingestion (REST or adapters pushing snapshots)
Queried by: Orchestrator, as its TelemetryProvider
"""

import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional

from netpilot.models.telemetry import TelemetrySnapshot


class TelemetryStore:
    """
    In-memory telemetry store.
    Production would feed it from the network adapters.
    """

    def __init__(self):
        self._snapshots: Dict[str, TelemetrySnapshot] = {}
        self._lock = threading.Lock()

    async def collect(self, subject_id: str) -> Optional[TelemetrySnapshot]:
        """Latest snapshot for a subject, or None when nothing usable was ingested."""
        snapshot = self.get(subject_id)
        if snapshot is None or snapshot.is_empty():
            return None
        return snapshot

    def ingest(self, snapshot: TelemetrySnapshot) -> TelemetrySnapshot:
        """Replace the subject's snapshot, stamping the ingestion time."""
        stamped = snapshot.model_copy(update={"collected_at": datetime.now(timezone.utc)})
        with self._lock:
            self._snapshots[snapshot.subject_id] = stamped
        return stamped

    def get(self, subject_id: str) -> Optional[TelemetrySnapshot]:
        with self._lock:
            return self._snapshots.get(subject_id)

    def remove(self, subject_id: str) -> bool:
        with self._lock:
            return self._snapshots.pop(subject_id, None) is not None

    def subjects(self) -> List[str]:
        with self._lock:
            return list(self._snapshots)
