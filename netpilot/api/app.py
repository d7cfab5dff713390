"""
netpilot API: FastAPI endpoints.

Exposes:
- Agent registry inspection and enable/disable
- Per-subject dispatch (all agents or one) and outcome history
- Telemetry ingestion
- Emergency detection, ticking, resolution and cancellation
- Scheduler control
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from netpilot.agents.catalog import default_agents
from netpilot.collaborators.contracts import (
    ActionGateway,
    MonitoringFeed,
    NetworkOrchestrator,
    NetworkStateAssessor,
    TelemetryProvider,
    TrustValidator,
)
from netpilot.collaborators.http import build_http_collaborators
from netpilot.collaborators.loopback import (
    DeviceTrustValidator,
    LoopbackActionGateway,
    LoopbackNetworkOrchestrator,
    SimulatedMonitoringFeed,
    StaticNetworkAssessor,
)
from netpilot.decision.engine import DecisionEngine
from netpilot.emergency.pipeline import EmergencyPipeline
from netpilot.emergency.store import EmergencyStore
from netpilot.errors import (
    AgentNotFoundError,
    EmergencyNotFoundError,
    InvalidTransitionError,
    ValidationError,
)
from netpilot.logs import configure_logging
from netpilot.models.emergency import (
    EmergencyLocation,
    EmergencySeverity,
    EmergencyStatus,
    EmergencyType,
    ResponderRole,
)
from netpilot.models.telemetry import TelemetrySnapshot
from netpilot.orchestrator.history import HistoryStore
from netpilot.orchestrator.registry import AgentRegistry
from netpilot.orchestrator.service import Orchestrator
from netpilot.settings import Settings, get_settings
from netpilot.telemetry.store import TelemetryStore


# --- Request/Response Models ---

class EnableRequest(BaseModel):
    enabled: bool


class EmergencyCreateRequest(BaseModel):
    subject_id: str
    emergency_type: EmergencyType = EmergencyType.SOS_BUTTON
    severity: Optional[EmergencySeverity] = None
    role: ResponderRole = ResponderRole.OTHER
    device_id: Optional[str] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    accuracy: Optional[float] = None
    geofence_id: Optional[str] = None
    event_id: Optional[str] = None
    description: str = ""


class CancelRequest(BaseModel):
    reason: str = ""


# --- Application Factory ---

def create_app(
    settings: Optional[Settings] = None,
    telemetry_provider: Optional[TelemetryProvider] = None,
    action_gateway: Optional[ActionGateway] = None,
    trust_validator: Optional[TrustValidator] = None,
    network_assessor: Optional[NetworkStateAssessor] = None,
    network_orchestrator: Optional[NetworkOrchestrator] = None,
    monitoring_feed: Optional[MonitoringFeed] = None,
    history_store: Optional[HistoryStore] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.log_json)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        stop_event = asyncio.Event()
        task = None
        if settings.scheduler_enabled:
            task = asyncio.create_task(app.state.orchestrator.run_async(stop_event))
        try:
            yield
        finally:
            stop_event.set()
            if task is not None:
                await task
            for resource in app.state.owned_resources:
                await resource.aclose()

    app = FastAPI(
        title="netpilot API",
        description="Autonomous network-quality agents and emergency connectivity",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Initialize components
    owned_resources = []
    if telemetry_provider is None and action_gateway is None and settings.connectivity_service_url:
        telemetry_provider, action_gateway = build_http_collaborators(settings.client_config())
        # Both share the same service clients
        owned_resources.append(telemetry_provider)

    telemetry_store = TelemetryStore()
    gateway = action_gateway or LoopbackActionGateway()
    engine = DecisionEngine(settings.decision_config())
    emergencies = EmergencyStore()
    pipeline = EmergencyPipeline(
        store=emergencies,
        trust_validator=trust_validator or DeviceTrustValidator(),
        network_assessor=network_assessor or StaticNetworkAssessor(),
        orchestrator=network_orchestrator or LoopbackNetworkOrchestrator(),
        monitoring_feed=monitoring_feed or SimulatedMonitoringFeed(),
        config=settings.emergency_config(),
    )
    registry = AgentRegistry()
    for agent in default_agents(engine, gateway, pipeline):
        registry.register(agent)
    orchestrator = Orchestrator(
        registry=registry,
        telemetry=telemetry_provider or telemetry_store,
        history=history_store or HistoryStore(),
        config=settings.orchestrator_config(),
    )

    # Store components on app state for access in endpoints
    app.state.settings = settings
    app.state.telemetry_store = telemetry_store
    app.state.decision_engine = engine
    app.state.emergency_store = emergencies
    app.state.pipeline = pipeline
    app.state.orchestrator = orchestrator
    app.state.telemetry_provider = telemetry_provider or telemetry_store
    app.state.owned_resources = owned_resources

    # === ERROR MAPPING ===

    @app.exception_handler(AgentNotFoundError)
    @app.exception_handler(EmergencyNotFoundError)
    async def not_found(request: Request, exc: Exception):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(InvalidTransitionError)
    async def conflict(request: Request, exc: Exception):
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(ValidationError)
    async def invalid(request: Request, exc: Exception):
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    # === AGENTS ===

    @app.get("/agents", response_model=list)
    def list_agents():
        return [d.model_dump(mode="json") for d in orchestrator.list_agents()]

    @app.get("/agents/{agent_id}", response_model=dict)
    def get_agent(agent_id: str):
        return orchestrator.get_agent(agent_id).model_dump(mode="json")

    @app.put("/agents/{agent_id}/enabled", response_model=dict)
    def set_agent_enabled(agent_id: str, req: EnableRequest):
        return orchestrator.set_enabled(agent_id, req.enabled).model_dump(mode="json")

    # === DISPATCH & HISTORY ===

    @app.post("/execute/{subject_id}", response_model=dict)
    async def execute(subject_id: str):
        outcomes = await orchestrator.execute_for_subject(subject_id)
        return {
            "subject_id": subject_id,
            "outcomes": [o.model_dump(mode="json") for o in outcomes],
        }

    @app.post("/execute/{subject_id}/agents/{agent_id}", response_model=dict)
    async def execute_agent(subject_id: str, agent_id: str):
        outcome = await orchestrator.execute_agent(agent_id, subject_id)
        return {
            "subject_id": subject_id,
            "agent_id": agent_id,
            "executed": outcome is not None,
            "outcome": outcome.model_dump(mode="json") if outcome else None,
        }

    @app.get("/history/{subject_id}", response_model=dict)
    def get_history(subject_id: str):
        history = orchestrator.get_history(subject_id)
        return {
            "subject_id": subject_id,
            "count": len(history),
            "outcomes": [o.model_dump(mode="json") for o in history],
        }

    # === TELEMETRY ===

    @app.post("/telemetry", response_model=dict)
    def ingest_telemetry(snapshot: TelemetrySnapshot):
        if telemetry_provider is not None:
            raise HTTPException(
                status_code=409,
                detail="Telemetry is collected from services; ingestion is disabled",
            )
        stored = telemetry_store.ingest(snapshot)
        return {"status": "ingested", "subject_id": stored.subject_id}

    @app.get("/telemetry/{subject_id}", response_model=dict)
    def get_telemetry(subject_id: str):
        snapshot = telemetry_store.get(subject_id)
        if snapshot is None:
            raise HTTPException(status_code=404, detail=f"No telemetry for {subject_id}")
        return snapshot.model_dump(mode="json")

    # === EMERGENCIES ===

    @app.post("/emergencies", response_model=dict)
    def detect_emergency(req: EmergencyCreateRequest):
        location = None
        if req.latitude is not None and req.longitude is not None:
            location = EmergencyLocation(
                latitude=req.latitude, longitude=req.longitude, accuracy=req.accuracy
            )
        common = {"device_id": req.device_id, "location": location, "role": req.role}

        if req.emergency_type == EmergencyType.SOS_BUTTON:
            context = emergencies.detect_sos(req.subject_id, **common)
        elif req.emergency_type == EmergencyType.GEOFENCE:
            if not req.geofence_id:
                raise ValidationError("geofence_id is required for GEOFENCE emergencies")
            context = emergencies.detect_geofence(req.subject_id, req.geofence_id, **common)
        elif req.emergency_type == EmergencyType.EXTERNAL_EVENT:
            if not req.event_id or req.severity is None:
                raise ValidationError("event_id and severity are required for EXTERNAL_EVENT emergencies")
            context = emergencies.detect_external(
                req.subject_id, req.event_id, req.severity,
                description=req.description, **common,
            )
        else:
            if req.severity is None:
                raise ValidationError("severity is required for MANUAL_TRIGGER emergencies")
            context = emergencies.trigger_manual(
                req.subject_id, req.severity, req.role,
                device_id=req.device_id, location=location,
                description=req.description,
            )
        return context.model_dump(mode="json")

    @app.get("/emergencies", response_model=list)
    def list_emergencies(
        status: Optional[EmergencyStatus] = None,
        subject_id: Optional[str] = None,
    ):
        contexts = emergencies.list_emergencies(status)
        if subject_id is not None:
            contexts = [c for c in contexts if c.subject_id == subject_id]
        return [c.model_dump(mode="json") for c in contexts]

    @app.get("/emergencies/{emergency_id}", response_model=dict)
    def get_emergency(emergency_id: str):
        context = emergencies.get(emergency_id)
        track = pipeline.get_track(emergency_id)
        return {
            "emergency": context.model_dump(mode="json"),
            "pipeline": track.model_dump(mode="json"),
        }

    @app.post("/emergencies/{emergency_id}/tick", response_model=dict)
    async def tick_emergency(emergency_id: str):
        result = await pipeline.tick(emergency_id)
        return result.model_dump(mode="json")

    @app.post("/emergencies/{emergency_id}/resolve", response_model=dict)
    async def resolve_emergency(emergency_id: str):
        context = await pipeline.resolve(emergency_id)
        return context.model_dump(mode="json")

    @app.post("/emergencies/{emergency_id}/cancel", response_model=dict)
    async def cancel_emergency(emergency_id: str, req: CancelRequest):
        context = await pipeline.cancel(emergency_id, req.reason)
        return context.model_dump(mode="json")

    # === SCHEDULER ===

    @app.post("/scheduler/subjects/{subject_id}", response_model=dict)
    def watch_subject(subject_id: str):
        orchestrator.watch(subject_id)
        return {"status": "watching", "subject_id": subject_id}

    @app.delete("/scheduler/subjects/{subject_id}", response_model=dict)
    def unwatch_subject(subject_id: str):
        if not orchestrator.unwatch(subject_id):
            raise HTTPException(status_code=404, detail=f"Subject {subject_id} not watched")
        return {"status": "removed", "subject_id": subject_id}

    @app.post("/scheduler/run", response_model=dict)
    async def run_scheduler_cycle():
        batches = await orchestrator.run_once()
        return {
            "cycle_count": orchestrator.cycle_count,
            "results": {
                subject: [o.model_dump(mode="json") for o in outcomes]
                for subject, outcomes in batches.items()
            },
        }

    @app.get("/scheduler/status", response_model=dict)
    def scheduler_status():
        return {
            "running": orchestrator.is_running,
            "cycle_count": orchestrator.cycle_count,
            "interval_seconds": orchestrator.config.execution_interval_seconds,
            "watched_subjects": orchestrator.watched_subjects,
        }

    # === HEALTH ===

    @app.get("/health", response_model=dict)
    def health():
        agents = orchestrator.list_agents()
        return {
            "status": "UP",
            "agents_enabled": orchestrator.config.agents_enabled,
            "agents": len(agents),
            "enabled_agents": sum(1 for a in agents if a.enabled),
            "active_emergencies": len(emergencies.list_emergencies(EmergencyStatus.ACTIVE)),
        }

    return app


# Default application instance
app = create_app()
