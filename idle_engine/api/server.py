"""
FastAPI Server for the IdLE Engine.

Provides REST API endpoints for building plans, executing workflows and
reading back the audit trail.
"""

import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, ValidationError

from .. import __version__
from ..audit import AuditLogger
from ..engine import ExecutionEngine, HandlerRegistry, PlanBuilder, StepMetadataCatalog, export_plan
from ..errors import IdleEngineError, SecurityViolationError
from ..models import LifecycleRequest, Plan
from ..settings import EngineConfig, build_providers, load_engine_config
from ..workflows import get_bundled_workflow_path, load_workflow

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "IDLE_ENGINE_CONFIG"


# Pydantic models for API requests
class PlanRequest(BaseModel):
    """Plan submission request."""
    workflow: Optional[Dict[str, Any]] = Field(None, description="Inline workflow definition")
    workflow_name: Optional[str] = Field(None, description="Bundled workflow name (joiner, mover, leaver)")
    request: Dict[str, Any] = Field(..., description="Lifecycle request (PascalCase keys)")
    environment: Optional[str] = Field(None, description="Environment recorded in the plan export")


class RunRequest(PlanRequest):
    """Run submission request."""
    what_if: bool = Field(False, description="Validate only; no step is executed")


# Global components (initialized on startup)
engine_config: Optional[EngineConfig] = None
providers: Dict[str, Any] = {}
planner: Optional[PlanBuilder] = None
execution_engine: Optional[ExecutionEngine] = None
audit_logger: Optional[AuditLogger] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global engine_config, providers, planner, execution_engine, audit_logger

    logger.info("Initializing IdLE Engine API server components")

    engine_config = load_engine_config(os.environ.get(CONFIG_ENV_VAR))
    providers = build_providers(engine_config)
    planner = PlanBuilder(StepMetadataCatalog(engine_config.step_metadata), engine_config.working_directory)
    audit_logger = AuditLogger(engine_config.audit_dir) if engine_config.audit_dir else None
    execution_engine = ExecutionEngine(
        HandlerRegistry(engine_config.step_handlers),
        engine_config.execution_options,
        event_sink=audit_logger,
    )

    logger.info("IdLE Engine API server components initialized")

    yield

    logger.info("Shutting down IdLE Engine API server")


# Create FastAPI app
app = FastAPI(
    title="IdLE Engine API",
    description="Identity Lifecycle Engine - REST API for planning and executing Joiner-Mover-Leaver workflows",
    version=__version__,
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "IdLE Engine API", "version": __version__, "status": "running"}


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "components": {
            "planner": planner is not None,
            "execution_engine": execution_engine is not None,
            "audit_logger": audit_logger is not None,
            "providers": sorted(providers),
        }
    }


@app.get("/step-types")
async def list_step_types():
    """Step types known to the engine and the capabilities they require."""
    if not planner:
        raise HTTPException(status_code=503, detail="Planner not available")

    catalog = planner.catalog
    return [
        {"step_type": step_type, "required_capabilities": catalog.get_required_capabilities(step_type)}
        for step_type in catalog.step_types()
    ]


@app.post("/plans")
def create_plan(plan_request: PlanRequest):
    """
    Build a plan and return its export document.

    Nothing is executed; the response is the same document `idlectl plan
    --export` writes.
    """
    built = _build_plan(plan_request)
    return export_plan(built, environment=plan_request.environment)


@app.post("/runs")
def create_run(run_request: RunRequest):
    """
    Plan and execute a workflow.

    A failed run is still a successful request: the response carries the
    run status, step results, OnFailure section and redacted events.
    """
    if not execution_engine:
        raise HTTPException(status_code=503, detail="Execution engine not available")

    built = _build_plan(run_request)
    try:
        result = execution_engine.execute(built, providers, what_if=run_request.what_if)
    except IdleEngineError as e:
        raise _to_http_error(e) from e

    return result.to_dict()


@app.get("/events")
def get_events(
    correlation_id: Optional[str] = None,
    event_type: Optional[str] = None,
    limit: int = Query(100, ge=1, le=1000),
) -> List[Dict[str, Any]]:
    """Read events back from the audit trail."""
    if not audit_logger:
        raise HTTPException(status_code=503, detail="Audit logger not configured")

    events = audit_logger.get_events(correlation_id=correlation_id, event_type=event_type, limit=limit)
    return [event.to_dict() for event in events]


def _build_plan(plan_request: PlanRequest) -> Plan:
    if not planner or engine_config is None:
        raise HTTPException(status_code=503, detail="Planner not available")

    if (plan_request.workflow is None) == (plan_request.workflow_name is None):
        raise HTTPException(status_code=422, detail="Provide exactly one of 'workflow' or 'workflow_name'")

    try:
        if plan_request.workflow_name is not None:
            workflow = load_workflow(get_bundled_workflow_path(plan_request.workflow_name))
        else:
            workflow = plan_request.workflow
        request = LifecycleRequest.model_validate(plan_request.request)
        return planner.build(workflow, request, providers, engine_config.execution_options)
    except (IdleEngineError, ValidationError, ValueError) as e:
        raise _to_http_error(e) from e


def _to_http_error(error: Exception) -> HTTPException:
    if isinstance(error, SecurityViolationError):
        logger.warning(f"Rejected request: {error}")
        return HTTPException(status_code=403, detail=str(error))

    if isinstance(error, ValidationError):
        return HTTPException(status_code=422, detail=error.errors(include_url=False, include_input=False))

    detail: Any = str(error)
    errors = getattr(error, "errors", None)
    if isinstance(errors, list):
        detail = {"message": str(error), "errors": errors}
    return HTTPException(status_code=422, detail=detail)


def start_server(host: str = "0.0.0.0", port: int = 8000, reload: bool = False):
    """Start the FastAPI server."""
    uvicorn.run(
        "idle_engine.api.server:app",
        host=host,
        port=port,
        reload=reload,
        log_level="info"
    )


if __name__ == "__main__":
    start_server()
