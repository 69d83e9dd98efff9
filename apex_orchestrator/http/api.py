"""FastAPI HTTP endpoints for the APEX orchestrator.

A thin transport over ``Orchestrator``: requests are validated into
``OrchestrationRequest`` and results are returned with their stable
camelCase field names.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from ..config.settings import OrchestratorSettings
from ..models.capability import CapabilityKind
from ..models.request import OrchestrationRequest, RequestOptions
from ..orchestration.errors import InvalidRequest, SessionConflict, UnresolvableRequest
from ..orchestration.orchestrator import Orchestrator

router = APIRouter()


class OrchestrateBody(BaseModel):
    """Body of ``POST /orchestrate``."""
    prompt: str = Field(..., min_length=1)
    context: Dict[str, Any] = Field(default_factory=dict)
    tools: Union[str, List[str], None] = Field(
        default="all",
        description='Capability names, or "all"'
    )
    options: RequestOptions = Field(default_factory=RequestOptions)
    session_id: Optional[str] = Field(default=None, alias="sessionId")

    class Config:
        populate_by_name = True


class ExecuteBody(BaseModel):
    """Body of ``POST /execute``."""
    code: str = Field(..., min_length=1)
    language: str = "python"
    context: Dict[str, Any] = Field(default_factory=dict)
    timeout_ms: Optional[int] = Field(default=None, ge=1, alias="timeoutMs")

    class Config:
        populate_by_name = True


class PageBody(BaseModel):
    """Body of ``POST /notion/page``."""
    title: str = Field(..., min_length=1)
    content: str = ""


def get_orchestrator(request: Request) -> Orchestrator:
    return request.app.state.orchestrator


def _first_capability(orchestrator: Orchestrator, kind: CapabilityKind) -> str:
    capabilities = orchestrator.registry.list_by_kind(kind)
    if not capabilities:
        raise HTTPException(status_code=503, detail=f"No {kind.value} capability is available")
    return capabilities[0].name


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health")
async def health(orchestrator: Orchestrator = Depends(get_orchestrator)):
    """Liveness plus per-capability availability."""
    components = {
        capability.name: orchestrator.registry.is_available(capability.name)
        for capability in orchestrator.registry.list_all()
    }
    status = "healthy" if components and all(components.values()) else "degraded"
    return {"status": status, "timestamp": _now(), "components": components}


@router.get("/status")
async def status(orchestrator: Orchestrator = Depends(get_orchestrator)):
    return orchestrator.status()


@router.post("/orchestrate")
async def orchestrate(body: OrchestrateBody, orchestrator: Orchestrator = Depends(get_orchestrator)):
    """Run one orchestration and return the full result with ``stepResults``."""
    request = OrchestrationRequest(
        prompt=body.prompt,
        context=body.context,
        requested_tools=body.tools,
        options=body.options
    )
    try:
        result = await orchestrator.submit(request, session_id=body.session_id)
    except UnresolvableRequest as e:
        raise HTTPException(
            status_code=422,
            detail={
                "error": str(e),
                "requestedTools": e.requested_tools,
                "available": e.available,
            }
        )
    except InvalidRequest as e:
        raise HTTPException(status_code=422, detail={"error": str(e), "field": e.field})
    except SessionConflict as e:
        raise HTTPException(status_code=409, detail=str(e))

    return {**result.to_response(), "timestamp": _now()}


@router.get("/sessions/{session_id}")
async def get_session(session_id: str, orchestrator: Orchestrator = Depends(get_orchestrator)):
    session = orchestrator.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Unknown session '{session_id}'")
    return session.to_dict()


@router.post("/sessions/{session_id}/cancel")
async def cancel_session(session_id: str, orchestrator: Orchestrator = Depends(get_orchestrator)):
    if orchestrator.get_session(session_id) is None:
        raise HTTPException(status_code=404, detail=f"Unknown session '{session_id}'")
    return {"sessionId": session_id, "cancelled": orchestrator.cancel(session_id)}


@router.get("/tools")
async def list_tools(orchestrator: Orchestrator = Depends(get_orchestrator)):
    """Registered capabilities, plus the tool server's tools when one is available."""
    capabilities = [
        {
            "name": capability.name,
            "kind": capability.kind.value,
            "description": capability.description,
            "available": orchestrator.registry.is_available(capability.name),
        }
        for capability in orchestrator.registry.list_all()
    ]

    tools: List[Any] = []
    registries = orchestrator.registry.list_by_kind(CapabilityKind.TOOL_REGISTRY)
    if registries:
        result = await orchestrator.submit(OrchestrationRequest(
            prompt="List available tools",
            context={"inputs": {registries[0].name: {"action": "list_tools"}}},
            requested_tools=[registries[0].name]
        ))
        if result.success and isinstance(result.output, dict):
            tools = result.output.get("tools", [])

    return {"capabilities": capabilities, "tools": tools}


async def _run_single(
    orchestrator: Orchestrator,
    kind: CapabilityKind,
    prompt: str,
    context: Dict[str, Any],
    options: Optional[RequestOptions] = None
) -> Any:
    """Run one step on the first available capability of ``kind`` and return its output."""
    name = _first_capability(orchestrator, kind)
    try:
        result = await orchestrator.submit(OrchestrationRequest(
            prompt=prompt,
            context=context,
            requested_tools=[name],
            options=options or RequestOptions()
        ))
    except UnresolvableRequest as e:
        raise HTTPException(status_code=503, detail=str(e))
    if not result.success:
        step = result.step_results[0] if result.step_results else None
        raise HTTPException(
            status_code=502,
            detail={"error": step.error if step else f"{kind.value} failed", "status": step.status.value if step else None}
        )
    return result.output


@router.post("/execute")
async def execute(body: ExecuteBody, orchestrator: Orchestrator = Depends(get_orchestrator)):
    """Run code on the execution capability through the dispatcher."""
    options = RequestOptions(timeout_ms=body.timeout_ms) if body.timeout_ms else None
    output = await _run_single(
        orchestrator,
        CapabilityKind.EXECUTION,
        "Execute code",
        {**body.context, "code": body.code, "language": body.language},
        options
    )
    return {"success": True, "result": output}


@router.get("/notion/databases")
async def notion_databases(orchestrator: Orchestrator = Depends(get_orchestrator)):
    """Databases visible to the storage capability."""
    name = _first_capability(orchestrator, CapabilityKind.STORAGE)
    output = await _run_single(
        orchestrator,
        CapabilityKind.STORAGE,
        "List databases",
        {"inputs": {name: {"action": "list_databases"}}}
    )
    return {"success": True, "databases": output.get("databases", [])}


@router.post("/notion/page")
async def notion_page(body: PageBody, orchestrator: Orchestrator = Depends(get_orchestrator)):
    """Create a page in the storage database."""
    name = _first_capability(orchestrator, CapabilityKind.STORAGE)
    output = await _run_single(
        orchestrator,
        CapabilityKind.STORAGE,
        body.title,
        {"inputs": {name: {"action": "save", "title": body.title, "content": body.content}}}
    )
    return {"success": True, "page": output}


@router.post("/test-all")
async def test_all(orchestrator: Orchestrator = Depends(get_orchestrator)):
    """Probe every capability, then run one representative operation on each."""
    results = await orchestrator.health_monitor.probe_all()
    smoke = await orchestrator.smoke_test()
    return {
        "success": bool(smoke) and all(outcome["success"] for outcome in smoke.values()),
        "results": results,
        "smoke": smoke,
        "timestamp": _now(),
    }


def create_app(
    orchestrator: Optional[Orchestrator] = None,
    settings: Optional[OrchestratorSettings] = None,
    monitor: bool = True
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        orchestrator: Orchestrator to serve (built from settings when omitted)
        settings: Settings used when building the orchestrator
        monitor: Start the background health monitor with the app

    Returns:
        FastAPI app whose lifespan starts and shuts down the orchestrator
    """
    if orchestrator is None:
        from ..adapters.factory import build_capabilities

        settings = settings or OrchestratorSettings.from_env()
        orchestrator = Orchestrator.from_settings(settings, build_capabilities(settings))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await orchestrator.start(monitor=monitor)
        try:
            yield
        finally:
            await orchestrator.shutdown()

    app = FastAPI(title="APEX Orchestrator", lifespan=lifespan)
    app.state.orchestrator = orchestrator
    app.include_router(router)
    return app
