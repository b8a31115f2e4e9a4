# infrastructure/web/build_api.py
from fastapi import APIRouter, HTTPException, Depends, BackgroundTasks
from typing import Dict, Any, Optional
from pydantic import BaseModel, Field

from application.orchestrators.build_orchestrator import BuildOrchestrator, BuildRun
from domain.exceptions import OrchestrationError
from domain.models.build_request import BuildRequest, PlanningMode
from shared.logging import logger

router = APIRouter(prefix="/builds", tags=["builds"])

# Dependency injection functions, overridden by the main application
async def get_orchestrator() -> BuildOrchestrator:
    raise HTTPException(status_code=503, detail="Orchestrator not initialized")

async def get_runs() -> Dict[str, BuildRun]:
    raise HTTPException(status_code=503, detail="Run registry not initialized")

class CreateBuildRequest(BuildRequest):
    mode: PlanningMode = Field(default=PlanningMode.ENHANCED, description="Planning mode")

class CreateBuildResponse(BaseModel):
    request_id: str
    status: str
    workspace_path: str
    status_url: str

class BuildStatusResponse(BaseModel):
    request_id: str
    title: str
    status: str
    current_phase: str
    tasks: list
    start_time: str
    end_time: Optional[str] = None
    error: Optional[str] = None
    deployment_message: Optional[str] = None

@router.post("", response_model=CreateBuildResponse, status_code=202)
async def create_build(
    body: CreateBuildRequest,
    background_tasks: BackgroundTasks,
    orchestrator: BuildOrchestrator = Depends(get_orchestrator),
    runs: Dict[str, BuildRun] = Depends(get_runs)
):
    """Start a build request in the background"""
    request = BuildRequest.model_validate(body.model_dump(exclude={"mode"}))
    run = orchestrator.prepare(request)
    request_id = run.state.request_id
    runs[request_id] = run

    background_tasks.add_task(execute_build_background, orchestrator, run, body.mode)

    logger.info("Build accepted",
               request_id=request_id,
               title=request.title,
               mode=body.mode.value)

    return CreateBuildResponse(
        request_id=request_id,
        status="accepted",
        workspace_path=str(run.workspace.path),
        status_url=f"/builds/{request_id}"
    )

@router.get("/{request_id}", response_model=BuildStatusResponse)
async def get_build(request_id: str, runs: Dict[str, BuildRun] = Depends(get_runs)):
    """Current workflow state of a build"""
    run = _find_run(runs, request_id)
    state = run.state.to_dict()
    return BuildStatusResponse(
        request_id=request_id,
        title=run.request.title,
        status=state["status"],
        current_phase=state["current_phase"],
        tasks=state["tasks"],
        start_time=state["start_time"],
        end_time=state["end_time"],
        error=state["error"],
        deployment_message=state["deployment_message"]
    )

@router.get("/{request_id}/manifest")
async def get_build_manifest(request_id: str, runs: Dict[str, BuildRun] = Depends(get_runs)) -> Dict[str, Any]:
    """Artifact manifest of a completed build"""
    run = _find_run(runs, request_id)
    if run.manifest_path is None:
        raise HTTPException(
            status_code=404,
            detail=f"Manifest not exported yet. Current status: {run.state.status}"
        )
    return run.ledger.manifest()

def _find_run(runs: Dict[str, BuildRun], request_id: str) -> BuildRun:
    run = runs.get(request_id)
    if run is None:
        raise HTTPException(status_code=404, detail="Build not found")
    return run

# Background tasks
async def execute_build_background(orchestrator: BuildOrchestrator, run: BuildRun, mode: PlanningMode):
    """Drive a build to completion; failures stay on the run record"""
    try:
        await orchestrator.run_request(run.request, mode, run=run)
        logger.info("Background build finished",
                   request_id=run.state.request_id,
                   status=run.state.status)
    except OrchestrationError as e:
        logger.error("Background build failed", request_id=run.state.request_id, error=str(e))
