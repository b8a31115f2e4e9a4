# main.py
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI

from application.orchestrators.build_orchestrator import BuildOrchestrator
from infrastructure.web import build_api
from shared.config import OrchestratorConfig
from shared.logging import logger, setup_logging

__version__ = "0.1.0"

# Global application state
app_state = {}

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle"""

    config = OrchestratorConfig.from_env()
    setup_logging(level=config.log_level, json_logs=config.json_logs)

    logger.info("Starting build orchestrator",
               version=__version__,
               workspace_root=str(config.workspace_root),
               deployment_configured=bool(config.deploy_hook_url))

    app_state["config"] = config
    app_state["orchestrator"] = BuildOrchestrator(config)
    app_state["runs"] = {}

    yield

    logger.info("Shutting down build orchestrator", runs=len(app_state.get("runs", {})))
    app_state.clear()

# Create FastAPI app
app = FastAPI(
    title="Build Orchestrator",
    description="Turns feature requests into dependency-ordered agent task graphs and drives them through gated phases",
    version=__version__,
    lifespan=lifespan
)

# Dependency injection
async def get_orchestrator() -> BuildOrchestrator:
    return app_state["orchestrator"]

async def get_runs() -> dict:
    return app_state["runs"]

app.dependency_overrides[build_api.get_orchestrator] = get_orchestrator
app.dependency_overrides[build_api.get_runs] = get_runs

app.include_router(build_api.router)

@app.get("/health")
async def health_check():
    """Liveness check"""
    runs = app_state.get("runs", {})
    return {
        "status": "healthy" if "orchestrator" in app_state else "starting",
        "active_builds": sum(1 for r in runs.values() if r.state.status == "running"),
        "version": __version__,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }

@app.get("/")
async def root():
    """API root endpoint"""
    return {
        "service": "Build Orchestrator",
        "phases": ["planning", "development", "security-gate", "qa-review", "deployment", "completed"],
        "endpoints": {
            "start_build": "POST /builds",
            "build_status": "GET /builds/{request_id}",
            "build_manifest": "GET /builds/{request_id}/manifest",
            "health_check": "GET /health"
        }
    }

def serve():
    import uvicorn

    port = int(os.getenv("PORT", "8000"))
    host = os.getenv("HOST", "0.0.0.0")

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=os.getenv("RELOAD", "false").lower() == "true"
    )

if __name__ == "__main__":
    serve()
