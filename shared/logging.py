# shared/logging.py
import structlog
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_SHARED_PROCESSORS = [
    structlog.stdlib.filter_by_level,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.processors.UnicodeDecoder(),
]

# Configure structured logging
structlog.configure(
    processors=_SHARED_PROCESSORS + [structlog.processors.JSONRenderer()],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

# Get logger instance
logger = structlog.get_logger("orchestrator")

# Configure standard library logging
logging.basicConfig(
    format="%(message)s",
    stream=sys.stdout,
    level=logging.INFO,
)

def setup_logging(level: str = "INFO", json_logs: bool = True):
    """Setup logging configuration"""
    log_level = getattr(logging, level.upper())
    logging.getLogger().setLevel(log_level)

    if not json_logs:
        # Use human-readable format for development
        structlog.configure(
            processors=_SHARED_PROCESSORS + [structlog.dev.ConsoleRenderer()],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

def log_task_execution(
    role: str,
    task_id: str,
    attempt: int,
    success: bool,
    duration_ms: int,
    error_message: Optional[str] = None
):
    """Log a single executor attempt"""
    extra_data = {
        "role": role,
        "task_id": task_id,
        "attempt": attempt,
        "duration_ms": duration_ms,
        "success": success
    }

    if error_message:
        extra_data["error_message"] = error_message
        logger.warning("Task attempt failed", **extra_data)
    else:
        logger.info("Task attempt completed", **extra_data)

def log_phase_transition(request_id: str, phase: str, task_count: Optional[int] = None):
    """Log the workflow entering a new phase"""
    extra_data: Dict[str, Any] = {"request_id": request_id, "phase": phase}
    if task_count is not None:
        extra_data["task_count"] = task_count
    logger.info("Phase started", **extra_data)

def log_phase_failure(
    request_id: str,
    phase: str,
    error: str,
    task_id: Optional[str] = None
):
    """Log a fatal failure with phase, task id and the moment it happened"""
    logger.error("Phase failed",
                request_id=request_id,
                phase=phase,
                task_id=task_id,
                error=error,
                failed_at=datetime.now(timezone.utc).isoformat())

def log_artifact_published(artifact_id: str, artifact_type: str, produced_by: str, name: str):
    """Log artifact publication"""
    logger.info("Artifact published",
               artifact_id=artifact_id,
               artifact_type=artifact_type,
               produced_by=produced_by,
               name=name)

def log_handoff_created(
    handoff_id: str,
    from_role: str,
    to_role: str,
    artifact_count: int,
    dropped_ids: Optional[list] = None
):
    """Log handoff creation, including ids that did not resolve"""
    extra_data: Dict[str, Any] = {
        "handoff_id": handoff_id,
        "from_role": from_role,
        "to_role": to_role,
        "artifact_count": artifact_count
    }
    if dropped_ids:
        extra_data["dropped_ids"] = dropped_ids
    logger.info("Handoff created", **extra_data)
