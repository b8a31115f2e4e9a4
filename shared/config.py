# shared/config.py
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

DEPLOY_ENVIRONMENTS = ("development", "staging", "production")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


@dataclass
class OrchestratorConfig:
    """Runtime settings for the orchestration engine"""
    workspace_root: Path
    max_retries: int = 3
    backoff_base_ms: int = 1000
    task_timeout_seconds: Optional[float] = 300.0
    log_level: str = "INFO"
    json_logs: bool = True
    deploy_hook_url: Optional[str] = None
    deploy_environment: str = "development"

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.backoff_base_ms < 0:
            raise ValueError("backoff_base_ms must be >= 0")
        if self.deploy_environment not in DEPLOY_ENVIRONMENTS:
            raise ValueError(
                f"deploy_environment must be one of {', '.join(DEPLOY_ENVIRONMENTS)}"
            )

    @classmethod
    def from_env(cls) -> "OrchestratorConfig":
        timeout = _env_float("TASK_TIMEOUT_SECONDS", 300.0)
        return cls(
            workspace_root=Path(os.getenv("ORCHESTRATOR_ROOT", os.getcwd())),
            max_retries=_env_int("MAX_RETRIES", 3),
            backoff_base_ms=_env_int("BACKOFF_BASE_MS", 1000),
            task_timeout_seconds=timeout if timeout > 0 else None,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            json_logs=os.getenv("JSON_LOGS", "true").lower() == "true",
            deploy_hook_url=os.getenv("DEPLOY_HOOK_URL") or None,
            deploy_environment=os.getenv("DEPLOY_ENVIRONMENT", "development"),
        )
