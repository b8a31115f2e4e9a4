# domain/models/task_state.py
from dataclasses import dataclass, field
from typing import Any, Optional, List
from datetime import datetime, timezone
from enum import Enum

class AgentRole(str, Enum):
    ARCHITECT = "architect"
    FRONTEND = "frontend"
    BACKEND = "backend"
    DATA = "data"
    QA = "qa"
    SECURITY = "security"

class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    VALIDATION_REQUIRED = "validation_required"

class WorkflowPhase(str, Enum):
    PLANNING = "planning"
    DEVELOPMENT = "development"
    SECURITY_GATE = "security-gate"
    QA_REVIEW = "qa-review"
    DEPLOYMENT = "deployment"
    COMPLETED = "completed"

@dataclass
class AgentTask:
    """Executable unit of work; mutated only by the scheduler while it runs"""
    id: str
    description: str
    assigned_role: AgentRole
    status: TaskStatus = TaskStatus.PENDING
    dependencies: List[str] = field(default_factory=list)
    result: Optional[Any] = None
    error: Optional[str] = None
    retry_count: int = 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "assigned_role": self.assigned_role.value,
            "status": self.status.value,
            "dependencies": list(self.dependencies),
            "result": self.result,
            "error": self.error,
            "retry_count": self.retry_count,
        }

@dataclass(frozen=True)
class TaskResult:
    """Immutable response from a task executor"""
    success: bool
    message: str
    data: Optional[Any] = None
    error: Optional[str] = None

@dataclass
class WorkflowState:
    """Top-level record of one orchestration run"""
    request_id: str
    user_prompt: str
    tasks: List[AgentTask] = field(default_factory=list)
    current_phase: WorkflowPhase = WorkflowPhase.PLANNING
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    end_time: Optional[datetime] = None
    error: Optional[str] = None
    deployment_message: Optional[str] = None

    @property
    def status(self) -> str:
        if self.error:
            return "failed"
        if self.current_phase == WorkflowPhase.COMPLETED:
            return "completed"
        return "running"

    def tasks_with_status(self, status: TaskStatus) -> List[AgentTask]:
        return [t for t in self.tasks if t.status == status]

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "user_prompt": self.user_prompt,
            "status": self.status,
            "current_phase": self.current_phase.value,
            "tasks": [t.to_dict() for t in self.tasks],
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "error": self.error,
            "deployment_message": self.deployment_message,
        }
