# domain/models/build_request.py
from dataclasses import dataclass, field
from typing import Optional, List
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field

from domain.models.requirements import ParsedRequirement
from domain.models.task_state import AgentTask

PATH_SEGMENT_PATTERN = r"^[A-Za-z0-9_-]+$"

class PlanningMode(str, Enum):
    MINIMAL = "minimal"
    ENHANCED = "enhanced"

# Pydantic model for the build request file and API body
class BuildRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., min_length=1, max_length=200, description="Short name of the feature")
    description: str = Field(..., min_length=1, description="Free-text feature request")
    apply_to_platform: Optional[bool] = Field(
        default=None, alias="applyToPlatform",
        description="Explicit false skips the deployment phase"
    )
    # Each id becomes one directory name under the workspace root
    user_id: Optional[str] = Field(default=None, alias="userId", pattern=PATH_SEGMENT_PATTERN)
    project_id: Optional[str] = Field(default=None, alias="projectId", pattern=PATH_SEGMENT_PATTERN)

    @property
    def is_isolated(self) -> bool:
        return bool(self.user_id and self.project_id)

@dataclass
class BuildPlan:
    """Planner output: the task graph plus the parsed requirements it came from"""
    request_id: str
    title: str
    parsed_requirements: ParsedRequirement
    tasks: List[AgentTask] = field(default_factory=list)
    user_id: Optional[str] = None
    project_id: Optional[str] = None
    mode: PlanningMode = PlanningMode.ENHANCED

    def task_ids(self) -> List[str]:
        return [t.id for t in self.tasks]

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "title": self.title,
            "mode": self.mode.value,
            "parsed_requirements": self.parsed_requirements.to_dict(),
            "tasks": [t.to_dict() for t in self.tasks],
            "user_id": self.user_id,
            "project_id": self.project_id,
        }
