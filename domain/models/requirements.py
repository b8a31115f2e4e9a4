# domain/models/requirements.py
from dataclasses import dataclass, field
from typing import Tuple
from enum import Enum

from domain.models.task_state import AgentRole

class ModuleType(str, Enum):
    FRONTEND = "frontend"
    BACKEND = "backend"
    DATABASE = "database"
    SECURITY = "security"
    INFRASTRUCTURE = "infrastructure"
    QA = "qa"

class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

@dataclass(frozen=True)
class RequirementModule:
    """Immutable unit of requirement inferred from a feature request"""
    id: str
    title: str
    description: str
    type: ModuleType
    assigned_role: AgentRole
    priority: Priority
    dependencies: Tuple[str, ...] = ()
    acceptance_criteria: Tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "type": self.type.value,
            "assigned_role": self.assigned_role.value,
            "priority": self.priority.value,
            "dependencies": list(self.dependencies),
            "acceptance_criteria": list(self.acceptance_criteria),
        }

@dataclass(frozen=True)
class ParsedRequirement:
    """Immutable parser output"""
    modules: Tuple[RequirementModule, ...]
    overall_goal: str
    constraints: Tuple[str, ...] = field(default_factory=tuple)

    def module_of_type(self, module_type: ModuleType):
        return next((m for m in self.modules if m.type == module_type), None)

    def to_dict(self) -> dict:
        return {
            "modules": [m.to_dict() for m in self.modules],
            "overall_goal": self.overall_goal,
            "constraints": list(self.constraints),
        }
