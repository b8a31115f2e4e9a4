# domain/models/artifacts.py
from dataclasses import dataclass, field
from typing import Dict, Any, Optional, Tuple
from datetime import datetime
from enum import Enum

from domain.models.task_state import AgentRole

class ArtifactType(str, Enum):
    SCHEMA = "schema"
    INTERFACE = "interface"
    ENDPOINT = "endpoint"
    COMPONENT = "component"
    TEST = "test"
    DOCUMENTATION = "documentation"

@dataclass(frozen=True)
class IsolationContext:
    """Scopes a workspace to one user, project and build"""
    user_id: str
    project_id: str
    build_request_id: str

@dataclass(frozen=True)
class ArtifactDraft:
    """Everything an executor supplies when publishing; the ledger adds id and timestamp"""
    type: ArtifactType
    name: str
    path: str
    content: str
    produced_by: AgentRole
    metadata: Dict[str, Any] = field(default_factory=dict)
    consumed_by: Tuple[AgentRole, ...] = ()

@dataclass(frozen=True)
class Artifact:
    """Immutable published output of a task"""
    id: str
    type: ArtifactType
    name: str
    path: str
    content: str
    produced_by: AgentRole
    timestamp: datetime
    metadata: Dict[str, Any] = field(default_factory=dict)
    consumed_by: Tuple[AgentRole, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "name": self.name,
            "path": self.path,
            "content": self.content,
            "metadata": dict(self.metadata),
            "produced_by": self.produced_by.value,
            "consumed_by": [role.value for role in self.consumed_by],
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Artifact":
        return cls(
            id=data["id"],
            type=ArtifactType(data["type"]),
            name=data["name"],
            path=data["path"],
            content=data["content"],
            metadata=data.get("metadata") or {},
            produced_by=AgentRole(data["produced_by"]),
            consumed_by=tuple(AgentRole(r) for r in data.get("consumed_by") or []),
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )

@dataclass(frozen=True)
class Handoff:
    """Groups artifacts from one role for another; the ledger keeps ownership"""
    id: str
    from_role: AgentRole
    to_role: AgentRole
    artifacts: Tuple[Artifact, ...]
    timestamp: datetime
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "from_role": self.from_role.value,
            "to_role": self.to_role.value,
            "artifacts": [a.to_dict() for a in self.artifacts],
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Handoff":
        return cls(
            id=data["id"],
            from_role=AgentRole(data["from_role"]),
            to_role=AgentRole(data["to_role"]),
            artifacts=tuple(Artifact.from_dict(a) for a in data.get("artifacts") or []),
            message=data.get("message"),
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )
