# infrastructure/agents/base.py
from typing import Dict, List, Protocol, runtime_checkable

from domain.exceptions import UnknownRoleError
from domain.models.task_state import AgentRole, AgentTask, TaskResult

@runtime_checkable
class TaskExecutor(Protocol):
    """Performs the actual work for one role"""

    async def execute(self, task: AgentTask) -> TaskResult:
        ...

class ExecutorRegistry:
    """Role -> executor lookup; adding a role is a registration"""

    def __init__(self, executors: Dict[AgentRole, TaskExecutor] = None):
        self._executors: Dict[AgentRole, TaskExecutor] = dict(executors or {})

    def register(self, role: AgentRole, executor: TaskExecutor) -> None:
        self._executors[AgentRole(role)] = executor

    def get(self, role: AgentRole, task_id: str = None) -> TaskExecutor:
        try:
            return self._executors[AgentRole(role)]
        except (KeyError, ValueError):
            raise UnknownRoleError(str(getattr(role, "value", role)), task_id=task_id) from None

    def roles(self) -> List[AgentRole]:
        return list(self._executors)

    def __contains__(self, role) -> bool:
        try:
            return AgentRole(role) in self._executors
        except ValueError:
            return False
