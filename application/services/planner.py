# application/services/planner.py
import uuid
from typing import List, Optional, Sequence

from application.services.requirement_parser import RequirementParser
from application.services.scheduler import topological_sort
from domain.exceptions import PlanValidationError
from domain.models.build_request import BuildPlan, BuildRequest, PlanningMode
from domain.models.requirements import ParsedRequirement
from domain.models.task_state import AgentRole, AgentTask, TaskStatus
from shared.logging import logger


def generate_request_id() -> str:
    """Short random identifier shared by every task of one build"""
    return uuid.uuid4().hex[:8]


def validate_plan(tasks: Sequence[AgentTask]) -> None:
    """Reject duplicate ids, dangling dependency references and cycles"""
    seen = set()
    for task in tasks:
        if task.id in seen:
            raise PlanValidationError(f"Duplicate task id {task.id}", task_id=task.id)
        seen.add(task.id)

    for task in tasks:
        for dependency_id in task.dependencies:
            if dependency_id not in seen:
                raise PlanValidationError(
                    f"Task {task.id} depends on unknown task {dependency_id}",
                    task_id=task.id,
                    dependency_id=dependency_id,
                )

    topological_sort(tasks)


class Planner:
    """Turns parsed requirements (or nothing, in minimal mode) into a task graph"""

    def __init__(self, parser: Optional[RequirementParser] = None):
        self.parser = parser or RequirementParser()

    def plan(self, request: BuildRequest, request_id: str,
             mode: PlanningMode = PlanningMode.ENHANCED) -> BuildPlan:
        if mode == PlanningMode.MINIMAL:
            plan = self.minimal_plan(request, request_id)
        else:
            parsed = self.parser.parse(request.description)
            plan = self.enhanced_plan(request, request_id, parsed)

        validate_plan(plan.tasks)

        logger.info("Plan generated",
                   request_id=request_id,
                   mode=mode.value,
                   task_count=len(plan.tasks),
                   roles=sorted({t.assigned_role.value for t in plan.tasks}))
        return plan

    def minimal_plan(self, request: BuildRequest, request_id: str) -> BuildPlan:
        """Fixed architect-led plan used when no requirement parsing is wanted"""
        architect_id = f"{request_id}-architect"
        backend_id = f"{request_id}-backend"
        frontend_id = f"{request_id}-frontend"

        tasks = [
            AgentTask(
                id=architect_id,
                description=f"Design the architecture for: {request.title}",
                assigned_role=AgentRole.ARCHITECT,
            ),
            AgentTask(
                id=backend_id,
                description=f"Implement the backend for: {request.title}",
                assigned_role=AgentRole.BACKEND,
                dependencies=[architect_id],
            ),
            AgentTask(
                id=frontend_id,
                description=f"Implement the frontend for: {request.title}",
                assigned_role=AgentRole.FRONTEND,
                dependencies=[backend_id],
            ),
            AgentTask(
                id=f"{request_id}-qa",
                description=f"Validate and test: {request.title}",
                assigned_role=AgentRole.QA,
                dependencies=[backend_id, frontend_id],
            ),
        ]

        parsed = ParsedRequirement(
            modules=(),
            overall_goal=request.description,
            constraints=self.parser.extract_constraints(request.description),
        )
        return self._build_plan(request, request_id, parsed, tasks, PlanningMode.MINIMAL)

    def enhanced_plan(self, request: BuildRequest, request_id: str,
                      parsed: ParsedRequirement) -> BuildPlan:
        """One task per requirement module, ids prefixed with the request id"""
        tasks: List[AgentTask] = [
            AgentTask(
                id=f"{request_id}-{module.id}",
                description=f"{module.title}: {module.description}",
                assigned_role=module.assigned_role,
                status=TaskStatus.PENDING,
                dependencies=[f"{request_id}-{dep}" for dep in module.dependencies],
            )
            for module in parsed.modules
        ]
        return self._build_plan(request, request_id, parsed, tasks, PlanningMode.ENHANCED)

    @staticmethod
    def _build_plan(request: BuildRequest, request_id: str, parsed: ParsedRequirement,
                    tasks: List[AgentTask], mode: PlanningMode) -> BuildPlan:
        return BuildPlan(
            request_id=request_id,
            title=request.title,
            parsed_requirements=parsed,
            tasks=tasks,
            user_id=request.user_id,
            project_id=request.project_id,
            mode=mode,
        )
