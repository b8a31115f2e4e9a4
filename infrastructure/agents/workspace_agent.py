# infrastructure/agents/workspace_agent.py
import json
from typing import Dict, List, Tuple

from domain.exceptions import LedgerError
from domain.models.artifacts import Artifact, ArtifactDraft, ArtifactType
from domain.models.task_state import AgentRole, AgentTask, TaskResult
from infrastructure.agents.base import ExecutorRegistry
from infrastructure.storage.artifact_ledger import ArtifactLedger
from infrastructure.storage.build_workspace import BuildWorkspace
from shared.logging import logger

ARTIFACT_TYPE_BY_ROLE: Dict[AgentRole, ArtifactType] = {
    AgentRole.ARCHITECT: ArtifactType.DOCUMENTATION,
    AgentRole.DATA: ArtifactType.SCHEMA,
    AgentRole.BACKEND: ArtifactType.ENDPOINT,
    AgentRole.FRONTEND: ArtifactType.COMPONENT,
    AgentRole.QA: ArtifactType.TEST,
    AgentRole.SECURITY: ArtifactType.DOCUMENTATION,
}

CONSUMERS_BY_ROLE: Dict[AgentRole, Tuple[AgentRole, ...]] = {
    AgentRole.ARCHITECT: (AgentRole.DATA, AgentRole.BACKEND, AgentRole.FRONTEND),
    AgentRole.DATA: (AgentRole.BACKEND,),
    AgentRole.BACKEND: (AgentRole.FRONTEND, AgentRole.QA, AgentRole.SECURITY),
    AgentRole.FRONTEND: (AgentRole.QA, AgentRole.SECURITY),
    AgentRole.QA: (),
    AgentRole.SECURITY: (),
}


class WorkspaceAgent:
    """Offline executor that turns a task into on-disk deliverables.

    Writes ``deliverables/<role>/task-spec.json`` and ``result.md``, publishes
    one artifact for the task and hands it to the roles that consume it. The
    artifacts already handed to this role are listed as inputs, so later tasks
    see prior outputs.
    """

    def __init__(self, role: AgentRole, workspace: BuildWorkspace, ledger: ArtifactLedger):
        self.role = role
        self.workspace = workspace
        self.ledger = ledger

    async def execute(self, task: AgentTask) -> TaskResult:
        inputs = self.ledger.artifacts_for_consumer(self.role)
        agent_dir = self.workspace.deliverables_dir(self.role.value)

        try:
            agent_dir.mkdir(parents=True, exist_ok=True)
            (agent_dir / "task-spec.json").write_text(
                json.dumps(task.to_dict(), indent=2, default=str), encoding="utf-8"
            )
            result_md = self._render_result(task, inputs)
            (agent_dir / "result.md").write_text(result_md, encoding="utf-8")
        except OSError as e:
            raise LedgerError(f"Failed to write deliverables for {task.id}: {e}", task_id=task.id) from e

        artifact = await self.ledger.publish(ArtifactDraft(
            type=ARTIFACT_TYPE_BY_ROLE[self.role],
            name=f"{task.id}.md",
            path=str(agent_dir / "result.md"),
            content=result_md,
            produced_by=self.role,
            metadata={"task_id": task.id, "inputs": [a.id for a in inputs]},
            consumed_by=CONSUMERS_BY_ROLE[self.role],
        ))

        for consumer in artifact.consumed_by:
            await self.ledger.create_handoff(
                self.role, consumer, [artifact.id],
                message=f"Output of {task.id}"
            )

        logger.info("Deliverables written",
                   task_id=task.id,
                   role=self.role.value,
                   artifact_id=artifact.id,
                   inputs=len(inputs))

        return TaskResult(
            success=True,
            message=f"Agent workspace created at {agent_dir}",
            data={"artifact_id": artifact.id, "deliverables": str(agent_dir)},
        )

    def _render_result(self, task: AgentTask, inputs: List[Artifact]) -> str:
        lines = [
            f"# {self.role.value} Agent Result",
            "",
            f"Task: {task.description}",
            "",
            "Status: Ready for agent implementation",
            "",
        ]
        if inputs:
            lines.append("## Inputs")
            lines.extend(f"- {a.name} ({a.type.value}) from {a.produced_by.value}" for a in inputs)
            lines.append("")
        return "\n".join(lines)


def build_default_registry(workspace: BuildWorkspace, ledger: ArtifactLedger) -> ExecutorRegistry:
    registry = ExecutorRegistry()
    for role in AgentRole:
        registry.register(role, WorkspaceAgent(role, workspace, ledger))
    return registry
