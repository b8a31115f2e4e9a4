# infrastructure/storage/build_workspace.py
import json
from pathlib import Path
from typing import List, Optional

from domain.exceptions import LedgerError
from domain.models.artifacts import IsolationContext
from domain.models.build_request import BuildPlan
from domain.models.task_state import AgentTask, TaskStatus
from shared.logging import logger

WORKSPACE_SUBDIRECTORIES = ("deliverables", "artifacts", "schemas", "contracts", "docs")


class BuildWorkspace:
    """On-disk outputs of one build: plan files, ADR, README and per-role deliverables.

    Layout under ``root``:

    * isolated builds: ``solutions/users/<user>/projects/<project>/builds/<request>/``,
      which also holds ``plan.md`` and ``plan.json``
    * manual builds: ``solutions/_staging/<request>/``, with the plan under
      ``knowledge-base/prompts/build-requests/<request>/``
    * ADRs always go to ``docs/architecture/decisions/ADR-<request>.md``
    """

    def __init__(self, root: Path, request_id: str, isolation: Optional[IsolationContext] = None):
        self.root = Path(root)
        self.request_id = request_id
        self.isolation = isolation

        if isolation:
            self.path = (self.root / "solutions" / "users" / isolation.user_id
                         / "projects" / isolation.project_id
                         / "builds" / isolation.build_request_id)
            self.plan_dir = self.path
        else:
            self.path = self.root / "solutions" / "_staging" / request_id
            self.plan_dir = self.root / "knowledge-base" / "prompts" / "build-requests" / request_id

        self.adr_dir = self.root / "docs" / "architecture" / "decisions"

    def create(self, title: str) -> Path:
        try:
            self.path.mkdir(parents=True, exist_ok=True)
            for subdirectory in WORKSPACE_SUBDIRECTORIES:
                (self.path / subdirectory).mkdir(exist_ok=True)

            (self.path / "README.md").write_text(
                f"# Solution: {title}\n\n"
                f"Request ID: {self.request_id}\n\n"
                "Generated by the build orchestrator with agent coordination.\n",
                encoding="utf-8"
            )
        except OSError as e:
            raise LedgerError(f"Failed to create workspace {self.path}: {e}") from e

        logger.info("Workspace created", request_id=self.request_id, path=str(self.path))
        return self.path

    def deliverables_dir(self, role: str) -> Path:
        return self.path / "deliverables" / role

    def store_plan(self, plan: BuildPlan) -> Path:
        try:
            self.plan_dir.mkdir(parents=True, exist_ok=True)
            (self.plan_dir / "plan.md").write_text(plan_to_markdown(plan), encoding="utf-8")
            (self.plan_dir / "plan.json").write_text(
                json.dumps(plan.to_dict(), indent=2, default=str), encoding="utf-8"
            )
        except OSError as e:
            raise LedgerError(f"Failed to store plan for {plan.request_id}: {e}") from e
        return self.plan_dir

    def write_adr(self, plan: BuildPlan) -> Path:
        adr_path = self.adr_dir / f"ADR-{plan.request_id}.md"
        try:
            self.adr_dir.mkdir(parents=True, exist_ok=True)
            adr_path.write_text(adr_to_markdown(plan), encoding="utf-8")
        except OSError as e:
            raise LedgerError(f"Failed to write ADR for {plan.request_id}: {e}") from e
        return adr_path


def plan_to_markdown(plan: BuildPlan) -> str:
    parsed = plan.parsed_requirements
    lines: List[str] = [
        f"# Plan: {plan.title}",
        "",
        f"Request ID: {plan.request_id}",
        f"Mode: {plan.mode.value}",
        "",
        "## Overall Goal",
        parsed.overall_goal,
        "",
    ]

    if parsed.constraints:
        lines.append("## Constraints")
        lines.extend(f"- {c}" for c in parsed.constraints)
        lines.append("")

    if parsed.modules:
        lines.append("## Modules")
        for module in parsed.modules:
            lines.append(f"### {module.title} ({module.assigned_role.value})")
            lines.append(module.description)
            if module.acceptance_criteria:
                lines.append("**Acceptance Criteria:**")
                lines.extend(f"- {c}" for c in module.acceptance_criteria)
            lines.append("")

    lines.append("## Tasks")
    for task in plan.tasks:
        lines.append(_task_line(task))
        if task.dependencies:
            lines.append(f"  - depends on: {', '.join(task.dependencies)}")

    return "\n".join(lines) + "\n"


def _task_line(task: AgentTask) -> str:
    mark = "x" if task.status == TaskStatus.COMPLETED else " "
    line = f"- [{mark}] **{task.id}** ({task.assigned_role.value}): {task.description}"
    if task.status not in (TaskStatus.PENDING, TaskStatus.COMPLETED):
        line += f" _{task.status.value}_"
    return line


def adr_to_markdown(plan: BuildPlan) -> str:
    parsed = plan.parsed_requirements
    roles = []
    for task in plan.tasks:
        if task.assigned_role.value not in roles:
            roles.append(task.assigned_role.value)

    lines = [
        f"# ADR-{plan.request_id}: {plan.title}",
        "",
        "## Status",
        "Proposed",
        "",
        "## Context",
        f"Build request: {plan.title}",
        "",
    ]
    if parsed.modules:
        lines.append("Requirements have been parsed into the following modules:")
        lines.extend(f"- {m.title} ({m.type.value}): {m.description}" for m in parsed.modules)
    else:
        lines.append(f"Goal: {parsed.overall_goal}")

    lines += [
        "",
        "## Decision",
        "Use a multi-agent approach with the following specialist roles:",
        *[f"- {role} agent" for role in roles],
        "",
        "Agents coordinate through a shared artifact ledger:",
        "1. Data agent creates database schemas",
        "2. Backend agent uses schemas to build API endpoints",
        "3. Frontend agent uses API contracts to build UI",
        "4. Security agent reviews all generated code",
        "5. QA agent validates functionality",
        "",
        "## Consequences",
        "- Modular code generation with clear separation of concerns",
        "- Artifacts enable deterministic handoff between agents",
        "- Security and QA gates guard deployment",
        "- Tasks execute in dependency order",
        "",
    ]
    return "\n".join(lines)
