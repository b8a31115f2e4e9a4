# application/orchestrators/build_orchestrator.py
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Union

from pydantic import ValidationError

from application.services.planner import Planner, generate_request_id
from application.services.scheduler import TaskScheduler
from domain.exceptions import BuildRequestError, OrchestrationError, SecurityGateError
from domain.models.artifacts import IsolationContext
from domain.models.build_request import BuildPlan, BuildRequest, PlanningMode
from domain.models.task_state import AgentRole, AgentTask, TaskStatus, WorkflowPhase, WorkflowState
from infrastructure.agents.base import ExecutorRegistry
from infrastructure.agents.workspace_agent import build_default_registry
from infrastructure.deployment.deploy_hook import DeployHookClient, DeploymentConfig
from infrastructure.resilience.retry_policy import RetryPolicy, RetryPolicyConfig
from infrastructure.storage.artifact_ledger import ArtifactLedger
from infrastructure.storage.build_workspace import BuildWorkspace
from shared.config import OrchestratorConfig
from shared.logging import logger, log_phase_transition, log_phase_failure

RegistryFactory = Callable[[BuildWorkspace, ArtifactLedger], ExecutorRegistry]


def load_build_request(path: Union[str, Path]) -> BuildRequest:
    """Read and validate a build request file"""
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise BuildRequestError(f"Cannot read build request {path}: {e}") from e

    try:
        return BuildRequest.model_validate(json.loads(raw))
    except json.JSONDecodeError as e:
        raise BuildRequestError(f"Build request {path} is not valid JSON: {e}") from e
    except ValidationError as e:
        raise BuildRequestError(f"Build request {path} is invalid: {e}") from e


@dataclass
class BuildRun:
    """Everything one orchestration run owns"""
    state: WorkflowState
    request: BuildRequest
    workspace: BuildWorkspace
    ledger: ArtifactLedger
    plan: Optional[BuildPlan] = None
    manifest_path: Optional[Path] = None


class BuildOrchestrator:
    """Phase controller: planning -> development -> security-gate -> qa-review -> deployment -> completed"""

    def __init__(self,
                 config: OrchestratorConfig,
                 registry_factory: Optional[RegistryFactory] = None,
                 deployer=None,
                 planner: Optional[Planner] = None,
                 retry_policy: Optional[RetryPolicy] = None):
        self.config = config
        self.registry_factory = registry_factory or build_default_registry
        self.planner = planner or Planner()
        self.retry_policy = retry_policy or RetryPolicy(RetryPolicyConfig(
            max_retries=config.max_retries,
            backoff_base_ms=config.backoff_base_ms,
            timeout_seconds=config.task_timeout_seconds,
        ))

        if deployer is None and config.deploy_hook_url:
            deployer = DeployHookClient(DeploymentConfig(
                webhook_url=config.deploy_hook_url,
                environment=config.deploy_environment,
            ))
        self.deployer = deployer

    async def run(self, build_request_path: Union[str, Path],
                  mode: PlanningMode = PlanningMode.ENHANCED) -> BuildRun:
        """Entry point: load a build request file and drive it through every phase"""
        request = load_build_request(build_request_path)
        return await self.run_request(request, mode)

    def prepare(self, request: BuildRequest, request_id: Optional[str] = None) -> BuildRun:
        request_id = request_id or generate_request_id()
        isolation = None
        if request.is_isolated:
            isolation = IsolationContext(
                user_id=request.user_id,
                project_id=request.project_id,
                build_request_id=request_id,
            )

        return BuildRun(
            state=WorkflowState(request_id=request_id, user_prompt=request.description),
            request=request,
            workspace=BuildWorkspace(self.config.workspace_root, request_id, isolation),
            ledger=ArtifactLedger(self.config.workspace_root, isolation),
        )

    async def run_request(self, request: BuildRequest,
                          mode: PlanningMode = PlanningMode.ENHANCED,
                          run: Optional[BuildRun] = None) -> BuildRun:
        run = run or self.prepare(request)
        state = run.state

        logger.info("Starting build request",
                   request_id=state.request_id,
                   title=request.title,
                   mode=mode.value,
                   isolated=request.is_isolated)

        try:
            await self._planning_phase(run, mode)
            scheduler = TaskScheduler(self.registry_factory(run.workspace, run.ledger), self.retry_policy)
            await self._development_phase(run, scheduler)
            await self._security_gate_phase(run, scheduler)
            await self._qa_review_phase(run, scheduler)
            await self._deployment_phase(run)
            await self._complete(run)
        except OrchestrationError as e:
            state.error = str(e)
            log_phase_failure(state.request_id, state.current_phase.value, str(e), task_id=e.task_id)
            raise
        except Exception as e:
            state.error = str(e) or type(e).__name__
            log_phase_failure(state.request_id, state.current_phase.value, state.error)
            raise

        return run

    async def _planning_phase(self, run: BuildRun, mode: PlanningMode):
        state = run.state
        self._enter(state, WorkflowPhase.PLANNING)

        plan = self.planner.plan(run.request, state.request_id, mode)
        run.plan = plan
        state.tasks = plan.tasks

        run.workspace.create(run.request.title)
        run.workspace.store_plan(plan)
        run.workspace.write_adr(plan)
        await run.ledger.initialize()

    async def _development_phase(self, run: BuildRun, scheduler: TaskScheduler):
        self._enter(run.state, WorkflowPhase.DEVELOPMENT)
        await scheduler.execute(run.state.tasks)

    async def _security_gate_phase(self, run: BuildRun, scheduler: TaskScheduler):
        state = run.state
        self._enter(state, WorkflowPhase.SECURITY_GATE)

        review = AgentTask(
            id=f"{state.request_id}-security-gate",
            description=(
                "Security review of all deliverables: "
                + ", ".join(t.id for t in state.tasks)
            ),
            assigned_role=AgentRole.SECURITY,
        )

        try:
            await scheduler.execute_task(review)
        except OrchestrationError as e:
            raise SecurityGateError(
                f"Security gate failed, deployment blocked: {e}", task_id=review.id
            ) from e

        logger.info("Security gate passed", request_id=state.request_id)

    async def _qa_review_phase(self, run: BuildRun, scheduler: TaskScheduler):
        state = run.state
        self._enter(state, WorkflowPhase.QA_REVIEW)

        for task in state.tasks_with_status(TaskStatus.COMPLETED):
            qa_task = AgentTask(
                id=f"qa-{task.id}",
                description=f"Validate and test: {task.description}",
                assigned_role=AgentRole.QA,
            )
            result = await scheduler.dispatch_once(qa_task)

            if not result.success:
                task.status = TaskStatus.VALIDATION_REQUIRED
                task.error = result.error or result.message
                logger.warning("Task requires fixes based on QA feedback",
                              task_id=task.id,
                              feedback=task.error)
            else:
                logger.info("Task validated", task_id=task.id)

    async def _deployment_phase(self, run: BuildRun):
        state = run.state
        if self.deployer is None:
            return
        if run.request.apply_to_platform is False:
            logger.info("Deployment skipped by build request", request_id=state.request_id)
            return

        self._enter(state, WorkflowPhase.DEPLOYMENT)
        result = await self.deployer.deploy()
        state.deployment_message = result.message

        if result.success:
            logger.info("Deployment triggered", request_id=state.request_id, message=result.message)
        else:
            logger.error("Deployment failed", request_id=state.request_id, message=result.message)

    async def _complete(self, run: BuildRun):
        state = run.state
        self._enter(state, WorkflowPhase.COMPLETED)
        state.end_time = datetime.now(timezone.utc)

        run.manifest_path = await run.ledger.export_manifest()
        run.workspace.store_plan(run.plan)

        flagged = state.tasks_with_status(TaskStatus.VALIDATION_REQUIRED)
        logger.info("Build request completed",
                   request_id=state.request_id,
                   tasks=len(state.tasks),
                   validation_required=[t.id for t in flagged],
                   duration_seconds=(state.end_time - state.start_time).total_seconds())

    @staticmethod
    def _enter(state: WorkflowState, phase: WorkflowPhase):
        state.current_phase = phase
        log_phase_transition(state.request_id, phase.value, task_count=len(state.tasks))
