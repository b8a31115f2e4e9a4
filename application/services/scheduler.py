# application/services/scheduler.py
import time
from typing import Dict, List, Optional, Sequence

from domain.exceptions import CircularDependencyError, LedgerError, RetryExhaustedError, TaskExecutionError
from domain.models.task_state import AgentTask, TaskResult, TaskStatus
from infrastructure.agents.base import ExecutorRegistry
from infrastructure.resilience.retry_policy import RetryPolicy
from shared.logging import logger, log_task_execution


def topological_sort(tasks: Sequence[AgentTask]) -> List[AgentTask]:
    """Depth-first topological order; dependencies always precede dependents.

    Uses an explicit stack instead of recursion. Independent tasks keep their
    input order. Dependency ids that do not resolve inside ``tasks`` are
    ignored here; plan validation rejects them earlier.
    """
    by_id: Dict[str, AgentTask] = {t.id: t for t in tasks}
    ordered: List[AgentTask] = []
    done = set()
    in_stack = set()

    for root in tasks:
        if root.id in done:
            continue

        in_stack.add(root.id)
        stack = [(root, iter(root.dependencies))]
        while stack:
            task, pending = stack[-1]
            advanced = False
            for dependency_id in pending:
                dependency = by_id.get(dependency_id)
                if dependency is None or dependency.id in done:
                    continue
                if dependency.id in in_stack:
                    raise CircularDependencyError(dependency.id)
                in_stack.add(dependency.id)
                stack.append((dependency, iter(dependency.dependencies)))
                advanced = True
                break

            if not advanced:
                stack.pop()
                in_stack.discard(task.id)
                done.add(task.id)
                ordered.append(task)

    return ordered


class TaskScheduler:
    """Runs a task graph one task at a time against role-bound executors"""

    def __init__(self, registry: ExecutorRegistry, retry_policy: Optional[RetryPolicy] = None):
        self.registry = registry
        self.retry_policy = retry_policy or RetryPolicy()

    async def execute(self, tasks: Sequence[AgentTask]) -> List[AgentTask]:
        """Execute every task in dependency order; the first permanent failure aborts the run"""
        ordered = topological_sort(tasks)

        logger.info("Executing task graph",
                   task_count=len(ordered),
                   order=[t.id for t in ordered])

        for task in ordered:
            await self.execute_task(task)
        return ordered

    async def execute_task(self, task: AgentTask) -> AgentTask:
        """Run one task with retries; raises TaskExecutionError once retries are exhausted"""
        executor = self.registry.get(task.assigned_role, task_id=task.id)
        task.status = TaskStatus.IN_PROGRESS

        logger.info("Executing task", task_id=task.id, role=task.assigned_role.value)

        def record_failure(failures: int, error: BaseException):
            task.retry_count = failures
            task.error = _describe(error)

        async def attempt() -> TaskResult:
            started = time.monotonic()
            try:
                result = await executor.execute(task)
            except Exception as e:
                log_task_execution(
                    role=task.assigned_role.value,
                    task_id=task.id,
                    attempt=task.retry_count + 1,
                    success=False,
                    duration_ms=_elapsed_ms(started),
                    error_message=str(e) or type(e).__name__
                )
                raise

            log_task_execution(
                role=task.assigned_role.value,
                task_id=task.id,
                attempt=task.retry_count + 1,
                success=result.success,
                duration_ms=_elapsed_ms(started),
                error_message=None if result.success else (result.error or result.message)
            )
            if not result.success:
                raise TaskExecutionError(task.id, result.error or result.message or "Task execution failed")
            return result

        try:
            result = await self.retry_policy.call(attempt, on_failure=record_failure, fatal=(LedgerError,))
        except LedgerError as e:
            # Environment failure: never retried
            task.status = TaskStatus.FAILED
            task.error = str(e)
            if e.task_id is None:
                e.task_id = task.id
            raise
        except RetryExhaustedError as e:
            task.status = TaskStatus.FAILED
            task.error = _describe(e.last_error)
            logger.error("Task failed permanently",
                        task_id=task.id,
                        attempts=e.attempts,
                        error=task.error)
            raise TaskExecutionError(task.id, task.error, attempts=e.attempts) from e.last_error

        task.status = TaskStatus.COMPLETED
        task.result = result.data if result.data is not None else result.message
        task.error = None
        logger.info("Task completed", task_id=task.id, retries=task.retry_count)
        return task

    async def dispatch_once(self, task: AgentTask) -> TaskResult:
        """Single attempt without retry accounting; executor exceptions become a failed result"""
        executor = self.registry.get(task.assigned_role, task_id=task.id)
        task.status = TaskStatus.IN_PROGRESS
        started = time.monotonic()
        try:
            result = await self.retry_policy.run_with_timeout(executor.execute, task)
        except LedgerError:
            task.status = TaskStatus.FAILED
            raise
        except Exception as e:
            result = TaskResult(success=False, message="Executor raised", error=str(e) or type(e).__name__)

        log_task_execution(
            role=task.assigned_role.value,
            task_id=task.id,
            attempt=1,
            success=result.success,
            duration_ms=_elapsed_ms(started),
            error_message=None if result.success else (result.error or result.message)
        )
        task.status = TaskStatus.COMPLETED if result.success else TaskStatus.FAILED
        task.result = result.data if result.data is not None else result.message
        task.error = None if result.success else (result.error or result.message)
        return result


def _describe(error: BaseException) -> str:
    if isinstance(error, TaskExecutionError):
        return error.reason
    return str(error) or type(error).__name__


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
