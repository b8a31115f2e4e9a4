# tests/unit/application/services/test_scheduler.py
import asyncio

import pytest
from unittest.mock import AsyncMock

from application.services.scheduler import TaskScheduler, topological_sort
from domain.exceptions import CircularDependencyError, LedgerError, TaskExecutionError, UnknownRoleError
from domain.models.task_state import AgentRole, AgentTask, TaskResult, TaskStatus
from infrastructure.agents.base import ExecutorRegistry
from infrastructure.resilience.retry_policy import RetryPolicy, RetryPolicyConfig

OK = TaskResult(success=True, message="done", data={"ok": True})
NOT_OK = TaskResult(success=False, message="nope", error="boom")

def make_task(task_id, role=AgentRole.BACKEND, deps=()):
    return AgentTask(id=task_id, description=task_id, assigned_role=role, dependencies=list(deps))

@pytest.fixture
def sleep():
    return AsyncMock()

@pytest.fixture
def retry_policy(sleep):
    return RetryPolicy(RetryPolicyConfig(max_retries=2, backoff_base_ms=10, timeout_seconds=1.0), sleep=sleep)

def scheduler_for(executor, retry_policy, roles=tuple(AgentRole)):
    registry = ExecutorRegistry({role: executor for role in roles})
    return TaskScheduler(registry, retry_policy)

class TestTopologicalSort:
    """Dependency ordering"""

    def test_dependencies_precede_dependents(self):
        """Every task appears after all of its dependencies"""
        tasks = [
            make_task("qa", deps=["fe", "be"]),
            make_task("fe", deps=["be"]),
            make_task("be", deps=["db"]),
            make_task("db"),
        ]

        ordered = topological_sort(tasks)
        position = {t.id: i for i, t in enumerate(ordered)}

        assert len(ordered) == 4
        for task in tasks:
            for dep in task.dependencies:
                assert position[dep] < position[task.id]

    def test_independent_tasks_keep_input_order(self):
        tasks = [make_task("c"), make_task("a"), make_task("b")]
        assert [t.id for t in topological_sort(tasks)] == ["c", "a", "b"]

    def test_cycle_detected(self):
        tasks = [make_task("a", deps=["b"]), make_task("b", deps=["a"])]

        with pytest.raises(CircularDependencyError) as exc_info:
            topological_sort(tasks)

        assert exc_info.value.task_id in ("a", "b")
        assert "Circular dependency" in str(exc_info.value)

    def test_self_dependency(self):
        with pytest.raises(CircularDependencyError):
            topological_sort([make_task("a", deps=["a"])])

    def test_deep_chain(self):
        """Long chains do not hit the recursion limit"""
        tasks = [make_task("t0")] + [make_task(f"t{i}", deps=[f"t{i - 1}"]) for i in range(1, 3000)]
        tasks.reverse()

        ordered = topological_sort(tasks)

        assert [t.id for t in ordered] == [f"t{i}" for i in range(3000)]

class TestTaskScheduler:
    """Sequential execution with retries"""

    @pytest.mark.asyncio
    async def test_runs_in_dependency_order(self, retry_policy):
        """Executor sees tasks in topological order and all complete"""
        seen = []

        class Recorder:
            async def execute(self, task):
                seen.append(task.id)
                return OK

        tasks = [make_task("b", deps=["a"]), make_task("a")]
        await scheduler_for(Recorder(), retry_policy).execute(tasks)

        assert seen == ["a", "b"]
        assert all(t.status == TaskStatus.COMPLETED for t in tasks)
        assert tasks[0].result == {"ok": True}

    @pytest.mark.asyncio
    async def test_cycle_dispatches_nothing(self, retry_policy):
        """A cyclic graph fails before any task moves to in_progress"""
        executor = AsyncMock()
        tasks = [make_task("a", deps=["b"]), make_task("b", deps=["a"])]

        with pytest.raises(CircularDependencyError):
            await scheduler_for(executor, retry_policy).execute(tasks)

        executor.execute.assert_not_called()
        assert all(t.status == TaskStatus.PENDING for t in tasks)

    @pytest.mark.asyncio
    async def test_retry_then_succeed(self, retry_policy, sleep):
        """k failures followed by success leaves retry_count == k"""
        executor = AsyncMock()
        executor.execute.side_effect = [NOT_OK, RuntimeError("flaky"), OK]
        task = make_task("a")

        await scheduler_for(executor, retry_policy).execute_task(task)

        assert task.status == TaskStatus.COMPLETED
        assert task.retry_count == 2
        assert task.error is None
        assert executor.execute.call_count == 3
        assert [c.args[0] for c in sleep.call_args_list] == [0.01, 0.02]

    @pytest.mark.asyncio
    async def test_exhausted_retries_fail_the_task(self, retry_policy):
        """An always-failing task is attempted max_retries + 1 times"""
        executor = AsyncMock()
        executor.execute.return_value = NOT_OK
        task = make_task("a")

        with pytest.raises(TaskExecutionError) as exc_info:
            await scheduler_for(executor, retry_policy).execute_task(task)

        assert executor.execute.call_count == 3
        assert exc_info.value.attempts == 3
        assert exc_info.value.task_id == "a"
        assert task.status == TaskStatus.FAILED
        assert task.error == "boom"
        assert task.retry_count == 3

    @pytest.mark.asyncio
    async def test_failure_stops_later_tasks(self, retry_policy):
        """No task after a permanent failure is dispatched"""
        seen = []

        class FailsFirst:
            async def execute(self, task):
                seen.append(task.id)
                if task.id == "a":
                    return NOT_OK
                return OK

        tasks = [make_task("a"), make_task("b", deps=["a"]), make_task("c")]

        with pytest.raises(TaskExecutionError):
            await scheduler_for(FailsFirst(), retry_policy).execute(tasks)

        assert seen == ["a", "a", "a"]
        assert tasks[1].status == TaskStatus.PENDING
        assert tasks[2].status == TaskStatus.PENDING

    @pytest.mark.asyncio
    async def test_unknown_role(self, retry_policy):
        """Missing executor raises before the task changes state"""
        task = make_task("a", role=AgentRole.DATA)
        scheduler = scheduler_for(AsyncMock(), retry_policy, roles=(AgentRole.BACKEND,))

        with pytest.raises(UnknownRoleError) as exc_info:
            await scheduler.execute_task(task)

        assert exc_info.value.role == "data"
        assert exc_info.value.task_id == "a"
        assert task.status == TaskStatus.PENDING
        assert task.retry_count == 0

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(self, sleep):
        """Attempts exceeding the timeout are retried like any failure"""
        policy = RetryPolicy(RetryPolicyConfig(max_retries=1, backoff_base_ms=0, timeout_seconds=0.01), sleep=sleep)

        class Slow:
            async def execute(self, task):
                await asyncio.sleep(1)
                return OK

        task = make_task("a")
        with pytest.raises(TaskExecutionError):
            await scheduler_for(Slow(), policy).execute_task(task)

        assert task.status == TaskStatus.FAILED
        assert task.retry_count == 2

    @pytest.mark.asyncio
    async def test_ledger_error_not_retried(self, retry_policy):
        """Persistence failures abort at once"""
        executor = AsyncMock()
        executor.execute.side_effect = LedgerError("disk full")
        task = make_task("a")

        with pytest.raises(LedgerError) as exc_info:
            await scheduler_for(executor, retry_policy).execute_task(task)

        assert executor.execute.call_count == 1
        assert exc_info.value.task_id == "a"
        assert task.status == TaskStatus.FAILED

class TestDispatchOnce:
    """Single-attempt dispatch used for reviews"""

    @pytest.mark.asyncio
    async def test_failure_is_returned_not_raised(self, retry_policy):
        executor = AsyncMock()
        executor.execute.return_value = NOT_OK
        task = make_task("qa-a", role=AgentRole.QA)

        result = await scheduler_for(executor, retry_policy).dispatch_once(task)

        assert result.success is False
        assert executor.execute.call_count == 1
        assert task.status == TaskStatus.FAILED
        assert task.error == "boom"

    @pytest.mark.asyncio
    async def test_exception_becomes_failed_result(self, retry_policy):
        executor = AsyncMock()
        executor.execute.side_effect = RuntimeError("crashed")

        result = await scheduler_for(executor, retry_policy).dispatch_once(make_task("qa-a", role=AgentRole.QA))

        assert result.success is False
        assert result.error == "crashed"
