# domain/exceptions.py
from typing import Optional


class OrchestrationError(Exception):
    """Base class for every fatal orchestration failure"""

    def __init__(self, message: str, task_id: Optional[str] = None):
        super().__init__(message)
        self.task_id = task_id


class BuildRequestError(OrchestrationError):
    """The build request could not be read or validated"""


class PlanValidationError(OrchestrationError):
    """A plan references a task id that does not exist in the plan"""

    def __init__(self, message: str, task_id: Optional[str] = None,
                 dependency_id: Optional[str] = None):
        super().__init__(message, task_id=task_id)
        self.dependency_id = dependency_id


class CircularDependencyError(PlanValidationError):
    def __init__(self, task_id: str):
        super().__init__(f"Circular dependency detected at task {task_id}", task_id=task_id)


class UnknownRoleError(OrchestrationError):
    def __init__(self, role: str, task_id: Optional[str] = None):
        super().__init__(f"No executor registered for role '{role}'", task_id=task_id)
        self.role = role


class RetryExhaustedError(Exception):
    """Raised by a retry policy once every allowed attempt has failed"""

    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class TaskExecutionError(OrchestrationError):
    def __init__(self, task_id: str, message: str, attempts: int = 1):
        super().__init__(f"Task {task_id} failed after {attempts} attempts: {message}",
                         task_id=task_id)
        self.attempts = attempts
        self.reason = message


class SecurityGateError(OrchestrationError):
    """The security review failed; deployment is blocked"""


class LedgerError(OrchestrationError):
    """Artifact ledger persistence failed"""
