"""
Workflow error taxonomy.

Every failure a step can produce maps to one ErrorKind. Components raise
these; the runner turns them into StepResults.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Kinds of step-local failures."""

    LOCATOR_TIMEOUT = "locator_timeout"  # element never appeared
    LOCATOR_AMBIGUOUS = "locator_ambiguous"  # several matches, no disambiguation
    ACTION_FAILED = "action_failed"  # element appeared but the action was rejected
    ASSERTION_FAILED = "assertion_failed"
    RUN_TIMEOUT = "run_timeout"


class WorkflowError(Exception):
    """Base class for all step-local failures."""

    kind: ErrorKind

    def __init__(self, message: str, page_url: str | None = None):
        super().__init__(message)
        self.message = message
        self.page_url = page_url


class LocatorTimeout(WorkflowError):
    """Raised when no element matches before the resolution deadline."""

    kind = ErrorKind.LOCATOR_TIMEOUT

    def __init__(
        self,
        message: str,
        element_name: str,
        tried_strategies: list[str],
        timeout_ms: int,
        page_url: str | None = None,
    ):
        super().__init__(message, page_url=page_url)
        self.element_name = element_name
        self.tried_strategies = tried_strategies
        self.timeout_ms = timeout_ms


class LocatorAmbiguous(WorkflowError):
    """Raised when a selector keeps matching several elements and has no nth index."""

    kind = ErrorKind.LOCATOR_AMBIGUOUS

    def __init__(
        self,
        message: str,
        element_name: str,
        strategy: str,
        match_count: int,
        page_url: str | None = None,
    ):
        super().__init__(message, page_url=page_url)
        self.element_name = element_name
        self.strategy = strategy
        self.match_count = match_count


class ActionFailed(WorkflowError):
    kind = ErrorKind.ACTION_FAILED

    def __init__(
        self,
        message: str,
        action: str,
        element_name: str | None = None,
        page_url: str | None = None,
    ):
        super().__init__(message, page_url=page_url)
        self.action = action
        self.element_name = element_name


class AssertionFailed(WorkflowError):
    kind = ErrorKind.ASSERTION_FAILED


class RunTimeout(WorkflowError):
    """The whole-run deadline elapsed. The only failure that preempts a step."""

    kind = ErrorKind.RUN_TIMEOUT
