"""
Workflow data model.

A Workflow is an ordered, immutable tuple of steps. Running it yields a
RunReport holding one StepResult per step in declared order.
"""

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Union

from uiflow.core.assertions import AssertMode, ExpectationSpec
from uiflow.core.errors import ErrorKind
from uiflow.core.fixtures import FixtureRef
from uiflow.core.locator import SelectorSpec
from uiflow.core.session import ActionKind, UISession


# --- Steps -------------------------------------------------------------------


@dataclass(frozen=True)
class Navigate:
    url: str
    description: str = ""


@dataclass(frozen=True)
class Locate:
    """Wait until the selector resolves to one attached element."""

    selector: SelectorSpec
    description: str = ""


@dataclass(frozen=True)
class Act:
    """
    Perform an action on ``target``.

    ``force`` skips the visibility/enabled pre-checks and is logged every
    time it is used. ``retries`` re-attempts rejected actions only.
    """

    action: ActionKind
    target: SelectorSpec
    payload: str | FixtureRef | None = None
    force: bool = False
    retries: int = 0
    description: str = ""

    def __post_init__(self):
        if self.retries < 0:
            raise ValueError("retries must be >= 0")


@dataclass(frozen=True)
class WaitFor:
    """Poll until the expectation holds or ``timeout_ms`` elapses."""

    expectation: ExpectationSpec
    timeout_ms: int
    description: str = ""


@dataclass(frozen=True)
class Assert:
    """
    Evaluate an expectation. ``mode`` is required: IMMEDIATE checks once,
    WAIT polls for up to ``timeout_ms`` (or the per-step timeout).
    """

    expectation: ExpectationSpec
    mode: AssertMode
    timeout_ms: int | None = None
    description: str = ""


WorkflowStep = Union[Navigate, Locate, Act, WaitFor, Assert]

STEP_TYPES = (Navigate, Locate, Act, WaitFor, Assert)

_STEP_KINDS = {
    Navigate: "navigate",
    Locate: "locate",
    Act: "act",
    WaitFor: "wait_for",
    Assert: "assert",
}


def step_kind(step: WorkflowStep) -> str:
    return _STEP_KINDS[type(step)]


def describe_step(step: WorkflowStep) -> str:
    """Human-readable one-liner, used when a step has no description."""
    if step.description:
        return step.description

    match step:
        case Navigate(url=url):
            return f"Navigate to {url}"
        case Locate(selector=selector):
            return f"Locate {selector.name}"
        case Act(action=action, target=target):
            return f"{action.value.capitalize()} {target.name}"
        case WaitFor(expectation=expectation, timeout_ms=timeout_ms):
            return f"Wait up to {timeout_ms} ms for {expectation.describe()}"
        case Assert(expectation=expectation, mode=mode):
            return f"Assert ({mode.value}) {expectation.describe()}"
    return repr(step)


@dataclass(frozen=True)
class Workflow:
    name: str
    steps: tuple[WorkflowStep, ...]
    description: str = ""

    def __post_init__(self):
        steps = tuple(self.steps)
        for step in steps:
            if not isinstance(step, STEP_TYPES):
                raise TypeError(f"Not a workflow step: {step!r}")
        object.__setattr__(self, "steps", steps)

    def __len__(self) -> int:
        return len(self.steps)


# --- Run configuration -------------------------------------------------------


class FailurePolicy(str, Enum):
    STOP_ON_FAILURE = "stop_on_failure"
    CONTINUE_ON_FAILURE = "continue_on_failure"


@dataclass(frozen=True)
class RunConfig:
    per_step_timeout_ms: int = 30000
    whole_run_timeout_ms: int = 300000
    failure_policy: FailurePolicy = FailurePolicy.STOP_ON_FAILURE
    poll_interval_ms: int = 100
    base_url: str | None = None

    def __post_init__(self):
        if self.per_step_timeout_ms < 0 or self.whole_run_timeout_ms < 0:
            raise ValueError("timeouts must be >= 0")
        if self.poll_interval_ms <= 0:
            raise ValueError("poll_interval_ms must be > 0")

    @classmethod
    def from_settings(cls, settings=None, **overrides) -> "RunConfig":
        """Build a RunConfig from application settings, with explicit overrides."""
        if settings is None:
            from uiflow.config import settings

        values: dict[str, Any] = {
            "per_step_timeout_ms": settings.step_timeout_ms,
            "whole_run_timeout_ms": settings.run_timeout_ms,
            "failure_policy": FailurePolicy(settings.failure_policy),
            "poll_interval_ms": settings.poll_interval_ms,
            "base_url": settings.base_url or None,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


# --- Results -----------------------------------------------------------------


class StepVerdict(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    SKIPPED = "skipped"


class RunVerdict(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    ABORTED = "aborted"


class RunState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class StepResult:
    """Result of a single step. Never mutated once recorded."""

    index: int
    step: WorkflowStep
    verdict: StepVerdict
    diagnostic: str = ""
    duration_ms: float = 0
    error_kind: ErrorKind | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def description(self) -> str:
        return describe_step(self.step)

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "step_type": step_kind(self.step),
            "description": self.description,
            "verdict": self.verdict.value,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "diagnostic": self.diagnostic,
            "duration_ms": self.duration_ms,
            "metadata": self.metadata,
        }


@dataclass(frozen=True)
class RunReport:
    """Result of one workflow run."""

    run_id: str
    workflow_name: str
    verdict: RunVerdict
    state: RunState
    step_results: tuple[StepResult, ...]
    started_at: datetime
    completed_at: datetime
    duration_ms: float
    error_message: str | None = None
    page_url: str | None = None

    @property
    def passed_steps(self) -> int:
        return sum(1 for r in self.step_results if r.verdict == StepVerdict.PASS)

    @property
    def failed_steps(self) -> int:
        return sum(1 for r in self.step_results if r.verdict == StepVerdict.FAIL)

    @property
    def skipped_steps(self) -> int:
        return sum(1 for r in self.step_results if r.verdict == StepVerdict.SKIPPED)

    @property
    def total_steps(self) -> int:
        return len(self.step_results)

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "workflow_name": self.workflow_name,
            "verdict": self.verdict.value,
            "state": self.state.value,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
            "duration_ms": self.duration_ms,
            "passed_steps": self.passed_steps,
            "failed_steps": self.failed_steps,
            "skipped_steps": self.skipped_steps,
            "total_steps": self.total_steps,
            "step_results": [r.to_dict() for r in self.step_results],
            "error_message": self.error_message,
            "page_url": self.page_url,
        }


# --- Per-run state -----------------------------------------------------------


@dataclass
class ExecutionContext:
    """
    Mutable state of one run. Owned by the runner and discarded when the
    run ends; never shared between runs.
    """

    session: UISession
    config: RunConfig
    deadline: float  # time.monotonic() value
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    started_at: datetime = field(default_factory=datetime.utcnow)
    started: float = field(default_factory=time.monotonic)
    results: list[StepResult] = field(default_factory=list)
    fixture_values: dict[str, str] = field(default_factory=dict)

    def remaining_ms(self) -> float:
        return max(0.0, (self.deadline - time.monotonic()) * 1000)

    def elapsed_ms(self) -> float:
        return (time.monotonic() - self.started) * 1000

    def record(self, result: StepResult) -> None:
        if result.index != len(self.results):
            raise RuntimeError(
                f"Step {result.index} recorded out of order (expected {len(self.results)})"
            )
        self.results.append(result)
