"""
Core automation components.
"""

from uiflow.core.actions import ActionExecutor
from uiflow.core.assertions import (
    AssertionEngine,
    AssertMode,
    ExpectationKind,
    ExpectationSpec,
    Verdict,
)
from uiflow.core.errors import (
    ActionFailed,
    AssertionFailed,
    ErrorKind,
    LocatorAmbiguous,
    LocatorTimeout,
    RunTimeout,
    WorkflowError,
)
from uiflow.core.fixtures import FixtureGenerator, FixtureRef, FixtureValue, validate_cpf
from uiflow.core.locator import LocatorResolver, LocatorStrategy, ResolvedElement, SelectorSpec
from uiflow.core.runner import WorkflowRunner, run_concurrently
from uiflow.core.session import ActionKind, ElementSnapshot, UISession
from uiflow.core.workflow import (
    Act,
    Assert,
    FailurePolicy,
    Locate,
    Navigate,
    RunConfig,
    RunReport,
    RunState,
    RunVerdict,
    StepResult,
    StepVerdict,
    WaitFor,
    Workflow,
)

__all__ = [
    "Act",
    "ActionExecutor",
    "ActionFailed",
    "ActionKind",
    "Assert",
    "AssertMode",
    "AssertionEngine",
    "AssertionFailed",
    "ElementSnapshot",
    "ErrorKind",
    "ExpectationKind",
    "ExpectationSpec",
    "FailurePolicy",
    "FixtureGenerator",
    "FixtureRef",
    "FixtureValue",
    "Locate",
    "LocatorAmbiguous",
    "LocatorResolver",
    "LocatorStrategy",
    "LocatorTimeout",
    "Navigate",
    "ResolvedElement",
    "RunConfig",
    "RunReport",
    "RunState",
    "RunTimeout",
    "RunVerdict",
    "SelectorSpec",
    "StepResult",
    "StepVerdict",
    "UISession",
    "Verdict",
    "WaitFor",
    "Workflow",
    "WorkflowError",
    "WorkflowRunner",
    "run_concurrently",
    "validate_cpf",
]
