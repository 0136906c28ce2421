"""
Pydantic schemas for workflow definitions and run reports.

Definitions arrive as JSON (files, fixtures, CI jobs) and are converted to
the immutable core model with ``to_workflow()``.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator

from uiflow.core.assertions import AssertMode, ExpectationKind, ExpectationSpec
from uiflow.core.fixtures import FixtureRef
from uiflow.core.locator import DEFAULT_RESOLVE_TIMEOUT_MS, SelectorSpec
from uiflow.core.session import ActionKind
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
    StepVerdict,
    WaitFor,
    Workflow,
    WorkflowStep,
)


class StepType(str, Enum):
    """Types of workflow steps."""

    NAVIGATE = "navigate"
    LOCATE = "locate"
    ACT = "act"
    WAIT_FOR = "wait_for"
    ASSERT = "assert"


class SelectorSchema(BaseModel):
    """Element selector with multiple strategies."""

    name: str = Field(..., description="Human-readable element name")
    data_testid: str | None = Field(None, description="Test id attribute value")
    id: str | None = Field(None, description="Element ID")
    aria_label: str | None = Field(None, description="ARIA label")
    role: str | None = Field(None, description="ARIA role (format: role:name)")
    element_name: str | None = Field(None, description="Form element name attribute")
    placeholder: str | None = Field(None, description="Placeholder text")
    css: str | None = Field(None, description="CSS selector")
    text: str | None = Field(None, description="Text content")
    xpath: str | None = Field(None, description="XPath selector")
    timeout_ms: int = Field(DEFAULT_RESOLVE_TIMEOUT_MS, ge=0, description="Resolution timeout")
    nth: int | None = Field(None, ge=0, description="Pick the nth match when several exist")

    model_config = {"json_schema_extra": {"example": {
        "name": "login_button",
        "data_testid": "login-submit",
        "css": "form.login button[type='submit']",
        "text": "Login",
    }}}

    @model_validator(mode="after")
    def _require_strategy(self) -> "SelectorSchema":
        if not any(
            (self.data_testid, self.id, self.aria_label, self.role, self.element_name,
             self.placeholder, self.css, self.text, self.xpath)
        ):
            raise ValueError(f"Selector '{self.name}' needs at least one strategy")
        return self

    def to_selector(self) -> SelectorSpec:
        return SelectorSpec.create(
            name=self.name,
            data_testid=self.data_testid,
            id=self.id,
            aria_label=self.aria_label,
            role=self.role,
            element_name=self.element_name,
            placeholder=self.placeholder,
            css=self.css,
            text=self.text,
            xpath=self.xpath,
            timeout_ms=self.timeout_ms,
            nth=self.nth,
        )


class FixtureRefSchema(BaseModel):
    rule: str = Field(..., description="Fixture rule, e.g. cpf, full_name, email")
    key: str | None = Field(None, description="Reuse the same value for this key within a run")


class StepSchema(BaseModel):
    """A single workflow step. Required fields depend on ``type``."""

    type: StepType = Field(..., description="Step type")
    description: str = Field(default="", description="Human-readable step description")
    url: str | None = Field(None, description="Target URL for navigate")
    element: SelectorSchema | None = Field(None, description="Target element")
    action: ActionKind | None = Field(None, description="Action for act steps")
    value: str | None = Field(None, description="Literal payload for act steps")
    fixture: FixtureRefSchema | None = Field(None, description="Generated payload for act steps")
    force: bool = Field(default=False, description="Bypass visibility/enabled pre-checks")
    retries: int = Field(default=0, ge=0, description="Retries for rejected actions")
    expect: ExpectationKind | None = Field(None, description="Expectation kind")
    text: str | None = Field(None, description="Text for contains_text expectations")
    mode: AssertMode | None = Field(None, description="Assert mode (immediate or wait)")
    timeout_ms: int | None = Field(None, ge=0, description="Wait budget in ms")

    @model_validator(mode="after")
    def _check_fields(self) -> "StepSchema":
        missing: list[str] = []

        match self.type:
            case StepType.NAVIGATE:
                if not self.url:
                    missing.append("url")
            case StepType.LOCATE:
                if self.element is None:
                    missing.append("element")
            case StepType.ACT:
                if self.element is None:
                    missing.append("element")
                if self.action is None:
                    missing.append("action")
                if self.value is not None and self.fixture is not None:
                    raise ValueError("act step takes either value or fixture, not both")
            case StepType.WAIT_FOR:
                if self.element is None:
                    missing.append("element")
                if self.expect is None:
                    missing.append("expect")
                if self.timeout_ms is None:
                    missing.append("timeout_ms")
            case StepType.ASSERT:
                if self.element is None:
                    missing.append("element")
                if self.expect is None:
                    missing.append("expect")
                if self.mode is None:
                    missing.append("mode")

        if self.expect == ExpectationKind.CONTAINS_TEXT and not self.text:
            missing.append("text")

        if missing:
            raise ValueError(f"{self.type.value} step is missing: {', '.join(missing)}")
        return self

    def to_step(self) -> WorkflowStep:
        match self.type:
            case StepType.NAVIGATE:
                return Navigate(url=self.url, description=self.description)

            case StepType.LOCATE:
                return Locate(selector=self.element.to_selector(), description=self.description)

            case StepType.ACT:
                payload: str | FixtureRef | None = self.value
                if self.fixture is not None:
                    payload = FixtureRef(rule=self.fixture.rule, key=self.fixture.key)
                return Act(
                    action=self.action,
                    target=self.element.to_selector(),
                    payload=payload,
                    force=self.force,
                    retries=self.retries,
                    description=self.description,
                )

            case StepType.WAIT_FOR:
                return WaitFor(
                    expectation=self._expectation(),
                    timeout_ms=self.timeout_ms,
                    description=self.description,
                )

            case StepType.ASSERT:
                return Assert(
                    expectation=self._expectation(),
                    mode=self.mode,
                    timeout_ms=self.timeout_ms,
                    description=self.description,
                )

        raise ValueError(f"Unsupported step type: {self.type}")

    def _expectation(self) -> ExpectationSpec:
        return ExpectationSpec(
            kind=self.expect,
            selector=self.element.to_selector(),
            text=self.text,
        )


class RunConfigSchema(BaseModel):
    """Run options. Unset fields fall back to application settings."""

    per_step_timeout_ms: int | None = Field(None, ge=0)
    whole_run_timeout_ms: int | None = Field(None, ge=0)
    failure_policy: FailurePolicy | None = None
    poll_interval_ms: int | None = Field(None, gt=0)
    base_url: str | None = None

    def to_run_config(self, settings=None) -> RunConfig:
        return RunConfig.from_settings(settings, **self.model_dump())


class WorkflowDefinition(BaseModel):
    """A complete workflow definition."""

    name: str = Field(..., min_length=1, max_length=200, description="Workflow name")
    description: str = Field(default="", description="Workflow description")
    tags: list[str] = Field(default_factory=list, description="Tags for filtering")
    steps: list[StepSchema] = Field(..., min_length=1, description="Ordered steps")
    config: RunConfigSchema = Field(default_factory=RunConfigSchema)

    model_config = {"json_schema_extra": {"example": {
        "name": "Login",
        "description": "Valid credentials reach the dashboard",
        "tags": ["login", "smoke"],
        "steps": [
            {"type": "navigate", "url": "/login"},
            {"type": "act", "action": "type", "value": "user@example.com",
             "element": {"name": "email_field", "data_testid": "txtFieldEmail"}},
            {"type": "act", "action": "type", "value": "secret",
             "element": {"name": "password_field", "data_testid": "txtFieldPassword"}},
            {"type": "act", "action": "click",
             "element": {"name": "login_button", "role": "button:Entrar"}},
            {"type": "wait_for", "expect": "visible", "timeout_ms": 5000,
             "element": {"name": "dashboard", "css": ".dashboard"}},
        ],
    }}}

    def to_workflow(self) -> Workflow:
        return Workflow(
            name=self.name,
            steps=tuple(s.to_step() for s in self.steps),
            description=self.description,
        )


class StepResultSchema(BaseModel):
    """Result of a single step execution."""

    index: int
    step_type: str
    description: str
    verdict: StepVerdict
    error_kind: str | None = None
    diagnostic: str = ""
    duration_ms: float
    metadata: dict[str, Any] = Field(default_factory=dict)


class RunReportSchema(BaseModel):
    """Serializable run report."""

    run_id: str
    workflow_name: str
    verdict: RunVerdict
    state: RunState
    started_at: datetime
    completed_at: datetime
    duration_ms: float
    passed_steps: int
    failed_steps: int
    skipped_steps: int
    total_steps: int
    step_results: list[StepResultSchema]
    error_message: str | None = None
    page_url: str | None = None

    @classmethod
    def from_report(cls, report: RunReport) -> "RunReportSchema":
        return cls(
            run_id=report.run_id,
            workflow_name=report.workflow_name,
            verdict=report.verdict,
            state=report.state,
            started_at=report.started_at,
            completed_at=report.completed_at,
            duration_ms=report.duration_ms,
            passed_steps=report.passed_steps,
            failed_steps=report.failed_steps,
            skipped_steps=report.skipped_steps,
            total_steps=report.total_steps,
            step_results=[StepResultSchema(**r.to_dict()) for r in report.step_results],
            error_message=report.error_message,
            page_url=report.page_url,
        )
