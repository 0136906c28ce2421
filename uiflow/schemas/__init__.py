"""
Pydantic schemas for workflow definitions and reports.
"""

from uiflow.schemas.workflow import (
    FixtureRefSchema,
    RunConfigSchema,
    RunReportSchema,
    SelectorSchema,
    StepResultSchema,
    StepSchema,
    StepType,
    WorkflowDefinition,
)

__all__ = [
    "FixtureRefSchema",
    "RunConfigSchema",
    "RunReportSchema",
    "SelectorSchema",
    "StepResultSchema",
    "StepSchema",
    "StepType",
    "WorkflowDefinition",
]
