"""
Workflow Runner

This module orchestrates workflow execution:
1. Runs steps strictly in declared order against one UI session
2. Bounds every step by the per-step timeout and the whole-run deadline
3. Applies the failure policy (stop or continue)
4. Returns a RunReport; step failures never escape as exceptions

State machine: pending -> running -> completed | aborted
"""

import asyncio
import time
from datetime import datetime
from typing import Any, Callable, Iterable
from urllib.parse import urljoin, urlparse

import structlog

from uiflow.core.actions import ActionExecutor
from uiflow.core.assertions import AssertionEngine, AssertMode
from uiflow.core.errors import AssertionFailed, ErrorKind, RunTimeout, WorkflowError
from uiflow.core.fixtures import FixtureGenerator, FixtureRef, get_fixture_generator
from uiflow.core.locator import LocatorResolver
from uiflow.core.session import UISession
from uiflow.core.workflow import (
    Act,
    Assert,
    ExecutionContext,
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
    WorkflowStep,
    describe_step,
)

logger = structlog.get_logger()

# Error kind reported when a step overruns the per-step timeout.
_STEP_TIMEOUT_KIND: dict[type, ErrorKind] = {
    Navigate: ErrorKind.ACTION_FAILED,
    Locate: ErrorKind.LOCATOR_TIMEOUT,
    Act: ErrorKind.ACTION_FAILED,
    WaitFor: ErrorKind.ASSERTION_FAILED,
    Assert: ErrorKind.ASSERTION_FAILED,
}


class WorkflowRunner:
    """
    Runs workflows against one UI session.

    Usage:
        runner = WorkflowRunner(session, RunConfig(base_url="https://example.com"))
        report = await runner.run(workflow)
        assert report.verdict == RunVerdict.PASS
    """

    def __init__(
        self,
        session: UISession,
        config: RunConfig | None = None,
        fixtures: FixtureGenerator | None = None,
        on_step_complete: Callable[[StepResult], None] | None = None,
    ):
        """
        Args:
            session: UI session the workflow drives
            config: Timeouts and failure policy
            fixtures: Source for FixtureRef payloads (process-wide generator by default)
            on_step_complete: Callback for real-time step updates
        """
        self.session = session
        self.config = config or RunConfig()
        self.fixtures = fixtures or get_fixture_generator()
        self.on_step_complete = on_step_complete
        self.resolver = LocatorResolver(session, poll_interval_ms=self.config.poll_interval_ms)
        self.actions = ActionExecutor(session, self.resolver)
        self.assertions = AssertionEngine(session, poll_interval_ms=self.config.poll_interval_ms)
        self.state = RunState.PENDING

    async def run(self, workflow: Workflow) -> RunReport:
        if self.state == RunState.RUNNING:
            raise RuntimeError("Runner is already executing a workflow")

        context = ExecutionContext(
            session=self.session,
            config=self.config,
            deadline=time.monotonic() + self.config.whole_run_timeout_ms / 1000,
        )
        log = logger.bind(run_id=context.run_id, workflow=workflow.name)
        log.info(
            "workflow_started",
            step_count=len(workflow),
            failure_policy=self.config.failure_policy.value,
        )

        self.state = RunState.RUNNING
        abort_reason: str | None = None
        error_message: str | None = None
        last_index = len(workflow.steps) - 1

        for index, step in enumerate(workflow.steps):
            if abort_reason is not None:
                self._record(
                    context,
                    StepResult(
                        index=index,
                        step=step,
                        verdict=StepVerdict.SKIPPED,
                        diagnostic=f"Skipped: {abort_reason}",
                    ),
                )
                continue

            result = await self._run_step(context, index, step)
            self._record(context, result)

            if result.verdict != StepVerdict.FAIL:
                continue

            if error_message is None:
                error_message = result.diagnostic

            if result.error_kind == ErrorKind.RUN_TIMEOUT:
                abort_reason = "whole-run timeout exceeded"
                error_message = result.diagnostic
            elif (
                self.config.failure_policy == FailurePolicy.STOP_ON_FAILURE
                and index < last_index
            ):
                abort_reason = f"step {index} failed"

        self.state = RunState.ABORTED if abort_reason is not None else RunState.COMPLETED

        if self.state == RunState.ABORTED:
            verdict = RunVerdict.ABORTED
        elif any(r.verdict == StepVerdict.FAIL for r in context.results):
            verdict = RunVerdict.FAIL
        else:
            verdict = RunVerdict.PASS

        report = RunReport(
            run_id=context.run_id,
            workflow_name=workflow.name,
            verdict=verdict,
            state=self.state,
            step_results=tuple(context.results),
            started_at=context.started_at,
            completed_at=datetime.utcnow(),
            duration_ms=context.elapsed_ms(),
            error_message=error_message,
            page_url=self._page_url(),
        )

        log.info(
            "workflow_completed",
            verdict=report.verdict.value,
            state=report.state.value,
            duration_ms=round(report.duration_ms, 2),
            passed=report.passed_steps,
            failed=report.failed_steps,
            skipped=report.skipped_steps,
        )
        return report

    async def _run_step(
        self,
        context: ExecutionContext,
        index: int,
        step: WorkflowStep,
    ) -> StepResult:
        """Execute a single step within its time budget."""
        start = time.monotonic()
        log = logger.bind(run_id=context.run_id, step=index, step_type=type(step).__name__)
        metadata: dict[str, Any] = {}

        remaining_ms = context.remaining_ms()
        if remaining_ms <= 0:
            error = RunTimeout(
                f"Whole-run timeout of {self.config.whole_run_timeout_ms} ms "
                "elapsed before the step started",
                page_url=self._page_url(),
            )
            log.warning("step_failed", error_kind=error.kind.value, error=error.message)
            return self._failed(index, step, error.kind, error.message, start, metadata)

        step_limit_ms = self.config.per_step_timeout_ms
        if step_limit_ms > 0:
            run_bound = remaining_ms <= step_limit_ms
            limit_ms = min(remaining_ms, step_limit_ms)
        else:
            # Waits inside the step poll once; only the run deadline guards it.
            run_bound = True
            limit_ms = remaining_ms

        try:
            await asyncio.wait_for(
                self._dispatch(context, step, metadata),
                timeout=limit_ms / 1000,
            )

        except asyncio.TimeoutError:
            if run_bound:
                error = RunTimeout(
                    f"Whole-run timeout of {self.config.whole_run_timeout_ms} ms "
                    f"interrupted '{describe_step(step)}'",
                    page_url=self._page_url(),
                )
                kind, diagnostic = error.kind, error.message
            else:
                kind = _STEP_TIMEOUT_KIND[type(step)]
                diagnostic = (
                    f"'{describe_step(step)}' exceeded the per-step timeout "
                    f"of {step_limit_ms} ms"
                )
            log.warning("step_timeout", error_kind=kind.value)
            return self._failed(index, step, kind, diagnostic, start, metadata)

        except WorkflowError as e:
            log.warning("step_failed", error_kind=e.kind.value, error=e.message)
            return self._failed(index, step, e.kind, e.message, start, metadata)

        except Exception as e:
            log.exception("step_error", error=str(e))
            return self._failed(
                index,
                step,
                _STEP_TIMEOUT_KIND[type(step)],
                f"Unexpected error in '{describe_step(step)}': {e}",
                start,
                metadata,
            )

        duration_ms = (time.monotonic() - start) * 1000
        log.info("step_executed", verdict=StepVerdict.PASS.value, duration_ms=round(duration_ms, 2))
        return StepResult(
            index=index,
            step=step,
            verdict=StepVerdict.PASS,
            diagnostic=metadata.pop("diagnostic", "ok"),
            duration_ms=duration_ms,
            metadata=metadata,
        )

    async def _dispatch(
        self,
        context: ExecutionContext,
        step: WorkflowStep,
        metadata: dict[str, Any],
    ) -> None:
        """Dispatch step to the component that executes it."""
        step_limit_ms = self.config.per_step_timeout_ms

        match step:
            case Navigate():
                url = self._absolute_url(step.url)
                metadata["url"] = url
                await self.actions.navigate(url)

            case Locate():
                element = await self.resolver.resolve(
                    step.selector,
                    timeout_ms=min(step.selector.timeout_ms, step_limit_ms),
                )
                metadata["strategy_used"] = element.strategy.value

            case Act():
                payload = self._materialize(context, step.payload, metadata)
                metadata["forced"] = step.force
                element = await self.actions.execute(
                    step.target,
                    step.action,
                    payload,
                    force=step.force,
                    retries=step.retries,
                    timeout_ms=min(step.target.timeout_ms, step_limit_ms),
                )
                metadata["strategy_used"] = element.strategy.value

            case WaitFor():
                verdict = await self.assertions.wait_until(
                    step.expectation,
                    timeout_ms=min(step.timeout_ms, step_limit_ms),
                )
                self._settle(verdict, metadata)

            case Assert():
                if step.mode == AssertMode.IMMEDIATE:
                    verdict = await self.assertions.check(step.expectation)
                else:
                    timeout_ms = step.timeout_ms if step.timeout_ms is not None else step_limit_ms
                    verdict = await self.assertions.wait_until(
                        step.expectation,
                        timeout_ms=min(timeout_ms, step_limit_ms),
                    )
                self._settle(verdict, metadata)

            case _:
                raise TypeError(f"Unsupported step type: {type(step).__name__}")

    def _settle(self, verdict, metadata: dict[str, Any]) -> None:
        metadata["observed"] = verdict.observed
        if not verdict.passed:
            raise AssertionFailed(verdict.diagnostic, page_url=self._page_url())
        metadata["diagnostic"] = verdict.diagnostic

    def _materialize(
        self,
        context: ExecutionContext,
        payload: str | FixtureRef | None,
        metadata: dict[str, Any],
    ) -> str | None:
        """Turn a FixtureRef into a concrete value, reusing keyed values within the run."""
        if not isinstance(payload, FixtureRef):
            return payload

        if payload.key and payload.key in context.fixture_values:
            value = context.fixture_values[payload.key]
        else:
            value = self.fixtures.generate(payload.rule).value
            if payload.key:
                context.fixture_values[payload.key] = value

        metadata["fixture"] = {"rule": payload.rule, "key": payload.key, "value": value}
        return value

    def _absolute_url(self, url: str) -> str:
        if self.config.base_url and not urlparse(url).scheme:
            return urljoin(self.config.base_url, url)
        return url

    def _record(self, context: ExecutionContext, result: StepResult) -> None:
        context.record(result)
        if self.on_step_complete:
            try:
                self.on_step_complete(result)
            except Exception as e:
                logger.exception("step_callback_error", step=result.index, error=str(e))

    def _failed(
        self,
        index: int,
        step: WorkflowStep,
        kind: ErrorKind,
        diagnostic: str,
        start: float,
        metadata: dict[str, Any],
    ) -> StepResult:
        metadata.pop("diagnostic", None)
        return StepResult(
            index=index,
            step=step,
            verdict=StepVerdict.FAIL,
            diagnostic=diagnostic,
            duration_ms=(time.monotonic() - start) * 1000,
            error_kind=kind,
            metadata=metadata,
        )

    def _page_url(self) -> str | None:
        try:
            return self.session.url
        except Exception:
            return None


async def run_concurrently(runs: Iterable[tuple[WorkflowRunner, Workflow]]) -> list[RunReport]:
    """
    Run independent workflows concurrently, one runner (and session) each.

    Runners must be distinct; a runner executes one workflow at a time.
    """
    pairs = list(runs)
    runners = [runner for runner, _ in pairs]
    distinct_runners = len({id(r) for r in runners})
    distinct_sessions = len({id(r.session) for r in runners})
    if distinct_runners != len(runners) or distinct_sessions != len(runners):
        raise ValueError("Each concurrent workflow needs its own runner and session")

    reports = await asyncio.gather(*(runner.run(workflow) for runner, workflow in pairs))
    return list(reports)
