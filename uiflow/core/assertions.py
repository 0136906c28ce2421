"""
Assertion Engine

Evaluates declarative expectations against the current UI state. Two
variants exist and a workflow has to pick one per assertion:
check() looks once, wait_until() polls until the expectation holds or the
timeout elapses. Neither mutates the page.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog
from tenacity import retry_if_exception_type

from uiflow.core.locator import DEFAULT_POLL_INTERVAL_MS, SelectorSpec
from uiflow.core.polling import poll_until
from uiflow.core.session import ElementSnapshot, UISession

logger = structlog.get_logger()


class ExpectationKind(str, Enum):
    EXISTS = "exists"
    NOT_EXISTS = "not_exists"
    VISIBLE = "visible"
    HIDDEN = "hidden"
    CONTAINS_TEXT = "contains_text"


class AssertMode(str, Enum):
    """How an Assert step evaluates its expectation."""

    IMMEDIATE = "immediate"
    WAIT = "wait"


@dataclass(frozen=True)
class ExpectationSpec:
    kind: ExpectationKind
    selector: SelectorSpec
    text: str | None = None

    def __post_init__(self):
        if self.kind == ExpectationKind.CONTAINS_TEXT and not self.text:
            raise ValueError(
                f"contains_text expectation on '{self.selector.name}' needs text"
            )

    def describe(self) -> str:
        if self.kind == ExpectationKind.CONTAINS_TEXT:
            return f"'{self.selector.name}' contains '{self.text}'"
        return f"'{self.selector.name}' {self.kind.value.replace('_', ' ')}"

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "selector": self.selector.to_dict(),
            "text": self.text,
        }


@dataclass(frozen=True)
class Verdict:
    """Outcome of evaluating one expectation."""

    passed: bool
    diagnostic: str
    observed: dict[str, Any] = field(default_factory=dict)


class _Unsatisfied(Exception):
    def __init__(self, verdict: Verdict):
        super().__init__(verdict.diagnostic)
        self.verdict = verdict


class AssertionEngine:
    """
    Usage:
        engine = AssertionEngine(session)
        verdict = await engine.check(ExpectationSpec(ExpectationKind.EXISTS, banner))
        verdict = await engine.wait_until(dashboard_visible, timeout_ms=5000)
    """

    def __init__(self, session: UISession, poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS):
        self.session = session
        self.poll_interval_ms = poll_interval_ms

    async def check(self, expectation: ExpectationSpec) -> Verdict:
        """Evaluate the expectation once against the current page."""
        snapshots = await self._snapshot(expectation.selector)
        verdict = self._evaluate(expectation, snapshots)

        logger.debug(
            "expectation_checked",
            expectation=expectation.describe(),
            passed=verdict.passed,
        )
        return verdict

    async def wait_until(self, expectation: ExpectationSpec, timeout_ms: int) -> Verdict:
        """Poll until the expectation holds or ``timeout_ms`` elapses."""
        start = time.monotonic()

        try:
            async for attempt in poll_until(
                timeout_ms,
                self.poll_interval_ms,
                retry=retry_if_exception_type(_Unsatisfied),
            ):
                with attempt:
                    verdict = await self.check(expectation)
                    if not verdict.passed:
                        raise _Unsatisfied(verdict)
        except _Unsatisfied as last:
            waited_ms = round((time.monotonic() - start) * 1000)
            logger.info(
                "expectation_wait_timeout",
                expectation=expectation.describe(),
                timeout_ms=timeout_ms,
            )
            return Verdict(
                passed=False,
                diagnostic=(
                    f"Timed out after {waited_ms} ms (limit {timeout_ms} ms) waiting for "
                    f"{expectation.describe()}: {last.verdict.diagnostic}"
                ),
                observed={**last.verdict.observed, "waited_ms": waited_ms},
            )

        return verdict

    async def _snapshot(self, selector: SelectorSpec) -> list[ElementSnapshot]:
        """
        Read the state of every element the selector matches.

        Uses the first strategy that matches anything, mirroring resolution
        order. An nth index narrows the snapshot to that element.
        """
        for strategy, value in selector.strategies:
            try:
                handles = await self.session.query_elements(strategy, value)
                states = [await self.session.read_state(h) for h in handles]
            except Exception as e:
                logger.warning(
                    "snapshot_error",
                    element=selector.name,
                    strategy=strategy.value,
                    error=str(e),
                )
                continue

            attached = [s for s in states if s.attached]
            if not attached:
                continue
            if selector.nth is not None:
                return attached[selector.nth : selector.nth + 1]
            return attached

        return []

    def _evaluate(self, expectation: ExpectationSpec, snapshots: list[ElementSnapshot]) -> Verdict:
        target = expectation.selector.describe()
        count = len(snapshots)
        visible = sum(1 for s in snapshots if s.visible)
        observed: dict[str, Any] = {"matches": count, "visible": visible}

        match expectation.kind:
            case ExpectationKind.EXISTS:
                passed = count > 0
                reason = "no element matched" if not passed else f"{count} match(es)"

            case ExpectationKind.NOT_EXISTS:
                passed = count == 0
                reason = f"{count} element(s) still present" if not passed else "absent"

            case ExpectationKind.VISIBLE:
                passed = visible > 0
                if count == 0:
                    reason = "no element matched"
                elif not passed:
                    reason = f"{count} match(es), none visible"
                else:
                    reason = f"{visible} visible"

            case ExpectationKind.HIDDEN:
                passed = visible == 0
                reason = f"{visible} element(s) visible" if not passed else "hidden"

            case ExpectationKind.CONTAINS_TEXT:
                texts = [s.text or "" for s in snapshots]
                observed["texts"] = texts
                passed = any(expectation.text in t for t in texts)
                if count == 0:
                    reason = "no element matched"
                elif not passed:
                    reason = f"actual text {texts!r}"
                else:
                    reason = "text found"

            case _:
                passed, reason = False, f"unsupported expectation {expectation.kind}"

        if passed:
            return Verdict(True, f"{expectation.describe()}: {reason}", observed)
        return Verdict(
            False,
            f"Expected {expectation.describe()} on {target}: {reason}",
            observed,
        )
