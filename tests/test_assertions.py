"""Tests for AssertionEngine."""

import time

import pytest

from conftest import FakeElement, FakeSession
from uiflow.core.assertions import AssertionEngine, ExpectationKind, ExpectationSpec
from uiflow.core.locator import LocatorStrategy, SelectorSpec

HEADER = SelectorSpec.create("swal_header", css=".swal2-header")
LOGO = SelectorSpec.create("app_logo", css=".app-bar-logo")


@pytest.fixture
def engine(session: FakeSession) -> AssertionEngine:
    return AssertionEngine(session, poll_interval_ms=10)


def expect(kind: ExpectationKind, selector: SelectorSpec = HEADER, text: str | None = None):
    return ExpectationSpec(kind=kind, selector=selector, text=text)


class TestExpectationSpec:
    def test_contains_text_requires_text(self) -> None:
        with pytest.raises(ValueError, match="needs text"):
            ExpectationSpec(ExpectationKind.CONTAINS_TEXT, HEADER)

    def test_describe(self) -> None:
        assert expect(ExpectationKind.NOT_EXISTS).describe() == "'swal_header' not exists"
        assert (
            expect(ExpectationKind.CONTAINS_TEXT, text="Sucesso").describe()
            == "'swal_header' contains 'Sucesso'"
        )


class TestCheck:
    @pytest.mark.asyncio
    async def test_exists(self, session: FakeSession, engine: AssertionEngine) -> None:
        session.add(LocatorStrategy.CSS, ".swal2-header", FakeElement("header"))

        verdict = await engine.check(expect(ExpectationKind.EXISTS))

        assert verdict.passed
        assert verdict.observed["matches"] == 1

    @pytest.mark.asyncio
    async def test_exists_fails_with_diagnostic(self, engine: AssertionEngine) -> None:
        verdict = await engine.check(expect(ExpectationKind.EXISTS))

        assert not verdict.passed
        assert "swal_header [css=.swal2-header]" in verdict.diagnostic
        assert "no element matched" in verdict.diagnostic

    @pytest.mark.asyncio
    async def test_exists_accepts_several_matches(
        self, session: FakeSession, engine: AssertionEngine
    ) -> None:
        session.add(LocatorStrategy.CSS, ".swal2-header", FakeElement("a"), FakeElement("b"))

        verdict = await engine.check(expect(ExpectationKind.EXISTS))

        assert verdict.passed

    @pytest.mark.asyncio
    async def test_visible_fails_for_hidden_element(
        self, session: FakeSession, engine: AssertionEngine
    ) -> None:
        session.add(LocatorStrategy.CSS, ".app-bar-logo", FakeElement("logo", visible=False))

        verdict = await engine.check(expect(ExpectationKind.VISIBLE, LOGO))

        assert not verdict.passed
        assert "none visible" in verdict.diagnostic

    @pytest.mark.asyncio
    async def test_hidden(self, session: FakeSession, engine: AssertionEngine) -> None:
        session.add(LocatorStrategy.CSS, ".app-bar-logo", FakeElement("logo", visible=False))

        assert (await engine.check(expect(ExpectationKind.HIDDEN, LOGO))).passed

    @pytest.mark.asyncio
    async def test_not_exists_ignores_detached(
        self, session: FakeSession, engine: AssertionEngine
    ) -> None:
        session.add(LocatorStrategy.CSS, ".swal2-header", FakeElement("header", attached=False))

        assert (await engine.check(expect(ExpectationKind.NOT_EXISTS))).passed

    @pytest.mark.asyncio
    async def test_contains_text(self, session: FakeSession, engine: AssertionEngine) -> None:
        session.add(LocatorStrategy.CSS, ".swal2-header", FakeElement("header", text="Sucesso!"))

        verdict = await engine.check(expect(ExpectationKind.CONTAINS_TEXT, text="Sucesso"))

        assert verdict.passed

    @pytest.mark.asyncio
    async def test_contains_text_reports_actual_text(
        self, session: FakeSession, engine: AssertionEngine
    ) -> None:
        session.add(LocatorStrategy.CSS, ".swal2-header", FakeElement("header", text="Erro"))

        verdict = await engine.check(expect(ExpectationKind.CONTAINS_TEXT, text="Sucesso"))

        assert not verdict.passed
        assert "'Erro'" in verdict.diagnostic
        assert verdict.observed["texts"] == ["Erro"]

    @pytest.mark.asyncio
    async def test_check_does_not_mutate(self, session: FakeSession, engine: AssertionEngine) -> None:
        session.add(LocatorStrategy.CSS, ".swal2-header", FakeElement("header"))

        await engine.check(expect(ExpectationKind.VISIBLE))

        assert session.actions == []
        assert session.navigations == []


class TestWaitUntil:
    @pytest.mark.asyncio
    async def test_passes_once_condition_holds(
        self, session: FakeSession, engine: AssertionEngine
    ) -> None:
        session.appear_after(0.05, LocatorStrategy.CSS, ".app-bar-logo", FakeElement("logo"))

        verdict = await engine.wait_until(expect(ExpectationKind.VISIBLE, LOGO), timeout_ms=1000)

        assert verdict.passed

    @pytest.mark.asyncio
    async def test_times_out_with_wait_diagnostic(self, engine: AssertionEngine) -> None:
        start = time.monotonic()
        verdict = await engine.wait_until(expect(ExpectationKind.VISIBLE, LOGO), timeout_ms=100)
        elapsed = time.monotonic() - start

        assert not verdict.passed
        assert verdict.diagnostic.startswith("Timed out after")
        assert "limit 100 ms" in verdict.diagnostic
        assert "no element matched" in verdict.diagnostic
        assert elapsed < 0.5

    @pytest.mark.asyncio
    async def test_immediate_check_does_not_wait(
        self, session: FakeSession, engine: AssertionEngine
    ) -> None:
        session.appear_after(0.05, LocatorStrategy.CSS, ".app-bar-logo", FakeElement("logo"))

        verdict = await engine.check(expect(ExpectationKind.VISIBLE, LOGO))

        assert not verdict.passed
