"""Tests for SelectorSpec and LocatorResolver."""

import asyncio
import time

import pytest

from conftest import FakeElement, FakeSession
from uiflow.core.errors import ErrorKind, LocatorAmbiguous, LocatorTimeout
from uiflow.core.locator import LocatorResolver, LocatorStrategy, SelectorSpec


class TestSelectorSpec:
    def test_create_orders_strategies_by_stability(self) -> None:
        spec = SelectorSpec.create("login_button", text="Login", css="form button", data_testid="login")
        assert [s for s, _ in spec.strategies] == [
            LocatorStrategy.DATA_TESTID,
            LocatorStrategy.CSS,
            LocatorStrategy.TEXT,
        ]

    def test_requires_a_strategy(self) -> None:
        with pytest.raises(ValueError, match="at least one strategy"):
            SelectorSpec.create("nothing")

    def test_rejects_negative_timeout(self) -> None:
        with pytest.raises(ValueError):
            SelectorSpec.create("field", id="f", timeout_ms=-1)

    def test_is_immutable(self) -> None:
        spec = SelectorSpec.create("field", id="f")
        with pytest.raises(AttributeError):
            spec.name = "other"  # type: ignore[misc]

    def test_dict_round_trip_keeps_fields(self) -> None:
        spec = SelectorSpec.create("row", css="tbody tr", nth=2, timeout_ms=1500)
        assert SelectorSpec.from_dict(spec.to_dict()) == spec

    def test_describe_names_strategies(self) -> None:
        spec = SelectorSpec.create("row", css="tbody tr", nth=1)
        assert spec.describe() == "row [css=tbody tr] nth=1"


class TestLocatorResolver:
    @pytest.mark.asyncio
    async def test_resolves_present_element(self, session: FakeSession) -> None:
        element = FakeElement("email")
        session.add(LocatorStrategy.ID, "email", element)
        resolver = LocatorResolver(session, poll_interval_ms=10)

        resolved = await resolver.resolve(SelectorSpec.create("email", id="email"))

        assert resolved.handle is element
        assert resolved.strategy == LocatorStrategy.ID

    @pytest.mark.asyncio
    async def test_falls_back_to_next_strategy(self, session: FakeSession) -> None:
        element = FakeElement("submit")
        session.add(LocatorStrategy.CSS, "form button", element)
        resolver = LocatorResolver(session, poll_interval_ms=10)

        spec = SelectorSpec.create("submit", data_testid="missing", css="form button")
        resolved = await resolver.resolve(spec, timeout_ms=0)

        assert resolved.strategy == LocatorStrategy.CSS

    @pytest.mark.asyncio
    async def test_waits_for_late_element(self, session: FakeSession) -> None:
        element = FakeElement("banner")
        session.appear_after(0.05, LocatorStrategy.CSS, ".banner", element)
        resolver = LocatorResolver(session, poll_interval_ms=10)

        resolved = await resolver.resolve(SelectorSpec.create("banner", css=".banner"), timeout_ms=1000)

        assert resolved.handle is element

    @pytest.mark.asyncio
    async def test_timeout_when_never_present(self, session: FakeSession) -> None:
        resolver = LocatorResolver(session, poll_interval_ms=10)
        spec = SelectorSpec.create("ghost", id="ghost", css=".ghost")

        start = time.monotonic()
        with pytest.raises(LocatorTimeout) as exc_info:
            await resolver.resolve(spec, timeout_ms=100)
        elapsed = time.monotonic() - start

        assert exc_info.value.kind == ErrorKind.LOCATOR_TIMEOUT
        assert exc_info.value.tried_strategies == ["id", "css"]
        assert exc_info.value.element_name == "ghost"
        assert 0.09 <= elapsed < 0.5

    @pytest.mark.asyncio
    async def test_zero_timeout_checks_exactly_once(self, session: FakeSession) -> None:
        resolver = LocatorResolver(session, poll_interval_ms=10)

        with pytest.raises(LocatorTimeout):
            await resolver.resolve(SelectorSpec.create("ghost", id="ghost"), timeout_ms=0)

        assert session.queries == 1

    @pytest.mark.asyncio
    async def test_detached_elements_do_not_match(self, session: FakeSession) -> None:
        session.add(LocatorStrategy.ID, "old", FakeElement("old", attached=False))
        resolver = LocatorResolver(session, poll_interval_ms=10)

        with pytest.raises(LocatorTimeout):
            await resolver.resolve(SelectorSpec.create("old", id="old"), timeout_ms=30)

    @pytest.mark.asyncio
    async def test_multiple_matches_are_ambiguous(self, session: FakeSession) -> None:
        session.add(LocatorStrategy.CSS, "tbody tr", FakeElement("a"), FakeElement("b"))
        resolver = LocatorResolver(session, poll_interval_ms=10)

        with pytest.raises(LocatorAmbiguous) as exc_info:
            await resolver.resolve(SelectorSpec.create("row", css="tbody tr"), timeout_ms=30)

        assert exc_info.value.match_count == 2
        assert exc_info.value.kind == ErrorKind.LOCATOR_AMBIGUOUS

    @pytest.mark.asyncio
    async def test_nth_disambiguates(self, session: FakeSession) -> None:
        first, second = FakeElement("a"), FakeElement("b")
        session.add(LocatorStrategy.CSS, "tbody tr", first, second)
        resolver = LocatorResolver(session, poll_interval_ms=10)

        resolved = await resolver.resolve(SelectorSpec.create("row", css="tbody tr", nth=1))

        assert resolved.handle is second

    @pytest.mark.asyncio
    async def test_query_errors_count_as_not_found(self) -> None:
        class BrokenSession(FakeSession):
            async def query_elements(self, strategy, value):
                raise RuntimeError("frame was detached")

        resolver = LocatorResolver(BrokenSession(), poll_interval_ms=10)

        with pytest.raises(LocatorTimeout):
            await resolver.resolve(SelectorSpec.create("field", id="f"), timeout_ms=20)

    @pytest.mark.asyncio
    async def test_resolution_wait_is_cancellable(self, session: FakeSession) -> None:
        resolver = LocatorResolver(session, poll_interval_ms=50)
        task = asyncio.create_task(
            resolver.resolve(SelectorSpec.create("ghost", id="ghost"), timeout_ms=10000)
        )
        await asyncio.sleep(0.05)

        start = time.monotonic()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert time.monotonic() - start < 0.5
