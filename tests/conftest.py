"""Shared fixtures: an in-memory UISession standing in for a browser."""

import asyncio
from dataclasses import dataclass, field
from typing import Callable

import pytest

from uiflow.core.fixtures import FixtureGenerator
from uiflow.core.locator import LocatorStrategy, SelectorSpec
from uiflow.core.session import ActionKind, ElementSnapshot


@dataclass(eq=False)
class FakeElement:
    name: str
    visible: bool = True
    enabled: bool = True
    attached: bool = True
    text: str = ""
    value: str = ""
    reject: str | None = None  # perform_action raises with this message
    reject_times: int = 0  # reject only the first N actions (0 = always, if reject set)
    rejected: int = field(default=0, init=False)


class FakeSession:
    """
    Dictionary-backed page. Elements are registered per (strategy, value)
    and can appear/disappear on a timer or in response to actions.
    """

    def __init__(self):
        self.url = "about:blank"
        self._elements: dict[tuple[LocatorStrategy, str], list[FakeElement]] = {}
        self._on_action: dict[tuple[str, ActionKind], Callable[[], None]] = {}
        self.navigations: list[str] = []
        self.actions: list[tuple[str, ActionKind, str | None, bool]] = []
        self.queries = 0
        self.navigate_error: Exception | None = None

    def add(self, strategy: LocatorStrategy, value: str, *elements: FakeElement) -> None:
        self._elements.setdefault((strategy, value), []).extend(elements)

    def clear(self, strategy: LocatorStrategy, value: str) -> None:
        for element in self._elements.pop((strategy, value), []):
            element.attached = False

    def appear_after(self, delay_s: float, strategy: LocatorStrategy, value: str, element: FakeElement):
        asyncio.get_running_loop().call_later(delay_s, self.add, strategy, value, element)

    def on_action(self, element_name: str, action: ActionKind, callback: Callable[[], None]):
        self._on_action[(element_name, action)] = callback

    async def navigate(self, url: str) -> None:
        await asyncio.sleep(0)
        if self.navigate_error is not None:
            raise self.navigate_error
        self.navigations.append(url)
        self.url = url

    async def query_elements(self, strategy: LocatorStrategy, value: str) -> list[FakeElement]:
        await asyncio.sleep(0)
        self.queries += 1
        return list(self._elements.get((strategy, value), []))

    async def perform_action(
        self,
        handle: FakeElement,
        action: ActionKind,
        payload: str | None = None,
        force: bool = False,
    ) -> None:
        await asyncio.sleep(0)
        if handle.reject and (handle.reject_times == 0 or handle.rejected < handle.reject_times):
            handle.rejected += 1
            raise RuntimeError(handle.reject)
        if not handle.attached:
            raise RuntimeError("Element is not attached to the DOM")

        self.actions.append((handle.name, action, payload, force))
        if action in (ActionKind.TYPE, ActionKind.FILL):
            handle.value = payload if action == ActionKind.FILL else handle.value + payload

        callback = self._on_action.get((handle.name, action))
        if callback:
            callback()

    async def read_state(self, handle: FakeElement) -> ElementSnapshot:
        await asyncio.sleep(0)
        if not handle.attached:
            return ElementSnapshot(attached=False)
        return ElementSnapshot(
            attached=True,
            visible=handle.visible,
            enabled=handle.enabled,
            text=handle.text,
        )


# --- Login page used across runner and flow tests ----------------------------

EMAIL = SelectorSpec.create("email_field", data_testid="txtFieldEmail", timeout_ms=2000)
PASSWORD = SelectorSpec.create("password_field", data_testid="txtFieldPassword", timeout_ms=2000)
LOGIN_BUTTON = SelectorSpec.create("login_button", css=".login-box button", timeout_ms=2000)
DASHBOARD = SelectorSpec.create("dashboard", css=".app-bar-logo", timeout_ms=2000)
ERROR_BANNER = SelectorSpec.create("error_banner", id="swal2-title", timeout_ms=2000)
COOKIES = SelectorSpec.create("accept_cookies", data_testid="acceptCookies", timeout_ms=2000)


def build_login_page(session: FakeSession, dashboard_on_login: bool = True) -> dict[str, FakeElement]:
    elements = {
        "email_field": FakeElement("email_field"),
        "password_field": FakeElement("password_field"),
        "login_button": FakeElement("login_button", text="Entrar"),
        "accept_cookies": FakeElement("accept_cookies"),
    }
    session.add(LocatorStrategy.DATA_TESTID, "txtFieldEmail", elements["email_field"])
    session.add(LocatorStrategy.DATA_TESTID, "txtFieldPassword", elements["password_field"])
    session.add(LocatorStrategy.CSS, ".login-box button", elements["login_button"])
    session.add(LocatorStrategy.DATA_TESTID, "acceptCookies", elements["accept_cookies"])

    if dashboard_on_login:
        session.on_action(
            "login_button",
            ActionKind.CLICK,
            lambda: session.add(LocatorStrategy.CSS, ".app-bar-logo", FakeElement("dashboard")),
        )
    return elements


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def login_session() -> FakeSession:
    session = FakeSession()
    build_login_page(session)
    return session


@pytest.fixture
def fixtures() -> FixtureGenerator:
    return FixtureGenerator(seed=1234)
