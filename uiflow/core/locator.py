"""
Multi-Strategy Locator Resolver

Resolves a declarative SelectorSpec to a single attached element handle.
A selector may carry several strategies; on every poll they are tried in
order of stability and the first one that yields a usable match wins.

Resolution outcomes are kept distinct:
- LocatorTimeout: nothing matched before the deadline
- LocatorAmbiguous: the selector kept matching several elements and
  declares no nth index to pick one
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog
from tenacity import retry_if_exception_type

from uiflow.core.errors import LocatorAmbiguous, LocatorTimeout
from uiflow.core.polling import poll_until
from uiflow.core.session import UISession

logger = structlog.get_logger()

DEFAULT_POLL_INTERVAL_MS = 100
DEFAULT_RESOLVE_TIMEOUT_MS = 5000


class LocatorStrategy(str, Enum):
    """
    Locator strategies ordered by stability.
    Higher priority strategies are tried first.
    """

    DATA_TESTID = "data-testid"  # Most stable - designed for testing
    ID = "id"  # Fast and usually unique
    ARIA_LABEL = "aria-label"  # Accessibility-friendly
    ARIA_ROLE = "role"  # Semantic role-based, "role:name"
    NAME = "name"  # Form element names
    PLACEHOLDER = "placeholder"  # Input placeholders
    CSS = "css"
    TEXT = "text"  # Human-readable but may change
    XPATH = "xpath"  # Last resort - most brittle


STRATEGY_PRIORITY: tuple[LocatorStrategy, ...] = tuple(LocatorStrategy)


@dataclass(frozen=True)
class SelectorSpec:
    """
    Declarative reference to one UI element.

    ``strategies`` is kept in priority order. ``nth`` picks one element when
    a strategy matches several; without it multiple matches are ambiguous.
    """

    name: str
    strategies: tuple[tuple[LocatorStrategy, str], ...]
    timeout_ms: int = DEFAULT_RESOLVE_TIMEOUT_MS
    nth: int | None = None

    def __post_init__(self):
        if not self.strategies:
            raise ValueError(f"Selector '{self.name}' needs at least one strategy")
        if self.timeout_ms < 0:
            raise ValueError(f"Selector '{self.name}' has a negative timeout")
        if self.nth is not None and self.nth < 0:
            raise ValueError(f"Selector '{self.name}' has a negative nth index")
        ordered = tuple(
            sorted(self.strategies, key=lambda pair: STRATEGY_PRIORITY.index(pair[0]))
        )
        object.__setattr__(self, "strategies", ordered)

    def describe(self) -> str:
        """Short form used in diagnostics, e.g. ``login_button [id=login, css=form button]``."""
        parts = ", ".join(f"{s.value}={v}" for s, v in self.strategies)
        suffix = f" nth={self.nth}" if self.nth is not None else ""
        return f"{self.name} [{parts}]{suffix}"

    def with_timeout(self, timeout_ms: int) -> "SelectorSpec":
        return SelectorSpec(self.name, self.strategies, timeout_ms, self.nth)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "strategies": {s.value: v for s, v in self.strategies},
            "timeout_ms": self.timeout_ms,
            "nth": self.nth,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SelectorSpec":
        strategies = tuple(
            (LocatorStrategy(k), v) for k, v in data.get("strategies", {}).items()
        )
        return cls(
            name=data["name"],
            strategies=strategies,
            timeout_ms=data.get("timeout_ms", DEFAULT_RESOLVE_TIMEOUT_MS),
            nth=data.get("nth"),
        )

    @classmethod
    def create(
        cls,
        name: str,
        data_testid: str | None = None,
        id: str | None = None,
        aria_label: str | None = None,
        role: str | None = None,
        element_name: str | None = None,
        placeholder: str | None = None,
        css: str | None = None,
        text: str | None = None,
        xpath: str | None = None,
        timeout_ms: int = DEFAULT_RESOLVE_TIMEOUT_MS,
        nth: int | None = None,
    ) -> "SelectorSpec":
        """
        Convenience constructor.

        Usage:
            login_button = SelectorSpec.create(
                "login_button",
                data_testid="login-submit",
                css="form.login button[type='submit']",
                text="Login",
            )
        """
        candidates = [
            (LocatorStrategy.DATA_TESTID, data_testid),
            (LocatorStrategy.ID, id),
            (LocatorStrategy.ARIA_LABEL, aria_label),
            (LocatorStrategy.ARIA_ROLE, role),
            (LocatorStrategy.NAME, element_name),
            (LocatorStrategy.PLACEHOLDER, placeholder),
            (LocatorStrategy.CSS, css),
            (LocatorStrategy.TEXT, text),
            (LocatorStrategy.XPATH, xpath),
        ]
        strategies = tuple((s, v) for s, v in candidates if v)
        return cls(name=name, strategies=strategies, timeout_ms=timeout_ms, nth=nth)


@dataclass(frozen=True)
class ResolvedElement:
    """An element handle together with how it was found."""

    selector: SelectorSpec
    handle: Any
    strategy: LocatorStrategy
    duration_ms: float = 0


class _Unresolved(Exception):
    """One poll came up empty. Internal to the retry loop."""

    def __init__(
        self,
        tried: list[LocatorStrategy],
        ambiguous: tuple[LocatorStrategy, int] | None,
    ):
        super().__init__("unresolved")
        self.tried = tried
        self.ambiguous = ambiguous


class LocatorResolver:
    """
    Polls a UISession until a selector resolves to exactly one attached element.

    Read-only: it only queries and inspects elements.
    """

    def __init__(self, session: UISession, poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS):
        self.session = session
        self.poll_interval_ms = poll_interval_ms

    async def resolve(
        self,
        selector: SelectorSpec,
        timeout_ms: int | None = None,
    ) -> ResolvedElement:
        """
        Resolve ``selector`` within ``timeout_ms`` (defaults to the selector's own).

        Raises:
            LocatorTimeout: no match before the deadline
            LocatorAmbiguous: the last poll saw several matches and no nth index
        """
        start_time = time.monotonic()
        effective_timeout = selector.timeout_ms if timeout_ms is None else timeout_ms
        log = logger.bind(element=selector.name)

        try:
            async for attempt in poll_until(
                effective_timeout,
                self.poll_interval_ms,
                retry=retry_if_exception_type(_Unresolved),
            ):
                with attempt:
                    handle, strategy = await self._poll_once(selector, log)
        except _Unresolved as miss:
            duration_ms = (time.monotonic() - start_time) * 1000
            page_url = self._page_url()

            if miss.ambiguous is not None:
                strategy, count = miss.ambiguous
                log.error(
                    "element_ambiguous",
                    strategy=strategy.value,
                    match_count=count,
                    duration_ms=round(duration_ms, 2),
                )
                raise LocatorAmbiguous(
                    f"Selector '{selector.describe()}' matched {count} elements "
                    f"via {strategy.value} and declares no nth index",
                    element_name=selector.name,
                    strategy=strategy.value,
                    match_count=count,
                    page_url=page_url,
                ) from None

            log.error(
                "element_not_found",
                strategies_tried=[s.value for s in miss.tried],
                duration_ms=round(duration_ms, 2),
            )
            raise LocatorTimeout(
                f"Cannot locate element '{selector.describe()}' within "
                f"{effective_timeout} ms after trying {len(miss.tried)} strategies",
                element_name=selector.name,
                tried_strategies=[s.value for s in miss.tried],
                timeout_ms=effective_timeout,
                page_url=page_url,
            ) from None

        duration_ms = (time.monotonic() - start_time) * 1000
        log.info(
            "element_found",
            strategy=strategy.value,
            duration_ms=round(duration_ms, 2),
        )
        return ResolvedElement(
            selector=selector,
            handle=handle,
            strategy=strategy,
            duration_ms=duration_ms,
        )

    async def _poll_once(self, selector: SelectorSpec, log) -> tuple[Any, LocatorStrategy]:
        tried: list[LocatorStrategy] = []
        ambiguous: tuple[LocatorStrategy, int] | None = None

        for strategy, value in selector.strategies:
            tried.append(strategy)
            try:
                handles = await self.session.query_elements(strategy, value)
            except Exception as e:
                log.warning("strategy_error", strategy=strategy.value, error=str(e))
                continue

            attached = [h for h in handles if await self._is_attached(h)]
            if not attached:
                continue

            if selector.nth is not None:
                if selector.nth < len(attached):
                    return attached[selector.nth], strategy
                continue

            if len(attached) == 1:
                return attached[0], strategy

            if ambiguous is None:
                ambiguous = (strategy, len(attached))

        raise _Unresolved(tried, ambiguous)

    async def _is_attached(self, handle: Any) -> bool:
        try:
            state = await self.session.read_state(handle)
        except Exception:
            return False
        return state.attached

    def _page_url(self) -> str | None:
        try:
            return self.session.url
        except Exception:
            return None
