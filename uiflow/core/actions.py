"""
Action Executor

Performs typed actions against resolved elements. Unless a step opts into
``force``, the element must be attached, visible and (for input actions)
enabled before anything is sent to it.
"""

import time

import structlog
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from uiflow.core.errors import ActionFailed
from uiflow.core.locator import LocatorResolver, ResolvedElement, SelectorSpec
from uiflow.core.session import INPUT_ACTIONS, PAYLOAD_ACTIONS, ActionKind, UISession

logger = structlog.get_logger()


class ActionExecutor:
    """
    Executes element actions and navigation on a UISession.

    Usage:
        executor = ActionExecutor(session, LocatorResolver(session))
        await executor.navigate("https://example.com/login")
        element = await executor.resolver.resolve(email_field)
        await executor.perform(element, ActionKind.TYPE, "user@example.com")
    """

    def __init__(self, session: UISession, resolver: LocatorResolver):
        self.session = session
        self.resolver = resolver

    async def navigate(self, url: str) -> None:
        log = logger.bind(url=url)
        start = time.monotonic()

        try:
            await self.session.navigate(url)
        except Exception as e:
            log.error("navigation_failed", error=str(e))
            raise ActionFailed(
                f"Navigation to {url} failed: {e}",
                action="navigate",
                page_url=url,
            ) from e

        log.info("navigation_complete", duration_ms=round((time.monotonic() - start) * 1000, 2))

    async def perform(
        self,
        element: ResolvedElement,
        action: ActionKind,
        payload: str | None = None,
        force: bool = False,
    ) -> None:
        """
        Perform ``action`` on an already resolved element.

        Raises:
            ActionFailed: pre-check failed or the session rejected the action
        """
        name = element.selector.name
        log = logger.bind(action=action.value, element=name)

        if action in PAYLOAD_ACTIONS and payload is None:
            raise ActionFailed(
                f"Action '{action.value}' on '{name}' requires a payload",
                action=action.value,
                element_name=name,
            )

        if force:
            log.warning("forced_action", strategy=element.strategy.value)
        else:
            await self._precheck(element, action)

        try:
            await self.session.perform_action(element.handle, action, payload, force=force)
        except Exception as e:
            log.error("action_failed", error=str(e))
            raise ActionFailed(
                f"Action '{action.value}' on '{name}' was rejected: {e}",
                action=action.value,
                element_name=name,
                page_url=self._page_url(),
            ) from e

        log.info("action_complete")

    async def execute(
        self,
        target: SelectorSpec,
        action: ActionKind,
        payload: str | None = None,
        force: bool = False,
        retries: int = 0,
        timeout_ms: int | None = None,
    ) -> ResolvedElement:
        """
        Resolve ``target`` then perform ``action`` on it.

        Only ActionFailed is retried, up to ``retries`` extra attempts, and
        each attempt re-resolves the target. Locator failures propagate
        unchanged so "never appeared" stays distinct from "rejected".
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(retries + 1),
            wait=wait_exponential(multiplier=0.1, max=2),
            retry=retry_if_exception_type(ActionFailed),
            reraise=True,
        )

        async for attempt in retrying:
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.info(
                        "action_retry",
                        action=action.value,
                        element=target.name,
                        attempt=attempt.retry_state.attempt_number,
                    )
                element = await self.resolver.resolve(target, timeout_ms=timeout_ms)
                await self.perform(element, action, payload, force=force)

        return element

    async def _precheck(self, element: ResolvedElement, action: ActionKind) -> None:
        name = element.selector.name
        try:
            state = await self.session.read_state(element.handle)
        except Exception as e:
            raise ActionFailed(
                f"Cannot inspect '{name}' before {action.value}: {e}",
                action=action.value,
                element_name=name,
                page_url=self._page_url(),
            ) from e

        problem: str | None = None
        if not state.attached:
            problem = "detached from the page"
        elif not state.visible and action != ActionKind.SCROLL_INTO_VIEW:
            problem = "not visible"
        elif not state.enabled and action in INPUT_ACTIONS | {ActionKind.CLICK}:
            problem = "disabled"

        if problem:
            raise ActionFailed(
                f"Element '{name}' is {problem}; {action.value} not attempted "
                "(set force to bypass pre-checks)",
                action=action.value,
                element_name=name,
                page_url=self._page_url(),
            )

    def _page_url(self) -> str | None:
        try:
            return self.session.url
        except Exception:
            return None
