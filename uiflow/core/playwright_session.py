"""
Playwright UI Session

UISession implementation over playwright.async_api:
- Context management for browser lifecycle
- Strategy-based element queries returning element handles
- Element state snapshots and typed actions
- Screenshots for failure diagnostics
"""

import base64
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import structlog
from playwright.async_api import (
    Browser,
    BrowserContext,
    ElementHandle,
    Error as PlaywrightError,
    Locator,
    Page,
    Playwright,
    async_playwright,
)
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from uiflow.config import settings
from uiflow.core.locator import LocatorStrategy
from uiflow.core.session import ActionKind, ElementSnapshot

logger = structlog.get_logger()


def _log_navigation_retry(retry_state: RetryCallState) -> None:
    logger.warning(
        "navigation_retry",
        url=retry_state.args[1] if len(retry_state.args) > 1 else retry_state.kwargs.get("url"),
        attempt=retry_state.attempt_number,
        error=str(retry_state.outcome.exception()),
    )


class BrowserType(str, Enum):
    """Supported browser types."""

    CHROMIUM = "chromium"
    FIREFOX = "firefox"
    WEBKIT = "webkit"


@dataclass
class BrowserOptions:
    """Browser configuration options."""

    browser_type: BrowserType = BrowserType.CHROMIUM
    headless: bool = True
    slow_mo: int = 0
    timeout: int = 30000
    viewport_width: int = 1280
    viewport_height: int = 720
    user_agent: str | None = None
    locale: str = "pt-BR"
    timezone: str = "America/Sao_Paulo"
    test_id_attribute: str = "data-testid"
    record_video: bool = False
    video_dir: str = "./videos"

    @classmethod
    def from_settings(cls, **overrides) -> "BrowserOptions":
        values: dict[str, Any] = {
            "browser_type": BrowserType(settings.playwright_browser),
            "headless": settings.playwright_headless,
            "timeout": settings.playwright_timeout,
            "slow_mo": settings.playwright_slow_mo,
            "test_id_attribute": settings.playwright_test_id_attribute,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


class PlaywrightSession:
    """
    Playwright-backed UI session.

    Usage:
        async with PlaywrightSession(BrowserOptions(test_id_attribute="data-cy")) as session:
            report = await WorkflowRunner(session).run(workflow)
    """

    def __init__(self, options: BrowserOptions | None = None):
        self.options = options or BrowserOptions.from_settings()
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None

    @property
    def page(self) -> Page:
        """Get current page, raise if not initialized."""
        if self._page is None:
            raise RuntimeError("Browser not initialized. Use 'async with' context.")
        return self._page

    @property
    def url(self) -> str:
        return self.page.url

    async def __aenter__(self) -> "PlaywrightSession":
        await self._initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self._cleanup()

    async def _initialize(self) -> None:
        """Initialize Playwright browser and context."""
        log = logger.bind(browser=self.options.browser_type.value)
        log.info("initializing_browser", headless=self.options.headless)

        self._playwright = await async_playwright().start()
        self._playwright.selectors.set_test_id_attribute(self.options.test_id_attribute)

        browser_launcher = getattr(self._playwright, self.options.browser_type.value)
        self._browser = await browser_launcher.launch(
            headless=self.options.headless,
            slow_mo=self.options.slow_mo,
        )

        context_options: dict[str, Any] = {
            "viewport": {
                "width": self.options.viewport_width,
                "height": self.options.viewport_height,
            },
            "locale": self.options.locale,
            "timezone_id": self.options.timezone,
        }

        if self.options.user_agent:
            context_options["user_agent"] = self.options.user_agent

        if self.options.record_video:
            context_options["record_video_dir"] = self.options.video_dir

        self._context = await self._browser.new_context(**context_options)
        self._context.set_default_timeout(self.options.timeout)

        self._page = await self._context.new_page()

        log.info("browser_initialized")

    async def _cleanup(self) -> None:
        """Clean up browser resources."""
        logger.info("cleaning_up_browser")

        if self._context:
            await self._context.close()
        if self._browser:
            await self._browser.close()
        if self._playwright:
            await self._playwright.stop()

        self._page = None
        self._context = None
        self._browser = None
        self._playwright = None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, max=4),
        retry=retry_if_exception_type(PlaywrightError),
        before_sleep=_log_navigation_retry,
        reraise=True,
    )
    async def navigate(self, url: str, wait_until: str = "domcontentloaded") -> None:
        """Navigate to a URL, retrying transient transport errors."""
        await self.page.goto(url, wait_until=wait_until)

    async def query_elements(self, strategy: LocatorStrategy, value: str) -> list[ElementHandle]:
        return await self._locator(strategy, value).element_handles()

    def _locator(self, strategy: LocatorStrategy, value: str) -> Locator:
        """Build a Playwright locator for one strategy."""
        match strategy:
            case LocatorStrategy.DATA_TESTID:
                return self.page.get_by_test_id(value)

            case LocatorStrategy.ID:
                return self.page.locator(f"#{value}")

            case LocatorStrategy.ARIA_LABEL:
                return self.page.get_by_label(value)

            case LocatorStrategy.ARIA_ROLE:
                # Value format: "role:name" e.g., "button:Submit"
                if ":" in value:
                    role, name = value.split(":", 1)
                    return self.page.get_by_role(role, name=name)
                return self.page.get_by_role(value)

            case LocatorStrategy.NAME:
                return self.page.locator(f"[name='{value}']")

            case LocatorStrategy.PLACEHOLDER:
                return self.page.get_by_placeholder(value)

            case LocatorStrategy.CSS:
                return self.page.locator(value)

            case LocatorStrategy.TEXT:
                return self.page.get_by_text(value, exact=False)

            case LocatorStrategy.XPATH:
                return self.page.locator(f"xpath={value}")

        raise ValueError(f"Unsupported locator strategy: {strategy}")

    async def read_state(self, handle: ElementHandle) -> ElementSnapshot:
        try:
            attached = await handle.evaluate("el => el.isConnected")
        except PlaywrightError:
            # Disposed handles and navigated-away frames raise instead of answering.
            return ElementSnapshot(attached=False)

        if not attached:
            return ElementSnapshot(attached=False)

        return ElementSnapshot(
            attached=True,
            visible=await handle.is_visible(),
            enabled=await handle.is_enabled(),
            text=await handle.text_content(),
        )

    async def perform_action(
        self,
        handle: ElementHandle,
        action: ActionKind,
        payload: str | None = None,
        force: bool = False,
    ) -> None:
        match action:
            case ActionKind.CLICK:
                await handle.click(force=force)
            case ActionKind.TYPE:
                await handle.focus()
                await self.page.keyboard.type(payload)
            case ActionKind.FILL:
                await handle.fill(payload, force=force)
            case ActionKind.SELECT:
                await handle.select_option(value=payload, force=force)
            case ActionKind.CHECK:
                await handle.check(force=force)
            case ActionKind.UNCHECK:
                await handle.uncheck(force=force)
            case ActionKind.HOVER:
                await handle.hover(force=force)
            case ActionKind.PRESS:
                await handle.press(payload)
            case ActionKind.SCROLL_INTO_VIEW:
                await handle.scroll_into_view_if_needed()
            case _:
                raise ValueError(f"Unsupported action: {action}")

    async def screenshot(self, path: str | None = None, full_page: bool = False) -> str:
        """Take a screenshot, optionally save it, and return it base64 encoded."""
        screenshot_bytes = await self.page.screenshot(full_page=full_page)

        if path:
            Path(path).parent.mkdir(parents=True, exist_ok=True)
            with open(path, "wb") as f:
                f.write(screenshot_bytes)
            logger.info("screenshot_saved", path=path)

        return base64.b64encode(screenshot_bytes).decode("utf-8")
