"""
Login workflow builders.

The page's selectors are supplied by the caller, and credentials are
injected (see Credentials.from_settings). Nothing application-specific is
hardcoded here.
"""

from dataclasses import dataclass, field

from uiflow.core.assertions import AssertMode, ExpectationKind, ExpectationSpec
from uiflow.core.fixtures import FixtureRef
from uiflow.core.locator import SelectorSpec
from uiflow.core.session import ActionKind
from uiflow.core.workflow import Act, Assert, Locate, Navigate, WaitFor, Workflow, WorkflowStep


@dataclass(frozen=True)
class LoginPage:
    """Selectors and path of a login screen."""

    login_path: str
    email_field: SelectorSpec
    password_field: SelectorSpec
    submit_button: SelectorSpec
    landing_marker: SelectorSpec  # only visible once logged in
    error_banner: SelectorSpec | None = None
    cookie_banner: SelectorSpec | None = None  # dismissed before typing when set


@dataclass(frozen=True)
class Credentials:
    email: str
    password: str = field(repr=False)

    @classmethod
    def from_settings(cls, settings=None) -> "Credentials":
        """Read credentials from UIFLOW_LOGIN_EMAIL / UIFLOW_LOGIN_PASSWORD."""
        if settings is None:
            from uiflow.config import settings

        password = settings.login_password.get_secret_value()
        if not settings.login_email or not password:
            raise ValueError(
                "Login credentials are not configured; set UIFLOW_LOGIN_EMAIL "
                "and UIFLOW_LOGIN_PASSWORD"
            )
        return cls(email=settings.login_email, password=password)


def _opening_steps(page: LoginPage) -> list[WorkflowStep]:
    steps: list[WorkflowStep] = [Navigate(page.login_path, description="Open login page")]
    if page.cookie_banner is not None:
        steps.append(
            Act(ActionKind.CLICK, page.cookie_banner, description="Dismiss cookie banner")
        )
    return steps


def build_login_workflow(
    page: LoginPage,
    credentials: Credentials,
    landing_timeout_ms: int = 5000,
) -> Workflow:
    """Log in with valid credentials and wait for the landing page."""
    steps = _opening_steps(page) + [
        Locate(page.email_field),
        Act(ActionKind.TYPE, page.email_field, credentials.email, description="Type email"),
        Locate(page.password_field),
        Act(
            ActionKind.TYPE,
            page.password_field,
            credentials.password,
            description="Type password",
        ),
        Act(ActionKind.CLICK, page.submit_button, description="Submit login form"),
        WaitFor(
            ExpectationSpec(ExpectationKind.VISIBLE, page.landing_marker),
            timeout_ms=landing_timeout_ms,
            description="Landing page is visible",
        ),
    ]
    return Workflow(name="login", steps=tuple(steps))


def build_invalid_login_workflow(
    page: LoginPage,
    email: str,
    password: str,
    error_timeout_ms: int = 5000,
) -> Workflow:
    """Submit rejected credentials and expect the error banner."""
    if page.error_banner is None:
        raise ValueError("LoginPage.error_banner is required for the invalid login workflow")

    steps = _opening_steps(page) + [
        Act(ActionKind.TYPE, page.email_field, email, description="Type email"),
        Act(ActionKind.TYPE, page.password_field, password, description="Type password"),
        Act(ActionKind.CLICK, page.submit_button, description="Submit login form"),
        WaitFor(
            ExpectationSpec(ExpectationKind.EXISTS, page.error_banner),
            timeout_ms=error_timeout_ms,
            description="Error banner is shown",
        ),
    ]
    return Workflow(name="invalid_login", steps=tuple(steps))


def build_fake_login_workflow(page: LoginPage, password: str) -> Workflow:
    """Fill the login form with a generated email without submitting it."""
    steps = _opening_steps(page) + [
        Act(
            ActionKind.TYPE,
            page.email_field,
            FixtureRef("email", key="email"),
            description="Type generated email",
        ),
        Act(ActionKind.TYPE, page.password_field, password, description="Type password"),
        Assert(
            ExpectationSpec(ExpectationKind.VISIBLE, page.submit_button),
            mode=AssertMode.IMMEDIATE,
            description="Form is ready to submit",
        ),
    ]
    return Workflow(name="fake_login", steps=tuple(steps))
