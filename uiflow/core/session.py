"""
UI session boundary.

The automation core never talks to a browser directly. It drives anything
that implements UISession; PlaywrightSession is the default implementation.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from uiflow.core.locator import LocatorStrategy


class ActionKind(str, Enum):
    """Supported element actions."""

    CLICK = "click"
    TYPE = "type"
    FILL = "fill"
    SELECT = "select"
    CHECK = "check"
    UNCHECK = "uncheck"
    HOVER = "hover"
    PRESS = "press"
    SCROLL_INTO_VIEW = "scroll_into_view"


# Actions that feed a value into the element and need it enabled.
INPUT_ACTIONS = frozenset(
    {ActionKind.TYPE, ActionKind.FILL, ActionKind.SELECT, ActionKind.CHECK, ActionKind.UNCHECK}
)

# Actions that need a payload.
PAYLOAD_ACTIONS = frozenset(
    {ActionKind.TYPE, ActionKind.FILL, ActionKind.SELECT, ActionKind.PRESS}
)


@dataclass(frozen=True)
class ElementSnapshot:
    """Read-only view of an element's state at one instant."""

    attached: bool
    visible: bool = False
    enabled: bool = False
    text: str | None = None


@runtime_checkable
class UISession(Protocol):
    """Capability the core needs from a browser-driving transport."""

    @property
    def url(self) -> str: ...

    async def navigate(self, url: str) -> None: ...

    async def query_elements(self, strategy: "LocatorStrategy", value: str) -> list[Any]: ...

    async def perform_action(
        self,
        handle: Any,
        action: ActionKind,
        payload: str | None = None,
        force: bool = False,
    ) -> None: ...

    async def read_state(self, handle: Any) -> ElementSnapshot: ...
