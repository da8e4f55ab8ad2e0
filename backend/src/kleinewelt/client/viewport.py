"""Layout selection from the viewport width."""

from typing import Callable, Literal, Protocol

from kleinewelt.config import settings

Layout = Literal["mobile", "desktop"]


class ViewportProvider(Protocol):
    def width(self) -> int: ...


class FixedViewport:
    """Viewport with a width set by the caller."""

    def __init__(self, width: int):
        self._width = width

    def width(self) -> int:
        return self._width

    def resize(self, width: int) -> None:
        self._width = width


class LayoutSwitcher:
    """Tracks whether the mobile or the desktop layout applies."""

    def __init__(self, provider: ViewportProvider, breakpoint: int | None = None):
        self.provider = provider
        self.breakpoint = breakpoint if breakpoint is not None else settings.mobile_breakpoint
        self._listeners: list[Callable[[Layout], None]] = []
        self.layout: Layout = self._compute()

    def _compute(self) -> Layout:
        return "mobile" if self.provider.width() < self.breakpoint else "desktop"

    @property
    def is_mobile(self) -> bool:
        return self.layout == "mobile"

    def subscribe(self, listener: Callable[[Layout], None]) -> None:
        self._listeners.append(listener)

    def refresh(self) -> bool:
        """Re-read the width; notify listeners and return True if the layout changed."""
        layout = self._compute()
        if layout == self.layout:
            return False
        self.layout = layout
        for listener in self._listeners:
            listener(layout)
        return True
