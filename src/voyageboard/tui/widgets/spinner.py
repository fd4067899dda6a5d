"""animated indicator shown while ai requests are in flight."""

from __future__ import annotations

from textual.reactive import reactive
from textual.widgets import Static

from ...core.orchestrator import PendingSet

# spinner frames for animation
SPINNER_FRAMES = ["⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏"]


class PendingSpinner(Static):
    """spinner with the number of nodes awaiting a result."""

    DEFAULT_CSS = """
    PendingSpinner {
        display: none;
        height: 1;
        padding: 0 2;
        background: $surface;
        text-style: bold;
    }

    PendingSpinner.visible {
        display: block;
    }
    """

    frame_index = reactive(0)

    def __init__(self, pending: PendingSet, **kwargs) -> None:
        super().__init__(**kwargs)
        self.pending = pending
        self._timer = None

    def on_mount(self) -> None:
        self._timer = self.set_interval(0.1, self._tick)

    def render(self) -> str:
        count = len(self.pending)
        if not count:
            return ""
        frame = SPINNER_FRAMES[self.frame_index % len(SPINNER_FRAMES)]
        noun = "node" if count == 1 else "nodes"
        return f"{frame} AI working on {count} {noun}"

    def _tick(self) -> None:
        """advance the frame and follow the pending set."""
        if self.pending.snapshot():
            self.add_class("visible")
            self.frame_index += 1
        else:
            self.remove_class("visible")
