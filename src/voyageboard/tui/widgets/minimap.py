"""minimap widget: whole-board overview with the visible viewport marked."""

from __future__ import annotations

from rich.text import Text
from textual.widgets import Static

from ...core.state import AppState
from ...core.transform import Point, minimap_point, minimap_viewport

PREVIEW_SIZE = 128  # minimap coordinate extent (square)
COLS = 24
ROWS = 8


def _cell(x: float, y: float) -> tuple[int, int]:
    return int(y / PREVIEW_SIZE * ROWS), int(x / PREVIEW_SIZE * COLS)


class Minimap(Static):
    """tiny overview of node positions."""

    DEFAULT_CSS = """
    Minimap {
        width: 28;
        height: 10;
        padding: 0 1;
        border: solid $surface-lighten-2;
    }
    """

    def __init__(self, state: AppState, **kwargs) -> None:
        super().__init__(**kwargs)
        self.state = state
        self.viewport = (1280.0, 800.0)

    def render(self) -> Text:
        cells = [[" "] * COLS for _ in range(ROWS)]
        shaded = [[False] * COLS for _ in range(ROWS)]

        rect = minimap_viewport(self.state.interaction.transform, *self.viewport)
        top, left = _cell(rect.left, rect.top)
        bottom, right = _cell(rect.left + rect.width, rect.top + rect.height)
        for r in range(max(0, top), min(ROWS, bottom + 1)):
            for c in range(max(0, left), min(COLS, right + 1)):
                shaded[r][c] = True

        for node in self.state.store.nodes:
            p = minimap_point(Point(node.x, node.y))
            r, c = _cell(p.x, p.y)
            if 0 <= r < ROWS and 0 <= c < COLS:
                cells[r][c] = "•"

        text = Text()
        for r in range(ROWS):
            for c in range(COLS):
                text.append(cells[r][c], style="on grey23" if shaded[r][c] else "dim")
            if r < ROWS - 1:
                text.append("\n")
        return text

    def refresh_view(self, viewport: tuple[float, float]) -> None:
        """update with the board's current viewport size."""
        self.viewport = viewport
        self.refresh()
