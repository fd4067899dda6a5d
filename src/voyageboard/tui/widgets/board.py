"""board widget: node cards and connections drawn on a character grid.

mouse input goes through the interaction state machine. one terminal cell
stands for CELL_WIDTH x CELL_HEIGHT screen pixels.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from rich.text import Text
from textual import events
from textual.message import Message
from textual.widget import Widget

from ...core.aggregation import visible_edges
from ...core.interaction import PointerEvent, Target
from ...core.models import NodeType, TripNode
from ...core.state import AppState
from ...core.transform import Point

CELL_WIDTH = 10
CELL_HEIGHT = 20
CARD_COLS = 28
WHEEL_NOTCH = 100  # wheel delta per scroll step

TYPE_ICONS = {
    NodeType.LOCATION: "⌖",
    NodeType.TRANSPORT: "✈",
    NodeType.STAY: "⌂",
    NodeType.NOTE: "✎",
}

TYPE_STYLES = {
    NodeType.LOCATION: "bold white on red3",
    NodeType.TRANSPORT: "bold white on blue3",
    NodeType.STAY: "bold black on dark_orange",
    NodeType.NOTE: "bold black on yellow3",
}

LINK_GLYPH = "⛓"


class NodeSelected(Message):
    """message emitted when a node is picked on the board."""

    def __init__(self, node_id: Optional[str]) -> None:
        self.node_id = node_id
        super().__init__()


class BoardChanged(Message):
    """message emitted after the board or the view changed."""

    pass


@dataclass(frozen=True)
class _Hit:
    row: int
    start: int
    end: int  # exclusive
    node_id: str
    target: Optional[Target]  # None: link affordance


class _Grid:
    """fixed-size character grid with per-cell styles."""

    def __init__(self, width: int, height: int) -> None:
        self.width = width
        self.height = height
        self.chars = [[" "] * width for _ in range(height)]
        self.styles: list[list[str]] = [[""] * width for _ in range(height)]

    def put(self, row: int, col: int, text: str, style: str = "") -> None:
        if not 0 <= row < self.height:
            return
        for i, ch in enumerate(text):
            c = col + i
            if 0 <= c < self.width:
                self.chars[row][c] = ch
                self.styles[row][c] = style

    def dot(self, row: int, col: int, ch: str, style: str) -> None:
        """draw only on blank cells."""
        if 0 <= row < self.height and 0 <= col < self.width and self.chars[row][col] == " ":
            self.chars[row][col] = ch
            self.styles[row][col] = style

    def to_text(self) -> Text:
        text = Text()
        for r in range(self.height):
            run, run_style = "", self.styles[r][0] if self.width else ""
            for ch, style in zip(self.chars[r], self.styles[r]):
                if style != run_style:
                    text.append(run, style=run_style or None)
                    run, run_style = "", style
                run += ch
            text.append(run, style=run_style or None)
            if r < self.height - 1:
                text.append("\n")
        return text


def _line(r0: int, c0: int, r1: int, c1: int) -> list[tuple[int, int]]:
    """cells on the segment between two cells (bresenham)."""
    cells = []
    dc, dr = abs(c1 - c0), -abs(r1 - r0)
    sc = 1 if c0 < c1 else -1
    sr = 1 if r0 < r1 else -1
    err = dc + dr
    while True:
        cells.append((r0, c0))
        if r0 == r1 and c0 == c1:
            return cells
        e2 = 2 * err
        if e2 >= dr:
            err += dr
            c0 += sc
        if e2 <= dc:
            err += dc
            r0 += sr


class BoardView(Widget, can_focus=True):
    """the pannable, zoomable trip board."""

    DEFAULT_CSS = """
    BoardView {
        height: 1fr;
        width: 1fr;
        background: $surface;
    }
    """

    def __init__(self, state: AppState, **kwargs) -> None:
        super().__init__(**kwargs)
        self.state = state
        self.selected_id: Optional[str] = None
        self._hits: list[_Hit] = []

    @property
    def viewport_size(self) -> tuple[float, float]:
        """viewport size in screen pixels."""
        return self.size.width * CELL_WIDTH, self.size.height * CELL_HEIGHT

    def _cell(self, world: Point) -> tuple[int, int]:
        screen = self.state.interaction.transform.to_screen(world)
        return int(screen.y // CELL_HEIGHT), int(screen.x // CELL_WIDTH)

    def render(self) -> Text:
        """draw edges first, then cards on top."""
        width, height = self.size.width, self.size.height
        grid = _Grid(width, height)
        snapshot = self.state.store.snapshot()
        pending = self.state.assistant.pending
        connecting = self.state.interaction.connecting_source
        self._hits = []

        if not snapshot.nodes:
            grid.put(height // 2, max(0, width // 2 - 14), "(empty board: press 1-4 to add)", "dim")
            return grid.to_text()

        edge_style = "grey50" if connecting else "red"
        for _, geometry in visible_edges(snapshot.nodes, snapshot.connections):
            r0, c0 = self._cell(geometry.start)
            r1, c1 = self._cell(geometry.end)
            for r, c in _line(r0, c0, r1, c1):
                grid.dot(r, c, "·", edge_style)
            if not connecting:
                mid_r, mid_c = self._cell(geometry.midpoint)
                label = f"{geometry.distance_km}km"
                grid.put(mid_r, mid_c - len(label) // 2, label, "dim")

        for node in snapshot.nodes:
            self._draw_card(grid, node, node.id in pending, node.id == connecting)

        return grid.to_text()

    def _draw_card(self, grid: _Grid, node: TripNode, is_pending: bool, is_source: bool) -> None:
        row, col = self._cell(Point(node.x, node.y))
        selected = node.id == self.selected_id

        icon = TYPE_ICONS[node.type]
        title = (node.title or "(untitled)")[: CARD_COLS - 6]
        header = f" {icon} {title}".ljust(CARD_COLS - 2)
        header_style = TYPE_STYLES[node.type] + (" reverse" if selected else "")
        link_style = "bold green" if is_source else "bold"

        grid.put(row, col, header, header_style)
        grid.put(row, col + CARD_COLS - 2, f" {LINK_GLYPH}", link_style)
        self._hits.append(_Hit(row, col, col + CARD_COLS - 2, node.id, Target.NODE_HANDLE))
        self._hits.append(_Hit(row, col + CARD_COLS - 2, col + CARD_COLS, node.id, None))

        weather = node.weather_info
        details = " ".join(part for part in (node.date, node.cost, weather.icon) if part)
        body = [details]
        if is_pending:
            body.append("… thinking")
        elif node.content:
            body.append(node.content)
        for offset, line in enumerate(body, start=1):
            grid.put(row + offset, col, f" {line}"[:CARD_COLS].ljust(CARD_COLS), "on grey15")
            self._hits.append(_Hit(row + offset, col, col + CARD_COLS, node.id, Target.NODE_BODY))

    def hit_test(self, x: int, y: int) -> tuple[Target, Optional[str], bool]:
        """what lies under a cell: (target, node_id, is_link)."""
        for hit in reversed(self._hits):
            if hit.row == y and hit.start <= x < hit.end:
                if hit.target is None:
                    return Target.NODE_BODY, hit.node_id, True
                return hit.target, hit.node_id, False
        return Target.CANVAS, None, False

    def _pointer(self, event: events.MouseEvent, target: Target = Target.CANVAS,
                 node_id: Optional[str] = None) -> PointerEvent:
        return PointerEvent(
            x=event.x * CELL_WIDTH,
            y=event.y * CELL_HEIGHT,
            target=target,
            node_id=node_id,
            button=1 if event.button == 2 else 0,
            alt=event.meta or event.shift,
        )

    def on_mouse_down(self, event: events.MouseDown) -> None:
        target, node_id, is_link = self.hit_test(event.x, event.y)
        interaction = self.state.interaction

        if is_link and node_id:
            interaction.click_link(node_id)
        else:
            interaction.pointer_down(self._pointer(event, target, node_id))
            self.capture_mouse()

        if node_id != self.selected_id:
            self.selected_id = node_id
            self.post_message(NodeSelected(node_id))
        self._changed()

    def on_mouse_move(self, event: events.MouseMove) -> None:
        self.state.interaction.pointer_move(self._pointer(event))
        self.refresh()

    def on_mouse_up(self, event: events.MouseUp) -> None:
        self.state.interaction.pointer_up()
        self.release_mouse()
        self._changed()

    def on_leave(self, event: events.Leave) -> None:
        self.state.interaction.pointer_leave()

    def on_mouse_scroll_down(self, event: events.MouseScrollDown) -> None:
        self.state.interaction.wheel(0, WHEEL_NOTCH, zoom_modifier=event.ctrl)
        self._changed()

    def on_mouse_scroll_up(self, event: events.MouseScrollUp) -> None:
        self.state.interaction.wheel(0, -WHEEL_NOTCH, zoom_modifier=event.ctrl)
        self._changed()

    def _changed(self) -> None:
        self.refresh()
        self.post_message(BoardChanged())
