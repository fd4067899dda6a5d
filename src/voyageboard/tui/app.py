"""voyageboard: main textual application.

terminal trip-planning whiteboard over the same core as the api server.
"""

from __future__ import annotations

from typing import Optional

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.widgets import Footer, Header

from ..core.aggregation import render_roadbook
from ..core.models import NodeType
from ..core.persistence import StorageError
from ..core.state import AppState
from .widgets import (
    BoardChanged,
    BoardView,
    ItineraryPanel,
    Minimap,
    NodeEditScreen,
    NodeSelected,
    PendingSpinner,
    SettingsScreen,
)


class VoyageBoard(App):
    """main application."""

    TITLE = "voyageboard"

    CSS = """
    Screen {
        layout: vertical;
    }

    #main-container {
        height: 1fr;
    }

    #side {
        width: auto;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "quit"),
        Binding("1", "add_node('location')", "sight"),
        Binding("2", "add_node('transport')", "transport"),
        Binding("3", "add_node('stay')", "stay"),
        Binding("4", "add_node('note')", "note"),
        Binding("enter", "edit", "edit"),
        Binding("f", "fill", "AI fill"),
        Binding("n", "next_stop", "next stop"),
        Binding("l", "link", "link"),
        Binding("d", "delete", "delete"),
        Binding("plus,equals_sign", "zoom_in", "zoom in", show=False),
        Binding("minus", "zoom_out", "zoom out", show=False),
        Binding("0", "reset_view", "reset view", show=False),
        Binding("up", "pan(0, 1)", show=False),
        Binding("down", "pan(0, -1)", show=False),
        Binding("left", "pan(1, 0)", show=False),
        Binding("right", "pan(-1, 0)", show=False),
        Binding("i", "toggle_itinerary", "itinerary"),
        Binding("a", "analyze", "analyze"),
        Binding("e", "export", "export"),
        Binding("s", "settings", "settings"),
        Binding("escape", "cancel", "cancel", show=False),
    ]

    PAN_STEP = 100  # screen px per arrow key

    def __init__(self, state: AppState):
        super().__init__()
        self.state = state

    def compose(self) -> ComposeResult:
        """compose the app layout."""
        yield Header()
        yield PendingSpinner(self.state.assistant.pending, id="spinner")
        with Horizontal(id="main-container"):
            yield BoardView(self.state, id="board")
            with Vertical(id="side"):
                yield Minimap(self.state, id="minimap")
                yield ItineraryPanel(self.state, id="itinerary")
        yield Footer()

    def on_mount(self) -> None:
        self.query_one("#board", BoardView).focus()
        self._last_pending: frozenset[str] = frozenset()
        self.set_interval(0.25, self._watch_pending)

    def on_unmount(self) -> None:
        """save pending board changes on exit."""
        self.state.close()

    # --- helpers ---

    @property
    def board(self) -> BoardView:
        return self.query_one("#board", BoardView)

    @property
    def selected_id(self) -> Optional[str]:
        node_id = self.board.selected_id
        return node_id if node_id and self.state.store.has_node(node_id) else None

    def _refresh_all(self) -> None:
        """refresh all board widgets."""
        board = self.board
        board.refresh()
        self.query_one("#minimap", Minimap).refresh_view(board.viewport_size)
        itinerary = self.query_one("#itinerary", ItineraryPanel)
        if itinerary.has_class("visible"):
            itinerary.refresh_itinerary()

    def _watch_pending(self) -> None:
        current = self.state.assistant.pending.snapshot()
        if current != self._last_pending:
            self._last_pending = current
            self._refresh_all()

    def _require_selection(self) -> Optional[str]:
        node_id = self.selected_id
        if not node_id:
            self.notify("select a node first", severity="warning")
        return node_id

    # --- board events ---

    def on_board_changed(self, event: BoardChanged) -> None:
        self._refresh_all()

    def on_node_selected(self, event: NodeSelected) -> None:
        node = self.state.store.get_node(event.node_id) if event.node_id else None
        self.sub_title = node.title if node else ""

    # --- actions ---

    def action_add_node(self, node_type: str) -> None:
        node = self.state.interaction.add_node(NodeType(node_type), *self.board.viewport_size)
        self.board.selected_id = node.id
        self._refresh_all()

    def action_edit(self) -> None:
        node_id = self._require_selection()
        if not node_id:
            return
        node = self.state.store.get_node(node_id)

        def apply(values: Optional[dict]) -> None:
            if values is not None:
                self.state.store.update_node(node_id, values)
                self._refresh_all()

        self.push_screen(NodeEditScreen(node), apply)

    def action_delete(self) -> None:
        node_id = self._require_selection()
        if node_id:
            self.state.store.delete_node(node_id)
            self.board.selected_id = None
            self._refresh_all()

    def action_link(self) -> None:
        """start a link from the selected node, or finish one onto it."""
        node_id = self._require_selection()
        if node_id:
            self.state.interaction.click_link(node_id)
            self._refresh_all()

    def action_cancel(self) -> None:
        self.state.interaction.cancel()
        self._refresh_all()

    def action_zoom_in(self) -> None:
        self.state.interaction.zoom_in()
        self._refresh_all()

    def action_zoom_out(self) -> None:
        self.state.interaction.zoom_out()
        self._refresh_all()

    def action_reset_view(self) -> None:
        self.state.interaction.reset_view()
        self._refresh_all()

    def action_pan(self, dx: int, dy: int) -> None:
        interaction = self.state.interaction
        interaction.transform = interaction.transform.panned(dx * self.PAN_STEP, dy * self.PAN_STEP)
        self._refresh_all()

    def action_toggle_itinerary(self) -> None:
        itinerary = self.query_one("#itinerary", ItineraryPanel)
        itinerary.toggle_class("visible")
        self._refresh_all()

    def action_fill(self) -> None:
        node_id = self._require_selection()
        if not node_id:
            return
        node = self.state.store.get_node(node_id)
        if not node.content.strip():
            self.notify("write what you want in the notes first (enter to edit)", severity="warning")
            return
        if node_id in self.state.assistant.pending:
            return
        self.run_worker(self._fill(node_id), group="ai")

    async def _fill(self, node_id: str) -> None:
        created = await self.state.assistant.fill_node(node_id)
        if created:
            self.notify(f"added {len(created)} stops")
        self._refresh_all()

    def action_next_stop(self) -> None:
        node_id = self._require_selection()
        if not node_id:
            return
        source = self.state.store.get_node(node_id)
        placeholder_id = self.state.assistant.begin_next_stop(node_id)
        if placeholder_id is None:
            self.notify("next stop works from sights and stays", severity="warning")
            return
        self._refresh_all()
        self.run_worker(
            self.state.assistant.resolve_next_stop(placeholder_id, source.title, source.content),
            group="ai",
        )

    def action_analyze(self) -> None:
        if self.state.analyzing:
            return
        itinerary = self.query_one("#itinerary", ItineraryPanel)
        itinerary.add_class("visible")
        self.run_worker(self._analyze(), group="ai")

    async def _analyze(self) -> None:
        self._refresh_all()
        await self.state.analyze()
        self._refresh_all()

    def action_export(self) -> None:
        """write the roadbook as markdown next to the board records."""
        export_path = self.state.local.root / "roadbook.md"
        try:
            export_path.write_text(
                render_roadbook(self.state.store.nodes, self.state.advice),
                encoding="utf-8",
            )
        except OSError as e:
            self.notify(f"export failed: {e}", severity="error")
            return
        self.notify(f"exported to {export_path}")

    def action_settings(self) -> None:
        def apply(values: Optional[dict]) -> None:
            if values is not None:
                try:
                    config = self.state.update_config(values)
                except StorageError as e:
                    self.notify(f"{e} (kept for this session)", severity="error")
                    return
                status = "ready" if config.is_configured else "incomplete"
                self.notify(f"settings saved ({status})")

        self.push_screen(SettingsScreen(self.state.config), apply)


def run(data_dir: Optional[str] = None, mock: bool = False) -> None:
    """run the voyageboard app."""
    app = VoyageBoard(AppState(data_dir=data_dir, mock=mock))
    app.run()


if __name__ == "__main__":
    run()
