"""itinerary panel: date-ordered roadbook with budget and trip advice."""

from __future__ import annotations

from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from textual.containers import ScrollableContainer
from textual.widgets import Static

from ...core.aggregation import budget, itinerary
from ...core.models import NodeType, TripNode
from ...core.state import AppState

BORDER_STYLES = {
    NodeType.LOCATION: "red",
    NodeType.TRANSPORT: "blue",
    NodeType.STAY: "dark_orange",
    NodeType.NOTE: "yellow",
}


class StopWidget(Static):
    """single stop in the itinerary."""

    DEFAULT_CSS = """
    StopWidget {
        margin: 0 0 1 0;
        padding: 0;
    }
    """

    def __init__(self, node: TripNode, **kwargs) -> None:
        super().__init__(**kwargs)
        self.node = node

    def render(self) -> Panel:
        node = self.node
        text = Text()
        text.append(node.title or "(untitled)", style="bold")
        if node.cost:
            text.append(f"  {node.cost}", style="green")
        if node.content:
            text.append(f"\n{node.content}", style="dim")
        weather = node.weather_info
        return Panel(
            text,
            title=f"{node.date or 'unscheduled'} · {weather.icon} {weather.label}",
            title_align="left",
            border_style=BORDER_STYLES[node.type],
            padding=(0, 1),
        )


class ItineraryPanel(ScrollableContainer):
    """renders the roadbook side panel."""

    DEFAULT_CSS = """
    ItineraryPanel {
        width: 44;
        padding: 1;
        border: solid $surface-lighten-2;
        display: none;
    }

    ItineraryPanel.visible {
        display: block;
    }
    """

    def __init__(self, state: AppState, **kwargs) -> None:
        super().__init__(**kwargs)
        self.state = state

    def compose(self):
        nodes = self.state.store.nodes
        if not nodes:
            yield Static("(no stops yet)", classes="dim")
        for node in itinerary(nodes):
            yield StopWidget(node)

        yield Static(self._budget_table())

        if self.state.analyzing:
            yield Static(Text("analysing trip...", style="italic"))
        elif self.state.advice:
            yield Static(Panel(self.state.advice, title="advice", border_style="magenta"))

    def _budget_table(self) -> Table:
        summary = budget(self.state.store.nodes)
        table = Table(title="budget", show_header=False, expand=True)
        table.add_column("category")
        table.add_column("amount", justify="right")
        for category, amount in summary.buckets.items():
            table.add_row(category, f"{amount:,.0f}")
        table.add_row(Text("total", style="bold"), Text(f"{summary.total:,.0f}", style="bold"))
        return table

    def refresh_itinerary(self) -> None:
        """recompose from the current board."""
        self.remove_children()
        for widget in self.compose():
            self.mount(widget)
