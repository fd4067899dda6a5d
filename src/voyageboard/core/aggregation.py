"""derived views over the board: itinerary order, budget, edge geometry, roadbook.

pure projections. nothing here mutates the store.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, Optional

from .models import BUDGET_CATEGORIES, Connection, TripNode
from .transform import NODE_WIDTH, Point

EDGE_ANCHOR_Y = 120   # connection anchor height on a node card
KM_PER_UNIT = 0.5     # cosmetic: 1 world unit ~ 0.5 km


def itinerary(nodes: Iterable[TripNode]) -> list[TripNode]:
    """nodes by date ascending (string order); undated nodes last, stable."""
    return sorted(nodes, key=lambda n: (n.date == "", n.date))


@dataclass
class BudgetSummary:
    """per-category spend. total is derived from the buckets."""

    buckets: dict[str, float] = field(
        default_factory=lambda: {category: 0.0 for category in BUDGET_CATEGORIES}
    )

    @property
    def total(self) -> float:
        return sum(self.buckets.values())

    def share(self, category: str) -> float:
        """fraction of the total spent in a category (0 when nothing spent)."""
        total = self.total
        return self.buckets.get(category, 0.0) / total if total else 0.0

    def to_dict(self) -> dict:
        return {"buckets": dict(self.buckets), "total": self.total}


def budget(nodes: Iterable[TripNode]) -> BudgetSummary:
    summary = BudgetSummary()
    for node in nodes:
        summary.buckets[node.type.category] += node.cost_value
    return summary


@dataclass(frozen=True)
class EdgeGeometry:
    """drawing data for one connection, in world units."""

    start: Point
    end: Point
    midpoint: Point
    distance_km: int

    @property
    def control_x(self) -> float:
        return self.start.x + (self.end.x - self.start.x) / 2

    def svg_path(self) -> str:
        """cubic bezier leaving and entering horizontally."""
        cx = self.control_x
        return (
            f"M {self.start.x} {self.start.y} "
            f"C {cx} {self.start.y}, {cx} {self.end.y}, {self.end.x} {self.end.y}"
        )


def edge_geometry(source: TripNode, target: TripNode) -> EdgeGeometry:
    start = Point(source.x + NODE_WIDTH, source.y + EDGE_ANCHOR_Y)
    end = Point(target.x, target.y + EDGE_ANCHOR_Y)
    distance = math.hypot(end.x - start.x, end.y - start.y)
    return EdgeGeometry(
        start=start,
        end=end,
        midpoint=Point((start.x + end.x) / 2, (start.y + end.y) / 2),
        distance_km=round(distance * KM_PER_UNIT),
    )


def visible_edges(
    nodes: Iterable[TripNode],
    connections: Iterable[Connection],
) -> list[tuple[Connection, EdgeGeometry]]:
    """geometry for every connection whose endpoints both exist. dangling edges are skipped."""
    by_id = {n.id: n for n in nodes}
    edges = []
    for conn in connections:
        source = by_id.get(conn.from_id)
        target = by_id.get(conn.to_id)
        if source is None or target is None:
            continue
        edges.append((conn, edge_geometry(source, target)))
    return edges


def _format_amount(amount: float) -> str:
    return f"{amount:,.0f}" if amount == int(amount) else f"{amount:,.2f}"


def render_roadbook(nodes: Iterable[TripNode], advice: Optional[str] = None) -> str:
    """markdown roadbook: dated itinerary followed by the budget."""
    nodes = list(nodes)
    lines = ["# Roadbook", ""]

    current_date: Optional[str] = None
    for node in itinerary(nodes):
        date = node.date or "Unscheduled"
        if date != current_date:
            lines.extend([f"## {date}", ""])
            current_date = date
        weather = node.weather_info
        title = node.title or "(untitled)"
        cost = f" | {node.cost}" if node.cost else ""
        lines.append(f"- **{title}** [{node.type.label}] {weather.icon} {weather.label}{cost}")
        if node.content:
            lines.append(f"  {node.content}")
    if not nodes:
        lines.append("_no stops yet_")

    summary = budget(nodes)
    lines.extend(["", "## Budget", ""])
    for category, amount in summary.buckets.items():
        lines.append(f"- {category}: {_format_amount(amount)}")
    lines.append(f"- **total**: {_format_amount(summary.total)}")

    if advice:
        lines.extend(["", "## Advice", "", advice.strip()])

    return "\n".join(lines) + "\n"
