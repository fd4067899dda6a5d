"""core data model for voyageboard.

itinerary graph of trip nodes joined by undirected connections.
everything that enters the graph passes through the normalizers here once,
so downstream code can assume fully-typed records.
"""

from __future__ import annotations

import math
import re
import uuid
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Optional


class NodeType(Enum):
    LOCATION = "location"    # sight / place to visit
    TRANSPORT = "transport"  # flight, train, transfer
    STAY = "stay"            # lodging
    NOTE = "note"            # free-form note

    @property
    def label(self) -> str:
        return _TYPE_LABELS[self]

    @property
    def category(self) -> str:
        """budget bucket this type rolls up into."""
        return _TYPE_CATEGORIES[self]

    @classmethod
    def normalize(cls, value: Any, default: NodeType | None = None) -> NodeType:
        """map any raw value onto a node type. unknown values become `default` (note)."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return default or cls.NOTE


_TYPE_LABELS = {
    NodeType.LOCATION: "sight",
    NodeType.TRANSPORT: "transport",
    NodeType.STAY: "stay",
    NodeType.NOTE: "note",
}

_TYPE_CATEGORIES = {
    NodeType.LOCATION: "play",
    NodeType.TRANSPORT: "transport",
    NodeType.STAY: "stay",
    NodeType.NOTE: "other",
}

BUDGET_CATEGORIES = ("play", "transport", "stay", "other")


@dataclass(frozen=True)
class Weather:
    icon: str
    label: str


WEATHER_TYPES = (
    Weather(icon="☀", label="sunny"),
    Weather(icon="☁", label="cloudy"),
    Weather(icon="☂", label="light rain"),
)


def normalize_weather(value: Any) -> int:
    """weather index into WEATHER_TYPES; anything out of range is 0."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if isinstance(value, float) and (not value.is_integer()):
        return 0
    index = int(value)
    return index if 0 <= index < len(WEATHER_TYPES) else 0


_NUMBER = re.compile(r"\d+(?:\.\d+)?")
_THOUSANDS = re.compile(r"(?<=\d),(?=\d{3}\b)")


def parse_cost(cost: Any) -> float:
    """extract a numeric amount from a free-text cost like '¥1,200 / night'.

    takes the first numeric substring; anything without digits is 0.
    """
    if isinstance(cost, bool):
        return 0.0
    if isinstance(cost, (int, float)):
        return float(cost) if math.isfinite(cost) and cost > 0 else 0.0
    if not isinstance(cost, str):
        return 0.0
    match = _NUMBER.search(_THOUSANDS.sub("", cost))
    return float(match.group(0)) if match else 0.0


def _text(value: Any) -> str:
    """coerce a loosely typed field to text ('' for missing)."""
    if value is None or value is False:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def _coord(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _image(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value.strip() else None


@dataclass
class TripNode:
    """single itinerary entry on the board."""

    id: str
    x: float = 0.0
    y: float = 0.0
    type: NodeType = NodeType.NOTE
    title: str = ""
    content: str = ""
    date: str = ""   # free text, sorted lexicographically
    cost: str = ""   # free text, e.g. "¥60"
    weather: int = 0  # index into WEATHER_TYPES
    image: Optional[str] = None

    @classmethod
    def create(
        cls,
        node_type: NodeType | str = NodeType.NOTE,
        x: float = 0.0,
        y: float = 0.0,
        **fields: Any,
    ) -> TripNode:
        """create a node with a fresh id."""
        return cls.from_dict({"id": new_node_id(), "type": node_type, "x": x, "y": y, **fields})

    @property
    def cost_value(self) -> float:
        return parse_cost(self.cost)

    @property
    def weather_info(self) -> Weather:
        return WEATHER_TYPES[self.weather]

    def to_dict(self) -> dict:
        """serialize to dict for json."""
        d = asdict(self)
        d["type"] = self.type.value
        return d

    @classmethod
    def from_dict(cls, d: dict) -> TripNode:
        """build a node from untrusted data, coercing every field to a safe default."""
        node_id = d.get("id")
        return cls(
            id=_text(node_id) if node_id not in (None, "") else new_node_id(),
            x=_coord(d.get("x")),
            y=_coord(d.get("y")),
            type=NodeType.normalize(d.get("type")),
            title=_text(d.get("title")),
            content=_text(d.get("content")),
            date=_text(d.get("date")),
            cost=_text(d.get("cost")),
            weather=normalize_weather(d.get("weather")),
            image=_image(d.get("image")),
        )


# fields a partial update may touch, with their coercion
NODE_FIELD_COERCIONS = {
    "x": _coord,
    "y": _coord,
    "type": NodeType.normalize,
    "title": _text,
    "content": _text,
    "date": _text,
    "cost": _text,
    "weather": normalize_weather,
    "image": _image,
}


def normalize_fields(fields: dict) -> dict:
    """coerce a partial update; unknown keys (including id) are dropped."""
    return {
        key: NODE_FIELD_COERCIONS[key](value)
        for key, value in fields.items()
        if key in NODE_FIELD_COERCIONS
    }


@dataclass(frozen=True)
class Connection:
    """undirected link between two nodes, stored with a from/to orientation."""

    id: str
    from_id: str
    to_id: str

    @classmethod
    def create(cls, from_id: str, to_id: str) -> Connection:
        return cls(id=f"c-{new_node_id()}", from_id=from_id, to_id=to_id)

    def touches(self, node_id: str) -> bool:
        return self.from_id == node_id or self.to_id == node_id

    def joins(self, a: str, b: str) -> bool:
        """true if this connection links a and b in either direction."""
        return (self.from_id, self.to_id) in ((a, b), (b, a))

    def to_dict(self) -> dict:
        return {"id": self.id, "from": self.from_id, "to": self.to_id}

    @classmethod
    def from_dict(cls, d: dict) -> Optional[Connection]:
        """parse a persisted connection; returns None when an endpoint is missing."""
        from_id = _text(d.get("from", d.get("from_id")))
        to_id = _text(d.get("to", d.get("to_id")))
        if not from_id or not to_id:
            return None
        conn_id = _text(d.get("id")) or f"c-{new_node_id()}"
        return cls(id=conn_id, from_id=from_id, to_id=to_id)


def new_node_id() -> str:
    """generate a short unique id."""
    return uuid.uuid4().hex[:8]
