"""local key-value store for the board.

three records, one json file each: api config, nodes, connections. records
are read once at startup and sanitized, since files on disk may be stale or
hand-edited.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

from .config import ApiConfig
from .models import Connection, NodeType, TripNode

API_CONFIG_KEY = "voyage_api_config"
NODES_KEY = "voyage_nodes"
CONNECTIONS_KEY = "voyage_connections"


class StorageError(Exception):
    """the storage directory cannot be used."""

    pass


class LocalStore:
    """json-file key-value store rooted at a directory."""

    def __init__(self, root: Path):
        self.root = Path(root)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"cannot use storage directory {self.root}: {e}") from e

    def path_for(self, key: str) -> Path:
        return self.root / f"{key}.json"

    def get(self, key: str) -> Optional[Any]:
        """read a record. missing or corrupt records read as None."""
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logging.warning(f"ignoring unreadable record {path.name}: {e}")
            return None

    def set(self, key: str, value: Any) -> None:
        path = self.path_for(key)
        tmp = path.with_suffix(".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(value, f, indent=2, ensure_ascii=False)
        tmp.replace(path)

    def delete(self, key: str) -> None:
        self.path_for(key).unlink(missing_ok=True)


# --- seed board ---

def seed_nodes() -> list[TripNode]:
    """starter board shown on first launch."""
    return [
        TripNode(
            id="1",
            x=100,
            y=100,
            type=NodeType.LOCATION,
            title="Beijing Capital International Airport",
            content="Land around noon, take the airport express into the city.",
            date="2024-10-01",
            cost="¥50",
            weather=0,
            image="https://images.unsplash.com/photo-1569336415962-a4bd9f69cd83?auto=format&fit=crop&w=600&q=80",
        ),
        TripNode(
            id="2",
            x=600,
            y=200,
            type=NodeType.STAY,
            title="Wangfujing Hotel",
            content="Check in, drop the bags, wander the neighbourhood.",
            date="2024-10-01",
            cost="¥650",
            weather=0,
            image="https://images.unsplash.com/photo-1618773928121-c32242e63f39?auto=format&fit=crop&w=600&q=80",
        ),
    ]


def seed_connections() -> list[Connection]:
    return [Connection(id="c1", from_id="1", to_id="2")]


# --- records ---

def load_api_config(store: LocalStore, defaults: Optional[ApiConfig] = None) -> ApiConfig:
    defaults = defaults or ApiConfig.from_env()
    saved = store.get(API_CONFIG_KEY)
    if not isinstance(saved, dict):
        return defaults
    return defaults.merged(saved)


def save_api_config(store: LocalStore, config: ApiConfig) -> None:
    store.set(API_CONFIG_KEY, config.to_dict())


def load_nodes(store: LocalStore) -> list[TripNode]:
    """load and sanitize the node record. a missing record yields the seed board."""
    saved = store.get(NODES_KEY)
    if saved is None:
        return seed_nodes() if not store.path_for(NODES_KEY).exists() else []
    if not isinstance(saved, list):
        logging.warning(f"{NODES_KEY} is not a list, starting empty")
        return []

    nodes: list[TripNode] = []
    seen: set[str] = set()
    for raw in saved:
        if not isinstance(raw, dict):
            continue
        node = TripNode.from_dict(raw)
        if node.id in seen:
            continue
        seen.add(node.id)
        nodes.append(node)
    return nodes


def load_connections(store: LocalStore) -> list[Connection]:
    saved = store.get(CONNECTIONS_KEY)
    if saved is None:
        return seed_connections() if not store.path_for(CONNECTIONS_KEY).exists() else []
    if not isinstance(saved, list):
        return []
    parsed = (Connection.from_dict(raw) for raw in saved if isinstance(raw, dict))
    return [c for c in parsed if c is not None]


def save_board(store: LocalStore, nodes: list[TripNode], connections: list[Connection]) -> None:
    store.set(NODES_KEY, [n.to_dict() for n in nodes])
    store.set(CONNECTIONS_KEY, [c.to_dict() for c in connections])
