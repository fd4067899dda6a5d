"""graph store: sole owner of the node and connection collections.

every operation is synchronous and total. unknown ids are no-ops, because a
delete from the ui may race an in-flight ai update for the same node.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Callable, Iterable, Optional

from .models import Connection, TripNode, normalize_fields

DEFAULT_DEBOUNCE = 1.0  # seconds

FlushCallback = Callable[[list[TripNode], list[Connection]], None]


@dataclass(frozen=True)
class BoardSnapshot:
    """immutable view of the board for rendering and aggregation."""

    nodes: tuple[TripNode, ...]
    connections: tuple[Connection, ...]

    def node(self, node_id: str) -> Optional[TripNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None


class WriteCoalescer:
    """collapses bursts of mutations into one write after things settle.

    each `touch()` (re)arms a timer on the running event loop. without a
    running loop the write stays pending until `flush()`.
    """

    def __init__(self, write: Callable[[], None], delay: float = DEFAULT_DEBOUNCE):
        self._write = write
        self.delay = delay
        self._handle: Optional[asyncio.TimerHandle] = None
        self._pending = False
        self._closed = False

    @property
    def pending(self) -> bool:
        return self._pending

    def touch(self) -> None:
        self._pending = True
        self._cancel_timer()
        if self._closed:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._handle = loop.call_later(self.delay, self.flush)

    def flush(self) -> None:
        """write now if anything is pending."""
        self._cancel_timer()
        if not self._pending:
            return
        self._pending = False
        try:
            self._write()
        except OSError as e:
            logging.error(f"board write failed: {e}")

    def close(self) -> None:
        """flush, then stop arming the timer. later changes wait for flush()."""
        self.flush()
        self._closed = True

    def cancel(self) -> None:
        """drop the pending write without flushing."""
        self._cancel_timer()
        self._pending = False

    def _cancel_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class GraphStore:
    """nodes and connections of one board."""

    def __init__(
        self,
        nodes: Iterable[TripNode] = (),
        connections: Iterable[Connection] = (),
        on_flush: Optional[FlushCallback] = None,
        debounce: float = DEFAULT_DEBOUNCE,
    ):
        self._nodes: dict[str, TripNode] = {}
        self._connections: list[Connection] = []
        self._on_flush = on_flush
        self._writer = WriteCoalescer(self._write, debounce)

        for node in nodes:
            self._nodes[node.id] = node
        for conn in connections:
            if not self._has_pair(conn.from_id, conn.to_id):
                self._connections.append(conn)

    # --- queries ---

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes

    def get_node(self, node_id: str) -> Optional[TripNode]:
        """copy of the node, or None if it no longer exists."""
        node = self._nodes.get(node_id)
        return replace(node) if node else None

    @property
    def nodes(self) -> list[TripNode]:
        """copies of all nodes, in insertion order."""
        return [replace(n) for n in self._nodes.values()]

    @property
    def connections(self) -> list[Connection]:
        return list(self._connections)

    def has_connection(self, a: str, b: str) -> bool:
        return self._has_pair(a, b)

    def connections_touching(self, node_id: str) -> list[Connection]:
        return [c for c in self._connections if c.touches(node_id)]

    def neighbors(self, node_id: str) -> list[str]:
        """ids of live nodes linked to node_id."""
        ids = []
        for conn in self.connections_touching(node_id):
            other = conn.to_id if conn.from_id == node_id else conn.from_id
            if other in self._nodes and other not in ids:
                ids.append(other)
        return ids

    def snapshot(self) -> BoardSnapshot:
        return BoardSnapshot(nodes=tuple(self.nodes), connections=tuple(self._connections))

    # --- mutations ---

    def add_node(self, node: TripNode) -> str:
        """add a node. an id already on the board is left untouched."""
        if node.id in self._nodes:
            logging.warning(f"node {node.id} already exists, ignoring add")
            return node.id
        self._nodes[node.id] = replace(node)
        self._changed()
        return node.id

    def update_node(self, node_id: str, fields: dict) -> bool:
        """apply a partial update. returns False if the node is gone."""
        node = self._nodes.get(node_id)
        if node is None:
            logging.debug(f"update for missing node {node_id} discarded")
            return False
        changes = normalize_fields(fields)
        if changes:
            self._nodes[node_id] = replace(node, **changes)
            self._changed()
        return True

    def move_node(self, node_id: str, x: float, y: float) -> bool:
        return self.update_node(node_id, {"x": x, "y": y})

    def delete_node(self, node_id: str) -> bool:
        """delete a node and every connection that references it."""
        if node_id not in self._nodes:
            return False
        del self._nodes[node_id]
        self._connections = [c for c in self._connections if not c.touches(node_id)]
        self._changed()
        return True

    def add_connection(self, from_id: str, to_id: str) -> Optional[Connection]:
        """link two nodes. no-op (None) for an existing pair in either direction,
        a self-loop, or an unknown endpoint."""
        if from_id == to_id:
            return None
        if from_id not in self._nodes or to_id not in self._nodes:
            return None
        if self._has_pair(from_id, to_id):
            return None
        conn = Connection.create(from_id, to_id)
        self._connections.append(conn)
        self._changed()
        return conn

    def delete_connections_touching(self, node_id: str) -> int:
        """remove every connection referencing node_id. returns the count removed."""
        kept = [c for c in self._connections if not c.touches(node_id)]
        removed = len(self._connections) - len(kept)
        if removed:
            self._connections = kept
            self._changed()
        return removed

    # --- persistence ---

    @property
    def has_unsaved_changes(self) -> bool:
        return self._writer.pending

    def flush(self) -> None:
        """write pending changes immediately."""
        self._writer.flush()

    def close(self) -> None:
        """flush and stop the write timer."""
        self._writer.close()

    def _changed(self) -> None:
        if self._on_flush is not None:
            self._writer.touch()

    def _write(self) -> None:
        if self._on_flush is not None:
            self._on_flush(self.nodes, self.connections)

    def _has_pair(self, a: str, b: str) -> bool:
        return any(c.joins(a, b) for c in self._connections)
