"""tests for the graph store and its write coalescing."""

import asyncio

import pytest

from voyageboard.core.models import Connection, NodeType, TripNode
from voyageboard.core.store import GraphStore, WriteCoalescer


class TestNodes:
    """tests for node operations."""

    def test_get_returns_copy(self, sample_store):
        """callers cannot mutate the store through a returned node."""
        node = sample_store.get_node("sight")
        node.title = "changed"
        assert sample_store.get_node("sight").title == "Senso-ji"

    def test_add_duplicate_id_is_ignored(self, sample_store):
        sample_store.add_node(TripNode(id="sight", title="other"))
        assert sample_store.get_node("sight").title == "Senso-ji"
        assert len(sample_store) == 3

    def test_update_coerces_fields(self, sample_store):
        assert sample_store.update_node("note", {"type": "bogus", "weather": 9, "cost": 40})
        node = sample_store.get_node("note")
        assert node.type is NodeType.NOTE
        assert node.weather == 0
        assert node.cost == "40"

    def test_update_cannot_change_id(self, sample_store):
        sample_store.update_node("note", {"id": "hijack", "title": "t"})
        assert "hijack" not in sample_store
        assert sample_store.get_node("note").title == "t"

    def test_unknown_ids_are_noops(self, sample_store):
        before = sample_store.snapshot()
        assert sample_store.update_node("ghost", {"title": "x"}) is False
        assert sample_store.move_node("ghost", 1, 2) is False
        assert sample_store.delete_node("ghost") is False
        assert sample_store.delete_connections_touching("ghost") == 0
        assert sample_store.snapshot() == before

    def test_delete_cascades(self, sample_store):
        """deleting a node drops every connection that references it."""
        sample_store.add_connection("note", "stay")
        assert sample_store.delete_node("stay")
        assert "stay" not in sample_store
        assert sample_store.connections_touching("stay") == []
        assert sample_store.connections == []


class TestConnections:
    """tests for connection operations."""

    def test_pair_is_unique_in_either_direction(self, sample_store):
        assert sample_store.add_connection("stay", "sight") is None
        assert sample_store.add_connection("sight", "stay") is None
        assert len(sample_store.connections) == 1

    def test_self_loop_rejected(self, sample_store):
        assert sample_store.add_connection("note", "note") is None

    def test_unknown_endpoint_rejected(self, sample_store):
        assert sample_store.add_connection("note", "ghost") is None
        assert len(sample_store.connections) == 1

    def test_new_connection(self, sample_store):
        conn = sample_store.add_connection("note", "sight")
        assert conn.from_id == "note" and conn.to_id == "sight"
        assert sample_store.has_connection("sight", "note")
        assert sample_store.neighbors("sight") == ["stay", "note"]

    def test_constructor_dedupes_pairs(self):
        nodes = [TripNode(id="a"), TripNode(id="b")]
        store = GraphStore(nodes, [Connection("c1", "a", "b"), Connection("c2", "b", "a")])
        assert [c.id for c in store.connections] == ["c1"]

    def test_delete_connections_touching(self, sample_store):
        sample_store.add_connection("note", "sight")
        assert sample_store.delete_connections_touching("sight") == 2
        assert sample_store.connections == []
        assert len(sample_store) == 3


class TestWriteCoalescing:
    """tests for debounced persistence."""

    def _recording_store(self, debounce):
        writes = []
        store = GraphStore(
            [TripNode(id="a")],
            on_flush=lambda nodes, conns: writes.append(([n.title for n in nodes], len(conns))),
            debounce=debounce,
        )
        return store, writes

    def test_without_loop_writes_on_flush(self):
        store, writes = self._recording_store(0.01)
        for title in ("one", "two", "three"):
            store.update_node("a", {"title": title})
        assert writes == []
        assert store.has_unsaved_changes
        store.flush()
        assert writes == [(["three"], 0)]
        store.flush()
        assert len(writes) == 1
        assert not store.has_unsaved_changes

    def test_noop_does_not_schedule(self):
        store, writes = self._recording_store(0.01)
        store.update_node("ghost", {"title": "x"})
        store.update_node("a", {})
        assert not store.has_unsaved_changes
        store.close()
        assert writes == []

    @pytest.mark.asyncio
    async def test_burst_coalesces_into_one_write(self):
        store, writes = self._recording_store(0.05)
        for i in range(5):
            store.update_node("a", {"title": f"t{i}"})
            await asyncio.sleep(0.01)
        assert writes == []
        await asyncio.sleep(0.2)
        assert writes == [(["t4"], 0)]
        assert not store.has_unsaved_changes

    def test_store_without_callback_never_pending(self, sample_store):
        sample_store.update_node("sight", {"title": "x"})
        assert not sample_store.has_unsaved_changes

    def test_write_errors_are_logged(self, caplog):
        def failing():
            raise OSError("disk full")

        writer = WriteCoalescer(failing, 0.01)
        writer.touch()
        writer.flush()
        assert not writer.pending
        assert "disk full" in caplog.text

    def test_cancel_drops_pending(self):
        calls = []
        writer = WriteCoalescer(lambda: calls.append(1), 0.01)
        writer.touch()
        writer.cancel()
        writer.flush()
        assert calls == []

    @pytest.mark.asyncio
    async def test_close_stops_the_timer(self):
        """after close, changes stay pending until an explicit flush."""
        store, writes = self._recording_store(0.05)
        store.update_node("a", {"title": "before"})
        store.close()
        assert writes == [(["before"], 0)]

        store.update_node("a", {"title": "after"})
        await asyncio.sleep(0.1)
        assert len(writes) == 1
        assert store.has_unsaved_changes

        store.flush()
        assert writes[-1] == (["after"], 0)
