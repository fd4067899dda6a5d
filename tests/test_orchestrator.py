"""tests for the ai workflows."""

import asyncio
import json
import random
from unittest.mock import AsyncMock

import httpx
import pytest

from conftest import GatedClient
from voyageboard.core.client import ArkClient, ClientError, MockClient
from voyageboard.core.config import ApiConfig
from voyageboard.core.models import NodeType, TripNode
from voyageboard.core.orchestrator import (
    ANALYSIS_FAILED_MESSAGE,
    CONFIG_REQUIRED_MESSAGE,
    FAILED_TITLE,
    FALLBACK_FILL_DATE,
    FILL_JITTER,
    NEXT_STOP_JITTER,
    PLACEHOLDER_TITLE,
    STEP_SPACING,
    UNREACHABLE_MESSAGE,
    TripAssistant,
)
from voyageboard.core.store import GraphStore

TOKYO_STEPS = json.dumps({
    "steps": [
        {"title": "Senso-ji", "content": "old temple", "cost": "¥0", "type": "location", "image_keyword": "sensoji"},
        {"title": "Tsukiji", "content": "sushi breakfast", "cost": "¥3000", "type": "location", "image_keyword": "sushi"},
        {"title": "Park Hyatt", "content": "night view", "cost": "¥60000", "type": "stay", "image_keyword": "hotel"},
    ]
})

NEXT_STOP = json.dumps({"title": "Ameyoko", "content": "market street", "cost": "¥1500", "image_keyword": "market"})


def assistant_for(store, client, config=None):
    return TripAssistant(store, client, config, rng=random.Random(42))


class TestFill:
    """tests for fill_node."""

    @pytest.mark.asyncio
    async def test_multi_step_fill(self, sample_store):
        """step 0 rewrites the node, the rest chain off it."""
        assistant = assistant_for(sample_store, MockClient({"tokyo": TOKYO_STEPS}, delay=0))

        created = await assistant.fill_node("sight")

        assert len(created) == 2
        assert len(sample_store) == 5
        source = sample_store.get_node("sight")
        assert source.title == "Senso-ji"
        assert source.date == "2024-11-01"
        assert source.image.startswith("https://image.pollinations.ai/prompt/sensoji?")
        assert 0 <= source.weather <= 2

        first, second = (sample_store.get_node(i) for i in created)
        assert sample_store.has_connection("sight", first.id)
        assert sample_store.has_connection(first.id, second.id)
        assert first.x == source.x + STEP_SPACING
        assert second.x == source.x + 2 * STEP_SPACING
        assert abs(first.y - source.y) <= FILL_JITTER
        assert second.type is NodeType.STAY
        assert second.date == "2024-11-01"
        assert "sight" not in assistant.pending

    @pytest.mark.asyncio
    async def test_single_step_fill(self, sample_store):
        one = json.dumps({"steps": [{"title": "Kappabashi", "type": "unknown"}]})
        assistant = assistant_for(sample_store, MockClient({"tokyo": one}, delay=0))
        assert await assistant.fill_node("sight") == []
        node = sample_store.get_node("sight")
        assert node.title == "Kappabashi"
        assert node.type is NodeType.NOTE
        assert len(sample_store) == 3

    @pytest.mark.asyncio
    async def test_undated_source_gets_fallback_date(self, sample_store):
        sample_store.update_node("sight", {"date": ""})
        assistant = assistant_for(sample_store, MockClient({"tokyo": TOKYO_STEPS}, delay=0))
        created = await assistant.fill_node("sight")
        assert sample_store.get_node("sight").date == FALLBACK_FILL_DATE
        assert sample_store.get_node(created[0]).date == ""

    @pytest.mark.asyncio
    async def test_empty_content_sends_nothing(self, sample_store):
        client = MockClient(delay=0)
        assistant = assistant_for(sample_store, client)
        assert await assistant.fill_node("note") == []
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_network_failure_leaves_board_unchanged(self, sample_store):
        before = sample_store.snapshot()
        assistant = assistant_for(sample_store, MockClient(delay=0, error=ClientError("down")))
        assert await assistant.fill_node("sight") == []
        assert sample_store.snapshot() == before
        assert len(assistant.pending) == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reply", ["sorry, no idea", '{"steps": []}', '{"steps": "nope"}', ""])
    async def test_unusable_reply_leaves_board_unchanged(self, sample_store, reply):
        before = sample_store.snapshot()
        assistant = assistant_for(sample_store, MockClient({"tokyo": reply}, delay=0))
        assert await assistant.fill_node("sight") == []
        assert sample_store.snapshot() == before

    @pytest.mark.asyncio
    async def test_schema_hint_is_appended(self, sample_store):
        client = MockClient({"tokyo": TOKYO_STEPS}, delay=0)
        await assistant_for(sample_store, client).fill_node("sight")
        assert '"steps"' in client.calls[0]

    @pytest.mark.asyncio
    async def test_pending_while_in_flight(self, sample_store):
        client = GatedClient(TOKYO_STEPS)
        assistant = assistant_for(sample_store, client)

        task = asyncio.create_task(assistant.fill_node("sight"))
        await asyncio.sleep(0)
        assert "sight" in assistant.pending

        client.release.set()
        await task
        assert "sight" not in assistant.pending

    @pytest.mark.asyncio
    async def test_source_deleted_mid_request(self, sample_store):
        """a node deleted while its fill is in flight stays deleted."""
        client = GatedClient(TOKYO_STEPS)
        assistant = assistant_for(sample_store, client)

        task = asyncio.create_task(assistant.fill_node("sight"))
        await asyncio.sleep(0)
        sample_store.delete_node("sight")
        client.release.set()

        assert await task == []
        assert "sight" not in sample_store
        assert len(sample_store) == 2
        assert len(assistant.pending) == 0

    @pytest.mark.asyncio
    async def test_concurrent_fills_are_independent(self):
        store = GraphStore([
            TripNode(id="a", content="kyoto"),
            TripNode(id="b", content="osaka"),
        ])
        client = GatedClient(json.dumps({"steps": [{"title": "done"}]}))
        assistant = assistant_for(store, client)

        tasks = [asyncio.create_task(assistant.fill_node(i)) for i in ("a", "b")]
        await asyncio.sleep(0)
        assert assistant.pending.snapshot() == {"a", "b"}

        client.release.set()
        await asyncio.gather(*tasks)
        assert [n.title for n in store.nodes] == ["done", "done"]
        assert len(assistant.pending) == 0


class TestNextStop:
    """tests for the next-stop workflow."""

    def test_placeholder_is_immediate(self, sample_store):
        """placeholder, edge and pending mark exist before any await."""
        assistant = assistant_for(sample_store, MockClient(delay=0))
        pid = assistant.begin_next_stop("sight")

        placeholder = sample_store.get_node(pid)
        assert placeholder.title == PLACEHOLDER_TITLE
        assert placeholder.x == 100 + STEP_SPACING
        assert abs(placeholder.y - 100) <= NEXT_STOP_JITTER
        assert placeholder.date == "2024-11-01"
        assert sample_store.has_connection("sight", pid)
        assert pid in assistant.pending

    @pytest.mark.asyncio
    async def test_resolve_patches_placeholder(self, sample_store):
        assistant = assistant_for(sample_store, MockClient({"current stop": NEXT_STOP}, delay=0))
        pid = assistant.begin_next_stop("stay")

        assert await assistant.resolve_next_stop(pid, "Ryokan", "")
        node = sample_store.get_node(pid)
        assert node.title == "Ameyoko"
        assert node.type is NodeType.LOCATION  # missing type
        assert node.cost == "¥1500"
        assert "market" in node.image
        assert len(sample_store) == 4
        assert pid not in assistant.pending

    @pytest.mark.asyncio
    async def test_failure_marks_placeholder(self, sample_store):
        assistant = assistant_for(sample_store, MockClient(delay=0, error=ClientError("down")))
        pid = await assistant.suggest_next_stop("sight")
        assert sample_store.get_node(pid).title == FAILED_TITLE
        assert len(assistant.pending) == 0

    @pytest.mark.asyncio
    async def test_placeholder_deleted_mid_request(self, sample_store):
        """a deleted placeholder is never recreated."""
        assistant = assistant_for(sample_store, MockClient({"current stop": NEXT_STOP}, delay=0))
        pid = assistant.begin_next_stop("sight")
        sample_store.delete_node(pid)

        await assistant.resolve_next_stop(pid, "Senso-ji", "")

        assert pid not in sample_store
        assert len(sample_store) == 3
        assert sample_store.connections_touching(pid) == []
        assert len(assistant.pending) == 0

    def test_only_from_places_and_stays(self, sample_store):
        assistant = assistant_for(sample_store, MockClient(delay=0))
        assert assistant.begin_next_stop("note") is None
        assert assistant.begin_next_stop("ghost") is None
        assert len(sample_store) == 3

    @pytest.mark.asyncio
    async def test_default_mock_reply_fills_stop(self, sample_store):
        assistant = assistant_for(sample_store, MockClient(delay=0))
        pid = await assistant.suggest_next_stop("sight")
        node = sample_store.get_node(pid)
        assert node.title == "mock stop"
        assert node.content
        assert node.type is NodeType.LOCATION

    @pytest.mark.asyncio
    async def test_suggest_unknown_source(self, sample_store):
        client = MockClient(delay=0)
        assert await assistant_for(sample_store, client).suggest_next_stop("ghost") is None
        assert client.calls == []


class TestAnalysis:
    """tests for trip analysis."""

    @pytest.mark.asyncio
    async def test_requires_config(self, sample_store):
        client = MockClient(delay=0)
        assistant = assistant_for(sample_store, client)
        assert await assistant.analyze_trip() == CONFIG_REQUIRED_MESSAGE
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_returns_advice(self, sample_store, configured):
        client = MockClient({"itinerary": "1. go early"}, delay=0)
        assistant = assistant_for(sample_store, client, configured)
        before = sample_store.snapshot()

        assert await assistant.analyze_trip() == "1. go early"
        assert "2024-11-01: Senso-ji (¥0)" in client.calls[0]
        assert "date TBD: pack umbrella ()" in client.calls[0]
        assert sample_store.snapshot() == before

    @pytest.mark.asyncio
    async def test_unreachable(self, sample_store, configured):
        assistant = assistant_for(sample_store, MockClient(delay=0, error=ClientError("down")), configured)
        assert await assistant.analyze_trip() == UNREACHABLE_MESSAGE

    @pytest.mark.asyncio
    async def test_empty_reply(self, sample_store, configured):
        assistant = assistant_for(sample_store, GatedClient(""), configured)
        assistant.client.release.set()
        assert await assistant.analyze_trip() == ANALYSIS_FAILED_MESSAGE


class TestTransportErrors:
    """tests for keys and urls the http layer rejects."""

    @pytest.fixture
    def ark(self):
        config = ApiConfig(api_key="sk-密钥", model="m", base_url="https://ark.example/api/v3")
        transport = httpx.MockTransport(lambda r: httpx.Response(200, json={"output_text": TOKYO_STEPS}))
        return ArkClient(config, transport=transport), config

    @pytest.mark.asyncio
    async def test_fill_with_non_ascii_key(self, sample_store, ark):
        client, config = ark
        assistant = assistant_for(sample_store, client, config)
        before = sample_store.snapshot()

        assert await assistant.fill_node("sight") == []
        assert sample_store.snapshot() == before
        assert len(assistant.pending) == 0

    @pytest.mark.asyncio
    async def test_analyze_with_non_ascii_key(self, sample_store, ark):
        client, config = ark
        assistant = assistant_for(sample_store, client, config)
        assert await assistant.analyze_trip() == UNREACHABLE_MESSAGE


class TestGenerate:
    """tests for the shared generation call."""

    @pytest.mark.asyncio
    async def test_passes_instruction_and_config(self, sample_store, configured):
        client = AsyncMock()
        client.complete.return_value = 'ok: {"title": "x"}'
        assistant = assistant_for(sample_store, client, configured)

        result = await assistant.generate("prompt", "system", {"type": "OBJECT"})

        assert result == {"title": "x"}
        prompt, system, config = client.complete.call_args.args
        assert prompt.startswith("prompt\n\n")
        assert system == "system"
        assert config is configured

    @pytest.mark.asyncio
    async def test_unconfigured_client_returns_none(self, sample_store):
        client = AsyncMock()
        client.complete.return_value = None
        assert await assistant_for(sample_store, client).generate("p", "s") is None
