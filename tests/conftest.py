"""pytest fixtures for voyageboard tests."""

import asyncio
import tempfile
from pathlib import Path
from typing import Optional

import pytest

from voyageboard.core.config import ApiConfig
from voyageboard.core.models import NodeType, TripNode
from voyageboard.core.store import GraphStore


CONFIGURED = ApiConfig(api_key="sk-test-123456789", model="ep-test", base_url="https://ark.example/api/v3")


class GatedClient:
    """client that blocks until released, to observe in-flight state."""

    def __init__(self, response: Optional[str] = None, error: Optional[Exception] = None):
        self.response = response
        self.error = error
        self.release = asyncio.Event()
        self.calls: list[str] = []

    async def complete(self, prompt, system_instruction="", config=None):
        self.calls.append(prompt)
        await self.release.wait()
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def temp_dir():
    """temporary directory that cleans up after test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def configured():
    return CONFIGURED


@pytest.fixture
def sample_store():
    """store with a sight linked to a stay, plus a loose note."""
    sight = TripNode(
        id="sight",
        x=100,
        y=100,
        type=NodeType.LOCATION,
        title="Senso-ji",
        content="Tokyo 2-day trip",
        date="2024-11-01",
        cost="¥0",
    )
    stay = TripNode(id="stay", x=600, y=200, type=NodeType.STAY, title="Ryokan", cost="¥12,000")
    note = TripNode(id="note", x=100, y=500, type=NodeType.NOTE, title="pack umbrella")
    store = GraphStore([sight, stay, note])
    store.add_connection("sight", "stay")
    return store
