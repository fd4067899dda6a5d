"""ai orchestration: turn free-text intent into board nodes.

three workflows share one generation client:
- fill: expand a node's content into one or more chained steps
- next stop: append one suggested successor, shown as a placeholder first
- trip analysis: free-text advice over the whole board, no mutation

every request carries its target node id. before applying a result the
graph store is asked whether that node still exists; a node deleted while
its request was in flight stays deleted.
"""

from __future__ import annotations

import logging
import random
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

from .client import ClientError, ClientProtocol
from .config import ApiConfig
from .models import NodeType, TripNode, WEATHER_TYPES
from .prompts import (
    ANALYSIS_SYSTEM_INSTRUCTION,
    FILL_SYSTEM_INSTRUCTION,
    MULTI_STEP_SCHEMA,
    NEXT_STOP_SYSTEM_INSTRUCTION,
    SINGLE_NODE_SCHEMA,
    build_analysis_prompt,
    build_fill_prompt,
    build_image_url,
    build_next_stop_prompt,
    build_schema_hint,
    build_trip_summary,
    extract_json,
)
from .store import GraphStore

STEP_SPACING = 380      # horizontal gap between generated nodes
FILL_JITTER = 30        # +/- vertical jitter for fill steps
NEXT_STOP_JITTER = 50   # +/- vertical jitter for next-stop placeholders
FALLBACK_FILL_DATE = "2024-10-02"

NEXT_STOP_TYPES = frozenset({NodeType.LOCATION, NodeType.STAY})

PLACEHOLDER_TITLE = "AI thinking..."
PLACEHOLDER_CONTENT = "Planning the best route..."
PLACEHOLDER_COST = "..."
FAILED_TITLE = "Generation failed"
FAILED_CONTENT = "Please try again"

CONFIG_REQUIRED_MESSAGE = "Please fill in the ARK API Key / Model / Base URL in settings first."
ANALYSIS_FAILED_MESSAGE = "Analysis failed, please try again later."
UNREACHABLE_MESSAGE = "Could not reach the AI assistant."


class PendingSet:
    """node ids awaiting an ai result. drives loading state only."""

    def __init__(self) -> None:
        self._ids: set[str] = set()

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._ids))

    def add(self, node_id: str) -> None:
        self._ids.add(node_id)

    def discard(self, node_id: str) -> None:
        self._ids.discard(node_id)

    def snapshot(self) -> frozenset[str]:
        return frozenset(self._ids)

    @contextmanager
    def track(self, node_id: str) -> Iterator[None]:
        """mark node_id pending for the duration of the block, whatever the outcome."""
        self.add(node_id)
        try:
            yield
        finally:
            self.discard(node_id)


@dataclass(frozen=True)
class GeneratedStep:
    """one step of a model reply, coerced to text fields."""

    title: str
    content: str
    cost: str
    type: Optional[str]
    image_keyword: str

    @classmethod
    def from_raw(cls, raw: object) -> Optional[GeneratedStep]:
        if not isinstance(raw, dict):
            return None
        return cls(
            title=_as_text(raw.get("title")),
            content=_as_text(raw.get("content")),
            cost=_as_text(raw.get("cost")),
            type=raw.get("type") if isinstance(raw.get("type"), str) else None,
            image_keyword=_as_text(raw.get("image_keyword")),
        )


def _as_text(value: object) -> str:
    if value is None or value is False:
        return ""
    return value if isinstance(value, str) else str(value)


class TripAssistant:
    """runs the ai workflows against one graph store."""

    def __init__(
        self,
        store: GraphStore,
        client: ClientProtocol,
        config: Optional[ApiConfig] = None,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.client = client
        self.config = config or ApiConfig()
        self.rng = rng or random.Random()
        self.pending = PendingSet()

    async def generate(
        self,
        prompt: str,
        system_instruction: str,
        schema: Optional[dict] = None,
    ) -> Optional[dict]:
        """call the model and parse its reply. None means "no result"."""
        full_prompt = f"{prompt}{build_schema_hint(schema)}"
        try:
            text = await self.client.complete(full_prompt, system_instruction, self.config)
        except ClientError as e:
            logging.error(f"AI generation failed: {e}")
            return None
        result = extract_json(text)
        if text and result is None:
            logging.warning("AI reply contained no json object")
        return result

    # --- fill ---

    async def fill_node(self, node_id: str) -> list[str]:
        """expand a node's content into steps.

        step 0 overwrites the node itself; each further step becomes a new node
        chained to the previous one. returns the ids of the new nodes
        ([] when nothing was generated).
        """
        source = self.store.get_node(node_id)
        if source is None or not source.content.strip():
            return []

        with self.pending.track(node_id):
            result = await self.generate(
                build_fill_prompt(source.content),
                FILL_SYSTEM_INSTRUCTION,
                MULTI_STEP_SCHEMA,
            )
            steps = _parse_steps(result)
            if not steps:
                return []

            current = self.store.get_node(node_id)
            if current is None:
                logging.info(f"node {node_id} was deleted during fill, discarding result")
                return []

            return self._apply_steps(current, steps)

    def _apply_steps(self, source: TripNode, steps: list[GeneratedStep]) -> list[str]:
        first = steps[0]
        self.store.update_node(source.id, {
            "title": first.title,
            "type": NodeType.normalize(first.type),
            "content": first.content,
            "cost": first.cost,
            "date": source.date or FALLBACK_FILL_DATE,
            "image": build_image_url(first.image_keyword, self.rng),
            "weather": self._random_weather(),
        })

        created: list[str] = []
        previous_id = source.id
        for i, step in enumerate(steps[1:], start=1):
            node = TripNode.create(
                NodeType.normalize(step.type),
                x=source.x + i * STEP_SPACING,
                y=source.y + self.rng.uniform(-FILL_JITTER, FILL_JITTER),
                title=step.title,
                content=step.content,
                cost=step.cost,
                date=source.date,
                image=build_image_url(step.image_keyword, self.rng),
                weather=self._random_weather(),
            )
            self.store.add_node(node)
            self.store.add_connection(previous_id, node.id)
            created.append(node.id)
            previous_id = node.id
        return created

    # --- next stop ---

    def begin_next_stop(self, source_id: str) -> Optional[str]:
        """place a pending placeholder after the source node.

        synchronous, so the placeholder is on the board before any network
        round-trip. returns the placeholder id, or None if the source is gone
        or is not a place/stay.
        """
        source = self.store.get_node(source_id)
        if source is None or source.type not in NEXT_STOP_TYPES:
            return None

        placeholder = TripNode.create(
            NodeType.NOTE,
            x=source.x + STEP_SPACING,
            y=source.y + self.rng.uniform(-NEXT_STOP_JITTER, NEXT_STOP_JITTER),
            title=PLACEHOLDER_TITLE,
            content=PLACEHOLDER_CONTENT,
            date=source.date,
            cost=PLACEHOLDER_COST,
            weather=0,
            image=None,
        )
        self.store.add_node(placeholder)
        self.store.add_connection(source_id, placeholder.id)
        self.pending.add(placeholder.id)
        return placeholder.id

    async def resolve_next_stop(self, placeholder_id: str, title: str, content: str) -> bool:
        """ask for the suggestion and patch the placeholder in place.

        returns True if the model produced a suggestion.
        """
        try:
            result = await self.generate(
                build_next_stop_prompt(title, content),
                NEXT_STOP_SYSTEM_INSTRUCTION,
                SINGLE_NODE_SCHEMA,
            )
            step = GeneratedStep.from_raw(result)

            if not self.store.has_node(placeholder_id):
                logging.info(f"placeholder {placeholder_id} was deleted, discarding suggestion")
                return step is not None

            if step is None:
                self.store.update_node(placeholder_id, {
                    "title": FAILED_TITLE,
                    "content": FAILED_CONTENT,
                })
                return False

            self.store.update_node(placeholder_id, {
                "title": step.title,
                "type": NodeType.normalize(step.type, default=NodeType.LOCATION),
                "content": step.content,
                "cost": step.cost,
                "image": build_image_url(step.image_keyword, self.rng),
            })
            return True
        finally:
            self.pending.discard(placeholder_id)

    async def suggest_next_stop(self, source_id: str) -> Optional[str]:
        """begin and resolve a next-stop suggestion. returns the placeholder id."""
        source = self.store.get_node(source_id)
        placeholder_id = self.begin_next_stop(source_id)
        if placeholder_id is None or source is None:
            return None
        await self.resolve_next_stop(placeholder_id, source.title, source.content)
        return placeholder_id

    # --- trip analysis ---

    async def analyze_trip(self) -> str:
        """three pieces of advice on the whole itinerary, as plain text."""
        if not self.config.is_configured:
            return CONFIG_REQUIRED_MESSAGE

        summary = build_trip_summary(self.store.nodes)
        try:
            advice = await self.client.complete(
                build_analysis_prompt(summary),
                ANALYSIS_SYSTEM_INSTRUCTION,
                self.config,
            )
        except ClientError as e:
            logging.error(f"trip analysis failed: {e}")
            return UNREACHABLE_MESSAGE
        return advice or ANALYSIS_FAILED_MESSAGE

    def _random_weather(self) -> int:
        return self.rng.randrange(len(WEATHER_TYPES))


def _parse_steps(result: Optional[dict]) -> list[GeneratedStep]:
    if not result:
        return []
    raw_steps = result.get("steps")
    if not isinstance(raw_steps, list):
        return []
    parsed = (GeneratedStep.from_raw(raw) for raw in raw_steps)
    return [step for step in parsed if step is not None]
