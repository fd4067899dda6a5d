"""prompt text, response schemas and lenient parsing for ai-generated nodes.

the model is asked for json, but replies are treated as loosely typed text:
strict parse first, then the first brace-delimited object embedded in prose.
"""

from __future__ import annotations

import json
import random
from typing import Iterable, Optional
from urllib.parse import quote

from .config import IMAGE_SERVICE_BASE
from .models import TripNode

NODE_TYPE_VALUES = ["location", "stay", "transport", "note"]

STEP_PROPERTIES = {
    "title": {"type": "STRING"},
    "content": {"type": "STRING"},
    "cost": {"type": "STRING"},
    "type": {"type": "STRING", "enum": NODE_TYPE_VALUES},
    "image_keyword": {"type": "STRING"},
}

SINGLE_NODE_SCHEMA = {
    "type": "OBJECT",
    "properties": STEP_PROPERTIES,
}

MULTI_STEP_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "steps": {
            "type": "ARRAY",
            "items": {"type": "OBJECT", "properties": STEP_PROPERTIES},
        },
    },
}

FILL_SYSTEM_INSTRUCTION = """You are a professional travel planning assistant.
Reply strictly as JSON containing a "steps" array.
Each object in the array has these fields:
- title: name of the place
- content: short description
- cost: estimated spend (e.g. "¥60")
- type: "location" | "stay" | "transport" | "note"
- image_keyword: English keyword used to generate a cover image"""

NEXT_STOP_SYSTEM_INSTRUCTION = """You are a seasoned tour guide. Reply as JSON with exactly ONE recommended place.
JSON fields: title, content, cost, type (location/stay/transport), image_keyword (English)."""

ANALYSIS_SYSTEM_INSTRUCTION = "You are a travel planning consultant. Give 3 short pieces of advice."

SCHEMA_HINT_HEADER = "Output strictly according to this JSON Schema (no extra text):"

UNDATED_LABEL = "date TBD"


def build_fill_prompt(content: str) -> str:
    return f"""User request: "{content}".
Decide whether this is a query about a single place or a request spanning several steps/places.
If it is an itinerary (e.g. "3 days in Beijing", "dinner then a movie", "pandas and hotpot in Chengdu"), split it into concrete node steps (2-5 steps suggested).
If it is a single query (e.g. "the Forbidden City", "a coffee shop nearby"), return one step only."""


def build_next_stop_prompt(title: str, content: str) -> str:
    return f"""The current stop is: "{title}" ({content}).
Recommend **one** logical next stop.
Requirements: a moderate distance away and on the way."""


def build_trip_summary(nodes: Iterable[TripNode]) -> str:
    """one `date: title (cost)` line per node, in board order."""
    return "\n".join(f"{n.date or UNDATED_LABEL}: {n.title} ({n.cost})" for n in nodes)


def build_analysis_prompt(summary: str) -> str:
    return f"Analyse the following travel itinerary and give 3 short, sharp suggestions.\n\nItinerary:\n{summary}"


def build_schema_hint(schema: Optional[dict]) -> str:
    """suffix appended to the user prompt asking for schema-shaped json."""
    if not schema:
        return ""
    return f"\n\n{SCHEMA_HINT_HEADER}\n{json.dumps(schema, ensure_ascii=False)}"


def extract_json(raw_text: Optional[str]) -> Optional[dict]:
    """parse a json object out of model output. returns None when there is none."""
    if not raw_text:
        return None

    try:
        parsed = json.loads(raw_text)
    except json.JSONDecodeError:
        parsed = None
    if isinstance(parsed, dict):
        return parsed

    # first top-level object embedded in prose or a code fence
    decoder = json.JSONDecoder()
    start = raw_text.find("{")
    while start != -1:
        try:
            candidate, _ = decoder.raw_decode(raw_text, start)
        except json.JSONDecodeError:
            candidate = None
        if isinstance(candidate, dict):
            return candidate
        start = raw_text.find("{", start + 1)
    return None


def build_image_url(keyword: Optional[str], rng: Optional[random.Random] = None) -> str:
    """cover image url for a keyword on the image service."""
    rng = rng or random
    keyword = keyword.strip() if isinstance(keyword, str) and keyword.strip() else "travel"
    return (
        f"{IMAGE_SERVICE_BASE}/{quote(keyword, safe='')}"
        f"?width=600&height=400&nologo=true&seed={rng.random()}"
    )
