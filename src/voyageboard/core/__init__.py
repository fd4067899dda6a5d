"""core primitives shared between frontends."""

from .models import (
    NodeType,
    TripNode,
    Connection,
    Weather,
    WEATHER_TYPES,
    parse_cost,
)
from .transform import CanvasTransform, Point, to_world, to_screen, clamp_scale
from .store import GraphStore, BoardSnapshot
from .interaction import BoardInteraction, PointerEvent, Target
from .config import ApiConfig
from .client import ArkClient, MockClient, ClientProtocol, ClientError
from .orchestrator import TripAssistant, PendingSet
from .aggregation import itinerary, budget, BudgetSummary, visible_edges, render_roadbook
from .persistence import LocalStore, StorageError
from .state import AppState

__all__ = [
    # models
    "NodeType",
    "TripNode",
    "Connection",
    "Weather",
    "WEATHER_TYPES",
    "parse_cost",
    # transform
    "CanvasTransform",
    "Point",
    "to_world",
    "to_screen",
    "clamp_scale",
    # store
    "GraphStore",
    "BoardSnapshot",
    # interaction
    "BoardInteraction",
    "PointerEvent",
    "Target",
    # client
    "ApiConfig",
    "ArkClient",
    "MockClient",
    "ClientProtocol",
    "ClientError",
    # orchestration
    "TripAssistant",
    "PendingSet",
    # views
    "itinerary",
    "budget",
    "BudgetSummary",
    "visible_edges",
    "render_roadbook",
    # persistence
    "LocalStore",
    "StorageError",
    # state
    "AppState",
]
