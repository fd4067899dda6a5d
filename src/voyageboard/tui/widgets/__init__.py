"""textual widgets for voyageboard."""

from .board import BoardView, BoardChanged, NodeSelected
from .minimap import Minimap
from .itinerary import ItineraryPanel, StopWidget
from .spinner import PendingSpinner
from .forms import NodeEditScreen, SettingsScreen

__all__ = [
    "BoardView",
    "BoardChanged",
    "NodeSelected",
    "Minimap",
    "ItineraryPanel",
    "StopWidget",
    "PendingSpinner",
    "NodeEditScreen",
    "SettingsScreen",
]
