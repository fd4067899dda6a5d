"""pointer interaction state machine for the board.

states: idle, panning, dragging a node, connecting from a node. one gesture
at a time; a pointer-down that arrives mid-gesture is ignored. gestures
never raise: a node that vanishes mid-drag just ends the drag.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from .models import NodeType, TripNode
from .store import GraphStore
from .transform import (
    CanvasTransform,
    Point,
    ZOOM_SPEED,
    ZOOM_STEP,
    new_node_origin,
)

NEW_NODE_TITLE = "Untitled stop"

MIDDLE_BUTTON = 1


class Target(Enum):
    CANVAS = "canvas"            # empty board background
    NODE_HANDLE = "node_handle"  # drag handle (card header)
    NODE_BODY = "node_body"      # fields, buttons: no gesture


@dataclass(frozen=True)
class PointerEvent:
    """pointer position in viewport coordinates plus what it landed on."""

    x: float
    y: float
    target: Target = Target.CANVAS
    node_id: Optional[str] = None
    button: int = 0
    alt: bool = False

    @property
    def point(self) -> Point:
        return Point(self.x, self.y)

    @property
    def wants_pan(self) -> bool:
        return self.button == MIDDLE_BUTTON or (self.button == 0 and self.alt)


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Panning:
    last: Point


@dataclass(frozen=True)
class DraggingNode:
    node_id: str
    grab_offset: Point  # pointer minus node origin, world units


@dataclass(frozen=True)
class Connecting:
    source_id: str


GestureState = Union[Idle, Panning, DraggingNode, Connecting]


class BoardInteraction:
    """translates pointer and wheel input into transform and store changes."""

    def __init__(self, store: GraphStore, transform: Optional[CanvasTransform] = None):
        self.store = store
        self.transform = transform or CanvasTransform()
        self.state: GestureState = Idle()

    @property
    def connecting_source(self) -> Optional[str]:
        return self.state.source_id if isinstance(self.state, Connecting) else None

    # --- pointer ---

    def pointer_down(self, event: PointerEvent) -> None:
        if isinstance(self.state, Connecting):
            if event.target is Target.CANVAS:
                self.state = Idle()
            return
        if not isinstance(self.state, Idle):
            return

        if event.wants_pan or event.target is Target.CANVAS:
            self.state = Panning(last=event.point)
        elif event.target is Target.NODE_HANDLE and event.node_id:
            self._start_drag(event)

    def pointer_move(self, event: PointerEvent) -> None:
        state = self.state
        if isinstance(state, Panning):
            delta = event.point - state.last
            self.transform = self.transform.panned(delta.x, delta.y)
            self.state = Panning(last=event.point)
        elif isinstance(state, DraggingNode):
            world = self.transform.to_world(event.point)
            moved = self.store.move_node(
                state.node_id,
                world.x - state.grab_offset.x,
                world.y - state.grab_offset.y,
            )
            if not moved:
                self.state = Idle()

    def pointer_up(self) -> None:
        if isinstance(self.state, (Panning, DraggingNode)):
            self.state = Idle()

    pointer_leave = pointer_up

    def _start_drag(self, event: PointerEvent) -> None:
        node = self.store.get_node(event.node_id)
        if node is None:
            return
        world = self.transform.to_world(event.point)
        offset = world - Point(node.x, node.y)
        self.state = DraggingNode(node_id=node.id, grab_offset=offset)

    # --- connecting ---

    def click_link(self, node_id: str) -> None:
        """click on a node's link affordance."""
        state = self.state
        if isinstance(state, Connecting):
            if state.source_id != node_id and self.store.has_node(node_id):
                self.store.add_connection(state.source_id, node_id)
            self.state = Idle()
        elif isinstance(state, Idle) and self.store.has_node(node_id):
            self.state = Connecting(source_id=node_id)

    def cancel(self) -> None:
        self.state = Idle()

    # --- wheel / zoom ---

    def wheel(self, delta_x: float, delta_y: float, zoom_modifier: bool = False) -> None:
        """modifier+wheel zooms, plain wheel pans."""
        if zoom_modifier:
            self.transform = self.transform.zoomed(-delta_y * ZOOM_SPEED)
        else:
            self.transform = self.transform.panned(-delta_x, -delta_y)

    def zoom_in(self) -> None:
        self.transform = self.transform.zoomed(ZOOM_STEP)

    def zoom_out(self) -> None:
        self.transform = self.transform.zoomed(-ZOOM_STEP)

    def reset_view(self) -> None:
        self.transform = CanvasTransform()

    # --- toolbar ---

    def add_node(self, node_type: NodeType, viewport_width: float, viewport_height: float) -> TripNode:
        """add a blank node centred in the current viewport."""
        origin = new_node_origin(self.transform, viewport_width, viewport_height)
        node = TripNode.create(node_type, x=origin.x, y=origin.y, title=NEW_NODE_TITLE)
        self.store.add_node(node)
        return node
