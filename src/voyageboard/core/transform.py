"""coordinate transforms between screen space and board (world) space.

screen = world * scale + pan
world  = (screen - pan) / scale
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace

MIN_SCALE = 0.2
MAX_SCALE = 3.0
ZOOM_SPEED = 0.001  # scale change per wheel delta unit
ZOOM_STEP = 0.1     # zoom in/out buttons

# node card footprint in world units
NODE_WIDTH = 280
NODE_HEIGHT = 200

# minimap: fixed linear map from a bounded world region into a small preview
MINIMAP_WORLD_OFFSET = 2000
MINIMAP_FACTOR = 0.03


@dataclass(frozen=True)
class Point:
    x: float
    y: float

    def __sub__(self, other: Point) -> Point:
        return Point(self.x - other.x, self.y - other.y)

    def __add__(self, other: Point) -> Point:
        return Point(self.x + other.x, self.y + other.y)


def clamp_scale(scale: float) -> float:
    """clamp a zoom factor into [MIN_SCALE, MAX_SCALE]."""
    if math.isnan(scale):
        return 1.0
    return min(max(scale, MIN_SCALE), MAX_SCALE)


@dataclass(frozen=True)
class CanvasTransform:
    """pan offset (screen px) and zoom factor. scale is always clamped."""

    x: float = 0.0
    y: float = 0.0
    scale: float = 1.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "scale", clamp_scale(self.scale))

    def panned(self, dx: float, dy: float) -> CanvasTransform:
        return replace(self, x=self.x + dx, y=self.y + dy)

    def zoomed(self, delta: float) -> CanvasTransform:
        """adjust scale by delta, anchored at the current pan."""
        if not math.isfinite(delta):
            delta = math.copysign(MAX_SCALE, delta) if math.isinf(delta) else 0.0
        return replace(self, scale=self.scale + delta)

    def to_world(self, point: Point) -> Point:
        return to_world(point, self)

    def to_screen(self, point: Point) -> Point:
        return to_screen(point, self)

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "scale": self.scale}


def to_world(screen: Point, transform: CanvasTransform) -> Point:
    return Point(
        (screen.x - transform.x) / transform.scale,
        (screen.y - transform.y) / transform.scale,
    )


def to_screen(world: Point, transform: CanvasTransform) -> Point:
    return Point(
        world.x * transform.scale + transform.x,
        world.y * transform.scale + transform.y,
    )


def viewport_center(transform: CanvasTransform, width: float, height: float) -> Point:
    """world position at the centre of a viewport of the given screen size."""
    return to_world(Point(width / 2, height / 2), transform)


def new_node_origin(transform: CanvasTransform, width: float, height: float) -> Point:
    """top-left for a new node card so that it sits centred in the viewport."""
    center = viewport_center(transform, width, height)
    return Point(center.x - NODE_WIDTH / 2, center.y - NODE_HEIGHT / 2)


@dataclass(frozen=True)
class MinimapRect:
    left: float
    top: float
    width: float
    height: float


def minimap_point(world: Point) -> Point:
    """project a world point into minimap coordinates."""
    return Point(
        (world.x + MINIMAP_WORLD_OFFSET) * MINIMAP_FACTOR,
        (world.y + MINIMAP_WORLD_OFFSET) * MINIMAP_FACTOR,
    )


def minimap_viewport(transform: CanvasTransform, width: float, height: float) -> MinimapRect:
    """the visible viewport as a rectangle in minimap coordinates."""
    origin = minimap_point(Point(-transform.x, -transform.y))
    return MinimapRect(
        left=origin.x,
        top=origin.y,
        width=width / transform.scale * MINIMAP_FACTOR,
        height=height / transform.scale * MINIMAP_FACTOR,
    )
