"""fastapi server for voyageboard.

exposes the board, the interaction transform and the ai workflows as REST
endpoints for a browser frontend.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from ..core.aggregation import budget, itinerary, render_roadbook, visible_edges
from ..core.interaction import NEW_NODE_TITLE
from ..core.models import Connection, NodeType, TripNode
from ..core.persistence import StorageError
from ..core.state import AppState
from ..core.transform import CanvasTransform

DEFAULT_VIEWPORT = (1280, 800)


# --- pydantic models for api ---

class NodeCreate(BaseModel):
    """request to add a node; without x/y it lands in the viewport centre."""
    type: str = "note"
    x: Optional[float] = None
    y: Optional[float] = None
    viewport_width: float = DEFAULT_VIEWPORT[0]
    viewport_height: float = DEFAULT_VIEWPORT[1]
    title: Optional[str] = None
    content: str = ""
    date: str = ""
    cost: str = ""


class NodePatch(BaseModel):
    """partial node update."""
    x: Optional[float] = None
    y: Optional[float] = None
    type: Optional[str] = None
    title: Optional[str] = None
    content: Optional[str] = None
    date: Optional[str] = None
    cost: Optional[str] = None
    weather: Optional[int] = None
    image: Optional[str] = None


class ConnectionCreate(BaseModel):
    """request to link two nodes."""
    from_id: str
    to_id: str


class ConfigUpdate(BaseModel):
    """settings dialog fields. blank fields keep their current value."""
    apiKey: str = ""
    model: str = ""
    baseUrl: str = ""


class ZoomRequest(BaseModel):
    delta: float


class NodeResponse(BaseModel):
    """node in api response."""
    id: str
    x: float
    y: float
    type: str
    title: str
    content: str
    date: str
    cost: str
    weather: int
    image: Optional[str]
    pending: bool = False

    @classmethod
    def from_node(cls, node: TripNode, pending: bool = False) -> "NodeResponse":
        return cls(**node.to_dict(), pending=pending)


class ConnectionResponse(BaseModel):
    id: str
    from_id: str
    to_id: str
    distance_km: Optional[int] = None

    @classmethod
    def from_connection(cls, conn: Connection, distance_km: Optional[int] = None) -> "ConnectionResponse":
        return cls(id=conn.id, from_id=conn.from_id, to_id=conn.to_id, distance_km=distance_km)


class TransformResponse(BaseModel):
    x: float
    y: float
    scale: float

    @classmethod
    def from_transform(cls, transform: CanvasTransform) -> "TransformResponse":
        return cls(**transform.to_dict())


class BoardResponse(BaseModel):
    """board in api response. dangling connections are left out."""
    nodes: list[NodeResponse]
    connections: list[ConnectionResponse]
    pending: list[str]
    transform: TransformResponse
    connecting_from: Optional[str] = None


class BudgetResponse(BaseModel):
    buckets: dict[str, float]
    total: float


class FillResponse(BaseModel):
    node: Optional[NodeResponse]
    created: list[NodeResponse]


class AnalysisResponse(BaseModel):
    advice: str


# --- helpers ---

def get_state(request: Request) -> AppState:
    return request.app.state.voyage


def _node_response(state: AppState, node: TripNode) -> NodeResponse:
    return NodeResponse.from_node(node, pending=node.id in state.assistant.pending)


def _board_response(state: AppState) -> BoardResponse:
    snapshot = state.store.snapshot()
    return BoardResponse(
        nodes=[_node_response(state, n) for n in snapshot.nodes],
        connections=[
            ConnectionResponse.from_connection(conn, geometry.distance_km)
            for conn, geometry in visible_edges(snapshot.nodes, snapshot.connections)
        ],
        pending=list(state.assistant.pending),
        transform=TransformResponse.from_transform(state.interaction.transform),
        connecting_from=state.interaction.connecting_source,
    )


def _require_node(state: AppState, node_id: str) -> TripNode:
    node = state.store.get_node(node_id)
    if node is None:
        raise HTTPException(status_code=404, detail=f"node not found: {node_id}")
    return node


# --- app ---

def create_app(state: Optional[AppState] = None) -> FastAPI:
    """build the api around one application state."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        # shutdown: wait for background suggestions, then save pending changes
        tasks = app.state.background
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        app.state.voyage.close()

    app = FastAPI(
        title="voyageboard api",
        description="REST API for the voyageboard trip-planning whiteboard",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.voyage = state or AppState()
    app.state.background = set()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # tighten in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(_build_router())
    return app


def _build_router() -> APIRouter:
    router = APIRouter()

    @router.get("/health")
    async def health():
        """health check."""
        return {"status": "ok"}

    # --- board ---

    @router.get("/board", response_model=BoardResponse)
    async def get_board(state: AppState = Depends(get_state)):
        return _board_response(state)

    @router.post("/nodes", response_model=NodeResponse)
    async def create_node(req: NodeCreate, state: AppState = Depends(get_state)):
        """add a node from the toolbar."""
        node_type = NodeType.normalize(req.type)
        if req.x is None or req.y is None:
            node = state.interaction.add_node(node_type, req.viewport_width, req.viewport_height)
        else:
            node = TripNode.create(node_type, x=req.x, y=req.y, title=NEW_NODE_TITLE)
            state.store.add_node(node)

        fields = req.model_dump(include={"title", "content", "date", "cost"}, exclude_none=True)
        state.store.update_node(node.id, fields)
        return _node_response(state, _require_node(state, node.id))

    @router.get("/nodes/{node_id}", response_model=NodeResponse)
    async def get_node(node_id: str, state: AppState = Depends(get_state)):
        return _node_response(state, _require_node(state, node_id))

    @router.patch("/nodes/{node_id}", response_model=BoardResponse)
    async def update_node(node_id: str, req: NodePatch, state: AppState = Depends(get_state)):
        """edit node fields. unknown ids are a no-op."""
        state.store.update_node(node_id, req.model_dump(exclude_unset=True, exclude_none=True))
        return _board_response(state)

    @router.delete("/nodes/{node_id}", response_model=BoardResponse)
    async def delete_node(node_id: str, state: AppState = Depends(get_state)):
        """delete a node and its connections. unknown ids are a no-op."""
        state.store.delete_node(node_id)
        return _board_response(state)

    @router.post("/connections", response_model=BoardResponse)
    async def add_connection(req: ConnectionCreate, state: AppState = Depends(get_state)):
        """link two nodes; an existing pair (either direction) is left alone."""
        state.store.add_connection(req.from_id, req.to_id)
        return _board_response(state)

    @router.delete("/nodes/{node_id}/connections", response_model=BoardResponse)
    async def delete_connections(node_id: str, state: AppState = Depends(get_state)):
        state.store.delete_connections_touching(node_id)
        return _board_response(state)

    # --- ai ---

    @router.post("/nodes/{node_id}/fill", response_model=FillResponse)
    async def fill_node(node_id: str, state: AppState = Depends(get_state)):
        """expand the node's content into one or more chained stops."""
        _require_node(state, node_id)
        created_ids = await state.assistant.fill_node(node_id)
        node = state.store.get_node(node_id)
        created = [state.store.get_node(nid) for nid in created_ids]
        return FillResponse(
            node=_node_response(state, node) if node else None,
            created=[_node_response(state, n) for n in created if n],
        )

    @router.post("/nodes/{node_id}/next-stop", response_model=NodeResponse)
    async def next_stop(
        node_id: str,
        request: Request,
        wait: bool = True,
        state: AppState = Depends(get_state),
    ):
        """suggest a next stop. with wait=false the placeholder comes back at once
        and is patched when the model answers."""
        source = _require_node(state, node_id)
        placeholder_id = state.assistant.begin_next_stop(node_id)
        if placeholder_id is None:
            raise HTTPException(status_code=400, detail="next stop is only offered for places and stays")

        resolve = state.assistant.resolve_next_stop(placeholder_id, source.title, source.content)
        if wait:
            await resolve
        else:
            tasks = request.app.state.background
            task = asyncio.create_task(resolve)
            tasks.add(task)
            task.add_done_callback(tasks.discard)

        node = state.store.get_node(placeholder_id)
        if node is None:
            raise HTTPException(status_code=404, detail=f"node not found: {placeholder_id}")
        return _node_response(state, node)

    @router.post("/analyze", response_model=AnalysisResponse)
    async def analyze(state: AppState = Depends(get_state)):
        """three pieces of advice on the whole trip."""
        return AnalysisResponse(advice=await state.analyze())

    @router.get("/pending", response_model=list[str])
    async def pending(state: AppState = Depends(get_state)):
        return list(state.assistant.pending)

    # --- derived views ---

    @router.get("/itinerary", response_model=list[NodeResponse])
    async def get_itinerary(state: AppState = Depends(get_state)):
        return [_node_response(state, n) for n in itinerary(state.store.nodes)]

    @router.get("/budget", response_model=BudgetResponse)
    async def get_budget(state: AppState = Depends(get_state)):
        return BudgetResponse(**budget(state.store.nodes).to_dict())

    @router.get("/export/markdown", response_class=PlainTextResponse)
    async def export_markdown(state: AppState = Depends(get_state)):
        """export the roadbook as markdown."""
        return render_roadbook(state.store.nodes, state.advice)

    # --- settings ---

    @router.get("/config")
    async def get_config(state: AppState = Depends(get_state)):
        return {**state.config.redacted(), "configured": state.config.is_configured}

    @router.put("/config")
    async def put_config(req: ConfigUpdate, state: AppState = Depends(get_state)):
        try:
            config = state.update_config(req.model_dump())
        except StorageError as e:
            raise HTTPException(status_code=500, detail=str(e))
        return {**config.redacted(), "configured": config.is_configured}

    # --- view transform ---

    @router.get("/transform", response_model=TransformResponse)
    async def get_transform(state: AppState = Depends(get_state)):
        return TransformResponse.from_transform(state.interaction.transform)

    @router.post("/transform/zoom", response_model=TransformResponse)
    async def zoom(req: ZoomRequest, state: AppState = Depends(get_state)):
        """adjust zoom by delta (clamped)."""
        interaction = state.interaction
        interaction.transform = interaction.transform.zoomed(req.delta)
        return TransformResponse.from_transform(interaction.transform)

    @router.post("/transform/reset", response_model=TransformResponse)
    async def reset_transform(state: AppState = Depends(get_state)):
        state.interaction.reset_view()
        return TransformResponse.from_transform(state.interaction.transform)

    return router


# --- entrypoint ---

def main(argv: Optional[list[str]] = None):
    """run the api server."""
    import argparse
    import os
    import uvicorn

    parser = argparse.ArgumentParser(description="voyageboard api server")
    parser.add_argument("--host", default="127.0.0.1", help="host to bind")
    parser.add_argument("--port", "-p", type=int, default=8000, help="port to bind")
    parser.add_argument("--data-dir", "-d", help="storage directory (default: ~/.voyageboard)")
    parser.add_argument("--mock", "-m", action="store_true", help="use mock client")
    parser.add_argument("--reload", action="store_true", help="enable auto-reload")

    args = parser.parse_args(argv)

    # the factory runs in the server process, so settings travel via env
    if args.data_dir:
        os.environ["VOYAGE_DATA_DIR"] = args.data_dir
    if args.mock:
        os.environ["VOYAGE_MOCK"] = "1"

    uvicorn.run(
        "voyageboard.api.server:create_app_from_env",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
    )


def create_app_from_env() -> FastAPI:
    """uvicorn factory: state configured from environment variables."""
    import os

    return create_app(AppState(mock=os.environ.get("VOYAGE_MOCK") == "1"))


if __name__ == "__main__":
    main()
