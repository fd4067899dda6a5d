"""application state container.

created once by the frontend (tui or api server) at startup and passed to
whatever needs it. owns the store, the view transform and the ai assistant.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .client import ArkClient, ClientProtocol, MockClient
from .config import ApiConfig, get_data_dir
from .interaction import BoardInteraction
from .orchestrator import TripAssistant
from .persistence import (
    LocalStore,
    StorageError,
    load_api_config,
    load_connections,
    load_nodes,
    save_api_config,
    save_board,
)
from .store import DEFAULT_DEBOUNCE, GraphStore


class AppState:
    """shared application state with debounced board saves."""

    def __init__(
        self,
        data_dir: Optional[str | Path] = None,
        mock: bool = False,
        client: Optional[ClientProtocol] = None,
        debounce: float = DEFAULT_DEBOUNCE,
        env_defaults: Optional[ApiConfig] = None,
    ):
        self.local = LocalStore(get_data_dir(str(data_dir) if data_dir else None))
        self.mock = mock
        self.config = load_api_config(self.local, env_defaults)

        self.store = GraphStore(
            load_nodes(self.local),
            load_connections(self.local),
            on_flush=self._save_board,
            debounce=debounce,
        )
        self.interaction = BoardInteraction(self.store)

        if client is None:
            client = MockClient() if mock else ArkClient(self.config)
        self.client = client
        self.assistant = TripAssistant(self.store, client, self.config)

        self.advice = ""
        self.analyzing = False

    def update_config(self, fields: dict) -> ApiConfig:
        """merge user-entered settings and persist them immediately.

        the new settings apply even when the write fails (StorageError).
        """
        self.config = self.config.merged(fields)
        self.assistant.config = self.config
        if isinstance(self.client, ArkClient):
            self.client.config = self.config
        try:
            save_api_config(self.local, self.config)
        except OSError as e:
            logging.error(f"settings write failed: {e}")
            raise StorageError(f"settings not saved: {e}") from e
        return self.config

    async def analyze(self) -> str:
        self.analyzing = True
        self.advice = ""
        try:
            self.advice = await self.assistant.analyze_trip()
        finally:
            self.analyzing = False
        return self.advice

    def close(self) -> None:
        """flush pending board writes."""
        self.store.close()

    def _save_board(self, nodes, connections) -> None:
        save_board(self.local, nodes, connections)
        logging.debug(f"board saved: {len(nodes)} nodes, {len(connections)} connections")
