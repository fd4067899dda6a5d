"""model endpoint configuration.

defaults come from the environment; a persisted record may override them
field by field.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

DEFAULT_API_BASE = "https://ark.cn-beijing.volces.com/api/v3"
DEFAULT_TIMEOUT = 60.0  # seconds

IMAGE_SERVICE_BASE = "https://image.pollinations.ai/prompt"

ENV_API_KEY = "VOYAGE_ARK_API_KEY"
ENV_MODEL = "VOYAGE_ARK_MODEL"
ENV_API_BASE = "VOYAGE_ARK_API_BASE"
ENV_DATA_DIR = "VOYAGE_DATA_DIR"


@dataclass(frozen=True)
class ApiConfig:
    """credentials and endpoint for the text-generation service."""

    api_key: str = ""
    model: str = ""
    base_url: str = ""

    @property
    def is_configured(self) -> bool:
        """all three fields are required for any call to go out."""
        return bool(self.api_key and self.model and self.base_url)

    @classmethod
    def from_env(cls) -> ApiConfig:
        return cls(
            api_key=os.environ.get(ENV_API_KEY, ""),
            model=os.environ.get(ENV_MODEL, ""),
            base_url=os.environ.get(ENV_API_BASE, "") or DEFAULT_API_BASE,
        )

    def merged(self, overrides: dict) -> ApiConfig:
        """apply persisted or user-entered fields; blank values keep the current ones."""
        changes = {}
        for key, field_name in _WIRE_FIELDS.items():
            value = overrides.get(key, overrides.get(field_name))
            if isinstance(value, str) and value.strip():
                changes[field_name] = value.strip()
        return replace(self, **changes)

    def to_dict(self) -> dict:
        """persisted shape (camelCase keys)."""
        return {key: getattr(self, field_name) for key, field_name in _WIRE_FIELDS.items()}

    @property
    def endpoint(self) -> str:
        return f"{self.base_url.rstrip('/')}/responses"

    def redacted(self) -> dict:
        """config for display, with the key masked."""
        d = self.to_dict()
        if self.api_key:
            d["apiKey"] = f"{self.api_key[:4]}…" if len(self.api_key) > 8 else "…"
        return d


_WIRE_FIELDS = {
    "apiKey": "api_key",
    "model": "model",
    "baseUrl": "base_url",
}


def get_data_dir(override: Optional[str] = None) -> Path:
    """local storage directory for board and config records."""
    if override:
        data_dir = Path(override).expanduser()
    elif os.environ.get(ENV_DATA_DIR):
        data_dir = Path(os.environ[ENV_DATA_DIR]).expanduser()
    else:
        data_dir = Path.home() / ".voyageboard"
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir
